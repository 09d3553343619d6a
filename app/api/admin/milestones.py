# Customer loyalty milestones and the achievement ledger
from flask import Blueprint, jsonify, request

from app.errors import CarWashError, ValidationError
from app.services import milestones
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, to_bool, to_int, unexpected_error
from app.utils.serializers import achievement_to_dict, milestone_to_dict

milestones_bp = Blueprint("admin_milestones", __name__, url_prefix="/api/admin")


@milestones_bp.route("/milestones", methods=["GET"])
@require_actor
def list_milestones(actor):
    try:
        rows = milestones.list_milestones(
            actor,
            is_active=to_bool(request.args.get("isActive")),
            milestone_type=request.args.get("type"),
        )
        return jsonify({"success": True, "milestones": [milestone_to_dict(m) for m in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list milestones")


@milestones_bp.route("/milestones", methods=["POST"])
@require_actor
def create_milestone(actor):
    """
    Create a milestone
    ---
    tags:
      - Milestones
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, type, condition]
          properties:
            name:
              type: string
            description:
              type: string
            type:
              type: string
              enum: [visits, spending, custom]
            condition:
              type: object
              properties:
                operator:
                  type: string
                  enum: [">=", "<=", "=", ">", "<"]
                value:
                  type: number
            reward:
              type: string
    responses:
      201:
        description: Milestone created
      400:
        description: Invalid type or condition
    """
    try:
        milestone = milestones.create_milestone(actor, get_json_body())
        return jsonify({"success": True, "milestone": milestone_to_dict(milestone)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create milestone")


@milestones_bp.route("/milestones/<int:milestone_id>", methods=["PATCH"])
@require_actor
def update_milestone(actor, milestone_id):
    try:
        milestone = milestones.update_milestone(actor, milestone_id, get_json_body())
        return jsonify({"success": True, "milestone": milestone_to_dict(milestone)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"update milestone {milestone_id}")


@milestones_bp.route("/milestones/<int:milestone_id>", methods=["DELETE"])
@require_actor
def delete_milestone(actor, milestone_id):
    """
    Delete a milestone, or deactivate it when customers have already reached it
    ---
    tags:
      - Milestones
    security:
      - Bearer: []
    parameters:
      - name: milestone_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Milestone deleted or deactivated
      404:
        description: Milestone not found
    """
    try:
        deleted = milestones.delete_milestone(actor, milestone_id)
        message = "Milestone deleted" if deleted else "Milestone has achievements and was deactivated"
        return jsonify({"success": True, "deleted": deleted, "message": message}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"delete milestone {milestone_id}")


@milestones_bp.route("/milestone-achievements", methods=["GET"])
@require_actor
def list_achievements(actor):
    try:
        rows = milestones.list_achievements(
            actor,
            reward_claimed=to_bool(request.args.get("rewardClaimed")),
            milestone_id=to_int(request.args.get("milestoneId"), "milestoneId"),
            customer_id=to_int(request.args.get("customerId"), "customerId"),
        )
        return jsonify({"success": True, "achievements": [achievement_to_dict(a) for a in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list milestone achievements")


@milestones_bp.route("/milestone-achievements", methods=["PUT"])
@require_actor
def qualifying_customers(actor):
    """
    Customers currently meeting a milestone's condition
    ---
    tags:
      - Milestones
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [milestoneId]
          properties:
            milestoneId:
              type: integer
    responses:
      200:
        description: Qualifying customers with their achievement state
      404:
        description: Milestone not found
    """
    try:
        milestone_id = to_int(get_json_body().get("milestoneId"), "milestoneId")
        if milestone_id is None:
            raise ValidationError("milestoneId is required")
        milestone, customers = milestones.list_qualifying_customers(actor, milestone_id)
        return jsonify({
            "success": True,
            "milestone": milestone_to_dict(milestone),
            "customers": customers,
        }), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list qualifying customers")


@milestones_bp.route("/milestone-achievements", methods=["POST"])
@require_actor
def evaluate_customer(actor):
    try:
        created = milestones.evaluate_customer(actor, get_json_body().get("customerId"))
        return jsonify({
            "success": True,
            "newAchievements": [achievement_to_dict(a) for a in created],
        }), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "evaluate customer milestones")


@milestones_bp.route("/milestone-achievements/<int:achievement_id>", methods=["PATCH"])
@require_actor
def claim_reward(actor, achievement_id):
    try:
        achievement = milestones.claim_reward(actor, achievement_id, get_json_body().get("notes"))
        return jsonify({"success": True, "achievement": achievement_to_dict(achievement)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"claim reward {achievement_id}")
