from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import milestones
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, to_int, unexpected_error
from app.utils.serializers import bonus_to_dict, expense_to_dict

bonuses_bp = Blueprint("admin_bonuses", __name__, url_prefix="/api/admin")


@bonuses_bp.route("/bonuses", methods=["GET"])
@require_actor
def list_bonuses(actor):
    try:
        rows = milestones.list_bonuses(
            actor,
            bonus_type=request.args.get("type"),
            status=request.args.get("status"),
            recipient_id=to_int(request.args.get("recipientId"), "recipientId"),
        )
        return jsonify({"success": True, "bonuses": [bonus_to_dict(b) for b in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list bonuses")


@bonuses_bp.route("/bonuses", methods=["POST"])
@require_actor
def grant_bonus(actor):
    """
    Grant a bonus to a customer or washer
    ---
    tags:
      - Bonuses
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [recipientId, amount]
          properties:
            type:
              type: string
              enum: [customer, washer]
              default: customer
            recipientId:
              type: integer
            amount:
              type: number
            reason:
              type: string
            milestoneId:
              type: integer
    responses:
      201:
        description: Bonus created as pending; customer bonuses also record an expense
      400:
        description: Validation failed
      404:
        description: Recipient or milestone not found
    """
    try:
        bonus = milestones.grant_bonus(actor, get_json_body())
        return jsonify({"success": True, "bonus": bonus_to_dict(bonus)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "grant bonus")


@bonuses_bp.route("/bonuses/<int:bonus_id>", methods=["PATCH"])
@require_actor
def update_bonus(actor, bonus_id):
    try:
        bonus = milestones.update_bonus_status(actor, bonus_id, get_json_body().get("status"))
        return jsonify({"success": True, "bonus": bonus_to_dict(bonus)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"update bonus {bonus_id}")


@bonuses_bp.route("/expenses", methods=["GET"])
@require_actor
def list_expenses(actor):
    try:
        rows = milestones.list_expenses(
            actor,
            category=request.args.get("category"),
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
        )
        return jsonify({"success": True, "expenses": [expense_to_dict(e) for e in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list expenses")
