# Vehicle check-ins and their lifecycle
from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import checkins
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, unexpected_error
from app.utils.serializers import check_in_to_dict, material_to_dict

check_ins_bp = Blueprint("admin_check_ins", __name__, url_prefix="/api/admin/check-ins")


@check_ins_bp.route("", methods=["GET"])
@require_actor
def list_check_ins(actor):
    """
    List check-ins, newest first
    ---
    tags:
      - Check-ins
    security:
      - Bearer: []
    parameters:
      - name: search
        in: query
        type: string
        description: Matches plate, customer name, customer phone or exact passcode
      - name: status
        in: query
        type: string
        description: One status, a comma-separated list, or "all"
      - name: paymentStatus
        in: query
        type: string
        enum: [pending, paid, all]
      - name: washerId
        in: query
        type: integer
        description: Ignored for car washers, who only see their own jobs
      - name: limit
        in: query
        type: integer
      - name: sort
        in: query
        type: string
        enum: [newest, oldest]
    responses:
      200:
        description: Matching check-ins
    """
    try:
        rows = checkins.list_check_ins(
            actor,
            search=request.args.get("search"),
            status=request.args.get("status"),
            payment_status=request.args.get("paymentStatus"),
            washer_id=request.args.get("washerId"),
            limit=request.args.get("limit"),
            sort=request.args.get("sort", "newest"),
        )
        return jsonify({
            "success": True,
            "checkIns": [check_in_to_dict(c) for c in rows],
            "total": len(rows),
        }), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list check-ins")


@check_ins_bp.route("", methods=["POST"])
@require_actor
def create_check_in(actor):
    """
    Check a vehicle in
    ---
    tags:
      - Check-ins
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [licensePlate, services, valuableItems]
          properties:
            customerId:
              type: integer
            licensePlate:
              type: string
            vehicleType:
              type: string
            vehicleColor:
              type: string
            vehicleModel:
              type: string
            washType:
              type: string
              enum: [instant, delayed]
            services:
              type: array
              items:
                type: object
                properties:
                  serviceId:
                    type: integer
                  workerId:
                    type: integer
                  customPrice:
                    type: number
            valuableItems:
              type: string
            securityCode:
              type: string
            userCode:
              type: string
              description: Passcode required later to complete a delayed wash
            checkInProcess:
              type: string
            remarks:
              type: string
            acknowledgeDuplicate:
              type: boolean
    responses:
      201:
        description: Check-in created
      400:
        description: Validation failed
      409:
        description: Plate already checked in today and not acknowledged
    """
    try:
        check_in = checkins.create_check_in(actor, get_json_body())
        return jsonify({"success": True, "checkIn": check_in_to_dict(check_in)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create check-in")


@check_ins_bp.route("/duplicates", methods=["GET"])
@require_actor
def check_duplicates(actor):
    try:
        matches = checkins.check_duplicates(actor, request.args.get("licensePlate"))
        return jsonify({
            "success": True,
            "duplicate": bool(matches),
            "existingCheckIns": matches,
        }), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "check duplicate check-ins")


@check_ins_bp.route("/<int:check_in_id>", methods=["GET"])
@require_actor
def get_check_in(actor, check_in_id):
    try:
        check_in = checkins.get_check_in(actor, check_in_id)
        return jsonify({"success": True, "checkIn": check_in_to_dict(check_in)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"get check-in {check_in_id}")


@check_ins_bp.route("/<int:check_in_id>", methods=["PATCH"])
@require_actor
def update_check_in(actor, check_in_id):
    """
    Move a check-in through its lifecycle
    ---
    tags:
      - Check-ins
    security:
      - Bearer: []
    parameters:
      - name: check_in_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [in_progress, completed, paid, cancelled]
            paymentStatus:
              type: string
              enum: [paid]
            paymentMethod:
              type: string
              enum: [cash, card, pos]
            passcode:
              type: string
            reason:
              type: string
            assignedWasherId:
              type: integer
    responses:
      200:
        description: Updated check-in
      400:
        description: Transition not allowed or required data missing
      403:
        description: Caller cannot perform this transition
      404:
        description: Check-in not found
    """
    try:
        check_in, earnings_updated = checkins.apply_update(actor, check_in_id, get_json_body())
        return jsonify({
            "success": True,
            "checkIn": check_in_to_dict(check_in),
            "earningsUpdated": earnings_updated,
        }), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"update check-in {check_in_id}")


@check_ins_bp.route("/<int:check_in_id>/washer-complete", methods=["POST"])
@require_actor
def washer_complete(actor, check_in_id):
    try:
        check_in = checkins.washer_complete(actor, check_in_id)
        return jsonify({"success": True, "checkIn": check_in_to_dict(check_in)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"washer complete check-in {check_in_id}")


@check_ins_bp.route("/assign-materials", methods=["POST"])
@require_actor
def assign_materials(actor):
    """
    Record materials used on a check-in
    ---
    tags:
      - Check-ins
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [checkInId, materials]
          properties:
            checkInId:
              type: integer
            materials:
              type: array
              items:
                type: object
                properties:
                  materialId:
                    type: integer
                  quantity:
                    type: integer
    responses:
      201:
        description: Usage recorded and stock decremented
      400:
        description: Material not held or insufficient quantity
    """
    try:
        data = get_json_body()
        records = checkins.assign_materials(actor, data.get("checkInId"), data.get("materials"))
        return jsonify({"success": True, "materials": [material_to_dict(m) for m in records]}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "assign materials")


@check_ins_bp.route("/<int:check_in_id>/materials", methods=["GET"])
@require_actor
def list_materials(actor, check_in_id):
    try:
        records = checkins.list_materials(actor, check_in_id)
        return jsonify({"success": True, "materials": [material_to_dict(m) for m in records]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"list materials for check-in {check_in_id}")
