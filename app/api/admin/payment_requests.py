# Washer payout requests and the deductions that reduce them
from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import payments
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, money, unexpected_error
from app.utils.serializers import payment_request_to_dict, tool_to_dict

payment_requests_bp = Blueprint("admin_payment_requests", __name__, url_prefix="/api/admin")


def deductions_to_dict(deductions):
    return {
        "deductions": {
            "materialDeductions": money(deductions["materialDeductions"]),
            "toolDeductions": money(deductions["toolDeductions"]),
            "totalDeductions": money(deductions["totalDeductions"]),
        },
        "unreturnedItems": [tool_to_dict(t) for t in deductions["unreturnedItems"]],
        "hasUnreturnedTools": deductions["hasUnreturnedTools"],
    }


@payment_requests_bp.route("/calculate-deductions", methods=["GET"])
@require_actor
def calculate_deductions(actor):
    """
    Material and tool deductions for a washer
    ---
    tags:
      - Payment Requests
    security:
      - Bearer: []
    parameters:
      - name: washerId
        in: query
        type: integer
        description: Required for admins; car washers always get their own
    responses:
      200:
        description: Deduction breakdown and unreturned items
      404:
        description: Washer not found
    """
    try:
        deductions = payments.calculate_deductions(actor, request.args.get("washerId"))
        return jsonify({"success": True, **deductions_to_dict(deductions)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "calculate deductions")


@payment_requests_bp.route("/payment-requests", methods=["GET"])
@require_actor
def list_payment_requests(actor):
    try:
        rows = payments.list_payment_requests(
            actor,
            status=request.args.get("status"),
            washer_id=request.args.get("washerId"),
        )
        return jsonify({"success": True, "data": [payment_request_to_dict(p) for p in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list payment requests")


@payment_requests_bp.route("/payment-requests", methods=["POST"])
@require_actor
def create_payment_request(actor):
    """
    Request a payout of available earnings
    ---
    tags:
      - Payment Requests
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [requestedAmount]
          properties:
            washerId:
              type: integer
            requestedAmount:
              type: number
            notes:
              type: string
    responses:
      201:
        description: Request created
      400:
        description: Unreturned tools, or amount exceeds available earnings after deductions
      409:
        description: A pending request already exists
    """
    try:
        payment_request = payments.create_payment_request(actor, get_json_body())
        return jsonify({"success": True, "data": payment_request_to_dict(payment_request)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create payment request")


@payment_requests_bp.route("/payment-requests/<int:request_id>", methods=["GET"])
@require_actor
def get_payment_request(actor, request_id):
    try:
        payment_request = payments.get_payment_request(actor, request_id)
        return jsonify({"success": True, "data": payment_request_to_dict(payment_request)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"get payment request {request_id}")


@payment_requests_bp.route("/payment-requests/<int:request_id>", methods=["PATCH"])
@require_actor
def review_payment_request(actor, request_id):
    """
    Approve, reject or mark a payment request as paid
    ---
    tags:
      - Payment Requests
    security:
      - Bearer: []
    parameters:
      - name: request_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            action:
              type: string
              enum: [approve, reject, pay]
            status:
              type: string
              enum: [approved, rejected, paid]
            adminNotes:
              type: string
    responses:
      200:
        description: Updated request; the washer is notified by email
      400:
        description: Transition not allowed
    """
    try:
        data = get_json_body()
        payment_request = payments.review_payment_request(
            actor,
            request_id,
            data.get("action") or data.get("status"),
            data.get("adminNotes"),
        )
        return jsonify({"success": True, "data": payment_request_to_dict(payment_request)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"review payment request {request_id}")


@payment_requests_bp.route("/payment-requests/<int:request_id>", methods=["DELETE"])
@require_actor
def cancel_payment_request(actor, request_id):
    try:
        payments.cancel_payment_request(actor, request_id)
        return jsonify({"success": True, "message": "Payment request cancelled"}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"cancel payment request {request_id}")
