from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import customers
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, unexpected_error
from app.utils.serializers import customer_to_dict

customers_bp = Blueprint("admin_customers", __name__, url_prefix="/api/admin/customers")


@customers_bp.route("", methods=["POST"])
@require_actor
def create_customer(actor):
    """
    Register a customer with their vehicles
    ---
    tags:
      - Customers
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, phone]
          properties:
            name:
              type: string
            phone:
              type: string
            email:
              type: string
            vehicles:
              type: array
              items:
                type: object
                properties:
                  license_plate:
                    type: string
                  type:
                    type: string
                  color:
                    type: string
                  model:
                    type: string
                  is_primary:
                    type: boolean
    responses:
      201:
        description: Customer created
      400:
        description: Validation failed
    """
    try:
        customer = customers.create_customer(actor, get_json_body())
        return jsonify({"success": True, "customer": customer_to_dict(customer)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create customer")


@customers_bp.route("", methods=["GET"])
@require_actor
def list_customers(actor):
    try:
        rows = customers.list_customers(
            actor, search=request.args.get("search"), limit=request.args.get("limit")
        )
        return jsonify({"success": True, "customers": [customer_to_dict(c) for c in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list customers")


@customers_bp.route("/<int:customer_id>", methods=["GET"])
@require_actor
def get_customer(actor, customer_id):
    try:
        customer = customers.get_customer(actor, customer_id)
        return jsonify({"success": True, "customer": customer_to_dict(customer)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"get customer {customer_id}")
