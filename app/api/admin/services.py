# Service catalog
from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import catalog
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, unexpected_error
from app.utils.serializers import service_to_dict

services_bp = Blueprint("admin_services", __name__, url_prefix="/api/admin/services")


@services_bp.route("", methods=["GET"])
@require_actor
def list_services(actor):
    """
    List services
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: search
        in: query
        type: string
      - name: category
        in: query
        type: string
        enum: [exterior, interior, engine, vacuum, complementary, all]
      - name: status
        in: query
        type: string
        enum: [active, inactive, all]
    responses:
      200:
        description: Matching services
    """
    try:
        services = catalog.list_services(
            actor,
            search=request.args.get("search"),
            category=request.args.get("category"),
            status=request.args.get("status"),
        )
        return jsonify({"success": True, "services": [service_to_dict(s) for s in services]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list services")


@services_bp.route("", methods=["POST"])
@require_actor
def create_service(actor):
    """
    Create a service
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, duration, category]
          properties:
            name:
              type: string
            description:
              type: string
            price:
              type: number
              description: 0 means the price is set per check-in
            duration:
              type: integer
            category:
              type: string
            washerCommissionPercentage:
              type: number
              default: 40
            companyCommissionPercentage:
              type: number
              default: 60
            maxWashersPerService:
              type: integer
              default: 2
    responses:
      201:
        description: Service created
      400:
        description: Validation failed (e.g. commission split does not total 100)
      409:
        description: Name already in use
    """
    try:
        service = catalog.create_service(actor, get_json_body())
        return jsonify({"success": True, "service": service_to_dict(service)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create service")


@services_bp.route("/<int:service_id>", methods=["GET"])
@require_actor
def get_service(actor, service_id):
    try:
        service = catalog.get_service(actor, service_id)
        return jsonify({"success": True, "service": service_to_dict(service)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"get service {service_id}")


@services_bp.route("/<int:service_id>", methods=["PATCH"])
@require_actor
def update_service(actor, service_id):
    try:
        service = catalog.update_service(actor, service_id, get_json_body())
        return jsonify({"success": True, "service": service_to_dict(service)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"update service {service_id}")


@services_bp.route("/<int:service_id>/toggle", methods=["POST"])
@require_actor
def toggle_service(actor, service_id):
    try:
        service = catalog.toggle_service(actor, service_id)
        return jsonify({"success": True, "service": service_to_dict(service)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"toggle service {service_id}")


@services_bp.route("/<int:service_id>", methods=["DELETE"])
@require_actor
def delete_service(actor, service_id):
    try:
        catalog.delete_service(actor, service_id)
        return jsonify({"success": True, "message": "Service deleted"}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"delete service {service_id}")
