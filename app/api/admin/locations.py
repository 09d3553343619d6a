from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import locations
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, to_bool, unexpected_error
from app.utils.serializers import location_to_dict, user_to_dict

locations_bp = Blueprint("admin_locations", __name__, url_prefix="/api/admin/locations")


@locations_bp.route("", methods=["GET"])
@require_actor
def list_locations(actor):
    """
    List service locations
    ---
    tags:
      - Locations
    security:
      - Bearer: []
    parameters:
      - name: lga
        in: query
        type: string
      - name: is_active
        in: query
        type: boolean
      - name: search
        in: query
        type: string
        description: Case-insensitive match on address or LGA
    responses:
      200:
        description: Matching locations
    """
    try:
        rows = locations.list_locations(
            actor,
            lga=request.args.get("lga"),
            is_active=to_bool(request.args.get("is_active")),
            search=request.args.get("search"),
        )
        return jsonify({"success": True, "data": [location_to_dict(r) for r in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list locations")


@locations_bp.route("", methods=["POST"])
@require_actor
def create_location(actor):
    """
    Create a location
    ---
    tags:
      - Locations
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [address, lga]
          properties:
            address:
              type: string
            lga:
              type: string
            is_active:
              type: boolean
    responses:
      201:
        description: Location created
      400:
        description: Address or LGA missing
    """
    try:
        location = locations.create_location(actor, get_json_body())
        return jsonify({"success": True, "data": location_to_dict(location)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create location")


@locations_bp.route("/stats", methods=["GET"])
@require_actor
def location_stats(actor):
    try:
        return jsonify({"success": True, "data": locations.location_stats(actor)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "location stats")


@locations_bp.route("/lgas", methods=["GET"])
@require_actor
def list_lgas(actor):
    try:
        return jsonify({"success": True, "data": locations.list_lgas(actor)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list LGAs")


@locations_bp.route("/<int:location_id>", methods=["GET"])
@require_actor
def get_location(actor, location_id):
    try:
        location = locations.get_location(actor, location_id)
        return jsonify({"success": True, "data": location_to_dict(location)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"get location {location_id}")


@locations_bp.route("/<int:location_id>", methods=["PUT", "PATCH"])
@require_actor
def update_location(actor, location_id):
    try:
        location = locations.update_location(actor, location_id, get_json_body())
        return jsonify({"success": True, "data": location_to_dict(location)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"update location {location_id}")


@locations_bp.route("/<int:location_id>", methods=["DELETE"])
@require_actor
def delete_location(actor, location_id):
    """
    Deactivate a location (the row is kept)
    ---
    tags:
      - Locations
    security:
      - Bearer: []
    parameters:
      - name: location_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Location deactivated
      404:
        description: Location not found
    """
    try:
        location = locations.delete_location(actor, location_id)
        return jsonify({
            "success": True,
            "message": "Location deactivated",
            "data": location_to_dict(location),
        }), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"delete location {location_id}")


@locations_bp.route("/<int:location_id>/workers", methods=["GET"])
@require_actor
def list_location_workers(actor, location_id):
    try:
        workers = locations.list_location_workers(actor, location_id)
        return jsonify({"success": True, "data": [user_to_dict(w) for w in workers]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"list workers for location {location_id}")


@locations_bp.route("/<int:location_id>/admins", methods=["GET"])
@require_actor
def list_location_admins(actor, location_id):
    try:
        admins = locations.list_location_admins(actor, location_id)
        return jsonify({"success": True, "data": [user_to_dict(a) for a in admins]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"list admins for location {location_id}")
