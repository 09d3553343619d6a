# Staff account provisioning and management
import json

from flask import Blueprint, jsonify, request

from app.errors import CarWashError, ValidationError
from app.services import accounts
from app.utils.auth_utils import ADMIN, CAR_WASHER, require_actor
from app.utils.http_utils import error_response, get_json_body, to_bool, to_int, unexpected_error
from app.utils.serializers import user_to_dict

accounts_bp = Blueprint("admin_accounts", __name__, url_prefix="/api/admin")

JSON_FORM_FIELDS = ("nextOfKin", "bankInformation")


def _payload():
    """JSON body, or multipart form fields when files are attached."""
    if not request.files and not request.form:
        return get_json_body()

    data = request.form.to_dict()
    for field in JSON_FORM_FIELDS:
        if data.get(field):
            try:
                data[field] = json.loads(data[field])
            except ValueError:
                raise ValidationError(f"{field} must be valid JSON")
    return data


@accounts_bp.route("/create-admin", methods=["POST"])
@require_actor
def create_admin(actor):
    """
    Create an admin account (super admin only)
    ---
    tags:
      - Accounts
    security:
      - Bearer: []
    consumes:
      - application/json
      - multipart/form-data
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, email, phone, password]
          properties:
            name:
              type: string
            email:
              type: string
            phone:
              type: string
            password:
              type: string
              minLength: 6
            location:
              type: integer
            address:
              type: string
            nextOfKin:
              type: array
              items:
                type: object
                properties:
                  name:
                    type: string
                  phone:
                    type: string
                  address:
                    type: string
                  relationship:
                    type: string
    responses:
      201:
        description: Admin created
      400:
        description: Validation failed
      403:
        description: Caller is not a super admin
      409:
        description: Email already in use
      502:
        description: CV or picture upload failed
    """
    try:
        user = accounts.create_admin(
            actor,
            _payload(),
            cv_file=request.files.get("cvFile"),
            picture_file=request.files.get("pictureFile"),
        )
        return jsonify({"success": True, "user": user_to_dict(user)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create admin")


@accounts_bp.route("/create-carwasher", methods=["POST"])
@require_actor
def create_carwasher(actor):
    """
    Create a car washer account (admin or super admin)
    ---
    tags:
      - Accounts
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, email, phone]
          properties:
            name:
              type: string
            email:
              type: string
            phone:
              type: string
            password:
              type: string
              description: Optional; a temporary password is emailed when omitted
            assignedLocation:
              type: integer
            hourlyRate:
              type: number
            bankInformation:
              type: object
            nextOfKin:
              type: array
              items:
                type: object
    responses:
      201:
        description: Car washer created
      400:
        description: Validation failed
      403:
        description: Caller cannot create washers
      409:
        description: Email already in use
    """
    try:
        user, email_sent = accounts.create_car_washer(
            actor, _payload(), picture_file=request.files.get("pictureFile")
        )
        return jsonify({
            "success": True,
            "user": user_to_dict(user),
            "temporaryPasswordSent": email_sent,
        }), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "create car washer")


def _list(actor, role):
    users = accounts.list_users(
        actor,
        role,
        search=request.args.get("search"),
        is_active=to_bool(request.args.get("isActive")),
        location_id=to_int(request.args.get("locationId"), "locationId"),
    )
    return jsonify({"success": True, "data": [user_to_dict(u) for u in users], "total": len(users)}), 200


@accounts_bp.route("/admins", methods=["GET"])
@require_actor
def list_admins(actor):
    try:
        return _list(actor, ADMIN)
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list admins")


@accounts_bp.route("/washers", methods=["GET"])
@require_actor
def list_washers(actor):
    try:
        return _list(actor, CAR_WASHER)
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list washers")


@accounts_bp.route("/users/<int:user_id>", methods=["GET"])
@require_actor
def get_user(actor, user_id):
    try:
        user = accounts.get_user(actor, user_id)
        return jsonify({"success": True, "user": user_to_dict(user)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"get user {user_id}")


@accounts_bp.route("/users/<int:user_id>", methods=["PATCH"])
@require_actor
def set_user_active(actor, user_id):
    """
    Activate or deactivate a staff account
    ---
    tags:
      - Accounts
    security:
      - Bearer: []
    parameters:
      - name: user_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          required: [isActive]
          properties:
            isActive:
              type: boolean
    responses:
      200:
        description: Updated user
      403:
        description: Not allowed to manage this account
      404:
        description: User not found
    """
    try:
        user = accounts.set_user_active(actor, user_id, get_json_body().get("isActive"))
        return jsonify({"success": True, "user": user_to_dict(user)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"update user {user_id}")
