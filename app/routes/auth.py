from flask import Blueprint, jsonify

from app.errors import CarWashError
from app.extensions import db
from app.models import User
from app.services import accounts
from app.utils.auth_utils import encode_token, require_actor
from app.utils.http_utils import error_response, get_json_body, unexpected_error
from app.utils.serializers import user_to_dict

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/login", methods=["POST"])
def login_user():
    """
    Log in with email and password
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password]
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Token issued
      400:
        description: Email or password missing
      401:
        description: Invalid credentials or deactivated account
    """
    try:
        data = get_json_body()
        user = accounts.authenticate(data.get("email"), data.get("password"))
        token = encode_token(user)
        return jsonify({
            "success": True,
            "message": "Login successful",
            "token": token,
            "user": user_to_dict(user, include_profile=False),
        }), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "login")


@auth_bp.route("/me", methods=["GET"])
@require_actor
def current_user(actor):
    """
    Current user with role profile
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: The authenticated user
      401:
        description: Missing, invalid or expired token
    """
    try:
        user = db.session.get(User, actor.user_id)
        return jsonify({"success": True, "user": user_to_dict(user)}), 200
    except Exception as e:
        return unexpected_error(e, "load current user")


@auth_bp.route("/logout", methods=["POST"])
@require_actor
def logout_user(actor):
    # Tokens are stateless; the client drops its copy.
    return jsonify({"success": True, "message": "Logged out"}), 200


@auth_bp.route("/change-password", methods=["POST"])
@require_actor
def change_password(actor):
    """
    Change the current user's password
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [currentPassword, newPassword]
          properties:
            currentPassword:
              type: string
            newPassword:
              type: string
              minLength: 6
    responses:
      200:
        description: Password changed
      400:
        description: Missing fields or password too short
      401:
        description: Current password is incorrect
    """
    try:
        data = get_json_body()
        accounts.change_password(actor, data.get("currentPassword"), data.get("newPassword"))
        return jsonify({"success": True, "message": "Password updated successfully"}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "change password")
