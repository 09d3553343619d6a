"""
Authentication and authorization helpers.

Every protected handler is wrapped with ``require_actor``. The decorator turns
the bearer token into an ``ActorContext`` by re-reading the user row, so the
role used for authorization is always the one stored in the database and never
whatever the client claims. Services receive the actor explicitly and call
``authorize`` once per mutating operation.
"""

import datetime
from dataclasses import dataclass
from functools import wraps

import bcrypt
import jwt
from flask import current_app, request

from app.errors import AuthenticationError, AuthorizationError, CarWashError
from app.extensions import db
from app.models import User
from app.utils.http_utils import error_response, unexpected_error

SUPER_ADMIN = "super_admin"
ADMIN = "admin"
CAR_WASHER = "car_washer"

_STAFF_ACTIONS = {
    "create_washer",
    "manage_washers",
    "view_washers",
    "view_locations",
    "manage_locations",
    "view_services",
    "manage_services",
    "manage_customers",
    "create_check_in",
    "view_check_ins",
    "start_check_in",
    "complete_check_in",
    "record_payment",
    "cancel_check_in",
    "assign_washer",
    "manage_tools",
    "view_tools",
    "calculate_deductions",
    "view_payment_requests",
    "review_payment_request",
    "manage_milestones",
    "view_milestones",
    "claim_reward",
    "grant_bonus",
    "review_bonus",
    "view_bonuses",
    "view_expenses",
    "view_admin_dashboard",
    "export_reports",
    "record_sale",
}

CAPABILITIES = {
    SUPER_ADMIN: _STAFF_ACTIONS | {"create_admin", "manage_admins", "view_admins"},
    ADMIN: set(_STAFF_ACTIONS),
    CAR_WASHER: {
        "view_services",
        "view_check_ins",
        "start_check_in",
        "complete_check_in",
        "washer_complete",
        "assign_materials",
        "view_tools",
        "calculate_deductions",
        "request_payment",
        "cancel_payment_request",
        "view_payment_requests",
        "view_worker_dashboard",
    },
}

ACTION_DESCRIPTIONS = {
    "create_admin": "Only super admins can create admin accounts",
    "create_washer": "Only admins and super admins can create car washer accounts",
    "manage_admins": "Only super admins can manage admin accounts",
    "request_payment": "Only car washers can request payments",
    "cancel_payment_request": "Only car washers can cancel their payment requests",
    "view_worker_dashboard": "Only car washers have a worker dashboard",
}


@dataclass(frozen=True)
class ActorContext:
    user_id: int
    role: str
    name: str = ""

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.role in (ADMIN, SUPER_ADMIN)

    @property
    def is_washer(self) -> bool:
        return self.role == CAR_WASHER


def can(actor: ActorContext, action: str) -> bool:
    return action in CAPABILITIES.get(actor.role, set())


def authorize(actor: ActorContext, action: str) -> None:
    """Raise AuthorizationError unless the actor's role grants ``action``."""
    if not can(actor, action):
        message = ACTION_DESCRIPTIONS.get(
            action, f"Role '{actor.role}' is not allowed to {action.replace('_', ' ')}"
        )
        raise AuthorizationError(message)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, stored_hash) -> bool:
    if not stored_hash:
        return False
    if isinstance(stored_hash, str):
        stored_hash = stored_hash.encode("utf-8")
    return bcrypt.checkpw(password.encode("utf-8"), stored_hash)


def encode_token(user: User) -> str:
    hours = current_app.config.get("JWT_EXPIRES_HOURS", 12)
    payload = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "exp": datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=hours),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def resolve_actor(auth_header) -> ActorContext:
    if not auth_header or not auth_header.lower().startswith("bearer "):
        raise AuthenticationError("Missing bearer token")

    token = auth_header.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired, please log in again")
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid token")

    user = db.session.get(User, payload.get("user_id"))
    if not user or not user.is_active:
        raise AuthenticationError("User not found or deactivated")

    return ActorContext(user_id=user.id, role=user.role, name=user.name)


def require_actor(view):
    """Inject the authenticated ``actor`` keyword argument into a view."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            actor = resolve_actor(request.headers.get("Authorization"))
        except CarWashError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "resolve actor")
        return view(*args, actor=actor, **kwargs)

    return wrapper
