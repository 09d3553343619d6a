"""
Staff account provisioning.

Admin and car washer accounts are created as one unit of work: the user row is
flushed first so its id can key any uploaded file, files are uploaded, and the
transaction commits only after every upload succeeded. If anything fails after
an upload, the uploaded objects are deleted again.
"""

import secrets
from typing import List, Optional

from flask import current_app
from sqlalchemy import func, or_, select

from app.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.extensions import db
from app.models import AdminProfile, CarWasherProfile, Location, NextOfKin, User
from app.services.email_service import EmailService
from app.utils.auth_utils import (
    ADMIN,
    CAR_WASHER,
    SUPER_ADMIN,
    ActorContext,
    authorize,
    check_password,
    hash_password,
)
from app.utils.http_utils import to_bool, to_decimal, to_int, to_text
from app.utils.s3_utils import build_key, delete_file_from_s3, upload_file_to_s3

MIN_PASSWORD_LENGTH = 6


def _clean(value):
    return to_text(value, "value") or None


def validate_password(password):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _validate_user_fields(data, require_password=True):
    name = _clean(data.get("name"))
    email = _clean(data.get("email"))
    phone = _clean(data.get("phone"))
    password = data.get("password")

    missing = [field for field, value in (("name", name), ("email", email), ("phone", phone)) if not value]
    if require_password and not password:
        missing.append("password")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if "@" not in email or "." not in email.split("@")[-1]:
        raise ValidationError("Invalid email address")
    if password:
        validate_password(password)

    email = email.lower()
    existing = db.session.scalar(select(User).where(func.lower(User.email) == email))
    if existing:
        raise ConflictError("A user with this email already exists")

    return name, email, phone, password


def _validate_next_of_kin(entries) -> List[dict]:
    if not entries:
        return []
    if not isinstance(entries, list):
        raise ValidationError("nextOfKin must be a list")

    cleaned = []
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(f"Next of kin #{index} is invalid")
        name = _clean(entry.get("name"))
        phone = _clean(entry.get("phone"))
        address = _clean(entry.get("address"))
        if not name or not phone or not address:
            raise ValidationError(f"Next of kin #{index} requires name, phone and address")
        cleaned.append(
            {
                "name": name,
                "phone": phone,
                "address": address,
                "relationship_type": _clean(entry.get("relationship")),
            }
        )
    return cleaned


def _require_location(location_id) -> Optional[int]:
    location_id = to_int(location_id, "location")
    if location_id is None:
        return None
    location = db.session.get(Location, location_id)
    if not location or not location.is_active:
        raise ValidationError("Location not found or inactive")
    return location_id


def _commit_with_uploads(uploads):
    """
    Upload every ``(file, key, bucket, setter)`` and commit.

    ``setter`` receives the public URL. Uploaded objects are removed if a later
    upload or the commit fails.
    """
    uploaded = []
    try:
        for file, key, bucket, setter in uploads:
            url = upload_file_to_s3(file, key, bucket)
            uploaded.append((url, bucket))
            setter(url)
        db.session.commit()
    except Exception:
        db.session.rollback()
        for url, bucket in uploaded:
            if not delete_file_from_s3(url, bucket):
                current_app.logger.warning(f"Orphaned upload left behind: {url}")
        raise


def create_admin(actor: ActorContext, data, cv_file=None, picture_file=None) -> User:
    authorize(actor, "create_admin")

    name, email, phone, password = _validate_user_fields(data, require_password=True)
    location_id = _require_location(data.get("location") or data.get("locationId"))
    next_of_kin = _validate_next_of_kin(data.get("nextOfKin"))

    user = User(
        name=name,
        email=email,
        phone=phone,
        password_hash=hash_password(password),
        role=ADMIN,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()

    profile = AdminProfile(
        user_id=user.id,
        location_id=location_id,
        address=_clean(data.get("address")),
        cv_url=data.get("cvUrl"),
        picture_url=data.get("pictureUrl"),
    )
    db.session.add(profile)
    for kin in next_of_kin:
        db.session.add(NextOfKin(user_id=user.id, **kin))

    uploads = []
    if cv_file:
        key = build_key("cvs", user.id, "cv", cv_file.filename)
        uploads.append(
            (cv_file, key, current_app.config["ADMIN_CV_BUCKET"], lambda url: setattr(profile, "cv_url", url))
        )
    if picture_file:
        key = build_key("profiles", user.id, "profile", picture_file.filename)
        uploads.append(
            (
                picture_file,
                key,
                current_app.config["ADMIN_PICTURE_BUCKET"],
                lambda url: setattr(profile, "picture_url", url),
            )
        )

    _commit_with_uploads(uploads)
    current_app.logger.info(f"Admin {user.id} created by {actor.user_id}")
    return user


def create_car_washer(actor: ActorContext, data, picture_file=None):
    """
    Returns ``(user, temporary_password_sent)``.

    When no password is supplied a temporary one is generated and emailed; a
    failed email is logged and does not undo the account.
    """
    authorize(actor, "create_washer")

    name, email, phone, password = _validate_user_fields(data, require_password=False)
    location_id = _require_location(data.get("assignedLocation") or data.get("assignedLocationId"))
    next_of_kin = _validate_next_of_kin(data.get("nextOfKin"))
    hourly_rate = to_decimal(data.get("hourlyRate"), "hourlyRate")
    if hourly_rate is not None and hourly_rate < 0:
        raise ValidationError("hourlyRate cannot be negative")

    bank = data.get("bankInformation") or {}
    if not isinstance(bank, dict):
        raise ValidationError("bankInformation must be an object")

    temporary_password = None
    if not password:
        temporary_password = secrets.token_urlsafe(9)
        password = temporary_password

    user = User(
        name=name,
        email=email,
        phone=phone,
        password_hash=hash_password(password),
        role=CAR_WASHER,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()

    profile = CarWasherProfile(
        user_id=user.id,
        assigned_admin_id=actor.user_id,
        assigned_location_id=location_id,
        hourly_rate=hourly_rate,
        total_earnings=0,
        is_available=True,
        picture_url=data.get("pictureUrl"),
        bank_name=_clean(bank.get("bankName")),
        account_number=_clean(bank.get("accountNumber")),
        account_name=_clean(bank.get("accountName")),
    )
    db.session.add(profile)
    for kin in next_of_kin:
        db.session.add(NextOfKin(user_id=user.id, **kin))

    uploads = []
    if picture_file:
        key = build_key("profiles", user.id, "profile", picture_file.filename)
        uploads.append(
            (
                picture_file,
                key,
                current_app.config["WORKER_PICTURE_BUCKET"],
                lambda url: setattr(profile, "picture_url", url),
            )
        )

    _commit_with_uploads(uploads)
    current_app.logger.info(f"Car washer {user.id} created by {actor.user_id}")

    sent = False
    if temporary_password:
        try:
            result = EmailService().send_temporary_password(email, name, temporary_password)
        except Exception as e:
            result = {"success": False, "error": str(e)}
        sent = result.get("success", False)
        if not sent:
            current_app.logger.warning(
                f"Temporary password email to washer {user.id} failed: {result.get('error')}"
            )

    return user, sent


def list_users(actor: ActorContext, role, search=None, is_active=None, location_id=None):
    if role == ADMIN:
        authorize(actor, "view_admins")
    elif role == CAR_WASHER:
        authorize(actor, "view_washers")
    else:
        raise ValidationError("Invalid role")

    query = select(User).where(User.role == role)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern),
                User.phone.like(f"%{search}%"),
            )
        )
    if is_active is not None:
        query = query.where(User.is_active == is_active)
    if location_id is not None:
        if role == ADMIN:
            query = query.join(AdminProfile, AdminProfile.user_id == User.id).where(
                AdminProfile.location_id == location_id
            )
        else:
            query = query.join(CarWasherProfile, CarWasherProfile.user_id == User.id).where(
                CarWasherProfile.assigned_location_id == location_id
            )

    return db.session.scalars(query.order_by(User.name)).all()


def get_user(actor: ActorContext, user_id) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if actor.user_id != user.id:
        authorize(actor, "view_admins" if user.role in (ADMIN, SUPER_ADMIN) else "view_washers")
    return user


def set_user_active(actor: ActorContext, user_id, is_active) -> User:
    is_active = to_bool(is_active)
    if is_active is None:
        raise ValidationError("isActive is required")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.role == SUPER_ADMIN:
        raise AuthorizationError("Super admin accounts cannot be deactivated")
    if user.id == actor.user_id:
        raise ValidationError("You cannot change your own active status")

    authorize(actor, "manage_admins" if user.role == ADMIN else "manage_washers")

    user.is_active = is_active
    db.session.commit()
    current_app.logger.info(
        f"User {user.id} {'activated' if is_active else 'deactivated'} by {actor.user_id}"
    )
    return user


def authenticate(email, password) -> User:
    if not email or not password:
        raise ValidationError("Email and password required")

    email = to_text(email, "email").lower()
    user = db.session.scalar(select(User).where(func.lower(User.email) == email))
    if not user or not check_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return user


def change_password(actor: ActorContext, current_password, new_password) -> None:
    if not current_password or not new_password:
        raise ValidationError("Current and new password are required")
    validate_password(new_password)

    user = db.session.get(User, actor.user_id)
    if not check_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()
