from flask import current_app
from sqlalchemy import case, func, or_, select

from app.errors import NotFoundError, ValidationError
from app.extensions import db
from app.models import AdminProfile, CarWasherProfile, Location, User
from app.utils.auth_utils import ADMIN, CAR_WASHER, ActorContext, authorize
from app.utils.http_utils import to_bool, to_text


def create_location(actor: ActorContext, data) -> Location:
    authorize(actor, "manage_locations")

    address = to_text(data.get("address"), "address")
    lga = to_text(data.get("lga"), "lga")
    if not address or not lga:
        raise ValidationError("Address and LGA are required")

    location = Location(address=address, lga=lga, is_active=to_bool(data.get("is_active"), True))
    db.session.add(location)
    db.session.commit()
    current_app.logger.info(f"Location {location.id} created by {actor.user_id}")
    return location


def list_locations(actor: ActorContext, lga=None, is_active=None, search=None):
    authorize(actor, "view_locations")

    query = select(Location)
    if lga:
        query = query.where(Location.lga == lga)
    if is_active is not None:
        query = query.where(Location.is_active == is_active)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(func.lower(Location.address).like(pattern), func.lower(Location.lga).like(pattern))
        )
    return db.session.scalars(query.order_by(Location.lga, Location.address)).all()


def get_location(actor: ActorContext, location_id) -> Location:
    authorize(actor, "view_locations")
    location = db.session.get(Location, location_id)
    if not location:
        raise NotFoundError("Location not found")
    return location


def update_location(actor: ActorContext, location_id, data) -> Location:
    authorize(actor, "manage_locations")
    location = db.session.get(Location, location_id)
    if not location:
        raise NotFoundError("Location not found")

    if not any(key in data for key in ("address", "lga", "is_active")):
        raise ValidationError("No fields provided to update")

    if "address" in data:
        address = to_text(data.get("address"), "address")
        if not address:
            raise ValidationError("Address cannot be empty")
        location.address = address
    if "lga" in data:
        lga = to_text(data.get("lga"), "lga")
        if not lga:
            raise ValidationError("LGA cannot be empty")
        location.lga = lga
    if "is_active" in data:
        location.is_active = to_bool(data.get("is_active"), location.is_active)

    db.session.commit()
    return location


def delete_location(actor: ActorContext, location_id) -> Location:
    """Soft delete: the row stays and is only deactivated."""
    authorize(actor, "manage_locations")
    location = db.session.get(Location, location_id)
    if not location:
        raise NotFoundError("Location not found")

    location.is_active = False
    db.session.commit()
    current_app.logger.info(f"Location {location.id} deactivated by {actor.user_id}")
    return location


def location_stats(actor: ActorContext):
    authorize(actor, "view_locations")

    total, active = db.session.execute(
        select(
            func.count(Location.id),
            func.coalesce(func.sum(case((Location.is_active.is_(True), 1), else_=0)), 0),
        )
    ).one()

    rows = db.session.execute(
        select(
            Location.lga,
            func.count(Location.id),
            func.coalesce(func.sum(case((Location.is_active.is_(True), 1), else_=0)), 0),
        )
        .group_by(Location.lga)
        .order_by(Location.lga)
    ).all()

    return {
        "total": total,
        "active": int(active),
        "inactive": total - int(active),
        "byLga": [{"lga": lga, "total": count, "active": int(act)} for lga, count, act in rows],
    }


def list_lgas(actor: ActorContext):
    authorize(actor, "view_locations")
    return db.session.scalars(select(Location.lga).distinct().order_by(Location.lga)).all()


def _active_location(location_id) -> Location:
    location = db.session.get(Location, location_id)
    if not location or not location.is_active:
        raise NotFoundError("Location not found")
    return location


def list_location_workers(actor: ActorContext, location_id):
    authorize(actor, "view_locations")
    _active_location(location_id)
    query = (
        select(User)
        .join(CarWasherProfile, CarWasherProfile.user_id == User.id)
        .where(
            CarWasherProfile.assigned_location_id == location_id,
            User.role == CAR_WASHER,
            User.is_active.is_(True),
        )
        .order_by(User.name)
    )
    return db.session.scalars(query).all()


def list_location_admins(actor: ActorContext, location_id):
    authorize(actor, "view_locations")
    _active_location(location_id)
    query = (
        select(User)
        .join(AdminProfile, AdminProfile.user_id == User.id)
        .where(AdminProfile.location_id == location_id, User.role == ADMIN, User.is_active.is_(True))
        .order_by(User.name)
    )
    return db.session.scalars(query).all()
