from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, select, update

from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import SERVICE_CATEGORIES, CheckInService, Service
from app.utils.auth_utils import ActorContext, authorize
from app.utils.http_utils import to_bool, to_decimal, to_int, to_text

DEFAULT_WASHER_PERCENTAGE = Decimal("40")
DEFAULT_COMPANY_PERCENTAGE = Decimal("60")
DEFAULT_MAX_WASHERS = 2
HUNDRED = Decimal("100")


def validate_commission_split(washer_percentage, company_percentage):
    for label, value in (("Washer", washer_percentage), ("Company", company_percentage)):
        if value < 0 or value > HUNDRED:
            raise ValidationError(f"{label} commission percentage must be between 0 and 100")
    if washer_percentage + company_percentage != HUNDRED:
        raise ValidationError("Washer and company commission percentages must add up to 100%")


def _ensure_unique_name(name, exclude_id=None):
    query = select(Service).where(func.lower(Service.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Service.id != exclude_id)
    if db.session.scalar(query):
        raise ConflictError(f"A service named '{name}' already exists")


def _validate_duration(value):
    duration = to_int(value, "duration")
    if duration is None:
        raise ValidationError("Duration is required")
    if duration <= 0:
        raise ValidationError("Duration must be greater than 0")
    return duration


def _validate_category(value):
    if value not in SERVICE_CATEGORIES:
        raise ValidationError(f"Category must be one of: {', '.join(SERVICE_CATEGORIES)}")
    return value


def _validate_price(value):
    price = to_decimal(value, "price", Decimal("0"))
    if price < 0:
        raise ValidationError("Price cannot be negative")
    return price


def _validate_max_washers(value):
    max_washers = to_int(value, "maxWashersPerService", DEFAULT_MAX_WASHERS)
    if max_washers < 1:
        raise ValidationError("Max washers per service must be at least 1")
    return max_washers


def create_service(actor: ActorContext, data) -> Service:
    authorize(actor, "manage_services")

    name = to_text(data.get("name"), "name")
    if not name:
        raise ValidationError("Service name is required")
    duration = _validate_duration(data.get("duration"))
    category = _validate_category(data.get("category"))
    price = _validate_price(data.get("price"))
    max_washers = _validate_max_washers(data.get("maxWashersPerService"))

    washer_pct = to_decimal(
        data.get("washerCommissionPercentage"), "washerCommissionPercentage", DEFAULT_WASHER_PERCENTAGE
    )
    company_pct = to_decimal(
        data.get("companyCommissionPercentage"), "companyCommissionPercentage", DEFAULT_COMPANY_PERCENTAGE
    )
    validate_commission_split(washer_pct, company_pct)
    _ensure_unique_name(name)

    service = Service(
        name=name,
        description=data.get("description"),
        price=price,
        duration=duration,
        category=category,
        washer_commission_percentage=washer_pct,
        company_commission_percentage=company_pct,
        max_washers_per_service=max_washers,
        commission_notes=data.get("commissionNotes"),
        is_active=to_bool(data.get("isActive"), True),
    )
    db.session.add(service)
    db.session.commit()
    current_app.logger.info(f"Service {service.id} ({service.name}) created by {actor.user_id}")
    return service


def list_services(actor: ActorContext, search=None, category=None, status=None):
    authorize(actor, "view_services")

    query = select(Service)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(func.lower(Service.name).like(pattern), func.lower(Service.description).like(pattern))
        )
    if category and category != "all":
        query = query.where(Service.category == _validate_category(category))
    if status == "active":
        query = query.where(Service.is_active.is_(True))
    elif status == "inactive":
        query = query.where(Service.is_active.is_(False))
    elif status not in (None, "", "all"):
        raise ValidationError("Status must be one of: active, inactive, all")

    return db.session.scalars(query.order_by(Service.category, Service.name)).all()


def get_service(actor: ActorContext, service_id) -> Service:
    authorize(actor, "view_services")
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")
    return service


def update_service(actor: ActorContext, service_id, data) -> Service:
    authorize(actor, "manage_services")
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")

    if "name" in data:
        name = to_text(data.get("name"), "name")
        if not name:
            raise ValidationError("Service name cannot be empty")
        _ensure_unique_name(name, exclude_id=service.id)
        service.name = name
    if "description" in data:
        service.description = data.get("description")
    if "price" in data:
        service.price = _validate_price(data.get("price"))
    if "duration" in data:
        service.duration = _validate_duration(data.get("duration"))
    if "category" in data:
        service.category = _validate_category(data.get("category"))
    if "maxWashersPerService" in data:
        service.max_washers_per_service = _validate_max_washers(data.get("maxWashersPerService"))
    if "commissionNotes" in data:
        service.commission_notes = data.get("commissionNotes")
    if "isActive" in data:
        service.is_active = to_bool(data.get("isActive"), service.is_active)

    if "washerCommissionPercentage" in data or "companyCommissionPercentage" in data:
        washer_pct = to_decimal(
            data.get("washerCommissionPercentage"),
            "washerCommissionPercentage",
            Decimal(str(service.washer_commission_percentage)),
        )
        company_pct = to_decimal(
            data.get("companyCommissionPercentage"),
            "companyCommissionPercentage",
            Decimal(str(service.company_commission_percentage)),
        )
        validate_commission_split(washer_pct, company_pct)
        service.washer_commission_percentage = washer_pct
        service.company_commission_percentage = company_pct

    db.session.commit()
    return service


def toggle_service(actor: ActorContext, service_id) -> Service:
    authorize(actor, "manage_services")
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")

    service.is_active = not service.is_active
    db.session.commit()
    return service


def delete_service(actor: ActorContext, service_id) -> None:
    """Hard delete; check-in lines keep their name/price snapshot."""
    authorize(actor, "manage_services")
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")

    db.session.execute(
        update(CheckInService).where(CheckInService.service_id == service.id).values(service_id=None)
    )
    db.session.delete(service)
    db.session.commit()
    current_app.logger.info(f"Service {service_id} deleted by {actor.user_id}")
