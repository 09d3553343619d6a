from sqlalchemy import func, or_, select

from app.errors import NotFoundError, ValidationError
from app.extensions import db
from app.models import Customer, Vehicle
from app.utils.auth_utils import ActorContext, authorize
from app.utils.http_utils import to_bool, to_int, to_text


def normalize_plate(plate):
    return to_text(plate, "licensePlate").upper()


def _validate_vehicles(entries):
    if not entries:
        return []
    if not isinstance(entries, list):
        raise ValidationError("vehicles must be a list")

    vehicles = []
    for index, entry in enumerate(entries, start=1):
        plate = normalize_plate(entry.get("license_plate"))
        vehicle_type = to_text(entry.get("type"), "type")
        color = to_text(entry.get("color"), "color")
        if not plate or not vehicle_type or not color:
            raise ValidationError(f"Vehicle #{index} requires license_plate, type and color")
        vehicles.append(
            Vehicle(
                license_plate=plate,
                vehicle_type=vehicle_type,
                model=entry.get("model"),
                color=color,
                is_primary=bool(to_bool(entry.get("is_primary"), False)),
            )
        )

    primaries = [v for v in vehicles if v.is_primary]
    if len(primaries) > 1:
        raise ValidationError("Only one vehicle can be marked as primary")
    if not primaries:
        vehicles[0].is_primary = True
    return vehicles


def create_customer(actor: ActorContext, data) -> Customer:
    authorize(actor, "manage_customers")

    name = to_text(data.get("name"), "name")
    phone = to_text(data.get("phone"), "phone")
    if not name or not phone:
        raise ValidationError("Customer name and phone are required")

    email = to_text(data.get("email"), "email").lower() or None
    if email and "@" not in email:
        raise ValidationError("Invalid email address")

    customer = Customer(
        name=name,
        phone=phone,
        email=email,
        is_registered=True,
        total_visits=0,
        total_spent=0,
    )
    customer.vehicles = _validate_vehicles(data.get("vehicles"))
    db.session.add(customer)
    db.session.commit()
    return customer


def list_customers(actor: ActorContext, search=None, limit=None):
    authorize(actor, "manage_customers")

    query = select(Customer)
    if search:
        pattern = f"%{search.lower()}%"
        plate_matches = select(Vehicle.customer_id).where(
            Vehicle.license_plate.like(f"%{normalize_plate(search)}%")
        )
        query = query.where(
            or_(
                func.lower(Customer.name).like(pattern),
                Customer.phone.like(f"%{search}%"),
                func.lower(Customer.email).like(pattern),
                Customer.id.in_(plate_matches),
            )
        )
    query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
    limit = to_int(limit, "limit")
    if limit:
        query = query.limit(limit)
    return db.session.scalars(query).all()


def get_customer(actor: ActorContext, customer_id) -> Customer:
    authorize(actor, "manage_customers")
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer
