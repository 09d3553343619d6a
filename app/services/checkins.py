"""
Check-in lifecycle.

    pending -> in_progress -> completed -> paid
    pending | in_progress -> cancelled   (terminal)

Every edge is a named function here. ``apply_update`` maps the PATCH body used
by the dashboard onto exactly one of them.
"""

import secrets
from datetime import datetime, time
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, select

from app.errors import AuthorizationError, DuplicateCheckInWarning, NotFoundError, ValidationError
from app.extensions import db
from app.models import (
    PAYMENT_METHODS,
    CarWasherProfile,
    CheckIn,
    CheckInMaterial,
    CheckInService,
    Customer,
    Service,
    User,
    WasherTool,
)
from app.services.customers import normalize_plate
from app.services.milestones import record_new_achievements
from app.utils.auth_utils import CAR_WASHER, ActorContext, authorize
from app.utils.http_utils import iso, to_bool, to_decimal, to_int, to_text

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")
MATERIAL_TYPES = ("material", "supply")


def _day_bounds(day=None):
    day = day or datetime.now().date()
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def find_same_day_check_ins(license_plate, day=None):
    start, end = _day_bounds(day)
    query = (
        select(CheckIn)
        .where(
            CheckIn.license_plate == normalize_plate(license_plate),
            CheckIn.check_in_time >= start,
            CheckIn.check_in_time <= end,
        )
        .order_by(CheckIn.check_in_time)
    )
    return db.session.scalars(query).all()


def _duplicate_summary(check_in: CheckIn):
    return {
        "id": check_in.id,
        "licensePlate": check_in.license_plate,
        "status": check_in.status,
        "customerName": check_in.customer.name if check_in.customer else None,
        "checkInTime": iso(check_in.check_in_time),
    }


def check_duplicates(actor: ActorContext, license_plate):
    authorize(actor, "create_check_in")
    if not normalize_plate(license_plate):
        raise ValidationError("licensePlate is required")
    return [_duplicate_summary(c) for c in find_same_day_check_ins(license_plate)]


def _active_washer(washer_id) -> User:
    washer_id = to_int(washer_id, "workerId")
    user = db.session.get(User, washer_id) if washer_id is not None else None
    if not user or user.role != CAR_WASHER or not user.is_active:
        raise ValidationError(f"Washer {washer_id} not found or inactive")
    return user


def _build_lines(selected):
    if not selected or not isinstance(selected, list):
        raise ValidationError("At least one service must be selected")

    lines = []
    seen = set()
    for entry in selected:
        service_id = to_int(entry.get("serviceId"), "serviceId")
        service = db.session.get(Service, service_id) if service_id is not None else None
        if not service or not service.is_active:
            raise ValidationError(f"Service {service_id} not found or inactive")
        if service.id in seen:
            raise ValidationError(f"Service {service.name} was selected more than once")
        seen.add(service.id)

        if not entry.get("workerId"):
            raise ValidationError(f"Please assign a worker for service: {service.name}")
        worker = _active_washer(entry.get("workerId"))

        custom_price = to_decimal(entry.get("customPrice"), "customPrice")
        if custom_price is not None and custom_price <= 0:
            custom_price = None
        if Decimal(str(service.price)) == 0 and custom_price is None:
            raise ValidationError(f"Custom price is required for service: {service.name}")

        lines.append(
            CheckInService(
                service_id=service.id,
                worker_id=worker.id,
                service_name=service.name,
                price=custom_price if custom_price is not None else Decimal(str(service.price)),
                custom_price=custom_price,
                duration=service.duration,
                washer_commission_percentage=service.washer_commission_percentage,
                company_commission_percentage=service.company_commission_percentage,
            )
        )
    return lines


def create_check_in(actor: ActorContext, data) -> CheckIn:
    """
    Validate and insert a pending check-in.

    A plate already checked in today raises ``DuplicateCheckInWarning`` unless
    the caller sent ``acknowledgeDuplicate``; nothing is written in that case.
    """
    authorize(actor, "create_check_in")

    license_plate = normalize_plate(data.get("licensePlate"))
    vehicle_type = to_text(data.get("vehicleType"), "vehicleType")
    vehicle_color = to_text(data.get("vehicleColor"), "vehicleColor")
    if not license_plate or not vehicle_type or not vehicle_color:
        raise ValidationError("License plate, vehicle type and vehicle color are required")

    wash_type = data.get("washType")
    if wash_type not in ("instant", "delayed"):
        raise ValidationError("Wash type must be either instant or delayed")

    valuable_items = to_text(data.get("valuableItems"), "valuableItems")
    if not valuable_items:
        raise ValidationError("Please document any valuable items left in the vehicle")

    security_code = to_text(data.get("securityCode"), "securityCode") or None
    user_code = (
        to_text(data.get("userCode"), "userCode") or to_text(data.get("passcode"), "passcode") or None
    )
    check_in_process = to_text(data.get("checkInProcess"), "checkInProcess") or None
    if wash_type == "delayed":
        if not security_code:
            raise ValidationError("Security code is required for delayed wash")
        if not user_code:
            raise ValidationError("User code is required for delayed wash")
        if not check_in_process:
            raise ValidationError("Check-in process description is required for delayed wash")

    customer_id = to_int(data.get("customerId"), "customerId")
    if customer_id is not None and not db.session.get(Customer, customer_id):
        raise NotFoundError("Customer not found")

    lines = _build_lines(data.get("services"))

    assigned_washer_id = to_int(data.get("assignedWasherId"), "assignedWasherId")
    if assigned_washer_id is not None:
        _active_washer(assigned_washer_id)
    else:
        assigned_washer_id = lines[0].worker_id

    if not to_bool(data.get("acknowledgeDuplicate"), False):
        existing = find_same_day_check_ins(license_plate)
        if existing:
            raise DuplicateCheckInWarning(license_plate, [_duplicate_summary(c) for c in existing])

    check_in = CheckIn(
        customer_id=customer_id,
        license_plate=license_plate,
        vehicle_type=vehicle_type,
        vehicle_color=vehicle_color,
        vehicle_model=data.get("vehicleModel"),
        status="pending",
        wash_type=wash_type,
        valuable_items=valuable_items,
        security_code=security_code,
        user_code=user_code,
        check_in_process=check_in_process,
        remarks=data.get("remarks"),
        check_in_time=datetime.now(),
        assigned_washer_id=assigned_washer_id,
        assigned_admin_id=actor.user_id,
        estimated_duration=sum(line.duration for line in lines),
        total_price=sum((line.price for line in lines), Decimal("0")),
        payment_status="pending",
        washer_completion_status=False,
    )
    check_in.services = lines
    db.session.add(check_in)
    db.session.commit()
    current_app.logger.info(f"Check-in {check_in.id} created for {license_plate} by {actor.user_id}")
    return check_in


def _load(check_in_id) -> CheckIn:
    check_in_id = to_int(check_in_id, "checkInId")
    check_in = db.session.get(CheckIn, check_in_id) if check_in_id is not None else None
    if not check_in:
        raise NotFoundError("Check-in not found")
    return check_in


def _works_on(actor: ActorContext, check_in: CheckIn) -> bool:
    if check_in.assigned_washer_id == actor.user_id:
        return True
    return any(line.worker_id == actor.user_id for line in check_in.services)


def _ensure_access(actor: ActorContext, check_in: CheckIn):
    if actor.is_washer and not _works_on(actor, check_in):
        raise AuthorizationError("You are not assigned to this check-in")


def _require_status(check_in: CheckIn, allowed, target):
    if check_in.status not in allowed:
        raise ValidationError(f"Cannot change check-in status from {check_in.status} to {target}")


def get_check_in(actor: ActorContext, check_in_id) -> CheckIn:
    authorize(actor, "view_check_ins")
    check_in = _load(check_in_id)
    _ensure_access(actor, check_in)
    return check_in


def list_check_ins(
    actor: ActorContext,
    search=None,
    status=None,
    payment_status=None,
    washer_id=None,
    limit=None,
    sort="newest",
):
    authorize(actor, "view_check_ins")

    if actor.is_washer:
        washer_id = actor.user_id
    washer_id = to_int(washer_id, "washerId")

    query = select(CheckIn)
    if washer_id is not None:
        worked = select(CheckInService.check_in_id).where(CheckInService.worker_id == washer_id)
        query = query.where(or_(CheckIn.assigned_washer_id == washer_id, CheckIn.id.in_(worked)))
    if status and status != "all":
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        query = query.where(CheckIn.status.in_(statuses))
    if payment_status and payment_status != "all":
        query = query.where(CheckIn.payment_status == payment_status)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.outerjoin(Customer, Customer.id == CheckIn.customer_id).where(
            or_(
                CheckIn.license_plate.like(f"%{normalize_plate(search)}%"),
                func.lower(Customer.name).like(pattern),
                Customer.phone.like(f"%{search}%"),
                CheckIn.user_code == search.strip(),
            )
        )

    if sort == "oldest":
        query = query.order_by(CheckIn.check_in_time.asc(), CheckIn.id.asc())
    else:
        query = query.order_by(CheckIn.check_in_time.desc(), CheckIn.id.desc())

    limit = to_int(limit, "limit")
    if limit:
        query = query.limit(limit)
    return db.session.scalars(query).all()


def start(actor: ActorContext, check_in_id) -> CheckIn:
    authorize(actor, "start_check_in")
    check_in = _load(check_in_id)
    _ensure_access(actor, check_in)
    _require_status(check_in, ("pending",), "in_progress")

    check_in.status = "in_progress"
    db.session.commit()
    current_app.logger.info(f"Check-in {check_in.id} started by {actor.user_id}")
    return check_in


def passcode_required(check_in: CheckIn) -> bool:
    return check_in.wash_type != "instant" and bool(check_in.user_code)


def _verify_passcode(check_in: CheckIn, passcode):
    if not passcode_required(check_in):
        return
    if not passcode:
        raise ValidationError(
            "Passcode is required to mark check-in as completed for delayed wash customers"
        )
    supplied = str(passcode).strip().encode("utf-8")
    if not secrets.compare_digest(supplied, check_in.user_code.encode("utf-8")):
        raise ValidationError("Invalid passcode")


def commission_split(check_in: CheckIn):
    """Return ``(washer_income, company_income)`` summed over the service lines."""
    washer_income = Decimal("0")
    company_income = Decimal("0")
    for line in check_in.services:
        price = Decimal(str(line.price))
        washer_income += price * Decimal(str(line.washer_commission_percentage)) / HUNDRED
        company_income += price * Decimal(str(line.company_commission_percentage)) / HUNDRED
    return washer_income.quantize(CENTS), company_income.quantize(CENTS)


def complete(actor: ActorContext, check_in_id, passcode=None) -> CheckIn:
    authorize(actor, "complete_check_in")
    check_in = _load(check_in_id)
    _ensure_access(actor, check_in)
    _require_status(check_in, ("in_progress",), "completed")
    _verify_passcode(check_in, passcode)

    now = datetime.now()
    check_in.status = "completed"
    check_in.completed_time = now
    check_in.actual_duration = max(int((now - check_in.check_in_time).total_seconds() // 60), 0)
    check_in.washer_income, check_in.company_income = commission_split(check_in)
    db.session.commit()
    current_app.logger.info(f"Check-in {check_in.id} completed by {actor.user_id}")

    if check_in.customer_id:
        try:
            record_new_achievements(check_in.customer_id)
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(
                f"Milestone evaluation for customer {check_in.customer_id} failed: {e}"
            )
    return check_in


def record_payment(actor: ActorContext, check_in_id, payment_method) -> CheckIn:
    """
    completed -> paid. Credits each line's worker with that line's commission
    and bumps the customer's visit/spend accumulators in the same commit.
    """
    authorize(actor, "record_payment")
    check_in = _load(check_in_id)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Please select a payment method (cash, card or pos)")
    if check_in.payment_status == "paid":
        raise ValidationError("Check-in has already been paid")
    _require_status(check_in, ("completed",), "paid")

    for line in check_in.services:
        profile = db.session.scalar(
            select(CarWasherProfile).where(CarWasherProfile.user_id == line.worker_id)
        )
        if not profile:
            raise ValidationError(f"Washer profile not found for worker {line.worker_id}")
        earned = (
            Decimal(str(line.price)) * Decimal(str(line.washer_commission_percentage)) / HUNDRED
        ).quantize(CENTS)
        profile.total_earnings = Decimal(str(profile.total_earnings or 0)) + earned

    if check_in.customer:
        check_in.customer.total_visits = (check_in.customer.total_visits or 0) + 1
        check_in.customer.total_spent = Decimal(str(check_in.customer.total_spent or 0)) + Decimal(
            str(check_in.total_price)
        )

    check_in.status = "paid"
    check_in.payment_status = "paid"
    check_in.payment_method = payment_method
    check_in.paid_time = datetime.now()
    db.session.commit()
    current_app.logger.info(
        f"Check-in {check_in.id} paid via {payment_method}, recorded by {actor.user_id}"
    )
    return check_in


def cancel(actor: ActorContext, check_in_id, reason) -> CheckIn:
    authorize(actor, "cancel_check_in")
    check_in = _load(check_in_id)
    _require_status(check_in, ("pending", "in_progress"), "cancelled")
    reason = to_text(reason, "reason")
    if not reason:
        raise ValidationError("A reason is required to cancel a check-in")

    check_in.status = "cancelled"
    check_in.reason = reason
    db.session.commit()
    current_app.logger.info(f"Check-in {check_in.id} cancelled by {actor.user_id}: {reason}")
    return check_in


def _reassign(check_in: CheckIn, washer_id):
    washer = _active_washer(washer_id)
    previous = check_in.assigned_washer_id
    for line in check_in.services:
        if line.worker_id == previous:
            line.worker_id = washer.id
    check_in.assigned_washer_id = washer.id


def reassign(actor: ActorContext, check_in_id, washer_id) -> CheckIn:
    """Change the assigned washer of a pending check-in without touching its status."""
    authorize(actor, "assign_washer")
    check_in = _load(check_in_id)
    _require_status(check_in, ("pending",), "pending")
    _reassign(check_in, washer_id)
    db.session.commit()
    return check_in


def assign_and_start(actor: ActorContext, check_in_id, washer_id) -> CheckIn:
    authorize(actor, "assign_washer")
    authorize(actor, "start_check_in")
    check_in = _load(check_in_id)
    _require_status(check_in, ("pending",), "in_progress")
    _reassign(check_in, washer_id)
    check_in.status = "in_progress"
    db.session.commit()
    current_app.logger.info(
        f"Check-in {check_in.id} assigned to {check_in.assigned_washer_id} and started by {actor.user_id}"
    )
    return check_in


def washer_complete(actor: ActorContext, check_in_id) -> CheckIn:
    authorize(actor, "washer_complete")
    check_in = _load(check_in_id)
    _ensure_access(actor, check_in)
    if check_in.status != "in_progress":
        raise ValidationError("Only in-progress check-ins can be marked as done by the washer")

    check_in.washer_completion_status = True
    db.session.commit()
    return check_in


def apply_update(actor: ActorContext, check_in_id, data):
    """
    Dispatch a PATCH body to one transition.

    Returns ``(check_in, earnings_updated)``.
    """
    status = data.get("status")
    if data.get("assignedWasherId") is not None:
        if status == "in_progress":
            return assign_and_start(actor, check_in_id, data["assignedWasherId"]), False
        if status is None:
            return reassign(actor, check_in_id, data["assignedWasherId"]), False
        raise ValidationError("Washer reassignment can only be combined with status in_progress")

    if data.get("paymentStatus") == "paid" or status == "paid":
        return record_payment(actor, check_in_id, data.get("paymentMethod")), True
    if data.get("paymentStatus") not in (None, "paid"):
        raise ValidationError("Invalid payment status value")

    if status == "in_progress":
        return start(actor, check_in_id), False
    if status == "completed":
        return complete(actor, check_in_id, data.get("passcode")), False
    if status == "cancelled":
        return cancel(actor, check_in_id, data.get("reason")), False
    if status is not None:
        raise ValidationError("Invalid status value")
    raise ValidationError("No supported update supplied")


def assign_materials(actor: ActorContext, check_in_id, materials):
    """Record materials a washer used on a check-in, drawn from what they currently hold."""
    authorize(actor, "assign_materials")
    check_in = _load(check_in_id)
    _ensure_access(actor, check_in)
    if check_in.status in ("cancelled", "paid"):
        raise ValidationError(f"Cannot assign materials to a {check_in.status} check-in")
    if not materials or not isinstance(materials, list):
        raise ValidationError("At least one material is required")

    now = datetime.now()
    records = []
    for entry in materials:
        material_id = to_int(entry.get("materialId"), "materialId")
        quantity = to_int(entry.get("quantity"), "quantity")
        if quantity is None or quantity < 1:
            raise ValidationError("Material quantity must be at least 1")

        tool = db.session.get(WasherTool, material_id) if material_id is not None else None
        if (
            not tool
            or tool.washer_id != actor.user_id
            or tool.is_returned
            or tool.tool_type not in MATERIAL_TYPES
        ):
            raise ValidationError(f"Material {material_id} is not currently assigned to you")
        if quantity > tool.quantity:
            raise ValidationError(
                f"Insufficient quantity for {tool.tool_name}: {tool.quantity} available"
            )

        tool.quantity -= quantity
        if tool.quantity == 0:
            tool.is_returned = True
            tool.returned_date = now

        record = CheckInMaterial(
            check_in_id=check_in.id,
            washer_id=actor.user_id,
            material_id=tool.id,
            material_name=tool.tool_name,
            quantity_used=quantity,
            usage_date=now,
        )
        db.session.add(record)
        records.append(record)

    db.session.commit()
    return records


def list_materials(actor: ActorContext, check_in_id):
    authorize(actor, "view_check_ins")
    check_in = _load(check_in_id)
    _ensure_access(actor, check_in)
    return db.session.scalars(
        select(CheckInMaterial)
        .where(CheckInMaterial.check_in_id == check_in.id)
        .order_by(CheckInMaterial.usage_date, CheckInMaterial.id)
    ).all()
