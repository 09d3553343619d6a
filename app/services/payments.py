"""
Payment requests and the deduction calculation behind them.

A washer's claimable balance is their accumulated commission minus everything
already approved or paid out. Unreturned tools and materials are a liability:
while any are outstanding no request can be created at all.
"""

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, select

from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import CarWasherProfile, PaymentRequest, User, WasherTool
from app.services.email_service import EmailService
from app.utils.auth_utils import CAR_WASHER, ActorContext, authorize
from app.utils.http_utils import money, to_decimal, to_int

ZERO = Decimal("0")
MATERIAL_TYPES = ("material", "supply")
SETTLED_STATUSES = ("approved", "paid")
REVIEW_ACTIONS = {"approve": "approved", "reject": "rejected", "pay": "paid"}
ALLOWED_REVIEWS = {
    "pending": ("approved", "rejected"),
    "approved": ("paid",),
}


def _washer(washer_id) -> User:
    washer_id = to_int(washer_id, "washerId")
    if washer_id is None:
        raise ValidationError("washerId is required")
    washer = db.session.get(User, washer_id)
    if not washer or washer.role != CAR_WASHER:
        raise NotFoundError("Washer not found")
    return washer


def _resolve_washer_id(actor: ActorContext, washer_id):
    if actor.is_washer:
        if washer_id not in (None, "", actor.user_id, str(actor.user_id)):
            raise AuthorizationError("You can only access your own payment information")
        return actor.user_id
    return washer_id


def unreturned_items(washer_id):
    return db.session.scalars(
        select(WasherTool)
        .where(WasherTool.washer_id == washer_id, WasherTool.is_returned.is_(False))
        .order_by(WasherTool.assigned_date)
    ).all()


def deductions_for(washer_id):
    """Sum unreturned rows into material and tool liabilities."""
    items = unreturned_items(washer_id)
    material = ZERO
    tool = ZERO
    for item in items:
        value = Decimal(str(item.amount or 0)) * (item.quantity or 1)
        if item.tool_type in MATERIAL_TYPES:
            material += value
        else:
            tool += value
    return {
        "materialDeductions": material,
        "toolDeductions": tool,
        "totalDeductions": material + tool,
        "unreturnedItems": items,
        "hasUnreturnedTools": bool(items),
    }


def calculate_deductions(actor: ActorContext, washer_id):
    authorize(actor, "calculate_deductions")
    washer = _washer(_resolve_washer_id(actor, washer_id))
    return deductions_for(washer.id)


def available_earnings(washer_id):
    profile = db.session.scalar(select(CarWasherProfile).where(CarWasherProfile.user_id == washer_id))
    if not profile:
        raise NotFoundError("Washer profile not found")

    settled = db.session.scalar(
        select(
            func.coalesce(
                func.sum(
                    PaymentRequest.amount
                    + PaymentRequest.material_deductions
                    + PaymentRequest.tool_deductions
                ),
                0,
            )
        ).where(PaymentRequest.washer_id == washer_id, PaymentRequest.status.in_(SETTLED_STATUSES))
    )
    total = Decimal(str(profile.total_earnings or 0))
    return total, Decimal(str(settled or 0)), total - Decimal(str(settled or 0))


def earnings_summary(actor: ActorContext, washer_id=None):
    authorize(actor, "view_payment_requests")
    washer = _washer(_resolve_washer_id(actor, washer_id))
    total, settled, available = available_earnings(washer.id)
    return {
        "washerId": washer.id,
        "totalEarnings": money(total),
        "paidOut": money(settled),
        "availableEarnings": money(available),
    }


def create_payment_request(actor: ActorContext, data) -> PaymentRequest:
    authorize(actor, "request_payment")
    washer = _washer(_resolve_washer_id(actor, data.get("washerId")))

    requested = to_decimal(data.get("requestedAmount", data.get("amount")), "requestedAmount")
    if requested is None:
        raise ValidationError("Missing required fields: washerId and requestedAmount")
    if requested <= 0:
        raise ValidationError("Requested amount must be greater than 0")

    material = to_decimal(data.get("materialDeductions"), "materialDeductions", ZERO)
    tool = to_decimal(data.get("toolDeductions"), "toolDeductions", ZERO)
    if material < 0 or tool < 0:
        raise ValidationError("Deductions cannot be negative")

    if deductions_for(washer.id)["hasUnreturnedTools"]:
        raise ValidationError(
            "You have unreturned tools or materials. Please return all assigned tools "
            "before requesting a payment."
        )

    pending = db.session.scalar(
        select(PaymentRequest).where(
            PaymentRequest.washer_id == washer.id, PaymentRequest.status == "pending"
        )
    )
    if pending:
        raise ConflictError(
            "Cannot create new payment request. Washer already has a pending payment request."
        )

    _, _, available = available_earnings(washer.id)
    total_requested = requested + material + tool
    if total_requested > available:
        raise ValidationError(
            f"Requested amount ({money(total_requested):,.2f}) exceeds available earnings "
            f"({money(available):,.2f})"
        )

    payment_request = PaymentRequest(
        washer_id=washer.id,
        total_earnings=available,
        material_deductions=material,
        tool_deductions=tool,
        amount=requested,
        status="pending",
        notes=data.get("notes"),
    )
    db.session.add(payment_request)
    db.session.commit()
    current_app.logger.info(
        f"Payment request {payment_request.id} for {requested} created by washer {washer.id}"
    )
    return payment_request


def _load(request_id) -> PaymentRequest:
    payment_request = db.session.get(PaymentRequest, request_id)
    if not payment_request:
        raise NotFoundError("Payment request not found")
    return payment_request


def get_payment_request(actor: ActorContext, request_id) -> PaymentRequest:
    authorize(actor, "view_payment_requests")
    payment_request = _load(request_id)
    if actor.is_washer and payment_request.washer_id != actor.user_id:
        raise AuthorizationError("You can only access your own payment requests")
    return payment_request


def list_payment_requests(actor: ActorContext, status=None, washer_id=None):
    authorize(actor, "view_payment_requests")
    washer_id = to_int(_resolve_washer_id(actor, washer_id), "washerId")

    query = select(PaymentRequest)
    if washer_id is not None:
        query = query.where(PaymentRequest.washer_id == washer_id)
    if status and status != "all":
        query = query.where(PaymentRequest.status == status)
    return db.session.scalars(
        query.order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
    ).all()


def cancel_payment_request(actor: ActorContext, request_id) -> None:
    authorize(actor, "cancel_payment_request")
    payment_request = _load(request_id)
    if payment_request.washer_id != actor.user_id:
        raise AuthorizationError("You can only cancel your own payment requests")
    if payment_request.status != "pending":
        raise ValidationError("Only pending requests can be cancelled")

    db.session.delete(payment_request)
    db.session.commit()


def review_payment_request(actor: ActorContext, request_id, action, notes=None) -> PaymentRequest:
    authorize(actor, "review_payment_request")
    target = REVIEW_ACTIONS.get(action, action)
    if target not in REVIEW_ACTIONS.values():
        raise ValidationError("Invalid status")

    payment_request = _load(request_id)
    if target not in ALLOWED_REVIEWS.get(payment_request.status, ()):
        raise ValidationError(
            f"Cannot change payment request from {payment_request.status} to {target}"
        )

    now = datetime.now()
    payment_request.status = target
    payment_request.admin_id = actor.user_id
    if target in ("approved", "rejected"):
        payment_request.approval_date = now
    if target == "paid":
        payment_request.paid_at = now
    if notes:
        payment_request.admin_notes = notes
    db.session.commit()
    current_app.logger.info(
        f"Payment request {payment_request.id} marked {target} by {actor.user_id}"
    )

    washer = payment_request.washer
    try:
        result = EmailService().send_payment_request_update(
            washer.email, washer.name, money(payment_request.amount), target, notes
        )
    except Exception as e:
        result = {"success": False, "error": str(e)}
    if not result.get("success"):
        current_app.logger.warning(
            f"Payment request {payment_request.id} notification failed: {result.get('error')}"
        )
    return payment_request
