from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import select

from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.extensions import db
from app.models import TOOL_TYPES, User, WasherTool
from app.utils.auth_utils import CAR_WASHER, ActorContext, authorize
from app.utils.http_utils import to_decimal, to_int, to_text


def assign_tool(actor: ActorContext, data) -> WasherTool:
    authorize(actor, "manage_tools")

    washer_id = to_int(data.get("washerId"), "washerId")
    washer = db.session.get(User, washer_id) if washer_id is not None else None
    if not washer or washer.role != CAR_WASHER:
        raise NotFoundError("Car washer not found")

    tool_name = to_text(data.get("toolName"), "toolName")
    if not tool_name:
        raise ValidationError("Tool name is required")
    tool_type = data.get("toolType", "tool")
    if tool_type not in TOOL_TYPES:
        raise ValidationError(f"Tool type must be one of: {', '.join(TOOL_TYPES)}")

    quantity = to_int(data.get("quantity"), "quantity", 1)
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    amount = to_decimal(data.get("amount"), "amount", Decimal("0"))
    if amount < 0:
        raise ValidationError("Amount cannot be negative")

    tool = WasherTool(
        washer_id=washer.id,
        tool_name=tool_name,
        tool_type=tool_type,
        quantity=quantity,
        amount=amount,
        assigned_date=datetime.now(),
        assigned_by=actor.user_id,
        is_returned=False,
        notes=data.get("notes"),
    )
    db.session.add(tool)
    db.session.commit()
    current_app.logger.info(f"{tool_type} '{tool_name}' x{quantity} assigned to washer {washer.id}")
    return tool


def return_tool(actor: ActorContext, tool_id, notes=None) -> WasherTool:
    authorize(actor, "manage_tools")
    tool = db.session.get(WasherTool, tool_id)
    if not tool:
        raise NotFoundError("Tool assignment not found")
    if tool.is_returned:
        raise ValidationError("Tool has already been returned")

    tool.is_returned = True
    tool.returned_date = datetime.now()
    if notes:
        tool.notes = notes
    db.session.commit()
    return tool


def list_tools(actor: ActorContext, washer_id=None, returned=None, tool_type=None):
    authorize(actor, "view_tools")
    washer_id = to_int(washer_id, "washerId")
    if actor.is_washer:
        if washer_id not in (None, actor.user_id):
            raise AuthorizationError("You can only view your own tools")
        washer_id = actor.user_id

    query = select(WasherTool)
    if washer_id is not None:
        query = query.where(WasherTool.washer_id == washer_id)
    if returned is not None:
        query = query.where(WasherTool.is_returned == returned)
    if tool_type:
        query = query.where(WasherTool.tool_type == tool_type)
    return db.session.scalars(query.order_by(WasherTool.assigned_date.desc(), WasherTool.id.desc())).all()
