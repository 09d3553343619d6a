"""
Milestones, achievements and bonuses.

Two separate projections:

* ``list_qualifying_customers`` recomputes visits/spend live, so a customer
  whose numbers drop below a threshold disappears from it.
* ``CustomerMilestoneAchievement`` rows are a permanent ledger. They are only
  ever added (on check-in completion or an explicit evaluation) and stay
  claimable regardless of later corrections.
"""

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, select

from app.errors import NotFoundError, ValidationError
from app.extensions import db
from app.models import (
    BONUS_TYPES,
    MILESTONE_TYPES,
    Bonus,
    CheckIn,
    Customer,
    CustomerMilestoneAchievement,
    Expense,
    Milestone,
    User,
)
from app.utils.auth_utils import CAR_WASHER, ActorContext, authorize
from app.utils.http_utils import to_bool, to_date, to_decimal, to_int, to_text

OPERATORS = {
    ">=": lambda actual, target: actual >= target,
    "<=": lambda actual, target: actual <= target,
    "=": lambda actual, target: actual == target,
    ">": lambda actual, target: actual > target,
    "<": lambda actual, target: actual < target,
}
COUNTED_STATUSES = ("completed", "paid")
BONUS_TRANSITIONS = {"pending": "approved", "approved": "paid"}
CUSTOMER_BONUS_EXPENSE_CATEGORY = "customer_bonus"


def check_condition(actual, condition) -> bool:
    operator = (condition or {}).get("operator")
    if operator not in OPERATORS:
        return False
    target = Decimal(str(condition.get("value", 0)))
    return OPERATORS[operator](Decimal(str(actual)), target)


def _validate_condition(condition):
    if not isinstance(condition, dict):
        raise ValidationError("Condition must include an operator and a value")
    operator = condition.get("operator")
    if operator not in OPERATORS:
        raise ValidationError(f"Operator must be one of: {', '.join(OPERATORS)}")
    value = to_decimal(condition.get("value"), "condition value")
    if value is None or value < 0:
        raise ValidationError("Condition value must be a number greater than or equal to 0")
    return {"operator": operator, "value": float(value)}


def customer_metrics(customer_ids=None):
    """``{customer_id: (visits, spend)}`` from completed and paid check-ins."""
    query = (
        select(
            CheckIn.customer_id,
            func.count(CheckIn.id),
            func.coalesce(func.sum(CheckIn.total_price), 0),
        )
        .where(CheckIn.customer_id.is_not(None), CheckIn.status.in_(COUNTED_STATUSES))
        .group_by(CheckIn.customer_id)
    )
    if customer_ids is not None:
        query = query.where(CheckIn.customer_id.in_(customer_ids))
    return {
        customer_id: (visits, Decimal(str(spend)))
        for customer_id, visits, spend in db.session.execute(query).all()
    }


def actual_value(milestone: Milestone, metrics):
    visits, spend = metrics
    if milestone.type == "visits":
        return Decimal(visits)
    if milestone.type == "spending":
        return spend
    return None


# Milestone CRUD


def create_milestone(actor: ActorContext, data) -> Milestone:
    authorize(actor, "manage_milestones")

    name = to_text(data.get("name"), "name")
    if not name:
        raise ValidationError("Milestone name is required")
    milestone_type = data.get("type")
    if milestone_type not in MILESTONE_TYPES:
        raise ValidationError(f"Type must be one of: {', '.join(MILESTONE_TYPES)}")

    milestone = Milestone(
        name=name,
        description=data.get("description"),
        type=milestone_type,
        condition=_validate_condition(data.get("condition")),
        reward=data.get("reward"),
        is_active=to_bool(data.get("isActive"), True),
        created_by=actor.user_id,
    )
    db.session.add(milestone)
    db.session.commit()
    return milestone


def list_milestones(actor: ActorContext, is_active=None, milestone_type=None):
    authorize(actor, "view_milestones")
    query = select(Milestone)
    if is_active is not None:
        query = query.where(Milestone.is_active == is_active)
    if milestone_type:
        query = query.where(Milestone.type == milestone_type)
    return db.session.scalars(query.order_by(Milestone.created_at.desc(), Milestone.id.desc())).all()


def _load_milestone(milestone_id) -> Milestone:
    milestone = db.session.get(Milestone, milestone_id)
    if not milestone:
        raise NotFoundError("Milestone not found")
    return milestone


def update_milestone(actor: ActorContext, milestone_id, data) -> Milestone:
    authorize(actor, "manage_milestones")
    milestone = _load_milestone(milestone_id)

    if "name" in data:
        name = to_text(data.get("name"), "name")
        if not name:
            raise ValidationError("Milestone name cannot be empty")
        milestone.name = name
    if "description" in data:
        milestone.description = data.get("description")
    if "type" in data:
        if data["type"] not in MILESTONE_TYPES:
            raise ValidationError(f"Type must be one of: {', '.join(MILESTONE_TYPES)}")
        milestone.type = data["type"]
    if "condition" in data:
        milestone.condition = _validate_condition(data.get("condition"))
    if "reward" in data:
        milestone.reward = data.get("reward")
    if "isActive" in data:
        milestone.is_active = to_bool(data.get("isActive"), milestone.is_active)

    db.session.commit()
    return milestone


def delete_milestone(actor: ActorContext, milestone_id) -> bool:
    """Returns True when the row was removed, False when it was only deactivated."""
    authorize(actor, "manage_milestones")
    milestone = _load_milestone(milestone_id)

    has_achievements = db.session.scalar(
        select(func.count(CustomerMilestoneAchievement.id)).where(
            CustomerMilestoneAchievement.milestone_id == milestone.id
        )
    )
    if has_achievements:
        milestone.is_active = False
        db.session.commit()
        return False

    db.session.delete(milestone)
    db.session.commit()
    return True


# Achievements


def list_achievements(actor: ActorContext, reward_claimed=None, milestone_id=None, customer_id=None):
    authorize(actor, "view_milestones")
    query = select(CustomerMilestoneAchievement)
    if reward_claimed is not None:
        query = query.where(CustomerMilestoneAchievement.reward_claimed == reward_claimed)
    if milestone_id is not None:
        query = query.where(CustomerMilestoneAchievement.milestone_id == milestone_id)
    if customer_id is not None:
        query = query.where(CustomerMilestoneAchievement.customer_id == customer_id)
    return db.session.scalars(
        query.order_by(CustomerMilestoneAchievement.achieved_at.desc(), CustomerMilestoneAchievement.id.desc())
    ).all()


def list_qualifying_customers(actor: ActorContext, milestone_id):
    authorize(actor, "view_milestones")
    milestone = _load_milestone(milestone_id)
    if milestone.type == "custom":
        return milestone, []

    metrics = customer_metrics()
    achieved = {
        a.customer_id: a
        for a in db.session.scalars(
            select(CustomerMilestoneAchievement).where(
                CustomerMilestoneAchievement.milestone_id == milestone.id
            )
        )
    }

    qualifying = []
    for customer in db.session.scalars(select(Customer).order_by(Customer.name)):
        value = actual_value(milestone, metrics.get(customer.id, (0, Decimal("0"))))
        if not check_condition(value, milestone.condition):
            continue
        achievement = achieved.get(customer.id)
        qualifying.append(
            {
                "customerId": customer.id,
                "customerName": customer.name,
                "customerPhone": customer.phone,
                "actualValue": float(value),
                "achievementId": achievement.id if achievement else None,
                "rewardClaimed": bool(achievement.reward_claimed) if achievement else False,
            }
        )
    return milestone, qualifying


def record_new_achievements(customer_id):
    """Add ledger rows for every active milestone the customer newly satisfies."""
    milestones = db.session.scalars(
        select(Milestone).where(Milestone.is_active.is_(True), Milestone.type != "custom")
    ).all()
    if not milestones:
        return []

    already = set(
        db.session.scalars(
            select(CustomerMilestoneAchievement.milestone_id).where(
                CustomerMilestoneAchievement.customer_id == customer_id
            )
        )
    )
    metrics = customer_metrics([customer_id]).get(customer_id, (0, Decimal("0")))

    created = []
    for milestone in milestones:
        if milestone.id in already:
            continue
        value = actual_value(milestone, metrics)
        if check_condition(value, milestone.condition):
            achievement = CustomerMilestoneAchievement(
                customer_id=customer_id,
                milestone_id=milestone.id,
                achieved_at=datetime.now(),
                achieved_value=value,
                reward_claimed=False,
            )
            db.session.add(achievement)
            created.append(achievement)

    if created:
        db.session.commit()
        current_app.logger.info(
            f"Customer {customer_id} reached {len(created)} new milestone(s)"
        )
    return created


def evaluate_customer(actor: ActorContext, customer_id):
    authorize(actor, "manage_milestones")
    customer_id = to_int(customer_id, "customerId")
    if customer_id is None:
        raise ValidationError("customerId is required")
    if not db.session.get(Customer, customer_id):
        raise NotFoundError("Customer not found")
    return record_new_achievements(customer_id)


def claim_reward(actor: ActorContext, achievement_id, notes=None) -> CustomerMilestoneAchievement:
    authorize(actor, "claim_reward")
    achievement = db.session.get(CustomerMilestoneAchievement, achievement_id)
    if not achievement:
        raise NotFoundError("Achievement not found")
    if achievement.reward_claimed:
        raise ValidationError("Reward has already been claimed")

    achievement.reward_claimed = True
    achievement.claimed_at = datetime.now()
    achievement.claimed_by = actor.user_id
    if notes:
        achievement.notes = notes
    db.session.commit()
    return achievement


# Bonuses


def grant_bonus(actor: ActorContext, data) -> Bonus:
    """
    Insert a pending bonus. Customer bonuses also write the matching
    free-service expense; both rows land in the same commit.
    """
    authorize(actor, "grant_bonus")

    bonus_type = data.get("type", "customer")
    if bonus_type not in BONUS_TYPES:
        raise ValidationError(f"Bonus type must be one of: {', '.join(BONUS_TYPES)}")

    recipient_id = to_int(data.get("recipientId") or data.get("customerId"), "recipientId")
    if recipient_id is None:
        raise ValidationError("recipientId is required")
    if bonus_type == "customer":
        recipient = db.session.get(Customer, recipient_id)
        if not recipient:
            raise NotFoundError("Customer not found")
    else:
        recipient = db.session.get(User, recipient_id)
        if not recipient or recipient.role != CAR_WASHER:
            raise NotFoundError("Car washer not found")

    amount = to_decimal(data.get("amount"), "amount")
    if amount is None or amount <= 0:
        raise ValidationError("Bonus amount must be greater than 0")
    reason = to_text(data.get("reason"), "reason")
    if not reason:
        raise ValidationError("A reason is required for the bonus")

    milestone_id = to_int(data.get("milestoneId"), "milestoneId")
    if milestone_id is not None:
        _load_milestone(milestone_id)

    bonus = Bonus(
        type=bonus_type,
        recipient_id=recipient_id,
        amount=amount,
        reason=reason,
        milestone_id=milestone_id,
        status="pending",
        created_by=actor.user_id,
    )
    try:
        db.session.add(bonus)
        db.session.flush()
        if bonus_type == "customer":
            db.session.add(
                Expense(
                    category=CUSTOMER_BONUS_EXPENSE_CATEGORY,
                    description=f"Free service bonus for {recipient.name}: {reason}",
                    amount=amount,
                    expense_date=datetime.now(),
                    created_by=actor.user_id,
                    bonus_id=bonus.id,
                )
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"{bonus_type.title()} bonus {bonus.id} granted by {actor.user_id}")
    return bonus


def list_bonuses(actor: ActorContext, bonus_type=None, status=None, recipient_id=None):
    authorize(actor, "view_bonuses")
    query = select(Bonus)
    if bonus_type:
        query = query.where(Bonus.type == bonus_type)
    if status:
        query = query.where(Bonus.status == status)
    if recipient_id is not None:
        query = query.where(Bonus.recipient_id == recipient_id)
    return db.session.scalars(query.order_by(Bonus.created_at.desc(), Bonus.id.desc())).all()


def update_bonus_status(actor: ActorContext, bonus_id, status) -> Bonus:
    authorize(actor, "review_bonus")
    bonus = db.session.get(Bonus, bonus_id)
    if not bonus:
        raise NotFoundError("Bonus not found")
    if BONUS_TRANSITIONS.get(bonus.status) != status:
        raise ValidationError(f"Cannot move bonus from {bonus.status} to {status}")

    now = datetime.now()
    bonus.status = status
    if status == "approved":
        bonus.approved_by = actor.user_id
        bonus.approved_at = now
    else:
        bonus.paid_at = now
    db.session.commit()
    return bonus


def list_expenses(actor: ActorContext, category=None, start_date=None, end_date=None):
    authorize(actor, "view_expenses")
    start_date = to_date(start_date, "startDate")
    end_date = to_date(end_date, "endDate", end_of_day=True)
    query = select(Expense)
    if category:
        query = query.where(Expense.category == category)
    if start_date:
        query = query.where(Expense.expense_date >= start_date)
    if end_date:
        query = query.where(Expense.expense_date <= end_date)
    return db.session.scalars(query.order_by(Expense.expense_date.desc(), Expense.id.desc())).all()
