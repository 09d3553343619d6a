"""Read-only rollups for the admin and washer landing pages, plus the Excel export."""

from datetime import datetime, time, timedelta
from decimal import Decimal
from io import BytesIO

import pandas as pd
from sqlalchemy import func, or_, select

from app.errors import ValidationError
from app.extensions import db
from app.models import (
    AdminProfile,
    Bonus,
    CheckIn,
    CheckInService,
    PaymentRequest,
    SalesTransaction,
    User,
)
from app.services.payments import available_earnings, deductions_for
from app.utils.auth_utils import CAR_WASHER, ActorContext, authorize
from app.utils.http_utils import iso, money, to_date, to_decimal
from app.utils.serializers import check_in_to_dict, payment_request_to_dict

HUNDRED = Decimal("100")
REPORT_SHEETS = ("checkIns", "paymentRequests", "bonuses")


def period_starts(now=None):
    now = now or datetime.now()
    today = datetime.combine(now.date(), time.min)
    return {
        "daily": today,
        "weekly": today - timedelta(days=today.weekday()),
        "monthly": today.replace(day=1),
    }


def scoped_admin_ids(actor: ActorContext):
    """
    None means unrestricted. Admins see check-ins created by any admin at their
    location, or only their own when they have no location.
    """
    if actor.is_super_admin:
        return None
    profile = db.session.scalar(select(AdminProfile).where(AdminProfile.user_id == actor.user_id))
    if not profile or profile.location_id is None:
        return [actor.user_id]
    ids = db.session.scalars(
        select(AdminProfile.user_id).where(AdminProfile.location_id == profile.location_id)
    ).all()
    return list(set(ids) | {actor.user_id})


def _scope(query, column, admin_ids):
    if admin_ids is None:
        return query
    return query.where(column.in_(admin_ids))


def _line_commission():
    return CheckInService.price * CheckInService.washer_commission_percentage / HUNDRED


def admin_dashboard(actor: ActorContext):
    authorize(actor, "view_admin_dashboard")
    admin_ids = scoped_admin_ids(actor)
    now = datetime.now()
    starts = period_starts(now)

    income = {}
    car_counts = {}
    for period, start in starts.items():
        wash = db.session.scalar(
            _scope(
                select(func.coalesce(func.sum(CheckIn.company_income), 0)).where(
                    CheckIn.payment_status == "paid", CheckIn.paid_time >= start
                ),
                CheckIn.assigned_admin_id,
                admin_ids,
            )
        )
        sales = db.session.scalar(
            _scope(
                select(func.coalesce(func.sum(SalesTransaction.total_amount), 0)).where(
                    SalesTransaction.status == "completed", SalesTransaction.created_at >= start
                ),
                SalesTransaction.admin_id,
                admin_ids,
            )
        )
        income[period] = {
            "carWashIncome": money(wash),
            "stockSalesIncome": money(sales),
            "total": money(Decimal(str(wash)) + Decimal(str(sales))),
        }
        car_counts[period] = db.session.scalar(
            _scope(
                select(func.count(CheckIn.id)).where(
                    CheckIn.check_in_time >= start, CheckIn.status != "cancelled"
                ),
                CheckIn.assigned_admin_id,
                admin_ids,
            )
        )

    pending_count, pending_amount = db.session.execute(
        _scope(
            select(func.count(CheckIn.id), func.coalesce(func.sum(CheckIn.total_price), 0)).where(
                CheckIn.check_in_time >= starts["daily"],
                CheckIn.payment_status == "pending",
                CheckIn.status != "cancelled",
            ),
            CheckIn.assigned_admin_id,
            admin_ids,
        )
    ).one()

    active_washers = db.session.scalar(
        select(func.count(User.id)).where(User.role == CAR_WASHER, User.is_active.is_(True))
    )

    earnings = func.sum(_line_commission())
    top_rows = db.session.execute(
        _scope(
            select(
                CheckInService.worker_id,
                User.name,
                earnings.label("earnings"),
                func.count(func.distinct(CheckIn.id)),
            )
            .join(CheckIn, CheckIn.id == CheckInService.check_in_id)
            .join(User, User.id == CheckInService.worker_id)
            .where(CheckIn.payment_status == "paid", CheckIn.paid_time >= now - timedelta(days=30))
            .group_by(CheckInService.worker_id, User.name)
            .order_by(earnings.desc())
            .limit(5),
            CheckIn.assigned_admin_id,
            admin_ids,
        )
    ).all()

    recent = db.session.scalars(
        _scope(
            select(CheckIn).order_by(CheckIn.check_in_time.desc(), CheckIn.id.desc()).limit(10),
            CheckIn.assigned_admin_id,
            admin_ids,
        )
    ).all()

    return {
        "income": income,
        "carCounts": car_counts,
        "pendingToday": {"count": pending_count, "amount": money(pending_amount)},
        "activeWashers": active_washers,
        "topWashers": [
            {"washerId": washer_id, "name": name, "earnings": money(total), "jobs": jobs}
            for washer_id, name, total, jobs in top_rows
        ],
        "recentCheckIns": [check_in_to_dict(c) for c in recent],
    }


def _washer_jobs(washer_id, start):
    worked = select(CheckInService.check_in_id).where(CheckInService.worker_id == washer_id)
    return db.session.scalar(
        select(func.count(CheckIn.id)).where(
            or_(CheckIn.assigned_washer_id == washer_id, CheckIn.id.in_(worked)),
            CheckIn.check_in_time >= start,
            CheckIn.status != "cancelled",
        )
    )


def _washer_earnings(washer_id, start):
    return db.session.scalar(
        select(func.coalesce(func.sum(_line_commission()), 0))
        .join(CheckIn, CheckIn.id == CheckInService.check_in_id)
        .where(
            CheckInService.worker_id == washer_id,
            CheckIn.payment_status == "paid",
            CheckIn.paid_time >= start,
        )
    )


def worker_dashboard(actor: ActorContext):
    authorize(actor, "view_worker_dashboard")
    starts = period_starts()
    total, paid_out, available = available_earnings(actor.user_id)
    pending = db.session.scalar(
        select(PaymentRequest).where(
            PaymentRequest.washer_id == actor.user_id, PaymentRequest.status == "pending"
        )
    )
    deductions = deductions_for(actor.user_id)

    return {
        "jobs": {
            "today": _washer_jobs(actor.user_id, starts["daily"]),
            "month": _washer_jobs(actor.user_id, starts["monthly"]),
        },
        "earnings": {
            "today": money(_washer_earnings(actor.user_id, starts["daily"])),
            "month": money(_washer_earnings(actor.user_id, starts["monthly"])),
            "total": money(total),
            "paidOut": money(paid_out),
            "available": money(available),
        },
        "pendingPaymentRequest": payment_request_to_dict(pending) if pending else None,
        "unreturnedItems": len(deductions["unreturnedItems"]),
        "totalDeductions": money(deductions["totalDeductions"]),
    }


def record_sale(actor: ActorContext, data) -> SalesTransaction:
    authorize(actor, "record_sale")
    amount = to_decimal(data.get("totalAmount"), "totalAmount")
    if amount is None or amount <= 0:
        raise ValidationError("Sale amount must be greater than 0")

    sale = SalesTransaction(
        admin_id=actor.user_id,
        description=data.get("description"),
        total_amount=amount,
        status="completed",
        created_at=datetime.now(),
    )
    db.session.add(sale)
    db.session.commit()
    return sale


def generate_report(actor: ActorContext, options):
    """Build an Excel workbook with the selected sheets; returns a BytesIO."""
    authorize(actor, "export_reports")
    start = to_date(options.get("startDate"), "startDate")
    end = to_date(options.get("endDate"), "endDate", end_of_day=True)
    selected = [sheet for sheet in REPORT_SHEETS if options.get(sheet)] or list(REPORT_SHEETS)
    admin_ids = scoped_admin_ids(actor)

    output = BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        if "checkIns" in selected:
            query = _scope(select(CheckIn), CheckIn.assigned_admin_id, admin_ids)
            if start:
                query = query.where(CheckIn.check_in_time >= start)
            if end:
                query = query.where(CheckIn.check_in_time <= end)
            rows = [
                (
                    c.id,
                    c.license_plate,
                    c.status,
                    c.payment_status,
                    c.payment_method,
                    money(c.total_price),
                    money(c.washer_income),
                    money(c.company_income),
                    iso(c.check_in_time),
                    iso(c.paid_time),
                )
                for c in db.session.scalars(query.order_by(CheckIn.check_in_time))
            ]
            df_check_ins = pd.DataFrame(
                rows,
                columns=[
                    "Check-in ID",
                    "License Plate",
                    "Status",
                    "Payment Status",
                    "Payment Method",
                    "Total Price",
                    "Washer Income",
                    "Company Income",
                    "Checked In",
                    "Paid At",
                ],
            )
            df_check_ins.to_excel(writer, sheet_name="Check-ins", index=False)

        if "paymentRequests" in selected:
            query = select(PaymentRequest)
            if start:
                query = query.where(PaymentRequest.created_at >= start)
            if end:
                query = query.where(PaymentRequest.created_at <= end)
            rows = [
                (
                    p.id,
                    p.washer_id,
                    money(p.amount),
                    money(p.material_deductions),
                    money(p.tool_deductions),
                    p.status,
                    iso(p.created_at),
                    iso(p.paid_at),
                )
                for p in db.session.scalars(query.order_by(PaymentRequest.created_at))
            ]
            df_requests = pd.DataFrame(
                rows,
                columns=[
                    "Request ID",
                    "Washer ID",
                    "Amount",
                    "Material Deductions",
                    "Tool Deductions",
                    "Status",
                    "Created At",
                    "Paid At",
                ],
            )
            df_requests.to_excel(writer, sheet_name="Payment Requests", index=False)

        if "bonuses" in selected:
            query = select(Bonus)
            if start:
                query = query.where(Bonus.created_at >= start)
            if end:
                query = query.where(Bonus.created_at <= end)
            rows = [
                (b.id, b.type, b.recipient_id, money(b.amount), b.status, b.reason, iso(b.created_at))
                for b in db.session.scalars(query.order_by(Bonus.created_at))
            ]
            df_bonuses = pd.DataFrame(
                rows,
                columns=["Bonus ID", "Type", "Recipient ID", "Amount", "Status", "Reason", "Created At"],
            )
            df_bonuses.to_excel(writer, sheet_name="Bonuses", index=False)

    output.seek(0)
    return output
