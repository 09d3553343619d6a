from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import checkins, dashboard, payments
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, unexpected_error
from app.utils.serializers import check_in_to_dict

worker_bp = Blueprint("worker", __name__, url_prefix="/api/worker")


@worker_bp.route("/check-ins", methods=["GET"])
@require_actor
def my_check_ins(actor):
    """
    GET /api/worker/check-ins
    Purpose: The calling washer's jobs, newest first.
    """
    try:
        rows = checkins.list_check_ins(
            actor,
            status=request.args.get("status"),
            payment_status=request.args.get("paymentStatus"),
            limit=request.args.get("limit"),
        )
        return jsonify({"success": True, "checkIns": [check_in_to_dict(c) for c in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list worker check-ins")


@worker_bp.route("/earnings", methods=["GET"])
@require_actor
def my_earnings(actor):
    """
    GET /api/worker/earnings
    Purpose: Lifetime earnings, amount already paid out and what is left to request.
    """
    try:
        return jsonify({"success": True, "data": payments.earnings_summary(actor)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "worker earnings")


@worker_bp.route("/dashboard", methods=["GET"])
@require_actor
def my_dashboard(actor):
    """
    GET /api/worker/dashboard
    Purpose: Job counts, earnings and outstanding deductions for the washer landing page.
    """
    try:
        return jsonify({"success": True, "data": dashboard.worker_dashboard(actor)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "worker dashboard")
