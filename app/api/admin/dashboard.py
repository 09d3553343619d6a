from datetime import datetime

from flask import Blueprint, jsonify, send_file

from app.errors import CarWashError
from app.services import dashboard
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, unexpected_error
from app.utils.serializers import sale_to_dict

dashboard_bp = Blueprint("admin_dashboard", __name__, url_prefix="/api/admin")


@dashboard_bp.route("/dashboard", methods=["GET"])
@require_actor
def admin_dashboard(actor):
    """
    Income, car counts and washer activity for the admin landing page
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    responses:
      200:
        description: Daily, weekly and monthly rollups scoped to the caller's location
      403:
        description: Caller is not an admin
    """
    try:
        return jsonify({"success": True, "data": dashboard.admin_dashboard(actor)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "admin dashboard")


@dashboard_bp.route("/dashboard/reports/generate", methods=["POST"])
@require_actor
def generate_report(actor):
    """
    Download an Excel report
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            startDate:
              type: string
              format: date
            endDate:
              type: string
              format: date
            checkIns:
              type: boolean
            paymentRequests:
              type: boolean
            bonuses:
              type: boolean
    produces:
      - application/vnd.openxmlformats-officedocument.spreadsheetml.sheet
    responses:
      200:
        description: Workbook with one sheet per selected section (all when none selected)
      400:
        description: Invalid date
    """
    try:
        output = dashboard.generate_report(actor, get_json_body())
        filename = f"carwash_report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
        return send_file(
            output,
            as_attachment=True,
            download_name=filename,
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "generate report")


@dashboard_bp.route("/sales", methods=["POST"])
@require_actor
def record_sale(actor):
    try:
        sale = dashboard.record_sale(actor, get_json_body())
        return jsonify({"success": True, "sale": sale_to_dict(sale)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "record sale")
