# Overview: Flask API routes for the finance dashboard.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..permissions import DASHBOARD_FINANCE
from ..responses import ok_response, parse_date_range
from ..services import finance_dashboard_service


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


@finance_bp.get("/dashboard")
@require_auth
@require_permission(DASHBOARD_FINANCE)
def finance_dashboard_route():
    """
    Accrual vs cash position for an inclusive date range.

    Query params: startDate, endDate (omit both for all time).
    Empty ranges return all-zero blocks.
    """
    start, end = parse_date_range(request.args)
    dashboard = finance_dashboard_service.get_finance_dashboard(start, end)
    return ok_response(dashboard.to_dict())
