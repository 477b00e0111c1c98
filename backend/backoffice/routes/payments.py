# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment API Routes

DESIGN:
- Record payments against transactions (split and partial payments supported)
- Standalone payments (no transactionId) record cash that moved on its own
- Payments are immutable; refunds are payments in the opposite direction
- Dashboard rolls payments up per customer and per time bucket

SECURITY:
- create_payment permission required for recording payments
- dashboard_payment required for the dashboard
"""

from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..permissions import CREATE_PAYMENT, DASHBOARD_PAYMENT, DETAIL_PAYMENT, MENU_PAYMENT
from ..responses import (
    ok_response,
    paginated_response,
    parse_date_range,
    parse_optional_int,
    parse_pagination,
)
from ..services import payment_dashboard_service, payment_service
from ..validation import coerce_interval


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("")
@require_auth
@require_permission(CREATE_PAYMENT)
def create_payment_route():
    """
    Record a payment.

    Request body:
    {
        "transactionId": 123,  (optional)
        "type": "CASH",        CASH | PAPER | CARD | QRIS | TRANSFER
        "direction": "INFLOW", INFLOW | OUTFLOW
        "amount": "50.00",
        "details": [{"identifier": "cardRef", "value": "AUTH-12345"}],  (optional)
        "remark": "...",  (optional)
        "fileId": "..."   (optional)
    }

    Returns:
        201: {payment, settlement}; settlement is null for standalone payments
        400: Invalid input or payment exceeds remaining balance
        404: Transaction not found
        409: Concurrent payment on the same transaction
    """
    payment, settlement = payment_service.create_payment(
        request.get_json(silent=True), created_by=g.current_user.id
    )
    return ok_response(
        {"payment": payment.to_dict(), "settlement": settlement},
        message="Payment recorded",
        status=201,
    )


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_auth
@require_permission(MENU_PAYMENT)
def list_payments_route():
    """Query params: page, limit, type, direction, transactionId, startDate, endDate."""
    page, limit = parse_pagination(request.args)
    start, end = parse_date_range(request.args)
    rows, total = payment_service.list_payments(
        payment_type=request.args.get("type"),
        direction=request.args.get("direction"),
        transaction_id=parse_optional_int(request.args, "transactionId"),
        start=start,
        end=end,
        page=page,
        limit=limit,
    )
    return paginated_response([p.to_dict() for p in rows], page=page, limit=limit, total=total)


@payments_bp.get("/dashboard")
@require_auth
@require_permission(DASHBOARD_PAYMENT)
def payment_dashboard_route():
    """Per-customer payable/receivable and per-bucket history. Query params: startDate, endDate, interval."""
    start, end = parse_date_range(request.args)
    interval = coerce_interval(request.args.get("interval"))
    dashboard = payment_dashboard_service.get_payment_dashboard(start, end, interval)
    return ok_response(dashboard.to_dict())


@payments_bp.get("/<int:payment_id>")
@require_auth
@require_permission(DETAIL_PAYMENT)
def get_payment_route(payment_id: int):
    payment = payment_service.get_payment(payment_id)
    data = payment.to_dict()
    if payment.transaction is not None:
        data["settlement"] = payment_service.get_settlement_summary(payment.transaction)
    return ok_response(data)
