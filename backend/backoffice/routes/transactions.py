# Overview: Flask API routes for transactions; parses input and returns JSON responses.

"""
Transaction API Routes

DESIGN:
- POST prices the transaction server-side; clients never send totals
- Transactions are immutable; there is no PUT/DELETE
- Report endpoints accept startDate/endDate (inclusive) and interval

SECURITY:
- create_transaction permission required for creation
- menu_transaction / detail_transaction for reads
- dashboard_transaction for reports
"""

from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..permissions import (
    CREATE_TRANSACTION,
    DASHBOARD_TRANSACTION,
    DETAIL_TRANSACTION,
    MENU_TRANSACTION,
)
from ..responses import (
    ok_response,
    paginated_response,
    parse_date_range,
    parse_optional_int,
    parse_pagination,
)
from ..services import transaction_service
from ..validation import coerce_interval


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


# =============================================================================
# TRANSACTION CREATION
# =============================================================================

@transactions_bp.post("")
@require_auth
@require_permission(CREATE_TRANSACTION)
def create_transaction_route():
    """
    Create a SELL or BUY transaction.

    Request body:
    {
        "type": "SELL",
        "customerId": 3,  (optional)
        "items": [
            {"productId": 1, "unitQuantityId": 1, "quantity": "2", "pricePerUnit": "50.00", "remark": null}
        ],
        "discounts": [
            {"type": "PERCENTAGE", "percentage": "10"},
            {"type": "FIXED", "amount": "5.00", "transactionItemIndex": 0}
        ],
        "taxIds": [1],
        "remark": "...",  (optional)
        "fileId": "..."  (optional)
    }

    Returns:
        201: Transaction with frozen totals
        400: Invalid input / invalid discount
        404: Unknown product, unit, tax or customer
        409: Insufficient stock (SELL)
    """
    transaction = transaction_service.create_transaction(
        request.get_json(silent=True), created_by=g.current_user.id
    )
    return ok_response(transaction.to_dict(), message="Transaction created", status=201)


# =============================================================================
# TRANSACTION QUERIES
# =============================================================================

@transactions_bp.get("")
@require_auth
@require_permission(MENU_TRANSACTION)
def list_transactions_route():
    """Query params: page, limit, type, status, customerId, startDate, endDate."""
    page, limit = parse_pagination(request.args)
    start, end = parse_date_range(request.args)
    rows, total = transaction_service.list_transactions(
        transaction_type=request.args.get("type"),
        status=request.args.get("status"),
        customer_id=parse_optional_int(request.args, "customerId"),
        start=start,
        end=end,
        page=page,
        limit=limit,
    )
    return paginated_response([t.to_dict() for t in rows], page=page, limit=limit, total=total)


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_permission(DETAIL_TRANSACTION)
def get_transaction_route(transaction_id: int):
    transaction = transaction_service.get_transaction(transaction_id)
    return ok_response(transaction.to_dict())


# =============================================================================
# REPORTS
# =============================================================================

@transactions_bp.get("/summary")
@require_auth
@require_permission(DASHBOARD_TRANSACTION)
def transaction_summary_route():
    start, end = parse_date_range(request.args)
    return ok_response(transaction_service.get_transaction_summary(start, end))


@transactions_bp.get("/time-series")
@require_auth
@require_permission(DASHBOARD_TRANSACTION)
def transaction_time_series_route():
    start, end = parse_date_range(request.args)
    interval = coerce_interval(request.args.get("interval"))
    return ok_response(transaction_service.get_transaction_time_series(start, end, interval))


@transactions_bp.get("/product-summary")
@require_auth
@require_permission(DASHBOARD_TRANSACTION)
def product_summary_route():
    start, end = parse_date_range(request.args)
    return ok_response(
        transaction_service.get_product_transaction_summary(
            parse_optional_int(request.args, "productId"), start, end
        )
    )


@transactions_bp.get("/product/<int:product_id>")
@require_auth
@require_permission(DASHBOARD_TRANSACTION)
def product_report_route(product_id: int):
    """Summary plus revenue/expenses time series for one product."""
    start, end = parse_date_range(request.args)
    interval = coerce_interval(request.args.get("interval"))
    return ok_response(
        transaction_service.get_product_transaction_report(product_id, start, end, interval)
    )
