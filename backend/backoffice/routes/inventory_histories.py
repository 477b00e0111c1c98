# Overview: Flask API routes for inventory histories; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..permissions import DETAIL_INVENTORY, MANIPULATE_INVENTORY, MENU_INVENTORY
from ..responses import (
    ok_response,
    paginated_response,
    parse_date_range,
    parse_optional_int,
    parse_pagination,
)
from ..services import inventory_service
from ..validation import PayloadPolicy, coerce_interval, validate_payload


inventory_bp = Blueprint("inventory_histories", __name__, url_prefix="/api/inventory-histories")

MANIPULATE_POLICY = PayloadPolicy(writable_fields={"items", "remark"}, required_on_create={"items"})


@inventory_bp.post("")
@require_auth
@require_permission(MANIPULATE_INVENTORY)
def manipulate_inventory_route():
    """
    Append signed inventory movements.

    Request body:
    {
        "items": [{"productId": 1, "unitQuantityId": 1, "quantity": "-5", "remark": "damaged"}],
        "remark": "stock opname"  (optional, used for items without their own remark)
    }

    Returns:
        201: Created movements
        409: A movement would drive stock negative (nothing is written)
    """
    data = validate_payload(payload=request.get_json(silent=True), policy=MANIPULATE_POLICY)
    rows = inventory_service.manipulate_inventory(
        items=data["items"], remark=data.get("remark"), created_by=g.current_user.id
    )
    return ok_response([row.to_dict() for row in rows], message="Inventory updated", status=201)


@inventory_bp.get("")
@require_auth
@require_permission(MENU_INVENTORY)
def list_inventory_histories_route():
    """Query params: page, limit, productId, unitQuantityId, startDate, endDate."""
    page, limit = parse_pagination(request.args)
    start, end = parse_date_range(request.args)
    rows, total = inventory_service.list_inventory_histories(
        product_id=parse_optional_int(request.args, "productId"),
        unit_quantity_id=parse_optional_int(request.args, "unitQuantityId"),
        start=start,
        end=end,
        page=page,
        limit=limit,
    )
    return paginated_response([row.to_dict() for row in rows], page=page, limit=limit, total=total)


@inventory_bp.get("/summary")
@require_auth
@require_permission(MENU_INVENTORY)
def inventory_summary_route():
    summary = inventory_service.get_inventory_summary(parse_optional_int(request.args, "productId"))
    return ok_response(summary)


@inventory_bp.get("/product/<int:product_id>")
@require_auth
@require_permission(DETAIL_INVENTORY)
def inventory_time_series_route(product_id: int):
    """Cumulative stock curve. Query params: startDate, endDate, interval, unitQuantityId."""
    start, end = parse_date_range(request.args)
    return ok_response(
        inventory_service.get_inventory_time_series(
            product_id,
            start,
            end,
            coerce_interval(request.args.get("interval")),
            parse_optional_int(request.args, "unitQuantityId"),
        )
    )


@inventory_bp.get("/<int:history_id>")
@require_auth
@require_permission(DETAIL_INVENTORY)
def get_inventory_history_route(history_id: int):
    return ok_response(inventory_service.get_inventory_history(history_id).to_dict())
