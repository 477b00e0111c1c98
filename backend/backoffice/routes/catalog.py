# Overview: Flask API routes for master data (customers, unit quantities, products, taxes).

"""
Master Data API Routes

DESIGN:
- One blueprint per resource: list, detail, create, update (partial PUT), delete
- Deletes are soft; the row disappears from lists and lookups but every
  transaction that used it keeps its frozen name
- Payload fields are whitelisted here; values are coerced in catalog_service

SECURITY:
- menu_* for lists, detail_* for single reads
- create_* / edit_* / delete_* for writes
"""

from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..permissions import (
    CREATE_CUSTOMER,
    CREATE_PRODUCT,
    CREATE_TAX,
    CREATE_UNIT_QUANTITY,
    DELETE_CUSTOMER,
    DELETE_PRODUCT,
    DELETE_TAX,
    DELETE_UNIT_QUANTITY,
    DETAIL_CUSTOMER,
    DETAIL_PRODUCT,
    DETAIL_TAX,
    DETAIL_UNIT_QUANTITY,
    EDIT_CUSTOMER,
    EDIT_PRODUCT,
    EDIT_TAX,
    EDIT_UNIT_QUANTITY,
    MENU_CUSTOMER,
    MENU_PRODUCT,
    MENU_TAX,
    MENU_UNIT_QUANTITY,
)
from ..responses import ok_response, paginated_response, parse_pagination
from ..services import catalog_service
from ..validation import PayloadPolicy, validate_payload


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
unit_quantities_bp = Blueprint("unit_quantities", __name__, url_prefix="/api/unit-quantities")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")
taxes_bp = Blueprint("taxes", __name__, url_prefix="/api/taxes")

CUSTOMER_POLICY = PayloadPolicy(
    writable_fields={"name", "email", "phone", "address", "remark"},
    required_on_create={"name"},
)
UNIT_QUANTITY_POLICY = PayloadPolicy(writable_fields={"name", "remark"}, required_on_create={"name"})
PRODUCT_POLICY = PayloadPolicy(
    writable_fields={"name", "description", "type", "remark"},
    required_on_create={"name", "type"},
)
TAX_POLICY = PayloadPolicy(writable_fields={"name", "value", "remark"}, required_on_create={"name", "value"})


# =============================================================================
# CUSTOMERS
# =============================================================================

@customers_bp.get("")
@require_auth
@require_permission(MENU_CUSTOMER)
def list_customers_route():
    """Query params: page, limit, search (name contains, case-insensitive)."""
    page, limit = parse_pagination(request.args)
    rows, total = catalog_service.list_customers(page=page, limit=limit, search=request.args.get("search"))
    return paginated_response([c.to_dict() for c in rows], page=page, limit=limit, total=total)


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission(DETAIL_CUSTOMER)
def get_customer_route(customer_id: int):
    customer = catalog_service.require_customer(customer_id)
    return ok_response(customer.to_dict(), message="Customer retrieved successfully")


@customers_bp.post("")
@require_auth
@require_permission(CREATE_CUSTOMER)
def create_customer_route():
    """
    Request body:
    {"name": "PT Maju Jaya", "email": null, "phone": null, "address": null, "remark": null}
    """
    data = validate_payload(payload=request.get_json(silent=True), policy=CUSTOMER_POLICY)
    customer = catalog_service.create_customer(
        name=data["name"],
        email=data.get("email"),
        phone=data.get("phone"),
        address=data.get("address"),
        remark=data.get("remark"),
        created_by=g.current_user.id,
    )
    return ok_response(customer.to_dict(), message="Customer created successfully", status=201)


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission(EDIT_CUSTOMER)
def update_customer_route(customer_id: int):
    patch = validate_payload(payload=request.get_json(silent=True), policy=CUSTOMER_POLICY, partial=True)
    customer = catalog_service.update_customer(customer_id, patch)
    return ok_response(customer.to_dict(), message="Customer updated successfully")


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission(DELETE_CUSTOMER)
def delete_customer_route(customer_id: int):
    catalog_service.delete_customer(customer_id, deleted_by=g.current_user.id)
    return ok_response(None, message="Customer deleted successfully")


# =============================================================================
# UNIT QUANTITIES
# =============================================================================

@unit_quantities_bp.get("")
@require_auth
@require_permission(MENU_UNIT_QUANTITY)
def list_unit_quantities_route():
    page, limit = parse_pagination(request.args)
    rows, total = catalog_service.list_unit_quantities(page=page, limit=limit, search=request.args.get("search"))
    return paginated_response([u.to_dict() for u in rows], page=page, limit=limit, total=total)


@unit_quantities_bp.get("/<int:unit_quantity_id>")
@require_auth
@require_permission(DETAIL_UNIT_QUANTITY)
def get_unit_quantity_route(unit_quantity_id: int):
    unit = catalog_service.require_unit_quantity(unit_quantity_id)
    return ok_response(unit.to_dict(), message="Unit quantity retrieved successfully")


@unit_quantities_bp.post("")
@require_auth
@require_permission(CREATE_UNIT_QUANTITY)
def create_unit_quantity_route():
    data = validate_payload(payload=request.get_json(silent=True), policy=UNIT_QUANTITY_POLICY)
    unit = catalog_service.create_unit_quantity(
        name=data["name"], remark=data.get("remark"), created_by=g.current_user.id
    )
    return ok_response(unit.to_dict(), message="Unit quantity created successfully", status=201)


@unit_quantities_bp.put("/<int:unit_quantity_id>")
@require_auth
@require_permission(EDIT_UNIT_QUANTITY)
def update_unit_quantity_route(unit_quantity_id: int):
    patch = validate_payload(payload=request.get_json(silent=True), policy=UNIT_QUANTITY_POLICY, partial=True)
    unit = catalog_service.update_unit_quantity(unit_quantity_id, patch)
    return ok_response(unit.to_dict(), message="Unit quantity updated successfully")


@unit_quantities_bp.delete("/<int:unit_quantity_id>")
@require_auth
@require_permission(DELETE_UNIT_QUANTITY)
def delete_unit_quantity_route(unit_quantity_id: int):
    catalog_service.delete_unit_quantity(unit_quantity_id, deleted_by=g.current_user.id)
    return ok_response(None, message="Unit quantity deleted successfully")


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
@require_auth
@require_permission(MENU_PRODUCT)
def list_products_route():
    """Query params: page, limit, search, type (SELLABLE, ASSET, UTILITY, PLACEHOLDER)."""
    page, limit = parse_pagination(request.args)
    rows, total = catalog_service.list_products(
        page=page,
        limit=limit,
        search=request.args.get("search"),
        product_type=request.args.get("type"),
    )
    return paginated_response([p.to_dict() for p in rows], page=page, limit=limit, total=total)


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission(DETAIL_PRODUCT)
def get_product_route(product_id: int):
    product = catalog_service.require_product(product_id)
    return ok_response(product.to_dict(), message="Product retrieved successfully")


@products_bp.post("")
@require_auth
@require_permission(CREATE_PRODUCT)
def create_product_route():
    """
    Request body:
    {"name": "Kopi Bubuk 250g", "type": "SELLABLE", "description": null, "remark": null}
    """
    data = validate_payload(payload=request.get_json(silent=True), policy=PRODUCT_POLICY)
    product = catalog_service.create_product(
        name=data["name"],
        description=data.get("description"),
        product_type=data["type"],
        remark=data.get("remark"),
        created_by=g.current_user.id,
    )
    return ok_response(product.to_dict(), message="Product created successfully", status=201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission(EDIT_PRODUCT)
def update_product_route(product_id: int):
    patch = validate_payload(payload=request.get_json(silent=True), policy=PRODUCT_POLICY, partial=True)
    product = catalog_service.update_product(product_id, patch)
    return ok_response(product.to_dict(), message="Product updated successfully")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission(DELETE_PRODUCT)
def delete_product_route(product_id: int):
    catalog_service.delete_product(product_id, deleted_by=g.current_user.id)
    return ok_response(None, message="Product deleted successfully")


# =============================================================================
# TAXES
# =============================================================================

@taxes_bp.get("")
@require_auth
@require_permission(MENU_TAX)
def list_taxes_route():
    page, limit = parse_pagination(request.args)
    rows, total = catalog_service.list_taxes(page=page, limit=limit, search=request.args.get("search"))
    return paginated_response([t.to_dict() for t in rows], page=page, limit=limit, total=total)


@taxes_bp.get("/<int:tax_id>")
@require_auth
@require_permission(DETAIL_TAX)
def get_tax_route(tax_id: int):
    tax = catalog_service.require_tax(tax_id)
    return ok_response(tax.to_dict(), message="Tax retrieved successfully")


@taxes_bp.post("")
@require_auth
@require_permission(CREATE_TAX)
def create_tax_route():
    """
    Request body:
    {"name": "VAT", "value": "11", "remark": null}

    Returns:
        201: Created tax
        400: value missing, negative or above 100
    """
    data = validate_payload(payload=request.get_json(silent=True), policy=TAX_POLICY)
    tax = catalog_service.create_tax(
        name=data["name"], value=data["value"], remark=data.get("remark"), created_by=g.current_user.id
    )
    return ok_response(tax.to_dict(), message="Tax created successfully", status=201)


@taxes_bp.put("/<int:tax_id>")
@require_auth
@require_permission(EDIT_TAX)
def update_tax_route(tax_id: int):
    """Partial update. Transactions already created keep their tax snapshot."""
    patch = validate_payload(payload=request.get_json(silent=True), policy=TAX_POLICY, partial=True)
    tax = catalog_service.update_tax(tax_id, patch)
    return ok_response(tax.to_dict(), message="Tax updated successfully")


@taxes_bp.delete("/<int:tax_id>")
@require_auth
@require_permission(DELETE_TAX)
def delete_tax_route(tax_id: int):
    catalog_service.delete_tax(tax_id, deleted_by=g.current_user.id)
    return ok_response(None, message="Tax deleted successfully")
