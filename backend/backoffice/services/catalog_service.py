# Overview: Service-layer lookups and CRUD for master data (users, customers, units, products, taxes).

"""
Master Data Service

DESIGN:
- Customers, unit quantities, products and taxes are soft-deleted only.
  Transactions, movements and tax snapshots keep their denormalized names,
  so deleting a row never rewrites history.
- A soft-deleted row is invisible: lookups raise NotFoundError, lists skip it,
  and it can no longer be updated or referenced by new records.
- Routes strip unknown fields with a PayloadPolicy; every value is coerced
  here, so the CLI and the API share the same rules.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Customer, Product, Tax, UnitQuantity, User
from ..models.catalog import PRODUCT_TYPES, VALID_ROLES
from ..money import HUNDRED
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, coerce_choice, coerce_decimal, coerce_text


def _require_live(model, row_id: int, label: str, field: str | None = None):
    """Load a non-deleted row or raise NotFoundError. Soft-deleted rows cannot be used by new records."""
    row = db.session.get(model, row_id)
    if row is None or row.deleted_at is not None:
        raise NotFoundError(f"{label} {row_id} not found", field=field)
    return row


def require_product(product_id: int, *, field: str | None = None) -> Product:
    return _require_live(Product, product_id, "Product", field)


def require_unit_quantity(unit_quantity_id: int, *, field: str | None = None) -> UnitQuantity:
    return _require_live(UnitQuantity, unit_quantity_id, "Unit quantity", field)


def require_tax(tax_id: int, *, field: str | None = None) -> Tax:
    return _require_live(Tax, tax_id, "Tax", field)


def require_customer(customer_id: int, *, field: str | None = None) -> Customer:
    return _require_live(Customer, customer_id, "Customer", field)


def get_active_user(user_id: int) -> User | None:
    user = db.session.get(User, user_id)
    if user is None or user.deleted_at is not None or not user.is_active:
        return None
    return user


# =============================================================================
# FIELD COERCION
# =============================================================================

def _coerce_name(value) -> str:
    name = coerce_text(value, field="name", max_length=255)
    if not name:
        raise ValidationError("name is required", field="name")
    return name


def _coerce_tax_value(value) -> Decimal:
    # percentage with up to 4 places, 0..100
    return coerce_decimal(value, field="value", places=4, maximum=HUNDRED)


CUSTOMER_FIELDS = {
    "name": _coerce_name,
    "email": lambda v: coerce_text(v, field="email", max_length=255),
    "phone": lambda v: coerce_text(v, field="phone", max_length=64),
    "address": lambda v: coerce_text(v, field="address"),
    "remark": lambda v: coerce_text(v, field="remark"),
}

UNIT_QUANTITY_FIELDS = {
    "name": _coerce_name,
    "remark": lambda v: coerce_text(v, field="remark"),
}

PRODUCT_FIELDS = {
    "name": _coerce_name,
    "description": lambda v: coerce_text(v, field="description"),
    "type": lambda v: coerce_choice(v, field="type", choices=PRODUCT_TYPES),
    "remark": lambda v: coerce_text(v, field="remark"),
}

TAX_FIELDS = {
    "name": _coerce_name,
    "value": _coerce_tax_value,
    "remark": lambda v: coerce_text(v, field="remark"),
}


def _clean(fields: dict, values: dict) -> dict:
    return {key: fields[key](value) for key, value in values.items() if key in fields}


def _apply_patch(row, patch: dict) -> None:
    for key, value in patch.items():
        setattr(row, key, value)


# =============================================================================
# CREATE (API, CLI and tests)
# =============================================================================

def create_user(*, name: str, email: str, role: str) -> User:
    role = coerce_choice(role, field="role", choices=VALID_ROLES)
    email = coerce_text(email, field="email", max_length=255)
    if not email:
        raise ValidationError("email is required", field="email")
    if db.session.query(User).filter_by(email=email).first():
        raise ValidationError(f"User with email {email} already exists", field="email")

    user = User(name=_coerce_name(name), email=email, role=role, is_active=True, created_at=utcnow())
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("User created id=%s role=%s", user.id, role)
    return user


def create_customer(*, name: str, email: str | None = None, phone: str | None = None,
                    address: str | None = None, remark: str | None = None,
                    created_by: int | None = None) -> Customer:
    fields = _clean(CUSTOMER_FIELDS, {"name": name, "email": email, "phone": phone,
                                      "address": address, "remark": remark})
    customer = Customer(**fields, created_by=created_by, created_at=utcnow())
    db.session.add(customer)
    db.session.commit()
    current_app.logger.info("Customer created id=%s by user=%s", customer.id, created_by)
    return customer


def create_unit_quantity(*, name: str, remark: str | None = None, created_by: int | None = None) -> UnitQuantity:
    fields = _clean(UNIT_QUANTITY_FIELDS, {"name": name, "remark": remark})
    unit = UnitQuantity(**fields, created_by=created_by, created_at=utcnow())
    db.session.add(unit)
    db.session.commit()
    current_app.logger.info("Unit quantity created id=%s by user=%s", unit.id, created_by)
    return unit


def create_product(*, name: str, description: str | None = None, product_type: str = "SELLABLE",
                   remark: str | None = None, created_by: int | None = None) -> Product:
    fields = _clean(PRODUCT_FIELDS, {"name": name, "description": description,
                                     "type": product_type, "remark": remark})
    product = Product(**fields, stock_version=0, created_by=created_by, created_at=utcnow())
    db.session.add(product)
    db.session.commit()
    current_app.logger.info("Product created id=%s type=%s by user=%s", product.id, product.type, created_by)
    return product


def create_tax(*, name: str, value, remark: str | None = None, created_by: int | None = None) -> Tax:
    fields = _clean(TAX_FIELDS, {"name": name, "value": value, "remark": remark})
    tax = Tax(**fields, created_by=created_by, created_at=utcnow())
    db.session.add(tax)
    db.session.commit()
    current_app.logger.info("Tax created id=%s value=%s by user=%s", tax.id, tax.value, created_by)
    return tax


# =============================================================================
# LIST
# =============================================================================

def _list_live(model, *, page: int, limit: int, search: str | None = None, filters=()):
    """Paginated non-deleted rows, newest first. search is a case-insensitive name match."""
    query = db.session.query(model).filter(model.deleted_at.is_(None))
    for condition in filters:
        query = query.filter(condition)
    search = (search or "").strip()
    if search:
        query = query.filter(model.name.ilike(f"%{search}%"))

    total = query.count()
    rows = (
        query.order_by(model.created_at.desc(), model.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def list_customers(*, page: int = 1, limit: int = 10, search: str | None = None) -> tuple[list[Customer], int]:
    return _list_live(Customer, page=page, limit=limit, search=search)


def list_unit_quantities(*, page: int = 1, limit: int = 10,
                         search: str | None = None) -> tuple[list[UnitQuantity], int]:
    return _list_live(UnitQuantity, page=page, limit=limit, search=search)


def list_products(*, page: int = 1, limit: int = 10, search: str | None = None,
                  product_type: str | None = None) -> tuple[list[Product], int]:
    filters = []
    if product_type:
        filters.append(Product.type == coerce_choice(product_type, field="type", choices=PRODUCT_TYPES))
    return _list_live(Product, page=page, limit=limit, search=search, filters=filters)


def list_taxes(*, page: int = 1, limit: int = 10, search: str | None = None) -> tuple[list[Tax], int]:
    return _list_live(Tax, page=page, limit=limit, search=search)


# =============================================================================
# UPDATE
# =============================================================================

def update_customer(customer_id: int, patch: dict) -> Customer:
    customer = require_customer(customer_id)
    _apply_patch(customer, _clean(CUSTOMER_FIELDS, patch))
    db.session.commit()
    current_app.logger.info("Customer updated id=%s fields=%s", customer.id, sorted(patch))
    return customer


def update_unit_quantity(unit_quantity_id: int, patch: dict) -> UnitQuantity:
    unit = require_unit_quantity(unit_quantity_id)
    _apply_patch(unit, _clean(UNIT_QUANTITY_FIELDS, patch))
    db.session.commit()
    current_app.logger.info("Unit quantity updated id=%s fields=%s", unit.id, sorted(patch))
    return unit


def update_product(product_id: int, patch: dict) -> Product:
    product = require_product(product_id)
    _apply_patch(product, _clean(PRODUCT_FIELDS, patch))
    db.session.commit()
    current_app.logger.info("Product updated id=%s fields=%s", product.id, sorted(patch))
    return product


def update_tax(tax_id: int, patch: dict) -> Tax:
    """Existing transactions keep their TransactionTax snapshot; only new ones see the change."""
    tax = require_tax(tax_id)
    _apply_patch(tax, _clean(TAX_FIELDS, patch))
    db.session.commit()
    current_app.logger.info("Tax updated id=%s fields=%s", tax.id, sorted(patch))
    return tax


# =============================================================================
# DELETE (soft)
# =============================================================================

def soft_delete(row, *, deleted_by: int | None = None) -> None:
    """Mark a master-data row deleted. Historical records keep their denormalized names."""
    row.deleted_at = utcnow()
    row.deleted_by = deleted_by
    db.session.commit()
    current_app.logger.info(
        "%s soft-deleted id=%s by user=%s", type(row).__name__, row.id, deleted_by
    )


def delete_customer(customer_id: int, *, deleted_by: int | None = None) -> None:
    soft_delete(require_customer(customer_id), deleted_by=deleted_by)


def delete_unit_quantity(unit_quantity_id: int, *, deleted_by: int | None = None) -> None:
    soft_delete(require_unit_quantity(unit_quantity_id), deleted_by=deleted_by)


def delete_product(product_id: int, *, deleted_by: int | None = None) -> None:
    soft_delete(require_product(product_id), deleted_by=deleted_by)


def delete_tax(tax_id: int, *, deleted_by: int | None = None) -> None:
    soft_delete(require_tax(tax_id), deleted_by=deleted_by)
