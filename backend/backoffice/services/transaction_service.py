# Overview: Service-layer operations for transactions; creation through the pricing engine plus transaction reports.

"""
Transactions

WHY: A SELL or BUY document freezes its prices, discounts and taxes at
creation and drives inventory (SELL takes stock out, BUY puts it in).

DESIGN:
- Input is validated and priced before the first write.
- Transaction, items, discounts, tax snapshots and inventory movements are
  written in one DB transaction (run_atomic). Either all become visible or
  none do.
- Product, unit, customer and tax names are copied onto the rows at write
  time; later catalog edits or soft deletes never change history.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Discount, Transaction, TransactionItem, TransactionTax, Product
from ..models.transactions import (
    TRANSACTION_TYPE_BUY,
    TRANSACTION_TYPE_SELL,
    VALID_DISCOUNT_TYPES,
    VALID_TRANSACTION_STATUSES,
    VALID_TRANSACTION_TYPES,
    STATUS_UNPAID,
)
from ..money import ZERO, money_str, quantity_str
from ..time_utils import INTERVAL_DAY, bucket_start, iter_buckets, resolve_range, to_utc_z, utcnow
from ..validation import (
    NotFoundError,
    PayloadPolicy,
    ValidationError,
    coerce_choice,
    coerce_decimal,
    coerce_int,
    coerce_interval,
    coerce_quantity,
    coerce_text,
    validate_payload,
)
from .catalog_service import require_customer, require_product, require_tax, require_unit_quantity
from .concurrency import run_atomic
from .inventory_service import StockMovement, apply_movements
from .pricing_service import DiscountSpec, ItemSpec, TaxSpec, price_transaction


TRANSACTION_POLICY = PayloadPolicy(
    writable_fields={"customerId", "items", "discounts", "taxIds", "type", "remark", "fileId"},
    required_on_create={"items", "type"},
)

ITEM_POLICY = PayloadPolicy(
    writable_fields={"productId", "unitQuantityId", "quantity", "pricePerUnit", "remark"},
    required_on_create={"productId", "unitQuantityId", "quantity", "pricePerUnit"},
)

DISCOUNT_POLICY = PayloadPolicy(
    writable_fields={"type", "percentage", "amount", "transactionItemIndex"},
    required_on_create={"type"},
)


# =============================================================================
# INPUT PARSING
# =============================================================================

def _parse_items(raw_items) -> list[ItemSpec]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError(
            "Transaction must have at least one item", code="invalid_transaction", field="items"
        )

    specs = []
    for idx, raw in enumerate(raw_items):
        prefix = f"items[{idx}]."
        data = validate_payload(payload=raw, policy=ITEM_POLICY, prefix=prefix)
        product_id = coerce_int(data["productId"], field=f"{prefix}productId", minimum=1)
        unit_id = coerce_int(data["unitQuantityId"], field=f"{prefix}unitQuantityId", minimum=1)
        quantity = coerce_quantity(data["quantity"], field=f"{prefix}quantity")
        price = coerce_decimal(data["pricePerUnit"], field=f"{prefix}pricePerUnit")

        product = require_product(product_id, field=f"{prefix}productId")
        unit = require_unit_quantity(unit_id, field=f"{prefix}unitQuantityId")

        specs.append(
            ItemSpec(
                product_id=product.id,
                product_name=product.name,
                unit_quantity_id=unit.id,
                unit_quantity_name=unit.name,
                quantity=quantity,
                price_per_unit=price,
                remark=coerce_text(data.get("remark"), field=f"{prefix}remark"),
            )
        )
    return specs


def _parse_discounts(raw_discounts) -> list[DiscountSpec]:
    if raw_discounts is None:
        return []
    if not isinstance(raw_discounts, list):
        raise ValidationError("discounts must be a list", field="discounts")

    specs = []
    for idx, raw in enumerate(raw_discounts):
        prefix = f"discounts[{idx}]."
        data = validate_payload(payload=raw, policy=DISCOUNT_POLICY, prefix=prefix)
        discount_type = coerce_choice(data["type"], field=f"{prefix}type", choices=VALID_DISCOUNT_TYPES)

        percentage = None
        amount = None
        if discount_type == "PERCENTAGE":
            if data.get("percentage") is None:
                raise ValidationError(
                    "percentage is required for PERCENTAGE discounts",
                    code="invalid_discount",
                    field=f"{prefix}percentage",
                )
            percentage = coerce_decimal(data["percentage"], field=f"{prefix}percentage", places=4)
        else:
            if data.get("amount") is None:
                raise ValidationError(
                    "amount is required for FIXED discounts", code="invalid_discount", field=f"{prefix}amount"
                )
            amount = coerce_decimal(data["amount"], field=f"{prefix}amount")

        item_index = None
        if data.get("transactionItemIndex") is not None:
            item_index = coerce_int(
                data["transactionItemIndex"], field=f"{prefix}transactionItemIndex", minimum=0
            )

        specs.append(
            DiscountSpec(type=discount_type, percentage=percentage, amount=amount, item_index=item_index)
        )
    return specs


def _parse_taxes(raw_tax_ids) -> list[TaxSpec]:
    if raw_tax_ids is None:
        return []
    if not isinstance(raw_tax_ids, list):
        raise ValidationError("taxIds must be a list", field="taxIds")

    specs = []
    for idx, raw in enumerate(raw_tax_ids):
        tax_id = coerce_int(raw, field=f"taxIds[{idx}]", minimum=1)
        tax = require_tax(tax_id, field=f"taxIds[{idx}]")
        specs.append(TaxSpec(tax_id=tax.id, name=tax.name, percentage=tax.value))
    return specs


# =============================================================================
# CREATION
# =============================================================================

def create_transaction(payload, *, created_by: int) -> Transaction:
    """
    Price and persist a transaction with its inventory side effects.

    SELL appends -quantity movements and is rejected with
    ConflictError(insufficient_stock) when stock would go negative.
    BUY appends +quantity movements.
    """
    data = validate_payload(payload=payload, policy=TRANSACTION_POLICY)
    transaction_type = coerce_choice(data["type"], field="type", choices=VALID_TRANSACTION_TYPES)

    customer = None
    if data.get("customerId") is not None:
        customer_id = coerce_int(data["customerId"], field="customerId", minimum=1)
        customer = require_customer(customer_id, field="customerId")

    priced = price_transaction(
        items=_parse_items(data["items"]),
        discounts=_parse_discounts(data.get("discounts")),
        taxes=_parse_taxes(data.get("taxIds")),
        transaction_type=transaction_type,
    )
    remark = coerce_text(data.get("remark"), field="remark")
    file_id = coerce_text(data.get("fileId"), field="fileId", max_length=64)

    def _op():
        now = utcnow()
        transaction = Transaction(
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else None,
            subtotal=priced.subtotal,
            total_tax=priced.total_tax,
            grand_total=priced.grand_total,
            type=priced.type,
            status=STATUS_UNPAID,
            settlement_version=0,
            remark=remark,
            file_id=file_id,
            created_at=now,
            created_by=created_by,
        )
        db.session.add(transaction)
        db.session.flush()

        item_rows = []
        for item in priced.items:
            row = TransactionItem(
                transaction_id=transaction.id,
                position=item.index,
                product_id=item.product_id,
                product_name=item.product_name,
                unit_quantity_id=item.unit_quantity_id,
                unit_quantity_name=item.unit_quantity_name,
                quantity=item.quantity,
                price_per_unit=item.price_per_unit,
                total=item.total,
                remark=item.remark,
            )
            db.session.add(row)
            item_rows.append(row)
        db.session.flush()

        for discount in priced.discounts:
            db.session.add(
                Discount(
                    transaction_id=transaction.id,
                    type=discount.type,
                    percentage=discount.percentage,
                    amount=discount.amount,
                    transaction_item_id=(
                        item_rows[discount.item_index].id if discount.item_index is not None else None
                    ),
                )
            )

        for tax in priced.taxes:
            db.session.add(
                TransactionTax(
                    transaction_id=transaction.id,
                    tax_id=tax.tax_id,
                    name=tax.name,
                    percentage=tax.percentage,
                    amount=tax.amount,
                )
            )

        sign = -1 if priced.type == TRANSACTION_TYPE_SELL else 1
        movements = [
            StockMovement(
                product_id=item.product_id,
                unit_quantity_id=item.unit_quantity_id,
                quantity=item.quantity * sign,
                remark=f"Transaction {transaction.id}",
                field=f"items[{item.index}].quantity",
            )
            for item in priced.items
        ]
        apply_movements(movements, created_by=created_by, transaction_id=transaction.id, created_at=now)
        return transaction

    transaction = run_atomic(_op)
    current_app.logger.info(
        "Transaction created id=%s type=%s grand_total=%s by user=%s",
        transaction.id,
        transaction.type,
        transaction.grand_total,
        created_by,
    )
    return transaction


# =============================================================================
# QUERIES
# =============================================================================

def get_transaction(transaction_id: int) -> Transaction:
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return transaction


def list_transactions(
    *,
    transaction_type: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Transaction], int]:
    query = db.session.query(Transaction)
    if transaction_type:
        query = query.filter(
            Transaction.type == coerce_choice(transaction_type, field="type", choices=VALID_TRANSACTION_TYPES)
        )
    if status:
        query = query.filter(
            Transaction.status == coerce_choice(status, field="status", choices=VALID_TRANSACTION_STATUSES)
        )
    if customer_id is not None:
        query = query.filter(Transaction.customer_id == customer_id)
    if start:
        query = query.filter(Transaction.created_at >= start)
    if end:
        query = query.filter(Transaction.created_at <= end)

    total = query.count()
    rows = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


# =============================================================================
# REPORTS
# =============================================================================

def _in_range(query, column, start: datetime | None, end: datetime | None):
    if start:
        query = query.filter(column >= start)
    if end:
        query = query.filter(column <= end)
    return query


def get_transaction_summary(start: datetime | None = None, end: datetime | None = None) -> dict:
    """Revenue (SELL), expenses (BUY), net income and transaction count over a range."""
    query = db.session.query(
        Transaction.type, func.sum(Transaction.grand_total), func.count(Transaction.id)
    ).group_by(Transaction.type)
    query = _in_range(query, Transaction.created_at, start, end)

    totals = {TRANSACTION_TYPE_SELL: ZERO, TRANSACTION_TYPE_BUY: ZERO}
    count = 0
    for tx_type, amount, tx_count in query.all():
        totals[tx_type] = amount if amount is not None else ZERO
        count += tx_count

    revenue = totals[TRANSACTION_TYPE_SELL]
    expenses = totals[TRANSACTION_TYPE_BUY]
    return {
        "totalRevenue": money_str(revenue),
        "totalExpenses": money_str(expenses),
        "netIncome": money_str(revenue - expenses),
        "transactionCount": count,
    }


def get_transaction_time_series(
    start: datetime | None = None, end: datetime | None = None, interval: str = INTERVAL_DAY
) -> list[dict]:
    """Per-bucket revenue, expenses, net income and SELL/BUY counts. Empty buckets are zero."""
    interval = coerce_interval(interval)
    try:
        start, end = resolve_range(start, end)
    except ValueError as exc:
        raise ValidationError(str(exc), field="startDate") from exc

    rows = _in_range(
        db.session.query(Transaction.type, Transaction.created_at, Transaction.grand_total),
        Transaction.created_at,
        start,
        end,
    ).all()

    buckets = OrderedDict(
        (bucket, {"revenue": ZERO, "expenses": ZERO, "sellCount": 0, "buyCount": 0})
        for bucket in iter_buckets(start, end, interval)
    )
    for tx_type, created_at, grand_total in rows:
        bucket = buckets[bucket_start(created_at, interval)]
        if tx_type == TRANSACTION_TYPE_SELL:
            bucket["revenue"] += grand_total
            bucket["sellCount"] += 1
        else:
            bucket["expenses"] += grand_total
            bucket["buyCount"] += 1

    return [
        {
            "date": to_utc_z(bucket),
            "revenue": money_str(values["revenue"]),
            "expenses": money_str(values["expenses"]),
            "netIncome": money_str(values["revenue"] - values["expenses"]),
            "sellCount": values["sellCount"],
            "buyCount": values["buyCount"],
        }
        for bucket, values in buckets.items()
    ]


def get_product_transaction_summary(
    product_id: int | None = None, start: datetime | None = None, end: datetime | None = None
) -> list[dict]:
    """
    Per-product revenue/expenses from item totals plus quantities sold and bought.

    Products with no items in range are omitted. Ordered by net income, highest first.
    """
    query = (
        db.session.query(
            TransactionItem.product_id,
            func.max(TransactionItem.product_name),
            Transaction.type,
            func.sum(TransactionItem.total),
            func.sum(TransactionItem.quantity),
        )
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .group_by(TransactionItem.product_id, Transaction.type)
    )
    if product_id is not None:
        query = query.filter(TransactionItem.product_id == product_id)
    query = _in_range(query, Transaction.created_at, start, end)

    products: dict[int, dict] = {}
    for p_id, p_name, tx_type, amount, quantity in query.all():
        entry = products.setdefault(
            p_id,
            {
                "productId": p_id,
                "productName": p_name,
                "revenue": ZERO,
                "expenses": ZERO,
                "quantitySold": 0,
                "quantityBought": 0,
            },
        )
        if tx_type == TRANSACTION_TYPE_SELL:
            entry["revenue"] += amount or ZERO
            entry["quantitySold"] += quantity or 0
        else:
            entry["expenses"] += amount or ZERO
            entry["quantityBought"] += quantity or 0

    ordered = sorted(
        products.values(),
        key=lambda e: (-(e["revenue"] - e["expenses"]), e["productId"]),
    )
    return [
        {
            "productId": e["productId"],
            "productName": e["productName"],
            "revenue": money_str(e["revenue"]),
            "expenses": money_str(e["expenses"]),
            "netIncome": money_str(e["revenue"] - e["expenses"]),
            "quantitySold": quantity_str(e["quantitySold"]),
            "quantityBought": quantity_str(e["quantityBought"]),
        }
        for e in ordered
    ]


def get_product_transaction_time_series(
    product_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    interval: str = INTERVAL_DAY,
) -> list[dict]:
    """Per-bucket revenue/expenses/net income for one product's items."""
    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    interval = coerce_interval(interval)
    try:
        start, end = resolve_range(start, end)
    except ValueError as exc:
        raise ValidationError(str(exc), field="startDate") from exc

    rows = _in_range(
        db.session.query(Transaction.type, Transaction.created_at, TransactionItem.total)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(TransactionItem.product_id == product_id),
        Transaction.created_at,
        start,
        end,
    ).all()

    buckets = OrderedDict((bucket, [ZERO, ZERO]) for bucket in iter_buckets(start, end, interval))
    for tx_type, created_at, total in rows:
        slot = 0 if tx_type == TRANSACTION_TYPE_SELL else 1
        buckets[bucket_start(created_at, interval)][slot] += total

    return [
        {
            "date": to_utc_z(bucket),
            "revenue": money_str(revenue),
            "expenses": money_str(expenses),
            "netIncome": money_str(revenue - expenses),
        }
        for bucket, (revenue, expenses) in buckets.items()
    ]


def get_product_transaction_report(
    product_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    interval: str = INTERVAL_DAY,
) -> dict:
    """Summary and time series for one product, as served by /api/transactions/product/<id>."""
    time_series = get_product_transaction_time_series(product_id, start, end, interval)
    summary = get_product_transaction_summary(product_id, start, end)
    return {
        "summary": summary[0] if summary else None,
        "timeSeries": time_series,
    }
