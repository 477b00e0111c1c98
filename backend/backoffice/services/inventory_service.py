# Overview: Service-layer operations for inventory; stock snapshots, stock curves and validated movement appends.

"""
Inventory Ledger

DESIGN:
- inventory_histories is append-only. Stock for a (product, unit) pair is
  SUM(quantity) over its rows and is never stored anywhere else.
- A batch of movements is legal only if, applied in order on top of the
  committed ledger, no pair's running sum drops below zero.
- The check and the append run in one DB transaction. Every touched
  product's stock_version is bumped with a conditional UPDATE before commit,
  so two writers that validated against the same snapshot cannot both win.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import InventoryHistory, Product, UnitQuantity
from ..money import QUANTITY_QUANT, quantity_str
from ..time_utils import INTERVAL_DAY, iter_buckets, next_bucket, resolve_range, to_utc_z, utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_int,
    coerce_interval,
    coerce_quantity,
    coerce_text,
)
from .catalog_service import require_product, require_unit_quantity
from .concurrency import compare_and_bump, run_atomic


ZERO_QUANTITY = Decimal("0").quantize(QUANTITY_QUANT)


@dataclass(frozen=True)
class StockMovement:
    product_id: int
    unit_quantity_id: int
    quantity: Decimal
    remark: str | None = None
    field: str | None = None


# =============================================================================
# READS
# =============================================================================

def get_stock(product_id: int, unit_quantity_id: int) -> Decimal:
    """Committed stock for one (product, unit) pair."""
    total = (
        db.session.query(func.sum(InventoryHistory.quantity))
        .filter(
            InventoryHistory.product_id == product_id,
            InventoryHistory.unit_quantity_id == unit_quantity_id,
        )
        .scalar()
    )
    return total if total is not None else ZERO_QUANTITY


def get_inventory_summary(product_id: int | None = None) -> list[dict]:
    """
    Current stock per product, one entry per unit.

    Pairs that net to zero are omitted; their history is untouched.
    Soft-deleted products are excluded.
    """
    if product_id is not None:
        require_product(product_id)

    query = (
        db.session.query(
            Product.id,
            Product.name,
            UnitQuantity.id,
            UnitQuantity.name,
            func.sum(InventoryHistory.quantity),
        )
        .join(Product, Product.id == InventoryHistory.product_id)
        .join(UnitQuantity, UnitQuantity.id == InventoryHistory.unit_quantity_id)
        .filter(Product.deleted_at.is_(None))
        .group_by(Product.id, Product.name, UnitQuantity.id, UnitQuantity.name)
        .order_by(Product.name.asc(), Product.id.asc(), UnitQuantity.id.asc())
    )
    if product_id is not None:
        query = query.filter(InventoryHistory.product_id == product_id)

    summary: "OrderedDict[int, dict]" = OrderedDict()
    for p_id, p_name, u_id, u_name, total in query.all():
        if total is None or total == 0:
            continue
        entry = summary.setdefault(
            p_id, {"productId": p_id, "productName": p_name, "quantities": []}
        )
        entry["quantities"].append(
            {"unitQuantityId": u_id, "unitQuantityName": u_name, "quantity": quantity_str(total)}
        )
    return list(summary.values())


def get_inventory_time_series(
    product_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    interval: str = INTERVAL_DAY,
    unit_quantity_id: int | None = None,
) -> dict:
    """
    Cumulative stock curve per unit for one product.

    Each point is the stock level at the end of its bucket. Movements before
    `start` form the opening balance. Buckets with no movements repeat the
    previous level so the curve is continuous.
    """
    product = require_product(product_id)
    interval = coerce_interval(interval)
    try:
        start, end = resolve_range(start, end)
    except ValueError as exc:
        raise ValidationError(str(exc), field="startDate") from exc

    base = db.session.query(InventoryHistory).filter(InventoryHistory.product_id == product_id)
    if unit_quantity_id is not None:
        base = base.filter(InventoryHistory.unit_quantity_id == unit_quantity_id)

    opening_rows = (
        base.with_entities(InventoryHistory.unit_quantity_id, func.sum(InventoryHistory.quantity))
        .filter(InventoryHistory.created_at < start)
        .group_by(InventoryHistory.unit_quantity_id)
        .all()
    )
    opening = {unit_id: total for unit_id, total in opening_rows if total is not None}

    movements = (
        base.with_entities(
            InventoryHistory.unit_quantity_id, InventoryHistory.created_at, InventoryHistory.quantity
        )
        .filter(InventoryHistory.created_at >= start, InventoryHistory.created_at <= end)
        .order_by(InventoryHistory.created_at.asc(), InventoryHistory.id.asc())
        .all()
    )

    unit_ids = sorted(set(opening) | {unit_id for unit_id, _, _ in movements})
    unit_names = dict(
        db.session.query(UnitQuantity.id, UnitQuantity.name).filter(UnitQuantity.id.in_(unit_ids)).all()
    ) if unit_ids else {}

    buckets = list(iter_buckets(start, end, interval))
    series = []
    for unit_id in unit_ids:
        unit_moves = [(created_at, qty) for u_id, created_at, qty in movements if u_id == unit_id]
        running = opening.get(unit_id, ZERO_QUANTITY)
        points = []
        cursor = 0
        for bucket in buckets:
            bucket_end = next_bucket(bucket, interval)
            while cursor < len(unit_moves) and unit_moves[cursor][0] < bucket_end:
                running += unit_moves[cursor][1]
                cursor += 1
            points.append({"date": to_utc_z(bucket), "quantity": quantity_str(running)})
        series.append(
            {
                "unitQuantityId": unit_id,
                "unitQuantityName": unit_names.get(unit_id),
                "openingQuantity": quantity_str(opening.get(unit_id, ZERO_QUANTITY)),
                "points": points,
            }
        )

    return {
        "productId": product.id,
        "productName": product.name,
        "interval": interval,
        "startDate": to_utc_z(start),
        "endDate": to_utc_z(end),
        "series": series,
    }


def list_inventory_histories(
    *,
    product_id: int | None = None,
    unit_quantity_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[InventoryHistory], int]:
    query = db.session.query(InventoryHistory)
    if product_id is not None:
        query = query.filter(InventoryHistory.product_id == product_id)
    if unit_quantity_id is not None:
        query = query.filter(InventoryHistory.unit_quantity_id == unit_quantity_id)
    if start:
        query = query.filter(InventoryHistory.created_at >= start)
    if end:
        query = query.filter(InventoryHistory.created_at <= end)

    total = query.count()
    rows = (
        query.order_by(InventoryHistory.created_at.desc(), InventoryHistory.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def get_inventory_history(history_id: int) -> InventoryHistory:
    row = db.session.get(InventoryHistory, history_id)
    if row is None:
        raise NotFoundError(f"Inventory history {history_id} not found")
    return row


# =============================================================================
# MOVEMENT VALIDATION
# =============================================================================

def validate_movements(movements: Sequence[StockMovement]) -> dict[tuple[int, int], Decimal]:
    """
    Apply candidate movements, in order, on top of the committed ledger.

    Raises ConflictError(insufficient_stock) naming the first movement that
    would drive its pair below zero. Returns the resulting stock per pair.
    Nothing is written.
    """
    running: dict[tuple[int, int], Decimal] = {}
    for movement in movements:
        key = (movement.product_id, movement.unit_quantity_id)
        if key not in running:
            running[key] = get_stock(*key)
        candidate = running[key] + movement.quantity
        if candidate < 0:
            raise ConflictError(
                f"Insufficient stock for product {movement.product_id} unit {movement.unit_quantity_id}: "
                f"available {quantity_str(running[key])}, requested {quantity_str(-movement.quantity)}",
                code="insufficient_stock",
                field=movement.field,
            )
        running[key] = candidate
    return running


def apply_movements(
    movements: Sequence[StockMovement],
    *,
    created_by: int,
    transaction_id: int | None = None,
    created_at: datetime | None = None,
) -> list[InventoryHistory]:
    """
    Validate and append movements inside the caller's unit of work.

    Must run inside run_atomic. The product versions are read before the
    stock check and bumped after the insert; a concurrent writer that got in
    between makes the bump fail with ConflictError(concurrent_write).
    """
    product_ids = sorted({m.product_id for m in movements})
    versions = dict(
        db.session.query(Product.id, Product.stock_version).filter(Product.id.in_(product_ids)).all()
    )

    validate_movements(movements)

    created_at = created_at or utcnow()
    rows = [
        InventoryHistory(
            product_id=m.product_id,
            unit_quantity_id=m.unit_quantity_id,
            quantity=m.quantity,
            remark=m.remark,
            transaction_id=transaction_id,
            created_at=created_at,
            created_by=created_by,
        )
        for m in movements
    ]
    db.session.add_all(rows)
    db.session.flush()

    for product_id in product_ids:
        compare_and_bump(Product, product_id, "stock_version", versions[product_id])

    return rows


# =============================================================================
# MANIPULATE INVENTORY
# =============================================================================

def parse_movements(items) -> list[StockMovement]:
    """Validate a raw JSON list of movements and resolve their references."""
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list", field="items")

    movements = []
    for idx, raw in enumerate(items):
        prefix = f"items[{idx}]"
        if not isinstance(raw, dict):
            raise ValidationError(f"{prefix} must be an object", field=prefix)
        unknown = set(raw) - {"productId", "unitQuantityId", "quantity", "remark"}
        if unknown:
            field = f"{prefix}.{sorted(unknown)[0]}"
            raise ValidationError(f"Field not allowed: {field}", field=field)
        for required in ("productId", "unitQuantityId", "quantity"):
            if raw.get(required) is None:
                raise ValidationError(f"{prefix}.{required} is required", field=f"{prefix}.{required}")

        product_id = coerce_int(raw["productId"], field=f"{prefix}.productId", minimum=1)
        unit_id = coerce_int(raw["unitQuantityId"], field=f"{prefix}.unitQuantityId", minimum=1)
        quantity = coerce_quantity(raw["quantity"], field=f"{prefix}.quantity", allow_negative=True)
        require_product(product_id, field=f"{prefix}.productId")
        require_unit_quantity(unit_id, field=f"{prefix}.unitQuantityId")

        movements.append(
            StockMovement(
                product_id=product_id,
                unit_quantity_id=unit_id,
                quantity=quantity,
                remark=coerce_text(raw.get("remark"), field=f"{prefix}.remark"),
                field=f"{prefix}.quantity",
            )
        )
    return movements


def manipulate_inventory(*, items, remark: str | None = None, created_by: int) -> list[InventoryHistory]:
    """
    Append a batch of signed movements atomically.

    Either every movement is appended or none is. A batch-level remark is
    used for rows that carry no remark of their own.
    """
    movements = parse_movements(items)
    remark = coerce_text(remark, field="remark")
    if remark:
        movements = [
            m if m.remark else StockMovement(m.product_id, m.unit_quantity_id, m.quantity, remark, m.field)
            for m in movements
        ]

    rows = run_atomic(lambda: apply_movements(movements, created_by=created_by))
    current_app.logger.info(
        "Inventory manipulated by user=%s: %s movement(s) ids=%s",
        created_by,
        len(rows),
        [row.id for row in rows],
    )
    return rows
