# Overview: Service-layer payment dashboard; per-customer payable/receivable rollups and a per-bucket history.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Payment, Transaction
from ..models.transactions import TRANSACTION_TYPE_SELL
from ..money import ZERO, money_str
from ..time_utils import INTERVAL_DAY, bucket_start, iter_buckets, to_utc_z, utcnow
from ..validation import ValidationError, coerce_interval
from .payment_service import settlement_sign


ANONYMOUS_CUSTOMER_NAME = "Anonymous"


@dataclass(frozen=True)
class CustomerPosition:
    customer_id: int | None
    customer_name: str
    payable: Decimal
    receivable: Decimal

    @property
    def net(self) -> Decimal:
        return self.receivable - self.payable

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "payable": money_str(self.payable),
            "receivable": money_str(self.receivable),
            "net": money_str(self.net),
        }


@dataclass(frozen=True)
class HistoricalPoint:
    date: datetime
    payable: Decimal
    receivable: Decimal

    @property
    def net(self) -> Decimal:
        return self.receivable - self.payable

    def to_dict(self) -> dict:
        return {
            "date": to_utc_z(self.date),
            "payable": money_str(self.payable),
            "receivable": money_str(self.receivable),
            "net": money_str(self.net),
        }


@dataclass(frozen=True)
class PaymentDashboard:
    start: datetime
    end: datetime
    interval: str
    customers: tuple[CustomerPosition, ...]
    historical_data: tuple[HistoricalPoint, ...]

    @property
    def total_payable(self) -> Decimal:
        return sum((c.payable for c in self.customers), ZERO)

    @property
    def total_receivable(self) -> Decimal:
        return sum((c.receivable for c in self.customers), ZERO)

    def to_dict(self) -> dict:
        return {
            "startDate": to_utc_z(self.start),
            "endDate": to_utc_z(self.end),
            "interval": self.interval,
            "totalPayable": money_str(self.total_payable),
            "totalReceivable": money_str(self.total_receivable),
            "net": money_str(self.total_receivable - self.total_payable),
            "customers": [c.to_dict() for c in self.customers],
            "historicalData": [p.to_dict() for p in self.historical_data],
        }


def get_payment_dashboard(
    start: datetime | None = None,
    end: datetime | None = None,
    interval: str = INTERVAL_DAY,
) -> PaymentDashboard:
    """
    Payable/receivable per customer plus a per-bucket (non-cumulative) history.

    Payments are signed in their transaction's settlement direction, so a
    refund reduces the receivable it refunds. Payments with no transaction,
    or whose transaction has no customer, land in one "Anonymous" bucket;
    unlinked payments contribute zero to both columns.

    A missing start defaults to the first qualifying payment, a missing end to now.
    """
    interval = coerce_interval(interval)

    query = (
        db.session.query(
            Payment.direction,
            Payment.amount,
            Payment.created_at,
            Transaction.type,
            Transaction.customer_id,
            Transaction.customer_name,
        )
        .outerjoin(Transaction, Transaction.id == Payment.transaction_id)
    )
    if start:
        query = query.filter(Payment.created_at >= start)
    if end:
        query = query.filter(Payment.created_at <= end)
    rows = query.order_by(Payment.created_at.asc(), Payment.id.asc()).all()

    end = end or utcnow()
    start = start or (rows[0].created_at if rows else end)
    if start > end:
        raise ValidationError("startDate must be before endDate", field="startDate")

    positions: dict[int | None, list] = {}
    history = {bucket: [ZERO, ZERO] for bucket in iter_buckets(start, end, interval)}

    for direction, amount, created_at, tx_type, customer_id, customer_name in rows:
        position = positions.setdefault(
            customer_id,
            [customer_name if customer_id is not None else ANONYMOUS_CUSTOMER_NAME, ZERO, ZERO],
        )
        if tx_type is None:
            continue

        signed = settlement_sign(tx_type, direction) * amount
        slot = 2 if tx_type == TRANSACTION_TYPE_SELL else 1
        position[slot] += signed
        history[bucket_start(created_at, interval)][slot - 1] += signed

    named = sorted(
        (cid for cid in positions if cid is not None),
        key=lambda cid: ((positions[cid][0] or "").lower(), cid),
    )
    ordered_ids = named + ([None] if None in positions else [])

    return PaymentDashboard(
        start=start,
        end=end,
        interval=interval,
        customers=tuple(
            CustomerPosition(
                customer_id=cid,
                customer_name=positions[cid][0],
                payable=positions[cid][1],
                receivable=positions[cid][2],
            )
            for cid in ordered_ids
        ),
        historical_data=tuple(
            HistoricalPoint(date=bucket, payable=payable, receivable=receivable)
            for bucket, (payable, receivable) in history.items()
        ),
    )
