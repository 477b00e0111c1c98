# Overview: Service-layer operations for payments; records cash movements and keeps transaction status in step.

"""
Payment Recording

WHY: Payments settle transactions, and standalone payments record cash that
moved without one (expenses paid from petty cash, owner top-ups...).

DESIGN PRINCIPLES:
- Payments are immutable. A correction is a new payment in the opposite direction.
- amount is always positive; direction carries the sign.
- Settlement direction depends on the transaction type:
    SELL: INFLOW settles (+), OUTFLOW refunds (-)
    BUY:  OUTFLOW settles (+), INFLOW refunds (-)
- Transaction.status is a cache of the settled amount. It is written in the
  same DB transaction as the payment, guarded by settlement_version.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Payment, PaymentDetail, Transaction
from ..models.payments import (
    DIRECTION_INFLOW,
    DIRECTION_OUTFLOW,
    VALID_DIRECTIONS,
    VALID_PAYMENT_TYPES,
)
from ..models.transactions import (
    STATUS_PAID,
    STATUS_PARTIALLY_PAID,
    STATUS_UNPAID,
    TRANSACTION_TYPE_SELL,
)
from ..money import ZERO, money_str
from ..time_utils import utcnow
from ..validation import (
    NotFoundError,
    PayloadPolicy,
    ValidationError,
    coerce_choice,
    coerce_decimal,
    coerce_int,
    coerce_text,
    validate_payload,
)
from .concurrency import compare_and_bump, lock_for_update, run_atomic


PAYMENT_POLICY = PayloadPolicy(
    writable_fields={"transactionId", "type", "direction", "amount", "details", "remark", "fileId"},
    required_on_create={"type", "direction", "amount"},
)

DETAIL_POLICY = PayloadPolicy(
    writable_fields={"identifier", "value"},
    required_on_create={"identifier", "value"},
)


# =============================================================================
# SETTLEMENT
# =============================================================================

def settlement_sign(transaction_type: str, direction: str) -> int:
    """+1 when a payment in `direction` settles a transaction of `transaction_type`, -1 when it refunds."""
    settling = DIRECTION_INFLOW if transaction_type == TRANSACTION_TYPE_SELL else DIRECTION_OUTFLOW
    return 1 if direction == settling else -1


def derive_status(settled: Decimal, grand_total: Decimal) -> str:
    if settled <= 0:
        return STATUS_UNPAID
    if settled >= grand_total:
        return STATUS_PAID
    return STATUS_PARTIALLY_PAID


def get_settled_amount(transaction: Transaction) -> Decimal:
    """Signed sum of linked payments in the transaction's settlement direction."""
    rows = (
        db.session.query(Payment.direction, func.sum(Payment.amount))
        .filter(Payment.transaction_id == transaction.id)
        .group_by(Payment.direction)
        .all()
    )
    settled = ZERO
    for direction, amount in rows:
        if amount is not None:
            settled += settlement_sign(transaction.type, direction) * amount
    return settled


def get_settlement_summary(transaction: Transaction) -> dict:
    settled = get_settled_amount(transaction)
    return {
        "transactionId": transaction.id,
        "grandTotal": money_str(transaction.grand_total),
        "paid": money_str(settled),
        "remaining": money_str(transaction.grand_total - settled),
        "status": derive_status(settled, transaction.grand_total),
    }


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def _parse_details(raw_details) -> list[tuple[str, str]]:
    if raw_details is None:
        return []
    if not isinstance(raw_details, list):
        raise ValidationError("details must be a list", field="details")
    details = []
    for idx, raw in enumerate(raw_details):
        prefix = f"details[{idx}]."
        data = validate_payload(payload=raw, policy=DETAIL_POLICY, prefix=prefix)
        identifier = coerce_text(data["identifier"], field=f"{prefix}identifier", max_length=255)
        value = coerce_text(data["value"], field=f"{prefix}value")
        if not identifier or not value:
            raise ValidationError(f"{prefix}identifier and value are required", field=f"{prefix}identifier")
        details.append((identifier, value))
    return details


def create_payment(payload, *, created_by: int) -> tuple[Payment, dict | None]:
    """
    Record a payment and, when linked, update the transaction's status.

    Returns (payment, settlement summary or None for standalone payments).

    Raises:
        ValidationError: bad input, or a linked payment that would settle more than grand_total
        NotFoundError: transactionId does not exist
        ConflictError: another payment for the same transaction committed first
    """
    data = validate_payload(payload=payload, policy=PAYMENT_POLICY)
    payment_type = coerce_choice(data["type"], field="type", choices=VALID_PAYMENT_TYPES)
    direction = coerce_choice(data["direction"], field="direction", choices=VALID_DIRECTIONS)
    amount = coerce_decimal(data["amount"], field="amount", allow_zero=False)
    details = _parse_details(data.get("details"))
    remark = coerce_text(data.get("remark"), field="remark")
    file_id = coerce_text(data.get("fileId"), field="fileId", max_length=64)

    transaction_id = None
    if data.get("transactionId") is not None:
        transaction_id = coerce_int(data["transactionId"], field="transactionId", minimum=1)

    def _op():
        transaction = None
        if transaction_id is not None:
            transaction = lock_for_update(
                db.session.query(Transaction).filter_by(id=transaction_id)
            ).first()
            if transaction is None:
                raise NotFoundError(f"Transaction {transaction_id} not found", field="transactionId")

            expected_version = (
                db.session.query(Transaction.settlement_version).filter_by(id=transaction_id).scalar()
            )
            settled = get_settled_amount(transaction)
            new_settled = settled + settlement_sign(transaction.type, direction) * amount
            if new_settled > transaction.grand_total:
                raise ValidationError(
                    f"Payment exceeds remaining balance {money_str(transaction.grand_total - settled)}",
                    code="payment_exceeds_balance",
                    field="amount",
                )

        payment = Payment(
            transaction_id=transaction_id,
            type=payment_type,
            direction=direction,
            amount=amount,
            remark=remark,
            file_id=file_id,
            created_at=utcnow(),
            created_by=created_by,
        )
        db.session.add(payment)
        db.session.flush()

        for identifier, value in details:
            db.session.add(PaymentDetail(payment_id=payment.id, identifier=identifier, value=value))

        if transaction is not None:
            compare_and_bump(Transaction, transaction.id, "settlement_version", expected_version)
            db.session.query(Transaction).filter_by(id=transaction.id).update(
                {"status": derive_status(new_settled, transaction.grand_total)},
                synchronize_session=False,
            )
        return payment

    payment = run_atomic(_op)
    current_app.logger.info(
        "Payment recorded id=%s %s %s tx=%s by user=%s",
        payment.id,
        payment.direction,
        payment.amount,
        payment.transaction_id,
        created_by,
    )

    summary = None
    if payment.transaction_id is not None:
        summary = get_settlement_summary(db.session.get(Transaction, payment.transaction_id))
    return payment, summary


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def list_payments(
    *,
    payment_type: str | None = None,
    direction: str | None = None,
    transaction_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Payment], int]:
    query = db.session.query(Payment)
    if payment_type:
        query = query.filter(
            Payment.type == coerce_choice(payment_type, field="type", choices=VALID_PAYMENT_TYPES)
        )
    if direction:
        query = query.filter(
            Payment.direction == coerce_choice(direction, field="direction", choices=VALID_DIRECTIONS)
        )
    if transaction_id is not None:
        query = query.filter(Payment.transaction_id == transaction_id)
    if start:
        query = query.filter(Payment.created_at >= start)
    if end:
        query = query.filter(Payment.created_at <= end)

    total = query.count()
    rows = (
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total
