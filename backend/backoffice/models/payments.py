from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z
from .types import Money


# Payment methods
PAYMENT_CASH = "CASH"
PAYMENT_PAPER = "PAPER"
PAYMENT_CARD = "CARD"
PAYMENT_QRIS = "QRIS"
PAYMENT_TRANSFER = "TRANSFER"

VALID_PAYMENT_TYPES = [
    PAYMENT_CASH,
    PAYMENT_PAPER,
    PAYMENT_CARD,
    PAYMENT_QRIS,
    PAYMENT_TRANSFER,
]

DIRECTION_INFLOW = "INFLOW"
DIRECTION_OUTFLOW = "OUTFLOW"
VALID_DIRECTIONS = [DIRECTION_INFLOW, DIRECTION_OUTFLOW]


class Payment(db.Model):
    """
    Cash movement, optionally linked to a transaction.

    amount is always positive; direction carries the sign. A payment with no
    transaction is a standalone cash movement (it still counts in cashflow).
    Immutable: corrections are new payments in the opposite direction.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_direction_created", "direction", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    direction = db.Column(db.String(8), nullable=False)
    amount = db.Column(Money(), nullable=False)
    remark = db.Column(db.Text, nullable=True)
    file_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    transaction = db.relationship("Transaction", backref=db.backref("payments", lazy=True))
    details = db.relationship("PaymentDetail", backref="payment", lazy=True, order_by="PaymentDetail.id")
    creator = db.relationship("User", foreign_keys=[created_by])

    def __repr__(self) -> str:
        return f"<Payment id={self.id} {self.direction} {self.amount} tx={self.transaction_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transactionId": self.transaction_id,
            "type": self.type,
            "direction": self.direction,
            "amount": money_str(self.amount),
            "details": [d.to_dict() for d in self.details],
            "remark": self.remark,
            "fileId": self.file_id,
            "createdAt": to_utc_z(self.created_at),
            "createdByName": self.creator.name if self.creator else None,
        }


class PaymentDetail(db.Model):
    """Free-form identifier/value pair attached to a payment (card ref, account no...)."""
    __tablename__ = "payment_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=False, index=True)
    identifier = db.Column(db.String(255), nullable=False)
    value = db.Column(db.Text, nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "identifier": self.identifier, "value": self.value}
