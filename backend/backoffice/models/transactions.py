from __future__ import annotations

from ..extensions import db
from ..money import money_str, quantity_str
from ..time_utils import to_utc_z
from .types import Money, Quantity, ScaledDecimal


TRANSACTION_TYPE_SELL = "SELL"
TRANSACTION_TYPE_BUY = "BUY"
VALID_TRANSACTION_TYPES = [TRANSACTION_TYPE_SELL, TRANSACTION_TYPE_BUY]

STATUS_UNPAID = "UNPAID"
STATUS_PARTIALLY_PAID = "PARTIALLY_PAID"
STATUS_PAID = "PAID"
VALID_TRANSACTION_STATUSES = [STATUS_UNPAID, STATUS_PARTIALLY_PAID, STATUS_PAID]

DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED = "FIXED"
VALID_DISCOUNT_TYPES = [DISCOUNT_PERCENTAGE, DISCOUNT_FIXED]


class Transaction(db.Model):
    """
    SELL or BUY document with frozen pricing totals.

    Immutable once created. The only columns that change afterwards are the
    derived payment status cache and settlement_version, both written by
    payment_service in the same DB transaction as the payment that moves them.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    # Denormalized at write time so soft-deleting the customer never rewrites history
    customer_name = db.Column(db.String(255), nullable=True)

    subtotal = db.Column(Money(), nullable=False)
    total_tax = db.Column(Money(), nullable=False)
    grand_total = db.Column(Money(), nullable=False)

    type = db.Column(db.String(8), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_UNPAID, index=True)
    settlement_version = db.Column(db.Integer, nullable=False, default=0)

    remark = db.Column(db.Text, nullable=True)
    file_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    items = db.relationship(
        "TransactionItem", backref="transaction", lazy=True, order_by="TransactionItem.position"
    )
    discounts = db.relationship("Discount", backref="transaction", lazy=True, order_by="Discount.id")
    taxes = db.relationship("TransactionTax", backref="transaction", lazy=True, order_by="TransactionTax.id")
    creator = db.relationship("User", foreign_keys=[created_by])

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} grand_total={self.grand_total}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "items": [item.to_dict() for item in self.items],
            "discounts": [discount.to_dict() for discount in self.discounts],
            "taxes": [tax.to_dict() for tax in self.taxes],
            "subtotal": money_str(self.subtotal),
            "totalTax": money_str(self.total_tax),
            "grandTotal": money_str(self.grand_total),
            "type": self.type,
            "status": self.status,
            "remark": self.remark,
            "fileId": self.file_id,
            "createdAt": to_utc_z(self.created_at),
            "createdByName": self.creator.name if self.creator else None,
        }


class TransactionItem(db.Model):
    """Line on a transaction. total = quantity x price_per_unit, frozen at creation."""
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    unit_quantity_id = db.Column(db.Integer, db.ForeignKey("unit_quantities.id"), nullable=False)
    unit_quantity_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(Quantity(), nullable=False)
    price_per_unit = db.Column(Money(), nullable=False)
    # Exact quantity x price_per_unit, up to 6 places
    total = db.Column(ScaledDecimal(6), nullable=False)
    remark = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": quantity_str(self.quantity),
            "unitQuantityId": self.unit_quantity_id,
            "unitQuantityName": self.unit_quantity_name,
            "pricePerUnit": money_str(self.price_per_unit),
            "total": money_str(self.total),
            "remark": self.remark,
        }


class Discount(db.Model):
    """
    Discount frozen on a transaction.

    transaction_item_id set -> applies to that line only.
    transaction_item_id null -> applies to the whole transaction.
    """
    __tablename__ = "discounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    percentage = db.Column(ScaledDecimal(4), nullable=True)
    amount = db.Column(Money(), nullable=False)
    transaction_item_id = db.Column(
        db.Integer, db.ForeignKey("transaction_items.id"), nullable=True, index=True
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "percentage": quantity_str(self.percentage),
            "amount": money_str(self.amount),
            "transactionItemId": self.transaction_item_id,
        }


class TransactionTax(db.Model):
    """Snapshot of a catalog tax as applied to one transaction."""
    __tablename__ = "transaction_taxes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    tax_id = db.Column(db.Integer, db.ForeignKey("taxes.id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    percentage = db.Column(ScaledDecimal(4), nullable=False)
    amount = db.Column(Money(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "taxId": self.tax_id,
            "name": self.name,
            "percentage": quantity_str(self.percentage),
            "amount": money_str(self.amount),
        }
