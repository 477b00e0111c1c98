from __future__ import annotations

from ..extensions import db
from ..money import quantity_str
from ..time_utils import to_utc_z
from .types import Quantity


class InventoryHistory(db.Model):
    """
    Append-only inventory movement.

    quantity is signed: positive = stock in, negative = stock out.
    Stock for a (product, unit) pair is SUM(quantity); it is never stored.
    """
    __tablename__ = "inventory_histories"
    __table_args__ = (
        db.Index("ix_invhist_product_unit_created", "product_id", "unit_quantity_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    unit_quantity_id = db.Column(db.Integer, db.ForeignKey("unit_quantities.id"), nullable=False, index=True)
    quantity = db.Column(Quantity(), nullable=False)
    remark = db.Column(db.Text, nullable=True)

    # Set when the movement was produced by a SELL/BUY transaction
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    product = db.relationship("Product")
    unit_quantity = db.relationship("UnitQuantity")
    creator = db.relationship("User", foreign_keys=[created_by])

    def __repr__(self) -> str:
        return (
            f"<InventoryHistory id={self.id} product_id={self.product_id} "
            f"unit={self.unit_quantity_id} qty={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product.name if self.product else None,
            "quantity": quantity_str(self.quantity),
            "unitQuantityId": self.unit_quantity_id,
            "unitQuantityName": self.unit_quantity.name if self.unit_quantity else None,
            "remark": self.remark,
            "transactionId": self.transaction_id,
            "createdAt": to_utc_z(self.created_at),
            "createdByName": self.creator.name if self.creator else None,
        }
