# Overview: SQLAlchemy models package; re-exports every model so Alembic sees the full metadata.

from .types import ScaledDecimal, Money, Quantity
from .catalog import User, Customer, UnitQuantity, Product, Tax
from .transactions import Transaction, TransactionItem, Discount, TransactionTax
from .payments import Payment, PaymentDetail
from .inventory import InventoryHistory

__all__ = [
    "ScaledDecimal",
    "Money",
    "Quantity",
    "User",
    "Customer",
    "UnitQuantity",
    "Product",
    "Tax",
    "Transaction",
    "TransactionItem",
    "Discount",
    "TransactionTax",
    "Payment",
    "PaymentDetail",
    "InventoryHistory",
]
