from __future__ import annotations

from ..extensions import db
from ..money import quantity_str
from ..time_utils import to_utc_z
from .types import ScaledDecimal


ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_ADMIN = "ADMIN"
ROLE_WAREHOUSE_MANAGER = "WAREHOUSE_MANAGER"
ROLE_CASHIER = "CASHIER"

VALID_ROLES = [ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER, ROLE_CASHIER]

PRODUCT_TYPES = ["SELLABLE", "ASSET", "UTILITY", "PLACEHOLDER"]


class SoftDeleteMixin:
    """
    Reference data is soft-deleted: a deleted row can no longer be used by new
    transactions, but historical rows keep their denormalized names.
    """
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    deleted_by = db.Column(db.Integer, nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class User(SoftDeleteMixin, db.Model):
    """
    Caller identity. Credentials and sessions live in the upstream auth
    service; this table only carries what the ledger needs (name for
    createdByName, role for capability checks).
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(32), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
        }


class Customer(SoftDeleteMixin, db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    remark = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "remark": self.remark,
            "createdAt": to_utc_z(self.created_at),
        }


class UnitQuantity(SoftDeleteMixin, db.Model):
    """Unit of measure a product is counted in (pcs, box, kg...)."""
    __tablename__ = "unit_quantities"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    remark = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "remark": self.remark,
            "createdAt": to_utc_z(self.created_at),
        }


class Product(SoftDeleteMixin, db.Model):
    """
    Product master data.

    stock_version is bumped with a conditional UPDATE every time an inventory
    movement for this product commits. Two writers that validated against the
    same version cannot both commit (see services.concurrency.compare_and_bump).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(32), nullable=False, default="SELLABLE")
    remark = db.Column(db.Text, nullable=True)
    stock_version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "remark": self.remark,
            "createdAt": to_utc_z(self.created_at),
        }


class Tax(SoftDeleteMixin, db.Model):
    """Tax catalog entry; value is a percentage (e.g. 11.0000 for 11%)."""
    __tablename__ = "taxes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    value = db.Column(ScaledDecimal(4), nullable=False)
    remark = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "value": quantity_str(self.value),
            "remark": self.remark,
            "createdAt": to_utc_z(self.created_at),
        }
