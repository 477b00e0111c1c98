"""
Pytest fixtures for backoffice ledger tests.

Provides test database setup, master-data fixtures, auth headers and test client.
"""

from decimal import Decimal

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import (
    Customer,
    Payment,
    Product,
    Tax,
    Transaction,
    UnitQuantity,
    User,
)
from backoffice.models.transactions import STATUS_UNPAID
from backoffice.services import inventory_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _user(db_session, name, email, role):
    user = User(name=name, email=email, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _user(db_session, "Admin", "admin@backoffice.local", "ADMIN")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return _user(db_session, "Cashier", "cashier@backoffice.local", "CASHIER")


@pytest.fixture(scope='function')
def warehouse_user(db_session):
    return _user(db_session, "Warehouse", "warehouse@backoffice.local", "WAREHOUSE_MANAGER")


def auth_headers(user):
    """Headers the upstream gateway forwards for an authenticated caller."""
    return {"X-User-Id": str(user.id)}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture(scope='function')
def headers_for():
    return auth_headers


@pytest.fixture(scope='function')
def customer(db_session):
    row = Customer(name="PT Maju Jaya")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def other_customer(db_session):
    row = Customer(name="CV Sentosa")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def unit(db_session):
    row = UnitQuantity(name="pcs")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def box_unit(db_session):
    row = UnitQuantity(name="box")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def product(db_session):
    row = Product(name="Kopi Bubuk 250g", type="SELLABLE", stock_version=0)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def other_product(db_session):
    row = Product(name="Teh Celup", type="SELLABLE", stock_version=0)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def vat_5(db_session):
    row = Tax(name="VAT 5%", value=Decimal("5"))
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def service_tax(db_session):
    row = Tax(name="Service 2.5%", value=Decimal("2.5"))
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def stock_in(admin_user):
    """Put stock on the ledger through the real manipulate path."""
    def _stock_in(product, unit, quantity):
        return inventory_service.manipulate_inventory(
            items=[{"productId": product.id, "unitQuantityId": unit.id, "quantity": str(quantity)}],
            remark="opening stock",
            created_by=admin_user.id,
        )
    return _stock_in


@pytest.fixture(scope='function')
def make_transaction(db_session, admin_user):
    """Insert a priced transaction row directly, for report tests that need exact dates."""
    def _make(tx_type, grand_total, created_at, customer=None):
        total = Decimal(grand_total)
        tx = Transaction(
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else None,
            subtotal=total,
            total_tax=Decimal("0"),
            grand_total=total,
            type=tx_type,
            status=STATUS_UNPAID,
            settlement_version=0,
            created_at=created_at,
            created_by=admin_user.id,
        )
        db_session.add(tx)
        db_session.commit()
        return tx
    return _make


@pytest.fixture(scope='function')
def make_payment(db_session, admin_user):
    """Insert a payment row directly with an exact created_at."""
    def _make(direction, amount, created_at, transaction=None, payment_type="CASH"):
        payment = Payment(
            transaction_id=transaction.id if transaction else None,
            type=payment_type,
            direction=direction,
            amount=Decimal(amount),
            created_at=created_at,
            created_by=admin_user.id,
        )
        db_session.add(payment)
        db_session.commit()
        return payment
    return _make

