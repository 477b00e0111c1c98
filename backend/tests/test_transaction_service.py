"""
Transaction service tests.

Verifies:
- Creation freezes totals, names and tax snapshots
- SELL/BUY drive inventory atomically with the transaction
- Transaction reports (summary, time series, product summary)
"""

from datetime import datetime
from decimal import Decimal

import pytest

from backoffice.models import Discount, InventoryHistory, Transaction, TransactionTax
from backoffice.services import inventory_service, transaction_service
from backoffice.validation import ConflictError, NotFoundError, ValidationError


def sell_payload(product, unit, **overrides):
    payload = {
        "type": "SELL",
        "items": [
            {"productId": product.id, "unitQuantityId": unit.id, "quantity": "2", "pricePerUnit": "50.00"}
        ],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# CREATION
# =============================================================================


class TestCreateTransaction:
    def test_sell_with_discount_and_tax(self, db_session, admin_user, customer, product, unit, vat_5, stock_in):
        stock_in(product, unit, 10)

        tx = transaction_service.create_transaction(
            sell_payload(
                product,
                unit,
                customerId=customer.id,
                discounts=[{"type": "PERCENTAGE", "percentage": "10"}],
                taxIds=[vat_5.id],
            ),
            created_by=admin_user.id,
        )

        assert tx.subtotal == Decimal("90.00")
        assert tx.total_tax == Decimal("4.50")
        assert tx.grand_total == Decimal("94.50")
        assert tx.status == "UNPAID"
        assert tx.customer_name == "PT Maju Jaya"
        assert tx.items[0].product_name == "Kopi Bubuk 250g"
        assert tx.items[0].unit_quantity_name == "pcs"

        snapshot = db_session.query(TransactionTax).filter_by(transaction_id=tx.id).one()
        assert (snapshot.name, snapshot.percentage, snapshot.amount) == ("VAT 5%", Decimal("5"), Decimal("4.50"))

        data = tx.to_dict()
        assert data["grandTotal"] == "94.50"
        assert data["createdByName"] == "Admin"
        assert data["items"][0]["quantity"] == "2"

    def test_sell_takes_stock_out(self, db_session, admin_user, product, unit, stock_in):
        stock_in(product, unit, 10)
        tx = transaction_service.create_transaction(sell_payload(product, unit), created_by=admin_user.id)

        assert inventory_service.get_stock(product.id, unit.id) == Decimal("8")
        movement = db_session.query(InventoryHistory).filter_by(transaction_id=tx.id).one()
        assert movement.quantity == Decimal("-2")
        assert movement.remark == f"Transaction {tx.id}"

    def test_buy_puts_stock_in(self, admin_user, product, unit):
        transaction_service.create_transaction(
            sell_payload(product, unit, type="BUY"), created_by=admin_user.id
        )
        assert inventory_service.get_stock(product.id, unit.id) == Decimal("2")

    def test_exact_line_totals_are_stored(self, db_session, admin_user, product, unit):
        line = {"productId": product.id, "unitQuantityId": unit.id, "quantity": "0.3333", "pricePerUnit": "1.00"}
        tx = transaction_service.create_transaction(
            {"type": "BUY", "items": [dict(line), dict(line), dict(line)]}, created_by=admin_user.id
        )
        db_session.expire_all()

        stored = db_session.get(Transaction, tx.id)
        assert [item.total for item in stored.items] == [Decimal("0.3333")] * 3
        assert stored.subtotal == Decimal("1.00")
        assert stored.grand_total == Decimal("1.00")

        summary = transaction_service.get_product_transaction_summary(product.id)
        assert summary[0]["expenses"] == "1.00"

    def test_sell_without_stock_writes_nothing(self, db_session, admin_user, product, unit, stock_in):
        stock_in(product, unit, 1)

        with pytest.raises(ConflictError) as exc:
            transaction_service.create_transaction(sell_payload(product, unit), created_by=admin_user.id)

        assert exc.value.code == "insufficient_stock"
        assert exc.value.field == "items[0].quantity"
        assert db_session.query(Transaction).count() == 0
        assert inventory_service.get_stock(product.id, unit.id) == Decimal("1")

    def test_item_discount_links_to_item_row(self, db_session, admin_user, product, unit, stock_in):
        stock_in(product, unit, 10)
        tx = transaction_service.create_transaction(
            sell_payload(
                product,
                unit,
                discounts=[{"type": "FIXED", "amount": "15.00", "transactionItemIndex": 0}],
            ),
            created_by=admin_user.id,
        )
        discount = db_session.query(Discount).filter_by(transaction_id=tx.id).one()
        assert discount.transaction_item_id == tx.items[0].id
        assert discount.amount == Decimal("15.00")
        assert tx.grand_total == Decimal("85.00")

    def test_names_survive_soft_delete(self, db_session, admin_user, customer, product, unit, stock_in):
        stock_in(product, unit, 10)
        tx = transaction_service.create_transaction(
            sell_payload(product, unit, customerId=customer.id), created_by=admin_user.id
        )
        customer.deleted_at = datetime(2024, 1, 1)
        product.name = "Renamed"
        db_session.commit()

        data = transaction_service.get_transaction(tx.id).to_dict()
        assert data["customerName"] == "PT Maju Jaya"
        assert data["items"][0]["productName"] == "Kopi Bubuk 250g"

    def test_soft_deleted_tax_is_not_found(self, db_session, admin_user, product, unit, vat_5):
        vat_5.deleted_at = datetime(2024, 1, 1)
        db_session.commit()
        with pytest.raises(NotFoundError) as exc:
            transaction_service.create_transaction(
                sell_payload(product, unit, type="BUY", taxIds=[vat_5.id]), created_by=admin_user.id
            )
        assert exc.value.field == "taxIds[0]"

    def test_unknown_customer(self, admin_user, product, unit):
        with pytest.raises(NotFoundError):
            transaction_service.create_transaction(
                sell_payload(product, unit, type="BUY", customerId=42), created_by=admin_user.id
            )

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"items": []}, "items"),
            ({"type": "RENT"}, "type"),
            ({"grandTotal": "1.00"}, "grandTotal"),
            ({"discounts": [{"type": "PERCENTAGE"}]}, "discounts[0].percentage"),
            ({"discounts": [{"type": "FIXED", "amount": "1.001"}]}, "discounts[0].amount"),
        ],
    )
    def test_rejects_bad_payload(self, admin_user, product, unit, overrides, field):
        with pytest.raises(ValidationError) as exc:
            transaction_service.create_transaction(
                sell_payload(product, unit, **overrides), created_by=admin_user.id
            )
        assert exc.value.field == field

    def test_rejects_negative_quantity(self, admin_user, product, unit):
        payload = sell_payload(product, unit, type="BUY")
        payload["items"][0]["quantity"] = "-1"
        with pytest.raises(ValidationError) as exc:
            transaction_service.create_transaction(payload, created_by=admin_user.id)
        assert exc.value.code == "invalid_input"


# =============================================================================
# LISTING
# =============================================================================


class TestListTransactions:
    def test_filters_and_pagination(self, admin_user, customer, make_transaction):
        make_transaction("SELL", "10.00", datetime(2024, 1, 1), customer)
        make_transaction("SELL", "20.00", datetime(2024, 1, 2))
        make_transaction("BUY", "30.00", datetime(2024, 1, 3), customer)

        rows, total = transaction_service.list_transactions(transaction_type="sell", page=1, limit=1)
        assert total == 2
        assert [r.grand_total for r in rows] == [Decimal("20.00")]

        rows, total = transaction_service.list_transactions(customer_id=customer.id)
        assert total == 2

        rows, total = transaction_service.list_transactions(
            start=datetime(2024, 1, 2), end=datetime(2024, 1, 2, 23, 59)
        )
        assert [r.grand_total for r in rows] == [Decimal("20.00")]

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            transaction_service.get_transaction(1)


# =============================================================================
# REPORTS
# =============================================================================


class TestTransactionReports:
    def test_summary(self, make_transaction):
        make_transaction("SELL", "100.00", datetime(2024, 1, 10))
        make_transaction("SELL", "50.50", datetime(2024, 1, 11))
        make_transaction("BUY", "40.00", datetime(2024, 1, 12))
        make_transaction("SELL", "999.00", datetime(2024, 2, 1))

        summary = transaction_service.get_transaction_summary(datetime(2024, 1, 1), datetime(2024, 1, 31, 23, 59))
        assert summary == {
            "totalRevenue": "150.50",
            "totalExpenses": "40.00",
            "netIncome": "110.50",
            "transactionCount": 3,
        }

    def test_summary_empty(self, db_session):
        assert transaction_service.get_transaction_summary() == {
            "totalRevenue": "0.00",
            "totalExpenses": "0.00",
            "netIncome": "0.00",
            "transactionCount": 0,
        }

    def test_time_series_includes_empty_buckets(self, make_transaction):
        make_transaction("SELL", "10.00", datetime(2024, 1, 1, 9))
        make_transaction("BUY", "4.00", datetime(2024, 1, 1, 10))
        make_transaction("SELL", "5.00", datetime(2024, 1, 3, 9))

        series = transaction_service.get_transaction_time_series(
            datetime(2024, 1, 1), datetime(2024, 1, 3, 23, 59), "day"
        )
        assert series == [
            {"date": "2024-01-01T00:00:00Z", "revenue": "10.00", "expenses": "4.00", "netIncome": "6.00", "sellCount": 1, "buyCount": 1},
            {"date": "2024-01-02T00:00:00Z", "revenue": "0.00", "expenses": "0.00", "netIncome": "0.00", "sellCount": 0, "buyCount": 0},
            {"date": "2024-01-03T00:00:00Z", "revenue": "5.00", "expenses": "0.00", "netIncome": "5.00", "sellCount": 1, "buyCount": 0},
        ]

    def test_product_summary_ordered_by_net_income(self, admin_user, product, other_product, unit):
        transaction_service.create_transaction(
            {
                "type": "BUY",
                "items": [
                    {"productId": product.id, "unitQuantityId": unit.id, "quantity": "10", "pricePerUnit": "5.00"},
                    {"productId": other_product.id, "unitQuantityId": unit.id, "quantity": "10", "pricePerUnit": "1.00"},
                ],
            },
            created_by=admin_user.id,
        )
        transaction_service.create_transaction(
            {
                "type": "SELL",
                "items": [
                    {"productId": product.id, "unitQuantityId": unit.id, "quantity": "4", "pricePerUnit": "8.00"},
                    {"productId": other_product.id, "unitQuantityId": unit.id, "quantity": "3", "pricePerUnit": "4.00"},
                ],
            },
            created_by=admin_user.id,
        )

        summary = transaction_service.get_product_transaction_summary()
        assert [s["productId"] for s in summary] == [other_product.id, product.id]
        assert summary[0] == {
            "productId": other_product.id,
            "productName": "Teh Celup",
            "revenue": "12.00",
            "expenses": "10.00",
            "netIncome": "2.00",
            "quantitySold": "3",
            "quantityBought": "10",
        }
        assert summary[1]["netIncome"] == "-18.00"

    def test_product_report(self, admin_user, product, unit):
        transaction_service.create_transaction(
            sell_payload(product, unit, type="BUY"), created_by=admin_user.id
        )
        report = transaction_service.get_product_transaction_report(product.id, interval="week")
        assert report["summary"]["expenses"] == "100.00"
        assert report["timeSeries"][-1]["expenses"] == "100.00"

    def test_product_report_without_activity(self, product):
        report = transaction_service.get_product_transaction_report(
            product.id, datetime(2024, 1, 1), datetime(2024, 1, 2)
        )
        assert report["summary"] is None
        assert [p["revenue"] for p in report["timeSeries"]] == ["0.00", "0.00"]
