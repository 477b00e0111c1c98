"""
Inventory ledger tests.

Verifies:
- Stock never goes negative; a rejected batch leaves the ledger unchanged
- Summary omits pairs that net to zero
- Time series is cumulative with an opening balance and continuous buckets
- Compare-and-commit rejects a writer whose snapshot went stale
"""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import update

from backoffice.extensions import db
from backoffice.models import InventoryHistory, Product
from backoffice.services import inventory_service
from backoffice.services.concurrency import compare_and_bump
from backoffice.services.inventory_service import StockMovement
from backoffice.validation import ConflictError, NotFoundError, ValidationError


def add_history(db_session, user, product, unit, quantity, created_at):
    row = InventoryHistory(
        product_id=product.id,
        unit_quantity_id=unit.id,
        quantity=Decimal(quantity),
        created_at=created_at,
        created_by=user.id,
    )
    db_session.add(row)
    db_session.commit()
    return row


# =============================================================================
# MANIPULATE INVENTORY
# =============================================================================


class TestManipulateInventory:
    def test_outbound_beyond_stock_is_rejected_and_ledger_unchanged(self, db_session, admin_user, product, unit, stock_in):
        stock_in(product, unit, 10)

        with pytest.raises(ConflictError) as exc:
            inventory_service.manipulate_inventory(
                items=[{"productId": product.id, "unitQuantityId": unit.id, "quantity": -15}],
                created_by=admin_user.id,
            )

        assert exc.value.code == "insufficient_stock"
        assert exc.value.field == "items[0].quantity"
        assert inventory_service.get_stock(product.id, unit.id) == Decimal("10")
        assert db_session.query(InventoryHistory).count() == 1

    def test_batch_is_all_or_nothing(self, db_session, admin_user, product, other_product, unit, stock_in):
        stock_in(product, unit, 5)
        stock_in(other_product, unit, 1)

        with pytest.raises(ConflictError):
            inventory_service.manipulate_inventory(
                items=[
                    {"productId": product.id, "unitQuantityId": unit.id, "quantity": "-5"},
                    {"productId": other_product.id, "unitQuantityId": unit.id, "quantity": "-2"},
                ],
                created_by=admin_user.id,
            )

        assert inventory_service.get_stock(product.id, unit.id) == Decimal("5")
        assert inventory_service.get_stock(other_product.id, unit.id) == Decimal("1")

    def test_movements_in_one_batch_apply_in_order(self, admin_user, product, unit):
        rows = inventory_service.manipulate_inventory(
            items=[
                {"productId": product.id, "unitQuantityId": unit.id, "quantity": "4"},
                {"productId": product.id, "unitQuantityId": unit.id, "quantity": "-4"},
            ],
            remark="in and out",
            created_by=admin_user.id,
        )
        assert len(rows) == 2
        assert all(row.remark == "in and out" for row in rows)
        assert inventory_service.get_stock(product.id, unit.id) == Decimal("0")

    def test_exact_drain_to_zero_is_allowed(self, admin_user, product, unit, stock_in):
        stock_in(product, unit, "2.5")
        inventory_service.manipulate_inventory(
            items=[{"productId": product.id, "unitQuantityId": unit.id, "quantity": "-2.5"}],
            created_by=admin_user.id,
        )
        assert inventory_service.get_stock(product.id, unit.id) == Decimal("0")

    def test_units_are_tracked_separately(self, admin_user, product, unit, box_unit, stock_in):
        stock_in(product, box_unit, 3)
        with pytest.raises(ConflictError):
            inventory_service.manipulate_inventory(
                items=[{"productId": product.id, "unitQuantityId": unit.id, "quantity": "-1"}],
                created_by=admin_user.id,
            )

    def test_bumps_product_stock_version(self, db_session, product, unit, stock_in):
        stock_in(product, unit, 1)
        stock_in(product, unit, 1)
        assert db_session.get(Product, product.id).stock_version == 2

    def test_unknown_product(self, admin_user, unit):
        with pytest.raises(NotFoundError):
            inventory_service.manipulate_inventory(
                items=[{"productId": 999, "unitQuantityId": unit.id, "quantity": "1"}],
                created_by=admin_user.id,
            )

    def test_soft_deleted_product_cannot_move(self, db_session, admin_user, product, unit):
        product.deleted_at = datetime(2024, 1, 1)
        db_session.commit()
        with pytest.raises(NotFoundError):
            inventory_service.manipulate_inventory(
                items=[{"productId": product.id, "unitQuantityId": unit.id, "quantity": "1"}],
                created_by=admin_user.id,
            )

    @pytest.mark.parametrize("quantity", ["0", "1.00001", "abc", None])
    def test_bad_quantity(self, admin_user, product, unit, quantity):
        with pytest.raises(ValidationError):
            inventory_service.manipulate_inventory(
                items=[{"productId": product.id, "unitQuantityId": unit.id, "quantity": quantity}],
                created_by=admin_user.id,
            )

    def test_stale_snapshot_loses_the_race(self, db_session, admin_user, product, unit, stock_in):
        """A writer that validated against version N cannot commit after another writer moved it to N+1."""
        stock_in(product, unit, 10)
        stale_version = db_session.get(Product, product.id).stock_version

        stock_in(product, unit, 1)

        with pytest.raises(ConflictError) as exc:
            compare_and_bump(Product, product.id, "stock_version", stale_version)
        assert exc.value.code == "concurrent_write"
        db.session.rollback()

    def test_competing_commit_between_check_and_write(self, monkeypatch, db_session, admin_user, product, unit, stock_in):
        """Another writer commits after our stock check; manipulate_inventory must reject and write nothing."""
        stock_in(product, unit, 10)
        real_validate = inventory_service.validate_movements
        competed = []

        def validate_then_compete(movements):
            result = real_validate(movements)
            if not competed:
                competed.append(True)
                db.session.add(InventoryHistory(
                    product_id=product.id,
                    unit_quantity_id=unit.id,
                    quantity=Decimal("-8"),
                    remark="competing writer",
                    created_at=datetime(2024, 1, 1),
                    created_by=admin_user.id,
                ))
                db.session.execute(
                    update(Product)
                    .where(Product.id == product.id)
                    .values(stock_version=Product.stock_version + 1)
                )
                db.session.commit()
            return result

        monkeypatch.setattr(inventory_service, "validate_movements", validate_then_compete)

        with pytest.raises(ConflictError) as exc:
            inventory_service.manipulate_inventory(
                items=[{"productId": product.id, "unitQuantityId": unit.id, "quantity": "-5"}],
                created_by=admin_user.id,
            )

        assert exc.value.code == "concurrent_write"
        assert competed == [True]
        assert inventory_service.get_stock(product.id, unit.id) == Decimal("2")
        remarks = [row.remark for row in db_session.query(InventoryHistory).order_by(InventoryHistory.id)]
        assert remarks == ["opening stock", "competing writer"]


class TestValidateMovements:
    def test_returns_resulting_totals(self, product, other_product, unit, stock_in):
        stock_in(product, unit, 10)
        result = inventory_service.validate_movements([
            StockMovement(product.id, unit.id, Decimal("-3")),
            StockMovement(other_product.id, unit.id, Decimal("2")),
            StockMovement(product.id, unit.id, Decimal("-7")),
        ])
        assert result == {(product.id, unit.id): Decimal("0"), (other_product.id, unit.id): Decimal("2")}

    def test_running_sum_checked_per_step(self, product, unit, stock_in):
        stock_in(product, unit, 1)
        with pytest.raises(ConflictError):
            inventory_service.validate_movements([
                StockMovement(product.id, unit.id, Decimal("-2")),
                StockMovement(product.id, unit.id, Decimal("5")),
            ])


# =============================================================================
# SUMMARY
# =============================================================================


class TestInventorySummary:
    def test_groups_by_product_and_omits_zero_pairs(self, admin_user, product, other_product, unit, box_unit, stock_in):
        stock_in(product, unit, 10)
        stock_in(product, box_unit, 2)
        stock_in(other_product, unit, 1)
        inventory_service.manipulate_inventory(
            items=[{"productId": other_product.id, "unitQuantityId": unit.id, "quantity": "-1"}],
            created_by=admin_user.id,
        )

        summary = inventory_service.get_inventory_summary()

        assert summary == [
            {
                "productId": product.id,
                "productName": "Kopi Bubuk 250g",
                "quantities": [
                    {"unitQuantityId": unit.id, "unitQuantityName": "pcs", "quantity": "10"},
                    {"unitQuantityId": box_unit.id, "unitQuantityName": "box", "quantity": "2"},
                ],
            }
        ]

    def test_empty_ledger(self, db_session):
        assert inventory_service.get_inventory_summary() == []

    def test_filter_by_product(self, product, other_product, unit, stock_in):
        stock_in(product, unit, 1)
        stock_in(other_product, unit, 2)
        summary = inventory_service.get_inventory_summary(other_product.id)
        assert [s["productId"] for s in summary] == [other_product.id]


# =============================================================================
# TIME SERIES
# =============================================================================


class TestInventoryTimeSeries:
    def test_cumulative_with_opening_balance(self, db_session, admin_user, product, unit):
        add_history(db_session, admin_user, product, unit, "5", datetime(2023, 12, 31, 12, 0))
        add_history(db_session, admin_user, product, unit, "3", datetime(2024, 1, 2, 9, 0))
        add_history(db_session, admin_user, product, unit, "-2", datetime(2024, 1, 2, 17, 0))
        add_history(db_session, admin_user, product, unit, "-6", datetime(2024, 1, 4, 8, 0))

        result = inventory_service.get_inventory_time_series(
            product.id, datetime(2024, 1, 1), datetime(2024, 1, 4, 23, 59), "day"
        )

        assert len(result["series"]) == 1
        series = result["series"][0]
        assert series["openingQuantity"] == "5"
        assert series["points"] == [
            {"date": "2024-01-01T00:00:00Z", "quantity": "5"},
            {"date": "2024-01-02T00:00:00Z", "quantity": "6"},
            {"date": "2024-01-03T00:00:00Z", "quantity": "6"},
            {"date": "2024-01-04T00:00:00Z", "quantity": "0"},
        ]

    def test_monthly_buckets(self, db_session, admin_user, product, unit):
        add_history(db_session, admin_user, product, unit, "10", datetime(2024, 1, 15))
        add_history(db_session, admin_user, product, unit, "-4", datetime(2024, 3, 1))

        result = inventory_service.get_inventory_time_series(
            product.id, datetime(2024, 1, 1), datetime(2024, 3, 31), "month"
        )
        assert [p["quantity"] for p in result["series"][0]["points"]] == ["10", "10", "6"]

    def test_one_series_per_unit(self, db_session, admin_user, product, unit, box_unit):
        add_history(db_session, admin_user, product, unit, "1", datetime(2024, 1, 1, 1))
        add_history(db_session, admin_user, product, box_unit, "2", datetime(2024, 1, 1, 2))

        result = inventory_service.get_inventory_time_series(
            product.id, datetime(2024, 1, 1), datetime(2024, 1, 1, 23), "day"
        )
        assert [s["unitQuantityName"] for s in result["series"]] == ["pcs", "box"]

        only_box = inventory_service.get_inventory_time_series(
            product.id, datetime(2024, 1, 1), datetime(2024, 1, 1, 23), "day", box_unit.id
        )
        assert [s["unitQuantityId"] for s in only_box["series"]] == [box_unit.id]

    def test_bad_interval(self, product):
        with pytest.raises(ValidationError):
            inventory_service.get_inventory_time_series(
                product.id, datetime(2024, 1, 1), datetime(2024, 1, 2), "hour"
            )

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.get_inventory_time_series(404)
