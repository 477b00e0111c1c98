"""
CLI command tests.

Verifies:
- catalog commands seed master data and report failures as click errors
- reports commands print JSON
"""

import json
from datetime import datetime

from backoffice.models import Tax, User


class TestCatalogCommands:
    def test_create_user(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(
            args=["catalog", "create-user", "--name", "Ana", "--email", "ana@example.com", "--role", "cashier"]
        )

        assert result.exit_code == 0, result.output
        assert "PASS Created user ana@example.com" in result.output
        assert db_session.query(User).filter_by(email="ana@example.com").one().role == "CASHIER"

    def test_duplicate_email_fails(self, app, db_session, admin_user):
        runner = app.test_cli_runner()
        result = runner.invoke(
            args=["catalog", "create-user", "--name", "Dup", "--email", admin_user.email, "--role", "ADMIN"]
        )
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_create_tax(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["catalog", "create-tax", "--name", "VAT", "--value", "11"])

        assert result.exit_code == 0, result.output
        assert db_session.query(Tax).filter_by(name="VAT").one().value == 11

    def test_create_tax_out_of_range(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["catalog", "create-tax", "--name", "Bad", "--value", "101"])
        assert result.exit_code == 1

    def test_reset_requires_confirmation(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "reset-db"])
        assert result.exit_code == 1
        assert "Refusing" in result.output


class TestReportCommands:
    def test_finance_report(self, app, make_transaction, make_payment):
        make_transaction("SELL", "250.00", datetime(2024, 5, 10))
        make_payment("INFLOW", "100.00", datetime(2024, 5, 11))

        result = app.test_cli_runner().invoke(
            args=["reports", "finance", "--start", "2024-05-01", "--end", "2024-05-31"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["grossSales"]["totalRevenue"] == "250.00"
        assert data["tradeAccount"]["accountsReceivable"] == "150.00"

    def test_finance_report_bad_date(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["reports", "finance", "--start", "soon"])
        assert result.exit_code != 0

    def test_stock_report(self, app, product, unit, stock_in):
        stock_in(product, unit, 3)
        result = app.test_cli_runner().invoke(args=["reports", "stock"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)[0]["quantities"][0]["quantity"] == "3"
