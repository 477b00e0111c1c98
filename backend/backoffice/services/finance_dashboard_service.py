# Overview: Service-layer finance dashboard; accrual (transactions) vs cash (payments) position over a date range.

"""
Finance Dashboard

Every figure is a linear combination of four aggregates over the range,
each source filtered on its own created_at:

    revenue  = SUM(grand_total) of SELL transactions
    expenses = SUM(grand_total) of BUY transactions
    inflow   = SUM(amount) of INFLOW payments
    outflow  = SUM(amount) of OUTFLOW payments

Trade account and deferred items are reported raw and signed, so
overpayment shows up as a negative receivable instead of disappearing.
The balance sheet only counts a deferred item when it is positive:
    current_assets      = receivable + max(0, unearned_revenue)
    current_liabilities = payable    + max(0, prepaid_expenses)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Payment, Transaction
from ..models.payments import DIRECTION_INFLOW, DIRECTION_OUTFLOW
from ..models.transactions import TRANSACTION_TYPE_BUY, TRANSACTION_TYPE_SELL
from ..money import ZERO, money_str
from ..time_utils import to_utc_z


@dataclass(frozen=True)
class GrossSales:
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal

    def to_dict(self) -> dict:
        return {
            "totalRevenue": money_str(self.total_revenue),
            "totalExpenses": money_str(self.total_expenses),
            "netIncome": money_str(self.net_income),
        }


@dataclass(frozen=True)
class Cashflow:
    inflow: Decimal
    outflow: Decimal
    net_cash_flow: Decimal

    def to_dict(self) -> dict:
        return {
            "inflow": money_str(self.inflow),
            "outflow": money_str(self.outflow),
            "netCashFlow": money_str(self.net_cash_flow),
        }


@dataclass(frozen=True)
class TradeAccount:
    accounts_receivable: Decimal
    accounts_payable: Decimal
    outstanding_balance: Decimal

    def to_dict(self) -> dict:
        return {
            "accountsReceivable": money_str(self.accounts_receivable),
            "accountsPayable": money_str(self.accounts_payable),
            "outstandingBalance": money_str(self.outstanding_balance),
        }


@dataclass(frozen=True)
class DeferredItems:
    unearned_revenue: Decimal
    prepaid_expenses: Decimal
    net_deferred_position: Decimal

    def to_dict(self) -> dict:
        return {
            "unearnedRevenue": money_str(self.unearned_revenue),
            "prepaidExpenses": money_str(self.prepaid_expenses),
            "netDeferredPosition": money_str(self.net_deferred_position),
        }


@dataclass(frozen=True)
class BalanceSheetPosition:
    current_assets: Decimal
    current_liabilities: Decimal
    net_working_capital: Decimal

    def to_dict(self) -> dict:
        return {
            "currentAssets": money_str(self.current_assets),
            "currentLiabilities": money_str(self.current_liabilities),
            "netWorkingCapital": money_str(self.net_working_capital),
        }


@dataclass(frozen=True)
class FinanceDashboard:
    start: datetime | None
    end: datetime | None
    gross_sales: GrossSales
    cashflow: Cashflow
    trade_account: TradeAccount
    deferred_items: DeferredItems
    balance_sheet_position: BalanceSheetPosition

    def to_dict(self) -> dict:
        return {
            "startDate": to_utc_z(self.start),
            "endDate": to_utc_z(self.end),
            "grossSales": self.gross_sales.to_dict(),
            "cashflow": self.cashflow.to_dict(),
            "tradeAccount": self.trade_account.to_dict(),
            "deferredItems": self.deferred_items.to_dict(),
            "balanceSheetPosition": self.balance_sheet_position.to_dict(),
        }


def build_dashboard(
    *,
    revenue: Decimal,
    expenses: Decimal,
    inflow: Decimal,
    outflow: Decimal,
    start: datetime | None = None,
    end: datetime | None = None,
) -> FinanceDashboard:
    """Derive all five blocks from the four input aggregates. No I/O."""
    receivable = revenue - inflow
    payable = expenses - outflow
    unearned = inflow - revenue
    prepaid = outflow - expenses

    assets = receivable + max(ZERO, unearned)
    liabilities = payable + max(ZERO, prepaid)

    return FinanceDashboard(
        start=start,
        end=end,
        gross_sales=GrossSales(revenue, expenses, revenue - expenses),
        cashflow=Cashflow(inflow, outflow, inflow - outflow),
        trade_account=TradeAccount(receivable, payable, receivable - payable),
        deferred_items=DeferredItems(unearned, prepaid, unearned - prepaid),
        balance_sheet_position=BalanceSheetPosition(assets, liabilities, assets - liabilities),
    )


def _sum_by(column, key_column, model, start: datetime | None, end: datetime | None) -> dict:
    query = db.session.query(key_column, func.sum(column)).group_by(key_column)
    if start:
        query = query.filter(model.created_at >= start)
    if end:
        query = query.filter(model.created_at <= end)
    return {key: (total if total is not None else ZERO) for key, total in query.all()}


def get_finance_dashboard(start: datetime | None = None, end: datetime | None = None) -> FinanceDashboard:
    """
    Finance dashboard for an inclusive [start, end] range.

    An empty range yields all-zero blocks, never an error.
    """
    by_type = _sum_by(Transaction.grand_total, Transaction.type, Transaction, start, end)
    by_direction = _sum_by(Payment.amount, Payment.direction, Payment, start, end)

    return build_dashboard(
        revenue=by_type.get(TRANSACTION_TYPE_SELL, ZERO),
        expenses=by_type.get(TRANSACTION_TYPE_BUY, ZERO),
        inflow=by_direction.get(DIRECTION_INFLOW, ZERO),
        outflow=by_direction.get(DIRECTION_OUTFLOW, ZERO),
        start=start,
        end=end,
    )
