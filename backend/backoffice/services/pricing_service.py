# Overview: Pure pricing engine; computes frozen item, discount and tax figures for a new transaction.

"""
Transaction Pricing

DESIGN:
- Pure function of its inputs. Catalog rows (product, unit, tax) are resolved
  by the caller and passed in as specs; nothing here touches the session.
- Line totals are exact (quantity x price_per_unit, up to 6 places). Every money
  figure frozen from them is rounded half-up to cents exactly once.
- Discounts are NOT stacked. Item-scoped discounts reduce their own line.
  Transaction-scoped discounts are each computed against the same base
  (sum of item net totals), so declaration order never changes the result.
- Taxes are additive on the discounted subtotal, never compounded.

Identities that always hold on the result:
    subtotal    == round_money(sum(item.net_total)) - sum(transaction-scoped discount amounts)
    total_tax   == sum(tax.amount)
    grand_total == subtotal + total_tax
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from ..models.transactions import (
    DISCOUNT_PERCENTAGE,
    VALID_DISCOUNT_TYPES,
    VALID_TRANSACTION_TYPES,
)
from ..money import HUNDRED, MAX_LINE_TOTAL, MAX_MONEY, ZERO, percent_of, round_money, sum_money
from ..validation import ValidationError


# =============================================================================
# INPUT SPECS
# =============================================================================

@dataclass(frozen=True)
class ItemSpec:
    product_id: int
    product_name: str
    unit_quantity_id: int
    unit_quantity_name: str
    quantity: Decimal
    price_per_unit: Decimal
    remark: Optional[str] = None


@dataclass(frozen=True)
class DiscountSpec:
    """item_index is the 0-based position of the target item, None for the whole transaction."""
    type: str
    percentage: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    item_index: Optional[int] = None


@dataclass(frozen=True)
class TaxSpec:
    tax_id: int
    name: str
    percentage: Decimal


# =============================================================================
# FROZEN RESULT
# =============================================================================

@dataclass(frozen=True)
class PricedItem:
    index: int
    product_id: int
    product_name: str
    unit_quantity_id: int
    unit_quantity_name: str
    quantity: Decimal
    price_per_unit: Decimal
    total: Decimal
    discount_total: Decimal
    net_total: Decimal
    remark: Optional[str] = None


@dataclass(frozen=True)
class PricedDiscount:
    type: str
    percentage: Optional[Decimal]
    amount: Decimal
    item_index: Optional[int]


@dataclass(frozen=True)
class PricedTax:
    tax_id: int
    name: str
    percentage: Decimal
    amount: Decimal


@dataclass(frozen=True)
class PricedTransaction:
    type: str
    items: tuple[PricedItem, ...]
    discounts: tuple[PricedDiscount, ...]
    taxes: tuple[PricedTax, ...]
    subtotal: Decimal
    total_tax: Decimal
    grand_total: Decimal


# =============================================================================
# ENGINE
# =============================================================================

def _check_items(items: Sequence[ItemSpec]) -> None:
    if not items:
        raise ValidationError(
            "Transaction must have at least one item", code="invalid_transaction", field="items"
        )
    for idx, item in enumerate(items):
        if item.quantity <= 0:
            raise ValidationError(
                "quantity must be greater than 0", code="invalid_input", field=f"items[{idx}].quantity"
            )
        if item.price_per_unit < 0:
            raise ValidationError(
                "pricePerUnit must be >= 0", code="invalid_input", field=f"items[{idx}].pricePerUnit"
            )


def _discount_amount(discount: DiscountSpec, base: Decimal, field: str) -> Decimal:
    """Frozen amount of one discount against its base. Never sees other discounts."""
    if discount.type not in VALID_DISCOUNT_TYPES:
        raise ValidationError(
            f"type must be one of {VALID_DISCOUNT_TYPES}", code="invalid_discount", field=f"{field}.type"
        )

    if discount.type == DISCOUNT_PERCENTAGE:
        pct = discount.percentage
        if pct is None or pct < 0 or pct > HUNDRED:
            raise ValidationError(
                "percentage must be between 0 and 100", code="invalid_discount", field=f"{field}.percentage"
            )
        return percent_of(pct, base)

    amount = discount.amount
    if amount is None or amount < 0:
        raise ValidationError("amount must be >= 0", code="invalid_discount", field=f"{field}.amount")
    amount = round_money(amount)
    if amount > round_money(base):
        raise ValidationError(
            f"Fixed discount {amount} exceeds its base {base}", code="invalid_discount", field=f"{field}.amount"
        )
    return amount


def price_transaction(
    *,
    items: Sequence[ItemSpec],
    discounts: Sequence[DiscountSpec] = (),
    taxes: Sequence[TaxSpec] = (),
    transaction_type: str,
) -> PricedTransaction:
    """
    Compute and freeze all totals for a new transaction.

    Raises ValidationError before anything is produced; there is no partial result.
    """
    if transaction_type not in VALID_TRANSACTION_TYPES:
        raise ValidationError(
            f"type must be one of {VALID_TRANSACTION_TYPES}", code="invalid_input", field="type"
        )
    _check_items(items)

    seen_tax_ids: set[int] = set()
    for idx, tax in enumerate(taxes):
        if tax.tax_id in seen_tax_ids:
            raise ValidationError(f"Duplicate tax {tax.tax_id}", code="invalid_input", field=f"taxIds[{idx}]")
        seen_tax_ids.add(tax.tax_id)

    # 1. Line totals, exact
    line_totals = [item.quantity * item.price_per_unit for item in items]
    for idx, total in enumerate(line_totals):
        if total > MAX_LINE_TOTAL:
            raise ValidationError(
                f"Item total exceeds the maximum of {MAX_LINE_TOTAL}",
                code="invalid_input",
                field=f"items[{idx}].quantity",
            )

    # 2. Item-scoped discounts, each against its own line total
    item_discount_totals = [ZERO] * len(items)
    discount_amounts: dict[int, Decimal] = {}
    for d_idx, discount in enumerate(discounts):
        if discount.item_index is None:
            continue
        field = f"discounts[{d_idx}]"
        if discount.item_index < 0 or discount.item_index >= len(items):
            raise ValidationError(
                f"transactionItemIndex {discount.item_index} is out of range",
                code="invalid_discount",
                field=f"{field}.transactionItemIndex",
            )
        amount = _discount_amount(discount, line_totals[discount.item_index], field)
        item_discount_totals[discount.item_index] += amount
        if item_discount_totals[discount.item_index] > round_money(line_totals[discount.item_index]):
            raise ValidationError(
                f"Discounts on item {discount.item_index} exceed its total",
                code="invalid_discount",
                field=field,
            )
        discount_amounts[d_idx] = amount

    priced_items = tuple(
        PricedItem(
            index=idx,
            product_id=item.product_id,
            product_name=item.product_name,
            unit_quantity_id=item.unit_quantity_id,
            unit_quantity_name=item.unit_quantity_name,
            quantity=item.quantity,
            price_per_unit=item.price_per_unit,
            total=line_totals[idx],
            discount_total=item_discount_totals[idx],
            net_total=line_totals[idx] - item_discount_totals[idx],
            remark=item.remark,
        )
        for idx, item in enumerate(items)
    )

    # 3. Transaction-scoped discounts, all against the same exact base
    # A fully discounted line may sit up to half a cent below zero
    base = max(ZERO, sum_money(item.net_total for item in priced_items))
    rounded_base = round_money(base)
    transaction_discount_total = ZERO
    for d_idx, discount in enumerate(discounts):
        if discount.item_index is not None:
            continue
        amount = _discount_amount(discount, base, f"discounts[{d_idx}]")
        transaction_discount_total += amount
        discount_amounts[d_idx] = amount

    if transaction_discount_total > rounded_base:
        raise ValidationError(
            "Transaction discounts exceed the transaction total", code="invalid_discount", field="discounts"
        )

    # 4. Subtotal, the only place the exact line totals are rounded
    subtotal = rounded_base - transaction_discount_total
    if subtotal > MAX_MONEY:
        raise ValidationError(
            f"Transaction subtotal exceeds the maximum of {MAX_MONEY}", code="invalid_input", field="items"
        )

    # 5. Taxes, additive on the discounted subtotal
    priced_taxes = tuple(
        PricedTax(tax_id=tax.tax_id, name=tax.name, percentage=tax.percentage, amount=percent_of(tax.percentage, subtotal))
        for tax in taxes
    )
    total_tax = sum_money(tax.amount for tax in priced_taxes)

    priced_discounts = tuple(
        PricedDiscount(
            type=discount.type,
            percentage=discount.percentage if discount.type == DISCOUNT_PERCENTAGE else None,
            amount=discount_amounts[d_idx],
            item_index=discount.item_index,
        )
        for d_idx, discount in enumerate(discounts)
    )

    # 6. Grand total
    grand_total = subtotal + total_tax
    if grand_total > MAX_MONEY:
        raise ValidationError(
            f"Transaction grand total exceeds the maximum of {MAX_MONEY}", code="invalid_input", field="items"
        )

    return PricedTransaction(
        type=transaction_type,
        items=priced_items,
        discounts=priced_discounts,
        taxes=priced_taxes,
        subtotal=subtotal,
        total_tax=total_tax,
        grand_total=grand_total,
    )
