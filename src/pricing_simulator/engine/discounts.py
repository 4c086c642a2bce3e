"""
Discount Engine - turns a selection plus a global discount into a cost summary.

Discount layers, in order:
1. Free rows contribute nothing
2. Row discount (percentage or fixed, on the unit price or on the row subtotal)
3. Global discount on the one-time and/or monthly bucket subtotals
4. Yearly projection of the monthly bucket
"""
import logging
from typing import Iterable, Optional

from .models import (
    CostSummary,
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    Diagnostic,
    DiagnosticCode,
    DiscountApplication,
    DiscountConfig,
    SCOPE_UNIT,
    Savings,
    SelectedRow,
)
from .units import ONE_TIME_UNITS, is_one_time_unit

logger = logging.getLogger(__name__)

DEFAULT_SETUP_CATEGORY = 'setup'
MONTHS_PER_YEAR = 12


def _reduce(amount: float, value: float, discount_type: str) -> float:
    """Amount after a percentage or fixed reduction, clamped at 0."""
    if discount_type == DISCOUNT_FIXED:
        return max(0.0, amount - value)
    return max(0.0, amount * (1 - value / 100))


def row_total(row: SelectedRow) -> float:
    """Row total after the row's own discount."""
    if row.is_free:
        return 0.0

    discount = row.discount_value or 0

    if row.discount_scope == SCOPE_UNIT:
        effective_unit_price = _reduce(row.unit_price, discount, row.discount_type)
        return effective_unit_price * row.quantity

    subtotal = row.quantity * row.unit_price
    if row.discount_type == DISCOUNT_PERCENTAGE:
        discount_amount = subtotal * (discount / 100)
    else:
        discount_amount = discount * row.quantity
    return max(0.0, subtotal - discount_amount)


def is_one_time(
    row: SelectedRow,
    setup_category: str = DEFAULT_SETUP_CATEGORY,
    one_time_units=ONE_TIME_UNITS
) -> bool:
    """One-time bucket: setup category or a one-time unit. Everything else is monthly."""
    category = (row.item.category or '').strip().lower()
    if category == setup_category.strip().lower():
        return True
    return is_one_time_unit(row.item.unit, one_time_units)


def apply_global_discount(
    one_time_subtotal: float,
    monthly_subtotal: float,
    discount: Optional[DiscountConfig]
) -> tuple[float, float]:
    """(one_time_final, monthly_final) after the global discount for its mode."""
    if discount is None or not discount.value:
        return one_time_subtotal, monthly_subtotal

    try:
        application = DiscountApplication(discount.application)
    except ValueError:
        logger.warning("Unknown global discount application %r, not applied", discount.application)
        return one_time_subtotal, monthly_subtotal

    one_time_final = one_time_subtotal
    monthly_final = monthly_subtotal

    if application in (DiscountApplication.BOTH, DiscountApplication.ONETIME):
        one_time_final = _reduce(one_time_subtotal, discount.value, discount.discount_type)
    if application in (DiscountApplication.BOTH, DiscountApplication.MONTHLY):
        monthly_final = _reduce(monthly_subtotal, discount.value, discount.discount_type)

    return one_time_final, monthly_final


def _malformed(row, error: Exception) -> Diagnostic:
    item_id = getattr(getattr(row, 'item', None), 'id', None)
    logger.warning("Skipping malformed row %s: %s", item_id, error)
    return Diagnostic(code=DiagnosticCode.MALFORMED_ROW, message=str(error), item_id=item_id)


def summarize(
    selection: Iterable[SelectedRow],
    discount_config: Optional[DiscountConfig] = None,
    setup_category: str = DEFAULT_SETUP_CATEGORY,
    one_time_units=ONE_TIME_UNITS
) -> CostSummary:
    """
    Summarize a selection into one-time, monthly and yearly totals with savings.

    A malformed row counts as 0 and is reported in the summary diagnostics;
    the remaining rows are still summarized.
    """
    diagnostics = []
    one_time_subtotal = 0.0
    monthly_subtotal = 0.0
    original_price = 0.0
    free_savings = 0.0
    row_discount_total = 0.0
    category_totals: dict[str, float] = {}
    one_time_count = monthly_count = free_count = 0

    for row in selection:
        try:
            list_price = float(row.quantity) * float(row.unit_price)
            total = row_total(row)
            one_time = is_one_time(row, setup_category, one_time_units)
        except (TypeError, ValueError, AttributeError) as e:
            diagnostics.append(_malformed(row, e))
            continue

        original_price += list_price
        if row.is_free:
            free_savings += list_price
            free_count += 1
        else:
            row_discount_total += list_price - total

        if one_time:
            one_time_subtotal += total
            one_time_count += 1
        else:
            monthly_subtotal += total
            monthly_count += 1

        category = row.item.category
        category_totals[category] = category_totals.get(category, 0.0) + total

    one_time_final, monthly_final = apply_global_discount(one_time_subtotal, monthly_subtotal, discount_config)
    yearly_final = monthly_final * MONTHS_PER_YEAR

    total_final_price = one_time_final + monthly_final
    total_savings = original_price - total_final_price
    savings = Savings(
        original_price=original_price,
        total_final_price=total_final_price,
        total_savings=total_savings,
        free_savings=free_savings,
        discount_savings=total_savings - free_savings,
        savings_rate=total_savings / original_price if original_price > 0 else 0.0,
    )

    return CostSummary(
        one_time_total=one_time_final,
        monthly_total=monthly_final,
        yearly_total=yearly_final,
        total_project_cost=one_time_final + yearly_final,
        savings=savings,
        one_time_subtotal=one_time_subtotal,
        monthly_subtotal=monthly_subtotal,
        row_discount_total=row_discount_total,
        global_discount_amount=(one_time_subtotal - one_time_final) + (monthly_subtotal - monthly_final),
        category_totals=category_totals,
        one_time_item_count=one_time_count,
        monthly_item_count=monthly_count,
        free_item_count=free_count,
        diagnostics=diagnostics,
    )
