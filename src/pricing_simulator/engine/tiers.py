"""
Tiered Price Calculator - unit price and row total from a tier table.

Volume tiers: the single tier containing the quantity prices every unit.
A tier is either per-unit (price × quantity) or flat-for-range (the tier
price is the row total regardless of quantity inside the range).
"""
from typing import Optional

from .models import (
    CatalogItem,
    Diagnostic,
    DiagnosticCode,
    PriceResult,
    PricingTier,
    TIER_FLAT,
    TIER_PER_UNIT,
)

VALID_TIER_TYPES = {TIER_PER_UNIT, TIER_FLAT}


def _invalid(item_id: Optional[str], message: str) -> Diagnostic:
    return Diagnostic(code=DiagnosticCode.INVALID_TIER_TABLE, message=message, item_id=item_id)


def validate_tiers(tiers, item_id: Optional[str] = None) -> list[Diagnostic]:
    """
    Check a tier table for data-quality defects.

    A valid table is sorted ascending, contiguous (each tier starts one above
    the previous tier's max), starts at 0 or 1 and ends with an unbounded tier.
    """
    problems = []
    if not tiers:
        return problems

    for tier in tiers:
        if tier.price < 0:
            problems.append(_invalid(item_id, f"tier {format_tier_range(tier)} has negative price {tier.price}"))
        if tier.price_type not in VALID_TIER_TYPES:
            problems.append(_invalid(item_id, f"tier {format_tier_range(tier)} has unknown price type '{tier.price_type}'"))
        if tier.max_quantity is not None and tier.max_quantity < tier.min_quantity:
            problems.append(_invalid(item_id, f"tier {tier.min_quantity}-{tier.max_quantity} has max below min"))

    first = tiers[0]
    if first.min_quantity > 1:
        problems.append(_invalid(item_id, f"quantities below {first.min_quantity} are not covered"))

    for prev, cur in zip(tiers, tiers[1:]):
        if cur.min_quantity < prev.min_quantity:
            problems.append(_invalid(item_id, f"tiers not sorted: {format_tier_range(cur)} after {format_tier_range(prev)}"))
            continue
        if prev.max_quantity is None:
            problems.append(_invalid(item_id, f"unbounded tier {format_tier_range(prev)} is not last"))
            continue
        if cur.min_quantity <= prev.max_quantity:
            problems.append(_invalid(item_id, f"tiers overlap: {format_tier_range(prev)} and {format_tier_range(cur)}"))
        elif cur.min_quantity > prev.max_quantity + 1:
            problems.append(_invalid(
                item_id,
                f"gap between tiers: {prev.max_quantity + 1}-{cur.min_quantity - 1} not covered"
            ))

    if tiers[-1].max_quantity is not None:
        problems.append(_invalid(item_id, f"last tier {format_tier_range(tiers[-1])} is bounded"))

    return problems


def find_tier(tiers, quantity: int) -> Optional[PricingTier]:
    """
    Tier active for a quantity.

    Best effort on defective tables: below the first tier uses the first tier,
    a gap uses the nearest lower tier, above a bounded last tier uses the last.
    """
    if not tiers:
        return None

    for tier in tiers:
        if tier.contains(quantity):
            return tier

    below = [t for t in tiers if t.min_quantity <= quantity]
    if not below:
        return min(tiers, key=lambda t: t.min_quantity)
    return max(below, key=lambda t: t.min_quantity)


def _tier_price(tier: PricingTier, quantity: int) -> tuple[float, float]:
    """(unit_price, row_total) for a quantity inside a tier."""
    if quantity <= 0:
        unit = tier.price if tier.price_type == TIER_PER_UNIT else 0.0
        return unit, 0.0
    if tier.price_type == TIER_FLAT:
        return tier.price / quantity, tier.price
    return tier.price, tier.price * quantity


def price_item(item: CatalogItem, quantity: int) -> PriceResult:
    """
    Unit price and row total for an item at a quantity.

    Flat items use default_price with no tier lookup. Tiered items with an
    empty tier table fall back to default_price as well. A quantity no tier
    covers is reported in the result's diagnostics, never raised. Table-wide
    defects come from validate_tiers, run once per pass by RuleView.
    """
    quantity = max(0, quantity)

    if not item.is_tiered or not item.tiers:
        return PriceResult(
            unit_price=item.default_price,
            row_total=item.default_price * quantity,
        )

    tier = find_tier(item.tiers, quantity)
    unit_price, row_total = _tier_price(tier, quantity)

    diagnostics = []
    if quantity > 0 and not tier.contains(quantity):
        diagnostics.append(_invalid(
            item.id,
            f"quantity {quantity} not covered by any tier, priced with {format_tier_range(tier)}"
        ))

    return PriceResult(unit_price=unit_price, row_total=row_total, tier=tier, diagnostics=diagnostics)


def boundary_drops(item: CatalogItem) -> list[Diagnostic]:
    """
    Tier boundaries where stepping the quantity by 1 lowers the row total.

    Volume discounts commonly do this on purpose, so it is informational only.
    """
    drops = []
    if not item.is_tiered or not item.tiers:
        return drops

    for tier in item.tiers[1:]:
        q = tier.min_quantity
        if q <= 0:
            continue
        before = price_item(item, q - 1).row_total
        after = price_item(item, q).row_total
        if after < before:
            drops.append(Diagnostic(
                code=DiagnosticCode.NON_MONOTONIC_TIER_BOUNDARY,
                message=f"row total drops from {before:.2f} at {q - 1} to {after:.2f} at {q}",
                item_id=item.id,
            ))
    return drops


def format_tier_range(tier: PricingTier) -> str:
    """Format tier range for display."""
    if tier.max_quantity is None:
        return f"{tier.min_quantity:,}+"
    return f"{tier.min_quantity:,} - {tier.max_quantity:,}"
