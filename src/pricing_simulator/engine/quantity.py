"""
Quantity Resolver - derives an item's quantity from configuration fields.
"""
import logging
import math
from typing import Optional

from .field_values import is_active, is_number, numeric_value
from .models import CatalogItem, ClientConfiguration, Diagnostic, DiagnosticCode

logger = logging.getLogger(__name__)


def has_quantity_source(item: CatalogItem) -> bool:
    return len(item.quantity_source_fields) > 0


def any_trigger_active(item: CatalogItem, config: ClientConfiguration) -> bool:
    return any(is_active(config.get(f)) for f in item.auto_add_trigger_fields)


def resolve_quantity(
    item: CatalogItem,
    config: ClientConfiguration,
    current_quantity: Optional[int] = None
) -> int:
    """
    Resolve the quantity for an item from the client configuration.

    Sums the numeric values of the item's quantity source fields and applies
    the multiplier. Fractions round up, negatives clamp to 0. A zero sum on an
    item with an active trigger field resolves to 1, so an item added for a
    boolean reason still has a usable quantity.

    Items without source fields are manual: the current quantity is returned
    unchanged (1 for a row that does not exist yet).
    """
    if not has_quantity_source(item):
        return 1 if current_quantity is None else current_quantity

    total = sum(numeric_value(config.get(f)) for f in item.quantity_source_fields)
    multiplier = item.quantity_multiplier if item.quantity_multiplier is not None else 1
    # round first so float noise (100 * 1.1) does not bump the ceiling
    quantity = max(0, math.ceil(round(total * multiplier, 6)))

    if quantity == 0 and any_trigger_active(item, config):
        return 1
    return quantity


def non_numeric_sources(item: CatalogItem, config: ClientConfiguration) -> list[Diagnostic]:
    """Source fields that are present but hold a non-numeric value (counted as 0)."""
    diagnostics = []
    for field_id in item.quantity_source_fields:
        value = config.get(field_id)
        if value is not None and not is_number(value):
            logger.debug("Quantity source %s for %s is non-numeric (%r)", field_id, item.id, value)
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.NON_NUMERIC_QUANTITY_SOURCE,
                message=f"field '{field_id}' holds {type(value).__name__} value {value!r}, counted as 0",
                item_id=item.id,
            ))
    return diagnostics


def describe_quantity_source(item: CatalogItem, labels: Optional[dict[str, str]] = None) -> Optional[str]:
    """Human-readable description of which config fields drive the quantity."""
    if not has_quantity_source(item):
        return None

    labels = labels or {}
    combined = " + ".join(labels.get(f, f) for f in item.quantity_source_fields)
    multiplier = item.quantity_multiplier if item.quantity_multiplier is not None else 1

    if multiplier == 1:
        return f"Automatically calculated from: {combined}"
    return f"Automatically calculated from: ({combined}) × {multiplier:g}"
