"""
Auto-Add Engine - keeps the selection consistent with configuration triggers.

The remove pass always runs before the add pass. Rows for items without
trigger ownership (manually added) are never removed here.
"""
import logging
from typing import Optional

from .field_values import is_active
from .models import (
    CatalogItem,
    ClientConfiguration,
    Diagnostic,
    SelectedRow,
)
from .quantity import non_numeric_sources, resolve_quantity
from .rule_view import RuleView
from .tiers import price_item

logger = logging.getLogger(__name__)


def active_triggers(item: CatalogItem, config: ClientConfiguration) -> list[str]:
    """Trigger fields of an (effective) item whose value is currently active."""
    return [f for f in item.auto_add_trigger_fields if is_active(config.get(f))]


def should_auto_add(item: CatalogItem, config: ClientConfiguration) -> bool:
    return len(active_triggers(item, config)) > 0


def new_row(
    item: CatalogItem,
    effective: CatalogItem,
    config: ClientConfiguration,
    diagnostics: Optional[list[Diagnostic]] = None
) -> SelectedRow:
    """Fresh row for an auto-added item, priced at its resolved quantity."""
    quantity = resolve_quantity(effective, config)
    price = price_item(item, quantity)
    if diagnostics is not None:
        diagnostics.extend(non_numeric_sources(effective, config))
        diagnostics.extend(price.diagnostics)
    return SelectedRow(item=item, quantity=quantity, unit_price=price.unit_price)


def remove_pass(
    selection: list[SelectedRow],
    config: ClientConfiguration,
    view: RuleView
) -> tuple[list[SelectedRow], list[str]]:
    """
    Drop auto-managed rows whose trigger fields are all inactive.

    Returns (kept_rows, removed_item_ids). Rows whose item is missing from the
    catalog are kept untouched.
    """
    kept = []
    removed = []
    for row in selection:
        effective = view.get(row.item_id)
        if effective is None or not view.is_auto_managed(row.item_id):
            kept.append(row)
            continue
        if should_auto_add(effective, config):
            kept.append(row)
        else:
            logger.debug("Removing %s: no active trigger in %s", row.item_id, effective.auto_add_trigger_fields)
            removed.append(row.item_id)
    return kept, removed


def add_pass(
    selection: list[SelectedRow],
    config: ClientConfiguration,
    view: RuleView,
    diagnostics: Optional[list[Diagnostic]] = None
) -> tuple[list[SelectedRow], list[str]]:
    """
    Append rows for unselected items with an active trigger, in catalog order.

    Returns (rows, added_item_ids). The union is idempotent: an id already in
    the selection is never inserted again.
    """
    rows = list(selection)
    selected_ids = {row.item_id for row in rows}
    added = []

    for effective in view:
        if effective.id in selected_ids:
            continue
        triggers = active_triggers(effective, config)
        if not triggers:
            continue

        row = new_row(view.catalog[effective.id], effective, config, diagnostics)
        logger.debug("Auto-adding %s (qty %s) triggered by %s", effective.id, row.quantity, triggers)
        rows.append(row)
        selected_ids.add(effective.id)
        added.append(effective.id)

    return rows, added
