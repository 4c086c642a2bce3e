"""
Quote Engine - file-backed facade over reconciliation and cost summary.

Loads the built catalog and compiled auto-add rules from disk, owns a
ReconciliationController for the current client, and turns its selection
into a Quote with a readable trace.
"""
import logging
from dataclasses import replace
from typing import Callable, Optional

from ..config.settings import get_settings, Settings
from ..data.build_catalog import get_file_hash, load_catalog, load_catalog_json
from ..rules.compile_rules import load_rule_set
from .discounts import summarize
from .models import (
    AutoAddRuleSet,
    CatalogItem,
    ClientConfiguration,
    DiscountConfig,
    PriceResult,
    Quote,
    SelectedRow,
)
from .quantity import has_quantity_source, resolve_quantity
from .reconciler import ReconciliationController
from .rule_view import RuleView
from .tiers import price_item

logger = logging.getLogger(__name__)


class QuoteEngine:
    """
    Quote pipeline: Configuration → Reconcile → Price → Summarize.

    Resolution order:
    1. Load catalog.json (or build it in memory from the catalog sheets)
    2. Load compiled auto-add rules, if any
    3. Reconcile the selection on every configuration/catalog/rules change
    4. Summarize the selection with the global discount
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        on_selection_changed: Optional[Callable[[list[SelectedRow]], None]] = None
    ):
        """Initialize engine with catalog and auto-add rules."""
        self.settings = settings or get_settings()
        self.on_selection_changed = on_selection_changed

        self.catalog = self._load_catalog()
        self.rules = self._load_rules()
        self.catalog_hash = get_file_hash(self._catalog_path())
        self.rules_hash = get_file_hash(self.settings.compiled_rules) if self.settings.compiled_rules else ""

        self.controller = ReconciliationController(
            catalog=self.catalog,
            rules=self.rules,
            on_publish=self._published,
        )

    def _catalog_path(self):
        if self.settings.catalog_json.exists():
            return self.settings.catalog_json
        return self.settings.catalog_source

    def _load_catalog(self) -> list[CatalogItem]:
        catalog_json = self.settings.catalog_json
        if catalog_json.exists():
            return load_catalog_json(catalog_json)

        if not self.settings.catalog_source.exists():
            raise FileNotFoundError(
                f"catalog.json not found at {catalog_json} and no catalog sheet at "
                f"{self.settings.catalog_source}. Execute build_catalog.py first."
            )

        logger.info("catalog.json not built, loading %s directly", self.settings.catalog_source)
        items, report = load_catalog(self.settings.catalog_source, self.settings.tiers_source)
        for error in report["errors"]:
            logger.error(error)
        for warning in report["warnings"]:
            logger.warning(warning)
        return items

    def _load_rules(self) -> AutoAddRuleSet:
        return load_rule_set(self.settings.compiled_rules)

    def _published(self, selection: list[SelectedRow]):
        if self.on_selection_changed is not None:
            self.on_selection_changed(selection)

    def reload_data(self):
        """Reload catalog and rules from disk and reconcile the current selection."""
        self.catalog = self._load_catalog()
        self.rules = self._load_rules()
        self.catalog_hash = get_file_hash(self._catalog_path())
        self.rules_hash = get_file_hash(self.settings.compiled_rules) if self.settings.compiled_rules else ""
        self.controller.update_inputs(catalog=self.catalog, rules=self.rules)

    @property
    def selection(self) -> list[SelectedRow]:
        return self.controller.selection

    @property
    def configuration(self) -> ClientConfiguration:
        return self.controller.configuration

    def get_item(self, item_id: str) -> Optional[CatalogItem]:
        """Catalog record by id."""
        for item in self.catalog:
            if item.id == item_id:
                return item
        return None

    def price(self, item_id: str, quantity: int) -> PriceResult:
        """Unit price and row total for a catalog item at a quantity."""
        item = self.get_item(item_id)
        if item is None:
            raise KeyError(f"Item {item_id} not found in catalog")
        return price_item(item, quantity)

    def apply_configuration(self, configuration: ClientConfiguration) -> list[SelectedRow]:
        """Replace the client configuration and reconcile the selection against it."""
        self.controller.update_configuration(configuration)
        return self.controller.selection

    def update_rules(self, rules: AutoAddRuleSet) -> list[SelectedRow]:
        """Replace the in-memory auto-add rules and reconcile."""
        self.rules = rules
        self.controller.update_rules(rules)
        return self.controller.selection

    def set_selection(self, selection: list[SelectedRow]):
        """Explicit user edit of the selection."""
        self.controller.set_selection(selection)

    def add_item(self, item_id: str, quantity: Optional[int] = None) -> SelectedRow:
        """
        Add a catalog item to the selection by hand.

        Items with a quantity source get their synced quantity; others start
        at the given quantity (default 1). Adding an item already selected
        returns the existing row.
        """
        for row in self.selection:
            if row.item_id == item_id:
                return row

        item = self.get_item(item_id)
        if item is None:
            raise KeyError(f"Item {item_id} not found in catalog")

        effective = RuleView.build(self.catalog, self.rules).get(item_id) or item
        if has_quantity_source(effective):
            quantity = resolve_quantity(effective, self.configuration)
        elif quantity is None:
            quantity = 1

        row = SelectedRow(item=item, quantity=max(0, quantity), unit_price=price_item(item, quantity).unit_price)
        self.set_selection(self.selection + [row])
        return row

    def remove_item(self, item_id: str) -> bool:
        """Remove a row from the selection; returns False if it was not selected."""
        remaining = [row for row in self.selection if row.item_id != item_id]
        if len(remaining) == len(self.selection):
            return False
        self.set_selection(remaining)
        return True

    def update_row(self, item_id: str, **changes) -> SelectedRow:
        """Edit a selected row (quantity, unit_price, discount, is_free...)."""
        rows = list(self.selection)
        for i, row in enumerate(rows):
            if row.item_id == item_id:
                updated = replace(row, **changes)
                if 'quantity' in changes and 'unit_price' not in changes and row.item.is_tiered:
                    updated = replace(updated, unit_price=price_item(row.item, updated.quantity).unit_price)
                rows[i] = updated
                self.set_selection(rows)
                return updated
        raise KeyError(f"Item {item_id} is not selected")

    def quote(self, discount: Optional[DiscountConfig] = None) -> Quote:
        """
        Summarize the current selection into a Quote.

        Args:
            discount: Global discount; no discount when omitted

        Returns:
            Quote with summary, diagnostics and trace
        """
        discount = discount or DiscountConfig()
        selection = self.controller.selection
        summary = summarize(
            selection,
            discount,
            setup_category=self.settings.setup_category,
            one_time_units=self.settings.one_time_units,
        )

        quote = Quote(
            configuration=self.configuration,
            selection=selection,
            summary=summary,
            discount=discount,
            catalog_hash=self.catalog_hash,
            rules_hash=self.rules_hash,
        )

        last = self.controller.last_result
        if last is not None:
            quote.diagnostics.extend(last.diagnostics)
            for step in last.trace:
                quote.add_trace(step.step, step.description, step.value)
        quote.diagnostics.extend(summary.diagnostics)

        quote.add_trace("Selection", "Rows in selection", str(len(selection)))
        quote.add_trace("One-Time", f"{summary.one_time_item_count} rows", f"${summary.one_time_total:,.2f}")
        quote.add_trace("Monthly", f"{summary.monthly_item_count} rows", f"${summary.monthly_total:,.2f}")
        mode = getattr(discount.application, "value", discount.application)
        if mode != "none" and discount.value:
            quote.add_trace(
                "Global Discount",
                f"{discount.value:g} {discount.discount_type} on {mode}",
                f"-${summary.global_discount_amount:,.2f}",
            )
        quote.add_trace("Total Project Cost", "One-time + 12 × monthly", f"${summary.total_project_cost:,.2f}")

        return quote
