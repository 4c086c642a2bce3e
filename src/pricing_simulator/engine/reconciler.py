"""
Reconciliation - one remove/add/resync pass per external state change.

reconcile() is the pure pass. ReconciliationController holds the single
(catalog, configuration, selection, rules) snapshot, runs passes on input
changes and publishes results last-write-wins.
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable, Optional

from .auto_add import add_pass, remove_pass
from .models import (
    AutoAddRuleSet,
    CatalogItem,
    ClientConfiguration,
    Diagnostic,
    DiagnosticCode,
    ReconcileResult,
    SelectedRow,
)
from .quantity import has_quantity_source, non_numeric_sources, resolve_quantity
from .rule_view import RuleView
from .tiers import price_item

logger = logging.getLogger(__name__)


def selection_signature(selection: Iterable[SelectedRow]) -> tuple[tuple[str, int], ...]:
    """Structural identity of a selection: (item id, quantity) per row, in order."""
    return tuple((row.item_id, row.quantity) for row in selection)


def _dedupe(selection, result: ReconcileResult) -> list[SelectedRow]:
    seen = set()
    rows = []
    for row in selection:
        if row.item_id in seen:
            result.diagnostics.append(Diagnostic(
                code=DiagnosticCode.MALFORMED_ROW,
                message="duplicate row dropped",
                item_id=row.item_id,
            ))
            continue
        seen.add(row.item_id)
        rows.append(row)
    return rows


def _resync(rows: list[SelectedRow], config: ClientConfiguration, view: RuleView,
            result: ReconcileResult) -> list[SelectedRow]:
    """Refresh surviving rows against the live catalog and configuration."""
    synced = []
    for row in rows:
        effective = view.get(row.item_id)
        if effective is None:
            logger.warning("Selected item %s not in catalog, leaving row as-is", row.item_id)
            result.diagnostics.append(Diagnostic(
                code=DiagnosticCode.MISSING_CATALOG_REFERENCE,
                message="selected row references unknown item",
                item_id=row.item_id,
            ))
            synced.append(row)
            continue

        live = view.catalog[row.item_id]
        if not has_quantity_source(effective):
            # manual quantity, only the catalog record is refreshed
            synced.append(row if row.item is live else replace(row, item=live))
            continue

        result.diagnostics.extend(non_numeric_sources(effective, config))
        quantity = resolve_quantity(effective, config, row.quantity)
        unit_price = row.unit_price
        if live.is_tiered and live.tiers:
            price = price_item(live, quantity)
            unit_price = price.unit_price
            result.diagnostics.extend(price.diagnostics)

        if quantity != row.quantity:
            logger.debug("Resynced %s quantity %s → %s", row.item_id, row.quantity, quantity)
            result.resynced.append(row.item_id)
        synced.append(replace(row, item=live, quantity=quantity, unit_price=unit_price))
    return synced


def reconcile(
    selection: list[SelectedRow],
    config: ClientConfiguration,
    catalog: Iterable[CatalogItem],
    rules: Optional[AutoAddRuleSet] = None
) -> ReconcileResult:
    """
    Run one reconciliation pass: remove pass, add pass, quantity/price resync.

    When the (item id, quantity) signature is unchanged, the input selection
    object itself is returned so downstream consumers can skip recomputation.
    The pass never re-triggers itself.
    """
    result = ReconcileResult(selection=selection, changed=False)
    view = RuleView.build(catalog, rules)
    result.diagnostics.extend(view.diagnostics)
    result.add_trace("Rules", "Merged rule view", f"{len(view.items)} items")

    rows = _dedupe(selection, result)

    rows, result.removed = remove_pass(rows, config, view)
    result.add_trace("Remove Pass", "Rows with no active trigger", ", ".join(result.removed) or "none")

    surviving = _resync(rows, config, view, result)
    result.add_trace("Resync", "Quantities recomputed", ", ".join(result.resynced) or "none")

    new_rows, result.added = add_pass(surviving, config, view, result.diagnostics)
    result.add_trace("Add Pass", "Rows added by active triggers", ", ".join(result.added) or "none")

    if selection_signature(new_rows) == selection_signature(selection):
        result.add_trace("Converged", "Selection unchanged, previous selection kept")
        return result

    result.selection = new_rows
    result.changed = True
    result.add_trace("Converged", "Selection changed", f"{len(new_rows)} rows")
    return result


def reconcile_selection(
    selection: list[SelectedRow],
    config: ClientConfiguration,
    catalog: Iterable[CatalogItem],
    rules: Optional[AutoAddRuleSet] = None
) -> list[SelectedRow]:
    """New selection after one reconciliation pass."""
    return reconcile(selection, config, catalog, rules).selection


class ControllerState(str, Enum):
    IDLE = 'idle'
    RECONCILING = 'reconciling'


@dataclass(frozen=True)
class Snapshot:
    """The inputs of one pass, tagged with the revision they were read at."""
    revision: int
    catalog: tuple[CatalogItem, ...]
    configuration: ClientConfiguration
    selection: list[SelectedRow]
    rules: AutoAddRuleSet


class ReconciliationController:
    """
    Owns the (catalog, configuration, selection, rules) snapshot.

    Every input change bumps the revision and triggers a pass. A result is
    published only if it was computed against the current revision; stale
    results are discarded. A change that arrives while a pass is running (for
    example from the on_publish callback) does not recurse: it marks the pass
    stale and the controller runs one more pass on the newest snapshot.

    Callers serialize edits; the controller does no locking.
    """

    def __init__(
        self,
        catalog: Iterable[CatalogItem],
        configuration: Optional[ClientConfiguration] = None,
        selection: Optional[list[SelectedRow]] = None,
        rules: Optional[AutoAddRuleSet] = None,
        on_publish: Optional[Callable[[list[SelectedRow]], None]] = None
    ):
        self._catalog = tuple(catalog)
        self._configuration = configuration or ClientConfiguration()
        self._selection = selection if selection is not None else []
        self._rules = rules or AutoAddRuleSet()
        self._revision = 0
        self._pending = False
        self.on_publish = on_publish
        self.state = ControllerState.IDLE
        self.last_result: Optional[ReconcileResult] = None

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def selection(self) -> list[SelectedRow]:
        return self._selection

    @property
    def configuration(self) -> ClientConfiguration:
        return self._configuration

    @property
    def catalog(self) -> tuple[CatalogItem, ...]:
        return self._catalog

    def snapshot(self) -> Snapshot:
        return Snapshot(
            revision=self._revision,
            catalog=self._catalog,
            configuration=self._configuration,
            selection=self._selection,
            rules=self._rules,
        )

    def update_configuration(self, configuration: ClientConfiguration) -> Optional[ReconcileResult]:
        self._configuration = configuration
        return self._changed()

    def update_catalog(self, catalog: Iterable[CatalogItem]) -> Optional[ReconcileResult]:
        self._catalog = tuple(catalog)
        return self._changed()

    def update_rules(self, rules: AutoAddRuleSet) -> Optional[ReconcileResult]:
        self._rules = rules
        return self._changed()

    def update_inputs(
        self,
        catalog: Optional[Iterable[CatalogItem]] = None,
        rules: Optional[AutoAddRuleSet] = None,
        configuration: Optional[ClientConfiguration] = None
    ) -> Optional[ReconcileResult]:
        """Swap any of catalog, rules and configuration under one revision and run one pass."""
        if catalog is not None:
            self._catalog = tuple(catalog)
        if rules is not None:
            self._rules = rules
        if configuration is not None:
            self._configuration = configuration
        return self._changed()

    def set_selection(self, selection: list[SelectedRow]):
        """Explicit user edit of the selection. Does not run a pass."""
        self._selection = selection
        self._revision += 1

    def _changed(self) -> Optional[ReconcileResult]:
        self._revision += 1
        return self.run()

    def publish(self, result: ReconcileResult, revision: int) -> bool:
        """Accept a result computed at `revision`; returns False if it is stale."""
        if revision != self._revision:
            logger.info("Discarding stale reconciliation (revision %s, current %s)", revision, self._revision)
            return False

        self.last_result = result
        if not result.changed:
            return True

        self._selection = result.selection
        self._revision += 1
        if self.on_publish is not None:
            self.on_publish(result.selection)
        return True

    def run(self) -> Optional[ReconcileResult]:
        """
        Reconcile against the current snapshot.

        Returns None when called during a pass; the running pass picks the
        change up instead.
        """
        if self.state == ControllerState.RECONCILING:
            self._pending = True
            return None

        self.state = ControllerState.RECONCILING
        try:
            while True:
                self._pending = False
                snap = self.snapshot()
                result = reconcile(snap.selection, snap.configuration, snap.catalog, snap.rules)
                published = self.publish(result, snap.revision)
                if published and not self._pending:
                    return result
        finally:
            self.state = ControllerState.IDLE
