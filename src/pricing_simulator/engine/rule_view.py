"""
Rule View - merges catalog-native auto-add metadata with the legacy rule set.

Items carry their own trigger and quantity-source fields; administrators can
also maintain a separate AutoAddRuleSet. A RuleView is the read-only merge of
both, built once per reconciliation pass:

- triggers: union of native trigger fields and every legacy rule naming the item
- quantity source: native fields when present, else the legacy quantity rule
- tier tables: validated once, defects land in diagnostics
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from .models import AutoAddRuleSet, CatalogItem, Diagnostic, DiagnosticCode
from .tiers import validate_tiers

logger = logging.getLogger(__name__)


@dataclass
class RuleView:
    """Effective catalog items keyed by id, in catalog order."""
    items: dict[str, CatalogItem] = field(default_factory=dict)
    catalog: dict[str, CatalogItem] = field(default_factory=dict)  # live records, unmerged
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @classmethod
    def build(cls, catalog: Iterable[CatalogItem], rules: Optional[AutoAddRuleSet] = None) -> 'RuleView':
        rules = rules or AutoAddRuleSet()
        catalog_by_id: dict[str, CatalogItem] = {}
        for item in catalog:
            # first record wins on duplicate ids
            catalog_by_id.setdefault(item.id, item)

        view = cls(catalog=catalog_by_id)

        legacy_triggers: dict[str, list[str]] = {}
        for field_id, item_ids in rules.auto_add_rules.items():
            for item_id in item_ids:
                if item_id not in catalog_by_id:
                    view._missing(item_id, f"auto-add rule on field '{field_id}'")
                    continue
                legacy_triggers.setdefault(item_id, []).append(field_id)

        for item_id in rules.quantity_rules:
            if item_id not in catalog_by_id:
                view._missing(item_id, "quantity rule")

        for item_id, item in catalog_by_id.items():
            if item.is_tiered and item.tiers:
                view._check_tiers(item)
            view.items[item_id] = _merge(item, legacy_triggers.get(item_id, []), rules)

        return view

    def _missing(self, item_id: str, source: str):
        logger.warning("Skipping %s: item %s not in catalog", source, item_id)
        self.diagnostics.append(Diagnostic(
            code=DiagnosticCode.MISSING_CATALOG_REFERENCE,
            message=f"{source} references unknown item",
            item_id=item_id,
        ))

    def _check_tiers(self, item: CatalogItem):
        for problem in validate_tiers(item.tiers, item.id):
            logger.warning("Invalid tier table: %s", problem)
            self.diagnostics.append(problem)

    def get(self, item_id: str) -> Optional[CatalogItem]:
        return self.items.get(item_id)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self.items

    def __iter__(self):
        return iter(self.items.values())

    def is_auto_managed(self, item_id: str) -> bool:
        """True when the item owns at least one trigger field."""
        item = self.items.get(item_id)
        return bool(item and item.auto_add_trigger_fields)


def _merge(item: CatalogItem, legacy_fields: list[str], rules: AutoAddRuleSet) -> CatalogItem:
    """Effective copy of an item with merged triggers and quantity source."""
    triggers = list(dict.fromkeys([*item.auto_add_trigger_fields, *legacy_fields]))

    source_fields = item.quantity_source_fields
    multiplier = item.quantity_multiplier
    quantity_rule = rules.quantity_rules.get(item.id)
    if not source_fields and quantity_rule is not None:
        source_fields = (quantity_rule.field,)
        multiplier = quantity_rule.multiplier

    if tuple(triggers) == item.auto_add_trigger_fields and source_fields == item.quantity_source_fields:
        return item

    return replace(
        item,
        auto_add_trigger_fields=tuple(triggers),
        quantity_source_fields=tuple(source_fields),
        quantity_multiplier=multiplier,
    )
