"""
Rules Service - CRUD operations for auto-add and quantity rules.
Handles reading/writing auto_add_rules.csv and auto-compiling to JSON.
"""
import csv
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from ..engine.models import AutoAddRuleSet, CatalogItem, QuantityRule
from ..rules.compile_rules import RULE_AUTO_ADD, RULE_QUANTITY, VALID_RULE_TYPES, compile_rules


@dataclass
class Rule:
    """Represents an auto-add or quantity rule."""
    rule_id: str
    rule_type: str = RULE_AUTO_ADD
    config_field: str = ""
    item_id: str = ""
    multiplier: float = 1
    active: bool = True
    notes: Optional[str] = None

    def to_csv_row(self) -> dict:
        """Convert to CSV row format."""
        return {
            'rule_id': self.rule_id,
            'rule_type': self.rule_type,
            'config_field': self.config_field,
            'item_id': self.item_id,
            'multiplier': f"{self.multiplier:g}",
            'active': 'true' if self.active else 'false',
            'notes': self.notes or '',
        }

    @classmethod
    def from_csv_row(cls, row: dict) -> 'Rule':
        """Create Rule from CSV row."""
        return cls(
            rule_id=row.get('rule_id', ''),
            rule_type=row.get('rule_type', RULE_AUTO_ADD),
            config_field=row.get('config_field', ''),
            item_id=row.get('item_id', ''),
            multiplier=float(row.get('multiplier') or 1),
            active=(row.get('active') or 'true').lower() == 'true',
            notes=row.get('notes') or None,
        )


@dataclass
class ValidationResult:
    """Result of rule validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class RulesService:
    """Service for managing auto-add rules."""

    CSV_COLUMNS = ['rule_id', 'rule_type', 'config_field', 'item_id', 'multiplier', 'active', 'notes']

    def __init__(self, rules_csv_path: Path, compiled_rules_path: Path, catalog: Optional[list[CatalogItem]] = None):
        self.rules_csv_path = rules_csv_path
        self.compiled_rules_path = compiled_rules_path
        self._catalog: dict[str, CatalogItem] = {item.id: item for item in catalog or []}

    def list_rules(self, include_inactive: bool = True) -> list[Rule]:
        """List all rules from CSV."""
        rules = []
        if not self.rules_csv_path.exists():
            return rules

        with open(self.rules_csv_path, 'r', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            for row in reader:
                if not row.get('rule_id'):
                    continue
                rule = Rule.from_csv_row(row)
                if include_inactive or rule.active:
                    rules.append(rule)

        return rules

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Get a single rule by ID."""
        for rule in self.list_rules():
            if rule.rule_id == rule_id:
                return rule
        return None

    def create_rule(self, rule: Rule, auto_compile: bool = True) -> Rule:
        """Create a new rule."""
        if not rule.rule_id:
            rule.rule_id = self._generate_rule_id(rule)

        if self.get_rule(rule.rule_id):
            raise ValueError(f"Rule with ID '{rule.rule_id}' already exists")

        rules = self.list_rules()
        rules.append(rule)
        self._write_rules(rules)

        if auto_compile:
            self.compile_rules()

        return rule

    def update_rule(self, rule_id: str, updates: dict, auto_compile: bool = True) -> Rule:
        """Update an existing rule."""
        rules = self.list_rules()

        for i, rule in enumerate(rules):
            if rule.rule_id == rule_id:
                known = {k: v for k, v in updates.items() if hasattr(rule, k)}
                rules[i] = replace(rule, **known)
                break
        else:
            raise ValueError(f"Rule with ID '{rule_id}' not found")

        self._write_rules(rules)

        if auto_compile:
            self.compile_rules()

        return rules[i]

    def delete_rule(self, rule_id: str, auto_compile: bool = True) -> bool:
        """Delete a rule."""
        rules = self.list_rules()
        original_count = len(rules)
        rules = [r for r in rules if r.rule_id != rule_id]

        if len(rules) == original_count:
            raise ValueError(f"Rule with ID '{rule_id}' not found")

        self._write_rules(rules)

        if auto_compile:
            self.compile_rules()

        return True

    def validate_rule(self, rule: Rule) -> ValidationResult:
        """Validate a rule before saving."""
        result = ValidationResult(valid=True)

        if rule.rule_type not in VALID_RULE_TYPES:
            result.errors.append(f"Rule type must be one of: {', '.join(sorted(VALID_RULE_TYPES))}")
            result.valid = False

        if not rule.config_field:
            result.errors.append("Config field is required")
            result.valid = False

        if not rule.item_id:
            result.errors.append("Item is required")
            result.valid = False

        if rule.multiplier <= 0:
            result.errors.append("Multiplier must be positive")
            result.valid = False

        # Unknown items are skipped at reconciliation time, so only warn
        item = self._catalog.get(rule.item_id)
        if rule.item_id and self._catalog and item is None:
            result.warnings.append(f"Item '{rule.item_id}' not found in catalog")

        if item is not None and rule.rule_type == RULE_QUANTITY and item.quantity_source_fields:
            result.warnings.append(
                f"Item '{rule.item_id}' already has quantity source fields "
                f"({', '.join(item.quantity_source_fields)}); the catalog fields take precedence"
            )

        if item is not None and rule.rule_type == RULE_AUTO_ADD and rule.config_field in item.auto_add_trigger_fields:
            result.warnings.append(f"Field '{rule.config_field}' already triggers '{rule.item_id}' in the catalog")

        if result.valid:
            result.warnings.extend(self._check_conflicts(rule))

        return result

    def _check_conflicts(self, rule: Rule) -> list[str]:
        """Check for rules that duplicate or shadow this one."""
        warnings = []
        for existing in self.list_rules():
            if existing.rule_id == rule.rule_id or existing.item_id != rule.item_id:
                continue
            if existing.rule_type != rule.rule_type:
                continue
            if rule.rule_type == RULE_QUANTITY:
                warnings.append(f"Item '{rule.item_id}' already has quantity rule '{existing.rule_id}'")
            elif existing.config_field == rule.config_field:
                warnings.append(f"Duplicate of rule '{existing.rule_id}'")
        return warnings

    def _generate_rule_id(self, rule: Rule) -> str:
        """Generate a unique rule ID."""
        prefix = 'QTY' if rule.rule_type == RULE_QUANTITY else 'ADD'
        base = f"{prefix}-{rule.config_field[:16]}-{rule.item_id[:12]}"

        existing_ids = {r.rule_id for r in self.list_rules()}
        candidate = base
        counter = 1
        while candidate in existing_ids:
            candidate = f"{base}-{counter}"
            counter += 1

        return candidate

    def _write_rules(self, rules: list[Rule]):
        """Write rules back to CSV."""
        self.rules_csv_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.rules_csv_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.CSV_COLUMNS)
            writer.writeheader()
            for rule in rules:
                writer.writerow(rule.to_csv_row())

    def compile_rules(self) -> tuple[bool, list[str]]:
        """Recompile the rules CSV to JSON."""
        success, _, errors = compile_rules(self.rules_csv_path, self.compiled_rules_path, verbose=False)
        return success, errors

    def get_stats(self) -> dict:
        """Get statistics about rules."""
        rules = self.list_rules()
        active = [r for r in rules if r.active]
        by_field = {}
        for r in rules:
            by_field[r.config_field] = by_field.get(r.config_field, 0) + 1

        return {
            'total': len(rules),
            'active': len(active),
            'inactive': len(rules) - len(active),
            'auto_add': sum(1 for r in rules if r.rule_type == RULE_AUTO_ADD),
            'quantity': sum(1 for r in rules if r.rule_type == RULE_QUANTITY),
            'unknown_items': sorted({r.item_id for r in rules if self._catalog and r.item_id not in self._catalog}),
            'by_field': by_field,
        }


def update_auto_add_rules(
    rule_set: AutoAddRuleSet,
    config_field: str,
    item_ids: list[str],
    quantity_rules: Optional[dict[str, QuantityRule]] = None
) -> AutoAddRuleSet:
    """
    New rule set with the items triggered by `config_field` replaced.

    An empty item list removes the field's rule. Quantity rules, when given,
    are merged over the existing ones.
    """
    auto_add_rules = {k: list(v) for k, v in rule_set.auto_add_rules.items()}
    merged_quantity_rules = dict(rule_set.quantity_rules)

    if item_ids:
        auto_add_rules[config_field] = list(dict.fromkeys(item_ids))
    else:
        auto_add_rules.pop(config_field, None)

    if quantity_rules:
        merged_quantity_rules.update(quantity_rules)

    return AutoAddRuleSet(auto_add_rules=auto_add_rules, quantity_rules=merged_quantity_rules)


def update_quantity_rules(rule_set: AutoAddRuleSet, mappings: dict[str, Optional[QuantityRule]]) -> AutoAddRuleSet:
    """New rule set with quantity rules set per item id; a None rule removes the item's rule."""
    quantity_rules = dict(rule_set.quantity_rules)
    for item_id, rule in mappings.items():
        if rule is None:
            quantity_rules.pop(item_id, None)
        else:
            quantity_rules[item_id] = rule
    return AutoAddRuleSet(
        auto_add_rules={k: list(v) for k, v in rule_set.auto_add_rules.items()},
        quantity_rules=quantity_rules,
    )
