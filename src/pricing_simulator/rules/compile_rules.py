"""
Rule Compiler - Validates and compiles auto-add rules from CSV to JSON.

Reads auto_add_rules.csv, validates each row, and outputs compiled_rules.json
in the AutoAddRuleSet shape:

    {"auto_add_rules": {field: [item_id, ...]},
     "quantity_rules": {item_id: {"field": ..., "multiplier": ...}}}
"""
import csv
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..engine.models import AutoAddRuleSet, QuantityRule
from ..schemas import AutoAddRuleSetIn

logger = logging.getLogger(__name__)

RULE_AUTO_ADD = 'auto_add'
RULE_QUANTITY = 'quantity'
VALID_RULE_TYPES = {RULE_AUTO_ADD, RULE_QUANTITY}


@dataclass
class RuleRow:
    """A validated row of the rules sheet."""
    rule_id: str
    rule_type: str
    config_field: str
    item_id: str
    multiplier: float = 1
    active: bool = True
    notes: str = ""


def parse_bool(value: str) -> bool:
    """Parse a boolean from CSV string."""
    return value.lower() in ('true', '1', 'yes', 'on')


def parse_optional_str(value: str) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if not value or value.strip() == '':
        return None
    return value.strip()


def validate_rule(row: dict, line_num: int) -> tuple[Optional[RuleRow], list[str]]:
    """
    Validate and parse a rule from a CSV row.

    Returns (rule, errors) - rule is None if validation failed.
    """
    errors = []

    rule_type = parse_optional_str(row.get('rule_type', '') or '')
    if rule_type not in VALID_RULE_TYPES:
        errors.append(f"Line {line_num}: invalid rule_type '{rule_type}', must be one of: {sorted(VALID_RULE_TYPES)}")
        return None, errors

    config_field = parse_optional_str(row.get('config_field', '') or '')
    if not config_field:
        errors.append(f"Line {line_num}: config_field is required")

    item_id = parse_optional_str(row.get('item_id', '') or '')
    if not item_id:
        errors.append(f"Line {line_num}: item_id is required")

    multiplier = 1.0
    multiplier_str = parse_optional_str(row.get('multiplier', '') or '')
    if multiplier_str is not None:
        try:
            multiplier = float(multiplier_str)
        except ValueError:
            errors.append(f"Line {line_num}: multiplier must be numeric")
        else:
            if multiplier <= 0:
                errors.append(f"Line {line_num}: multiplier must be positive")

    if errors:
        return None, errors

    rule_id = parse_optional_str(row.get('rule_id', '') or '') or f"{rule_type}:{config_field}:{item_id}"

    return RuleRow(
        rule_id=rule_id,
        rule_type=rule_type,
        config_field=config_field,
        item_id=item_id,
        multiplier=multiplier,
        active=parse_bool(row.get('active', 'true') or 'true'),
        notes=parse_optional_str(row.get('notes', '') or '') or "",
    ), []


def build_rule_set(rules: list[RuleRow]) -> tuple[AutoAddRuleSet, list[str]]:
    """
    Fold active rule rows into an AutoAddRuleSet.

    Returns (rule_set, warnings). A second quantity rule for the same item
    is ignored with a warning; the first one in the sheet wins.
    """
    rule_set = AutoAddRuleSet()
    warnings = []

    for rule in rules:
        if not rule.active:
            continue
        if rule.rule_type == RULE_AUTO_ADD:
            item_ids = rule_set.auto_add_rules.setdefault(rule.config_field, [])
            if rule.item_id not in item_ids:
                item_ids.append(rule.item_id)
        else:
            if rule.item_id in rule_set.quantity_rules:
                warnings.append(f"Duplicate quantity rule for {rule.item_id} ({rule.rule_id}) ignored")
                continue
            rule_set.quantity_rules[rule.item_id] = QuantityRule(field=rule.config_field, multiplier=rule.multiplier)

    return rule_set, warnings


def rule_set_to_json(rule_set: AutoAddRuleSet) -> dict:
    return {
        "auto_add_rules": {k: list(v) for k, v in rule_set.auto_add_rules.items()},
        "quantity_rules": {
            k: {"field": v.field, "multiplier": v.multiplier}
            for k, v in rule_set.quantity_rules.items()
        },
    }


def load_rule_set(path: Optional[Path]) -> AutoAddRuleSet:
    """Load compiled rules; a missing file means no legacy rules."""
    if path is None or not path.exists():
        return AutoAddRuleSet()
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return AutoAddRuleSetIn.model_validate(data).to_model()


def compile_rules(
    rules_csv: Path,
    output_json: Path,
    verbose: bool = True
) -> tuple[bool, list[RuleRow], list[str]]:
    """
    Compile rules from CSV to JSON.

    Returns (success, rules, errors).
    """
    all_errors = []
    rules = []

    if not rules_csv.exists():
        all_errors.append(f"Rules file not found: {rules_csv}")
        return False, [], all_errors

    with open(rules_csv, 'r', newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)

        for line_num, row in enumerate(reader, start=2):  # +2 for 1-indexed header row
            rule, errors = validate_rule(row, line_num)

            if errors:
                all_errors.extend(errors)
            elif rule:
                rules.append(rule)

    if all_errors:
        if verbose:
            print("Validation errors:")
            for err in all_errors:
                print(f"  ❌ {err}")
        return False, rules, all_errors

    rule_set, warnings = build_rule_set(rules)
    for warning in warnings:
        logger.warning(warning)

    output_data = {
        "compiled_at": datetime.now().isoformat(),
        "source_file": str(rules_csv),
        "total_rules": len(rules),
        "active_rules": sum(1 for r in rules if r.active),
        "warnings": warnings,
        **rule_set_to_json(rule_set),
    }

    output_json.parent.mkdir(parents=True, exist_ok=True)
    with open(output_json, 'w', encoding='utf-8') as f:
        json.dump(output_data, f, indent=2)

    if verbose:
        print(f"✅ Compiled {len(rules)} rules ({output_data['active_rules']} active)")
        print(f"   Output: {output_json}")

    return True, rules, []


def main():
    """CLI entry point."""
    import sys

    from ..config.settings import get_settings

    settings = get_settings()

    print("Compiling auto-add rules...")
    success, rules, errors = compile_rules(settings.rules_csv, settings.compiled_rules)

    if not success:
        print(f"\n❌ Compilation failed with {len(errors)} errors")
        sys.exit(1)


if __name__ == "__main__":
    main()
