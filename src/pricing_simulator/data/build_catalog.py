"""
Catalog Builder - aggregates the service catalog and its tier tables.

Reads the catalog sheet (one row per service) and the tier sheet (one row
per tier, keyed by item_id), validates tier tables, and writes catalog.json
plus a build report. CSV and Excel (.xlsx) sources are both accepted.

List columns (quantity_source_fields, auto_add_trigger_fields) are
'|'-separated.
"""
import hashlib
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.models import CatalogItem, PRICING_TIERED
from ..engine.tiers import validate_tiers
from ..schemas import CatalogItemIn

logger = logging.getLogger(__name__)

CATALOG_COLUMNS = [
    'id', 'name', 'category', 'unit', 'pricing_type', 'default_price',
    'quantity_source_fields', 'quantity_multiplier', 'auto_add_trigger_fields', 'description'
]
TIER_COLUMNS = ['item_id', 'min_quantity', 'max_quantity', 'price', 'price_type', 'name']


def get_file_hash(path: Path) -> str:
    """Get SHA256 hash of a file."""
    if not path.exists():
        return ""
    with open(path, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()[:12]


def read_table(path: Path) -> pd.DataFrame:
    """Read a CSV or Excel sheet as strings with stripped headers and cells."""
    if path.suffix.lower() in ('.xlsx', '.xls'):
        df = pd.read_excel(path, dtype=str)
    else:
        df = pd.read_csv(path, dtype=str)
    df = df.fillna('')
    df.columns = [c.strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    return df


def split_list(value: str) -> list[str]:
    """Split a '|'-separated cell into field ids."""
    return [v.strip() for v in str(value).split('|') if v.strip()]


def _optional(value: str) -> Optional[str]:
    return value if value not in ('', 'nan', 'None') else None


def _tier_rows(df_tiers: pd.DataFrame, errors: list[str]) -> dict[str, list[dict]]:
    """Tier rows grouped by item id. Malformed rows are skipped with an error each."""
    missing = [c for c in ('item_id', 'min_quantity', 'price') if c not in df_tiers.columns]
    if missing:
        errors.append(f"Tier sheet is missing required columns: {', '.join(missing)}")
        return {}

    tiers: dict[str, list[dict]] = {}
    for line_num, record in enumerate(df_tiers.to_dict(orient='records'), start=2):
        item_id = record.get('item_id', '')
        if not item_id:
            continue
        try:
            tier = {
                'min_quantity': int(float(record['min_quantity'])),
                'max_quantity': int(float(record['max_quantity'])) if _optional(record.get('max_quantity', '')) else None,
                'price': float(record['price']),
                'price_type': _optional(record.get('price_type', '')) or 'per_unit',
                'name': _optional(record.get('name', '')),
            }
        except ValueError as e:
            errors.append(f"Tier line {line_num} for {item_id} skipped: {e}")
            continue
        tiers.setdefault(item_id, []).append(tier)
    return tiers


def load_catalog(catalog_source: Path, tiers_source: Optional[Path] = None) -> tuple[list[CatalogItem], dict]:
    """
    Load catalog items from the catalog and tier sheets.

    Returns (items, report). Rows that fail validation are skipped and
    reported; they never stop the rest of the catalog from loading.
    """
    report = {
        "timestamp": datetime.now().isoformat(),
        "status": "pending",
        "input_files": {},
        "metrics": {},
        "warnings": [],
        "errors": []
    }

    if not catalog_source.exists():
        report["errors"].append(f"CRITICAL ERROR: {catalog_source} not found.")
        report["status"] = "failed"
        return [], report

    report["input_files"]["catalog"] = {"path": str(catalog_source), "hash": get_file_hash(catalog_source)}

    master = read_table(catalog_source)
    missing = [c for c in ('id', 'name', 'category', 'unit') if c not in master.columns]
    if missing:
        report["errors"].append(f"Catalog is missing required columns: {', '.join(missing)}")
        report["status"] = "failed"
        return [], report

    master = master[master['id'] != '']
    duplicates = int(master['id'].duplicated().sum())
    master = master.drop_duplicates('id')
    report["metrics"]["duplicates_removed"] = duplicates
    if duplicates:
        report["warnings"].append(f"Removed {duplicates} duplicate item ids (kept first)")

    tiers_by_item: dict[str, list[dict]] = {}
    if tiers_source is not None and tiers_source.exists():
        report["input_files"]["tiers"] = {"path": str(tiers_source), "hash": get_file_hash(tiers_source)}
        tiers_by_item = _tier_rows(read_table(tiers_source), report["errors"])
    elif tiers_source is not None:
        report["warnings"].append(f"WARNING: {tiers_source} not found")

    catalog_ids = set(master['id'])
    orphans = sorted(set(tiers_by_item) - catalog_ids)
    if orphans:
        report["warnings"].append(f"Tiers reference unknown items: {', '.join(orphans)}")

    items = []
    for record in master.to_dict(orient='records'):
        item_id = record['id']
        try:
            item = CatalogItemIn(
                id=item_id,
                name=record['name'],
                category=record['category'],
                unit=record['unit'],
                pricing_type=_optional(record.get('pricing_type', '')) or 'flat',
                default_price=float(record.get('default_price') or 0),
                tiers=tiers_by_item.get(item_id, []),
                quantity_source_fields=split_list(record.get('quantity_source_fields', '')),
                quantity_multiplier=float(record.get('quantity_multiplier') or 1),
                auto_add_trigger_fields=split_list(record.get('auto_add_trigger_fields', '')),
                description=record.get('description', ''),
            ).to_model()
        except ValueError as e:
            # pydantic.ValidationError is a ValueError
            report["errors"].append(f"Item {item_id}: {e}")
            continue
        items.append(item)

    tiered = [i for i in items if i.pricing_type == PRICING_TIERED]
    missing_tiers = [i.id for i in tiered if not i.tiers]
    invalid = {}
    for item in tiered:
        problems = validate_tiers(item.tiers, item.id)
        if problems:
            invalid[item.id] = [p.message for p in problems]

    report["metrics"]["final_item_count"] = len(items)
    report["metrics"]["tiered_items"] = len(tiered)
    report["metrics"]["auto_add_items"] = sum(1 for i in items if i.auto_add_trigger_fields)
    report["metrics"]["quantity_synced_items"] = sum(1 for i in items if i.quantity_source_fields)
    report["metrics"]["invalid_tier_tables"] = invalid
    if missing_tiers:
        report["warnings"].append(f"Tiered items without tiers (default price used): {', '.join(missing_tiers)}")
    for item_id, problems in invalid.items():
        report["warnings"].append(f"Invalid tier table for {item_id}: {'; '.join(problems)}")

    report["status"] = "success" if not report["errors"] else "partial"
    return items, report


def catalog_to_json(items: list[CatalogItem]) -> dict:
    return {
        "built_at": datetime.now().isoformat(),
        "total_items": len(items),
        "items": [asdict(item) for item in items],
    }


def load_catalog_json(path: Path) -> list[CatalogItem]:
    """Load a catalog written by build_catalog()."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return [CatalogItemIn.model_validate(raw).to_model() for raw in data.get('items', [])]


def build_catalog(settings: Optional[Settings] = None, verbose: bool = True) -> dict:
    """
    Build catalog.json from the catalog and tier sheets.

    Args:
        settings: Optional settings override
        verbose: Print progress messages

    Returns:
        Build report dictionary
    """
    settings = settings or get_settings()

    items, report = load_catalog(settings.catalog_source, settings.tiers_source)
    if verbose:
        for msg in report["errors"]:
            print(msg)
        for msg in report["warnings"]:
            print(msg)

    if report["status"] == "failed":
        return report

    output_path = settings.catalog_json
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(catalog_to_json(items), f, indent=2)
    report["output_file"] = str(output_path)

    if verbose:
        print(f"\nPROCESS COMPLETE: {output_path} generated with {len(items)} items.")

    report_path = settings.build_report
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, 'w') as f:
        json.dump(report, f, indent=2)

    if verbose:
        print(f"Build report saved to: {report_path}")

    logger.info("Catalog built: %s items, status %s", len(items), report["status"])
    return report


if __name__ == "__main__":
    build_catalog()
