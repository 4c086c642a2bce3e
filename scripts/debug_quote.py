"""
Walk a sample client configuration through reconciliation and print the quote.

Usage:
    python scripts/debug_quote.py [config.json]

The JSON file holds a client configuration ({"clientName": ..., "fieldValues": {...}})
and optionally a "discount" object ({"value": 10, "discountType": "percentage",
"application": "both"}).
"""
import json
import logging
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from pricing_simulator.engine.quote_engine import QuoteEngine
from pricing_simulator.engine.tiers import boundary_drops
from pricing_simulator.schemas import ClientConfigurationIn, DiscountConfigIn

SAMPLE = {
    "clientName": "Sample Bank",
    "projectName": "Card Issuing 2025",
    "preparedBy": "Sales",
    "fieldValues": {
        "hasCreditCards": True,
        "monthlyCardTransactions": 25000,
        "monthlySMS": 1500,
        "issuingCards": True,
        "debitCards": 400,
        "creditCards": 250,
        "portalUsers": 5,
        "hasTokenization": True,
        "monthlyTokenRequests": 12000,
    },
    "discount": {"value": 10, "discountType": "percentage", "application": "monthly"},
}


def debug(path=None):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    payload = SAMPLE
    if path:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)

    engine = QuoteEngine()
    print(f"Loaded {len(engine.catalog)} catalog items (hash {engine.catalog_hash or 'n/a'})")
    print(f"Legacy rules: {len(engine.rules.auto_add_rules)} trigger fields, "
          f"{len(engine.rules.quantity_rules)} quantity rules")

    for item in engine.catalog:
        for drop in boundary_drops(item):
            print(f"  note: {drop}")

    config = ClientConfigurationIn.model_validate(payload).to_model()
    discount = DiscountConfigIn.model_validate(payload.get("discount", {})).to_model()

    print(f"\n--- Reconciling {config.client_name or 'client'} ---")
    engine.apply_configuration(config)
    engine.add_item("SETUP-IMPL")

    quote = engine.quote(discount)
    print(quote.get_trace_text())

    print("\nSelection:")
    for row in quote.selection:
        print(f"  {row.item_id:<14} qty {row.quantity:>7,}  @ ${row.unit_price:,.4f}")

    if quote.diagnostics:
        print("\nDiagnostics:")
        for diagnostic in quote.diagnostics:
            print(f"  {diagnostic}")

    print("\nSummary:")
    print(json.dumps(quote.summary.to_report_dict(), indent=2))


if __name__ == "__main__":
    debug(sys.argv[1] if len(sys.argv) > 1 else None)
