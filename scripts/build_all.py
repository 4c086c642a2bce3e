#!/usr/bin/env python
"""
Build pipeline - builds catalog, compiles auto-add rules and runs the tests.

Usage:
    python scripts/build_all.py
"""
import logging
import subprocess
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from pricing_simulator.config.settings import get_settings
from pricing_simulator.data.build_catalog import build_catalog
from pricing_simulator.rules.compile_rules import compile_rules


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    settings = get_settings()

    print("=" * 60)
    print("PRICING SIMULATOR BUILD PIPELINE")
    print("=" * 60)
    print()

    # Build catalog
    print("[1/3] Building catalog...")
    report = build_catalog(settings, verbose=True)

    if report["status"] == "failed":
        print("\n❌ BUILD FAILED")
        for error in report["errors"]:
            print(f"  ERROR: {error}")
        sys.exit(1)

    print()
    print("[2/3] Compiling auto-add rules...")
    success, rules, errors = compile_rules(settings.rules_csv, settings.compiled_rules)
    if not success:
        print("\n❌ RULE COMPILATION FAILED")
        for error in errors:
            print(f"  ERROR: {error}")
        sys.exit(1)

    print()
    print("[3/3] Running tests...")

    test_result = subprocess.run(
        [sys.executable, '-m', 'pytest', 'tests', '-v', '--tb=short'],
        cwd=Path(__file__).parent.parent
    )

    if test_result.returncode != 0:
        print("\n❌ TESTS FAILED")
        sys.exit(1)

    print()
    print("=" * 60)
    print("✅ BUILD COMPLETE" if report["status"] == "success" else "⚠️  BUILD COMPLETE WITH ERRORS")
    print("=" * 60)
    print()
    print("Summary:")
    print(f"  Items: {report['metrics']['final_item_count']}")
    print(f"  Duplicates removed: {report['metrics']['duplicates_removed']}")
    print(f"  Tiered items: {report['metrics']['tiered_items']}")
    print(f"  Auto-add items: {report['metrics']['auto_add_items']}")
    print(f"  Rules: {len(rules)} ({sum(1 for r in rules if r.active)} active)")
    invalid = report['metrics'].get('invalid_tier_tables', {})
    if invalid:
        print()
        print("Invalid tier tables:")
        for item_id, problems in invalid.items():
            print(f"  {item_id}: {'; '.join(problems)}")


if __name__ == "__main__":
    main()
