"""
Reconciliation pass and controller tests.
"""
from dataclasses import replace

import pytest

from pricing_simulator.engine.models import AutoAddRuleSet, DiagnosticCode, PricingTier
from pricing_simulator.engine.reconciler import (
    ControllerState,
    ReconciliationController,
    reconcile,
    selection_signature,
)


def test_pass_trace_and_bookkeeping(catalog, make_config):
    result = reconcile([], make_config(hasCreditCards=True, monthlySMS=1500), catalog)

    assert result.changed
    assert result.added == ['CC-FEE', 'SMS-ALERT']
    assert result.removed == []
    assert [t.step for t in result.trace] == ['Rules', 'Remove Pass', 'Resync', 'Add Pass', 'Converged']
    assert "→ Add Pass" in result.get_trace_text()


def test_resync_recomputes_quantity_and_tier_price(catalog, make_config):
    selection = reconcile([], make_config(monthlySMS=500), catalog).selection
    assert selection[0].unit_price == pytest.approx(0.05)

    result = reconcile(selection, make_config(monthlySMS=2000), catalog)

    assert result.resynced == ['SMS-ALERT']
    assert result.selection[0].quantity == 2000
    assert result.selection[0].unit_price == pytest.approx(0.04)
    # rows are replaced, never mutated
    assert selection[0].quantity == 500


def test_resync_keeps_manual_quantity_and_discounts(catalog, make_config, make_row):
    by_id = {item.id: item for item in catalog}
    row = make_row(by_id['SUPPORT-PREM'], quantity=3, discount_value=15, is_free=True)
    portal = make_row(by_id['PORTAL-USER'], quantity=1, discount_value=5)

    result = reconcile([row, portal], make_config(portalUsers=8), catalog)

    assert [(r.item_id, r.quantity) for r in result.selection] == [('SUPPORT-PREM', 3), ('PORTAL-USER', 8)]
    assert result.selection[1].discount_value == 5
    assert result.selection[0].is_free


def test_unchanged_selection_is_returned_as_is(catalog, make_config):
    config = make_config(hasCreditCards=True)
    selection = reconcile([], config, catalog).selection
    result = reconcile(selection, config, catalog)

    assert not result.changed
    assert result.selection is selection


def test_unknown_selected_item_is_kept_with_diagnostic(catalog, make_config, make_item, make_row):
    ghost = make_row(make_item('RETIRED', auto_add_trigger_fields=('old',)))
    result = reconcile([ghost], make_config(), catalog)

    assert [r.item_id for r in result.selection] == ['RETIRED']
    assert DiagnosticCode.MISSING_CATALOG_REFERENCE in [d.code for d in result.diagnostics]


def test_duplicate_rows_are_reported(catalog, make_config, make_row):
    by_id = {item.id: item for item in catalog}
    result = reconcile([make_row(by_id['SUPPORT-PREM'])] * 2, make_config(), catalog)

    assert selection_signature(result.selection) == (('SUPPORT-PREM', 1),)
    assert [d.code for d in result.diagnostics] == [DiagnosticCode.MALFORMED_ROW]


def test_catalog_refresh_reprices_synced_rows(catalog, make_config):
    config = make_config(monthlySMS=500)
    selection = reconcile([], config, catalog).selection

    repriced = [
        replace(i, tiers=(PricingTier(1, 100, 0.06), PricingTier(101, None, 0.03))) if i.id == 'SMS-ALERT' else i
        for i in catalog
    ]
    result = reconcile(selection, make_config(monthlySMS=501), repriced)

    assert result.selection[0].unit_price == pytest.approx(0.03)
    assert result.selection[0].item.tiers[0].price == pytest.approx(0.06)


# Controller


def test_controller_runs_on_configuration_change(catalog, make_config):
    published = []
    controller = ReconciliationController(catalog, on_publish=published.append)

    controller.update_configuration(make_config(hasCreditCards=True))

    assert [r.item_id for r in controller.selection] == ['CC-FEE']
    assert len(published) == 1
    assert controller.state == ControllerState.IDLE


def test_controller_skips_publish_when_converged(catalog, make_config):
    published = []
    controller = ReconciliationController(catalog, on_publish=published.append)
    controller.update_configuration(make_config(hasCreditCards=True))
    selection = controller.selection

    result = controller.update_configuration(make_config(hasCreditCards=True, unrelated="x"))

    assert not result.changed
    assert controller.selection is selection
    assert len(published) == 1


def test_controller_rules_change(catalog, make_config):
    controller = ReconciliationController(catalog, configuration=make_config(hasSupport=True))
    assert controller.selection == []

    controller.update_rules(AutoAddRuleSet(auto_add_rules={'hasSupport': ['SUPPORT-PREM']}))
    assert [r.item_id for r in controller.selection] == ['SUPPORT-PREM']


def test_controller_catalog_change(catalog, make_config, make_item):
    controller = ReconciliationController(catalog, configuration=make_config(hasACH=True))
    controller.update_catalog(catalog + [make_item('ACH-FEE', auto_add_trigger_fields=('hasACH',))])

    assert [r.item_id for r in controller.selection] == ['ACH-FEE']


def test_stale_result_is_discarded(catalog, make_config):
    controller = ReconciliationController(catalog)
    snap = controller.snapshot()
    stale = reconcile(snap.selection, make_config(hasCreditCards=True), snap.catalog, snap.rules)

    # a newer edit lands before the stale pass publishes
    controller.update_configuration(make_config(monthlySMS=10))

    assert controller.publish(stale, snap.revision) is False
    assert [r.item_id for r in controller.selection] == ['SMS-ALERT']


def test_set_selection_bumps_revision_without_a_pass(catalog, make_config, make_row):
    by_id = {item.id: item for item in catalog}
    controller = ReconciliationController(catalog, configuration=make_config(hasCreditCards=True))
    revision = controller.revision

    controller.set_selection([make_row(by_id['SUPPORT-PREM'])])

    assert controller.revision == revision + 1
    assert [r.item_id for r in controller.selection] == ['SUPPORT-PREM']
    assert controller.run().added == ['CC-FEE']


def test_change_during_publish_runs_one_more_pass(catalog, make_config):
    calls = []

    def on_publish(selection):
        calls.append([r.item_id for r in selection])
        if len(calls) == 1:
            # re-entrant edit from a subscriber
            assert controller.update_configuration(make_config(hasCreditCards=True, monthlySMS=10)) is None

    controller = ReconciliationController(catalog, on_publish=on_publish)
    controller.update_configuration(make_config(hasCreditCards=True))

    assert calls == [['CC-FEE'], ['CC-FEE', 'SMS-ALERT']]
    assert [r.item_id for r in controller.selection] == ['CC-FEE', 'SMS-ALERT']
    assert controller.state == ControllerState.IDLE


def test_invalid_tier_table_reported_once_per_pass(catalog, make_config, make_item):
    gappy = make_item('GAPPY', pricing_type='tiered',
                      tiers=(PricingTier(1, 10, 5.0), PricingTier(15, None, 4.0)),
                      quantity_source_fields=('gappyCount',), auto_add_trigger_fields=('hasGappy',))
    catalog = catalog + [gappy]

    first = reconcile([], make_config(hasGappy=True, gappyCount=3), catalog)
    second = reconcile(first.selection, make_config(hasGappy=True, gappyCount=4), catalog)

    for result in (first, second):
        codes = [d.code for d in result.diagnostics]
        assert codes.count(DiagnosticCode.INVALID_TIER_TABLE) == 1
    assert second.resynced == ['GAPPY']


def test_update_inputs_swaps_catalog_and_rules_in_one_pass(make_item, make_config, make_row):
    old_item = make_item('X', category='support', unit='Per Month', default_price=100)
    manual = make_row(old_item, discount_value=50, is_free=True)
    published = []
    controller = ReconciliationController(
        [old_item],
        configuration=make_config(h=True, g=False),
        selection=[manual],
        on_publish=published.append,
    )
    revision = controller.revision

    # new release: X gains an active native trigger and an inactive legacy one
    new_item = replace(old_item, auto_add_trigger_fields=('h',))
    result = controller.update_inputs(
        catalog=[new_item],
        rules=AutoAddRuleSet(auto_add_rules={'g': ['X']}),
    )

    assert result.removed == []
    assert result.added == []
    [row] = controller.selection
    assert row.discount_value == 50
    assert row.is_free
    assert published == []
    assert controller.revision == revision + 1
