"""
Auto-add engine and merged rule view tests.
"""
import pytest

from pricing_simulator.engine.auto_add import (
    active_triggers,
    add_pass,
    remove_pass,
    should_auto_add,
)
from pricing_simulator.engine.models import AutoAddRuleSet, DiagnosticCode, PricingTier, QuantityRule
from pricing_simulator.engine.reconciler import reconcile_selection
from pricing_simulator.engine.rule_view import RuleView


@pytest.fixture
def legacy_rules():
    return AutoAddRuleSet(
        auto_add_rules={
            'hasTokenization': ['TOKEN-API'],
            'hasCreditCards': ['CC-FEE', 'SUPPORT-PREM'],
            'hasChargebacks': ['CHARGEBACK'],
        },
        quantity_rules={
            'TOKEN-API': QuantityRule(field='monthlyTokenRequests', multiplier=1),
            'SMS-ALERT': QuantityRule(field='ignored', multiplier=10),
        },
    )


@pytest.fixture
def token_catalog(catalog, make_item):
    return catalog + [make_item('TOKEN-API', default_price=0.01)]


def test_rule_view_merges_triggers(token_catalog, legacy_rules):
    view = RuleView.build(token_catalog, legacy_rules)

    assert view.get('CC-FEE').auto_add_trigger_fields == ('hasCreditCards',)
    assert view.get('SUPPORT-PREM').auto_add_trigger_fields == ('hasCreditCards',)
    assert view.get('TOKEN-API').auto_add_trigger_fields == ('hasTokenization',)
    assert view.is_auto_managed('TOKEN-API')
    assert not view.is_auto_managed('SETUP-IMPL')


def test_rule_view_native_quantity_source_wins(token_catalog, legacy_rules):
    view = RuleView.build(token_catalog, legacy_rules)

    assert view.get('SMS-ALERT').quantity_source_fields == ('monthlySMS',)
    assert view.get('SMS-ALERT').quantity_multiplier == 1
    assert view.get('TOKEN-API').quantity_source_fields == ('monthlyTokenRequests',)


def test_rule_view_keeps_catalog_records_unmerged(token_catalog, legacy_rules):
    view = RuleView.build(token_catalog, legacy_rules)
    live = {item.id: item for item in token_catalog}

    assert view.catalog['TOKEN-API'] is live['TOKEN-API']
    assert view.get('SETUP-IMPL') is live['SETUP-IMPL']


def test_rule_view_reports_missing_references(token_catalog, legacy_rules):
    view = RuleView.build(token_catalog, legacy_rules)

    assert 'CHARGEBACK' not in view
    assert [(d.code, d.item_id) for d in view.diagnostics] == [
        (DiagnosticCode.MISSING_CATALOG_REFERENCE, 'CHARGEBACK'),
    ]


def test_active_triggers(catalog, make_config):
    card_issue = next(i for i in catalog if i.id == 'CARD-ISSUE')
    assert active_triggers(card_issue, make_config(issuingCards="  ")) == []
    assert active_triggers(card_issue, make_config(issuingCards="physical")) == ['issuingCards']
    assert should_auto_add(card_issue, make_config(issuingCards=True))


def test_add_pass_uses_resolved_quantity_and_tier_price(catalog, make_config):
    view = RuleView.build(catalog)
    rows, added = add_pass([], make_config(issuingCards=True, debitCards=8, creditCards=4), view)

    assert added == ['CARD-ISSUE']
    assert rows[0].quantity == 12
    assert rows[0].unit_price == pytest.approx(4.0)


def test_add_pass_skips_selected_items(catalog, make_config, make_row):
    by_id = {item.id: item for item in catalog}
    view = RuleView.build(catalog)
    existing = make_row(by_id['CC-FEE'], quantity=9)

    rows, added = add_pass([existing], make_config(hasCreditCards=True), view)

    assert added == []
    assert rows == [existing]


def test_remove_pass_keeps_manual_rows(catalog, make_config, make_row):
    by_id = {item.id: item for item in catalog}
    view = RuleView.build(catalog)
    selection = [make_row(by_id['SUPPORT-PREM']), make_row(by_id['CC-FEE']), make_row(by_id['PORTAL-USER'])]

    kept, removed = remove_pass(selection, make_config(), view)

    assert removed == ['CC-FEE']
    assert [r.item_id for r in kept] == ['SUPPORT-PREM', 'PORTAL-USER']


def test_legacy_trigger_removes_row(token_catalog, legacy_rules, make_config):
    rows = reconcile_selection([], make_config(hasTokenization=True, monthlyTokenRequests=12000),
                               token_catalog, legacy_rules)
    assert [r.item_id for r in rows] == ['TOKEN-API']
    assert rows[0].quantity == 12000

    rows = reconcile_selection(rows, make_config(hasTokenization=False), token_catalog, legacy_rules)
    assert rows == []


def test_toggle_between_trigger_values_does_not_duplicate(catalog, make_config):
    rows = reconcile_selection([], make_config(monthlySMS=100), catalog)
    rows = reconcile_selection(rows, make_config(monthlySMS=250), catalog)

    assert [r.item_id for r in rows] == ['SMS-ALERT']


def test_add_pass_reports_non_numeric_quantity_source(catalog, make_config):
    view = RuleView.build(catalog)
    diagnostics = []

    rows, added = add_pass([], make_config(monthlySMS="500"), view, diagnostics)

    assert added == ['SMS-ALERT']
    # active trigger with no numeric quantity
    assert rows[0].quantity == 1
    assert [(d.code, d.item_id) for d in diagnostics] == [
        (DiagnosticCode.NON_NUMERIC_QUANTITY_SOURCE, 'SMS-ALERT'),
    ]


def test_rule_view_validates_tier_tables(catalog, make_item):
    gappy = make_item('GAPPY', pricing_type='tiered',
                      tiers=(PricingTier(1, 10, 5.0), PricingTier(15, None, 4.0)))

    view = RuleView.build(catalog + [gappy])

    assert [(d.code, d.item_id) for d in view.diagnostics] == [
        (DiagnosticCode.INVALID_TIER_TABLE, 'GAPPY'),
    ]
    assert "gap between tiers" in view.diagnostics[0].message
