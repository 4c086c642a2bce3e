import pytest

from pricing_simulator.engine.field_values import is_active, is_number, numeric_value
from pricing_simulator.engine.models import DiagnosticCode
from pricing_simulator.engine.quantity import (
    describe_quantity_source,
    non_numeric_sources,
    resolve_quantity,
)


@pytest.mark.parametrize("value, active", [
    (True, True),
    (False, False),
    (1, True),
    (0.5, True),
    (0, False),
    (-3, False),
    ("yes", True),
    ("   ", False),
    ("", False),
    (None, False),
])
def test_is_active(value, active):
    assert is_active(value) is active


def test_bools_are_not_numbers():
    assert not is_number(True)
    assert numeric_value(True) == 0.0
    assert numeric_value(float('nan')) == 0.0
    assert numeric_value("500") == 0.0
    assert numeric_value(12) == 12.0


def test_sums_source_fields_with_multiplier(make_item, make_config):
    item = make_item('CARDS', quantity_source_fields=('debitCards', 'creditCards'), quantity_multiplier=2)
    assert resolve_quantity(item, make_config(debitCards=100, creditCards=50)) == 300


def test_fractional_quantity_rounds_up(make_item, make_config):
    item = make_item('USERS', quantity_source_fields=('portalUsers',), quantity_multiplier=1.1)
    assert resolve_quantity(item, make_config(portalUsers=100)) == 110
    assert resolve_quantity(item, make_config(portalUsers=2.5)) == 3


def test_negative_sum_clamps_to_zero(make_item, make_config):
    item = make_item('SMS', quantity_source_fields=('monthlySMS',))
    assert resolve_quantity(item, make_config(monthlySMS=-20)) == 0


def test_non_numeric_and_missing_count_as_zero(make_item, make_config):
    item = make_item('SMS', quantity_source_fields=('monthlySMS', 'extraSMS'))
    assert resolve_quantity(item, make_config(monthlySMS="500", extraSMS=40)) == 40
    assert resolve_quantity(item, make_config()) == 0


def test_zero_sum_with_active_trigger_is_one(make_item, make_config):
    item = make_item(
        'CC-FEE',
        quantity_source_fields=('monthlyCardTransactions',),
        auto_add_trigger_fields=('hasCreditCards',),
    )
    assert resolve_quantity(item, make_config(hasCreditCards=True)) == 1
    assert resolve_quantity(item, make_config(hasCreditCards=False)) == 0


def test_manual_item_keeps_current_quantity(make_item, make_config):
    item = make_item('SUPPORT')
    config = make_config(monthlySMS=500)
    assert resolve_quantity(item, config, current_quantity=7) == 7
    assert resolve_quantity(item, config) == 1


def test_resolution_is_idempotent(make_item, make_config):
    item = make_item('SMS', quantity_source_fields=('monthlySMS',), quantity_multiplier=0.5)
    config = make_config(monthlySMS=333)
    first = resolve_quantity(item, config)
    assert resolve_quantity(item, config, current_quantity=first) == first


def test_non_numeric_sources_reported(make_item, make_config):
    item = make_item('SMS', quantity_source_fields=('monthlySMS', 'extraSMS', 'missing'))
    diagnostics = non_numeric_sources(item, make_config(monthlySMS="500", extraSMS=True))

    assert [d.code for d in diagnostics] == [DiagnosticCode.NON_NUMERIC_QUANTITY_SOURCE] * 2
    assert all(d.item_id == 'SMS' for d in diagnostics)


def test_describe_quantity_source(make_item):
    assert describe_quantity_source(make_item('MANUAL')) is None

    single = make_item('SMS', quantity_source_fields=('monthlySMS',))
    assert describe_quantity_source(single, {'monthlySMS': 'Monthly SMS'}) == \
        "Automatically calculated from: Monthly SMS"

    combined = make_item('CARDS', quantity_source_fields=('debitCards', 'creditCards'), quantity_multiplier=2)
    assert describe_quantity_source(combined) == "Automatically calculated from: (debitCards + creditCards) × 2"
