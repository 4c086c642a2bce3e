"""
Shared fixtures: a small payment-services catalog built in memory.
"""
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from pricing_simulator.engine.models import (
    CatalogItem,
    ClientConfiguration,
    PricingTier,
    SelectedRow,
)


def _item(item_id, **kwargs):
    defaults = dict(name=item_id, category='processing', unit='Per Transaction')
    defaults.update(kwargs)
    return CatalogItem(id=item_id, **defaults)


@pytest.fixture
def make_item():
    """Factory for catalog items with sensible defaults."""
    return _item


@pytest.fixture
def make_config():
    def _config(**field_values):
        return ClientConfiguration(client_name="Test Client", field_values=field_values)
    return _config


@pytest.fixture
def make_row():
    def _row(item, quantity=1, unit_price=None, **kwargs):
        price = item.default_price if unit_price is None else unit_price
        return SelectedRow(item=item, quantity=quantity, unit_price=price, **kwargs)
    return _row


@pytest.fixture
def catalog():
    """Card-issuing catalog with flat, tiered, manual and auto-managed items."""
    return [
        _item('SETUP-IMPL', category='setup', unit='Per Project', default_price=5000),
        _item('CC-FEE', default_price=0.15, auto_add_trigger_fields=('hasCreditCards',)),
        _item(
            'SMS-ALERT',
            pricing_type='tiered',
            default_price=0.05,
            tiers=(
                PricingTier(1, 1000, 0.05),
                PricingTier(1001, None, 0.04),
            ),
            quantity_source_fields=('monthlySMS',),
            auto_add_trigger_fields=('monthlySMS',),
        ),
        _item(
            'CARD-ISSUE',
            category='cards',
            unit='Per Card',
            pricing_type='tiered',
            default_price=5,
            tiers=(
                PricingTier(1, 10, 5.0),
                PricingTier(11, None, 4.0),
            ),
            quantity_source_fields=('debitCards', 'creditCards'),
            auto_add_trigger_fields=('issuingCards',),
        ),
        _item('PORTAL-USER', category='platform', unit='Per User', default_price=25,
              quantity_source_fields=('portalUsers',), quantity_multiplier=1),
        _item('SUPPORT-PREM', category='support', unit='Per Month', default_price=1200),
    ]
