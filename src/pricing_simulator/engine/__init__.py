"""
Engine subpackage - quantity, tier pricing, auto-add, discounts and reconciliation.

Pure computation only; the file-backed QuoteEngine facade lives in
engine.quote_engine and is imported from there.
"""
from .models import (
    AutoAddRuleSet,
    CatalogItem,
    ClientConfiguration,
    CostSummary,
    DiscountApplication,
    DiscountConfig,
    PriceResult,
    PricingTier,
    QuantityRule,
    Quote,
    SelectedRow,
)
from .quantity import resolve_quantity
from .tiers import price_item
from .reconciler import ReconciliationController, reconcile, reconcile_selection
from .discounts import summarize

__all__ = [
    'resolve_quantity', 'price_item', 'reconcile_selection', 'summarize',
    'reconcile', 'ReconciliationController', 'Quote',
    'AutoAddRuleSet', 'CatalogItem', 'ClientConfiguration', 'CostSummary',
    'DiscountApplication', 'DiscountConfig', 'PriceResult', 'PricingTier',
    'QuantityRule', 'SelectedRow',
]
