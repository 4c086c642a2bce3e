"""
Data models for the pricing simulator engine.

Uses dataclasses for structured, type-safe data representation.
Catalog records and rule metadata are read-only to the engine; a reconciliation
pass produces new SelectedRow objects instead of mutating the ones it was given.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


# A configuration value. bool is checked before int/float wherever it matters,
# since bool is a subclass of int.
FieldValue = Union[bool, int, float, str]

PRICING_FLAT = 'flat'
PRICING_TIERED = 'tiered'

TIER_PER_UNIT = 'per_unit'
TIER_FLAT = 'flat'

DISCOUNT_PERCENTAGE = 'percentage'
DISCOUNT_FIXED = 'fixed'

SCOPE_UNIT = 'unit'
SCOPE_TOTAL = 'total'


class DiscountApplication(str, Enum):
    """Which bucket(s) the global discount reduces."""
    NONE = 'none'
    BOTH = 'both'
    MONTHLY = 'monthly'
    ONETIME = 'onetime'


class DiagnosticCode(str, Enum):
    """Locally recoverable problems reported alongside engine results."""
    MISSING_CATALOG_REFERENCE = 'missing_catalog_reference'
    INVALID_TIER_TABLE = 'invalid_tier_table'
    NON_NUMERIC_QUANTITY_SOURCE = 'non_numeric_quantity_source'
    NON_MONOTONIC_TIER_BOUNDARY = 'non_monotonic_tier_boundary'
    MALFORMED_ROW = 'malformed_row'


@dataclass(frozen=True)
class Diagnostic:
    """A data-quality finding. Never fatal."""
    code: DiagnosticCode
    message: str
    item_id: Optional[str] = None

    def __str__(self) -> str:
        prefix = f"[{self.item_id}] " if self.item_id else ""
        return f"{prefix}{self.code.value}: {self.message}"


@dataclass
class TraceStep:
    """A single step in the reconciliation or quote trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass(frozen=True)
class PricingTier:
    """A quantity range (inclusive bounds) with its price."""
    min_quantity: int
    max_quantity: Optional[int]  # None means unlimited
    price: float
    price_type: str = TIER_PER_UNIT  # "per_unit" or "flat" (flat-for-range)
    name: Optional[str] = None

    def contains(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity


@dataclass(frozen=True)
class CatalogItem:
    """A priced service from the catalog."""
    id: str
    name: str
    category: str
    unit: str
    pricing_type: str = PRICING_FLAT
    default_price: float = 0.0
    tiers: tuple[PricingTier, ...] = ()
    quantity_source_fields: tuple[str, ...] = ()
    quantity_multiplier: float = 1
    auto_add_trigger_fields: tuple[str, ...] = ()
    description: str = ""

    @property
    def is_tiered(self) -> bool:
        return self.pricing_type == PRICING_TIERED


@dataclass
class ClientConfiguration:
    """Client identity plus the dynamic configuration field values."""
    client_name: str = ""
    project_name: str = ""
    prepared_by: str = ""
    field_values: dict[str, FieldValue] = field(default_factory=dict)

    def get(self, field_id: str) -> Optional[FieldValue]:
        """Value of a field, or None when the field is unknown."""
        return self.field_values.get(field_id)


@dataclass
class SelectedRow:
    """A catalog item in the client's selection."""
    item: CatalogItem
    quantity: int
    unit_price: float
    discount_value: float = 0.0
    discount_type: str = DISCOUNT_PERCENTAGE
    discount_scope: str = SCOPE_TOTAL
    is_free: bool = False

    @property
    def item_id(self) -> str:
        return self.item.id

    @property
    def list_price(self) -> float:
        """Quantity × cached unit price, before any discount or free flag."""
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class QuantityRule:
    """Legacy quantity sync rule: quantity = field value × multiplier."""
    field: str
    multiplier: float = 1


@dataclass
class AutoAddRuleSet:
    """
    Administrator-editable rules kept alongside the catalog-native fields.

    auto_add_rules: config field id → catalog item ids it triggers
    quantity_rules: catalog item id → quantity sync rule
    """
    auto_add_rules: dict[str, list[str]] = field(default_factory=dict)
    quantity_rules: dict[str, QuantityRule] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.auto_add_rules and not self.quantity_rules


@dataclass(frozen=True)
class DiscountConfig:
    """Global discount applied to bucket subtotals."""
    value: float = 0.0
    discount_type: str = DISCOUNT_PERCENTAGE
    application: DiscountApplication = DiscountApplication.NONE


@dataclass
class PriceResult:
    """Unit price and row total for an item at a quantity."""
    unit_price: float
    row_total: float
    tier: Optional[PricingTier] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""
    selection: list[SelectedRow]
    changed: bool
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    resynced: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the pass trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)


@dataclass
class Savings:
    """Savings breakdown for a summary."""
    original_price: float
    total_final_price: float
    total_savings: float
    free_savings: float
    discount_savings: float
    savings_rate: float  # fraction of original price, 0..1


@dataclass
class CostSummary:
    """Complete result of summarizing a selection."""
    one_time_total: float
    monthly_total: float
    yearly_total: float
    total_project_cost: float
    savings: Savings

    # Breakdown
    one_time_subtotal: float = 0.0
    monthly_subtotal: float = 0.0
    row_discount_total: float = 0.0
    global_discount_amount: float = 0.0
    category_totals: dict[str, float] = field(default_factory=dict)
    one_time_item_count: int = 0
    monthly_item_count: int = 0
    free_item_count: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def total_discount_amount(self) -> float:
        return self.row_discount_total + self.global_discount_amount

    def to_report_dict(self) -> dict:
        """Convert to the mapping consumed by report/export collaborators."""
        return {
            "oneTimeTotal": self.one_time_total,
            "monthlyTotal": self.monthly_total,
            "yearlyTotal": self.yearly_total,
            "totalProjectCost": self.total_project_cost,
            "savings": {
                "originalPrice": self.savings.original_price,
                "totalFinalPrice": self.savings.total_final_price,
                "totalSavings": self.savings.total_savings,
                "freeSavings": self.savings.free_savings,
                "discountSavings": self.savings.discount_savings,
                "savingsRate": self.savings.savings_rate,
            },
        }


@dataclass
class Quote:
    """A priced selection for one client configuration."""
    configuration: ClientConfiguration
    selection: list[SelectedRow]
    summary: CostSummary
    discount: DiscountConfig = field(default_factory=DiscountConfig)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    # Metadata
    catalog_hash: Optional[str] = None
    rules_hash: Optional[str] = None

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the quote-level trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable quote trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)

    def to_report_dict(self) -> dict:
        """Summary plus the selected rows, for report/export collaborators."""
        report = self.summary.to_report_dict()
        report["client"] = {
            "clientName": self.configuration.client_name,
            "projectName": self.configuration.project_name,
            "preparedBy": self.configuration.prepared_by,
        }
        report["items"] = [
            {
                "id": row.item_id,
                "name": row.item.name,
                "category": row.item.category,
                "unit": row.item.unit,
                "quantity": row.quantity,
                "unitPrice": row.unit_price,
                "discount": row.discount_value,
                "discountType": row.discount_type,
                "discountScope": row.discount_scope,
                "isFree": row.is_free,
            }
            for row in self.selection
        ]
        return report
