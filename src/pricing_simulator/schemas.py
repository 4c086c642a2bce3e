"""
Input schemas - pydantic models for JSON payloads handed to the engine.

Configuration Store and Catalog Provider payloads use camelCase keys; the
snake_case attribute names are accepted too. Field values are strict tagged
values: a JSON "500" stays a string and a JSON true stays a bool.
"""
from typing import Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from .engine.models import (
    AutoAddRuleSet,
    CatalogItem,
    ClientConfiguration,
    DiscountApplication,
    DiscountConfig,
    PricingTier,
    QuantityRule,
    SelectedRow,
)

# StrictBool first so true/false never coerce to numbers
FieldValueIn = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PricingTierIn(_Schema):
    """Request model for a tier row."""
    min_quantity: int = Field(ge=0)
    max_quantity: Optional[int] = None
    price: float
    price_type: Literal['per_unit', 'flat'] = 'per_unit'
    name: Optional[str] = None

    def to_model(self) -> PricingTier:
        return PricingTier(**self.model_dump())


class CatalogItemIn(_Schema):
    """Request model for a catalog record."""
    id: str
    name: str
    category: str
    unit: str
    pricing_type: Literal['flat', 'tiered'] = 'flat'
    default_price: float = 0.0
    tiers: list[PricingTierIn] = []
    quantity_source_fields: list[str] = []
    quantity_multiplier: float = 1
    auto_add_trigger_fields: list[str] = []
    description: str = ""

    @field_validator('pricing_type', mode='before')
    @classmethod
    def _legacy_simple(cls, value):
        # older catalogs call flat pricing "simple"
        return 'flat' if value == 'simple' else value

    def to_model(self) -> CatalogItem:
        return CatalogItem(
            id=self.id,
            name=self.name,
            category=self.category,
            unit=self.unit,
            pricing_type=self.pricing_type,
            default_price=self.default_price,
            tiers=tuple(sorted((t.to_model() for t in self.tiers), key=lambda t: t.min_quantity)),
            quantity_source_fields=tuple(self.quantity_source_fields),
            quantity_multiplier=self.quantity_multiplier,
            auto_add_trigger_fields=tuple(self.auto_add_trigger_fields),
            description=self.description,
        )


class ClientConfigurationIn(_Schema):
    """Request model for a client configuration."""
    client_name: str = ""
    project_name: str = ""
    prepared_by: str = ""
    field_values: dict[str, FieldValueIn] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('fieldValues', 'configValues', 'field_values'),
    )

    def to_model(self) -> ClientConfiguration:
        return ClientConfiguration(
            client_name=self.client_name,
            project_name=self.project_name,
            prepared_by=self.prepared_by,
            field_values=dict(self.field_values),
        )


class SelectedRowIn(_Schema):
    """Request model for a selected row; the item is referenced by id."""
    item_id: str
    quantity: int = Field(default=1, ge=0)
    unit_price: Optional[float] = None
    discount_value: float = Field(default=0.0, validation_alias=AliasChoices('discountValue', 'discount', 'discount_value'))
    discount_type: Literal['percentage', 'fixed'] = 'percentage'
    discount_scope: Literal['unit', 'total'] = Field(
        default='total',
        validation_alias=AliasChoices('discountScope', 'discountApplication', 'discount_scope'),
    )
    is_free: bool = False

    def to_model(self, catalog: dict[str, CatalogItem]) -> Optional[SelectedRow]:
        """Row bound to its catalog record; None when the item is unknown."""
        item = catalog.get(self.item_id)
        if item is None:
            return None
        return SelectedRow(
            item=item,
            quantity=self.quantity,
            unit_price=self.unit_price if self.unit_price is not None else item.default_price,
            discount_value=self.discount_value,
            discount_type=self.discount_type,
            discount_scope=self.discount_scope,
            is_free=self.is_free,
        )


class DiscountConfigIn(_Schema):
    """Request model for the global discount."""
    value: float = Field(default=0.0, ge=0)
    discount_type: Literal['percentage', 'fixed'] = 'percentage'
    application: DiscountApplication = DiscountApplication.NONE

    def to_model(self) -> DiscountConfig:
        return DiscountConfig(value=self.value, discount_type=self.discount_type, application=self.application)


class QuantityRuleIn(_Schema):
    field: str
    multiplier: float = 1


class AutoAddRuleSetIn(_Schema):
    """Compiled auto-add rule set."""
    auto_add_rules: dict[str, list[str]] = {}
    quantity_rules: dict[str, QuantityRuleIn] = {}

    def to_model(self) -> AutoAddRuleSet:
        return AutoAddRuleSet(
            auto_add_rules={k: list(v) for k, v in self.auto_add_rules.items()},
            quantity_rules={k: QuantityRule(field=v.field, multiplier=v.multiplier)
                            for k, v in self.quantity_rules.items()},
        )
