#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
データモデル
Boundary models for commerce platform payloads, warehouse rows and
dashboard results. Upstream JSON is validated here once; everything
downstream works on these models.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.config import Config
from core.utils import cents_to_amount, format_money, get_localized_name, parse_iso_datetime

CAMPAIGN_KEY_FIELDS = ('campaign-key', 'campaing-key')
UNCATEGORIZED = 'uncategorized'


class UpstreamModel(BaseModel):
    """Commerce platform payload; unknown keys are ignored"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class ResultModel(BaseModel):
    """Dashboard result serialised with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Money(UpstreamModel):
    cent_amount: int = 0
    currency_code: str = Field(default_factory=lambda: Config.DEFAULT_CURRENCY)

    @property
    def amount(self) -> float:
        return cents_to_amount(self.cent_amount)


class RelativeValue(UpstreamModel):
    type: Literal['relative']
    permyriad: int = Field(default=0, ge=0, le=10000)


class MoneyValue(UpstreamModel):
    type: Literal['absolute', 'fixed']
    money: List[Money] = Field(default_factory=list)


class CustomFields(UpstreamModel):
    type: Optional[Dict[str, Any]] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class Discount(UpstreamModel):
    """Cart discount as read from the commerce platform"""

    id: str
    version: int = 0
    key: Optional[str] = None
    name: Dict[str, str] = Field(default_factory=dict)
    value: Optional[Union[RelativeValue, MoneyValue]] = None
    is_active: bool = False
    valid_from: Optional[str] = None
    valid_until: Optional[str] = None
    custom: Optional[CustomFields] = None

    @field_validator('value', mode='before')
    @classmethod
    def _drop_unknown_value_types(cls, value):
        # e.g. giftLineItem / multiBuy values carry no amount this dashboard can show
        if isinstance(value, dict) and value.get('type') not in ('relative', 'absolute', 'fixed'):
            return None
        return value

    @property
    def fields(self) -> Dict[str, Any]:
        if self.custom is None:
            return {}
        return self.custom.fields

    @property
    def display_name(self) -> str:
        return get_localized_name(self.name)

    @property
    def cap(self) -> Optional[Money]:
        cap = self.fields.get('cap')
        if not isinstance(cap, dict) or cap.get('centAmount') is None:
            return None
        try:
            return Money.model_validate(cap)
        except ValueError:
            return None

    @property
    def application_cap(self) -> int:
        value = self.fields.get('application-cap')
        if isinstance(value, bool):
            return 0
        try:
            return int(value) if value is not None else 0
        except (TypeError, ValueError):
            return 0

    @property
    def auto_disable(self) -> bool:
        return bool(self.fields.get('auto', False))

    @property
    def campaign_key(self) -> Optional[str]:
        for field in CAMPAIGN_KEY_FIELDS:
            value = self.fields.get(field)
            if value:
                return str(value)
        return None

    @property
    def campaign_name(self) -> Optional[str]:
        value = self.fields.get('campaign-name')
        return str(value) if value else None

    @property
    def effective_start(self) -> Optional[datetime]:
        """custom start-date, else validFrom"""
        return parse_iso_datetime(self.fields.get('start-date')) or parse_iso_datetime(self.valid_from)

    @property
    def effective_end(self) -> Optional[datetime]:
        """custom end-date, else validUntil"""
        return parse_iso_datetime(self.fields.get('end-date')) or parse_iso_datetime(self.valid_until)

    def describe_value(self) -> str:
        """Human readable discount value, e.g. "15%" or "$10.00" """
        if isinstance(self.value, RelativeValue) and self.value.permyriad:
            return f"{self.value.permyriad / 100:.0f}%"
        if isinstance(self.value, MoneyValue) and self.value.money:
            money = self.value.money[0]
            return format_money(money.cent_amount, money.currency_code)
        if self.value is None:
            return 'N/A'
        return 'Complex discount'


class Reference(UpstreamModel):
    type_id: Optional[str] = None
    id: Optional[str] = None
    obj: Optional[Dict[str, Any]] = None

    @property
    def resolved_id(self) -> Optional[str]:
        """id of a plain or expanded reference"""
        if self.id:
            return self.id
        if self.obj and self.obj.get('id'):
            return self.obj['id']
        return None


class IncludedDiscount(UpstreamModel):
    discount: Reference
    discounted_amount: Money


class DiscountedPrice(UpstreamModel):
    value: Optional[Money] = None
    included_discounts: List[IncludedDiscount] = Field(default_factory=list)


class DiscountedPricePerQuantity(UpstreamModel):
    quantity: int = 0
    discounted_price: Optional[DiscountedPrice] = None


class Price(UpstreamModel):
    value: Money


class Variant(UpstreamModel):
    id: Optional[int] = None
    sku: Optional[str] = None


class LineItem(UpstreamModel):
    id: Optional[str] = None
    product_id: str
    name: Dict[str, str] = Field(default_factory=dict)
    quantity: int = 0
    price: Optional[Price] = None
    variant: Optional[Variant] = None
    total_price: Optional[Money] = None
    discounted_price_per_quantity: List[DiscountedPricePerQuantity] = Field(default_factory=list)


class Address(UpstreamModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class Order(UpstreamModel):
    id: str
    created_at: str
    total_price: Money
    order_number: Optional[str] = None
    order_state: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    billing_address: Optional[Address] = None

    @property
    def created(self) -> Optional[datetime]:
        return parse_iso_datetime(self.created_at)


class DiscountUsageRecord(BaseModel):
    """Warehouse row, one per (order, line item, included discount)"""
    model_config = ConfigDict(extra='ignore')

    discount_id: str
    order_id: str
    timestamp: Optional[str] = None
    discount_amount: float = 0.0
    currency_code: Optional[str] = None
    quantity: int = 0
    product_id: Optional[str] = None


class UsageTotals(BaseModel):
    """Pre-grouped warehouse usage per discount"""
    model_config = ConfigDict(extra='ignore')

    discount_id: str
    total_spent: float = 0.0
    order_count: int = 0

    @field_validator('total_spent', mode='before')
    @classmethod
    def _none_spent(cls, value):
        return 0.0 if value is None else value

    @field_validator('order_count', mode='before')
    @classmethod
    def _none_count(cls, value):
        return 0 if value is None else value


class DiscountCapRecord(ResultModel):
    """Normalised per-discount utilisation"""

    id: str
    name: str
    key: Optional[str] = None
    version: int = 0
    is_active: bool = False
    total_budget: float = 0.0
    total_spent: float = 0.0
    total_usage: int = 0
    order_count: int = 0
    application_cap: int = 0
    budget_percentage: float = 0.0
    usage_percentage: float = 0.0
    currency_code: str = 'AUD'
    auto_disable: bool = False
    campaign_key: Optional[str] = None
    campaign_name: Optional[str] = None


class DiscountUsageSummary(ResultModel):
    id: str
    name: str
    key: Optional[str] = None
    is_active: bool = False
    total_amount: float = 0.0
    order_count: int = 0
    unique_order_count: int = 0
    currency_code: str = 'AUD'


class TimelineBar(ResultModel):
    left: float
    width: float
    today: float
    state: str


class Campaign(ResultModel):
    id: str
    name: str
    discounts: List[Discount] = Field(default_factory=list)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    status: str = 'unknown'
    target_groups: List[str] = Field(default_factory=list)
    target_categories: List[str] = Field(default_factory=list)
    timeline: Optional[TimelineBar] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={'discounts'}, mode='json')
        data['discounts'] = [
            {
                'id': d.id,
                'name': d.display_name,
                'key': d.key,
                'isActive': d.is_active,
                'value': d.describe_value(),
                'applicationCap': d.application_cap,
                'validFrom': d.effective_start.isoformat() if d.effective_start else None,
                'validUntil': d.effective_end.isoformat() if d.effective_end else None,
            }
            for d in self.discounts
        ]
        return data
