"""
Quote Calculation Service Models

Landed-cost quote data model: purchase items, calculation parameters,
resolved country rules, currency conversions and the itemized breakdown.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def _float_to_decimal(value: Any) -> Any:
    # Decimal(float) keeps binary noise; go through repr so 0.1 stays 0.1
    if isinstance(value, float):
        return Decimal(repr(value))
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _upper_code(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


# ====================
# Enums
# ====================

class CalculationState(str, Enum):
    """Reactive recalculation controller state"""
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    CALCULATING = "calculating"
    SETTLED = "settled"
    ERRORED = "errored"
    DISPOSED = "disposed"


class RateSource(str, Enum):
    """Where an exchange rate or rule snapshot came from"""
    IDENTITY = "identity"
    COUNTRY_SETTINGS = "country_settings"
    EXCHANGE_RATE_API = "exchange_rate_api"
    PROVIDER = "provider"
    FALLBACK = "fallback"


# ====================
# Input Models
# ====================

class Money(BaseModel):
    """Amount with an explicit ISO-4217 currency code"""
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3, description="ISO currency code")

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return _float_to_decimal(v)

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return _upper_code(v)


class Item(BaseModel):
    """Product item submitted from a foreign store"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    unit_price: Money
    weight_kg: Decimal = Field(default=Decimal("0"), description="Weight of one unit in kg")
    quantity: int = Field(default=1, description="Number of units (>= 1)")
    product_name: str = ""

    @field_validator("weight_kg", mode="before")
    @classmethod
    def coerce_weight(cls, v: Any) -> Any:
        return _float_to_decimal(v)


class CalculationParams(BaseModel):
    """
    Full input of one quote calculation.

    Flat fee fields are absolute amounts in ``purchase_currency``; the
    resulting Breakdown is emitted in ``selling_currency``.
    """
    model_config = ConfigDict(frozen=True)

    items: List[Item] = Field(default_factory=list)
    origin_country: str = Field(..., min_length=2, max_length=3)
    destination_country: str = Field(..., min_length=2, max_length=3)
    selling_currency: str = Field(..., min_length=3, max_length=3)
    purchase_currency: Optional[str] = Field(None, min_length=3, max_length=3)

    # Customer-entered absolute amounts
    sales_tax: Decimal = Decimal("0")
    merchant_shipping: Decimal = Decimal("0")
    domestic_shipping: Decimal = Decimal("0")
    handling_charge: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    insurance_amount: Decimal = Decimal("0")

    # Rate (percent), overrides the destination default when set
    customs_percentage: Optional[Decimal] = None

    # Externally resolved components
    shipping_method: Optional[str] = None
    international_shipping: Optional[Decimal] = None
    payment_method: Optional[str] = None
    payment_gateway_fee: Optional[Decimal] = None

    force_recalculate: bool = False

    @field_validator(
        "sales_tax", "merchant_shipping", "domestic_shipping", "handling_charge",
        "discount", "insurance_amount", "customs_percentage",
        "international_shipping", "payment_gateway_fee",
        mode="before",
    )
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _float_to_decimal(v)

    @field_validator(
        "origin_country", "destination_country", "selling_currency", "purchase_currency",
        mode="before",
    )
    @classmethod
    def normalize_codes(cls, v: Any) -> Any:
        return _upper_code(v)


# ====================
# Resolved Collaborator Data
# ====================

class CountrySettings(BaseModel):
    """Per-country rule snapshot, resolved once per calculation"""
    model_config = ConfigDict(frozen=True)

    code: str
    name: str = ""
    currency: str = Field(..., min_length=3, max_length=3)
    customs_percentage_default: Decimal = Decimal("0")
    vat_percentage: Decimal = Decimal("0")
    exchange_rate_to_usd: Decimal = Field(
        default=Decimal("1"), description="Units of `currency` equal to one USD"
    )
    rate_source: str = RateSource.PROVIDER.value

    # Handling rules
    purchase_allowed: bool = True
    shipping_allowed: bool = True
    payment_gateway: Optional[str] = None

    @field_validator(
        "customs_percentage_default", "vat_percentage", "exchange_rate_to_usd", mode="before"
    )
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _float_to_decimal(v)

    @field_validator("code", "currency", mode="before")
    @classmethod
    def normalize_codes(cls, v: Any) -> Any:
        return _upper_code(v)


class ConversionResult(BaseModel):
    """Result of converting an amount between two currencies"""
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    rate: Decimal
    rate_source: str
    from_currency: str
    to_currency: str


class ShippingQuote(BaseModel):
    """International shipping cost for a chosen method"""
    model_config = ConfigDict(frozen=True)

    method: str
    cost: Money
    estimated_days: Optional[int] = None


# ====================
# Output Models
# ====================

class Breakdown(BaseModel):
    """
    Itemized landed-cost breakdown.

    Every money field is in ``currency`` (the selling currency) and rounded
    to 2 places. ``final_total == sub_total + vat``.
    """
    model_config = ConfigDict(frozen=True)

    currency: str
    destination_currency: str

    total_item_price: Decimal
    sales_tax_price: Decimal
    merchant_shipping_price: Decimal
    international_shipping: Decimal
    customs_and_ecs: Decimal
    domestic_shipping: Decimal
    handling_charge: Decimal
    insurance_amount: Decimal
    discount: Decimal
    payment_gateway_fee: Decimal
    vat: Decimal
    sub_total: Decimal
    final_total: Decimal

    exchange_rate: Decimal = Decimal("1")
    exchange_rate_source: str = RateSource.IDENTITY.value
    shipping_method: Optional[str] = None
    total_item_weight: Decimal = Decimal("0")
    customs_percentage: Decimal = Decimal("0")
    vat_percentage: Decimal = Decimal("0")
    calculation_timestamp: datetime = Field(default_factory=_utcnow)


class CacheEntry(BaseModel):
    """Cached breakdown keyed by input fingerprint"""
    model_config = ConfigDict(frozen=True)

    fingerprint: str
    breakdown: Breakdown
    created_at: datetime = Field(default_factory=_utcnow)
    last_accessed: datetime = Field(default_factory=_utcnow)
    hit_count: int = 0
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or _utcnow()) >= self.expires_at


class CacheStats(BaseModel):
    """Calculation cache statistics"""
    size: int = 0
    max_entries: int = 0
    ttl_seconds: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class PerformanceMetrics(BaseModel):
    """Orchestrator counters since creation or last reset"""
    total_calculations: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    failed_calculations: int = 0
    cumulative_latency_ms: float = 0.0

    @computed_field
    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        if lookups == 0:
            return 0.0
        return self.cache_hits / lookups * 100

    @computed_field
    @property
    def average_calculation_time_ms(self) -> float:
        if self.total_calculations == 0:
            return 0.0
        return self.cumulative_latency_ms / self.total_calculations


__all__ = [
    "CalculationState",
    "RateSource",
    "Money",
    "Item",
    "CalculationParams",
    "CountrySettings",
    "ConversionResult",
    "ShippingQuote",
    "Breakdown",
    "CacheEntry",
    "CacheStats",
    "PerformanceMetrics",
]
