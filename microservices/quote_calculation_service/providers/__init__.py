"""In-process providers for country rules, exchange rates, shipping and gateway fees."""

from .country_rules import CountryRuleResolver
from .static import (
    FALLBACK_COUNTRY_SETTINGS,
    PAYMENT_GATEWAY_FEES,
    SEED_COUNTRY_SETTINGS,
    SHIPPING_RATES,
    StaticCountrySettingsProvider,
    StaticCurrencyRateProvider,
    StaticFeeScheduleResolver,
    StaticShippingRateResolver,
)

__all__ = [
    "CountryRuleResolver",
    "FALLBACK_COUNTRY_SETTINGS",
    "PAYMENT_GATEWAY_FEES",
    "SEED_COUNTRY_SETTINGS",
    "SHIPPING_RATES",
    "StaticCountrySettingsProvider",
    "StaticCurrencyRateProvider",
    "StaticFeeScheduleResolver",
    "StaticShippingRateResolver",
]
