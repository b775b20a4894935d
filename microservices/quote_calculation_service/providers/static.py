"""
Static Providers

In-process rule, rate, shipping and fee providers backed by seed tables.
Used when QUOTE_PROVIDER_MODE=static and as the defaults in tests.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional

from ..models import ConversionResult, CountrySettings, Money, RateSource, ShippingQuote
from ..protocols import ConversionError, CurrencyRateProviderProtocol

logger = logging.getLogger(__name__)


# =============================================================================
# Seed Data
# =============================================================================

SEED_COUNTRY_SETTINGS: Dict[str, CountrySettings] = {
    s.code: s
    for s in (
        CountrySettings(
            code="US", name="United States", currency="USD",
            customs_percentage_default=Decimal("0"), vat_percentage=Decimal("0"),
            exchange_rate_to_usd=Decimal("1"), rate_source=RateSource.COUNTRY_SETTINGS.value,
            payment_gateway="stripe",
        ),
        CountrySettings(
            code="IN", name="India", currency="INR",
            customs_percentage_default=Decimal("15"), vat_percentage=Decimal("18"),
            exchange_rate_to_usd=Decimal("83"), rate_source=RateSource.COUNTRY_SETTINGS.value,
            payment_gateway="payu",
        ),
        CountrySettings(
            code="NP", name="Nepal", currency="NPR",
            customs_percentage_default=Decimal("15"), vat_percentage=Decimal("13"),
            exchange_rate_to_usd=Decimal("133"), rate_source=RateSource.COUNTRY_SETTINGS.value,
            payment_gateway="esewa",
        ),
        CountrySettings(
            code="JP", name="Japan", currency="JPY",
            customs_percentage_default=Decimal("10"), vat_percentage=Decimal("10"),
            exchange_rate_to_usd=Decimal("150"), rate_source=RateSource.COUNTRY_SETTINGS.value,
            payment_gateway="stripe",
        ),
        CountrySettings(
            code="GB", name="United Kingdom", currency="GBP",
            customs_percentage_default=Decimal("12"), vat_percentage=Decimal("20"),
            exchange_rate_to_usd=Decimal("0.79"), rate_source=RateSource.COUNTRY_SETTINGS.value,
            payment_gateway="stripe",
        ),
        CountrySettings(
            code="AU", name="Australia", currency="AUD",
            customs_percentage_default=Decimal("5"), vat_percentage=Decimal("10"),
            exchange_rate_to_usd=Decimal("1.52"), rate_source=RateSource.COUNTRY_SETTINGS.value,
            payment_gateway="stripe",
        ),
    )
}

# Built-in rules used when the provider has no row for a destination
FALLBACK_COUNTRY_SETTINGS: Dict[str, CountrySettings] = {
    s.code: s
    for s in (
        CountrySettings(
            code="BD", name="Bangladesh", currency="BDT",
            customs_percentage_default=Decimal("20"), vat_percentage=Decimal("15"),
            exchange_rate_to_usd=Decimal("110"), rate_source=RateSource.FALLBACK.value,
        ),
        CountrySettings(
            code="PK", name="Pakistan", currency="PKR",
            customs_percentage_default=Decimal("18"), vat_percentage=Decimal("17"),
            exchange_rate_to_usd=Decimal("280"), rate_source=RateSource.FALLBACK.value,
        ),
        CountrySettings(
            code="LK", name="Sri Lanka", currency="LKR",
            customs_percentage_default=Decimal("16"), vat_percentage=Decimal("18"),
            exchange_rate_to_usd=Decimal("300"), rate_source=RateSource.FALLBACK.value,
        ),
        CountrySettings(
            code="CA", name="Canada", currency="CAD",
            customs_percentage_default=Decimal("5"), vat_percentage=Decimal("13"),
            exchange_rate_to_usd=Decimal("1.36"), rate_source=RateSource.FALLBACK.value,
        ),
    )
}

# percentage of the charged amount + fixed USD amount
PAYMENT_GATEWAY_FEES: Dict[str, Dict[str, Decimal]] = {
    "stripe": {"percentage": Decimal("2.9"), "fixed": Decimal("0.30")},
    "paypal": {"percentage": Decimal("2.9"), "fixed": Decimal("0.30")},
    "esewa": {"percentage": Decimal("2.0"), "fixed": Decimal("0")},
    "khalti": {"percentage": Decimal("2.5"), "fixed": Decimal("0")},
    "payu": {"percentage": Decimal("2.0"), "fixed": Decimal("0")},
}
DEFAULT_PAYMENT_GATEWAY = "stripe"

# USD per kg, with a minimum charge
SHIPPING_RATES: Dict[str, Dict[str, Decimal]] = {
    "economy": {"per_kg": Decimal("15"), "estimated_days": Decimal("20")},
    "standard": {"per_kg": Decimal("25"), "estimated_days": Decimal("10")},
    "express": {"per_kg": Decimal("40"), "estimated_days": Decimal("5")},
}
MINIMUM_SHIPPING_CHARGE = Decimal("25")


# =============================================================================
# Country Settings
# =============================================================================


class StaticCountrySettingsProvider:
    """Country rules from an in-memory table"""

    def __init__(self, settings: Optional[Iterable[CountrySettings]] = None):
        rows = SEED_COUNTRY_SETTINGS.values() if settings is None else settings
        self._settings: Dict[str, CountrySettings] = {s.code: s for s in rows}

    async def get_country_settings(self, country_code: str) -> Optional[CountrySettings]:
        return self._settings.get(country_code.strip().upper())


# =============================================================================
# Currency Rates
# =============================================================================


class StaticCurrencyRateProvider:
    """
    Cross rates through USD.

    ``units_per_usd`` maps a currency to the number of its units equal to
    one USD, the way country settings store exchange rates.
    """

    def __init__(self, units_per_usd: Optional[Dict[str, Decimal]] = None,
                 rate_source: str = RateSource.COUNTRY_SETTINGS.value):
        if units_per_usd is None:
            units_per_usd = {
                s.currency: s.exchange_rate_to_usd
                for s in list(SEED_COUNTRY_SETTINGS.values()) + list(FALLBACK_COUNTRY_SETTINGS.values())
            }
        self._units_per_usd = {code.upper(): Decimal(str(rate)) for code, rate in units_per_usd.items()}
        self._units_per_usd.setdefault("USD", Decimal("1"))
        self.rate_source = rate_source

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        from_rate = self._units_per_usd.get(from_currency)
        to_rate = self._units_per_usd.get(to_currency)
        if from_rate is None or to_rate is None or from_rate <= 0:
            missing = from_currency if from_rate is None else to_currency
            raise ConversionError(from_currency, to_currency, f"unknown currency {missing}")
        return to_rate / from_rate

    async def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> ConversionResult:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return ConversionResult(
                amount=amount, rate=Decimal("1"), rate_source=RateSource.IDENTITY.value,
                from_currency=from_currency, to_currency=to_currency,
            )
        rate = self.rate(from_currency, to_currency)
        return ConversionResult(
            amount=amount * rate, rate=rate, rate_source=self.rate_source,
            from_currency=from_currency, to_currency=to_currency,
        )


# =============================================================================
# Shipping
# =============================================================================


class StaticShippingRateResolver:
    """Per-kg shipping tariff with a minimum charge, quoted in USD"""

    def __init__(self, rates: Optional[Dict[str, Dict[str, Decimal]]] = None,
                 minimum_charge: Decimal = MINIMUM_SHIPPING_CHARGE):
        self._rates = SHIPPING_RATES if rates is None else rates
        self._minimum_charge = minimum_charge

    async def get_shipping_quote(
        self,
        origin_country: str,
        destination_country: str,
        method: str,
        weight_kg: Decimal,
    ) -> Optional[ShippingQuote]:
        tariff = self._rates.get(method.strip().lower())
        if tariff is None:
            logger.warning(f"Shipping method not offered {origin_country}->{destination_country}: {method}")
            return None
        cost = max(weight_kg * tariff["per_kg"], self._minimum_charge)
        return ShippingQuote(
            method=method,
            cost=Money(amount=cost, currency="USD"),
            estimated_days=int(tariff["estimated_days"]),
        )


# =============================================================================
# Payment Gateway Fees
# =============================================================================


class StaticFeeScheduleResolver:
    """
    Gateway fee = amount x percentage / 100 + fixed.

    The fixed part is in USD and is converted into the charged currency when a
    rate provider is given. Unknown gateways use the stripe schedule.
    """

    def __init__(self, fees: Optional[Dict[str, Dict[str, Decimal]]] = None,
                 rate_provider: Optional[CurrencyRateProviderProtocol] = None):
        self._fees = PAYMENT_GATEWAY_FEES if fees is None else fees
        self._rate_provider = rate_provider

    async def get_gateway_fee(self, payment_method: str, amount: Money) -> Money:
        schedule = self._fees.get(payment_method.strip().lower())
        if schedule is None:
            logger.debug(f"Unknown payment gateway {payment_method}, using {DEFAULT_PAYMENT_GATEWAY}")
            schedule = self._fees[DEFAULT_PAYMENT_GATEWAY]

        fixed = schedule["fixed"]
        if fixed and amount.currency != "USD" and self._rate_provider is not None:
            fixed = (await self._rate_provider.convert(fixed, "USD", amount.currency)).amount

        fee = amount.amount * schedule["percentage"] / Decimal("100") + fixed
        return Money(amount=fee, currency=amount.currency)


__all__ = [
    "SEED_COUNTRY_SETTINGS",
    "FALLBACK_COUNTRY_SETTINGS",
    "PAYMENT_GATEWAY_FEES",
    "SHIPPING_RATES",
    "StaticCountrySettingsProvider",
    "StaticCurrencyRateProvider",
    "StaticShippingRateResolver",
    "StaticFeeScheduleResolver",
]
