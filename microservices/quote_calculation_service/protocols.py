"""
Quote Calculation Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from decimal import Decimal
from typing import List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from .models import Breakdown, CacheStats, CountrySettings, ConversionResult, Money, ShippingQuote


# =============================================================================
# Custom Exceptions (defined here to avoid importing providers)
# =============================================================================


class CalculationError(Exception):
    """Base exception for quote calculation; wraps unexpected failures"""
    kind = "calculation_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class InvalidInputError(CalculationError):
    """Raised when calculation parameters are malformed (never retried)"""
    kind = "invalid_input"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid calculation input: {'; '.join(self.errors)}")


class CountryNotConfiguredError(CalculationError):
    """Raised when a destination has no rule data or a country is not served"""
    kind = "country_not_configured"

    def __init__(self, country_code: str, reason: str = "no country settings configured",
                 role: str = "destination"):
        self.country_code = country_code
        self.reason = reason
        self.role = role
        super().__init__(f"{role.capitalize()} not supported: {country_code} ({reason})")


class ConversionError(CalculationError):
    """Raised when an exchange rate cannot be obtained"""
    kind = "conversion_error"

    def __init__(self, from_currency: str, to_currency: str, message: str = "rate unavailable",
                 cause: Optional[BaseException] = None):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(f"Cannot convert {from_currency} -> {to_currency}: {message}", cause=cause)


class CalculationTimeoutError(CalculationError):
    """Raised when a sub-call exceeds the configured bound"""
    kind = "timeout"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} exceeded {timeout_seconds}s")


# =============================================================================
# Country Settings Provider Protocol
# =============================================================================


@runtime_checkable
class CountrySettingsProviderProtocol(Protocol):
    """
    Interface for country rule data.

    Implementations:
    - StaticCountrySettingsProvider (seed table)
    - CountrySettingsClient (remote API)
    - MockCountrySettingsProvider (testing)
    """

    async def get_country_settings(self, country_code: str) -> Optional[CountrySettings]:
        """
        Fetch settings for a country.

        Args:
            country_code: ISO country code (e.g., "IN")

        Returns:
            CountrySettings snapshot or None if the country is unknown
        """
        ...


# =============================================================================
# Currency Rate Provider Protocol
# =============================================================================


@runtime_checkable
class CurrencyRateProviderProtocol(Protocol):
    """
    Interface for currency conversion.

    Implementations:
    - StaticCurrencyRateProvider (country settings cross rates)
    - ExchangeRateClient (remote API)
    - MockCurrencyRateProvider (testing)
    """

    async def convert(
        self, amount: Decimal, from_currency: str, to_currency: str
    ) -> ConversionResult:
        """
        Convert an amount between currencies.

        Same-currency conversion is the identity with rate 1.

        Raises:
            ConversionError: rate lookup failed
        """
        ...


# =============================================================================
# Shipping Rate Resolver Protocol
# =============================================================================


@runtime_checkable
class ShippingRateResolverProtocol(Protocol):
    """
    Interface for international shipping cost lookup.

    The engine never picks a method; it only consumes the resolved cost.
    """

    async def get_shipping_quote(
        self,
        origin_country: str,
        destination_country: str,
        method: str,
        weight_kg: Decimal,
    ) -> Optional[ShippingQuote]:
        """
        Resolve the cost of a shipping method for a route.

        Returns:
            ShippingQuote or None if the method is not offered on the route
        """
        ...


# =============================================================================
# Fee Schedule Resolver Protocol
# =============================================================================


@runtime_checkable
class FeeScheduleResolverProtocol(Protocol):
    """Interface for payment gateway fee lookup"""

    async def get_gateway_fee(self, payment_method: str, amount: Money) -> Money:
        """
        Fee charged by the gateway for collecting `amount`.

        Returns:
            Fee, in the currency of `amount`
        """
        ...


# =============================================================================
# Calculation Cache Protocol
# =============================================================================


@runtime_checkable
class CalculationCacheProtocol(Protocol):
    """
    Interface for the breakdown cache.

    Implementations:
    - CalculationCache (in-process LRU)
    """

    def get(self, fingerprint: str) -> Optional[Breakdown]:
        """Get cached breakdown, None on miss or expiry."""
        ...

    def put(self, fingerprint: str, breakdown: Breakdown) -> None:
        """Store breakdown under fingerprint."""
        ...

    def clear(self) -> None:
        """Drop all entries."""
        ...

    def size(self) -> int:
        """Number of live entries."""
        ...

    def stats(self) -> CacheStats:
        """Hit/miss/eviction counters and current size."""
        ...


__all__ = [
    "CalculationError",
    "InvalidInputError",
    "CountryNotConfiguredError",
    "ConversionError",
    "CalculationTimeoutError",
    "CountrySettingsProviderProtocol",
    "CurrencyRateProviderProtocol",
    "ShippingRateResolverProtocol",
    "FeeScheduleResolverProtocol",
    "CalculationCacheProtocol",
]
