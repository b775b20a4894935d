"""
Quote Calculation Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_quote_calculation_service
    service = create_quote_calculation_service(config)
"""
import logging
from typing import Dict, Optional

from core.config import QuoteEngineConfig, get_settings

from .calculation_cache import CalculationCache
from .models import CountrySettings
from .protocols import (
    CalculationCacheProtocol,
    CountrySettingsProviderProtocol,
    CurrencyRateProviderProtocol,
    FeeScheduleResolverProtocol,
    ShippingRateResolverProtocol,
)
from .providers.static import (
    StaticCountrySettingsProvider,
    StaticCurrencyRateProvider,
    StaticFeeScheduleResolver,
    StaticShippingRateResolver,
)
from .quote_calculation_service import QuoteCalculationService

logger = logging.getLogger(__name__)


def create_quote_calculation_service(
    config: Optional[QuoteEngineConfig] = None,
) -> QuoteCalculationService:
    """
    Create QuoteCalculationService with real dependencies.

    QUOTE_PROVIDER_MODE selects the data sources:
    - static: built-in country settings and cross rates
    - remote: country settings API and exchange rate API (httpx)

    Shipping and gateway fees always come from the built-in tariffs.

    Args:
        config: Engine configuration (defaults to global settings)

    Returns:
        Configured QuoteCalculationService instance
    """
    config = config or get_settings()
    providers = config.providers

    if providers.mode == "remote":
        from .clients import CountrySettingsClient, ExchangeRateClient

        country_provider = CountrySettingsClient(
            providers.country_settings_url, timeout=providers.http_timeout_seconds
        )
        currency_provider = ExchangeRateClient(
            providers.exchange_rate_url,
            cache_ttl_seconds=providers.exchange_rate_cache_ttl_seconds,
            timeout=providers.http_timeout_seconds,
        )
    else:
        if providers.mode != "static":
            logger.warning(f"Unknown provider mode {providers.mode}, using static providers")
        country_provider = StaticCountrySettingsProvider()
        currency_provider = StaticCurrencyRateProvider()

    logger.info(f"Creating quote calculation service ({providers.mode} providers)")
    return QuoteCalculationService(
        country_settings_provider=country_provider,
        currency_provider=currency_provider,
        shipping_resolver=StaticShippingRateResolver(),
        fee_resolver=StaticFeeScheduleResolver(rate_provider=currency_provider),
        cache=CalculationCache(
            max_entries=config.cache_max_entries,
            ttl_seconds=config.cache_ttl_seconds,
        ),
        config=config,
    )


def create_quote_calculation_service_for_testing(
    mock_country_provider: Optional[CountrySettingsProviderProtocol] = None,
    mock_currency_provider: Optional[CurrencyRateProviderProtocol] = None,
    mock_shipping_resolver: Optional[ShippingRateResolverProtocol] = None,
    mock_fee_resolver: Optional[FeeScheduleResolverProtocol] = None,
    cache: Optional[CalculationCacheProtocol] = None,
    config: Optional[QuoteEngineConfig] = None,
    fallback_country_settings: Optional[Dict[str, CountrySettings]] = None,
) -> QuoteCalculationService:
    """
    Create QuoteCalculationService with mock dependencies for testing.

    Missing providers default to the static seed providers; the fallback
    table defaults to empty so unknown countries fail deterministically.
    """
    config = config or QuoteEngineConfig(retry_backoff_seconds=0)
    currency_provider = mock_currency_provider or StaticCurrencyRateProvider()
    return QuoteCalculationService(
        country_settings_provider=mock_country_provider or StaticCountrySettingsProvider(),
        currency_provider=currency_provider,
        shipping_resolver=mock_shipping_resolver,
        fee_resolver=mock_fee_resolver,
        cache=cache,
        config=config,
        fallback_country_settings=fallback_country_settings if fallback_country_settings is not None else {},
    )


class QuoteCalculationServiceFactory:
    """
    Factory class for creating QuoteCalculationService instances.

    Usage:
        # Production
        service = QuoteCalculationServiceFactory.create_service()

        # Testing
        service = QuoteCalculationServiceFactory.create_for_testing(
            mock_country_provider=MockCountrySettingsProvider()
        )
    """

    @staticmethod
    def create_service(config: Optional[QuoteEngineConfig] = None) -> QuoteCalculationService:
        return create_quote_calculation_service(config=config)

    @staticmethod
    def create_for_testing(**mocks) -> QuoteCalculationService:
        return create_quote_calculation_service_for_testing(**mocks)
