"""
Quote Calculation Service Component Test Configuration

Pytest fixtures for component testing with mocked dependencies.
"""
import pytest
import pytest_asyncio

from core.config import QuoteEngineConfig
from microservices.quote_calculation_service.factory import (
    create_quote_calculation_service_for_testing,
)
from tests.contracts.quote_calculation.data_contract import QuoteTestDataFactory

from .mocks import (
    MockCountrySettingsProvider,
    MockCurrencyRateProvider,
    MockFeeScheduleResolver,
    MockShippingRateResolver,
)


@pytest.fixture
def mock_country_provider():
    """US (no customs, no VAT), NP (customs 10, VAT 13) and IN (customs 15, VAT 18)"""
    return MockCountrySettingsProvider([
        QuoteTestDataFactory.make_country_settings(code="US", currency="USD"),
        QuoteTestDataFactory.make_country_settings(
            code="NP", currency="NPR", customs="10", vat="13", exchange_rate_to_usd="133"
        ),
        QuoteTestDataFactory.make_country_settings(
            code="IN", currency="INR", customs="15", vat="18", exchange_rate_to_usd="83"
        ),
    ])


@pytest.fixture
def mock_currency_provider():
    return MockCurrencyRateProvider({
        ("INR", "USD"): "0.012",
        ("USD", "NPR"): "133",
        ("INR", "NPR"): "1.6",
        ("EUR", "USD"): "1.1",
    })


@pytest.fixture
def mock_shipping_resolver():
    return MockShippingRateResolver({
        "standard": QuoteTestDataFactory.make_money("30", "USD"),
        "express": QuoteTestDataFactory.make_money("55", "USD"),
    })


@pytest.fixture
def mock_fee_resolver():
    return MockFeeScheduleResolver(percentage="3")


@pytest.fixture
def engine_config():
    """Fast retries and a short sub-call bound"""
    return QuoteEngineConfig(
        debounce_ms=50,
        sub_call_timeout_seconds=0.5,
        conversion_retry_attempts=3,
        retry_backoff_seconds=0,
    )


@pytest_asyncio.fixture
async def quote_service(
    mock_country_provider,
    mock_currency_provider,
    mock_shipping_resolver,
    mock_fee_resolver,
    engine_config,
):
    """Create QuoteCalculationService with mocked dependencies."""
    service = create_quote_calculation_service_for_testing(
        mock_country_provider=mock_country_provider,
        mock_currency_provider=mock_currency_provider,
        mock_shipping_resolver=mock_shipping_resolver,
        mock_fee_resolver=mock_fee_resolver,
        config=engine_config,
    )

    yield service

    await service.close()
