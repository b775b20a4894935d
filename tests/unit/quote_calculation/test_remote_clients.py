"""
Remote Clients Unit Tests

CountrySettingsClient and ExchangeRateClient against httpx.MockTransport.
"""
from decimal import Decimal

import httpx
import pytest

from microservices.quote_calculation_service.clients import (
    CountrySettingsClient,
    ExchangeRateClient,
    parse_country_settings,
)
from microservices.quote_calculation_service.protocols import CalculationError, ConversionError
from tests.contracts.quote_calculation.data_contract import QuoteTestDataFactory

pytestmark = [pytest.mark.unit, pytest.mark.asyncio]


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# Country Settings
# =============================================================================

class TestCountrySettingsClient:

    async def test_parses_row(self):
        row = QuoteTestDataFactory.make_country_settings_row("IN")
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json=row)

        async with CountrySettingsClient("http://settings.local/", client=_client(handler)) as client:
            settings = await client.get_country_settings("in")

        assert seen == ["/api/v1/countries/IN/settings"]
        assert settings.currency == "INR"
        assert settings.vat_percentage == Decimal("18.00")
        assert settings.customs_percentage_default == Decimal("15")
        assert settings.exchange_rate_to_usd == Decimal("83")
        assert settings.payment_gateway == "payu"
        assert settings.purchase_allowed is True

    async def test_not_found_is_none(self):
        async with CountrySettingsClient(
            "http://settings.local", client=_client(lambda request: httpx.Response(404))
        ) as client:
            assert await client.get_country_settings("ZZ") is None

    async def test_server_error_raises_calculation_error(self):
        async with CountrySettingsClient(
            "http://settings.local", client=_client(lambda request: httpx.Response(503))
        ) as client:
            with pytest.raises(CalculationError) as exc_info:
                await client.get_country_settings("IN")

        assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)

    async def test_transport_error_raises_calculation_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with CountrySettingsClient("http://settings.local", client=_client(handler)) as client:
            with pytest.raises(CalculationError):
                await client.get_country_settings("IN")

    async def test_malformed_payload(self):
        async with CountrySettingsClient(
            "http://settings.local", client=_client(lambda request: httpx.Response(200, json={"name": "x"}))
        ) as client:
            with pytest.raises(CalculationError):
                await client.get_country_settings("IN")

    async def test_normalized_payload_passes_through(self):
        settings = parse_country_settings(
            {"code": "np", "currency": "npr", "vat_percentage": 13, "exchange_rate_to_usd": 133}
        )

        assert settings.code == "NP"
        assert settings.vat_percentage == Decimal("13")


# =============================================================================
# Exchange Rates
# =============================================================================

class TestExchangeRateClient:

    async def test_convert(self):
        payload = QuoteTestDataFactory.make_exchange_rate_payload("USD", INR=83.5)

        async with ExchangeRateClient(
            "http://rates.local/v6", client=_client(lambda request: httpx.Response(200, json=payload))
        ) as client:
            result = await client.convert(Decimal("2"), "usd", "inr")

        assert result.rate == Decimal("83.5")
        assert result.amount == Decimal("167.0")
        assert result.rate_source == "exchange_rate_api"

    async def test_identity_makes_no_request(self):
        def handler(request):
            raise AssertionError("unexpected request")

        async with ExchangeRateClient("http://rates.local/v6", client=_client(handler)) as client:
            result = await client.convert(Decimal("5"), "EUR", "EUR")

        assert result.rate_source == "identity"

    async def test_rate_table_is_cached_per_base(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json=QuoteTestDataFactory.make_exchange_rate_payload("USD"))

        async with ExchangeRateClient("http://rates.local/v6", client=_client(handler)) as client:
            await client.convert(Decimal("1"), "USD", "INR")
            await client.convert(Decimal("1"), "USD", "NPR")

        assert calls == ["/v6/latest/USD"]

    async def test_expired_table_is_refetched(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json=QuoteTestDataFactory.make_exchange_rate_payload("USD"))

        async with ExchangeRateClient(
            "http://rates.local/v6", cache_ttl_seconds=0, client=_client(handler)
        ) as client:
            await client.convert(Decimal("1"), "USD", "INR")
            await client.convert(Decimal("1"), "USD", "INR")

        assert len(calls) == 2

    async def test_missing_target_currency(self):
        payload = QuoteTestDataFactory.make_exchange_rate_payload("USD", INR=83)

        async with ExchangeRateClient(
            "http://rates.local/v6", client=_client(lambda request: httpx.Response(200, json=payload))
        ) as client:
            with pytest.raises(ConversionError):
                await client.convert(Decimal("1"), "USD", "XXX")

    async def test_http_error_becomes_conversion_error(self):
        async with ExchangeRateClient(
            "http://rates.local/v6", client=_client(lambda request: httpx.Response(500))
        ) as client:
            with pytest.raises(ConversionError):
                await client.convert(Decimal("1"), "USD", "INR")

    async def test_payload_without_rates(self):
        async with ExchangeRateClient(
            "http://rates.local/v6",
            client=_client(lambda request: httpx.Response(200, json={"result": "error"})),
        ) as client:
            with pytest.raises(ConversionError):
                await client.convert(Decimal("1"), "USD", "INR")
