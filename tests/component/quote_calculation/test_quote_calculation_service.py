"""
Quote Calculation Service - Component Tests

Tests the orchestrator with mocked providers: cache hits and misses,
rule resolution, shipping and gateway fee resolution, currency conversion,
retries, timeouts and metrics.
"""
from decimal import Decimal

import pytest

from microservices.quote_calculation_service.factory import (
    create_quote_calculation_service_for_testing,
)
from microservices.quote_calculation_service.models import Breakdown
from microservices.quote_calculation_service.protocols import (
    CalculationError,
    CalculationTimeoutError,
    ConversionError,
    CountryNotConfiguredError,
    InvalidInputError,
)
from microservices.quote_calculation_service.providers import FALLBACK_COUNTRY_SETTINGS
from tests.contracts.quote_calculation.data_contract import QuoteTestDataFactory

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


def _single_item_params(price="100", **overrides):
    return QuoteTestDataFactory.make_params(
        items=[QuoteTestDataFactory.make_item(unit_price=price, quantity=1, weight_kg="1")],
        **overrides,
    )


# =============================================================================
# Calculation and Cache
# =============================================================================

class TestQuoteCalculation:
    """End-to-end orchestration on a cache miss"""

    async def test_customs_scenario(self, quote_service):
        breakdown = await quote_service.calculate_quote(_single_item_params(customs_percentage="6"))

        assert isinstance(breakdown, Breakdown)
        assert breakdown.total_item_price == Decimal("100.00")
        assert breakdown.customs_and_ecs == Decimal("6.00")
        assert breakdown.sub_total == Decimal("106.00")
        assert breakdown.final_total == Decimal("106.00")

    async def test_discount_scenario(self, quote_service):
        breakdown = await quote_service.calculate_quote(
            _single_item_params(customs_percentage="6", discount="200")
        )

        assert breakdown.sub_total == Decimal("0.00")
        assert breakdown.final_total == Decimal("0.00")

    async def test_run_reports_miss(self, quote_service):
        result = await quote_service.run(_single_item_params())

        assert result.success
        assert result.cache_hit is False
        assert result.fingerprint
        assert result.calculation_time_ms >= 0

    async def test_destination_rules_applied(self, quote_service):
        breakdown = await quote_service.calculate_quote(
            _single_item_params(destination_country="NP")
        )

        assert breakdown.customs_and_ecs == Decimal("10.00")
        assert breakdown.vat == Decimal("14.30")
        assert breakdown.final_total == Decimal("124.30")
        assert breakdown.destination_currency == "NPR"
        assert breakdown.currency == "USD"

    async def test_empty_items(self, quote_service):
        breakdown = await quote_service.calculate_quote(
            QuoteTestDataFactory.make_edge_empty_items_params(destination_country="IN", handling_charge="9")
        )

        assert breakdown.final_total == Decimal("0.00")

    async def test_dict_input_is_accepted(self, quote_service):
        data = QuoteTestDataFactory.make_params_dict(destination_country="us")

        breakdown = await quote_service.calculate_quote(data)

        assert breakdown.total_item_price == Decimal("51.00")


class TestQuoteCache:
    """Identical inputs are served from the cache"""

    async def test_second_identical_call_hits(self, quote_service, mock_country_provider):
        params = _single_item_params(destination_country="IN")

        first = await quote_service.run(params)
        calls_after_first = mock_country_provider.call_count()
        second = await quote_service.run(params)

        assert second.cache_hit is True
        assert second.breakdown == first.breakdown
        assert mock_country_provider.call_count() == calls_after_first

        metrics = quote_service.get_performance_metrics()
        assert metrics.cache_hits == 1
        assert metrics.cache_misses == 1
        assert metrics.cache_hit_rate == 50.0

    async def test_reordered_items_hit(self, quote_service):
        items = QuoteTestDataFactory.make_batch_items(count=3)
        await quote_service.run(QuoteTestDataFactory.make_params(items=items))

        result = await quote_service.run(QuoteTestDataFactory.make_params(items=list(reversed(items))))

        assert result.cache_hit is True

    async def test_force_recalculate_bypasses_read(self, quote_service, mock_country_provider):
        params = _single_item_params()
        await quote_service.run(params)
        mock_country_provider.reset_calls()

        result = await quote_service.run(params.model_copy(update={"force_recalculate": True}))

        assert result.cache_hit is False
        mock_country_provider.assert_called("get_country_settings")
        assert quote_service.get_cache_stats().size == 1

    async def test_clear_cache(self, quote_service):
        params = _single_item_params()
        await quote_service.run(params)

        quote_service.clear_cache()
        result = await quote_service.run(params)

        assert result.cache_hit is False
        assert quote_service.get_cache_stats().size == 1

    async def test_warm_up_cache(self, quote_service):
        params_list = [
            _single_item_params("10"),
            _single_item_params("20", destination_country="NP"),
            _single_item_params("30", destination_country=QuoteTestDataFactory.make_unknown_country()),
        ]

        warmed = await quote_service.warm_up_cache(params_list)

        assert warmed == 2
        assert quote_service.get_cache_stats().size == 2
        assert (await quote_service.run(params_list[0])).cache_hit is True

    async def test_reset_performance_metrics(self, quote_service):
        await quote_service.run(_single_item_params())

        quote_service.reset_performance_metrics()

        metrics = quote_service.get_performance_metrics()
        assert metrics.total_calculations == 0
        assert metrics.average_calculation_time_ms == 0


# =============================================================================
# Failures
# =============================================================================

class TestQuoteFailures:
    """Typed errors, no caching of failures"""

    async def test_unknown_destination(self, quote_service):
        params = _single_item_params(destination_country=QuoteTestDataFactory.make_unknown_country())

        with pytest.raises(CountryNotConfiguredError):
            await quote_service.calculate_quote(params)

        assert quote_service.get_cache_stats().size == 0
        assert quote_service.get_performance_metrics().failed_calculations == 1

    async def test_fallback_rules_serve_unlisted_destination(self, mock_country_provider, engine_config):
        service = create_quote_calculation_service_for_testing(
            mock_country_provider=mock_country_provider,
            config=engine_config,
            fallback_country_settings=FALLBACK_COUNTRY_SETTINGS,
        )

        breakdown = await service.calculate_quote(_single_item_params(destination_country="BD"))

        assert breakdown.customs_and_ecs == Decimal("20.00")
        assert breakdown.destination_currency == "BDT"

    async def test_origin_without_purchases_is_rejected(self, quote_service, mock_country_provider):
        mock_country_provider.set_settings(
            QuoteTestDataFactory.make_country_settings(code="CN", currency="CNY", purchase_allowed=False)
        )

        with pytest.raises(CountryNotConfiguredError) as exc_info:
            await quote_service.calculate_quote(_single_item_params(origin_country="CN"))

        assert exc_info.value.role == "origin"
        assert exc_info.value.country_code == "CN"
        assert quote_service.get_cache_stats().size == 0

    async def test_rejected_input_is_not_a_cache_miss(self, quote_service):
        await quote_service.run(QuoteTestDataFactory.make_invalid_params_dict_missing_destination())
        await quote_service.run(_single_item_params())
        await quote_service.run(_single_item_params())

        metrics = quote_service.get_performance_metrics()
        assert metrics.total_calculations == 3
        assert metrics.failed_calculations == 1
        assert metrics.cache_misses == 1
        assert metrics.cache_hits == 1
        assert metrics.cache_hit_rate == 50.0

    async def test_failure_after_lookup_is_a_cache_miss(self, quote_service):
        await quote_service.run(
            _single_item_params(destination_country=QuoteTestDataFactory.make_unknown_country())
        )

        metrics = quote_service.get_performance_metrics()
        assert metrics.cache_misses == 1
        assert metrics.failed_calculations == 1

    async def test_invalid_dict_input(self, quote_service, mock_country_provider):
        with pytest.raises(InvalidInputError) as exc_info:
            await quote_service.calculate_quote(
                QuoteTestDataFactory.make_invalid_params_dict_missing_destination()
            )

        assert any("destination_country" in e for e in exc_info.value.errors)
        assert mock_country_provider.call_count() == 0

    async def test_negative_quantity(self, quote_service):
        result = await quote_service.run(QuoteTestDataFactory.make_invalid_negative_quantity_params())

        assert isinstance(result.error, InvalidInputError)
        assert result.breakdown is None

    async def test_conversion_retried_until_success(self, quote_service, mock_currency_provider):
        mock_currency_provider.fail_next(2)
        params = QuoteTestDataFactory.make_params(
            items=[QuoteTestDataFactory.make_item(unit_price="1000", quantity=1, currency="INR")],
            customs_percentage="0",
        )

        breakdown = await quote_service.calculate_quote(params)

        assert breakdown.total_item_price == Decimal("12.00")
        assert mock_currency_provider.call_count("convert") == 3

    async def test_conversion_gives_up_after_bounded_attempts(self, quote_service, mock_currency_provider):
        mock_currency_provider.fail_next(10)
        params = QuoteTestDataFactory.make_params(
            items=[QuoteTestDataFactory.make_item(currency="INR")],
        )

        with pytest.raises(ConversionError):
            await quote_service.calculate_quote(params)

        assert mock_currency_provider.call_count("convert") == 3
        assert quote_service.get_cache_stats().size == 0

    async def test_sub_call_timeout(self, quote_service, mock_country_provider):
        mock_country_provider.set_delay(1.0)

        result = await quote_service.run(_single_item_params())

        assert isinstance(result.error, CalculationTimeoutError)
        assert result.error.kind == "timeout"

    async def test_unexpected_error_is_wrapped(self, quote_service, mock_country_provider):
        failure = RuntimeError("settings store exploded")
        mock_country_provider.set_error(failure)

        with pytest.raises(CalculationError) as exc_info:
            await quote_service.calculate_quote(_single_item_params())

        assert type(exc_info.value) is CalculationError
        assert exc_info.value.cause is failure


# =============================================================================
# Collaborator Resolution
# =============================================================================

class TestShippingAndFees:
    """International shipping and gateway fee resolution"""

    async def test_shipping_resolved_from_method(self, quote_service, mock_shipping_resolver):
        breakdown = await quote_service.calculate_quote(
            _single_item_params(destination_country="NP", shipping_method="standard")
        )

        mock_shipping_resolver.assert_called("get_shipping_quote")
        assert breakdown.international_shipping == Decimal("30.00")
        assert breakdown.customs_and_ecs == Decimal("13.00")
        assert breakdown.sub_total == Decimal("143.00")
        assert breakdown.vat == Decimal("18.59")
        assert breakdown.final_total == Decimal("161.59")
        assert breakdown.shipping_method == "standard"

    async def test_explicit_shipping_wins(self, quote_service, mock_shipping_resolver):
        breakdown = await quote_service.calculate_quote(
            _single_item_params(shipping_method="express", international_shipping="12")
        )

        mock_shipping_resolver.assert_not_called("get_shipping_quote")
        assert breakdown.international_shipping == Decimal("12.00")

    async def test_no_method_means_no_shipping(self, quote_service, mock_shipping_resolver):
        breakdown = await quote_service.calculate_quote(_single_item_params())

        mock_shipping_resolver.assert_not_called("get_shipping_quote")
        assert breakdown.international_shipping == Decimal("0.00")

    async def test_unavailable_method(self, quote_service):
        with pytest.raises(CalculationError):
            await quote_service.calculate_quote(_single_item_params(shipping_method="teleport"))

    async def test_gateway_fee_from_schedule(self, quote_service, mock_fee_resolver):
        breakdown = await quote_service.calculate_quote(
            _single_item_params(customs_percentage="0", payment_method="stripe")
        )

        mock_fee_resolver.assert_called("get_gateway_fee")
        assert breakdown.payment_gateway_fee == Decimal("3.00")
        assert breakdown.final_total == Decimal("103.00")

    async def test_destination_gateway_used_without_payment_method(
        self, quote_service, mock_country_provider, mock_fee_resolver
    ):
        mock_country_provider.set_settings(
            QuoteTestDataFactory.make_country_settings(code="US", currency="USD", payment_gateway="stripe")
        )

        breakdown = await quote_service.calculate_quote(_single_item_params(customs_percentage="0"))

        mock_fee_resolver.assert_called("get_gateway_fee")
        assert mock_fee_resolver._call_log[-1]["kwargs"]["payment_method"] == "stripe"
        assert breakdown.payment_gateway_fee == Decimal("3.00")

    async def test_no_gateway_means_no_fee(self, quote_service, mock_fee_resolver):
        breakdown = await quote_service.calculate_quote(_single_item_params())

        mock_fee_resolver.assert_not_called("get_gateway_fee")
        assert breakdown.payment_gateway_fee == Decimal("0.00")

    async def test_explicit_gateway_fee_wins(self, quote_service, mock_fee_resolver):
        breakdown = await quote_service.calculate_quote(
            _single_item_params(payment_method="stripe", payment_gateway_fee="1.5")
        )

        mock_fee_resolver.assert_not_called("get_gateway_fee")
        assert breakdown.payment_gateway_fee == Decimal("1.50")


class TestCurrencyHandling:
    """Each distinct pair is converted once; raw amounts are multiplied"""

    async def test_purchase_currency_defaults_to_origin_currency(self, quote_service, mock_currency_provider):
        params = QuoteTestDataFactory.make_params(
            items=[QuoteTestDataFactory.make_item(unit_price="1000", quantity=1, currency="INR")],
            origin_country="IN",
            handling_charge="500",
            customs_percentage="0",
        )

        breakdown = await quote_service.calculate_quote(params)

        assert breakdown.total_item_price == Decimal("12.00")
        assert breakdown.handling_charge == Decimal("6.00")
        assert breakdown.exchange_rate == Decimal("0.012")
        assert mock_currency_provider.call_count("convert") == 1

    async def test_selling_in_destination_currency(self, quote_service):
        params = QuoteTestDataFactory.make_params(
            items=[QuoteTestDataFactory.make_item(unit_price="10", quantity=1)],
            destination_country="NP",
            selling_currency="NPR",
            customs_percentage="0",
        )

        breakdown = await quote_service.calculate_quote(params)

        assert breakdown.currency == "NPR"
        assert breakdown.total_item_price == Decimal("1330.00")
        assert breakdown.vat == Decimal("172.90")

    async def test_unknown_pair(self, quote_service):
        params = QuoteTestDataFactory.make_params(
            items=[QuoteTestDataFactory.make_item(currency="CHF")],
        )

        result = await quote_service.run(params)

        assert isinstance(result.error, ConversionError)
