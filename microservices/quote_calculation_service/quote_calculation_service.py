"""
Quote Calculation Service - Business Logic

Orchestrates one quote calculation: cache lookup, country rule resolution,
shipping and gateway fee resolution, currency conversion and breakdown
composition. Records performance metrics per instance.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Dict, Iterable, Mapping, Optional, Union

from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import QuoteEngineConfig

from .breakdown_calculator import calculate, pre_fee_total, validate_params
from .calculation_cache import CalculationCache, compute_fingerprint
from .models import (
    Breakdown,
    CacheStats,
    CalculationParams,
    ConversionResult,
    CountrySettings,
    Money,
    PerformanceMetrics,
)
from .performance_metrics import PerformanceTracker
from .protocols import (
    CalculationCacheProtocol,
    CalculationError,
    CalculationTimeoutError,
    ConversionError,
    CountrySettingsProviderProtocol,
    CurrencyRateProviderProtocol,
    FeeScheduleResolverProtocol,
    InvalidInputError,
    ShippingRateResolverProtocol,
)
from .providers.country_rules import CountryRuleResolver

logger = logging.getLogger(__name__)

ParamsInput = Union[CalculationParams, Mapping[str, Any]]


@dataclass(frozen=True)
class CalculationResult:
    """Outcome of one orchestrator run: a breakdown or a typed error"""
    breakdown: Optional[Breakdown] = None
    error: Optional[CalculationError] = None
    cache_hit: bool = False
    calculation_time_ms: float = 0.0
    fingerprint: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.breakdown is not None

    def unwrap(self) -> Breakdown:
        if self.error is not None:
            raise self.error
        return self.breakdown


class QuoteCalculationService:
    """
    Quote calculation engine.

    One instance owns its cache and its performance metrics. Controllers
    created from it share both.
    """

    def __init__(
        self,
        country_settings_provider: CountrySettingsProviderProtocol,
        currency_provider: CurrencyRateProviderProtocol,
        shipping_resolver: Optional[ShippingRateResolverProtocol] = None,
        fee_resolver: Optional[FeeScheduleResolverProtocol] = None,
        cache: Optional[CalculationCacheProtocol] = None,
        config: Optional[QuoteEngineConfig] = None,
        fallback_country_settings: Optional[Dict[str, CountrySettings]] = None,
    ):
        """
        Initialize the service with injected dependencies.

        Args:
            country_settings_provider: Country rule data (required)
            currency_provider: Currency conversion (required)
            shipping_resolver: Shipping cost by method (optional)
            fee_resolver: Payment gateway fee schedule (optional)
            cache: Breakdown cache (defaults to an LRU sized from config)
            config: Engine configuration (defaults to built-in defaults)
            fallback_country_settings: Rules used when the provider has no row
        """
        self.config = config or QuoteEngineConfig()
        self.country_settings_provider = country_settings_provider
        self.rule_resolver = CountryRuleResolver(country_settings_provider, fallback_country_settings)
        self.currency_provider = currency_provider
        self.shipping_resolver = shipping_resolver
        self.fee_resolver = fee_resolver
        self.cache = cache or CalculationCache(
            max_entries=self.config.cache_max_entries,
            ttl_seconds=self.config.cache_ttl_seconds,
        )
        self._metrics = PerformanceTracker()

    async def close(self):
        """Close providers that hold connections"""
        for dependency in (
            self.country_settings_provider,
            self.currency_provider,
            self.shipping_resolver,
            self.fee_resolver,
        ):
            close = getattr(dependency, "close", None)
            if close is not None:
                await close()

    # =============================================================================
    # Public API
    # =============================================================================

    async def calculate_quote(self, params: ParamsInput) -> Breakdown:
        """
        Calculate a quote breakdown.

        Raises:
            InvalidInputError: malformed parameters
            CountryNotConfiguredError: destination not supported or origin not purchasable
            ConversionError: exchange rate unavailable after retries
            CalculationTimeoutError: a collaborator exceeded the time bound
            CalculationError: any other failure
        """
        return (await self.run(params)).unwrap()

    async def run(self, params: ParamsInput) -> CalculationResult:
        """Calculate a quote, reporting failures in the result instead of raising"""
        started = time.perf_counter()
        fingerprint: Optional[str] = None

        try:
            normalized = self._normalize_params(params)
            validate_params(normalized)
            fingerprint = compute_fingerprint(normalized)

            if not normalized.force_recalculate:
                cached = self.cache.get(fingerprint)
                if cached is not None:
                    elapsed_ms = (time.perf_counter() - started) * 1000
                    self._metrics.record_hit(elapsed_ms)
                    logger.debug(f"Quote cache hit: {fingerprint[:12]}")
                    return CalculationResult(
                        breakdown=cached,
                        cache_hit=True,
                        calculation_time_ms=elapsed_ms,
                        fingerprint=fingerprint,
                    )

            breakdown = await self._compute(normalized)
            self.cache.put(fingerprint, breakdown)

            elapsed_ms = (time.perf_counter() - started) * 1000
            self._metrics.record_miss(elapsed_ms)
            logger.info(
                f"Quote calculated {normalized.origin_country}->{normalized.destination_country}: "
                f"{breakdown.final_total} {breakdown.currency} in {elapsed_ms:.1f}ms"
            )
            return CalculationResult(
                breakdown=breakdown,
                calculation_time_ms=elapsed_ms,
                fingerprint=fingerprint,
            )

        except CalculationError as e:
            error = e
        except Exception as e:
            logger.exception(f"Unexpected quote calculation failure: {e}")
            error = CalculationError(f"Unexpected calculation failure: {e}", cause=e)

        elapsed_ms = (time.perf_counter() - started) * 1000
        # No fingerprint means the input was rejected before the cache lookup
        self._metrics.record_failure(elapsed_ms, cache_consulted=fingerprint is not None)
        logger.warning(f"Quote calculation failed ({error.kind}): {error}")
        return CalculationResult(error=error, calculation_time_ms=elapsed_ms, fingerprint=fingerprint)

    async def warm_up_cache(self, params_list: Iterable[ParamsInput]) -> int:
        """
        Precompute breakdowns for popular inputs.

        Returns:
            Number of inputs now cached; failures are logged and skipped
        """
        warmed = 0
        for params in params_list:
            result = await self.run(params)
            if result.success:
                warmed += 1
            else:
                logger.warning(f"Cache warm-up skipped an input: {result.error}")
        logger.info(f"Cache warm-up completed: {warmed} entries")
        return warmed

    def create_realtime_controller(self, debounce_ms: Optional[int] = None, realtime: bool = True):
        """Create a debounced recalculation controller bound to this service"""
        from .realtime_controller import RealtimeQuoteController

        return RealtimeQuoteController(
            self,
            debounce_ms=self.config.debounce_ms if debounce_ms is None else debounce_ms,
            realtime=realtime,
        )

    def get_performance_metrics(self) -> PerformanceMetrics:
        return self._metrics.snapshot()

    def reset_performance_metrics(self) -> None:
        self._metrics.reset()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    # =============================================================================
    # Calculation Steps
    # =============================================================================

    @staticmethod
    def _normalize_params(params: ParamsInput) -> CalculationParams:
        # Copy-on-calculate: later mutation of caller data cannot leak in
        if isinstance(params, CalculationParams):
            return params.model_copy(deep=True)
        try:
            return CalculationParams.model_validate(dict(params))
        except ValidationError as e:
            raise InvalidInputError(
                [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
            )
        except TypeError as e:
            raise InvalidInputError([f"params: {e}"])

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        timeout = self.config.sub_call_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"{operation} timed out after {timeout}s")
            raise CalculationTimeoutError(operation, timeout)

    async def _get_rate(self, from_currency: str, to_currency: str) -> ConversionResult:
        async def _fetch() -> ConversionResult:
            return await self._call(
                f"convert {from_currency}->{to_currency}",
                self.currency_provider.convert(Decimal("1"), from_currency, to_currency),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.config.conversion_retry_attempts)),
            wait=wait_exponential(multiplier=self.config.retry_backoff_seconds, max=5),
            retry=retry_if_exception_type(ConversionError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(_fetch)

    async def _resolve_purchase_currency(self, params: CalculationParams) -> str:
        origin = await self._call(
            "origin country settings", self.rule_resolver.resolve_origin(params.origin_country)
        )
        if params.purchase_currency:
            return params.purchase_currency
        return origin.currency if origin is not None else params.selling_currency

    async def _resolve_shipping(self, params: CalculationParams) -> Optional[Money]:
        if params.international_shipping is not None or not params.shipping_method:
            return None
        if self.shipping_resolver is None:
            logger.warning(f"No shipping resolver configured, {params.shipping_method} shipping priced at 0")
            return None

        weight = sum((item.weight_kg * item.quantity for item in params.items), Decimal("0"))
        quote = await self._call(
            "shipping quote",
            self.shipping_resolver.get_shipping_quote(
                params.origin_country, params.destination_country, params.shipping_method, weight
            ),
        )
        if quote is None:
            raise CalculationError(
                f"Shipping method {params.shipping_method} is not available for "
                f"{params.origin_country}->{params.destination_country}"
            )
        return quote.cost

    async def _compute(self, params: CalculationParams) -> Breakdown:
        destination = await self._call(
            "destination country settings",
            self.rule_resolver.resolve_destination(params.destination_country),
        )
        purchase_currency = await self._resolve_purchase_currency(params)

        if not params.items:
            return calculate(params.items, params, destination, purchase_currency=purchase_currency)

        shipping = await self._resolve_shipping(params)

        # One rate per distinct source currency; raw amounts are multiplied by it
        selling = params.selling_currency
        needed = {item.unit_price.currency for item in params.items} | {purchase_currency}
        if shipping is not None:
            needed.add(shipping.currency)
        rates: Dict[str, ConversionResult] = {}
        for currency in sorted(needed - {selling}):
            rates[currency] = await self._get_rate(currency, selling)

        gateway_fee = None
        # Without an explicit method the destination's default gateway is charged
        payment_method = params.payment_method or destination.payment_gateway
        if params.payment_gateway_fee is None and payment_method and self.fee_resolver:
            base = pre_fee_total(
                params.items, params, destination, rates, shipping, purchase_currency
            )
            gateway_fee = await self._call(
                "payment gateway fee",
                self.fee_resolver.get_gateway_fee(
                    payment_method, Money(amount=base, currency=selling)
                ),
            )
            if gateway_fee.currency != selling and gateway_fee.currency not in rates:
                rates[gateway_fee.currency] = await self._get_rate(gateway_fee.currency, selling)

        return calculate(
            params.items,
            params,
            destination,
            rates=rates,
            international_shipping=shipping,
            payment_gateway_fee=gateway_fee,
            shipping_method=params.shipping_method,
            purchase_currency=purchase_currency,
        )


__all__ = ["CalculationResult", "QuoteCalculationService"]
