"""
Exchange Rate API Client

Currency conversion backed by an ExchangeRate-API style endpoint:
``GET {base_url}/latest/{FROM}`` -> ``{"rates": {"INR": 83.1, ...}}``.
Rate tables are kept in memory per base currency for a TTL.
"""

import logging
import time
from decimal import Decimal
from typing import Dict, Optional, Tuple

import httpx

from ..models import ConversionResult, RateSource
from ..protocols import ConversionError

logger = logging.getLogger(__name__)


class ExchangeRateClient:
    """Exchange rate API HTTP client"""

    def __init__(self, base_url: str, cache_ttl_seconds: int = 3600, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.cache_ttl_seconds = cache_ttl_seconds
        self.client = client or httpx.AsyncClient(timeout=timeout)
        # base currency -> (fetched_at monotonic, rates)
        self._tables: Dict[str, Tuple[float, Dict[str, Decimal]]] = {}

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def clear_cache(self) -> None:
        self._tables.clear()

    async def get_rates(self, base_currency: str) -> Dict[str, Decimal]:
        """
        Rate table for a base currency.

        Raises:
            ConversionError: API unreachable or payload without rates
        """
        base = base_currency.upper()
        cached = self._tables.get(base)
        if cached and time.monotonic() - cached[0] < self.cache_ttl_seconds:
            return cached[1]

        try:
            response = await self.client.get(f"{self.base_url}/latest/{base}")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Exchange rate API returned {e.response.status_code} for {base}")
            raise ConversionError(base, "*", f"rate API returned {e.response.status_code}", cause=e)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching exchange rates for {base}: {e}")
            raise ConversionError(base, "*", "rate API unreachable", cause=e)

        raw_rates = payload.get("rates") if isinstance(payload, dict) else None
        if not raw_rates:
            raise ConversionError(base, "*", "rate API response has no rates")

        rates = {code.upper(): Decimal(str(value)) for code, value in raw_rates.items()}
        self._tables[base] = (time.monotonic(), rates)
        logger.info(f"Loaded {len(rates)} exchange rates for {base}")
        return rates

    async def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> ConversionResult:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return ConversionResult(
                amount=amount, rate=Decimal("1"), rate_source=RateSource.IDENTITY.value,
                from_currency=from_currency, to_currency=to_currency,
            )

        rates = await self.get_rates(from_currency)
        rate = rates.get(to_currency)
        if rate is None or rate <= 0:
            raise ConversionError(from_currency, to_currency, f"no rate for {to_currency}")

        return ConversionResult(
            amount=amount * rate, rate=rate, rate_source=RateSource.EXCHANGE_RATE_API.value,
            from_currency=from_currency, to_currency=to_currency,
        )


__all__ = ["ExchangeRateClient"]
