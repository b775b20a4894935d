"""
Country Settings API Client

Fetches per-country rule rows from the platform's country settings API.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from ..models import CountrySettings, RateSource
from ..protocols import CalculationError

logger = logging.getLogger(__name__)


def parse_country_settings(data: Dict[str, Any]) -> CountrySettings:
    """
    Map a country_settings row to CountrySettings.

    Rows store VAT as a fraction (``vat: 0.18``) and the exchange rate as
    ``rate_from_usd``; already-normalized payloads pass through.
    """
    if "vat_percentage" in data:
        vat_percentage = Decimal(str(data["vat_percentage"]))
    else:
        vat_percentage = Decimal(str(data.get("vat") or 0)) * Decimal("100")

    return CountrySettings(
        code=data["code"],
        name=data.get("name") or "",
        currency=data["currency"],
        customs_percentage_default=Decimal(
            str(data.get("customs_percentage_default", data.get("customs_percent")) or 0)
        ),
        vat_percentage=vat_percentage,
        exchange_rate_to_usd=Decimal(
            str(data.get("exchange_rate_to_usd", data.get("rate_from_usd")) or 1)
        ),
        rate_source=RateSource.PROVIDER.value,
        purchase_allowed=data.get("purchase_allowed", True),
        shipping_allowed=data.get("shipping_allowed", True),
        payment_gateway=data.get("payment_gateway"),
    )


class CountrySettingsClient:
    """Country settings API HTTP client"""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            base_url: Country settings API base URL
            timeout: Request timeout in seconds
            client: Pre-built AsyncClient (tests pass one with a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_country_settings(self, country_code: str) -> Optional[CountrySettings]:
        """
        Fetch settings for a country.

        Returns:
            CountrySettings, or None when the API has no row (404)

        Raises:
            CalculationError: transport failure or malformed payload
        """
        code = country_code.strip().upper()
        try:
            response = await self.client.get(f"{self.base_url}/api/v1/countries/{code}/settings")
            if response.status_code == 404:
                logger.info(f"No country settings for {code}")
                return None
            response.raise_for_status()
            return parse_country_settings(response.json())

        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to get country settings for {code}: {e.response.status_code}")
            raise CalculationError(f"Country settings API returned {e.response.status_code}", cause=e)
        except httpx.HTTPError as e:
            logger.error(f"Error getting country settings for {code}: {e}")
            raise CalculationError("Country settings API unreachable", cause=e)
        except (KeyError, ValueError, ArithmeticError) as e:
            logger.error(f"Malformed country settings for {code}: {e}")
            raise CalculationError(f"Malformed country settings for {code}", cause=e)


__all__ = ["CountrySettingsClient", "parse_country_settings"]
