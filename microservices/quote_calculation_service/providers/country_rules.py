"""
Country Rule Resolver

Provider first, built-in fallback table second.
"""

import logging
from typing import Dict, Optional

from ..models import CountrySettings
from ..protocols import CountryNotConfiguredError, CountrySettingsProviderProtocol
from .static import FALLBACK_COUNTRY_SETTINGS

logger = logging.getLogger(__name__)


class CountryRuleResolver:
    """Resolves the customs/VAT/handling rules applying to a country"""

    def __init__(
        self,
        provider: CountrySettingsProviderProtocol,
        fallback: Optional[Dict[str, CountrySettings]] = None,
    ):
        self.provider = provider
        self.fallback = FALLBACK_COUNTRY_SETTINGS if fallback is None else fallback

    async def find(self, country_code: str) -> Optional[CountrySettings]:
        """
        Look up a country without failing on absence.

        A provider error falls through to the fallback table; it is re-raised
        only when the fallback has no row either.
        """
        code = country_code.strip().upper()
        try:
            settings = await self.provider.get_country_settings(code)
        except Exception as e:
            fallback = self.fallback.get(code)
            if fallback is None:
                raise
            logger.warning(f"Country settings provider failed for {code}, using fallback: {e}")
            return fallback

        if settings is not None:
            return settings

        fallback = self.fallback.get(code)
        if fallback is not None:
            logger.info(f"No provider settings for {code}, using fallback rules")
        return fallback

    async def resolve_destination(self, country_code: str) -> CountrySettings:
        """
        Rules for a shipping destination.

        Raises:
            CountryNotConfiguredError: unknown country or shipping not allowed
        """
        settings = await self.find(country_code)
        if settings is None:
            raise CountryNotConfiguredError(country_code)
        if not settings.shipping_allowed:
            raise CountryNotConfiguredError(country_code, "shipping to this country is not allowed")
        return settings

    async def resolve_origin(self, country_code: str) -> Optional[CountrySettings]:
        """
        Rules for the country goods are bought in, if any are known.

        Raises:
            CountryNotConfiguredError: purchases from the country are not allowed
        """
        settings = await self.find(country_code)
        if settings is not None and not settings.purchase_allowed:
            raise CountryNotConfiguredError(
                country_code, "purchasing from this country is not allowed", role="origin"
            )
        return settings


__all__ = ["CountryRuleResolver"]
