"""
Remote data clients for the quote calculation service
"""

from .country_settings_client import CountrySettingsClient, parse_country_settings
from .exchange_rate_client import ExchangeRateClient

__all__ = ["CountrySettingsClient", "ExchangeRateClient", "parse_country_settings"]
