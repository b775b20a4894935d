#!/usr/bin/env python3
"""Quote calculation engine configuration

Tuning knobs for the calculation engine: debounce window, cache bounds,
sub-call timeouts, conversion retries and the remote provider endpoints.
"""
import os
from dataclasses import dataclass, field

from .logging_config import LoggingConfig


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


# ===========================================
# Provider Endpoints
# ===========================================

@dataclass
class ProviderConfig:
    """Where country settings and exchange rates come from"""
    # "static": built-in seed tables, "remote": HTTP APIs below
    mode: str = "static"
    country_settings_url: str = "http://localhost:8250"
    exchange_rate_url: str = "https://open.er-api.com/v6"
    exchange_rate_cache_ttl_seconds: int = 3600
    http_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> 'ProviderConfig':
        return cls(
            mode=os.getenv("QUOTE_PROVIDER_MODE", "static").lower(),
            country_settings_url=os.getenv("COUNTRY_SETTINGS_API_URL", "http://localhost:8250"),
            exchange_rate_url=os.getenv("EXCHANGE_RATE_API_URL", "https://open.er-api.com/v6"),
            exchange_rate_cache_ttl_seconds=_int(os.getenv("EXCHANGE_RATE_CACHE_TTL_SECONDS", "3600"), 3600),
            http_timeout_seconds=_float(os.getenv("QUOTE_HTTP_TIMEOUT_SECONDS", "10"), 10.0),
        )


# ===========================================
# Main Engine Configuration
# ===========================================

@dataclass
class QuoteEngineConfig:
    """Quote calculation engine configuration"""

    environment: str = "development"

    # Reactive recalculation
    debounce_ms: int = 800

    # Calculation cache
    cache_max_entries: int = 200
    cache_ttl_seconds: int = 600  # 0 disables expiry

    # Orchestrator sub-calls
    sub_call_timeout_seconds: float = 10.0
    conversion_retry_attempts: int = 3
    retry_backoff_seconds: float = 0.2

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)

    @classmethod
    def from_env(cls) -> 'QuoteEngineConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debounce_ms=_int(os.getenv("QUOTE_DEBOUNCE_MS", "800"), 800),
            cache_max_entries=_int(os.getenv("QUOTE_CACHE_MAX_ENTRIES", "200"), 200),
            cache_ttl_seconds=_int(os.getenv("QUOTE_CACHE_TTL_SECONDS", "600"), 600),
            sub_call_timeout_seconds=_float(os.getenv("QUOTE_SUB_CALL_TIMEOUT_SECONDS", "10"), 10.0),
            conversion_retry_attempts=_int(os.getenv("QUOTE_CONVERSION_RETRY_ATTEMPTS", "3"), 3),
            retry_backoff_seconds=_float(os.getenv("QUOTE_RETRY_BACKOFF_SECONDS", "0.2"), 0.2),
            logging=LoggingConfig.from_env(),
            providers=ProviderConfig.from_env(),
        )
