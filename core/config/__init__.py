#!/usr/bin/env python3
"""Modular configuration system for the quote calculation engine

Configuration hierarchy:
- quote_config: Engine tuning (debounce, cache, timeouts, retries) and provider endpoints
- logging_config: Logging configuration
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .quote_config import ProviderConfig, QuoteEngineConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = QuoteEngineConfig.from_env()

def get_settings() -> QuoteEngineConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> QuoteEngineConfig:
    """Reload settings from environment"""
    global settings
    settings = QuoteEngineConfig.from_env()
    return settings

__all__ = [
    # Main config
    'QuoteEngineConfig',
    'get_settings',
    'reload_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
    'ProviderConfig',
]
