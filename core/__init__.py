#!/usr/bin/env python3
"""
Core Module

Shared components for the quote calculation service.

COMPONENTS:
    - config/: Environment-driven configuration dataclasses
    - logger.py: Service logger setup

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger("quote_calculation", level=settings.logging.log_level)
"""

from .config import QuoteEngineConfig, get_settings, reload_settings
from .logger import setup_service_logger

__all__ = [
    "QuoteEngineConfig",
    "get_settings",
    "reload_settings",
    "setup_service_logger",
]

__version__ = "1.0.0"
