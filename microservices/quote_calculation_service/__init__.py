"""
Quote Calculation Service

Landed-cost quote engine: itemized breakdowns in the customer's currency,
cached by input fingerprint and kept live by a debounced controller.
"""

from .models import (
    Breakdown,
    CacheStats,
    CalculationParams,
    CalculationState,
    ConversionResult,
    CountrySettings,
    Item,
    Money,
    PerformanceMetrics,
    ShippingQuote,
)
from .protocols import (
    CalculationError,
    CalculationTimeoutError,
    ConversionError,
    CountryNotConfiguredError,
    InvalidInputError,
)
from .quote_calculation_service import CalculationResult, QuoteCalculationService
from .realtime_controller import RealtimeQuoteController, RealtimeSnapshot

__all__ = [
    "Breakdown",
    "CacheStats",
    "CalculationParams",
    "CalculationState",
    "ConversionResult",
    "CountrySettings",
    "Item",
    "Money",
    "PerformanceMetrics",
    "ShippingQuote",
    "CalculationError",
    "CalculationTimeoutError",
    "ConversionError",
    "CountryNotConfiguredError",
    "InvalidInputError",
    "CalculationResult",
    "QuoteCalculationService",
    "RealtimeQuoteController",
    "RealtimeSnapshot",
]
