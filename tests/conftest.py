"""
Root conftest.py - Global configuration for all test layers.

Test Layers:
    - component/  : Component tests (service + controller, mocked providers)
    - unit/       : Unit tests (pure functions, no I/O)

Test data comes from tests/contracts/<domain>/data_contract.py.
"""
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")


@pytest.fixture(autouse=True)
def _quote_env(monkeypatch):
    """Keep host environment overrides out of engine configuration"""
    for name in (
        "QUOTE_DEBOUNCE_MS",
        "QUOTE_CACHE_MAX_ENTRIES",
        "QUOTE_CACHE_TTL_SECONDS",
        "QUOTE_SUB_CALL_TIMEOUT_SECONDS",
        "QUOTE_CONVERSION_RETRY_ATTEMPTS",
        "QUOTE_RETRY_BACKOFF_SECONDS",
        "QUOTE_PROVIDER_MODE",
    ):
        monkeypatch.delenv(name, raising=False)
