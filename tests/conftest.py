"""Root conftest — shared test configuration and fixtures.

Invariants:
    - Tests never read real credentials from the environment or a .env file
    - fake_clock advances instantly on sleep(); jitter is fixed per test
"""

import os

import pytest

from mpesa.config import Settings, get_settings

from tests.fakes import FakeClock, FakeGateway

# Ensure tests don't accidentally use real credentials
os.environ.setdefault("MPESA_CONSUMER_KEY", "test-consumer-key")
os.environ.setdefault("MPESA_CONSUMER_SECRET", "test-consumer-secret")


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        consumer_key="test-consumer-key",
        consumer_secret="test-consumer-secret",
        base_url="https://gateway.test",
        max_concurrent=4,
        window_budget=50,
        window_duration_ms=60_000,
        max_retries=2,
        initial_delay_ms=100,
        max_delay_ms=1000,
    )
