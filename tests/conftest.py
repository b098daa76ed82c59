"""Shared pytest fixtures and configuration.

This file is automatically loaded by pytest and provides fixtures
accessible to all tests.
"""

import os

import pytest
from hypothesis import HealthCheck, settings

from spiders.core.clock import IdClock, SnowflakeIdGenerator

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=50,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

settings.register_profile(
    "dev",
    max_examples=10,
    deadline=500,
)

settings.register_profile(
    "thorough",
    max_examples=1000,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


# =============================================================================
# Environment Isolation
# =============================================================================

_SETTINGS_ENV = (
    "AERON_DIR",
    "CONTROL_URI",
    "STREAM_URI",
    "CONTROL_STREAM_ID",
    "STREAM_ID",
    "BLOCK_ID",
    "LOG_LEVEL",
    "SPIDERS_CONNECTION_TIMEOUT_MS",
    "SPIDERS_OFFER_MAX_ATTEMPTS",
    "SPIDERS_OFFER_TIMEOUT_MS",
    "SPIDERS_REDIS_STREAM_PREFIX",
    "SPIDERS_REDIS_MAX_STREAM_LENGTH",
    "SPIDERS_HTTP_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def clean_sender_env(monkeypatch, tmp_path):
    """Keep host environment and any local ``.env`` out of settings tests."""
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


# =============================================================================
# Clock Fixtures
# =============================================================================

class FakeMillis:
    """Settable millisecond clock for snowflake tests."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def fake_millis():
    return FakeMillis()


@pytest.fixture
def id_clock(fake_millis):
    """IdClock with a fixed wall clock and a controllable id generator."""
    generator = SnowflakeIdGenerator(7, clock_ms=fake_millis)
    return IdClock(wall_clock_ns=lambda: 1_700_000_000_123_456_789, generator=generator)
