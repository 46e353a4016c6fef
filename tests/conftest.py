"""Shared fixtures: a frozen clock, a test configuration and a wired context."""
import pytest

from clientguard import ManualClock, SecurityConfig, SecurityContext

# 2023-11-14T22:13:20Z, 800 seconds into its hour bucket.
START_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


@pytest.fixture
def clock():
    return ManualClock(start=START_MS)


@pytest.fixture
def config():
    return SecurityConfig(
        app_secret="test-app-secret-0123456789",
        fingerprint="pytest|linux|x86_64",
        idle_timeout=30 * 60,
    )


@pytest.fixture
def context(config, clock):
    return SecurityContext(config, clock=clock)


@pytest.fixture
def store(context):
    return context.store


@pytest.fixture
def events(context):
    return context.events
