"""Shared pytest fixtures for TrendScope tests.

This module provides fixtures for:
- Environment isolation for settings
- Test data factories
- A controllable trending feed double for concurrency tests

Usage:
    @pytest.mark.asyncio
    async def test_something(controlled_feed):
        controller = FeedController(controlled_feed)
"""

import os
from collections.abc import Generator

import pytest

from tests.factories.token import TokenEntryFactory
from tests.support.feed import ControlledFeed
from trendscope.config.settings import get_settings

# =============================================================================
# Environment Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """Set up test environment variables.

    Loads .env file first, then sets defaults for any missing variables.
    """
    from dotenv import load_dotenv

    original_env = os.environ.copy()

    load_dotenv()

    os.environ.setdefault("TRENDSCOPE_ENV", "test")
    os.environ.setdefault("SOLANA_TRACKER_API_KEY", "test-key")

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Drop the cached Settings so env changes in a test take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def token_entry_factory() -> type[TokenEntryFactory]:
    """Provide token entry factory for creating test rows."""
    return TokenEntryFactory


# =============================================================================
# Feed Doubles
# =============================================================================


@pytest.fixture
def controlled_feed() -> ControlledFeed:
    """Provide a fresh controllable feed."""
    return ControlledFeed()
