"""Shared pytest fixtures for quote-engine."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from quote_engine.core.config import RemoteConfig, StorageConfig
from quote_engine.core.models import PersistedQuote, QuotePoint
from quote_engine.prices.store import SqliteQuoteStore

TODAY = date(2024, 5, 1)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def remote_config() -> RemoteConfig:
    return RemoteConfig(
        base_url="https://quotes.test",
        request_timeout=5.0,
        retry_attempts=3,
        retry_delay_ms=1000,
        rate_limit=100,
    )


@pytest.fixture
async def store():
    """Create an in-memory SqliteQuoteStore for testing."""
    s = SqliteQuoteStore(StorageConfig(sqlite_path=":memory:"))
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def make_quote():
    """Factory for PersistedQuote with overridable defaults."""

    def _make(**overrides) -> PersistedQuote:
        defaults = dict(
            symbol="AAPL",
            price=Decimal("150.25"),
            volume=1_000_000,
            data_date=TODAY,
        )
        defaults.update(overrides)
        return PersistedQuote(**defaults)

    return _make


@pytest.fixture
def make_point():
    """Factory for QuotePoint with overridable defaults."""

    def _make(**overrides) -> QuotePoint:
        defaults = dict(
            symbol="AAPL",
            date=TODAY,
            price=Decimal("150.25"),
            volume=1_000_000,
        )
        defaults.update(overrides)
        return QuotePoint(**defaults)

    return _make


@pytest.fixture
def seed_days(store, make_quote):
    """Insert one AAPL quote per day for ``count`` days ending at ``end``."""

    async def _seed(count: int, end: date = TODAY, symbol: str = "AAPL") -> None:
        for offset in range(count):
            await store.upsert_if_absent(
                make_quote(
                    symbol=symbol,
                    data_date=end - timedelta(days=offset),
                    price=Decimal("100.00") + offset,
                )
            )

    return _seed
