"""Integration test fixtures: real store, real HTTP client, mocked network."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from quote_engine.core.config import RemoteConfig, StorageConfig
from quote_engine.prices.store import SqliteQuoteStore
from quote_engine.prices.yahoo import YahooQuoteClient
from quote_engine.resolution import QuoteResolutionEngine, QuoteService


class Clock:
    """Settable stand-in for ``date.today``."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock() -> Clock:
    return Clock(date(2024, 5, 1))


@pytest.fixture
def integration_remote_config() -> RemoteConfig:
    return RemoteConfig(
        base_url="https://quotes.test",
        retry_attempts=2,
        retry_delay_ms=0,
        rate_limit=100,
    )


@pytest.fixture
async def integration_store(tmp_path: Path) -> SqliteQuoteStore:
    """An initialized file-backed SqliteQuoteStore."""
    store = SqliteQuoteStore(StorageConfig(sqlite_path=str(tmp_path / "quotes.db")))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def quote_service(integration_remote_config, integration_store, clock) -> QuoteService:
    """QuoteService wired to a real YahooQuoteClient and SQLite store."""
    async with YahooQuoteClient(integration_remote_config) as client:
        engine = QuoteResolutionEngine(client, integration_store, today=clock)
        yield QuoteService(engine, client, integration_store, today=clock)
