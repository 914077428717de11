"""Tests for quote_engine.prices.store (SqliteQuoteStore)."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest

from quote_engine.core.config import StorageConfig
from quote_engine.core.exceptions import StorageError
from quote_engine.prices.store import QuoteStore, SqliteQuoteStore, create_quote_store

TODAY = date(2024, 5, 1)


class TestLifecycle:
    async def test_satisfies_protocol(self, store):
        assert isinstance(store, QuoteStore)

    async def test_health_check(self, store):
        assert await store.health_check() is True

    async def test_health_check_before_initialize(self):
        s = SqliteQuoteStore(StorageConfig(sqlite_path=":memory:"))
        assert await s.health_check() is False

    async def test_file_backed_store_creates_parent(self, tmp_path):
        path = tmp_path / "nested" / "quotes.db"
        s = await create_quote_store(StorageConfig(sqlite_path=str(path)))
        try:
            assert path.exists()
        finally:
            await s.close()

    async def test_migrations_not_reapplied(self, tmp_path, make_quote):
        config = StorageConfig(sqlite_path=str(tmp_path / "quotes.db"))
        s = await create_quote_store(config)
        await s.upsert_if_absent(make_quote())
        await s.close()

        reopened = await create_quote_store(config)
        try:
            assert await reopened.exists("AAPL", TODAY)
        finally:
            await reopened.close()


class TestUpsertIfAbsent:
    async def test_inserts_new_row(self, store, make_quote):
        assert await store.upsert_if_absent(make_quote()) is True
        stored = await store.get("AAPL", TODAY)
        assert stored.price == Decimal("150.25")
        assert stored.volume == 1_000_000
        assert stored.created_at is not None

    async def test_existing_row_untouched(self, store, make_quote):
        await store.upsert_if_absent(make_quote(price=Decimal("150.25")))
        assert await store.upsert_if_absent(make_quote(price=Decimal("999.99"))) is False
        stored = await store.get("AAPL", TODAY)
        assert stored.price == Decimal("150.25")

    async def test_concurrent_writers_one_row(self, store, make_quote):
        results = await asyncio.gather(
            *(store.upsert_if_absent(make_quote(price=Decimal(p))) for p in ("1", "2", "3"))
        )
        assert sorted(results) == [False, False, True]
        stats = await store.statistics()
        assert stats.total_records == 1

    async def test_same_date_different_symbols(self, store, make_quote):
        assert await store.upsert_if_absent(make_quote(symbol="AAPL"))
        assert await store.upsert_if_absent(make_quote(symbol="MSFT"))
        assert await store.symbols() == ["AAPL", "MSFT"]

    async def test_closed_store_raises(self, make_quote):
        s = SqliteQuoteStore(StorageConfig(sqlite_path=":memory:"))
        with pytest.raises(StorageError, match="Failed to insert quote") as exc_info:
            await s.upsert_if_absent(make_quote())
        assert exc_info.value.context["operation"] == "insert"


class TestReads:
    async def test_get_missing(self, store):
        assert await store.get("AAPL", TODAY) is None

    async def test_get_normalizes_symbol(self, store, make_quote):
        await store.upsert_if_absent(make_quote())
        assert await store.get(" aapl ", TODAY) is not None

    async def test_latest(self, store, seed_days):
        await seed_days(5)
        latest = await store.latest("AAPL")
        assert latest.data_date == TODAY
        assert latest.price == Decimal("100.00")

    async def test_latest_missing(self, store):
        assert await store.latest("AAPL") is None

    async def test_range_inclusive_and_ascending(self, store, seed_days):
        await seed_days(10)
        start = TODAY - timedelta(days=4)
        quotes = await store.range("AAPL", start, TODAY)
        dates = [q.data_date for q in quotes]
        assert dates == sorted(dates)
        assert dates[0] == start
        assert dates[-1] == TODAY
        assert len(quotes) == 5

    async def test_range_other_symbol_excluded(self, store, seed_days):
        await seed_days(3, symbol="MSFT")
        assert await store.range("AAPL", TODAY - timedelta(days=5), TODAY) == []

    async def test_exists(self, store, make_quote):
        await store.upsert_if_absent(make_quote())
        assert await store.exists("AAPL", TODAY) is True
        assert await store.exists("AAPL", TODAY - timedelta(days=1)) is False


class TestMaintenance:
    async def test_delete_older_than(self, store, seed_days):
        await seed_days(10)
        cutoff = TODAY - timedelta(days=3)
        deleted = await store.delete_older_than(cutoff)
        assert deleted == 6
        remaining = await store.range("AAPL", date(2000, 1, 1), TODAY)
        assert remaining[0].data_date == cutoff

    async def test_delete_nothing(self, store, seed_days):
        await seed_days(2)
        assert await store.delete_older_than(date(2000, 1, 1)) == 0

    async def test_statistics(self, store, seed_days):
        await seed_days(3)
        await seed_days(2, symbol="MSFT")
        stats = await store.statistics()
        assert stats.total_records == 5
        assert stats.unique_symbols == 2
        assert stats.date_range_start == TODAY - timedelta(days=2)
        assert stats.date_range_end == TODAY

    async def test_statistics_empty(self, store):
        stats = await store.statistics()
        assert stats.total_records == 0
        assert stats.unique_symbols == 0
        assert stats.date_range_start is None
        assert stats.date_range_end is None
