"""Persisted quote store: Protocol definition, SQLite implementation, factory.

Rows are keyed by the natural key ``(symbol, data_date)``. Writes go through
``upsert_if_absent``, which leaves an existing row untouched, so concurrent
writers racing on the same key produce exactly one row and no error.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from quote_engine.core.config import StorageConfig
from quote_engine.core.exceptions import StorageError
from quote_engine.core.models import PersistedQuote, StoreStatistics, normalize_symbol

logger = logging.getLogger(__name__)


@runtime_checkable
class QuoteStore(Protocol):
    """Persistence interface for dated quotes."""

    async def get(self, symbol: str, data_date: date) -> PersistedQuote | None: ...
    async def latest(self, symbol: str) -> PersistedQuote | None: ...
    async def range(
        self, symbol: str, start: date, end: date
    ) -> list[PersistedQuote]: ...
    async def exists(self, symbol: str, data_date: date) -> bool: ...
    async def upsert_if_absent(self, quote: PersistedQuote) -> bool: ...
    async def delete_older_than(self, cutoff: date) -> int: ...
    async def symbols(self) -> list[str]: ...
    async def statistics(self) -> StoreStatistics: ...


class SqliteQuoteStore:
    """SQLite implementation of QuoteStore.

    Uses aiosqlite for async access and a version-tracked migration system.
    Prices are stored as decimal strings with two fractional digits.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS stock_data (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL CHECK (length(symbol) <= 10),
                    price TEXT NOT NULL,
                    volume INTEGER,
                    data_date TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(symbol, data_date)
                )""",
                "CREATE INDEX IF NOT EXISTS idx_stock_data_symbol ON stock_data(symbol)",
                "CREATE INDEX IF NOT EXISTS idx_stock_data_date ON stock_data(data_date)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite quote store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except aiosqlite.Error:
            return False

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Reads ---

    async def get(self, symbol: str, data_date: date) -> PersistedQuote | None:
        try:
            async with self._db.execute(
                "SELECT * FROM stock_data WHERE symbol = ? AND data_date = ?",
                (normalize_symbol(symbol), data_date.isoformat()),
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_quote(row) if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to get quote: {e}",
                context={"operation": "query", "table": "stock_data"},
            ) from e

    async def latest(self, symbol: str) -> PersistedQuote | None:
        try:
            async with self._db.execute(
                """SELECT * FROM stock_data WHERE symbol = ?
                   ORDER BY data_date DESC LIMIT 1""",
                (normalize_symbol(symbol),),
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_quote(row) if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to get latest quote: {e}",
                context={"operation": "query", "table": "stock_data"},
            ) from e

    async def range(
        self, symbol: str, start: date, end: date
    ) -> list[PersistedQuote]:
        """Quotes with ``start <= data_date <= end``, ascending by date."""
        try:
            async with self._db.execute(
                """SELECT * FROM stock_data
                   WHERE symbol = ? AND data_date >= ? AND data_date <= ?
                   ORDER BY data_date ASC""",
                (normalize_symbol(symbol), start.isoformat(), end.isoformat()),
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_quote(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to query quote range: {e}",
                context={"operation": "query", "table": "stock_data"},
            ) from e

    async def exists(self, symbol: str, data_date: date) -> bool:
        try:
            async with self._db.execute(
                "SELECT 1 FROM stock_data WHERE symbol = ? AND data_date = ?",
                (normalize_symbol(symbol), data_date.isoformat()),
            ) as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception as e:
            raise StorageError(
                f"Failed to check quote existence: {e}",
                context={"operation": "query", "table": "stock_data"},
            ) from e

    async def symbols(self) -> list[str]:
        """Return all distinct symbols in the store."""
        try:
            async with self._db.execute(
                "SELECT DISTINCT symbol FROM stock_data ORDER BY symbol"
            ) as cursor:
                rows = await cursor.fetchall()
            return [row["symbol"] for row in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to list symbols: {e}",
                context={"operation": "query", "table": "stock_data"},
            ) from e

    async def statistics(self) -> StoreStatistics:
        try:
            async with self._db.execute(
                """SELECT COUNT(*) AS total_records,
                          COUNT(DISTINCT symbol) AS unique_symbols,
                          MIN(data_date) AS date_range_start,
                          MAX(data_date) AS date_range_end
                   FROM stock_data"""
            ) as cursor:
                row = await cursor.fetchone()
            start, end = row["date_range_start"], row["date_range_end"]
            return StoreStatistics(
                total_records=row["total_records"],
                unique_symbols=row["unique_symbols"],
                date_range_start=date.fromisoformat(start) if start else None,
                date_range_end=date.fromisoformat(end) if end else None,
            )
        except Exception as e:
            raise StorageError(
                f"Failed to compute statistics: {e}",
                context={"operation": "query", "table": "stock_data"},
            ) from e

    # --- Writes ---

    async def upsert_if_absent(self, quote: PersistedQuote) -> bool:
        """Insert ``quote`` unless its (symbol, data_date) already exists.

        Returns True if a row was inserted, False if the key was present.
        """
        try:
            created_at = quote.created_at or datetime.now(timezone.utc)
            cursor = await self._db.execute(
                """INSERT INTO stock_data (symbol, price, volume, data_date, created_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(symbol, data_date) DO NOTHING""",
                (
                    quote.symbol,
                    str(quote.price),
                    quote.volume,
                    quote.data_date.isoformat(),
                    created_at.isoformat(),
                ),
            )
            inserted = cursor.rowcount > 0
            await cursor.close()
            await self._db.commit()
            return inserted
        except Exception as e:
            raise StorageError(
                f"Failed to insert quote: {e}",
                context={
                    "operation": "insert",
                    "table": "stock_data",
                    "symbol": quote.symbol,
                    "data_date": quote.data_date.isoformat(),
                },
            ) from e

    async def delete_older_than(self, cutoff: date) -> int:
        """Delete quotes dated strictly before ``cutoff``. Returns the count."""
        try:
            cursor = await self._db.execute(
                "DELETE FROM stock_data WHERE data_date < ?",
                (cutoff.isoformat(),),
            )
            deleted = cursor.rowcount
            await cursor.close()
            await self._db.commit()
            logger.info("Deleted %d quotes older than %s", deleted, cutoff)
            return deleted
        except Exception as e:
            raise StorageError(
                f"Failed to delete old quotes: {e}",
                context={"operation": "delete", "table": "stock_data"},
            ) from e

    # --- Row Mapping ---

    @staticmethod
    def _row_to_quote(row: aiosqlite.Row) -> PersistedQuote:
        return PersistedQuote(
            symbol=row["symbol"],
            price=Decimal(row["price"]),
            volume=row["volume"],
            data_date=date.fromisoformat(row["data_date"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


async def create_quote_store(config: StorageConfig) -> SqliteQuoteStore:
    """Create and initialize the quote store from configuration."""
    store = SqliteQuoteStore(config)
    await store.initialize()
    return store
