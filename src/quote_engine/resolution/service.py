"""Cached quote service, the entry point callers use.

Wraps QuoteResolutionEngine with a ResultCache keyed per request type and
adds store-backed queries and maintenance operations. Every symbol argument
is validated first, so bad input surfaces as InvalidRequestError before any
store or remote access.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal

from quote_engine.core.exceptions import InvalidRequestError, QuoteEngineError
from quote_engine.core.models import (
    CacheStatistics,
    CurrentPrice,
    PersistedQuote,
    PriceSeries,
    Request,
    Series,
    StockPrice,
    StoreStatistics,
    SymbolSearch,
    SymbolSuggestion,
    build_request,
)
from quote_engine.prices.provider import QuoteProvider
from quote_engine.prices.store import QuoteStore
from quote_engine.resolution.cache import ResultCache
from quote_engine.resolution.engine import QuoteResolutionEngine

logger = logging.getLogger(__name__)


def _symbol(symbol: str) -> str:
    return build_request(CurrentPrice, symbol=symbol).symbol


class QuoteService:
    """Memoized resolution plus quote-store queries.

    Parameters
    ----------
    engine : QuoteResolutionEngine
        Uncached resolver.
    provider : QuoteProvider
        Remote source, used directly by bulk updates.
    store : QuoteStore
        Persisted quote store.
    cache : ResultCache | None
        Shared cache. A fresh one is created if None.
    today : Callable[[], date]
        Source of the current calendar date.
    """

    def __init__(
        self,
        engine: QuoteResolutionEngine,
        provider: QuoteProvider,
        store: QuoteStore,
        cache: ResultCache | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._engine = engine
        self._provider = provider
        self._store = store
        self._cache = cache if cache is not None else ResultCache()
        self._today = today

    @property
    def cache(self) -> ResultCache:
        return self._cache

    # --- Cached resolution ---

    async def get_current_price(self, symbol: str) -> StockPrice:
        return await self._resolve(build_request(CurrentPrice, symbol=symbol))

    async def get_series(self, symbol: str, period: str) -> PriceSeries:
        return await self._resolve(build_request(Series, symbol=symbol, period=period))

    async def search_symbols(self, query: str, limit: int = 10) -> list[SymbolSuggestion]:
        return await self._resolve(build_request(SymbolSearch, query=query, limit=limit))

    async def _resolve(self, request: Request):
        return await self._cache.resolve(
            request.key, lambda: self._engine.resolve(request)
        )

    # --- Eviction ---

    def evict_price_cache(self, symbol: str) -> None:
        self._cache.evict(build_request(CurrentPrice, symbol=symbol).key)
        logger.info("Evicted price cache for symbol: %s", symbol)

    def evict_series_cache(self, symbol: str, period: str) -> None:
        self._cache.evict(build_request(Series, symbol=symbol, period=period).key)
        logger.info("Evicted series cache for symbol: %s and period: %s", symbol, period)

    def evict_search_cache(self, query: str, limit: int = 10) -> None:
        self._cache.evict(build_request(SymbolSearch, query=query, limit=limit).key)
        logger.info("Evicted search cache for query: %s", query)

    def evict_all_caches(self) -> None:
        count = self._cache.evict_all()
        logger.info("Evicted all caches (%d entries)", count)

    def get_cache_stats(self) -> CacheStatistics:
        """Count cached results per request kind."""
        counts = self._cache.stats()
        return CacheStatistics(
            price_entries=counts.get("price", 0),
            series_entries=counts.get("series", 0),
            search_entries=counts.get("search", 0),
        )

    # --- Aggregates ---

    async def get_multiple_prices(self, symbols: list[str]) -> list[StockPrice]:
        """Resolve several symbols concurrently, one task per symbol.

        The first hard failure propagates after all tasks finish.
        """
        logger.info("Getting current prices for %d symbols", len(symbols))
        return list(
            await asyncio.gather(*(self.get_current_price(s) for s in symbols))
        )

    async def get_portfolio_values(self, symbols: list[str]) -> dict[str, Decimal]:
        """Map each requested symbol to its resolved current price."""
        prices = await self.get_multiple_prices(symbols)
        return {symbol: price.price for symbol, price in zip(symbols, prices)}

    # --- Store queries ---

    async def get_historical_data(
        self, symbol: str, start: date, end: date
    ) -> list[PersistedQuote]:
        return await self._store.range(_symbol(symbol), start, end)

    async def get_latest_data(self, symbol: str) -> PersistedQuote | None:
        return await self._store.latest(_symbol(symbol))

    async def has_data_for_date(self, symbol: str, data_date: date) -> bool:
        return await self._store.exists(_symbol(symbol), data_date)

    async def get_missing_dates(
        self, symbol: str, start: date, end: date
    ) -> list[date]:
        """Calendar days in ``[start, end]`` with no stored quote, ascending."""
        if end < start:
            raise InvalidRequestError(
                f"end {end} is before start {start}",
                context={"symbol": symbol, "start": start, "end": end},
            )
        stored = {q.data_date for q in await self._store.range(_symbol(symbol), start, end)}
        days = (start + timedelta(days=i) for i in range((end - start).days + 1))
        return [day for day in days if day not in stored]

    async def get_all_symbols(self) -> list[str]:
        return await self._store.symbols()

    async def get_statistics(self) -> StoreStatistics:
        return await self._store.statistics()

    # --- Maintenance ---

    async def update_stock_data_bulk(self, symbols: list[str]) -> int:
        """Fetch and persist today's price for symbols missing a row for today.

        Invalid symbols and per-symbol failures are logged and skipped.
        Returns how many symbols were updated.
        """
        today = self._today()
        pending: list[str] = []
        for raw in symbols:
            try:
                symbol = _symbol(raw)
            except InvalidRequestError as e:
                logger.warning("Skipping invalid symbol %r: %s", raw, e)
                continue
            if symbol not in pending and not await self._store.exists(symbol, today):
                pending.append(symbol)
        logger.info("Found %d of %d symbols that need updates", len(pending), len(symbols))

        updated = await asyncio.gather(*(self._update_single(s, today) for s in pending))
        return sum(updated)

    async def _update_single(self, symbol: str, today: date) -> int:
        try:
            price = await self._provider.fetch_current_price(symbol)
            await self._store.upsert_if_absent(
                PersistedQuote(symbol=symbol, price=price, data_date=today)
            )
        except QuoteEngineError as e:
            logger.warning("Failed to update stock data for symbol: %s: %s", symbol, e)
            return 0
        logger.info("Updated stock data for %s: %s", symbol, price)
        return 1

    async def cleanup_old_data(self, days_to_keep: int) -> int:
        """Delete quotes older than ``days_to_keep`` days. Returns the count."""
        if days_to_keep < 1:
            raise InvalidRequestError(
                f"days_to_keep must be >= 1, got {days_to_keep}",
                context={"days_to_keep": days_to_keep},
            )
        cutoff = self._today() - timedelta(days=days_to_keep)
        deleted = await self._store.delete_older_than(cutoff)
        logger.info("Cleaned up %d old stock data records", deleted)
        return deleted
