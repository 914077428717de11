"""Quote resolution engine: local-first, remote-fallback, degrade-on-failure.

Each request ends either resolved (fresh or stale) or failed:

    CurrentPrice  today's row? ─no→ remote ─fail→ latest row (stale) ─none→ fail
    Series        recent + covered? ─no→ remote ─fail→ local range (stale) ─empty→ fail
    SymbolSearch  remote ─fail→ fail

The engine never retries the provider; retries live inside the provider.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

from quote_engine.core.exceptions import RemoteQuoteError, ResolutionError
from quote_engine.core.models import (
    CurrentPrice,
    PersistedQuote,
    PriceSeries,
    QuotePoint,
    QuoteSource,
    Request,
    Series,
    StockPrice,
    SymbolSearch,
    SymbolSuggestion,
    build_request,
)
from quote_engine.core.periods import coverage_threshold, window_start
from quote_engine.prices.provider import QuoteProvider
from quote_engine.prices.store import QuoteStore

logger = logging.getLogger(__name__)

RECENCY_DAYS = 2


def has_recent_data(quotes: list[PersistedQuote], end: date) -> bool:
    """True if any quote is dated after ``end - RECENCY_DAYS``."""
    cutoff = end - timedelta(days=RECENCY_DAYS)
    return any(q.data_date > cutoff for q in quotes)


def has_sufficient_coverage(
    quotes: list[PersistedQuote], start: date, end: date, period: str
) -> bool:
    """True if quote count over calendar days in the window meets the threshold.

    Weekends and holidays count against coverage.
    """
    if not quotes:
        return False
    total_days = (end - start).days
    if total_days <= 0:
        return True
    return len(quotes) / total_days >= coverage_threshold(period)


class QuoteResolutionEngine:
    """Resolves prices, series and symbol searches against store and provider.

    Parameters
    ----------
    provider : QuoteProvider
        Remote price source with its own retry policy.
    store : QuoteStore
        Shared persisted quote store.
    today : Callable[[], date]
        Source of the current calendar date. Defaults to ``date.today``.
    """

    def __init__(
        self,
        provider: QuoteProvider,
        store: QuoteStore,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._provider = provider
        self._store = store
        self._today = today

    async def resolve(
        self, request: Request
    ) -> StockPrice | PriceSeries | list[SymbolSuggestion]:
        """Dispatch a validated request object to the matching resolver."""
        if isinstance(request, CurrentPrice):
            return await self.current_price(request.symbol)
        if isinstance(request, Series):
            return await self.series(request.symbol, request.period)
        return await self.search(request.query, request.limit)

    async def current_price(self, symbol: str) -> StockPrice:
        """Resolve the current price of ``symbol``.

        Raises:
            InvalidRequestError: If the symbol is blank or too long to store.
            ResolutionError: If the provider failed and nothing is persisted.
        """
        symbol = build_request(CurrentPrice, symbol=symbol).symbol
        today = self._today()
        logger.info("Resolving current price for %s", symbol)

        todays = await self._store.get(symbol, today)
        if todays is not None:
            logger.info("Found today's quote in store for %s", symbol)
            return self._from_persisted(todays, stale=False)

        try:
            price = await self._provider.fetch_current_price(symbol)
        except RemoteQuoteError as e:
            logger.error("Remote price unavailable for %s: %s", symbol, e)
            latest = await self._store.latest(symbol)
            if latest is not None:
                logger.warning(
                    "Using latest stored quote for %s from %s", symbol, latest.data_date
                )
                return self._from_persisted(latest, stale=True)
            raise ResolutionError(
                f"Unable to get current price for {symbol}",
                context={"symbol": symbol},
            ) from e

        inserted = await self._store.upsert_if_absent(
            PersistedQuote(symbol=symbol, price=price, data_date=today)
        )
        logger.info(
            "Fetched current price for %s: %s (%s)",
            symbol, price, "stored" if inserted else "already stored",
        )
        return StockPrice(
            symbol=symbol,
            price=price,
            data_date=today,
            as_of=datetime.now(timezone.utc),
            source=QuoteSource.REMOTE,
        )

    async def series(self, symbol: str, period: str) -> PriceSeries:
        """Resolve the historical series of ``symbol`` over ``period``.

        Raises:
            InvalidRequestError: If the symbol is blank or too long to store.
            ResolutionError: If the provider failed and the local range is empty.
        """
        request = build_request(Series, symbol=symbol, period=period)
        symbol, period = request.symbol, request.period
        end = self._today()
        start = window_start(period, end)
        logger.info("Resolving %s series for %s (%s to %s)", period, symbol, start, end)

        local = await self._store.range(symbol, start, end)

        if has_recent_data(local, end) and has_sufficient_coverage(local, start, end, period):
            logger.info("Using stored series for %s (%d points)", symbol, len(local))
            return PriceSeries(
                symbol=symbol,
                period=period,
                points=[q.to_point() for q in local],
                source=QuoteSource.STORE,
            )

        try:
            points = await self._provider.fetch_series(symbol, period)
        except RemoteQuoteError as e:
            logger.error("Remote series unavailable for %s: %s", symbol, e)
            if local:
                logger.warning(
                    "Using %d stored points for %s series", len(local), symbol
                )
                return PriceSeries(
                    symbol=symbol,
                    period=period,
                    points=[q.to_point() for q in local],
                    source=QuoteSource.STORE,
                    stale=True,
                )
            raise ResolutionError(
                f"Unable to get chart data for {symbol}",
                context={"symbol": symbol, "period": period},
            ) from e

        stored = await self._persist_points(points)
        logger.info(
            "Fetched %d points for %s, stored %d new", len(points), symbol, stored
        )
        return PriceSeries(
            symbol=symbol,
            period=period,
            points=points,
            source=QuoteSource.REMOTE,
        )

    async def search(self, query: str, limit: int) -> list[SymbolSuggestion]:
        """Search symbols remotely. Provider failures propagate unchanged."""
        request = build_request(SymbolSearch, query=query, limit=limit)
        return await self._provider.search_symbols(request.query, request.limit)

    async def _persist_points(self, points: list[QuotePoint]) -> int:
        inserted = 0
        for point in points:
            if await self._store.upsert_if_absent(PersistedQuote.from_point(point)):
                inserted += 1
        return inserted

    @staticmethod
    def _from_persisted(quote: PersistedQuote, stale: bool) -> StockPrice:
        return StockPrice(
            symbol=quote.symbol,
            price=quote.price,
            data_date=quote.data_date,
            as_of=quote.created_at or datetime.now(timezone.utc),
            source=QuoteSource.STORE,
            stale=stale,
        )
