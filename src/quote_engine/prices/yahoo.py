"""Yahoo Finance quote client over direct HTTP.

Uses the unauthenticated ``/v8/finance/chart/`` endpoint for prices and
series and ``/v1/finance/search`` for symbol lookup, via httpx.

Every request goes through the same retry loop: any network error, non-2xx
status, unparseable body or missing data counts as a failed attempt. Waits
between attempts grow linearly (``retry_delay_ms * attempt``) and run on the
caller's task, so cancelling the task aborts the retry loop at once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

import httpx
from aiolimiter import AsyncLimiter
from pydantic import ValidationError

from quote_engine.core.config import RemoteConfig
from quote_engine.core.exceptions import (
    NoDataError,
    RemoteQuoteError,
    RetryExhaustedError,
)
from quote_engine.core.models import QuotePoint, SymbolSuggestion, normalize_symbol
from quote_engine.core.periods import range_and_interval

logger = logging.getLogger(__name__)

_CHART_PATH = "/v8/finance/chart"
_SEARCH_PATH = "/v1/finance/search"
_EQUITY = "EQUITY"

_OPERATION_LABELS = {
    "current_price": "fetch current price",
    "series": "fetch chart data",
    "search": "search symbols",
}

T = TypeVar("T")


def _mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


class YahooQuoteAdapter:
    """Transforms raw Yahoo Finance JSON into quote-engine models.

    Knows the ``chart`` and ``search`` response shapes. Raises
    ``NoDataError`` when a response is well-formed JSON but carries no
    usable data, including bodies whose nesting does not match those shapes.
    """

    def current_price(self, raw_data: Any, symbol: str) -> Decimal:
        """Extract ``chart.result[0].meta.regularMarketPrice``."""
        result = self._first_chart_result(raw_data, symbol)
        price = _mapping(result.get("meta")).get("regularMarketPrice")
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise NoDataError(
                f"No price data found for symbol: {symbol}",
                context={"target": symbol},
            )
        return Decimal(str(price))

    def series(self, raw_data: Any, symbol: str) -> list[QuotePoint]:
        """Parse chart timestamps and closes into QuotePoints.

        Points with a null close are skipped. Order is preserved as received.
        An empty ``timestamp`` array yields an empty list.
        """
        result = self._first_chart_result(raw_data, symbol)
        quotes = _mapping(result.get("indicators")).get("quote")
        if not isinstance(quotes, list) or not quotes or not isinstance(quotes[0], dict):
            raise NoDataError(
                f"No chart data found for symbol: {symbol}",
                context={"target": symbol},
            )

        timestamps = result.get("timestamp") or []
        closes = quotes[0].get("close") or []
        volumes = quotes[0].get("volume") or []
        if not all(isinstance(column, list) for column in (timestamps, closes, volumes)):
            raise NoDataError(
                f"Malformed chart data for symbol: {symbol}: expected arrays",
                context={"target": symbol},
            )

        points: list[QuotePoint] = []
        try:
            for i, ts in enumerate(timestamps):
                close = closes[i] if i < len(closes) else None
                if close is None:
                    continue
                volume = volumes[i] if i < len(volumes) else None
                points.append(
                    QuotePoint(
                        symbol=symbol,
                        date=date.fromtimestamp(ts),
                        price=Decimal(str(close)),
                        volume=int(volume) if volume is not None else None,
                    )
                )
        except (TypeError, ValueError, OverflowError, OSError, InvalidOperation) as e:
            raise NoDataError(
                f"Malformed chart data for symbol: {symbol}: {e}",
                context={"target": symbol},
            ) from e

        return points

    def suggestions(self, raw_data: Any, limit: int) -> list[SymbolSuggestion]:
        """Keep equity hits only, preferring ``longname`` over ``shortname``.

        Entries that are not objects or lack a usable symbol are skipped.
        """
        quotes = _mapping(raw_data).get("quotes")
        if not isinstance(quotes, list):
            return []

        results: list[SymbolSuggestion] = []
        for quote in quotes:
            if not isinstance(quote, dict) or quote.get("quoteType") != _EQUITY:
                continue
            symbol = quote.get("symbol")
            if not isinstance(symbol, str) or not symbol:
                continue
            try:
                results.append(
                    SymbolSuggestion(
                        symbol=symbol,
                        name=quote.get("longname") or quote.get("shortname") or "",
                        exchange=quote.get("exchDisp"),
                        type_display=quote.get("typeDisp"),
                    )
                )
            except ValidationError:
                logger.debug("Skipping malformed search hit: %r", quote)
        return results[:limit]

    @staticmethod
    def _first_chart_result(raw_data: Any, symbol: str) -> dict:
        results = _mapping(_mapping(raw_data).get("chart")).get("result")
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            raise NoDataError(
                f"No chart result for symbol: {symbol}",
                context={"target": symbol},
            )
        return results[0]


class YahooQuoteClient:
    """Rate-limited async client for the Yahoo Finance quote endpoints.

    Use via ``async with YahooQuoteClient(config) as client:``.

    Parameters
    ----------
    config : RemoteConfig
        Base URL, timeout, retry budget and rate limit.
    adapter : YahooQuoteAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        config: RemoteConfig,
        adapter: YahooQuoteAdapter | None = None,
    ) -> None:
        self._config = config
        self._adapter = adapter or YahooQuoteAdapter()
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)
        self._client = httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> YahooQuoteClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    # --- Operations ---

    async def fetch_current_price(self, symbol: str) -> Decimal:
        """Fetch the regular market price for a symbol.

        Raises:
            RetryExhaustedError: If every attempt failed.
        """
        symbol = normalize_symbol(symbol)
        logger.info("Fetching current price for symbol: %s", symbol)
        url = f"{self._config.base_url}{_CHART_PATH}/{symbol}"
        params = {"interval": "1m", "range": "1d"}

        async def attempt() -> Decimal:
            data = await self._get_json(url, params)
            return self._adapter.current_price(data, symbol)

        price = await self._with_retries("current_price", symbol, attempt)
        logger.info("Fetched price for %s: %s", symbol, price)
        return price

    async def fetch_series(self, symbol: str, period: str) -> list[QuotePoint]:
        """Fetch a historical series for a symbol over a named period.

        Raises:
            RetryExhaustedError: If every attempt failed.
        """
        symbol = normalize_symbol(symbol)
        range_, interval = range_and_interval(period)
        logger.info(
            "Fetching series for symbol: %s period: %s (range=%s interval=%s)",
            symbol, period, range_, interval,
        )
        url = f"{self._config.base_url}{_CHART_PATH}/{symbol}"
        params = {"interval": interval, "range": range_}

        async def attempt() -> list[QuotePoint]:
            data = await self._get_json(url, params)
            return self._adapter.series(data, symbol)

        points = await self._with_retries("series", symbol, attempt)
        logger.info("Fetched %d price points for %s", len(points), symbol)
        return points

    async def search_symbols(self, query: str, limit: int) -> list[SymbolSuggestion]:
        """Search equities matching a free-text query.

        Raises:
            RetryExhaustedError: If every attempt failed.
        """
        logger.info("Searching symbols for query: %s with limit: %d", query, limit)
        url = f"{self._config.base_url}{_SEARCH_PATH}"
        params = {"q": query, "quotesCount": str(limit), "newsCount": "0"}

        async def attempt() -> list[SymbolSuggestion]:
            data = await self._get_json(url, params)
            return self._adapter.suggestions(data, limit)

        suggestions = await self._with_retries("search", query, attempt)
        logger.info("Found %d symbol suggestions for query: %s", len(suggestions), query)
        return suggestions

    # --- HTTP & Retry ---

    async def _get_json(self, url: str, params: dict[str, str]) -> Any:
        """Issue one rate-limited GET and decode the JSON body.

        Raises:
            RemoteQuoteError: On transport errors, non-2xx status, or bad JSON.
        """
        await self._limiter.acquire()
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise RemoteQuoteError(
                f"Request to {url} failed: {e}",
                context={"url": url},
            ) from e

        if not response.is_success:
            raise RemoteQuoteError(
                f"HTTP {response.status_code} from {url}",
                context={"url": url, "status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteQuoteError(
                f"Invalid JSON from {url}: {e}",
                context={"url": url, "status_code": response.status_code},
            ) from e

    async def _with_retries(
        self,
        operation: str,
        target: str,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``call`` up to ``retry_attempts`` times with linear backoff.

        Attempts are strictly sequential. Cancellation propagates from the
        request or the backoff sleep without further attempts.

        Raises:
            RetryExhaustedError: Wrapping the last failure.
        """
        attempts = self._config.retry_attempts
        last_exc: RemoteQuoteError | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await call()
            except RemoteQuoteError as e:
                last_exc = e
                logger.warning(
                    "Attempt %d/%d failed for %s %s: %s",
                    attempt, attempts, operation, target, e,
                )
            except asyncio.CancelledError:
                logger.info("%s for %s cancelled on attempt %d", operation, target, attempt)
                raise

            if attempt < attempts:
                delay = self._config.retry_delay_ms * attempt / 1000
                try:
                    await asyncio.sleep(delay)
                except asyncio.CancelledError:
                    logger.info("%s for %s cancelled during backoff", operation, target)
                    raise

        logger.error("%s for %s failed after %d attempts", operation, target, attempts)
        raise RetryExhaustedError(
            f"Failed to {_OPERATION_LABELS.get(operation, operation)} for {target} after {attempts} attempts",
            attempts=attempts,
            last_error=last_exc,
            context={"target": target, "operation": operation, "attempts": attempts},
        ) from last_exc
