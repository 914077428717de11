"""Remote quote provider protocol, the interface the resolution engine consumes.

Any source that can fetch a current price, a historical series and symbol
suggestions can back the engine. Implementations own their own retry policy
and raise ``RetryExhaustedError`` (a ``RemoteQuoteError``) once it is spent.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from quote_engine.core.models import QuotePoint, SymbolSuggestion


@runtime_checkable
class QuoteProvider(Protocol):
    """Consumer-facing interface for the remote price source."""

    async def fetch_current_price(self, symbol: str) -> Decimal: ...

    async def fetch_series(self, symbol: str, period: str) -> list[QuotePoint]:
        """Return points in the order received (ascending by date)."""
        ...

    async def search_symbols(self, query: str, limit: int) -> list[SymbolSuggestion]:
        """Return at most ``limit`` equity suggestions in source order."""
        ...
