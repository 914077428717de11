"""Price sources and persistence.

    Yahoo Finance → YahooQuoteAdapter → QuotePoint → QuoteStore

- ``YahooQuoteClient``: rate-limited, retrying client for the remote source.
- ``YahooQuoteAdapter``: parses Yahoo chart/search JSON into models.
- ``QuoteStore``: persistence protocol keyed by (symbol, date).
- ``SqliteQuoteStore``: aiosqlite-backed implementation.
"""

from quote_engine.prices.provider import QuoteProvider
from quote_engine.prices.store import QuoteStore, SqliteQuoteStore, create_quote_store
from quote_engine.prices.yahoo import YahooQuoteAdapter, YahooQuoteClient

__all__ = [
    # Protocols
    "QuoteProvider",
    "QuoteStore",
    # Yahoo Finance
    "YahooQuoteAdapter",
    "YahooQuoteClient",
    # SQLite
    "SqliteQuoteStore",
    "create_quote_store",
]
