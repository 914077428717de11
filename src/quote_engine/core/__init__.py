"""quote_engine.core — Foundation types, config, and exceptions."""

from quote_engine.core.config import (
    CleanupConfig,
    QuoteEngineConfig,
    RemoteConfig,
    StorageConfig,
    load_config,
)
from quote_engine.core.exceptions import (
    ConfigError,
    InvalidRequestError,
    NoDataError,
    QuoteEngineError,
    RemoteQuoteError,
    ResolutionError,
    RetryExhaustedError,
    StorageError,
)
from quote_engine.core.models import (
    CacheStatistics,
    CurrentPrice,
    Period,
    PersistedQuote,
    PriceSeries,
    QuotePoint,
    QuoteSource,
    Series,
    StockPrice,
    StoreStatistics,
    Symbol,
    SymbolSearch,
    SymbolSuggestion,
    build_request,
)

__all__ = [
    # Type aliases
    "Symbol",
    # Enums
    "Period",
    "QuoteSource",
    # Quote models
    "QuotePoint",
    "PersistedQuote",
    "SymbolSuggestion",
    "StoreStatistics",
    "CacheStatistics",
    # Requests
    "CurrentPrice",
    "Series",
    "SymbolSearch",
    "build_request",
    # Results
    "StockPrice",
    "PriceSeries",
    # Config
    "QuoteEngineConfig",
    "RemoteConfig",
    "StorageConfig",
    "CleanupConfig",
    "load_config",
    # Exceptions
    "QuoteEngineError",
    "ConfigError",
    "RemoteQuoteError",
    "NoDataError",
    "RetryExhaustedError",
    "StorageError",
    "ResolutionError",
    "InvalidRequestError",
]
