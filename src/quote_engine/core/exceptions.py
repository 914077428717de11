"""Custom exception hierarchy for quote-engine."""

from typing import Any


class QuoteEngineError(Exception):
    """Base exception for all quote-engine errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(QuoteEngineError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value
    """


class RemoteQuoteError(QuoteEngineError):
    """The remote price source failed to produce a usable response.

    Policy: retried inside YahooQuoteClient up to the attempt budget.

    Context keys:
        url: str — the URL that was being fetched
        status_code: int | None — HTTP status if a response was received
    """


class NoDataError(RemoteQuoteError):
    """The remote response parsed but carried no usable price data.

    Context keys:
        target: str — symbol or query the request was for
    """


class RetryExhaustedError(RemoteQuoteError):
    """Every attempt against the remote source failed.

    Policy: the resolution engine falls back to persisted data once.

    Context keys:
        target: str — symbol or query
        operation: str — "current_price", "series" or "search"
        attempts: int — number of attempts made
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.attempts = attempts
        self.last_error = last_error


class StorageError(QuoteEngineError):
    """Database operation failed.

    Policy: raise immediately. Data integrity is critical.

    Context keys:
        operation: str — "insert", "query", "delete", etc.
        table: str — the table involved
    """


class ResolutionError(QuoteEngineError):
    """No fresh remote data and no persisted fallback for a request.

    Context keys:
        symbol: str — the symbol that could not be resolved
        period: str — the series period, if any
    """


class InvalidRequestError(ResolutionError):
    """A request was rejected before any store or remote access.

    Raised for blank symbols, symbols longer than the store's key column,
    or a non-positive search limit.

    Context keys:
        request: str — "CurrentPrice", "Series" or "SymbolSearch"
        symbol / period / query / limit: the fields as supplied
    """
