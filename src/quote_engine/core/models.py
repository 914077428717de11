"""Pydantic data models: the type contracts shared across packages."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from quote_engine.core.exceptions import InvalidRequestError

# --- Type Aliases ---

Symbol = str
CacheKey = tuple

MAX_SYMBOL_LENGTH = 10


def normalize_symbol(value: str) -> str:
    """Strip and uppercase a ticker symbol, rejecting blanks."""
    normalized = value.strip().upper()
    if not normalized:
        raise ValueError("symbol must not be blank")
    return normalized


def tracked_symbol(value: str) -> str:
    """Normalize a symbol the quote store can key rows by."""
    normalized = normalize_symbol(value)
    if len(normalized) > MAX_SYMBOL_LENGTH:
        raise ValueError(
            f"symbol must be at most {MAX_SYMBOL_LENGTH} characters, got {normalized!r}"
        )
    return normalized


# --- Enumerations ---


class Period(StrEnum):
    """Historical series windows understood by the engine."""

    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    TWO_YEARS = "2Y"
    FIVE_YEARS = "5Y"
    TEN_YEARS = "10Y"
    MAX = "MAX"

    @classmethod
    def parse(cls, value: str) -> Period | None:
        """Return the matching Period, or None for unrecognized strings."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class QuoteSource(StrEnum):
    """Where a resolved value came from."""

    STORE = "store"
    REMOTE = "remote"


# --- Quote Models ---


class QuotePoint(BaseModel):
    """A single dated price observation for a symbol."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    date: date
    price: Decimal
    volume: int | None = None

    @field_validator("symbol")
    @classmethod
    def symbol_normalized(cls, v: str) -> str:
        return normalize_symbol(v)

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError(f"price must be >= 0, got {v}")
        return v

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v


class PersistedQuote(BaseModel):
    """Durable row of the quote store, keyed by (symbol, data_date)."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    price: Decimal
    volume: int | None = None
    data_date: date
    created_at: datetime | None = None

    @field_validator("symbol")
    @classmethod
    def symbol_fits_column(cls, v: str) -> str:
        return tracked_symbol(v)

    @field_validator("price")
    @classmethod
    def price_two_places(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError(f"price must be >= 0, got {v}")
        return v.quantize(Decimal("0.01"))

    @classmethod
    def from_point(cls, point: QuotePoint) -> PersistedQuote:
        return cls(
            symbol=point.symbol,
            price=point.price,
            volume=point.volume,
            data_date=point.date,
        )

    def to_point(self) -> QuotePoint:
        return QuotePoint(
            symbol=self.symbol,
            date=self.data_date,
            price=self.price,
            volume=self.volume,
        )


class SymbolSuggestion(BaseModel):
    """A search hit from the remote symbol lookup."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    name: str
    exchange: str | None = None
    type_display: str | None = None


# --- Resolution Requests ---


class CurrentPrice(BaseModel):
    """Request for the point-in-time price of a symbol."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol

    @field_validator("symbol")
    @classmethod
    def symbol_storable(cls, v: str) -> str:
        return tracked_symbol(v)

    @property
    def key(self) -> CacheKey:
        return ("price", self.symbol)


class Series(BaseModel):
    """Request for a historical series over a named period."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    period: str = Period.ONE_MONTH.value

    @field_validator("symbol")
    @classmethod
    def symbol_storable(cls, v: str) -> str:
        return tracked_symbol(v)

    @field_validator("period")
    @classmethod
    def period_upper(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def key(self) -> CacheKey:
        return ("series", self.symbol, self.period)


class SymbolSearch(BaseModel):
    """Request for symbol suggestions matching a free-text query."""

    model_config = ConfigDict(frozen=True)

    query: str
    limit: int = 10

    @field_validator("limit")
    @classmethod
    def limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("limit must be >= 1")
        return v

    @property
    def key(self) -> CacheKey:
        return ("search", self.query, self.limit)


Request = CurrentPrice | Series | SymbolSearch

R = TypeVar("R", CurrentPrice, Series, SymbolSearch)


def build_request(model: type[R], **fields: Any) -> R:
    """Validate request fields before any store or remote access.

    Raises:
        InvalidRequestError: If a field is rejected, e.g. a blank symbol or
            one too long for the quote store.
    """
    try:
        return model(**fields)
    except ValidationError as e:
        target = fields.get("symbol", fields.get("query"))
        problems = "; ".join(err["msg"] for err in e.errors())
        raise InvalidRequestError(
            f"Invalid {model.__name__} request for {target!r}: {problems}",
            context={"request": model.__name__, **fields},
        ) from e


# --- Resolution Results ---


class StockPrice(BaseModel):
    """Resolved current price.

    ``stale`` is set when the remote source failed and the value is the most
    recent persisted quote instead.
    """

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    price: Decimal
    data_date: date
    as_of: datetime
    source: QuoteSource
    stale: bool = False


class PriceSeries(BaseModel):
    """Resolved historical series, ascending by date."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    period: str
    points: list[QuotePoint]
    source: QuoteSource
    stale: bool = False


class StoreStatistics(BaseModel):
    """Aggregate counts over the quote store."""

    model_config = ConfigDict(frozen=True)

    total_records: int
    unique_symbols: int
    date_range_start: date | None = None
    date_range_end: date | None = None


class CacheStatistics(BaseModel):
    """Entry counts of the result cache per request kind."""

    model_config = ConfigDict(frozen=True)

    price_entries: int = 0
    series_entries: int = 0
    search_entries: int = 0

    @property
    def total_entries(self) -> int:
        return self.price_entries + self.series_entries + self.search_entries
