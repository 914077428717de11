"""Fixed lookup tables keyed by series period.

Unrecognized period strings fall back to the one-month row of every table.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta

from quote_engine.core.models import Period

# Yahoo chart API (range, interval) per period
_RANGE_INTERVAL: dict[Period, tuple[str, str]] = {
    Period.ONE_DAY: ("1d", "5m"),
    Period.ONE_WEEK: ("5d", "15m"),
    Period.ONE_MONTH: ("1mo", "1d"),
    Period.THREE_MONTHS: ("3mo", "1d"),
    Period.SIX_MONTHS: ("6mo", "1d"),
    Period.ONE_YEAR: ("1y", "1d"),
    Period.TWO_YEARS: ("2y", "1wk"),
    Period.FIVE_YEARS: ("5y", "1wk"),
    Period.TEN_YEARS: ("10y", "1mo"),
    Period.MAX: ("max", "1mo"),
}
_DEFAULT_RANGE_INTERVAL = ("1mo", "1d")

# Local window length as (days, months)
_WINDOW: dict[Period, tuple[int, int]] = {
    Period.ONE_DAY: (1, 0),
    Period.ONE_WEEK: (7, 0),
    Period.ONE_MONTH: (0, 1),
    Period.THREE_MONTHS: (0, 3),
    Period.SIX_MONTHS: (0, 6),
    Period.ONE_YEAR: (0, 12),
    Period.TWO_YEARS: (0, 24),
    Period.FIVE_YEARS: (0, 60),
    Period.TEN_YEARS: (0, 120),
    Period.MAX: (0, 240),
}
_DEFAULT_WINDOW = (0, 1)

_COVERAGE_THRESHOLD: dict[Period, float] = {
    Period.ONE_DAY: 0.9,
    Period.ONE_WEEK: 0.8,
    Period.ONE_MONTH: 0.7,
}
_DEFAULT_COVERAGE_THRESHOLD = 0.6


def range_and_interval(period: str) -> tuple[str, str]:
    """Map a period to the provider's ``(range, interval)`` query pair."""
    parsed = Period.parse(period)
    if parsed is None:
        return _DEFAULT_RANGE_INTERVAL
    return _RANGE_INTERVAL[parsed]


def window_start(period: str, end: date) -> date:
    """Return the first date of the local window ending at ``end``."""
    parsed = Period.parse(period)
    days, months = _WINDOW[parsed] if parsed is not None else _DEFAULT_WINDOW
    if months:
        return _minus_months(end, months)
    return end - timedelta(days=days)


def coverage_threshold(period: str) -> float:
    """Minimum fraction of calendar days the local range must cover."""
    parsed = Period.parse(period)
    return _COVERAGE_THRESHOLD.get(parsed, _DEFAULT_COVERAGE_THRESHOLD)


def _minus_months(d: date, months: int) -> date:
    """Shift ``d`` back by whole months, clamping to the month's last day."""
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))
