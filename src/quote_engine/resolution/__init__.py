"""Quote resolution: engine, result cache, and cached service."""

from quote_engine.resolution.cache import ResultCache
from quote_engine.resolution.engine import (
    QuoteResolutionEngine,
    has_recent_data,
    has_sufficient_coverage,
)
from quote_engine.resolution.service import QuoteService

__all__ = [
    "QuoteResolutionEngine",
    "QuoteService",
    "ResultCache",
    "has_recent_data",
    "has_sufficient_coverage",
]
