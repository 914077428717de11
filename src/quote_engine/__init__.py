"""quote-engine: local-first stock quote resolution with remote fallback."""

__version__ = "0.1.0"
