"""Process-lifetime memoization of resolution results.

Entries never expire; they live until evicted or the process exits. There
is no locking: two tasks missing the same key both compute, and the last
to finish overwrites the entry.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultCache:
    """Unbounded key → value memo for successful resolutions."""

    def __init__(self) -> None:
        self._entries: dict[Hashable, Any] = {}

    async def resolve(self, key: Hashable, compute: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for ``key`` or compute and store it.

        Exceptions from ``compute`` propagate and nothing is stored.
        """
        if key in self._entries:
            logger.debug("Cache hit for %r", key)
            return self._entries[key]

        logger.debug("Cache miss for %r", key)
        value = await compute()
        self._entries[key] = value
        return value

    def evict(self, key: Hashable) -> bool:
        """Remove one entry. Returns whether it was present."""
        if key not in self._entries:
            return False
        del self._entries[key]
        return True

    def evict_all(self) -> int:
        """Remove every entry. Returns how many were removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> Counter[str]:
        """Count entries per key space, the first element of tuple keys."""
        return Counter(
            key[0] if isinstance(key, tuple) and key else "other" for key in self._entries
        )

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
