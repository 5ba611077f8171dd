# =============================================================================
# core/cache.py  —  Bounded TTL Cache
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Remembers upstream responses for a few minutes so an assistant that asks
#   the same question twice gets the answer without a second network trip.
#
# RULES:
#   - Capacity is fixed.  When full, the OLDEST-INSERTED entry goes first
#     (FIFO by insertion, not least-recently-used: reads do not reorder).
#   - Entries expire lazily: get() treats an entry older than the TTL as a
#     miss and drops it.  There is no background sweeper.
#   - Keys come from make_cache_key(), which serializes the normalized request
#     with sorted keys, so two requests that mean the same thing share a key.
#
# CONCURRENCY:
#   get() and set() never await, so under asyncio they run to completion
#   without interleaving.  A threaded caller would need a lock around them.
# =============================================================================

from dataclasses import dataclass
import json
import time
from typing import Any, Callable, Mapping

from cachetools import FIFOCache


@dataclass
class CacheEntry:
    """One cached upstream payload and when it was stored."""

    payload: Any
    inserted_at: float


class TTLCache:
    """In-memory response cache with a size bound and a time-to-live.

    Storage and FIFO eviction come from cachetools.FIFOCache; expiry is
    checked here on read, against the injectable clock.

    Args:
        max_size: Maximum number of entries kept at once.
        ttl: Seconds an entry stays valid after insertion.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(self, max_size: int = 1000, ttl: float = 300.0,
                 clock: Callable[[], float] = time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries: FIFOCache = FIFOCache(maxsize=max_size)

    def get(self, key: str) -> Any | None:
        """Return the cached payload, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry.payload

    def set(self, key: str, payload: Any) -> None:
        """Store a payload, evicting the oldest entry if the cache is full."""
        # Re-inserting refreshes both the timestamp and the FIFO position.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(payload=payload, inserted_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._expired(entry)

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.inserted_at > self.ttl


def make_cache_key(kind: str, entity_type: str, params: Mapping[str, Any] | str) -> str:
    """Deterministic key for a request.

    Args:
        kind: Request family ("entity", "search", "autocomplete", "find").
        entity_type: OpenAlex entity type ("works", "authors", ...).
        params: Normalized query parameters, or an id for point lookups.

    Identity parameters (mailto, api_key) should be left out by the caller;
    they do not change the response.
    """
    return json.dumps([kind, entity_type, params], sort_keys=True, separators=(",", ":"), default=str)
