from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable, List, Optional

from cachetools import TTLCache

from .models import TodoRecord

logger = logging.getLogger(__name__)

LISTING_KEY = "todos"


# PUBLIC_INTERFACE
class ListingCache:
    """
    Read-through cache holding one snapshot of the full todo listing.

    Entries expire passively after `ttl_seconds`. Writes to the store do not
    touch the cache; callers that need fresher reads call `evict()`.

    Concurrent misses are not coalesced: each caller loads from the store and
    the last one to finish overwrites the entry.
    """

    def __init__(self, ttl_seconds: float, timer: Optional[Callable[[], float]] = None) -> None:
        self.ttl_seconds = ttl_seconds
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=ttl_seconds, timer=timer or time.monotonic)
        self._lock = Lock()

    def get(self) -> Optional[List[TodoRecord]]:
        """Return the cached snapshot, or None on a miss or after expiry."""
        with self._lock:
            cached = self._cache.get(LISTING_KEY)
        return None if cached is None else list(cached)

    def put(self, records: List[TodoRecord]) -> None:
        with self._lock:
            self._cache[LISTING_KEY] = list(records)

    def evict(self) -> None:
        with self._lock:
            if self._cache.pop(LISTING_KEY, None) is not None:
                logger.debug("Evicted cached listing")

    def get_or_load(self, loader: Callable[[], List[TodoRecord]]) -> List[TodoRecord]:
        """Return the cached snapshot, calling `loader` and caching its result on a miss."""
        cached = self.get()
        if cached is not None:
            logger.debug("Listing cache hit (%d todos)", len(cached))
            return cached

        # The store is read outside the lock.
        records = loader()
        self.put(records)
        logger.debug("Listing cache miss, stored %d todos for %ss", len(records), self.ttl_seconds)
        return list(records)
