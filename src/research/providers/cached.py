"""Short-lived in-memory cache in front of a search provider."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from research.models import ProviderResponse
from research.providers.base import ProviderInfo, SearchFilters, SearchProvider

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300
MAX_ENTRIES = 100


class CachedProvider(SearchProvider):
    """Serve repeated (query, count, filters) lookups from memory for ``ttl`` seconds.

    Keys include the wrapped provider's name so switching providers never
    returns another backend's results.  Failed searches are not cached.
    """

    def __init__(
        self,
        provider: SearchProvider,
        *,
        ttl: float = DEFAULT_TTL,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[tuple, tuple[float, ProviderResponse]] = {}
        # Focus-area searches run on a thread pool
        self._lock = threading.Lock()

    def info(self) -> ProviderInfo:
        return self.provider.info()

    def _key(self, query: str, count: int, filters: Optional[SearchFilters]) -> tuple:
        return (self.provider.info().name, query, count, filters)

    def search(
        self,
        query: str,
        count: int = 5,
        filters: Optional[SearchFilters] = None,
    ) -> ProviderResponse:
        key = self._key(query, count, filters)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < self.ttl:
                logger.info("Using cached search results for %r", query)
                return entry[1]

        response = self.provider.search(query, count, filters)

        with self._lock:
            self._entries[key] = (self._clock(), response)
            if len(self._entries) > self.max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
        return response

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
