import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from app.models.search import CacheEntry

logger = logging.getLogger(__name__)


class ResultCache:
    """In-memory store of resolved searches keyed by normalized query.

    Entries are never mutated; ``set`` replaces whatever was stored. With
    ``ttl_seconds`` an entry older than the TTL reads as a miss, and with
    ``max_entries`` the least recently read entry is evicted first.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def now(self) -> float:
        return self._clock()

    def _expired(self, entry: CacheEntry) -> bool:
        return self.ttl_seconds is not None and self._clock() - entry.timestamp > self.ttl_seconds

    def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            logger.debug("Cache entry expired", extra={"query": key})
            return None
        self._entries.move_to_end(key)
        return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        self._entries.pop(key, None)
        self._entries[key] = entry
        if self.max_entries and len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache entry evicted", extra={"query": evicted})

    def clear(self) -> None:
        self._entries.clear()
