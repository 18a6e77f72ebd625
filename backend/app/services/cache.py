import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 500
DEFAULT_TTL_SECONDS = 6 * 60 * 60  # 6 hours


class BundleCache:
    """In-memory LRU cache with per-entry expiry.

    - Entries expire ``ttl_seconds`` after they are stored.
    - Once ``max_entries`` is exceeded the least recently used entry is evicted.
    - Thread-safe; every read and write holds the same lock.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_entries = max(1, int(max_entries))
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: "OrderedDict[str, tuple[float, Any]]" = OrderedDict()

    def get(self, key: str) -> Any | None:
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            expires_at, value = hit
            if self._clock() > expires_at:
                self._entries.pop(key, None)
                logger.debug("Cache entry expired: %s", key)
                return None
            self._entries.move_to_end(key)
            return value

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl_seconds = self.ttl_seconds if ttl is None else ttl
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted least recently used entry: %s", evicted_key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
