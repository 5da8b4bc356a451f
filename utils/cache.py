from __future__ import annotations
import logging
import threading
from time import monotonic
from typing import Any, Callable, Dict, Tuple

logger = logging.getLogger(__name__)


class TTLCache:
    """Simple TTL cache to reduce quote provider calls.

    Entries expire ``ttl`` seconds after they were stored and are evicted on
    the next read. There is no size bound.
    """
    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (stored_at, ttl, value)
        self._store: Dict[str, Tuple[float, float, Any]] = {}

    def get(self, key: str, default: Any = None):
        now = self._clock()
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return default
            ts, ttl, val = item
            if now - ts > ttl:
                self._store.pop(key, None)
                logger.debug("Cache expired: %s", key)
                return default
        logger.debug("Cache hit: %s", key)
        return val

    def set(self, key: str, value: Any, ttl: float | None = None):
        ttl = self.ttl if ttl is None else ttl
        now = self._clock()
        with self._lock:
            self._store[key] = (now, ttl, value)
        logger.debug("Cache stored: %s (ttl=%ss)", key, ttl)

    def delete(self, key: str):
        with self._lock:
            self._store.pop(key, None)

    def clear(self):
        with self._lock:
            self._store.clear()
        logger.debug("Cache cleared")

    def size(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (ts, ttl, _) in self._store.items() if now - ts > ttl]
            for k in expired:
                del self._store[k]
            return len(self._store)

    __len__ = size
