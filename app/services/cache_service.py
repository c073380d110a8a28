"""
app/services/cache_service.py

Purpose: Small TTL cache owned by the application lifespan

- Explicit instance (app.state.cache), never a module-level singleton
- Entries expire after their TTL; expired entries are evicted on access
- Explicit invalidation by key or key prefix
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from app.core.logging import get_logger

logger = get_logger(__name__)


class TTLCache:
    """
    Key/value cache with per-entry time-to-live.

    A ttl of 0 means the entry is never served from cache.
    """

    def __init__(self, default_ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (expires_at, value)
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def has(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix. Returns the count removed."""
        with self._lock:
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                del self._entries[key]
        if keys:
            logger.debug(f"Invalidated {len(keys)} cache entries with prefix {prefix!r}")
        return len(keys)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
