# bizpulse/cache.py
"""
In-Memory TTL Cache

Features:
- Keyed values with per-entry TTL (seconds)
- Thread-safe: every read/write holds one lock, so concurrent
  requests (asyncio tasks or worker threads) share it safely
- Async interface matching the service façade's suspension points
- Expired entries are evicted lazily on access and on get_stats()
"""

import logging
import math
import threading
import time
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Simple key-value cache with expiry.

    Usage:
        cache = TTLCache()
        await cache.set("key", value, ttl_seconds=1800)
        value = await cache.get("key")   # None when missing/expired
    """

    def __init__(self, default_ttl: int = 3600, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            default_ttl: TTL used when set() is called without one
            clock: Monotonic time source (seconds); injectable for tests
        """
        self._store: Dict[str, tuple] = {}
        self._lock = threading.Lock()
        self._default_ttl = default_ttl
        self._clock = clock
        logger.info("Using in-memory TTL cache")

    # ==================== INTERNAL ====================

    def _get_live(self, key: str, now: float) -> Optional[tuple]:
        """Return (value, expiry) if present and fresh; evict if expired. Lock must be held."""
        item = self._store.get(key)
        if item is None:
            return None
        if item[1] <= now:
            del self._store[key]
            return None
        return item

    # ==================== CORE OPERATIONS ====================

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Set a key-value pair in cache"""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._store[key] = (value, self._clock() + ttl)
        logger.debug(f"Cache set: {key} (TTL: {ttl}s)")

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from cache (None on miss or expiry)"""
        with self._lock:
            item = self._get_live(key, self._clock())
        if item is None:
            logger.debug(f"Cache miss: {key}")
            return None
        logger.debug(f"Cache hit: {key}")
        return item[0]

    async def delete(self, key: str) -> None:
        """Delete a key from cache"""
        with self._lock:
            self._store.pop(key, None)
        logger.debug(f"Cache deleted: {key}")

    async def clear(self) -> None:
        """Clear all cache"""
        with self._lock:
            self._store.clear()
        logger.info("Cache cleared")

    async def exists(self, key: str) -> bool:
        """Check if a live key exists"""
        with self._lock:
            return self._get_live(key, self._clock()) is not None

    async def get_ttl(self, key: str) -> int:
        """Remaining TTL in whole seconds, -1 if missing or expired"""
        now = self._clock()
        with self._lock:
            item = self._get_live(key, now)
        if item is None:
            return -1
        return math.ceil(item[1] - now)

    # ==================== BULK OPERATIONS ====================

    async def mset(self, pairs: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        """Set multiple key-value pairs with one expiry"""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            expiry = self._clock() + ttl
            for key, value in pairs.items():
                self._store[key] = (value, expiry)
        logger.debug(f"Cache mset: {len(pairs)} keys")

    async def mget(self, keys: List[str]) -> List[Optional[Any]]:
        """Get multiple values (None for each miss)"""
        with self._lock:
            now = self._clock()
            items = [self._get_live(key, now) for key in keys]
        return [item[0] if item is not None else None for item in items]

    # ==================== MONITORING ====================

    async def get_stats(self) -> Dict[str, Any]:
        """Evict expired entries and report the live key count"""
        with self._lock:
            now = self._clock()
            expired = [key for key, item in self._store.items() if item[1] <= now]
            for key in expired:
                del self._store[key]
            size = len(self._store)

        return {
            'connected': True,
            'keys': size,
            'evicted': len(expired),
        }
