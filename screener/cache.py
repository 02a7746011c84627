"""Cache abstraction with TTL support."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheInterface(ABC):
    """Abstract cache interface."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get cached value if exists and not expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store value in cache."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all cache."""
        pass

    @abstractmethod
    def cleanup(self) -> int:
        """Remove expired items, return count of removed items."""
        pass


class InMemoryCache(CacheInterface):
    """In-memory cache where every entry carries its own expiry."""

    def __init__(self, default_ttl: int = 60):
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self.default_ttl = default_ttl
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Get cached value if it exists and is not expired."""
        entry = self._cache.get(key)
        if entry is None:
            self.misses += 1
            return None

        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self._cache[key]
            self.misses += 1
            logger.debug("Cache miss (expired): %s", key)
            return None

        self.hits += 1
        logger.debug("Cache hit: %s", key)
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store value until now + ttl (default_ttl when not given)."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        self._cache[key] = (value, time.monotonic() + ttl)
        logger.debug("Cache set: %s (ttl=%ss)", key, ttl)

    def delete(self, key: str) -> None:
        """Drop a single key."""
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cache."""
        count = len(self._cache)
        self._cache.clear()
        logger.info("Cache cleared: %d items removed", count)

    def cleanup(self) -> int:
        """Remove expired items, return count of removed items."""
        now = time.monotonic()
        expired_keys = [
            key for key, (_, expires_at) in self._cache.items()
            if expires_at <= now
        ]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug("Cache cleanup: %d items removed", len(expired_keys))

        return len(expired_keys)

    def keys(self) -> list:
        """Live (non-expired) keys."""
        self.cleanup()
        return list(self._cache.keys())

    def stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        self.cleanup()
        return {"keys": len(self._cache), "hits": self.hits, "misses": self.misses}
