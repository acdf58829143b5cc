"""
Short-lived response caches.

Transaction status and pool prices stay valid for a handful of blocks, so
each provider keeps its own TTL namespace instead of hitting the node on
every poll.
"""

from typing import Any, Callable, Optional

from cachetools import TTLCache

from streamhedge.core.config import get_settings
from streamhedge.core.logging import get_logger

logger = get_logger("cache")

_MISSING = object()


class CacheManager:
    """TTL cache that counts hits and misses for the status screen."""

    def __init__(self, maxsize: int = 1000, ttl: Optional[int] = None, namespace: str = ""):
        self.ttl = ttl or get_settings().cache_ttl
        self.namespace = namespace
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=self.ttl)
        self._hits = 0
        self._misses = 0

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def get(self, key: str) -> Optional[Any]:
        value = self._entries.get(self._key(key), _MISSING)
        if value is _MISSING:
            self._misses += 1
            return None
        self._hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        # None means "not cached" to callers, so it is never stored
        if value is None:
            return
        self._entries[self._key(key)] = value

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Optional[Any]:
        """Return the cached value, or call ``loader`` and keep a non-None result."""
        value = self.get(key)
        if value is None:
            value = loader()
            self.set(key, value)
        return value

    def delete(self, key: str) -> None:
        self._entries.pop(self._key(key), None)

    def clear(self) -> None:
        dropped = len(self._entries)
        self._entries.clear()
        logger.debug(f"Cache {self.namespace or 'default'} cleared ({dropped} entries)")

    @property
    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "total": lookups,
            "hit_rate": round(self._hits / lookups, 3) if lookups else 0,
            "size": len(self._entries),
        }


_provider_caches: dict[str, CacheManager] = {}


def get_provider_cache(provider_name: str) -> CacheManager:
    """One shared cache per provider name, created on first use."""
    if provider_name not in _provider_caches:
        _provider_caches[provider_name] = CacheManager(maxsize=500, namespace=provider_name)
    return _provider_caches[provider_name]
