"""
Read-through cache for storefront recommendation lookups.

Both backends share one async interface: get / get_stale / set / delete_prefix /
sweep / stats. Entries carry their own `cached_at` so an
expired value can still be served as stale while the store is unreachable.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Optional, Protocol, Tuple
import json
import logging
import time

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RecoCache(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...
    async def get_stale(self, key: str) -> Optional[Any]: ...
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...
    async def delete_prefix(self, prefix: str) -> int: ...
    async def sweep(self) -> int: ...
    async def stats(self) -> dict: ...


class MemoryTTLCache:
    """In-process cache; expired entries are dropped on access or by sweep()."""

    def __init__(self, default_ttl: int = 3600, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._data: Dict[str, Tuple[Any, float, int]] = {}  # key -> (value, cached_at, ttl)

    def _expired(self, cached_at: float, ttl: int) -> bool:
        return self._clock() - cached_at > ttl

    async def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, cached_at, ttl = entry
        if self._expired(cached_at, ttl):
            logger.debug(f"[cache] expired key={key}")
            return None
        return value

    async def get_stale(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._data[key] = (value, self._clock(), ttl or self.default_ttl)

    async def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._data if k.startswith(prefix)]
        for k in keys:
            del self._data[k]
        return len(keys)

    async def sweep(self) -> int:
        expired = [k for k, (_, at, ttl) in self._data.items() if self._expired(at, ttl)]
        for k in expired:
            del self._data[k]
        if expired:
            logger.info(f"[cache] sweep removed {len(expired)} expired entries")
        return len(expired)

    async def stats(self) -> dict:
        expired = sum(1 for _, at, ttl in self._data.values() if self._expired(at, ttl))
        return {
            "backend": "memory",
            "total": len(self._data),
            "valid": len(self._data) - expired,
            "expired": expired,
            "ttl_seconds": self.default_ttl,
        }


class RedisTTLCache:
    """
    JSON values in Redis. Keys live for ttl + stale_grace so get_stale() can
    still answer after the fresh window; Redis expiry does the sweeping.
    """

    def __init__(self, redis: Redis, default_ttl: int = 3600, stale_grace: int = 24 * 3600, prefix: str = "reco"):
        self.redis = redis
        self.default_ttl = default_ttl
        self.stale_grace = stale_grace
        self.prefix = prefix

    def _k(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def _load(self, key: str) -> Optional[dict]:
        if raw := await self.redis.get(self._k(key)):
            return json.loads(raw)
        return None

    async def get(self, key: str) -> Optional[Any]:
        entry = await self._load(key)
        if entry is None or time.time() - entry["cached_at"] > entry["ttl"]:
            return None
        return entry["value"]

    async def get_stale(self, key: str) -> Optional[Any]:
        entry = await self._load(key)
        return entry["value"] if entry else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = ttl or self.default_ttl
        payload = {"value": value, "cached_at": time.time(), "ttl": ttl}
        await self.redis.set(self._k(key), json.dumps(payload), ex=ttl + self.stale_grace)

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        async for k in self.redis.scan_iter(match=f"{self._k(prefix)}*"):
            deleted += await self.redis.delete(k)
        return deleted

    async def sweep(self) -> int:
        return 0

    async def stats(self) -> dict:
        total = 0
        async for _ in self.redis.scan_iter(match=f"{self.prefix}:*"):
            total += 1
        return {"backend": "redis", "total": total, "ttl_seconds": self.default_ttl}


def reco_cache_key(shop: str, product_id: str, limit: int) -> str:
    return f"{shop}:{product_id}:{limit}"
