"""
================================================================================
TCWatch v1.0 - Provider Response Cache
================================================================================
TTL cache for raw provider responses, shared by all adapters.

Backends:
  - MemoryBackend: in-process LRU with per-key expiry (default)
  - RedisBackend: shared cache across workers when REDIS_URL is set

Keys are md5 digests of method + path + params, namespaced per provider.
================================================================================
"""

import json
import time
import asyncio
import hashlib
import logging
from typing import Any, Optional, Dict
from collections import OrderedDict

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class MemoryBackend:
    """In-memory LRU storage with expiry."""

    def __init__(self, max_size: int = 1000):
        self._data: OrderedDict = OrderedDict()
        self._expires: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self.max_size = max_size

    def _is_expired(self, key: str) -> bool:
        expiry = self._expires.get(key)
        return bool(expiry and time.time() > expiry)

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            if key not in self._data:
                return None
            if self._is_expired(key):
                del self._data[key]
                del self._expires[key]
                return None
            self._data.move_to_end(key)
            return self._data[key]

    async def set(self, key: str, value: str, ttl: Optional[int] = None):
        async with self._lock:
            if len(self._data) >= self.max_size and key not in self._data:
                evicted, _ = self._data.popitem(last=False)
                self._expires.pop(evicted, None)
            self._data[key] = value
            if ttl:
                self._expires[key] = time.time() + ttl
            else:
                self._expires.pop(key, None)

    async def clear(self, prefix: str = ""):
        async with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[key]
                self._expires.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisBackend:
    """Redis-based storage for caches shared between processes."""

    def __init__(self, url: str):
        self.client = redis.from_url(url, decode_responses=True)
        self.url = url

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis GET failed: {e}")
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None):
        try:
            await self.client.set(key, value, ex=ttl)
        except redis.RedisError as e:
            logger.error(f"Redis SET failed: {e}")

    async def clear(self, prefix: str = ""):
        try:
            async for key in self.client.scan_iter(match=f"{prefix}*"):
                await self.client.delete(key)
        except redis.RedisError as e:
            logger.error(f"Redis CLEAR failed: {e}")


def create_backend(redis_url: Optional[str] = None):
    """Pick the Redis backend when a URL is configured, memory otherwise."""
    if redis_url:
        logger.info(f"Response cache using Redis: {redis_url}")
        return RedisBackend(redis_url)
    return MemoryBackend()


class ResponseCache:
    """
    JSON response cache for a single provider.

    Misses are never cached; adapters only store successful payloads.
    """

    def __init__(self, prefix: str, default_ttl: int = 3600, backend=None, enabled: bool = True):
        self.prefix = prefix if prefix.endswith(":") else f"{prefix}:"
        self.default_ttl = default_ttl
        self.backend = backend if backend is not None else MemoryBackend()
        self.enabled = enabled
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(method: str, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Stable digest of a request."""
        raw = json.dumps(
            {"method": method.upper(), "path": path, "params": params or {}},
            sort_keys=True,
            default=str,
        )
        return hashlib.md5(raw.encode()).hexdigest()

    async def get_json(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        data = await self.backend.get(f"{self.prefix}{key}")
        if data is None:
            self._misses += 1
            return None
        try:
            value = json.loads(data)
        except ValueError:
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None):
        if not self.enabled:
            return
        await self.backend.set(f"{self.prefix}{key}", json.dumps(value), ttl or self.default_ttl)

    async def clear(self):
        await self.backend.clear(self.prefix)
        self._hits = 0
        self._misses = 0

    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "prefix": self.prefix,
            "backend": type(self.backend).__name__,
            "enabled": self.enabled,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 3) if total else 0.0,
        }
