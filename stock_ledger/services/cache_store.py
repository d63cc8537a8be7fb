"""
Cache Store

Read-through caching for computed reports:
1. RedisCacheStore - shared cache for API processes (JSON values, SETEX TTL)
2. InMemoryCacheStore - per-process cache for local runs and tests

Cache failures never fail a request; the value is recomputed instead.
"""

import json
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable

from redis import Redis as RedisClient
from redis.exceptions import RedisError

from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)


class CacheStore:
    """Interface: remember(key, ttl_seconds, compute) -> value."""

    def remember(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        raise NotImplementedError


class RedisCacheStore(CacheStore):
    """Redis-backed cache for JSON-serializable values."""

    def __init__(self, redis: RedisClient, prefix: str = "stock_ledger:"):
        self.redis = redis
        self.prefix = prefix

    def remember(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        cache_key = f"{self.prefix}{key}"

        try:
            cached_json = self.redis.get(cache_key)
            if cached_json is not None:
                logger.debug(f"Redis cache hit for {key}")
                return json.loads(cached_json)
        except (RedisError, ValueError) as e:
            logger.error(f"Redis cache read error: {e}")

        value = compute()

        try:
            self.redis.setex(cache_key, ttl_seconds, json.dumps(value))
            logger.debug(f"Cached {key} in Redis (TTL: {ttl_seconds}s)")
        except (RedisError, TypeError) as e:
            logger.error(f"Redis cache write error: {e}")

        return value


class InMemoryCacheStore(CacheStore):
    """Thread-safe LRU cache with per-entry expiry."""

    def __init__(self, max_size: int = 1000, timer: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self.timer = timer
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._lock = Lock()

    def remember(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                value, expires_at = entry
                if self.timer() < expires_at:
                    self._entries.move_to_end(key)
                    return value
                del self._entries[key]

        # Computed outside the lock; concurrent misses may both compute
        value = compute()

        with self._lock:
            self._entries[key] = (value, self.timer() + ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
