"""
TaskOps Redis Cache — snapshot cache for analytics and other derived reads.

Redis DB allocation:
  DB 0: Celery broker
  DB 1: Celery results
  DB 2: Function result cache (analytics snapshots)

All cached data is derived from the relational store and can be dropped at
any time. When Redis is unreachable every read is a miss and every write is
a no-op (circuit breaker), so callers never fail because of the cache.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

import redis

logger = logging.getLogger("taskops.engine.cache")

ANALYTICS_SNAPSHOT_KEY = "analytics:snapshot"


class RedisCache:
    """Redis wrapper with JSON helpers and a circuit breaker."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "taskops:",
        default_ttl: int = 300,
        db: int = 2,
    ):
        self._redis_url = redis_url
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._db = db
        self._client: Optional[redis.Redis] = None
        self._available = False

        # Circuit breaker state
        self._failure_count = 0
        self._failure_threshold = 5
        self._failure_window = 30  # seconds
        self._first_failure_time = 0.0
        self._circuit_open = False

    def connect(self) -> bool:
        """Initialize the Redis connection."""
        try:
            self._client = redis.Redis.from_url(
                self._redis_url,
                db=self._db,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            self._client.ping()
            self._available = True
            self._circuit_open = False
            self._failure_count = 0
            logger.info(f"Redis connected: DB {self._db} ({self._prefix})")
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed (DB {self._db}): {e}")
            self._available = False
            return False

    @property
    def is_available(self) -> bool:
        return self._available and not self._circuit_open

    @property
    def is_circuit_open(self) -> bool:
        return self._circuit_open

    def _check_circuit(self) -> bool:
        if self._circuit_open:
            if time.time() - self._first_failure_time > self._failure_window:
                self._circuit_open = False
                self._failure_count = 0
                return self.connect()
            return False
        return self._available and self._client is not None

    def _record_failure(self) -> None:
        now = time.time()
        if self._failure_count == 0:
            self._first_failure_time = now

        self._failure_count += 1

        if self._failure_count >= self._failure_threshold:
            elapsed = now - self._first_failure_time
            if elapsed <= self._failure_window:
                self._circuit_open = True
                logger.error(
                    f"Redis circuit breaker OPEN: {self._failure_count} failures in {elapsed:.1f}s"
                )

    def _make_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    # ── Core Operations ──

    def get(self, key: str) -> Optional[str]:
        """Returns None on miss or failure."""
        if not self._check_circuit():
            return None
        try:
            return self._client.get(self._make_key(key))
        except redis.RedisError as e:
            self._record_failure()
            logger.debug(f"Redis GET failed: {e}")
            return None

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if not self._check_circuit():
            return False
        try:
            self._client.set(self._make_key(key), value, ex=ttl or self._default_ttl)
            return True
        except redis.RedisError as e:
            self._record_failure()
            logger.debug(f"Redis SET failed: {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self._check_circuit():
            return False
        try:
            self._client.delete(self._make_key(key))
            return True
        except redis.RedisError:
            self._record_failure()
            return False

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            return self.set(key, json.dumps(value, default=str), ttl=ttl)
        except (TypeError, ValueError):
            return False

    def ping(self) -> bool:
        """Health probe used by the /health endpoint."""
        if self._client is None:
            return False
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_cache: Optional[RedisCache] = None


def init_cache(redis_url: str, default_ttl: int = 300, connect: bool = True) -> RedisCache:
    """Create the global cache and optionally connect it."""
    global _cache
    _cache = RedisCache(redis_url=redis_url, default_ttl=default_ttl)
    if connect:
        _cache.connect()
    return _cache


def get_cache() -> Optional[RedisCache]:
    return _cache


def reset_cache() -> None:
    global _cache
    _cache = None


def invalidate_analytics(cache: Optional[RedisCache]) -> None:
    """Drop the cached analytics snapshot after task mutations."""
    if cache is not None:
        cache.delete(ANALYTICS_SNAPSHOT_KEY)
