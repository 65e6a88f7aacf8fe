"""Redis-based cache client.

Provides async Redis get/set/delete/pattern-delete with TTL support. The
cache is an optimization, never a dependency: every method logs and
returns a safe default (None / False) instead of raising, so callers fall
through to the database. Each command is bounded by the configured command
timeout; a timeout is treated exactly like a lost connection.

Construct one client at startup (see clinic_cache.core.lifespan), call
connect() and pass it to consumers; call close() at shutdown.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar
from urllib.parse import urlsplit, urlunsplit

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from clinic_cache.core.config import Settings, get_settings
from clinic_cache.domain.value_objects import CacheResult, ConnectionState
from clinic_cache.infrastructure.cache.policies import (
    PERFORMANCE_LIMITS,
    CachePerformanceLimits,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean "backend unreachable": switch to degraded mode.
_CONNECTION_ERRORS = (redis.ConnectionError, redis.TimeoutError, asyncio.TimeoutError, OSError)
_PROBE_ERRORS = (*_CONNECTION_ERRORS, redis.RedisError)


def _redact_url(url: str) -> str:
    """Return url with any password replaced by ***."""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.rsplit("@", 1)[-1]
    user = parts.username or ""
    return urlunsplit(parts._replace(netloc=f"{user}:***@{netloc}"))


class RedisCacheClient:
    """Async Redis cache client with TTL support and non-throwing degradation.

    Values are JSON-serialized. Connection state is observed, not managed:
    redis-py handles retries and reconnects; while the client is marked
    unavailable it short-circuits and re-probes with PING at most once per
    reconnect interval.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        redis_client: redis.Redis | None = None,
        limits: CachePerformanceLimits = PERFORMANCE_LIMITS,
    ) -> None:
        """Initialize cache client.

        Args:
            settings: Application settings; get_settings() when omitted.
            redis_client: Optional Redis client for testing or DI.
            limits: Batch size and retry limits.
        """
        self.settings = settings or get_settings()
        self.redis = redis_client
        self.limits = limits
        self.connect_timeout = self.settings.cache_connect_timeout_seconds
        self.command_timeout = self.settings.cache_command_timeout_seconds
        self.reconnect_interval = self.settings.cache_reconnect_interval_seconds
        self._connected = False
        self._connected_since: datetime | None = None
        self._last_error: str | None = None
        self._last_error_at: datetime | None = None
        self._last_probe: float | None = None

    def _build_client(self) -> redis.Redis:
        password = (
            self.settings.redis_password.get_secret_value()
            if self.settings.redis_password
            else None
        )
        kwargs: dict[str, Any] = {
            "decode_responses": True,
            "socket_connect_timeout": self.connect_timeout,
            "socket_timeout": self.command_timeout,
            "socket_keepalive": True,
            "health_check_interval": self.settings.cache_health_check_interval,
            "retry": Retry(ExponentialBackoff(cap=1.0, base=0.05), self.limits.max_retries),
            "retry_on_error": [redis.ConnectionError, redis.TimeoutError],
        }
        if password:
            kwargs["password"] = password
        if self.settings.redis_db is not None:
            kwargs["db"] = self.settings.redis_db
        return redis.Redis.from_url(self.settings.effective_redis_url, **kwargs)

    async def connect(self) -> bool:
        """Create the client (unless injected) and PING it. Call on app startup.

        Returns:
            True if Redis answered; False leaves the client in degraded mode.
        """
        if self.redis is None:
            try:
                self.redis = self._build_client()
            except (ValueError, redis.RedisError) as e:
                self._mark_unavailable(f"invalid Redis configuration: {e}")
                logger.warning("Redis client could not be created: %s. Cache disabled.", e)
                return False
        if await self._probe(self.connect_timeout):
            logger.info("Redis cache connected: %s", self.url)
            return True
        logger.warning(
            "Redis connection failed: %s. Cache disabled until it recovers.",
            self._last_error,
        )
        return False

    async def close(self) -> None:
        """Close Redis connection. Call on app shutdown."""
        if self.redis is not None:
            try:
                await self.redis.aclose()
            except redis.RedisError:
                logger.warning("Error while closing Redis connection", exc_info=True)
            self.redis = None
            self._connected = False
            self._connected_since = None
            logger.info("Redis cache disconnected")

    @property
    def url(self) -> str:
        return _redact_url(self.settings.effective_redis_url)

    def is_available(self) -> bool:
        """Return True if Redis is connected and usable."""
        return self._connected and self.redis is not None

    def get_status(self) -> ConnectionState:
        """Return a snapshot of the connection state for health checks."""
        return ConnectionState(
            available=self.is_available(),
            url=self.url,
            connected_since=self._connected_since,
            last_error=self._last_error,
            last_error_at=self._last_error_at,
        )

    def _mark_available(self) -> None:
        if not self._connected:
            self._connected_since = datetime.now(timezone.utc)
            if self._last_error is not None:
                logger.info("Redis cache available again")
        self._connected = True

    def _mark_unavailable(self, error: str) -> None:
        self._connected = False
        self._connected_since = None
        self._last_error = error
        self._last_error_at = datetime.now(timezone.utc)
        self._last_probe = time.monotonic()

    async def _probe(self, timeout: float) -> bool:
        """PING with a timeout and update connection state."""
        if self.redis is None:
            return False
        try:
            await asyncio.wait_for(self.redis.ping(), timeout=timeout)
        except _PROBE_ERRORS as e:
            self._mark_unavailable(f"{type(e).__name__}: {e}")
            return False
        self._mark_available()
        return True

    async def _ensure_available(self) -> bool:
        """Return True if commands may be sent; re-probe a lost connection at most once per interval."""
        if self.redis is None:
            return False
        if self._connected:
            return True
        now = time.monotonic()
        if self._last_probe is not None and now - self._last_probe < self.reconnect_interval:
            return False
        self._last_probe = now
        return await self._probe(self.command_timeout)

    async def _run(self, command: Awaitable[T]) -> T:
        """Await a Redis command bounded by the command timeout."""
        return await asyncio.wait_for(command, timeout=self.command_timeout)

    def _connection_failed(self, operation: str, target: str, error: BaseException) -> None:
        self._mark_unavailable(f"{type(error).__name__}: {error}")
        logger.warning(
            "Cache %s unavailable for %s (%s); falling back to source",
            operation,
            target,
            type(error).__name__,
        )

    async def lookup(self, key: str) -> CacheResult:
        """Return the tagged result of reading key (never raises).

        Args:
            key: Cache key (use clinic_cache.infrastructure.cache.keys builders).

        Returns:
            HIT with the decoded value, MISS, UNAVAILABLE, or ERROR.
        """
        if not await self._ensure_available():
            logger.debug("Cache UNAVAILABLE: %s", key)
            return CacheResult.unavailable()
        try:
            raw = await self._run(self.redis.get(key))
        except _CONNECTION_ERRORS as e:
            self._connection_failed("get", key, e)
            return CacheResult.unavailable()
        except redis.RedisError as e:
            logger.exception("Cache get error for key %s", key)
            return CacheResult.failed(f"{type(e).__name__}: {e}")
        if raw is None:
            logger.debug("Cache MISS: %s", key)
            return CacheResult.miss()
        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Cache entry for %s could not be decoded; treating as miss", key)
            return CacheResult.failed(f"decode error: {e}")
        logger.debug("Cache HIT: %s", key)
        return CacheResult.hit(value)

    async def get(self, key: str) -> Any | None:
        """Return cached value (JSON-deserialized) or None if missing/unavailable."""
        result = await self.lookup(key)
        return result.value if result.is_hit else None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store value with TTL. Returns True on success.

        Args:
            key: Cache key.
            value: Value to cache (JSON-serializable).
            ttl_seconds: Positive time-to-live in seconds.

        Returns:
            True if stored; False when unavailable, unserializable or on error.
        """
        if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0:
            logger.warning("Cache set skipped for key %s: invalid TTL %r", key, ttl_seconds)
            return False
        if not await self._ensure_available():
            return False
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError):
            logger.warning("Cache set skipped for key %s: value is not JSON-serializable", key)
            return False
        try:
            await self._run(self.redis.setex(key, ttl_seconds, serialized))
        except _CONNECTION_ERRORS as e:
            self._connection_failed("set", key, e)
            return False
        except redis.RedisError:
            logger.exception("Cache set error for key %s", key)
            return False
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl_seconds)
        return True

    async def set_many(self, items: Mapping[str, Any], ttl_seconds: int) -> int:
        """Store several values with one TTL in a single pipelined round trip.

        Values that are not JSON-serializable are skipped.

        Returns:
            Number of entries written; 0 when unavailable or on error.
        """
        if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0:
            logger.warning("Cache set_many skipped: invalid TTL %r", ttl_seconds)
            return 0
        if not items or not await self._ensure_available():
            return 0
        pipe = self.redis.pipeline(transaction=False)
        queued = 0
        for key, value in items.items():
            try:
                serialized = json.dumps(value)
            except (TypeError, ValueError):
                logger.warning("Cache set skipped for key %s: value is not JSON-serializable", key)
                continue
            pipe.setex(key, ttl_seconds, serialized)
            queued += 1
        if not queued:
            return 0
        target = f"{queued} keys"
        try:
            await self._run(pipe.execute())
        except _CONNECTION_ERRORS as e:
            self._connection_failed("set_many", target, e)
            return 0
        except redis.RedisError:
            logger.exception("Cache set_many error for %s", target)
            return 0
        logger.debug("Cache SET: %s (TTL: %ss)", target, ttl_seconds)
        return queued

    async def delete(self, keys: str | Sequence[str]) -> bool:
        """Remove one key or a list of keys. Returns True on success.

        An empty list is a successful no-op.
        """
        key_list = [keys] if isinstance(keys, str) else list(keys)
        if not key_list:
            return True
        if not await self._ensure_available():
            return False
        target = key_list[0] if len(key_list) == 1 else f"{len(key_list)} keys"
        try:
            await self._run(self.redis.delete(*key_list))
        except _CONNECTION_ERRORS as e:
            self._connection_failed("delete", target, e)
            return False
        except redis.RedisError:
            logger.exception("Cache delete error for %s", target)
            return False
        logger.debug("Cache DELETE: %s", target)
        return True

    async def delete_pattern_count(self, pattern: str) -> int | None:
        """Delete all keys matching pattern using SCAN + batched UNLINK (non-blocking).

        Args:
            pattern: Redis SCAN match pattern (e.g. clinic_42:contacts:*).

        Returns:
            Number of keys deleted, or None when unavailable or on error.
        """
        if not await self._ensure_available():
            return None
        deleted = 0
        cursor = 0
        try:
            while True:
                cursor, batch = await self._run(
                    self.redis.scan(cursor=cursor, match=pattern, count=self.limits.batch_size)
                )
                if batch:
                    deleted += int(await self._run(self.redis.unlink(*batch)) or 0)
                if int(cursor) == 0:
                    break
        except _CONNECTION_ERRORS as e:
            self._connection_failed("delete_pattern", pattern, e)
            return None
        except redis.RedisError:
            logger.exception("Cache delete_pattern error for %s", pattern)
            return None
        if deleted > 0:
            logger.info("Cache INVALIDATE: %s (%s keys)", pattern, deleted)
        return deleted

    async def delete_pattern(self, pattern: str) -> bool:
        """Delete all keys matching pattern. Zero matches is a successful no-op."""
        return await self.delete_pattern_count(pattern) is not None

    async def ping(self) -> bool:
        """Return True if Redis answered a PING within the command timeout."""
        self._last_probe = time.monotonic()
        return await self._probe(self.command_timeout)

