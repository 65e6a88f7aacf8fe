"""Cache protocol consumed by the tenant-aware service and the invalidation driver.

RedisCacheClient is the production implementation; tests may pass any
object with the same shape.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from clinic_cache.domain.value_objects import CacheResult, ConnectionState


class CacheProtocol(Protocol):
    """Protocol for cache backends. No method raises on backend failure."""

    def is_available(self) -> bool:
        """Return True if cache is connected and usable."""
        ...

    def get_status(self) -> ConnectionState:
        """Return a snapshot of the connection state."""
        ...

    async def lookup(self, key: str) -> CacheResult:
        """Return the tagged result of reading key."""
        ...

    async def get(self, key: str) -> Any:
        """Return cached value or None (miss, unavailable, or error)."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store value with TTL in seconds. Returns True on success."""
        ...

    async def set_many(self, items: Mapping[str, Any], ttl_seconds: int) -> int:
        """Store several values with one TTL. Returns the number written."""
        ...

    async def delete(self, keys: str | Sequence[str]) -> bool:
        """Remove one or more keys. Returns True on success."""
        ...

    async def delete_pattern(self, pattern: str) -> bool:
        """Remove every key matching a glob pattern. Returns True on success."""
        ...

    async def ping(self) -> bool:
        """Return True if the backend answered a PING."""
        ...
