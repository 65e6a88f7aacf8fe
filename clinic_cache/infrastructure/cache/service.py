"""Tenant-aware cache service used by request handlers.

Wraps the cache client with the policy table (per-domain TTL and enable
flags), a tenant-ownership guard on every key, global and per-clinic
hit/miss counters, the cache-aside helper get_or_set(), write_through() and
pipelined warm(). The clinic id is always passed explicitly.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from clinic_cache.core.constants import CACHE_HEALTH_CHECK_KEY, CACHE_HEALTH_CHECK_TTL
from clinic_cache.domain.enums import CacheDomain, CacheStatus
from clinic_cache.domain.value_objects import CacheHealth, CacheStats, TenantStats
from clinic_cache.infrastructure.cache.cache_protocol import CacheProtocol
from clinic_cache.infrastructure.cache.keys import (
    belongs_to_tenant,
    build_domain_pattern,
    build_tenant_pattern,
    extract_tenant_id,
)
from clinic_cache.infrastructure.cache.policies import PolicyTable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TenantCache:
    """Policy-aware, tenant-guarded facade over a CacheProtocol client."""

    def __init__(self, client: CacheProtocol, policies: PolicyTable) -> None:
        self.client = client
        self.policies = policies
        self._stats = CacheStats()

    def _owned(self, key: str, clinic_id: int | None, action: str) -> bool:
        if clinic_id is None or belongs_to_tenant(key, clinic_id):
            return True
        logger.warning("Cache %s refused: key %s does not belong to clinic %s", action, key, clinic_id)
        return False

    async def get(
        self, key: str, domain: CacheDomain | str, clinic_id: int | None = None
    ) -> Any | None:
        """Return the cached value for key, or None.

        None is returned (and counted as a miss) when the domain is
        disabled, the key belongs to another clinic, or the cache is
        unavailable.
        """
        if not self.policies.is_enabled(domain) or not self._owned(key, clinic_id, "get"):
            self._stats.record_miss(clinic_id)
            return None
        result = await self.client.lookup(key)
        if result.is_hit:
            self._stats.record_hit(clinic_id)
            return result.value
        self._stats.record_miss(clinic_id)
        if result.status is CacheStatus.ERROR:
            self._stats.errors += 1
        return None

    async def set(
        self,
        key: str,
        value: Any,
        domain: CacheDomain | str,
        clinic_id: int | None = None,
    ) -> bool:
        """Store value under key with the domain's TTL. Returns True if stored."""
        if not self.policies.is_enabled(domain) or not self._owned(key, clinic_id, "set"):
            return False
        stored = await self.client.set(key, value, self.policies.get_ttl(domain))
        if stored:
            self._stats.sets += 1
        elif self.client.is_available():
            self._stats.errors += 1
        return stored

    async def delete(self, keys: str | Sequence[str]) -> bool:
        deleted = await self.client.delete(keys)
        if deleted:
            self._stats.deletes += 1
        return deleted

    async def invalidate_pattern(self, pattern: str, clinic_id: int | None = None) -> bool:
        """Delete keys matching pattern; with clinic_id, only that clinic's patterns are allowed."""
        if clinic_id is not None and extract_tenant_id(pattern) != clinic_id:
            logger.warning(
                "Cannot invalidate pattern %s: not specific to clinic %s", pattern, clinic_id
            )
            return False
        deleted = await self.client.delete_pattern(pattern)
        if deleted:
            self._stats.deletes += 1
        return deleted

    async def invalidate_clinic(self, clinic_id: int) -> bool:
        """Delete every clinic-scoped key of clinic_id."""
        return await self.invalidate_pattern(build_tenant_pattern(clinic_id), clinic_id)

    async def invalidate_domain(self, domain: CacheDomain | str, clinic_id: int) -> bool:
        """Delete every key of one domain within one clinic.

        Raises:
            UnknownCacheDomainError: domain is not known.
            ConfigurationError: domain is not clinic-scoped.
        """
        return await self.invalidate_pattern(build_domain_pattern(clinic_id, domain), clinic_id)

    async def get_or_set(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        domain: CacheDomain | str,
        clinic_id: int | None = None,
    ) -> T:
        """Cache-aside: return the cached value or load, cache and return it.

        Loader errors propagate unchanged; a None result is returned but
        not cached.
        """
        cached = await self.get(key, domain, clinic_id)
        if cached is not None:
            return cached
        value = await loader()
        if value is not None:
            await self.set(key, value, domain, clinic_id)
        return value

    async def write_through(
        self,
        key: str,
        value: T,
        writer: Callable[[T], Awaitable[T]],
        domain: CacheDomain | str,
        clinic_id: int | None = None,
        invalidate: Iterable[str] = (),
    ) -> T:
        """Persist value with writer, then refresh the cached copy.

        The writer is the authoritative store: its errors propagate and
        nothing is cached. After a successful write the related patterns
        (e.g. list pages of the same clinic) are evicted before the saved
        value is cached under key. Cache failures are logged and never
        fail the write.
        """
        saved = await writer(value)
        for pattern in invalidate:
            await self.invalidate_pattern(pattern, clinic_id)
        if saved is not None:
            await self.set(key, saved, domain, clinic_id)
        return saved

    async def warm(
        self, domain: CacheDomain | str, clinic_id: int, items: Mapping[str, Any]
    ) -> int:
        """Preload entries of one clinic in a single pipelined round trip.

        Keys that do not belong to clinic_id and None values are skipped.
        Returns the number of entries written (0 when the domain is
        disabled or the cache is unavailable).
        """
        build_tenant_pattern(clinic_id)  # validates clinic_id
        if not self.policies.is_enabled(domain):
            return 0
        owned = {
            key: value
            for key, value in items.items()
            if value is not None and self._owned(key, clinic_id, "warm")
        }
        written = await self.client.set_many(owned, self.policies.get_ttl(domain))
        self._stats.sets += written
        if written < len(owned) and self.client.is_available():
            self._stats.errors += 1
        logger.info(
            "Cache warmed for clinic %s: %s/%s entries", clinic_id, written, len(items)
        )
        return written

    def get_stats(self) -> CacheStats:
        return self._stats

    def get_tenant_stats(self, clinic_id: int) -> TenantStats:
        return self._stats.for_clinic(clinic_id)

    def reset_stats(self) -> None:
        self._stats = CacheStats()

    async def health_check(self) -> CacheHealth:
        """Write, read back and delete a probe key (not clinic-scoped)."""
        if not await self.client.ping():
            return CacheHealth(False, "Redis not available - operating in fallback mode")
        probe = time.time_ns()
        written = await self.client.set(CACHE_HEALTH_CHECK_KEY, probe, CACHE_HEALTH_CHECK_TTL)
        result = await self.client.lookup(CACHE_HEALTH_CHECK_KEY)
        await self.client.delete(CACHE_HEALTH_CHECK_KEY)
        if written and result.is_hit and result.value == probe:
            return CacheHealth(True, "Cache system operational")
        details: dict[str, Any] = {"written": written, "read_status": result.status.value}
        if result.error:
            details["error"] = result.error
        return CacheHealth(False, "Cache read/write verification failed", details)
