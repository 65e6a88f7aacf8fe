"""Domain value objects for the clinic cache.

Value objects are immutable types with self-validation: the per-domain
cache policy, the connection state snapshot, and the tagged result of a
cache lookup.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from clinic_cache.domain.enums import CachePriority, CacheStatus, RefreshStrategy


@dataclass(frozen=True)
class CachePolicy:
    """Caching behavior for one domain.

    ttl_seconds must be positive; invalidate_on is normalized to a
    frozenset so policies are hashable and cannot be mutated at runtime.
    """

    ttl_seconds: int
    invalidate_on: frozenset[str]
    strategy: RefreshStrategy = RefreshStrategy.CACHE_ASIDE
    priority: CachePriority = CachePriority.MEDIUM
    enabled: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.ttl_seconds, bool) or not isinstance(self.ttl_seconds, int):
            raise ValueError("ttl_seconds must be an integer")
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if not isinstance(self.invalidate_on, frozenset):
            object.__setattr__(self, "invalidate_on", frozenset(self.invalidate_on))
        object.__setattr__(self, "strategy", RefreshStrategy(self.strategy))
        object.__setattr__(self, "priority", CachePriority(self.priority))

    def with_ttl(self, ttl_seconds: int) -> "CachePolicy":
        """Return a copy of this policy with a different TTL."""
        return CachePolicy(
            ttl_seconds=ttl_seconds,
            invalidate_on=self.invalidate_on,
            strategy=self.strategy,
            priority=self.priority,
            enabled=self.enabled,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ttl_seconds": self.ttl_seconds,
            "invalidate_on": sorted(self.invalidate_on),
            "strategy": self.strategy.value,
            "priority": self.priority.value,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class ConnectionState:
    """Snapshot of the cache client's connection to Redis."""

    available: bool
    url: str
    connected_since: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None


@dataclass(frozen=True)
class CacheResult:
    """Tagged outcome of a cache lookup.

    Callers that only need the value use CacheClient.get(); tests and
    observability code branch on status without parsing logs.
    """

    status: CacheStatus
    value: Any = None
    error: str | None = None

    @classmethod
    def hit(cls, value: Any) -> "CacheResult":
        return cls(CacheStatus.HIT, value=value)

    @classmethod
    def miss(cls) -> "CacheResult":
        return cls(CacheStatus.MISS)

    @classmethod
    def unavailable(cls) -> "CacheResult":
        return cls(CacheStatus.UNAVAILABLE)

    @classmethod
    def failed(cls, error: str) -> "CacheResult":
        return cls(CacheStatus.ERROR, error=error)

    @property
    def is_hit(self) -> bool:
        return self.status is CacheStatus.HIT


@dataclass(frozen=True)
class InvalidationResult:
    """Outcome of one InvalidationDriver.invalidate() call."""

    domain: str
    operation: str
    clinic_id: int
    invalidated: bool
    patterns: tuple[str, ...] = ()
    failed_patterns: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        """True when nothing was attempted or every pattern delete succeeded."""
        return not self.failed_patterns


@dataclass
class TenantStats:
    """Hit/miss counters of one clinic."""

    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate_percent": round(self.hit_rate * 100, 2),
        }


@dataclass
class CacheStats:
    """Counters kept by the tenant-aware cache service.

    Lookups made with a clinic id are also counted per clinic.
    """

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0
    clinics: dict[int, TenantStats] = field(default_factory=dict)

    def record_hit(self, clinic_id: int | None = None) -> None:
        self.hits += 1
        if clinic_id is not None:
            self.clinics.setdefault(clinic_id, TenantStats()).hits += 1

    def record_miss(self, clinic_id: int | None = None) -> None:
        self.misses += 1
        if clinic_id is not None:
            self.clinics.setdefault(clinic_id, TenantStats()).misses += 1

    def for_clinic(self, clinic_id: int) -> TenantStats:
        """Counters of clinic_id (zeros if it has not been seen)."""
        return self.clinics.get(clinic_id, TenantStats())

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        return self.hits / self.total if self.total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "errors": self.errors,
            "total": self.total,
            "hit_rate_percent": round(self.hit_rate * 100, 2),
        }


@dataclass(frozen=True)
class CacheHealth:
    """Result of a write/read/delete probe against the cache."""

    healthy: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)
