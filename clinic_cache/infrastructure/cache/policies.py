"""Cache policy table: per-domain TTL, invalidation and enable rules.

The defaults are compiled-in data (DEFAULT_POLICIES). A PolicyTable is an
immutable view over them plus the process-wide kill switch; per-environment
TTL overrides come from Settings.cache_ttl_overrides.

TTL tracks write frequency and the cost of staleness: appointments change
constantly (2 min), analytics are expensive and tolerate staleness (1 h),
sessions stay short for security (15 min).
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from clinic_cache.domain.enums import CacheDomain, CachePriority, RefreshStrategy
from clinic_cache.domain.exceptions import UnknownCacheDomainError
from clinic_cache.domain.value_objects import CachePolicy

if TYPE_CHECKING:
    from clinic_cache.core.config import Settings

# Spellings accepted besides the enum values (case-insensitive).
_DOMAIN_ALIASES: dict[str, CacheDomain] = {
    "records": CacheDomain.MEDICAL_RECORDS,
    "medicalrecords": CacheDomain.MEDICAL_RECORDS,
    "aitemplates": CacheDomain.AI_TEMPLATES,
    "templates": CacheDomain.AI_TEMPLATES,
    "usersession": CacheDomain.USER_SESSION,
}

DEFAULT_POLICY = CachePolicy(
    ttl_seconds=300,
    invalidate_on=frozenset({"create", "update", "delete"}),
    strategy=RefreshStrategy.CACHE_ASIDE,
    priority=CachePriority.MEDIUM,
    enabled=True,
)

DEFAULT_POLICIES: Mapping[CacheDomain, CachePolicy] = MappingProxyType({
    CacheDomain.CONTACTS: CachePolicy(
        ttl_seconds=300,
        invalidate_on=frozenset({"create", "update", "delete", "status_change"}),
        strategy=RefreshStrategy.CACHE_ASIDE,
        priority=CachePriority.HIGH,
    ),
    CacheDomain.APPOINTMENTS: CachePolicy(
        ttl_seconds=120,
        invalidate_on=frozenset({"create", "update", "delete", "reschedule"}),
        strategy=RefreshStrategy.WRITE_THROUGH,
        priority=CachePriority.HIGH,
    ),
    CacheDomain.MEDICAL_RECORDS: CachePolicy(
        ttl_seconds=1800,
        invalidate_on=frozenset({"create", "update"}),
        strategy=RefreshStrategy.READ_THROUGH,
        priority=CachePriority.MEDIUM,
    ),
    CacheDomain.PIPELINE: CachePolicy(
        ttl_seconds=600,
        invalidate_on=frozenset({"create", "update", "stage_move", "delete"}),
        strategy=RefreshStrategy.CACHE_ASIDE,
        priority=CachePriority.MEDIUM,
    ),
    CacheDomain.ANALYTICS: CachePolicy(
        ttl_seconds=3600,
        invalidate_on=frozenset({"data_change", "period_end"}),
        strategy=RefreshStrategy.WRITE_BEHIND,
        priority=CachePriority.LOW,
    ),
    CacheDomain.SETTINGS: CachePolicy(
        ttl_seconds=7200,
        invalidate_on=frozenset({"update", "create", "delete"}),
        strategy=RefreshStrategy.READ_THROUGH,
        priority=CachePriority.LOW,
    ),
    CacheDomain.AI_TEMPLATES: CachePolicy(
        ttl_seconds=3600,
        invalidate_on=frozenset({"create", "update", "delete"}),
        strategy=RefreshStrategy.READ_THROUGH,
        priority=CachePriority.MEDIUM,
    ),
    CacheDomain.USER_SESSION: CachePolicy(
        ttl_seconds=900,
        invalidate_on=frozenset({"logout", "permission_change"}),
        strategy=RefreshStrategy.WRITE_THROUGH,
        priority=CachePriority.HIGH,
    ),
})


@dataclass(frozen=True)
class CachePerformanceLimits:
    """Operational limits shared by the cache client."""

    max_cache_size_mb_per_clinic: int = 50
    max_keys_per_clinic: int = 10_000
    batch_size: int = 100
    connection_timeout_seconds: float = 5.0
    command_timeout_seconds: float = 3.0
    max_retries: int = 3


PERFORMANCE_LIMITS = CachePerformanceLimits()


def resolve_domain(domain: CacheDomain | str) -> CacheDomain:
    """Return the CacheDomain for an enum member, value or known alias.

    Raises:
        UnknownCacheDomainError: If domain is not a string or is not known.
    """
    if isinstance(domain, CacheDomain):
        return domain
    if not isinstance(domain, str):
        raise UnknownCacheDomainError(domain)
    normalized = domain.strip().lower().replace("-", "_")
    try:
        return CacheDomain(normalized)
    except ValueError:
        pass
    alias = _DOMAIN_ALIASES.get(normalized.replace("_", ""))
    if alias is None:
        raise UnknownCacheDomainError(domain)
    return alias


class PolicyTable:
    """Immutable per-domain policy lookup with a global kill switch.

    get_policy() never raises: anything that is not a known domain gets
    the default policy, so every caller has a usable policy.
    """

    def __init__(
        self,
        policies: Mapping[CacheDomain, CachePolicy] | None = None,
        cache_enabled: bool = True,
        default_policy: CachePolicy = DEFAULT_POLICY,
    ) -> None:
        """Initialize the table.

        Args:
            policies: Domain → policy map; DEFAULT_POLICIES when omitted.
                Domains missing from the map fall back to default_policy.
            cache_enabled: Global kill switch (False disables every domain).
            default_policy: Policy for domains without an explicit entry.
        """
        source = DEFAULT_POLICIES if policies is None else policies
        self._policies: Mapping[CacheDomain, CachePolicy] = MappingProxyType(
            {resolve_domain(domain): policy for domain, policy in source.items()}
        )
        self._cache_enabled = cache_enabled
        self._default_policy = default_policy

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PolicyTable":
        """Build the table from the defaults, the kill switch and TTL overrides.

        Raises:
            UnknownCacheDomainError: If an override names an unknown domain.
        """
        policies = dict(DEFAULT_POLICIES)
        for name, ttl in settings.cache_ttl_overrides.items():
            domain = resolve_domain(name)
            policies[domain] = policies[domain].with_ttl(ttl)
        return cls(policies=policies, cache_enabled=settings.cache_enabled)

    @property
    def cache_enabled(self) -> bool:
        return self._cache_enabled

    @property
    def policies(self) -> Mapping[CacheDomain, CachePolicy]:
        return self._policies

    def get_policy(self, domain: Any) -> CachePolicy:
        """Return the policy for domain, or the default policy if unknown."""
        try:
            resolved = resolve_domain(domain)
        except UnknownCacheDomainError:
            return self._default_policy
        return self._policies.get(resolved, self._default_policy)

    def should_invalidate(self, domain: Any, operation: Any) -> bool:
        """True iff operation is one of the domain's invalidating operations."""
        if not isinstance(operation, str):
            return False
        return operation in self.get_policy(domain).invalidate_on

    def get_ttl(self, domain: Any) -> int:
        return self.get_policy(domain).ttl_seconds

    def get_strategy(self, domain: Any) -> RefreshStrategy:
        return self.get_policy(domain).strategy

    def get_priority(self, domain: Any) -> CachePriority:
        return self.get_policy(domain).priority

    def is_enabled(self, domain: Any) -> bool:
        """True only when both the global switch and the domain policy allow caching."""
        return self._cache_enabled and self.get_policy(domain).enabled

    def get_enabled_domains(self, domains: Iterable[CacheDomain] | None = None) -> list[CacheDomain]:
        return [d for d in (domains or CacheDomain) if self.is_enabled(d)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "cache_enabled": self._cache_enabled,
            "default": self._default_policy.to_dict(),
            "domains": {
                domain.value: self.get_policy(domain).to_dict() for domain in CacheDomain
            },
        }
