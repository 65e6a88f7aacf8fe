"""Policy-driven cache invalidation.

A mutating operation on a domain evicts as narrowly as the policy allows:
the domain pattern of one clinic for ordinary operations, every key of the
clinic for tenant-level operations (clinic deletion, settings reset).
Deleting an absent key is a no-op, so invalidation is idempotent.
"""

import logging
from collections.abc import Iterable

from clinic_cache.domain.enums import CacheDomain
from clinic_cache.domain.value_objects import InvalidationResult
from clinic_cache.infrastructure.cache.cache_protocol import CacheProtocol
from clinic_cache.infrastructure.cache.keys import (
    belongs_to_tenant,
    build_domain_pattern,
    build_tenant_pattern,
    is_session_key,
    is_single_user_session_pattern,
)
from clinic_cache.infrastructure.cache.policies import PolicyTable, resolve_domain
from clinic_cache.shared.telemetry.tracing import add_span_attributes, traced

logger = logging.getLogger(__name__)

# Operations that invalidate every key of the clinic regardless of domain policy.
TENANT_LEVEL_OPERATIONS = frozenset({"clinic_delete", "settings_reset", "bulk_settings_change"})

_ALL_DOMAINS = "all"


class InvalidationDriver:
    """Decides, via the policy table, which patterns a mutation evicts."""

    def __init__(self, cache: CacheProtocol, policies: PolicyTable) -> None:
        self.cache = cache
        self.policies = policies

    def _patterns_for(
        self,
        domain: CacheDomain,
        operation: str,
        clinic_id: int,
        extra_patterns: Iterable[str] | None,
    ) -> tuple[list[str], list[str]]:
        """Return (patterns to delete, extra patterns refused as out of scope)."""
        patterns: list[str] = []
        if operation in TENANT_LEVEL_OPERATIONS:
            patterns.append(build_tenant_pattern(clinic_id))
        elif domain.is_clinic_scoped:
            patterns.append(build_domain_pattern(clinic_id, domain))
        refused: list[str] = []
        for pattern in extra_patterns or ():
            if pattern in patterns or pattern in refused:
                continue
            if not belongs_to_tenant(pattern, clinic_id):
                logger.warning(
                    "Invalidation pattern %s is outside clinic %s; skipped",
                    pattern,
                    clinic_id,
                )
                refused.append(pattern)
                continue
            if is_session_key(pattern) and not is_single_user_session_pattern(pattern):
                logger.warning(
                    "Session pattern %s may match other users' sessions; skipped", pattern
                )
                refused.append(pattern)
                continue
            patterns.append(pattern)
        return patterns, refused

    async def _delete_all(self, patterns: Iterable[str]) -> list[str]:
        failed = []
        for pattern in patterns:
            if not await self.cache.delete_pattern(pattern):
                failed.append(pattern)
        return failed

    @traced("cache.invalidate")
    async def invalidate(
        self,
        domain: CacheDomain | str,
        operation: str,
        clinic_id: int,
        extra_patterns: Iterable[str] | None = None,
    ) -> InvalidationResult:
        """Evict cached entries affected by operation on domain within one clinic.

        Args:
            domain: Domain the operation mutated (enum, value or alias).
            operation: Operation name, e.g. "update" or "reschedule".
            clinic_id: Clinic whose entries are evicted.
            extra_patterns: Additional keys or patterns to delete when
                invalidation fires (e.g. session keys). Patterns that do not
                belong to clinic_id, and session wildcards spanning more
                than one user, are refused and reported as failed.

        Returns:
            InvalidationResult; invalidated is False when the policy does
            not react to operation (nothing is deleted then).

        Raises:
            UnknownCacheDomainError: domain is not known.
            InvalidTenantIdError: clinic_id is not a positive int.
        """
        resolved = resolve_domain(domain)
        build_tenant_pattern(clinic_id)  # validates clinic_id
        add_span_attributes(domain=resolved.value, operation=str(operation), clinic_id=clinic_id)
        fires = operation in TENANT_LEVEL_OPERATIONS or self.policies.should_invalidate(
            resolved, operation
        )
        if not fires:
            logger.debug(
                "No invalidation for %s.%s (clinic %s)", resolved.value, operation, clinic_id
            )
            return InvalidationResult(
                domain=resolved.value,
                operation=operation,
                clinic_id=clinic_id,
                invalidated=False,
            )

        patterns, refused = self._patterns_for(resolved, operation, clinic_id, extra_patterns)
        failed = await self._delete_all(patterns)
        result = InvalidationResult(
            domain=resolved.value,
            operation=operation,
            clinic_id=clinic_id,
            invalidated=True,
            patterns=tuple(patterns),
            failed_patterns=tuple(refused + failed),
        )
        if result.success:
            logger.info(
                "Invalidated %s.%s for clinic %s: %s",
                resolved.value,
                operation,
                clinic_id,
                ", ".join(patterns) or "(no patterns)",
            )
        else:
            logger.warning(
                "Partial invalidation of %s.%s for clinic %s; failed: %s",
                resolved.value,
                operation,
                clinic_id,
                ", ".join(result.failed_patterns),
            )
        return result

    @traced("cache.invalidate_tenant")
    async def invalidate_tenant(self, clinic_id: int) -> InvalidationResult:
        """Evict every clinic-scoped key of clinic_id."""
        pattern = build_tenant_pattern(clinic_id)
        failed = await self._delete_all([pattern])
        logger.info("Invalidated all cache entries for clinic %s", clinic_id)
        return InvalidationResult(
            domain=_ALL_DOMAINS,
            operation="clinic_invalidate",
            clinic_id=clinic_id,
            invalidated=True,
            patterns=(pattern,),
            failed_patterns=tuple(failed),
        )
