"""Cache API: status, policy table and manual invalidation.

Thin routes delegating to TenantCache and InvalidationDriver. Unknown
domains and invalid clinic ids surface as 400 via the exception handlers.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Path

from clinic_cache.api.v1.dependencies import (
    get_cache_client,
    get_invalidation_driver,
    get_policies,
    get_tenant_cache,
)
from clinic_cache.infrastructure.cache.invalidation import InvalidationDriver
from clinic_cache.infrastructure.cache.policies import PolicyTable
from clinic_cache.infrastructure.cache.redis_cache import RedisCacheClient
from clinic_cache.infrastructure.cache.service import TenantCache
from clinic_cache.schemas.cache import (
    CacheStatusResponse,
    InvalidationRequest,
    InvalidationResponse,
    PolicyTableResponse,
    TenantStatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=CacheStatusResponse)
async def cache_status(
    client: RedisCacheClient = Depends(get_cache_client),
    policies: PolicyTable = Depends(get_policies),
    cache: TenantCache = Depends(get_tenant_cache),
) -> CacheStatusResponse:
    """Connection state, hit/miss counters, enabled domains and a probe result."""
    health = await cache.health_check()
    return CacheStatusResponse(
        cache_enabled=policies.cache_enabled,
        connection=asdict(client.get_status()),
        stats=cache.get_stats().to_dict(),
        enabled_domains=[d.value for d in policies.get_enabled_domains()],
        healthy=health.healthy,
        message=health.message,
    )


@router.get("/policies", response_model=PolicyTableResponse)
def cache_policies(policies: PolicyTable = Depends(get_policies)) -> PolicyTableResponse:
    """Effective per-domain policies (defaults plus environment overrides)."""
    return PolicyTableResponse(**policies.to_dict())


@router.post("/invalidate", response_model=InvalidationResponse)
async def invalidate(
    body: InvalidationRequest,
    driver: InvalidationDriver = Depends(get_invalidation_driver),
) -> InvalidationResponse:
    """Run policy-driven invalidation for a mutation that happened elsewhere."""
    result = await driver.invalidate(
        body.domain, body.operation, body.clinic_id, extra_patterns=body.extra_patterns
    )
    return InvalidationResponse.from_result(result)


@router.delete("/clinics/{clinic_id}", response_model=InvalidationResponse)
async def invalidate_clinic(
    clinic_id: int = Path(..., gt=0),
    driver: InvalidationDriver = Depends(get_invalidation_driver),
) -> InvalidationResponse:
    """Evict every cached entry of one clinic."""
    logger.info("Manual cache eviction requested for clinic %s", clinic_id)
    result = await driver.invalidate_tenant(clinic_id)
    return InvalidationResponse.from_result(result)


@router.get("/clinics/{clinic_id}/stats", response_model=TenantStatsResponse)
def clinic_stats(
    clinic_id: int = Path(..., gt=0),
    cache: TenantCache = Depends(get_tenant_cache),
) -> TenantStatsResponse:
    """Hit/miss counters of one clinic since startup or the last reset."""
    stats = cache.get_tenant_stats(clinic_id)
    return TenantStatsResponse(clinic_id=clinic_id, **stats.to_dict())
