"""Health check endpoints for liveness and readiness probes."""

from fastapi import APIRouter, Depends

from clinic_cache.api.v1.dependencies import get_cache_client, get_policies
from clinic_cache.infrastructure.cache.policies import PolicyTable
from clinic_cache.infrastructure.cache.redis_cache import RedisCacheClient
from clinic_cache.schemas.health import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get("/ready", response_model=ReadinessResponse)
def readiness_check(
    client: RedisCacheClient = Depends(get_cache_client),
    policies: PolicyTable = Depends(get_policies),
) -> ReadinessResponse:
    """Return 200 with the cache state; a degraded cache does not fail readiness."""
    if not policies.cache_enabled:
        state = "disabled"
    elif client.is_available():
        state = "available"
    else:
        state = "degraded"
    return ReadinessResponse(cache=state)
