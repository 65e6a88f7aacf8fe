"""Cache observability and invalidation API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ConnectionStateResponse(BaseModel):
    available: bool
    url: str = Field(..., description="Redis URL with the password redacted")
    connected_since: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None


class CacheStatsResponse(BaseModel):
    hits: int
    misses: int
    sets: int
    deletes: int
    errors: int
    total: int
    hit_rate_percent: float


class CacheStatusResponse(BaseModel):
    """Response for GET /cache/status."""

    cache_enabled: bool
    connection: ConnectionStateResponse
    stats: CacheStatsResponse
    enabled_domains: list[str]
    healthy: bool
    message: str


class PolicyResponse(BaseModel):
    ttl_seconds: int
    invalidate_on: list[str]
    strategy: str
    priority: str
    enabled: bool


class PolicyTableResponse(BaseModel):
    """Response for GET /cache/policies."""

    cache_enabled: bool
    default: PolicyResponse
    domains: dict[str, PolicyResponse]


class InvalidationRequest(BaseModel):
    """Request body for POST /cache/invalidate."""

    clinic_id: int = Field(..., gt=0, description="Clinic whose entries are evicted")
    domain: str = Field(..., min_length=1, description="Cache domain, e.g. contacts")
    operation: str = Field(..., min_length=1, description="Mutating operation, e.g. update")
    extra_patterns: list[str] = Field(
        default_factory=list, description="Additional keys or patterns of the same clinic"
    )


class InvalidationResponse(BaseModel):
    domain: str
    operation: str
    clinic_id: int
    invalidated: bool
    success: bool
    patterns: list[str]
    failed_patterns: list[str]

    @classmethod
    def from_result(cls, result: Any) -> "InvalidationResponse":
        return cls(
            domain=result.domain,
            operation=result.operation,
            clinic_id=result.clinic_id,
            invalidated=result.invalidated,
            success=result.success,
            patterns=list(result.patterns),
            failed_patterns=list(result.failed_patterns),
        )


class TenantStatsResponse(BaseModel):
    """Response for GET /cache/clinics/{clinic_id}/stats."""

    clinic_id: int
    hits: int
    misses: int
    hit_rate_percent: float
