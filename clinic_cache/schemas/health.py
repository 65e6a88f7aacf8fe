"""Health check API schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")


class ReadinessResponse(BaseModel):
    """Response for GET /health/ready.

    Always ready: the cache is an optimization, so a lost Redis connection
    is reported as degraded rather than failing the probe.
    """

    status: str = Field(default="ok", description="Readiness status")
    cache: Literal["available", "degraded", "disabled"] = Field(
        ..., description="Cache backend state"
    )
