"""Pydantic request/response schemas for the API."""

from clinic_cache.schemas.cache import (
    CacheStatusResponse,
    ConnectionStateResponse,
    InvalidationRequest,
    InvalidationResponse,
    PolicyTableResponse,
)
from clinic_cache.schemas.health import HealthResponse, ReadinessResponse

__all__ = [
    "CacheStatusResponse",
    "ConnectionStateResponse",
    "HealthResponse",
    "InvalidationRequest",
    "InvalidationResponse",
    "PolicyTableResponse",
    "ReadinessResponse",
]
