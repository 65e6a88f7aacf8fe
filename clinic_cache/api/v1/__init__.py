"""API v1."""

from clinic_cache.api.v1.router import api_router

__all__ = ["api_router"]
