"""Request dependencies: the cache objects built in the app lifespan."""

from fastapi import Request

from clinic_cache.infrastructure.cache.invalidation import InvalidationDriver
from clinic_cache.infrastructure.cache.policies import PolicyTable
from clinic_cache.infrastructure.cache.redis_cache import RedisCacheClient
from clinic_cache.infrastructure.cache.service import TenantCache


def get_cache_client(request: Request) -> RedisCacheClient:
    return request.app.state.cache_client


def get_policies(request: Request) -> PolicyTable:
    return request.app.state.policies


def get_tenant_cache(request: Request) -> TenantCache:
    return request.app.state.cache


def get_invalidation_driver(request: Request) -> InvalidationDriver:
    return request.app.state.invalidation
