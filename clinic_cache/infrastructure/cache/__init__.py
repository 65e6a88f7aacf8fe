"""Cache: Redis client, key builders, policy table, invalidation and tenant service.

Key format is in keys.py (DRY); TTLs and invalidating operations are in
policies.py. RedisCacheClient reads clinic_cache.core.config.
"""

from clinic_cache.infrastructure.cache import keys
from clinic_cache.infrastructure.cache.cache_protocol import CacheProtocol
from clinic_cache.infrastructure.cache.invalidation import (
    TENANT_LEVEL_OPERATIONS,
    InvalidationDriver,
)
from clinic_cache.infrastructure.cache.policies import (
    DEFAULT_POLICIES,
    DEFAULT_POLICY,
    PERFORMANCE_LIMITS,
    CachePerformanceLimits,
    PolicyTable,
    resolve_domain,
)
from clinic_cache.infrastructure.cache.redis_cache import RedisCacheClient
from clinic_cache.infrastructure.cache.service import TenantCache

__all__ = [
    "CacheProtocol",
    "CachePerformanceLimits",
    "DEFAULT_POLICIES",
    "DEFAULT_POLICY",
    "InvalidationDriver",
    "PERFORMANCE_LIMITS",
    "PolicyTable",
    "RedisCacheClient",
    "TENANT_LEVEL_OPERATIONS",
    "TenantCache",
    "keys",
    "resolve_domain",
]
