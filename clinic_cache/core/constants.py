"""Core constants: cache key prefixes and shared literal values.

Single source of truth for cache key structure (DRY). Used by
clinic_cache.infrastructure.cache.keys and the tenant-aware cache service.
"""

# Delimiter for composite keys
CACHE_KEY_SEP = ":"

# Every clinic-scoped key starts with CACHE_PREFIX_CLINIC + clinic id
CACHE_PREFIX_CLINIC = "clinic_"

# Session keys are keyed by user id, not by clinic (one active clinic per session)
CACHE_PREFIX_USER_SESSION = "user_session"
CACHE_PREFIX_USER_PERMISSIONS = "user_permissions"

# Glob metacharacters understood by Redis SCAN MATCH
CACHE_PATTERN_WILDCARD = "*"
CACHE_PATTERN_SPECIAL_CHARS = frozenset("*?[]")

# Probe key written by the health check (intentionally not clinic-scoped)
CACHE_HEALTH_CHECK_KEY = "health:check"
CACHE_HEALTH_CHECK_TTL = 10
