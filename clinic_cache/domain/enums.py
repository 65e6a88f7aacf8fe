"""Domain enumerations for the clinic cache.

Enums represent fixed sets of values: cache domains, refresh strategies,
priorities and the status tag carried by a cache lookup result.
"""

from enum import Enum


class CacheDomain(str, Enum):
    """Logical data category with its own cache policy."""

    CONTACTS = "contacts"
    APPOINTMENTS = "appointments"
    MEDICAL_RECORDS = "medical_records"
    PIPELINE = "pipeline"
    ANALYTICS = "analytics"
    SETTINGS = "settings"
    AI_TEMPLATES = "ai_templates"
    USER_SESSION = "user_session"

    @classmethod
    def values(cls) -> list[str]:
        """Return all domain values as strings."""
        return [domain.value for domain in cls]

    @property
    def key_tag(self) -> str:
        """Segment written after the clinic prefix in cache keys."""
        return _KEY_TAGS[self]

    @property
    def is_clinic_scoped(self) -> bool:
        """False for user_session: those keys are keyed by user id."""
        return self is not CacheDomain.USER_SESSION


_KEY_TAGS: dict[CacheDomain, str] = {
    CacheDomain.CONTACTS: "contacts",
    CacheDomain.APPOINTMENTS: "appointments",
    CacheDomain.MEDICAL_RECORDS: "records",
    CacheDomain.PIPELINE: "pipeline",
    CacheDomain.ANALYTICS: "analytics",
    CacheDomain.SETTINGS: "settings",
    CacheDomain.AI_TEMPLATES: "ai_templates",
    CacheDomain.USER_SESSION: "user_session",
}


class RefreshStrategy(str, Enum):
    """How a domain's cache is kept in step with the database."""

    WRITE_THROUGH = "write-through"
    WRITE_BEHIND = "write-behind"
    READ_THROUGH = "read-through"
    CACHE_ASIDE = "cache-aside"


class CachePriority(str, Enum):
    """Relative importance of a domain's cache."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CacheStatus(str, Enum):
    """Branch taken by a cache lookup."""

    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"
    ERROR = "error"
