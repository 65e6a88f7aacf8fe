"""Cache key builders. Single place for key format (DRY).

Clinic-scoped keys look like ``clinic_<id>:<domain tag>:<qualifier>...``.
Key components must not contain CACHE_KEY_SEP or Redis glob characters,
otherwise two different resources could map to the same key or a pattern
delete could match more than intended. Free text (search terms) goes
through escape_component() instead.

Session keys are the exception: they are keyed by user id alone
(``user_session:<user>``, ``user_permissions:<user>:clinic_<id>``) because
a session has exactly one active clinic at a time. Clinic patterns never
match them; belongs_to_tenant() accepts them so clinic sweeps and audits
do not skip them.
"""

import re
from typing import Any
from urllib.parse import quote

from clinic_cache.core.constants import (
    CACHE_KEY_SEP,
    CACHE_PATTERN_SPECIAL_CHARS,
    CACHE_PATTERN_WILDCARD,
    CACHE_PREFIX_CLINIC,
    CACHE_PREFIX_USER_PERMISSIONS,
    CACHE_PREFIX_USER_SESSION,
)
from clinic_cache.domain.enums import CacheDomain
from clinic_cache.domain.exceptions import (
    ConfigurationError,
    InvalidCacheKeyError,
    InvalidTenantIdError,
)
from clinic_cache.infrastructure.cache.policies import resolve_domain

_CLINIC_KEY_RE = re.compile(rf"^{CACHE_PREFIX_CLINIC}(\d+){CACHE_KEY_SEP}")
_SESSION_PREFIXES = (
    f"{CACHE_PREFIX_USER_SESSION}{CACHE_KEY_SEP}",
    f"{CACHE_PREFIX_USER_PERMISSIONS}{CACHE_KEY_SEP}",
)


def _validate_key_component(value: str, name: str) -> None:
    """Raise InvalidCacheKeyError if value is empty or contains reserved characters.

    Args:
        value: String component used in a cache key.
        name: Name of the component (for error message).

    Raises:
        InvalidCacheKeyError: If value is empty, contains CACHE_KEY_SEP,
            or contains a glob metacharacter.
    """
    if not value:
        raise InvalidCacheKeyError(name, value, "must not be empty")
    if CACHE_KEY_SEP in value:
        raise InvalidCacheKeyError(
            name, value, f"must not contain separator {CACHE_KEY_SEP!r}"
        )
    if CACHE_PATTERN_SPECIAL_CHARS.intersection(value):
        raise InvalidCacheKeyError(
            name, value, "must not contain pattern characters * ? [ ]"
        )


def _validate_clinic_id(clinic_id: Any) -> int:
    """Return clinic_id if it is a positive int; bools are rejected."""
    if isinstance(clinic_id, bool) or not isinstance(clinic_id, int) or clinic_id <= 0:
        raise InvalidTenantIdError(clinic_id)
    return clinic_id


def _clinic_prefix(clinic_id: int) -> str:
    return f"{CACHE_PREFIX_CLINIC}{_validate_clinic_id(clinic_id)}"


def _clinic_scoped_domain(domain: CacheDomain | str) -> CacheDomain:
    resolved = resolve_domain(domain)
    if not resolved.is_clinic_scoped:
        raise ConfigurationError(
            f"Domain {resolved.value!r} is not clinic-scoped; "
            "use user_session.by_id() or user_session.permissions()",
            details={"domain": resolved.value},
        )
    return resolved


def escape_component(value: Any) -> str:
    """Percent-encode free text so it is safe as a key component.

    Separator and glob characters are encoded; the result is deterministic,
    so the same search term always maps to the same key.
    """
    text = str(value)
    if not text:
        return "%00"
    return quote(text, safe="")


def build_key(clinic_id: int, domain: CacheDomain | str, *qualifiers: Any) -> str:
    """Build a clinic-scoped cache key.

    Args:
        clinic_id: Positive integer clinic (tenant) id.
        domain: Clinic-scoped CacheDomain or its string value.
        qualifiers: Zero or more key parts (page, entity id, status...);
            each is str()-ed and must not contain reserved characters.

    Returns:
        Key such as ``clinic_42:contacts:list:page_2``.

    Raises:
        InvalidTenantIdError: clinic_id is not a positive int.
        UnknownCacheDomainError: domain is unknown.
        ConfigurationError: domain is user_session (not clinic-scoped).
        InvalidCacheKeyError: a qualifier is empty or contains reserved characters.
    """
    prefix = _clinic_prefix(clinic_id)
    resolved = _clinic_scoped_domain(domain)
    parts = [prefix, resolved.key_tag]
    for qualifier in qualifiers:
        text = str(qualifier)
        _validate_key_component(text, "qualifier")
        parts.append(text)
    return CACHE_KEY_SEP.join(parts)


def build_tenant_pattern(clinic_id: int) -> str:
    """Pattern matching every clinic-scoped key of one clinic."""
    return f"{_clinic_prefix(clinic_id)}{CACHE_KEY_SEP}{CACHE_PATTERN_WILDCARD}"


def build_domain_pattern(clinic_id: int, domain: CacheDomain | str) -> str:
    """Pattern matching every key of one domain within one clinic."""
    resolved = _clinic_scoped_domain(domain)
    return CACHE_KEY_SEP.join(
        (_clinic_prefix(clinic_id), resolved.key_tag, CACHE_PATTERN_WILDCARD)
    )


def domain_patterns(clinic_id: int) -> dict[CacheDomain, str]:
    """Domain patterns for every clinic-scoped domain of one clinic."""
    return {
        domain: build_domain_pattern(clinic_id, domain)
        for domain in CacheDomain
        if domain.is_clinic_scoped
    }


def build_session_pattern(user_id: str) -> str:
    """Pattern matching the session key of one user."""
    _validate_key_component(user_id, "user_id")
    return f"{CACHE_PREFIX_USER_SESSION}{CACHE_KEY_SEP}{user_id}"


def build_user_permissions_pattern(user_id: str) -> str:
    """Pattern matching the permission keys of one user across clinics."""
    _validate_key_component(user_id, "user_id")
    return (
        f"{CACHE_PREFIX_USER_PERMISSIONS}{CACHE_KEY_SEP}{user_id}"
        f"{CACHE_KEY_SEP}{CACHE_PATTERN_WILDCARD}"
    )


def is_session_key(key: str) -> bool:
    return key.startswith(_SESSION_PREFIXES)


def is_single_user_session_pattern(pattern: str) -> bool:
    """Return True if a session key or pattern can only match keys of one user.

    Literal session keys qualify, as does the form returned by
    build_user_permissions_pattern(). Any other wildcard may match the
    sessions of every clinic.
    """
    if not is_session_key(pattern):
        return False
    if not CACHE_PATTERN_SPECIAL_CHARS.intersection(pattern):
        return True
    permissions_prefix = f"{CACHE_PREFIX_USER_PERMISSIONS}{CACHE_KEY_SEP}"
    suffix = f"{CACHE_KEY_SEP}{CACHE_PATTERN_WILDCARD}"
    if not (pattern.startswith(permissions_prefix) and pattern.endswith(suffix)):
        return False
    user_id = pattern[len(permissions_prefix):-len(suffix)]
    try:
        _validate_key_component(user_id, "user_id")
    except InvalidCacheKeyError:
        return False
    return True


def belongs_to_tenant(key: str, clinic_id: int) -> bool:
    """Return True if key belongs to clinic_id or is a session key.

    Session keys are accepted for every clinic (see module docstring).
    """
    if is_session_key(key):
        return True
    return key.startswith(f"{CACHE_PREFIX_CLINIC}{clinic_id}{CACHE_KEY_SEP}")


def extract_tenant_id(key: str) -> int | None:
    """Return the clinic id encoded in a clinic-scoped key, or None."""
    match = _CLINIC_KEY_RE.match(key)
    return int(match.group(1)) if match else None


class _ContactKeys:
    @staticmethod
    def list(clinic_id: int, page: int = 1) -> str:
        return build_key(clinic_id, CacheDomain.CONTACTS, "list", f"page_{page}")

    @staticmethod
    def by_id(clinic_id: int, contact_id: int) -> str:
        return build_key(clinic_id, CacheDomain.CONTACTS, contact_id)

    @staticmethod
    def search(clinic_id: int, query: str, page: int = 1) -> str:
        return build_key(
            clinic_id,
            CacheDomain.CONTACTS,
            "search",
            escape_component(query),
            f"page_{page}",
        )

    @staticmethod
    def by_status(clinic_id: int, status: str, page: int = 1) -> str:
        return build_key(
            clinic_id, CacheDomain.CONTACTS, f"status_{status}", f"page_{page}"
        )


class _AppointmentKeys:
    @staticmethod
    def list(clinic_id: int, page: int = 1) -> str:
        return build_key(clinic_id, CacheDomain.APPOINTMENTS, "list", f"page_{page}")

    @staticmethod
    def by_id(clinic_id: int, appointment_id: int) -> str:
        return build_key(clinic_id, CacheDomain.APPOINTMENTS, appointment_id)

    @staticmethod
    def by_date(clinic_id: int, date: Any) -> str:
        return build_key(clinic_id, CacheDomain.APPOINTMENTS, f"date_{date}")

    @staticmethod
    def by_contact(clinic_id: int, contact_id: int) -> str:
        return build_key(clinic_id, CacheDomain.APPOINTMENTS, f"contact_{contact_id}")

    @staticmethod
    def availability(
        clinic_id: int, date: Any, professional_id: int | None = None
    ) -> str:
        # Under the appointments tag so appointment invalidation also drops availability.
        parts: list[Any] = ["availability", date]
        if professional_id is not None:
            parts.append(f"prof_{professional_id}")
        return build_key(clinic_id, CacheDomain.APPOINTMENTS, *parts)


class _MedicalRecordKeys:
    @staticmethod
    def list(clinic_id: int, page: int = 1) -> str:
        return build_key(clinic_id, CacheDomain.MEDICAL_RECORDS, "list", f"page_{page}")

    @staticmethod
    def by_id(clinic_id: int, record_id: int) -> str:
        return build_key(clinic_id, CacheDomain.MEDICAL_RECORDS, record_id)

    @staticmethod
    def by_contact(clinic_id: int, contact_id: int) -> str:
        return build_key(
            clinic_id, CacheDomain.MEDICAL_RECORDS, f"contact_{contact_id}"
        )


class _PipelineKeys:
    @staticmethod
    def stages(clinic_id: int) -> str:
        return build_key(clinic_id, CacheDomain.PIPELINE, "stages")

    @staticmethod
    def opportunities(clinic_id: int, stage_id: int | None = None) -> str:
        stage = f"stage_{stage_id}" if stage_id is not None else "all"
        return build_key(clinic_id, CacheDomain.PIPELINE, "opportunities", stage)


class _AnalyticsKeys:
    @staticmethod
    def metrics(clinic_id: int, metric_type: str, period: str) -> str:
        return build_key(clinic_id, CacheDomain.ANALYTICS, metric_type, period)

    @staticmethod
    def dashboard(clinic_id: int) -> str:
        return build_key(clinic_id, CacheDomain.ANALYTICS, "dashboard")


class _SettingsKeys:
    @staticmethod
    def clinic(clinic_id: int) -> str:
        return build_key(clinic_id, CacheDomain.SETTINGS, "clinic")

    @staticmethod
    def user(clinic_id: int, user_id: str) -> str:
        return build_key(clinic_id, CacheDomain.SETTINGS, f"user_{user_id}")


class _AiTemplateKeys:
    @staticmethod
    def list(clinic_id: int) -> str:
        return build_key(clinic_id, CacheDomain.AI_TEMPLATES, "list")

    @staticmethod
    def by_type(clinic_id: int, template_type: str) -> str:
        return build_key(clinic_id, CacheDomain.AI_TEMPLATES, f"type_{template_type}")


class _UserSessionKeys:
    @staticmethod
    def by_id(user_id: str) -> str:
        """Session key for a user (not clinic-prefixed)."""
        _validate_key_component(user_id, "user_id")
        return f"{CACHE_PREFIX_USER_SESSION}{CACHE_KEY_SEP}{user_id}"

    @staticmethod
    def permissions(user_id: str, clinic_id: int) -> str:
        """Permission key for a user within one clinic (user-prefixed)."""
        _validate_key_component(user_id, "user_id")
        return (
            f"{CACHE_PREFIX_USER_PERMISSIONS}{CACHE_KEY_SEP}{user_id}"
            f"{CACHE_KEY_SEP}{_clinic_prefix(clinic_id)}"
        )


contacts = _ContactKeys()
appointments = _AppointmentKeys()
medical_records = _MedicalRecordKeys()
pipeline = _PipelineKeys()
analytics = _AnalyticsKeys()
settings = _SettingsKeys()
ai_templates = _AiTemplateKeys()
user_session = _UserSessionKeys()
