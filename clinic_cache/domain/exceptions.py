"""Domain exceptions for the clinic cache.

Only programmer errors surface as exceptions: unknown domains, malformed
key components, invalid tenant ids. Backend failures (Redis down, timeouts,
bad payloads) are handled inside the cache client and never raised.
"""

from typing import Any


class ClinicCacheException(Exception):
    """Base exception for all clinic cache errors.

    Presentation layer maps these to HTTP responses using message,
    error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. domain, component).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the HTTP exception handler."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ClinicCacheException):
    """Raised on misuse of the cache configuration (a programmer error)."""

    def __init__(
        self, message: str, error_code: str = "CONFIGURATION_ERROR", details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, error_code, details)


class UnknownCacheDomainError(ConfigurationError):
    """Raised when a domain name is not one of the known cache domains."""

    def __init__(self, domain: object) -> None:
        """Initialize with the rejected domain.

        Args:
            domain: The value that could not be resolved to a CacheDomain.
        """
        super().__init__(
            f"Unknown cache domain: {domain!r}",
            "UNKNOWN_CACHE_DOMAIN",
            {"domain": str(domain)},
        )


class InvalidCacheKeyError(ConfigurationError, ValueError):
    """Raised when a key component would make a cache key ambiguous."""

    def __init__(self, component: str, value: str, reason: str) -> None:
        """Initialize with the offending component.

        Args:
            component: Name of the key component (e.g. 'qualifier', 'user_id').
            value: The rejected value.
            reason: Why it was rejected.
        """
        super().__init__(
            f"Cache key component {component!r} {reason}",
            "INVALID_CACHE_KEY",
            {"component": component, "value": value},
        )


class InvalidTenantIdError(ConfigurationError, ValueError):
    """Raised when a clinic id is not a positive integer."""

    def __init__(self, clinic_id: object) -> None:
        super().__init__(
            f"Clinic id must be a positive integer, got {clinic_id!r}",
            "INVALID_TENANT_ID",
            {"clinic_id": repr(clinic_id)},
        )
