"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Cache tuning (timeouts, kill switch, TTL overrides)
is validated at load time.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    All settings have defaults; a bare environment gives a working
    configuration pointed at a local Redis.
    """

    # App
    app_name: str = "clinic-cache"
    app_version: str = "1.0.0"
    debug: bool = False

    # Redis connection
    redis_url: str = "redis://localhost:6379/0"
    redis_password: SecretStr | None = None
    redis_db: int | None = None
    redis_ssl: bool = False

    # Global kill switch: when False no domain is cached, regardless of policy.
    cache_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("CACHE_ENABLED", "ENABLE_REDIS_CACHE"),
    )
    cache_connect_timeout_seconds: float = 10.0
    cache_command_timeout_seconds: float = 3.0
    cache_reconnect_interval_seconds: float = 5.0
    cache_health_check_interval: int = 30
    # Per-domain TTL overrides in seconds, e.g. CACHE_TTL_OVERRIDES='{"contacts": 60}'
    cache_ttl_overrides: dict[str, int] = Field(default_factory=dict)

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def validate_cache_settings(self) -> "Settings":
        """Validate timeouts and TTL overrides.

        - Connect/command timeouts and reconnect interval must be positive.
        - Every TTL override must be a positive number of seconds.
        """
        for name in (
            "cache_connect_timeout_seconds",
            "cache_command_timeout_seconds",
            "cache_reconnect_interval_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive")
        for domain, ttl in self.cache_ttl_overrides.items():
            if ttl <= 0:
                raise ValueError(
                    f"CACHE_TTL_OVERRIDES[{domain!r}] must be a positive number of seconds, got {ttl}"
                )
        return self

    @property
    def effective_redis_url(self) -> str:
        """Redis URL with the TLS scheme applied when redis_ssl is set."""
        if self.redis_ssl and self.redis_url.startswith("redis://"):
            return "rediss://" + self.redis_url[len("redis://"):]
        return self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    In tests, call get_settings.cache_clear() before overriding env vars so
    the next get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
