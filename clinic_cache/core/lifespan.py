"""Application lifespan: startup and shutdown.

Single place for startup/shutdown wiring: cache client, policy table,
invalidation driver, tenant cache and telemetry. The cache never blocks
startup: a failed connect leaves the client in degraded mode.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from clinic_cache.core.config import get_settings
from clinic_cache.infrastructure.cache.invalidation import InvalidationDriver
from clinic_cache.infrastructure.cache.policies import PolicyTable
from clinic_cache.infrastructure.cache.redis_cache import RedisCacheClient
from clinic_cache.infrastructure.cache.service import TenantCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: policy table, cache client (connect only when caching
    is enabled), telemetry. Shutdown order: cache close, telemetry shutdown.
    Objects already placed on app.state (tests) are left as they are.
    """
    settings = get_settings()

    # ---- Startup ----
    if getattr(app.state, "policies", None) is None:
        app.state.policies = PolicyTable.from_settings(settings)
    if getattr(app.state, "cache_client", None) is None:
        client = RedisCacheClient(settings)
        if settings.cache_enabled:
            await client.connect()
        else:
            logger.info("Cache disabled by configuration; serving from source only")
        app.state.cache_client = client
    app.state.invalidation = InvalidationDriver(app.state.cache_client, app.state.policies)
    app.state.cache = TenantCache(app.state.cache_client, app.state.policies)

    if settings.telemetry_enabled:
        from clinic_cache.shared.telemetry.telemetry import TelemetryConfig, set_telemetry

        telemetry = TelemetryConfig.from_settings(settings)
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        set_telemetry(telemetry)
        telemetry.instrument_fastapi(app)
        logger.info("Telemetry initialized")

    yield

    # ---- Shutdown ----
    if getattr(app.state, "cache_client", None) is not None:
        await app.state.cache_client.close()
        logger.info("Cache client closed")

    from clinic_cache.shared.telemetry.telemetry import get_telemetry, set_telemetry

    telemetry_instance = get_telemetry()
    if telemetry_instance is not None:
        telemetry_instance.shutdown()
        set_telemetry(None)
