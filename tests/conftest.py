"""Pytest configuration and fixtures for clinic-cache.

FakeRedis is an in-memory stand-in for redis.asyncio.Redis covering the
commands RedisCacheClient sends (PING, GET, SETEX, DEL, SCAN, UNLINK and
pipelined SETEX). It can be switched to fail (connection refused) or hang
(no reply) to exercise degraded mode without a server.
"""

import asyncio
from collections.abc import AsyncIterator
from fnmatch import fnmatchcase

import pytest
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient

from clinic_cache.core.config import Settings
from clinic_cache.infrastructure.cache.invalidation import InvalidationDriver
from clinic_cache.infrastructure.cache.policies import PolicyTable
from clinic_cache.infrastructure.cache.redis_cache import RedisCacheClient
from clinic_cache.infrastructure.cache.service import TenantCache
from clinic_cache.main import create_app


class FakePipeline:
    """Queues SETEX commands and applies them on execute(), like a non-transactional pipeline."""

    def __init__(self, owner: "FakeRedis") -> None:
        self.owner = owner
        self.queued: list[tuple[str, int, str]] = []

    def setex(self, key: str, ttl: int, value: str) -> "FakePipeline":
        self.queued.append((key, ttl, value))
        return self

    async def execute(self) -> list[bool]:
        self.owner.pipeline_calls += 1
        await self.owner._check()
        for key, ttl, value in self.queued:
            self.owner.store[key] = value
            self.owner.ttls[key] = ttl
        results = [True] * len(self.queued)
        self.queued = []
        return results


class FakeRedis:
    """Minimal async Redis double. TTLs are recorded, not enforced."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False
        self.hang = False
        self.closed = False
        self.ping_calls = 0
        self.scan_calls = 0
        self.pipeline_calls = 0
        self._scan_snapshot: list[str] = []

    async def _check(self) -> None:
        if self.hang:
            await asyncio.sleep(3600)
        if self.fail:
            raise redis.ConnectionError("Connection refused")

    async def ping(self) -> bool:
        self.ping_calls += 1
        await self._check()
        return True

    async def get(self, key: str) -> str | None:
        await self._check()
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        await self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        await self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def unlink(self, *keys: str) -> int:
        return await self.delete(*keys)

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def scan(
        self, cursor: int = 0, match: str | None = None, count: int | None = None
    ) -> tuple[int, list[str]]:
        await self._check()
        self.scan_calls += 1
        # Cursor indexes a snapshot taken at cursor 0, like a full-iteration guarantee.
        if cursor == 0:
            self._scan_snapshot = sorted(self.store)
        keys = self._scan_snapshot
        page = count or 10
        window = [k for k in keys[cursor:cursor + page] if k in self.store]
        next_cursor = cursor + page if cursor + page < len(keys) else 0
        return next_cursor, [k for k in window if match is None or fnmatchcase(k, match)]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    """Settings with short timeouts so degraded-mode tests finish quickly."""
    return Settings(
        _env_file=None,
        cache_enabled=True,
        cache_connect_timeout_seconds=0.2,
        cache_command_timeout_seconds=0.2,
        cache_reconnect_interval_seconds=60.0,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def cache_client(settings: Settings, fake_redis: FakeRedis) -> AsyncIterator[RedisCacheClient]:
    """Connected RedisCacheClient backed by FakeRedis."""
    client = RedisCacheClient(settings, redis_client=fake_redis)
    assert await client.connect()
    yield client
    await client.close()


@pytest.fixture
def policies() -> PolicyTable:
    return PolicyTable()


@pytest.fixture
def driver(cache_client: RedisCacheClient, policies: PolicyTable) -> InvalidationDriver:
    return InvalidationDriver(cache_client, policies)


@pytest.fixture
def tenant_cache(cache_client: RedisCacheClient, policies: PolicyTable) -> TenantCache:
    return TenantCache(cache_client, policies)


@pytest.fixture
async def client(
    cache_client: RedisCacheClient, policies: PolicyTable, tenant_cache: TenantCache
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client against a fresh app wired to FakeRedis.

    ASGITransport does not run the lifespan, so app.state is populated here.
    """
    app = create_app()
    app.state.policies = policies
    app.state.cache_client = cache_client
    app.state.invalidation = InvalidationDriver(cache_client, policies)
    app.state.cache = tenant_cache
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
