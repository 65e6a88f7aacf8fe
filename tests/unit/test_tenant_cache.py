"""Tests for TenantCache (policy TTLs, tenant guard, cache-aside, stats, health)."""

from unittest.mock import AsyncMock

import pytest

from clinic_cache.infrastructure.cache import keys
from clinic_cache.infrastructure.cache.policies import PolicyTable
from clinic_cache.infrastructure.cache.redis_cache import RedisCacheClient
from clinic_cache.infrastructure.cache.service import TenantCache
from tests.conftest import FakeRedis


async def test_set_uses_domain_ttl(tenant_cache: TenantCache, fake_redis: FakeRedis) -> None:
    key = keys.appointments.by_id(42, 1)
    assert await tenant_cache.set(key, {"id": 1}, "appointments", clinic_id=42) is True
    assert fake_redis.ttls[key] == 120
    assert await tenant_cache.get(key, "appointments", clinic_id=42) == {"id": 1}


async def test_foreign_key_is_refused(tenant_cache: TenantCache, fake_redis: FakeRedis) -> None:
    foreign = keys.contacts.by_id(7, 1)
    fake_redis.store[foreign] = '{"id": 1}'
    assert await tenant_cache.get(foreign, "contacts", clinic_id=42) is None
    assert await tenant_cache.set(foreign, {"id": 2}, "contacts", clinic_id=42) is False
    assert fake_redis.store[foreign] == '{"id": 1}'


async def test_session_keys_pass_the_tenant_guard(tenant_cache: TenantCache) -> None:
    key = keys.user_session.by_id("u1")
    assert await tenant_cache.set(key, {"clinic_id": 42}, "user_session", clinic_id=42) is True
    assert await tenant_cache.get(key, "user_session", clinic_id=42) == {"clinic_id": 42}


async def test_kill_switch_bypasses_cache(
    cache_client: RedisCacheClient, fake_redis: FakeRedis
) -> None:
    cache = TenantCache(cache_client, PolicyTable(cache_enabled=False))
    key = keys.contacts.by_id(42, 1)
    assert await cache.set(key, 1, "contacts") is False
    assert fake_redis.store == {}
    loader = AsyncMock(return_value={"id": 1})
    assert await cache.get_or_set(key, loader, "contacts") == {"id": 1}
    assert await cache.get_or_set(key, loader, "contacts") == {"id": 1}
    assert loader.await_count == 2


async def test_get_or_set_loads_once(tenant_cache: TenantCache) -> None:
    key = keys.contacts.list(42, 1)
    loader = AsyncMock(return_value=[{"id": 1}])
    assert await tenant_cache.get_or_set(key, loader, "contacts", clinic_id=42) == [{"id": 1}]
    assert await tenant_cache.get_or_set(key, loader, "contacts", clinic_id=42) == [{"id": 1}]
    loader.assert_awaited_once()
    stats = tenant_cache.get_stats()
    assert (stats.hits, stats.misses, stats.sets) == (1, 1, 1)


async def test_get_or_set_does_not_cache_none(
    tenant_cache: TenantCache, fake_redis: FakeRedis
) -> None:
    loader = AsyncMock(return_value=None)
    assert await tenant_cache.get_or_set(keys.contacts.by_id(42, 9), loader, "contacts") is None
    assert fake_redis.store == {}


async def test_get_or_set_propagates_loader_errors(tenant_cache: TenantCache) -> None:
    loader = AsyncMock(side_effect=LookupError("contact not found"))
    with pytest.raises(LookupError):
        await tenant_cache.get_or_set(keys.contacts.by_id(42, 9), loader, "contacts")


async def test_get_or_set_falls_back_when_cache_is_down(
    tenant_cache: TenantCache, fake_redis: FakeRedis
) -> None:
    fake_redis.fail = True
    loader = AsyncMock(return_value={"id": 3})
    assert await tenant_cache.get_or_set(keys.contacts.by_id(42, 3), loader, "contacts") == {"id": 3}
    loader.assert_awaited_once()


async def test_invalidate_pattern_requires_own_clinic(
    tenant_cache: TenantCache, fake_redis: FakeRedis
) -> None:
    fake_redis.store[keys.contacts.by_id(7, 1)] = "1"
    assert await tenant_cache.invalidate_pattern("clinic_7:*", clinic_id=42) is False
    assert await tenant_cache.invalidate_pattern("user_session:*", clinic_id=42) is False
    assert keys.contacts.by_id(7, 1) in fake_redis.store


async def test_invalidate_clinic_and_domain(
    tenant_cache: TenantCache, fake_redis: FakeRedis
) -> None:
    fake_redis.store.update(
        {
            keys.contacts.by_id(42, 1): "1",
            keys.pipeline.stages(42): "1",
            keys.pipeline.stages(43): "1",
        }
    )
    assert await tenant_cache.invalidate_domain("contacts", 42) is True
    assert set(fake_redis.store) == {"clinic_42:pipeline:stages", "clinic_43:pipeline:stages"}
    assert await tenant_cache.invalidate_clinic(42) is True
    assert set(fake_redis.store) == {"clinic_43:pipeline:stages"}
    assert tenant_cache.get_stats().deletes == 2


async def test_stats_count_errors_and_reset(
    tenant_cache: TenantCache, fake_redis: FakeRedis
) -> None:
    fake_redis.store["clinic_42:contacts:1"] = "{broken"
    assert await tenant_cache.get("clinic_42:contacts:1", "contacts") is None
    stats = tenant_cache.get_stats()
    assert stats.misses == 1
    assert stats.errors == 1
    tenant_cache.reset_stats()
    assert tenant_cache.get_stats().total == 0


async def test_health_check(tenant_cache: TenantCache, fake_redis: FakeRedis) -> None:
    health = await tenant_cache.health_check()
    assert health.healthy is True
    assert "health:check" not in fake_redis.store


async def test_health_check_when_unavailable(
    tenant_cache: TenantCache, fake_redis: FakeRedis
) -> None:
    fake_redis.fail = True
    health = await tenant_cache.health_check()
    assert health.healthy is False
    assert "fallback" in health.message


class TestWriteThrough:
    async def test_writes_then_caches_saved_value(
        self, tenant_cache: TenantCache, fake_redis: FakeRedis
    ) -> None:
        key = keys.appointments.by_id(42, 3)
        list_key = keys.appointments.list(42, 1)
        fake_redis.store[list_key] = "[]"
        writer = AsyncMock(side_effect=lambda data: {**data, "id": 3})
        saved = await tenant_cache.write_through(
            key,
            {"time": "09:00"},
            writer,
            "appointments",
            clinic_id=42,
            invalidate=[keys.build_domain_pattern(42, "appointments")],
        )
        assert saved == {"time": "09:00", "id": 3}
        writer.assert_awaited_once_with({"time": "09:00"})
        assert list_key not in fake_redis.store
        assert await tenant_cache.get(key, "appointments", 42) == saved
        assert fake_redis.ttls[key] == 120

    async def test_writer_errors_propagate_and_nothing_is_cached(
        self, tenant_cache: TenantCache, fake_redis: FakeRedis
    ) -> None:
        writer = AsyncMock(side_effect=RuntimeError("db down"))
        with pytest.raises(RuntimeError):
            await tenant_cache.write_through(
                keys.contacts.by_id(42, 1), {"name": "Ana"}, writer, "contacts", 42
            )
        assert fake_redis.store == {}

    async def test_cache_outage_does_not_fail_the_write(
        self, tenant_cache: TenantCache, fake_redis: FakeRedis
    ) -> None:
        fake_redis.fail = True
        writer = AsyncMock(return_value={"id": 1})
        saved = await tenant_cache.write_through(
            keys.contacts.by_id(42, 1),
            {"name": "Ana"},
            writer,
            "contacts",
            42,
            invalidate=["clinic_42:contacts:*"],
        )
        assert saved == {"id": 1}
        writer.assert_awaited_once()

    async def test_foreign_patterns_are_not_evicted(
        self, tenant_cache: TenantCache, fake_redis: FakeRedis
    ) -> None:
        fake_redis.store["clinic_43:contacts:list:page_1"] = "[]"
        await tenant_cache.write_through(
            keys.contacts.by_id(42, 1),
            {"id": 1},
            AsyncMock(return_value={"id": 1}),
            "contacts",
            42,
            invalidate=["clinic_43:contacts:*"],
        )
        assert "clinic_43:contacts:list:page_1" in fake_redis.store


class TestWarm:
    async def test_preloads_one_clinic_in_one_pipeline(
        self, tenant_cache: TenantCache, fake_redis: FakeRedis
    ) -> None:
        items = {
            keys.contacts.by_id(42, 1): {"id": 1},
            keys.contacts.by_id(42, 2): {"id": 2},
            keys.contacts.by_id(43, 1): {"id": 1},
            keys.contacts.by_id(42, 3): None,
        }
        assert await tenant_cache.warm("contacts", 42, items) == 2
        assert fake_redis.pipeline_calls == 1
        assert set(fake_redis.store) == {"clinic_42:contacts:1", "clinic_42:contacts:2"}
        assert set(fake_redis.ttls.values()) == {300}
        assert tenant_cache.get_stats().sets == 2

    async def test_disabled_domain_is_not_warmed(
        self, fake_redis: FakeRedis, cache_client: RedisCacheClient
    ) -> None:
        cache = TenantCache(cache_client, PolicyTable(cache_enabled=False))
        assert await cache.warm("contacts", 42, {"clinic_42:contacts:1": 1}) == 0
        assert fake_redis.pipeline_calls == 0

    async def test_unavailable_cache(self, tenant_cache: TenantCache, fake_redis: FakeRedis) -> None:
        fake_redis.fail = True
        assert await tenant_cache.warm("contacts", 42, {"clinic_42:contacts:1": 1}) == 0
        assert fake_redis.store == {}


async def test_per_clinic_hit_rates(tenant_cache: TenantCache) -> None:
    await tenant_cache.set("clinic_42:contacts:1", 1, "contacts", 42)
    await tenant_cache.get("clinic_42:contacts:1", "contacts", 42)
    await tenant_cache.get("clinic_42:contacts:2", "contacts", 42)
    await tenant_cache.get("clinic_43:contacts:1", "contacts", 43)
    await tenant_cache.get("clinic_42:contacts:1", "contacts")
    clinic_42 = tenant_cache.get_tenant_stats(42)
    assert (clinic_42.hits, clinic_42.misses) == (1, 1)
    assert clinic_42.to_dict()["hit_rate_percent"] == 50.0
    assert tenant_cache.get_tenant_stats(43).hit_rate == 0.0
    assert tenant_cache.get_tenant_stats(44).to_dict() == {
        "hits": 0,
        "misses": 0,
        "hit_rate_percent": 0.0,
    }
    stats = tenant_cache.get_stats()
    assert (stats.hits, stats.misses) == (2, 2)
