"""Tests for domain value objects (CachePolicy, CacheResult, CacheStats)."""

import pytest

from clinic_cache.domain.enums import CachePriority, CacheStatus, RefreshStrategy
from clinic_cache.domain.value_objects import (
    CachePolicy,
    CacheResult,
    CacheStats,
    InvalidationResult,
)


class TestCachePolicy:
    def test_coerces_values(self) -> None:
        policy = CachePolicy(60, ["update"], strategy="read-through", priority="low")  # type: ignore[arg-type]
        assert policy.invalidate_on == frozenset({"update"})
        assert policy.strategy is RefreshStrategy.READ_THROUGH
        assert policy.priority is CachePriority.LOW

    @pytest.mark.parametrize("ttl", [0, -5, True, 1.5, "60"])
    def test_rejects_invalid_ttl(self, ttl: object) -> None:
        with pytest.raises(ValueError):
            CachePolicy(ttl, frozenset())  # type: ignore[arg-type]

    def test_rejects_unknown_strategy(self) -> None:
        with pytest.raises(ValueError):
            CachePolicy(60, frozenset(), strategy="write-around")  # type: ignore[arg-type]

    def test_with_ttl_returns_copy(self) -> None:
        policy = CachePolicy(60, frozenset({"create"}))
        changed = policy.with_ttl(10)
        assert changed.ttl_seconds == 10
        assert changed.invalidate_on == policy.invalidate_on
        assert policy.ttl_seconds == 60


class TestCacheResult:
    def test_tags(self) -> None:
        assert CacheResult.hit({"a": 1}).is_hit
        assert CacheResult.hit(None).status is CacheStatus.HIT
        assert CacheResult.miss().status is CacheStatus.MISS
        assert CacheResult.unavailable().status is CacheStatus.UNAVAILABLE
        failed = CacheResult.failed("boom")
        assert failed.status is CacheStatus.ERROR
        assert failed.error == "boom"
        assert not failed.is_hit


def test_cache_stats_hit_rate() -> None:
    stats = CacheStats(hits=3, misses=1)
    assert stats.total == 4
    assert stats.hit_rate == 0.75
    assert stats.to_dict()["hit_rate_percent"] == 75.0
    assert CacheStats().hit_rate == 0.0


def test_invalidation_result_success() -> None:
    assert InvalidationResult("contacts", "update", 1, True, ("clinic_1:contacts:*",)).success
    assert not InvalidationResult("contacts", "update", 1, True, failed_patterns=("x",)).success


def test_cache_stats_per_clinic_counters() -> None:
    stats = CacheStats()
    stats.record_hit(1)
    stats.record_hit(1)
    stats.record_miss(1)
    stats.record_miss()
    assert (stats.hits, stats.misses) == (2, 2)
    assert stats.for_clinic(1).hits == 2
    assert stats.for_clinic(1).to_dict()["hit_rate_percent"] == 66.67
    assert stats.for_clinic(2).hit_rate == 0.0
    assert 2 not in stats.clinics
