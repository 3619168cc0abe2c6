# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Tests for the dashboard cache store."""

from datetime import date

import pytest

from wellbeing.cache import CacheStore
from wellbeing.kvstore import JsonFileKeyValueStore, MemoryKeyValueStore
from wellbeing.schemas import BalanceRecord, MetricRecord
from wellbeing.windows import Dimension

DIM = Dimension("u1", "emotional", 7)
OTHER = Dimension("u1", "emotional", 30)
SOMEONE_ELSE = Dimension("u2", "emotional", 7)


def records(*scores):
    return [MetricRecord(date=date(2026, 3, i + 1), happiness=s) for i, s in enumerate(scores)]


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def cache(kv, clock):
    return CacheStore(kv=kv, clock=clock)


class TestBasicOps:

    def test_put_and_get(self, cache, clock):
        cache.put(DIM, records(10, 20))
        entry = cache.get(DIM)
        assert [r.happiness for r in entry.records] == [10, 20]
        assert entry.fetched_at == clock.now
        assert entry.key == DIM.storage_key

    def test_get_miss_returns_none(self, cache):
        assert cache.get(DIM) is None

    def test_put_replaces(self, cache, clock):
        cache.put(DIM, records(10))
        clock.advance(minutes=30)
        cache.put(DIM, records(99))
        entry = cache.get(DIM)
        assert [r.happiness for r in entry.records] == [99]
        assert entry.fetched_at == clock.now

    def test_dimensions_independent(self, cache):
        cache.put(DIM, records(1))
        assert cache.get(OTHER) is None

    def test_empty_payload_is_an_entry(self, cache):
        cache.put(OTHER, [])
        entry = cache.get(OTHER)
        assert entry is not None
        assert entry.records == []


class TestAgeCeiling:

    def test_entry_expires_after_24h(self, cache, clock):
        cache.put(DIM, records(10))
        clock.advance(hours=24, minutes=1)
        assert cache.get(DIM) is None

    def test_entry_alive_just_under_ceiling(self, cache, clock):
        cache.put(DIM, records(10))
        clock.advance(hours=23, minutes=59)
        assert cache.get(DIM) is not None


class TestPersistence:

    def test_write_through(self, cache, kv):
        cache.put(DIM, records(42))
        raw = kv.get(DIM.storage_key)
        assert raw["user_id"] == "u1"
        assert raw["records"][0]["happiness"] == 42

    def test_loads_from_kv_after_restart(self, tmp_path, clock):
        path = tmp_path / "cache.json"
        CacheStore(kv=JsonFileKeyValueStore(path), clock=clock).put(DIM, records(33))
        fresh = CacheStore(kv=JsonFileKeyValueStore(path), clock=clock)
        assert fresh.get(DIM).records[0].happiness == 33

    def test_deferred_persist(self, cache, kv):
        cache.put(DIM, records(42), persist=False)
        assert kv.get(DIM.storage_key) is None
        assert cache.get(DIM).records[0].happiness == 42
        assert cache.persist(DIM) is True
        assert kv.get(DIM.storage_key)["records"][0]["happiness"] == 42

    def test_persist_writes_newest_entry(self, cache, kv):
        cache.put(DIM, records(10), persist=False)
        cache.put(DIM, records(20), persist=False)
        cache.persist(DIM)
        assert kv.get(DIM.storage_key)["records"][0]["happiness"] == 20

    def test_persist_nothing_cached(self, cache, kv):
        assert cache.persist(DIM) is False
        assert kv.keys() == []

    def test_balance_entry_restored_as_balance(self, tmp_path, clock):
        path = tmp_path / "cache.json"
        dim = Dimension("u1", "balance", 7)
        split = BalanceRecord(date=date(2026, 3, 1), positive=60, negative=30, neutral=10)
        CacheStore(kv=JsonFileKeyValueStore(path), clock=clock).put(dim, [split])
        fresh = CacheStore(kv=JsonFileKeyValueStore(path), clock=clock)
        assert fresh.get(dim).records == [split]

    def test_corrupt_entry_reads_as_absent(self, cache, kv):
        kv.set(DIM.storage_key, {"records": "garbage"})
        assert cache.get(DIM) is None
        assert kv.get(DIM.storage_key) is None
        assert cache.stats()["corrupted"] == 1


class TestInvalidation:

    def test_invalidate_single(self, cache, kv):
        cache.put(DIM, records(1))
        assert cache.invalidate(DIM) is True
        assert cache.get(DIM) is None
        assert kv.get(DIM.storage_key) is None

    def test_invalidate_nonexistent(self, cache):
        assert cache.invalidate(DIM) is False

    def test_invalidate_user(self, cache):
        cache.put(DIM, records(1))
        cache.put(OTHER, records(2))
        cache.put(SOMEONE_ELSE, records(3))
        assert cache.invalidate_user("u1") == 2
        assert cache.get(DIM) is None
        assert cache.get(OTHER) is None
        assert cache.get(SOMEONE_ELSE) is not None

    def test_invalidate_user_clears_persisted_only_entries(self, kv, clock):
        CacheStore(kv=kv, clock=clock).put(DIM, records(1))
        fresh = CacheStore(kv=kv, clock=clock)
        assert fresh.invalidate_user("u1") == 1
        assert kv.keys() == []


class TestStats:

    def test_hit_miss_tracking(self, cache):
        cache.put(DIM, records(1))
        cache.get(DIM)     # hit
        cache.get(DIM)     # hit
        cache.get(OTHER)   # miss

        stats = cache.stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(2 / 3, abs=0.01)
        assert stats["entries"] == 1

    def test_invalidation_count(self, cache):
        cache.put(DIM, records(1))
        cache.invalidate(DIM)
        assert cache.stats()["invalidations"] == 1
