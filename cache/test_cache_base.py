"""
Pytest tests for cache/cache_base.py (TimeBoxedCache).

Run from the repo root:
    pytest cache/test_cache_base.py -v
"""

import json
import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from cache.cache_base import TIER_MEMORY, TIER_PERSISTENT, CacheEntry, TimeBoxedCache
from cache.cache_store import JsonFileStore, MemoryStore, StorageUnavailable
from common import CACHE_KEY_PREFIX, DEFAULT_CACHE_TTL_S


class FakeClock:
    def __init__(self, t: float = 1_700_000_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class CountingStore(MemoryStore):
    """MemoryStore that counts reads (to prove the hot path never touches it)."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.reads = 0

    def get_item(self, key):
        self.reads += 1
        return super().get_item(key)


class FailingRemoveStore(MemoryStore):
    def remove_item(self, key):
        raise StorageUnavailable("remove disabled")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def cache(store, clock):
    return TimeBoxedCache(store=store, clock=clock)


# ============================================================================
# set / get / has
# ============================================================================

@pytest.mark.parametrize("key,value,ttl", [
    ("a", {"x": 1}, 1),
    ("github_complete_data", [1, 2, 3], 900),
    ("empty", [], 60),
    ("text", "hello", 0.5),
])
def test_set_then_get_returns_value(cache, key, value, ttl):
    cache.set(key, value, ttl_s=ttl)
    assert cache.get(key) == value
    assert cache.has(key)


def test_get_missing_key_is_absent(cache):
    assert cache.get("nope") is None
    assert not cache.has("nope")
    assert cache.stats.miss == 2


def test_entry_expires_at_ttl(cache, clock):
    cache.set("k", {"v": 1}, ttl_s=60)
    clock.advance(59.5)
    assert cache.get("k") == {"v": 1}
    clock.advance(0.5)  # elapsed == ttl -> expired
    assert cache.get("k") is None
    assert not cache.has("k")


def test_has_uses_the_same_expiry_check(cache, clock):
    cache.set("k", 1, ttl_s=10)
    assert cache.has("k")
    clock.advance(10)
    assert not cache.has("k")


def test_default_ttl_is_ten_minutes(cache, clock):
    assert DEFAULT_CACHE_TTL_S == 600
    cache.set("k", "v")
    clock.advance(599)
    assert cache.get("k") == "v"
    clock.advance(1)
    assert cache.get("k") is None


def test_later_set_supersedes_earlier_entry(cache, clock):
    cache.set("k", "old", ttl_s=10)
    clock.advance(5)
    cache.set("k", "new", ttl_s=10)
    clock.advance(9)
    assert cache.get("k") == "new"


def test_memory_hit_never_reads_the_store(cache, store):
    cache.set("k", {"v": 1})
    for _ in range(3):
        assert cache.lookup("k").tier == TIER_MEMORY
    assert store.reads == 0


# ============================================================================
# Persistent tier
# ============================================================================

def test_persisted_record_layout(cache, store, clock):
    result = cache.set("k", {"v": 1}, ttl_s=30)
    assert result.persisted and not result.degraded
    record = json.loads(store.get_item(f"{CACHE_KEY_PREFIX}k"))
    assert record == {"data": {"v": 1}, "timestamp": clock.t, "expiry": 30.0}


def test_restart_promotes_persisted_entry(store, clock):
    first = TimeBoxedCache(store=store, clock=clock)
    first.set("snap", {"user": {"login": "octocat"}, "days": [1, 0, 2]}, ttl_s=100)

    clock.advance(10)
    second = TimeBoxedCache(store=store, clock=clock)
    lookup = second.lookup("snap")
    assert lookup.tier == TIER_PERSISTENT
    assert lookup.value == {"user": {"login": "octocat"}, "days": [1, 0, 2]}
    # Promoted: the next read is served from memory.
    assert second.lookup("snap").tier == TIER_MEMORY
    assert second.stats.promote == 1


def test_drop_memory_tier_then_get_round_trips(cache):
    snapshot = {"total_stats": {"current_streak": 1, "most_starred_repo": None}, "tags": ["Rust", "Solana"]}
    cache.set("snap", snapshot)
    cache.drop_memory_tier()
    assert cache.get("snap") == snapshot


def test_expired_persisted_entry_is_deleted(store, clock):
    TimeBoxedCache(store=store, clock=clock).set("k", "v", ttl_s=5)
    clock.advance(5)
    fresh = TimeBoxedCache(store=store, clock=clock)
    assert fresh.get("k") is None
    assert store.get_item(f"{CACHE_KEY_PREFIX}k") is None


def test_expired_memory_entry_is_evicted_from_both_tiers(cache, store, clock):
    cache.set("k", "v", ttl_s=5)
    clock.advance(6)
    assert cache.get("k") is None
    assert cache.get_cache_sizes() == (0, 0)
    assert store.get_item(f"{CACHE_KEY_PREFIX}k") is None


def test_corrupt_persisted_payload_is_a_degraded_miss(cache, store):
    store.set_item(f"{CACHE_KEY_PREFIX}k", "{not json")
    lookup = cache.lookup("k")
    assert lookup.value is None
    assert not lookup.hit
    assert lookup.degraded
    assert cache.stats.storage_errors == 1


def test_persisted_payload_without_record_fields_is_a_degraded_miss(cache, store):
    store.set_item(f"{CACHE_KEY_PREFIX}k", json.dumps({"data": 1, "timestamp": "soon"}))
    lookup = cache.lookup("k")
    assert not lookup.hit and lookup.degraded


def test_quota_exceeded_keeps_memory_write(clock):
    cache = TimeBoxedCache(store=MemoryStore(quota_bytes=10), clock=clock)
    result = cache.set("k", {"big": "x" * 100})
    assert not result.persisted
    assert result.degraded
    assert "quota" in result.error
    assert cache.get("k") == {"big": "x" * 100}


def test_disabled_storage_degrades_to_memory_only(clock):
    cache = TimeBoxedCache(store=MemoryStore(enabled=False), clock=clock)
    assert cache.set("k", 1).degraded
    assert cache.lookup("k").tier == TIER_MEMORY

    cache.drop_memory_tier()
    lookup = cache.lookup("k")
    assert not lookup.hit
    assert lookup.degraded
    assert cache.clear().degraded


def test_unserializable_value_is_memory_only(cache):
    value = {"when": object()}
    result = cache.set("k", value)
    assert not result.persisted
    assert cache.get("k") is value


def test_failed_remove_of_expired_entry_is_swallowed(clock):
    store = FailingRemoveStore()
    TimeBoxedCache(store=store, clock=clock).set("k", "v", ttl_s=1)
    clock.advance(2)
    lookup = TimeBoxedCache(store=store, clock=clock).lookup("k")
    assert not lookup.hit
    assert lookup.degraded


def test_memory_only_cache_without_store(clock):
    cache = TimeBoxedCache(clock=clock)
    result = cache.set("k", "v")
    assert not result.persisted and not result.degraded
    assert cache.get("k") == "v"
    cache.drop_memory_tier()
    assert cache.get("k") is None


# ============================================================================
# clear / delete
# ============================================================================

def test_clear_only_touches_own_namespace(cache, store):
    store.set_item("theme", "dark")
    store.set_item("other_cache_k", "keep")
    for key in ("a", "b", "github_projects_data"):
        cache.set(key, key.upper())

    assert cache.clear().persisted
    for key in ("a", "b", "github_projects_data"):
        assert cache.get(key) is None
    assert store.get_item("theme") == "dark"
    assert store.get_item("other_cache_k") == "keep"
    assert sorted(store.keys()) == ["other_cache_k", "theme"]


def test_delete_evicts_both_tiers(cache, store):
    cache.set("k", "v")
    cache.set("other", "w")
    cache.delete("k")
    assert cache.get("k") is None
    assert cache.get("other") == "w"
    assert store.get_item(f"{CACHE_KEY_PREFIX}k") is None


def test_custom_prefix_namespaces_are_independent(store, clock):
    a = TimeBoxedCache(store=store, prefix="a_", clock=clock)
    b = TimeBoxedCache(store=store, prefix="b_", clock=clock)
    a.set("k", 1)
    b.set("k", 2)
    a.clear()
    b.drop_memory_tier()
    assert b.get("k") == 2
    assert a.get("k") is None


# ============================================================================
# Disk-backed store end to end
# ============================================================================

def test_json_file_store_survives_new_cache_instance(tmp_path, clock):
    path = tmp_path / "cache" / "github_cache.json"
    TimeBoxedCache(store=JsonFileStore(path=path), clock=clock).set("snap", {"n": [1, 2]}, ttl_s=60)

    reopened = TimeBoxedCache(store=JsonFileStore(path=path), clock=clock)
    assert reopened.get("snap") == {"n": [1, 2]}
    assert reopened.get_cache_sizes() == (1, 1)


def test_cache_entry_from_record_rejects_foreign_values():
    with pytest.raises(ValueError):
        CacheEntry.from_record("k", ["data"])
    with pytest.raises(ValueError):
        CacheEntry.from_record("k", {"data": 1})
    entry = CacheEntry.from_record("k", {"data": 1, "timestamp": 10, "expiry": 5})
    assert entry.is_live(14.9) and not entry.is_live(15)
