"""
Tests for the TTL entry store and the real-time store.
"""
import pytest

from invcache.clock import ManualClock
from invcache.core import MISS
from invcache.realtime import RealTimeStore
from invcache.store import EntryStore


@pytest.fixture
def clock():
    return ManualClock(start=1000.0)


@pytest.fixture
def store(clock):
    return EntryStore(default_ttl=60.0, clock=clock)


# =============================================================================
# Entry store
# =============================================================================

def test_get_returns_value_within_ttl(store, clock):
    store.set("k", "v", ttl=10)
    clock.advance(9.999)
    assert store.get("k") == "v"


def test_get_at_ttl_boundary_is_miss_and_purges(store, clock):
    store.set("k", "v", ttl=10)
    clock.advance(10)
    assert store.get("k") is MISS
    assert "k" not in store
    assert len(store) == 0


def test_ana_scenario(store, clock):
    """set user_1 with a 1s TTL: hit at +0.5s, miss at +1.5s"""
    store.set("user_1", {"name": "Ana"}, ttl=1.0)
    clock.advance(0.5)
    assert store.get("user_1") == {"name": "Ana"}
    clock.advance(1.0)
    assert store.get("user_1") is MISS


def test_expired_entries_stay_until_read(store, clock):
    """No background sweeping: expiry is only detected on read"""
    store.set("k", "v", ttl=1)
    clock.advance(100)
    assert "k" in store
    assert store.peek("k").value == "v"
    assert "k" in store


def test_default_ttl_applied(store, clock):
    entry = store.set("k", "v")
    assert entry.ttl == 60.0
    assert entry.inserted_at == 1000.0


def test_none_is_a_cacheable_value(store):
    store.set("k", None)
    assert store.get("k") is None


def test_set_overwrites_with_new_timestamp(store, clock):
    store.set("k", "old", ttl=5)
    clock.advance(4)
    store.set("k", "new", ttl=5)
    clock.advance(4)
    assert store.get("k") == "new"


@pytest.mark.parametrize("ttl", [0, -1])
def test_non_positive_ttl_rejected(store, ttl):
    with pytest.raises(ValueError):
        store.set("k", "v", ttl=ttl)


def test_delete(store):
    store.set("k", "v")
    assert store.delete("k") is True
    assert store.delete("k") is False
    assert store.get("k") is MISS


def test_clear_pattern_only_touches_matching_keys(store, clock):
    store.set("products:list", 1)
    store.set("products:get:{\"id\":1}", 2)
    store.set("stock:level", 3)
    untouched = store.peek("stock:level")

    clock.advance(1)
    assert store.clear("products") == 2

    assert store.get("products:list") is MISS
    assert store.get("products:get:{\"id\":1}") is MISS
    after = store.peek("stock:level")
    assert after is untouched
    assert after.value == 3
    assert after.inserted_at == 1000.0


def test_clear_without_pattern_removes_everything(store):
    store.set("a", 1)
    store.set("b", 2)
    assert store.clear() == 2
    assert store.keys() == []


def test_clear_many(store):
    store.set("product_5", 1)
    store.set("products_all", 2)
    store.set("stock_5", 3)
    assert store.clear_many(["product_5", "products_"]) == 2
    assert store.keys() == ["stock_5"]


def test_clear_with_empty_pattern_removes_everything(store):
    store.set("a", 1)
    store.set("b", 2)
    assert store.clear("") == 2
    assert len(store) == 0


def test_clear_many_empty_pattern_matches_every_key(store):
    store.set("a", 1)
    store.set("b", 2)
    assert store.clear_many([""]) == 2
    assert store.keys() == []


# =============================================================================
# Real-time store
# =============================================================================

def test_realtime_max_age_is_chosen_per_read(clock):
    live = RealTimeStore(clock=clock)
    live.set("dashboard:live", {"sales": 10})
    clock.advance(60)

    assert live.get("dashboard:live", max_age=30) is MISS
    # Strict read must not destroy the snapshot for a looser reader
    assert live.get("dashboard:live", max_age=300) == {"sales": 10}


def test_realtime_boundary(clock):
    live = RealTimeStore(clock=clock)
    live.set("k", "v")
    clock.advance(30)
    assert live.get("k", max_age=30) is MISS
    assert live.get("k", max_age=30.001) == "v"


def test_realtime_clear(clock):
    live = RealTimeStore(clock=clock)
    live.set("a", 1)
    live.set("b", 2)
    assert live.clear() == 2
    assert len(live) == 0
    assert live.get_entry("a") is None


def test_realtime_rejects_non_positive_max_age(clock):
    live = RealTimeStore(clock=clock)
    with pytest.raises(ValueError):
        live.get("k", max_age=0)
