"""TTL cache expiry and eviction"""
import pytest

from gatepass.utils.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_entry_expires_after_ttl(clock):
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("sv1", "user")

    clock.now = 9.9
    assert cache.get("sv1") == "user"

    clock.now = 10
    assert cache.get("sv1") is None
    assert cache.misses == 1 and cache.hits == 1


def test_oldest_entry_evicted_at_capacity(clock):
    cache = TTLCache(ttl_seconds=60, max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert "a" not in cache
    assert cache.get("b") == 2 and cache.get("c") == 3
    assert len(cache) == 2


def test_per_entry_ttl_and_purge(clock):
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("short", 1, ttl_seconds=1)
    cache.set("long", 2)

    clock.now = 5
    assert cache.purge_expired() == 1
    assert len(cache) == 1


def test_invalidate_and_clear(clock):
    cache = TTLCache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert "a" not in cache
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_entries": 0}])
def test_rejects_non_positive_bounds(kwargs):
    with pytest.raises(ValueError):
        TTLCache(**kwargs)
