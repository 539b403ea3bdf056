# tests/test_cache.py

"""
Tests for the context cache.
"""

import pytest
from core.cache import ContextCache, context_key, GLOBAL_SCOPE


@pytest.fixture
def cache(clock):
    return ContextCache("test", ttl_seconds=300, sweep_interval_seconds=60, clock=clock)


def test_context_key_uses_global_scope():
    assert context_key("U1") == ("U1", GLOBAL_SCOPE)
    assert context_key("U1", "tour-123") != context_key("U1")


def test_context_key_never_collides_with_global_scope():
    assert context_key("U1", "global") != context_key("U1")
    assert context_key("U1", "") != context_key("U1")


def test_cache_set_and_get(cache):
    cache.set(("U1", "global"), "value")
    assert cache.get(("U1", "global")) == "value"


def test_cache_expiration(cache, clock):
    """Entries expire lazily on read once the TTL has passed."""
    cache.set(("U1", "global"), "value")

    clock.advance(299)
    assert cache.get(("U1", "global")) == "value"

    clock.advance(1)
    assert cache.get(("U1", "global")) is None
    assert cache.size() == 0


def test_cache_delete(cache):
    cache.set(("U1", "global"), "value")
    cache.delete(("U1", "global"))
    assert cache.get(("U1", "global")) is None


def test_cache_clear(cache):
    cache.set(("U1", "global"), "a")
    cache.set(("U2", "global"), "b")

    cache.clear()

    assert cache.size() == 0


def test_invalidate_user_drops_every_scope_for_that_user_only(cache):
    cache.set(("U1", "global"), "a")
    cache.set(("U1", "tour-123"), "b")
    cache.set(("U2", "global"), "c")

    removed = cache.invalidate_user("U1")

    assert removed == 2
    assert cache.get(("U1", "global")) is None
    assert cache.get(("U1", "tour-123")) is None
    assert cache.get(("U2", "global")) == "c"


def test_write_triggers_sweep_after_interval(cache, clock):
    cache.set(("U1", "global"), "old")
    clock.advance(301)

    # never read again, but the next write past the sweep interval removes it
    cache.set(("U2", "global"), "new")

    assert cache.size() == 1


def test_cleanup_expired(cache, clock):
    cache.set(("U1", "global"), "a")
    clock.advance(100)
    cache.set(("U2", "global"), "b")
    clock.advance(250)

    assert cache.cleanup_expired() == 1
    assert cache.get(("U2", "global")) == "b"


def test_get_or_resolve_only_resolves_on_miss(cache, clock):
    calls = []

    def resolver():
        calls.append(1)
        return "resolved"

    assert cache.get_or_resolve(("U1", "global"), resolver) == "resolved"
    assert cache.get_or_resolve(("U1", "global"), resolver) == "resolved"
    assert len(calls) == 1

    clock.advance(300)
    cache.get_or_resolve(("U1", "global"), resolver)
    assert len(calls) == 2


def test_get_or_resolve_does_not_cache_failures(cache):
    def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_resolve(("U1", "global"), failing)

    assert cache.size() == 0


def test_invalidation_during_resolve_is_not_overwritten(cache):
    """A value resolved before an invalidation must not be stored after it."""
    def stale_resolver():
        cache.invalidate_user("U1")
        return "stale"

    assert cache.get_or_resolve(("U1", "global"), stale_resolver) == "stale"
    assert cache.get(("U1", "global")) is None

    assert cache.get_or_resolve(("U1", "global"), lambda: "fresh") == "fresh"
    assert cache.get(("U1", "global")) == "fresh"


def test_clear_during_resolve_is_not_overwritten(cache):
    def stale_resolver():
        cache.clear()
        return "stale"

    cache.get_or_resolve(("U1", "global"), stale_resolver)

    assert cache.size() == 0


def test_other_users_invalidation_does_not_block_store(cache):
    def resolver():
        cache.invalidate_user("U2")
        return "value"

    cache.get_or_resolve(("U1", "global"), resolver)

    assert cache.get(("U1", "global")) == "value"
