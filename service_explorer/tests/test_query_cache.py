"""
Unit tests for the session query cache.
"""

import pytest

from service_explorer.app.caching.keys import build_key
from service_explorer.app.caching.query_cache import QueryCache, QueryStatus
from shared.errors import ErrorInfo


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestQueryCache:
    """Test cases for QueryCache."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        """Create QueryCache instance."""
        return QueryCache(clock=clock)

    @pytest.fixture
    def key(self):
        return build_key("characters", name="rick", page=1)

    def test_get_creates_idle_entry(self, cache, key):
        """First access creates an idle entry with no data."""
        entry = cache.get(key)

        assert entry.status is QueryStatus.IDLE
        assert entry.data is None
        assert entry.request_id == 0
        assert not entry.has_data
        assert key in cache
        assert len(cache) == 1

    def test_peek_does_not_create(self, cache, key):
        """peek never creates entries."""
        assert cache.peek(key) is None
        assert key not in cache

    def test_success_records_data_time(self, cache, key, clock):
        """A successful write stamps when the data was produced."""
        entry = cache.set(key, status=QueryStatus.SUCCESS, data=["rick"], fetched_at=clock())

        assert entry.status is QueryStatus.SUCCESS
        assert entry.data == ["rick"]
        assert entry.data_updated_at == clock.now
        assert entry.has_data

    def test_set_rejects_unknown_fields(self, cache, key):
        with pytest.raises(ValueError):
            cache.set(key, colour="blue")

    def test_is_stale_by_window(self, cache, key, clock):
        """SUCCESS entries stay fresh for the stale window, then go stale."""
        entry = cache.set(key, status=QueryStatus.SUCCESS, data=[], fetched_at=clock())

        assert not cache.is_stale(entry, 30)
        clock.advance(30)
        assert not cache.is_stale(entry, 30)
        clock.advance(0.5)
        assert cache.is_stale(entry, 30)

    def test_idle_and_error_are_stale(self, cache, key, clock):
        """Entries that never succeeded, or failed, always need a fetch."""
        assert cache.is_stale(cache.get(key), 60)

        entry = cache.set(
            key,
            status=QueryStatus.ERROR,
            error=ErrorInfo(code="TRANSPORT_ERROR", message="down"),
            fetched_at=clock()
        )
        assert cache.is_stale(entry, 60)

    def test_invalidate_keeps_data_and_bumps_token(self, cache, key, clock):
        """Invalidation resets status but keeps the last data for stale display."""
        cache.set(key, status=QueryStatus.SUCCESS, data=["rick"], fetched_at=clock(), request_id=4)

        assert cache.invalidate(key) is True

        entry = cache.get(key)
        assert entry.status is QueryStatus.IDLE
        assert entry.data == ["rick"]
        assert entry.has_data
        assert entry.fetched_at is None
        assert entry.request_id == 5
        assert cache.is_stale(entry, 30)

    def test_invalidate_is_idempotent(self, cache, key, clock):
        """Invalidating twice leaves the same observable state as once."""
        cache.set(key, status=QueryStatus.SUCCESS, data=["rick"], fetched_at=clock())

        cache.invalidate(key)
        first = cache.get(key)
        once = (first.status, first.data, first.error, first.fetched_at)

        cache.invalidate(key)
        second = cache.get(key)

        assert (second.status, second.data, second.error, second.fetched_at) == once

    def test_invalidate_unknown_key(self, cache, key):
        """Unknown keys are not created by invalidation."""
        assert cache.invalidate(key) is False
        assert key not in cache

    def test_subscribe_per_key(self, cache, key):
        """Per-key listeners hear only their key."""
        events = []
        other = build_key("episodes", page=1)
        unsubscribe = cache.subscribe(key, lambda k, e: events.append((k, e.status)))

        cache.set(key, status=QueryStatus.LOADING)
        cache.set(other, status=QueryStatus.LOADING)

        assert events == [(key, QueryStatus.LOADING)]

        unsubscribe()
        cache.set(key, status=QueryStatus.IDLE)
        assert len(events) == 1

    def test_subscribe_all(self, cache, key):
        """Global listeners hear every change, including invalidation."""
        events = []
        cache.subscribe_all(lambda k, e: events.append(k))

        cache.set(key, status=QueryStatus.LOADING)
        cache.invalidate(key)

        assert events == [key, key]

    def test_listener_failure_does_not_abort_mutation(self, cache, key):
        """A failing listener is logged and the mutation still applies."""
        seen = []

        def broken(k, e):
            raise RuntimeError("boom")

        cache.subscribe_all(broken)
        cache.subscribe_all(lambda k, e: seen.append(e.status))

        entry = cache.set(key, status=QueryStatus.LOADING)

        assert entry.status is QueryStatus.LOADING
        assert seen == [QueryStatus.LOADING]

    def test_clear(self, cache, key):
        cache.get(key)
        cache.clear()

        assert len(cache) == 0
        assert cache.keys() == []
