"""
Unit tests for stale retention.
"""

import pytest

from service_explorer.app.caching.keys import build_key
from service_explorer.app.caching.query_cache import QueryCache, QueryStatus
from service_explorer.app.query.retention import StaleRetention
from shared.errors import ErrorInfo


class TestStaleRetention:
    """Test cases for StaleRetention."""

    @pytest.fixture
    def cache(self):
        return QueryCache()

    @pytest.fixture
    def retention(self, cache):
        return StaleRetention(cache)

    @pytest.fixture
    def page_one(self):
        return build_key("characters", page=1)

    @pytest.fixture
    def page_two(self):
        return build_key("characters", page=2)

    def _succeed(self, cache, key, data):
        cache.set(key, status=QueryStatus.SUCCESS, data=data, error=None, fetched_at=cache.clock())

    def test_nothing_tracked(self, retention):
        state = retention.snapshot()

        assert state.data is None
        assert not state.is_loading
        assert not state.is_stale
        assert state.error is None

    def test_first_load_has_no_stale_data(self, cache, retention, page_one):
        cache.set(page_one, status=QueryStatus.LOADING)
        retention.track(page_one)

        state = retention.snapshot()
        assert state.is_loading
        assert state.data is None
        assert not state.is_stale

    def test_fresh_success(self, cache, retention, page_one):
        self._succeed(cache, page_one, ["p1"])
        retention.track(page_one)

        state = retention.snapshot()
        assert state.data == ["p1"]
        assert not state.is_loading
        assert not state.is_stale

    def test_previous_data_shown_while_new_key_loads(self, cache, retention, page_one, page_two):
        """Page 2 loading keeps page 1 on screen, marked stale."""
        self._succeed(cache, page_one, ["p1"])
        retention.track(page_one)

        cache.set(page_two, status=QueryStatus.LOADING)
        retention.track(page_two)

        state = retention.snapshot()
        assert state.data == ["p1"]
        assert state.is_loading
        assert state.is_stale
        assert state.key == page_two

        self._succeed(cache, page_two, ["p2"])

        state = retention.snapshot()
        assert state.data == ["p2"]
        assert not state.is_stale
        assert not state.is_loading

    def test_new_key_error_replaces_stale_data(self, cache, retention, page_one, page_two):
        """Stale data is shown only until the new key settles."""
        self._succeed(cache, page_one, ["p1"])
        retention.track(page_one)
        cache.set(page_two, status=QueryStatus.LOADING)
        retention.track(page_two)

        error = ErrorInfo(code="RESPONSE_ERROR", message="Catalog responded with status 500")
        cache.set(page_two, status=QueryStatus.ERROR, error=error)

        state = retention.snapshot()
        assert state.error == error
        assert state.data is None
        assert not state.is_loading

    def test_key_without_success_is_never_a_stale_source(self, cache, retention, page_one, page_two):
        cache.set(page_one, status=QueryStatus.LOADING)
        retention.track(page_one)
        cache.set(page_two, status=QueryStatus.LOADING)
        retention.track(page_two)

        state = retention.snapshot()
        assert retention.previous is None
        assert state.data is None
        assert state.is_loading

    def test_refetch_of_own_data_is_stale(self, cache, retention, page_one):
        """A key reloading its own data shows it as stale."""
        self._succeed(cache, page_one, ["p1"])
        retention.track(page_one)
        cache.invalidate(page_one)
        cache.set(page_one, status=QueryStatus.LOADING)

        state = retention.snapshot()
        assert state.data == ["p1"]
        assert state.is_loading
        assert state.is_stale

    def test_pending_key_uses_previous_data(self, cache, retention, page_one):
        """An unknown downstream key still shows the last data while upstream loads."""
        self._succeed(cache, page_one, ["p1"])
        retention.track(page_one)
        retention.track(None)

        assert retention.snapshot().data is None

        state = retention.snapshot(pending=True)
        assert state.data == ["p1"]
        assert state.is_stale
        assert state.is_loading

    def test_reset_forgets_stale_source(self, cache, retention, page_one, page_two):
        self._succeed(cache, page_one, ["p1"])
        retention.track(page_one)
        cache.set(page_two, status=QueryStatus.LOADING)
        retention.track(page_two)

        retention.reset()

        state = retention.snapshot()
        assert state.data is None
        assert state.is_loading

    def test_to_dict(self, cache, retention, page_one):
        self._succeed(cache, page_one, ["p1"])
        retention.track(page_one)

        assert retention.snapshot().to_dict() == {
            "key": "characters?page=1",
            "data": ["p1"],
            "is_loading": False,
            "is_stale": False,
            "error": None,
        }
