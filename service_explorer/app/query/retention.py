"""
Keep the last good result on screen while a new key loads.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from shared.errors import ErrorInfo
from ..caching.keys import QueryKey
from ..caching.query_cache import QueryCache, QueryStatus


@dataclass(frozen=True)
class ViewState:
    """What a UI collaborator renders for one query."""
    data: Any = None
    is_loading: bool = False
    is_stale: bool = False
    error: Optional[ErrorInfo] = None
    key: Optional[QueryKey] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": str(self.key) if self.key is not None else None,
            "data": self.data,
            "is_loading": self.is_loading,
            "is_stale": self.is_stale,
            "error": self.error,
        }


class StaleRetention:
    """Tracks the active key and the last key that produced data.

    When the active key changes, the previous key's last successful data
    stays visible (``is_stale=True``) until the new key succeeds or fails.
    A key that never succeeded is never used as a stale source.
    """

    def __init__(self, cache: QueryCache):
        self.cache = cache
        self._key: Optional[QueryKey] = None
        self._previous: Optional[QueryKey] = None

    @property
    def key(self) -> Optional[QueryKey]:
        return self._key

    @property
    def previous(self) -> Optional[QueryKey]:
        return self._previous

    def track(self, key: Optional[QueryKey]) -> None:
        """Make ``key`` the active key, remembering the outgoing one if it had data."""
        if key == self._key:
            return
        if self._key is not None:
            outgoing = self.cache.peek(self._key)
            if outgoing is not None and outgoing.has_data:
                self._previous = self._key
        self._key = key

    def reset(self) -> None:
        """Forget the stale source."""
        self._previous = None

    def snapshot(self, pending: bool = False) -> ViewState:
        """Current view for the active key.

        ``pending`` marks that a key is expected but not yet known (an
        upstream stage is still loading).
        """
        key = self._key
        entry = self.cache.peek(key) if key is not None else None

        if entry is not None:
            if entry.status is QueryStatus.SUCCESS:
                return ViewState(data=entry.data, key=key)
            if entry.status is QueryStatus.ERROR:
                return ViewState(error=entry.error, key=key)
            if entry.has_data:
                # Refreshing its own data
                return ViewState(data=entry.data, is_loading=True, is_stale=True, key=key)

        loading = pending or key is not None
        if not loading:
            return ViewState(key=key)

        source = self.cache.peek(self._previous) if self._previous is not None else None
        if source is not None and source.has_data:
            return ViewState(data=source.data, is_loading=True, is_stale=True, key=key)
        return ViewState(is_loading=True, key=key)
