"""
Session-scoped query cache.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from shared.errors import ErrorInfo
from shared.logging import get_logger
from .keys import QueryKey


class QueryStatus(str, Enum):
    """Lifecycle of a cache entry."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CacheEntry:
    """The cache's record for one key."""
    key: QueryKey
    status: QueryStatus = QueryStatus.IDLE
    data: Any = None
    error: Optional[ErrorInfo] = None
    fetched_at: Optional[float] = None
    data_updated_at: Optional[float] = None
    request_id: int = 0

    @property
    def has_data(self) -> bool:
        """True once any fetch for this key has succeeded."""
        return self.data_updated_at is not None


CacheListener = Callable[[QueryKey, CacheEntry], None]

_PATCHABLE = frozenset({"status", "data", "error", "fetched_at", "data_updated_at", "request_id"})


class QueryCache:
    """Mapping from query key to cache entry with per-key change events.

    Mutations are synchronous, so under a single event loop each `set` or
    `invalidate` is atomic and no locking is needed. Entries are created on
    first access and live until the session ends.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.logger = get_logger("explorer.query_cache")
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._listeners: Dict[QueryKey, List[CacheListener]] = {}
        self._global_listeners: List[CacheListener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    def get(self, key: QueryKey) -> CacheEntry:
        """Return the entry for ``key``, creating an idle one if absent."""
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key)
        return entry

    def peek(self, key: QueryKey) -> Optional[CacheEntry]:
        """Return the entry for ``key`` without creating it."""
        return self._entries.get(key)

    def set(self, key: QueryKey, **patch: Any) -> CacheEntry:
        """Merge a partial update into the entry for ``key``."""
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValueError(f"Unknown cache entry fields: {sorted(unknown)}")

        entry = self.get(key)
        if "status" in patch:
            patch["status"] = QueryStatus(patch["status"])
        if patch.get("status") is QueryStatus.SUCCESS and "data" in patch and "data_updated_at" not in patch:
            fetched_at = patch.get("fetched_at")
            patch["data_updated_at"] = fetched_at if fetched_at is not None else self.clock()

        for field_name, value in patch.items():
            setattr(entry, field_name, value)

        self._emit(key, entry)
        return entry

    def invalidate(self, key: QueryKey) -> bool:
        """Reset ``key`` to idle so the next access refetches.

        The request token is bumped so any in-flight response for the key is
        discarded. Last successful data is kept for stale display. Unknown
        keys are left alone and no entry is created.
        """
        entry = self._entries.get(key)
        if entry is None:
            return False

        entry.status = QueryStatus.IDLE
        entry.error = None
        entry.fetched_at = None
        entry.request_id += 1
        self.logger.debug("Invalidated query", key=str(key), request_id=entry.request_id)
        self._emit(key, entry)
        return True

    def is_stale(self, entry: CacheEntry, stale_time: float) -> bool:
        """Whether ``entry`` needs a refetch given a stale window in seconds."""
        if entry.status in (QueryStatus.IDLE, QueryStatus.ERROR):
            return True
        if entry.fetched_at is None:
            return True
        return self.clock() - entry.fetched_at > stale_time

    def clear(self) -> None:
        """Drop every entry and listener."""
        self._entries.clear()
        self._listeners.clear()
        self._global_listeners.clear()

    def subscribe(self, key: QueryKey, listener: CacheListener) -> Callable[[], None]:
        """Call ``listener`` whenever the entry for ``key`` changes."""
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def subscribe_all(self, listener: CacheListener) -> Callable[[], None]:
        """Call ``listener`` on every entry change."""
        self._global_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._global_listeners:
                self._global_listeners.remove(listener)

        return unsubscribe

    def _emit(self, key: QueryKey, entry: CacheEntry) -> None:
        listeners = list(self._listeners.get(key, ())) + list(self._global_listeners)
        for listener in listeners:
            try:
                listener(key, entry)
            except Exception as exc:  # listener failures never abort a mutation
                self.logger.error(
                    "Cache listener failed",
                    key=str(key),
                    error=str(exc),
                    exc_info=True
                )
