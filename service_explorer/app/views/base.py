"""
Single-query views.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger
from ..caching.keys import QueryKey
from ..caching.query_cache import CacheEntry, QueryCache, QueryStatus
from ..caching.scheduler import FetchScheduler
from ..query.debounce import Debouncer
from ..query.retention import StaleRetention, ViewState


class QueryView:
    """A view backed by one query whose key is built from user inputs.

    Subclasses implement `build_key` and `fetch`. Raw inputs go through
    setters; `refresh` is called whenever the effective key may have changed.
    """

    name = "view"

    def __init__(self, cache: QueryCache, scheduler: FetchScheduler, stale_time: float):
        self.cache = cache
        self.scheduler = scheduler
        self.stale_time = stale_time
        self.logger = get_logger(f"explorer.views.{self.name}")
        self._retention = StaleRetention(cache)
        self._debouncers: List[Debouncer] = []
        self._listeners: List[Callable[[], None]] = []
        self._activated: Optional[QueryKey] = None
        self._unsubscribe = cache.subscribe_all(self._on_cache_change)

    def build_key(self) -> Optional[QueryKey]:
        """Key for the current settled inputs, or None while the view is disabled."""
        raise NotImplementedError

    async def fetch(self, key: QueryKey) -> Any:
        raise NotImplementedError

    @property
    def key(self) -> Optional[QueryKey]:
        return self._retention.key

    def debounced(self, interval: float, name: str, initial: Any = None) -> Debouncer:
        """Create a debounced input whose settled changes refresh the view."""
        debouncer = Debouncer(interval, initial=initial, on_settle=self._on_input_settled, name=name)
        self._debouncers.append(debouncer)
        return debouncer

    def _on_input_settled(self, value: Any) -> None:
        self.refresh()

    def refresh(self) -> Optional["asyncio.Task[None]"]:
        """Track the current key and make sure it is loading or fresh."""
        key = self.build_key()
        self._retention.track(key)
        task = None
        if key is not None:
            entry = self.cache.get(key)
            # Errors are retried only when the key changes or on explicit refetch
            if not (entry.status is QueryStatus.ERROR and self._activated == key):
                task = self.scheduler.schedule(key, self.fetch, self.stale_time)
        self._activated = key
        self._notify()
        return task

    def refetch(self) -> Optional["asyncio.Task[None]"]:
        """Invalidate the current key and load it again."""
        key = self.build_key()
        if key is not None:
            self.cache.invalidate(key)
            self._activated = None
        return self.refresh()

    def flush(self) -> None:
        """Settle pending debounced input now."""
        for debouncer in self._debouncers:
            debouncer.flush()

    async def settle(self) -> ViewState:
        """Apply pending debounced input, wait for the fetch, return the view."""
        self.flush()
        self.refresh()
        key = self.key
        task = self.scheduler.in_flight(key) if key is not None else None
        while task is not None:
            await asyncio.shield(task)
            task = self.scheduler.in_flight(key)
        return self.snapshot()

    def snapshot(self) -> ViewState:
        return self._retention.snapshot()

    def to_dict(self) -> Dict[str, Any]:
        return self.snapshot().to_dict()

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener`` whenever this view's state may have changed."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        for debouncer in self._debouncers:
            debouncer.cancel()
        self._unsubscribe()
        self._listeners.clear()

    def _on_cache_change(self, key: QueryKey, entry: CacheEntry) -> None:
        if key == self._retention.key or key == self._retention.previous:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class PagedQueryView(QueryView):
    """A query view with a 1-based page counter that resets on filter changes."""

    def __init__(self, cache: QueryCache, scheduler: FetchScheduler, stale_time: float):
        super().__init__(cache, scheduler, stale_time)
        self._page = 1

    @property
    def page(self) -> int:
        return self._page

    def set_page(self, page: int) -> None:
        if page < 1:
            raise ValidationError("Page numbers start at 1", details={"page": page})
        self._page = page
        self.refresh()

    def _on_input_settled(self, value: Any) -> None:
        # A changed filter can leave the current page out of range
        self._page = 1
        self.refresh()

    @property
    def total_pages(self) -> int:
        data = self.snapshot().data
        info = getattr(data, "info", None)
        return info.pages if info is not None else 0

    def to_dict(self) -> Dict[str, Any]:
        state = self.snapshot().to_dict()
        state["page"] = self._page
        state["total_pages"] = self.total_pages
        return state
