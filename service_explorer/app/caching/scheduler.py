"""
Single-flight fetch scheduler with last-request-wins acceptance.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from shared.errors import ErrorInfo, ExplorerException
from shared.logging import get_logger
from .keys import QueryKey
from .query_cache import CacheEntry, QueryCache, QueryStatus

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


FetchFn = Callable[[QueryKey], Awaitable[Any]]
FetchHook = Callable[[FetchFn], FetchFn]


@dataclass
class _InFlight:
    token: int
    task: "asyncio.Task[None]"
    previous_status: QueryStatus


class FetchScheduler:
    """Issues fetches for cache keys.

    At most one fetch per key is logically in flight; callers asking for the
    same key while it loads join the existing task. Every scheduled fetch
    bumps the key's request token, and a response is written to the cache
    only while its token is still current, so a slow superseded response can
    never overwrite a newer one.
    """

    def __init__(
        self,
        cache: QueryCache,
        *,
        fetch_hook: Optional[FetchHook] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.fetch_hook = fetch_hook
        self.metrics = metrics
        self.logger = get_logger("explorer.scheduler")
        self._in_flight: Dict[QueryKey, _InFlight] = {}

    def in_flight(self, key: QueryKey) -> Optional["asyncio.Task[None]"]:
        """Return the current in-flight task for ``key``, if any."""
        record = self._current(key)
        return record.task if record else None

    def _current(self, key: QueryKey) -> Optional[_InFlight]:
        record = self._in_flight.get(key)
        if record is None or record.task.done():
            return None
        entry = self.cache.peek(key)
        if entry is None or entry.request_id != record.token:
            return None
        return record

    def schedule(
        self,
        key: QueryKey,
        fetch: FetchFn,
        stale_time: float,
        *,
        force: bool = False,
    ) -> Optional["asyncio.Task[None]"]:
        """Start (or join) a fetch for ``key`` without waiting for it.

        Returns the in-flight task, or None when the cached entry is fresh.
        Must be called from a running event loop.
        """
        entry = self.cache.get(key)

        current = self._current(key)
        if current is not None and not force:
            self._count("query_coalesced_total", key)
            return current.task

        if not force and not self.cache.is_stale(entry, stale_time):
            self._count("query_cache_hits_total", key)
            return None

        self._count("query_cache_misses_total", key)
        previous_status = current.previous_status if current else entry.status
        token = entry.request_id + 1
        self.cache.set(key, status=QueryStatus.LOADING, request_id=token)

        task = asyncio.get_running_loop().create_task(self._run(key, token, fetch))
        self._in_flight[key] = _InFlight(token=token, task=task, previous_status=previous_status)
        self.logger.debug("Fetch scheduled", key=str(key), request_id=token)
        return task

    async def ensure_fresh(
        self,
        key: QueryKey,
        fetch: FetchFn,
        stale_time: float,
        *,
        force: bool = False,
    ) -> CacheEntry:
        """Make sure ``key`` holds a fresh result and return its entry.

        Fresh entries return immediately. Otherwise this waits for the fetch
        (joined or newly started), and for any fetch that superseded it.
        """
        task = self.schedule(key, fetch, stale_time, force=force)
        while task is not None:
            await asyncio.shield(task)
            task = self.in_flight(key)
        return self.cache.get(key)

    async def refetch(self, key: QueryKey, fetch: FetchFn, stale_time: float) -> CacheEntry:
        """Invalidate ``key`` and fetch it again."""
        self.cache.invalidate(key)
        return await self.ensure_fresh(key, fetch, stale_time)

    def cancel(self, key: QueryKey) -> bool:
        """Logically cancel the in-flight fetch for ``key``.

        The network call is left to finish; its response is discarded because
        the token moves on. The entry returns to the status it had before the
        fetch was scheduled.
        """
        record = self._current(key)
        if record is None:
            return False

        del self._in_flight[key]
        entry = self.cache.get(key)
        self.cache.set(key, status=record.previous_status, request_id=entry.request_id + 1)
        self.logger.debug("Fetch cancelled", key=str(key), request_id=record.token)
        return True

    async def shutdown(self) -> None:
        """Cancel all outstanding fetch tasks."""
        tasks = [record.task for record in self._in_flight.values() if not record.task.done()]
        self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, key: QueryKey, token: int, fetch: FetchFn) -> None:
        """Execute one fetch and accept its result only if still current."""
        call = self.fetch_hook(fetch) if self.fetch_hook else fetch
        start = time.perf_counter()
        patch: Dict[str, Any]

        try:
            data = await call(key)
        except ExplorerException as exc:
            self.logger.warning(
                "Fetch failed",
                key=str(key),
                request_id=token,
                code=exc.code,
                error=exc.message
            )
            patch = {"status": QueryStatus.ERROR, "error": exc.to_error_info()}
            result = "error"
        except Exception as exc:  # failures stay local to the key
            self.logger.error(
                "Unexpected fetch failure",
                key=str(key),
                request_id=token,
                error=str(exc),
                exc_info=True
            )
            patch = {
                "status": QueryStatus.ERROR,
                "error": ErrorInfo(
                    code="UNEXPECTED_ERROR",
                    message=f"Unexpected error while loading data: {exc}",
                    details={"exception": type(exc).__name__}
                ),
            }
            result = "error"
        else:
            patch = {"status": QueryStatus.SUCCESS, "data": data, "error": None}
            result = "success"
        finally:
            record = self._in_flight.get(key)
            if record is not None and record.token == token:
                del self._in_flight[key]
            self._observe_duration(key, time.perf_counter() - start)

        entry = self.cache.peek(key)
        if entry is None or entry.request_id != token:
            self.logger.debug(
                "Discarded superseded response",
                key=str(key),
                request_id=token,
                current_request_id=entry.request_id if entry else None
            )
            self._count("query_discarded_total", key)
            return

        self._count("query_fetches_total", key, result=result)
        self.cache.set(key, fetched_at=self.cache.clock(), **patch)
        self.logger.debug("Fetch accepted", key=str(key), request_id=token, result=result)

    def _count(self, metric_name: str, key: QueryKey, **labels: str) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, scope=key.scope, **labels)

    def _observe_duration(self, key: QueryKey, duration: float) -> None:
        if self.metrics:
            self.metrics.observe_histogram("query_fetch_duration_seconds", duration, scope=key.scope)
