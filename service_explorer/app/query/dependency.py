"""
Dependent query chains.

A chain is an ordered list of stages. The first stage's key is chosen by
the caller (`select`); every later stage derives its key from the previous
stage's successful payload through a dependency edge. A stage is only
fetched once everything upstream of it has succeeded.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from shared.errors import ErrorInfo
from shared.logging import get_logger
from ..caching.keys import QueryKey
from ..caching.query_cache import CacheEntry, QueryCache, QueryStatus
from ..caching.scheduler import FetchFn, FetchScheduler
from .retention import StaleRetention, ViewState


DependencyEdge = Callable[[Any], Optional[QueryKey]]


class ChainState(str, Enum):
    """Where a chain stands, seen from the stage below the reported level."""
    UNSELECTED = "unselected"
    UPSTREAM_LOADING = "upstream_loading"
    UPSTREAM_ERROR = "upstream_error"
    UPSTREAM_READY = "upstream_ready"


def _never_empty(key: QueryKey) -> bool:
    return False


@dataclass
class QueryStage:
    """One fetch in a chain."""
    name: str
    fetch: FetchFn
    stale_time: float
    edge: Optional[DependencyEdge] = None
    is_empty: Callable[[QueryKey], bool] = _never_empty
    empty_result: Callable[[], Any] = list


@dataclass(frozen=True)
class ChainSnapshot:
    state: ChainState
    level: int
    error: Optional[ErrorInfo] = None
    stages: Dict[str, ViewState] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "level": self.level,
            "error": self.error,
            "stages": {name: view.to_dict() for name, view in self.stages.items()},
        }


class DependencyChain:
    """Drives a chain of dependent queries from cache change events."""

    def __init__(
        self,
        name: str,
        cache: QueryCache,
        scheduler: FetchScheduler,
        stages: Sequence[QueryStage],
    ):
        if not stages:
            raise ValueError("A dependency chain needs at least one stage")
        if any(stage.edge is None for stage in stages[1:]):
            raise ValueError("Every stage after the first needs a dependency edge")

        self.name = name
        self.cache = cache
        self.scheduler = scheduler
        self.stages: List[QueryStage] = list(stages)
        self.logger = get_logger(f"explorer.chain.{name}")

        self._keys: List[Optional[QueryKey]] = [None] * len(self.stages)
        self._activated: List[Optional[QueryKey]] = [None] * len(self.stages)
        self._retention = [StaleRetention(cache) for _ in self.stages]
        self._listeners: List[Callable[[], None]] = []
        self._evaluating = False
        self._dirty = False
        self._unsubscribe = cache.subscribe_all(self._on_cache_change)

    def key_for(self, stage_name: str) -> Optional[QueryKey]:
        return self._keys[self._index(stage_name)]

    def select(self, key: Optional[QueryKey]) -> None:
        """Choose the root key; None returns the chain to UNSELECTED."""
        if key == self._keys[0]:
            return

        self.logger.debug(
            "Chain selection changed",
            previous=str(self._keys[0]) if self._keys[0] else None,
            selected=str(key) if key else None
        )
        self._deactivate(1)
        self._keys[0] = key
        self._activated[0] = None
        self.evaluate()

    def evaluate(self) -> None:
        """Recompute stage keys and schedule whatever is now due."""
        if self._evaluating:
            self._dirty = True
            return

        self._evaluating = True
        try:
            self._dirty = True
            while self._dirty:
                self._dirty = False
                self._evaluate_once()
        finally:
            self._evaluating = False
        self._notify()

    def _evaluate_once(self) -> None:
        drop_from: Optional[int] = 0 if self._keys[0] is None else None
        for index, stage in enumerate(self.stages):
            key = self._keys[index]
            if key is None:
                self._deactivate(index + 1)
                break

            entry = self._activate(index, stage, key)
            if entry.status is not QueryStatus.SUCCESS:
                self._deactivate(index + 1)
                if entry.status is QueryStatus.ERROR:
                    drop_from = index + 1
                break

            if index + 1 < len(self.stages):
                downstream = self.stages[index + 1].edge(entry.data)
                if downstream != self._keys[index + 1]:
                    self._deactivate(index + 1)
                    self._keys[index + 1] = downstream

        for index, retention in enumerate(self._retention):
            retention.track(self._keys[index])

        # Nothing selected, or a failed upstream that never resolves its dependents: drop old data
        if drop_from is not None:
            for retention in self._retention[drop_from:]:
                retention.reset()

    def _activate(self, index: int, stage: QueryStage, key: QueryKey) -> CacheEntry:
        if stage.is_empty(key):
            entry = self.cache.get(key)
            if entry.status is not QueryStatus.SUCCESS:
                # Nothing to resolve: settle without a fetch
                self.cache.set(
                    key,
                    status=QueryStatus.SUCCESS,
                    data=stage.empty_result(),
                    error=None,
                    fetched_at=self.cache.clock()
                )
            return self.cache.get(key)

        entry = self.cache.get(key)
        # Errors are not retried automatically; revisiting the key or an explicit refetch does it
        if entry.status is QueryStatus.ERROR and self._activated[index] == key:
            return entry

        self._activated[index] = key
        self.scheduler.schedule(key, stage.fetch, stage.stale_time)
        return self.cache.get(key)

    def _deactivate(self, start: int) -> None:
        """Drop keys from ``start`` downward, cancelling their pending fetches."""
        for index in range(start, len(self._keys)):
            key = self._keys[index]
            if key is None:
                continue
            self._keys[index] = None
            self._activated[index] = None
            if self.scheduler.cancel(key):
                self.logger.debug("Cancelled downstream fetch", stage=self.stages[index].name, key=str(key))

    def refetch(self, stage_name: Optional[str] = None) -> None:
        """Invalidate one stage (or every active stage) so it loads again."""
        indexes = [self._index(stage_name)] if stage_name else range(len(self.stages))
        # Invalidating an upstream key re-evaluates the chain and drops the keys below it
        keys = [self._keys[index] for index in indexes]
        for key in keys:
            if key is not None:
                self.cache.invalidate(key)
        self.evaluate()

    def state(self) -> Tuple[ChainState, int, Optional[ErrorInfo]]:
        """Chain state, the stage index it refers to, and any upstream error."""
        if self._keys[0] is None:
            return ChainState.UNSELECTED, 0, None

        for index, key in enumerate(self._keys):
            if key is None:
                return ChainState.UPSTREAM_READY, index - 1, None
            entry = self.cache.peek(key)
            if entry is None or entry.status in (QueryStatus.IDLE, QueryStatus.LOADING):
                return ChainState.UPSTREAM_LOADING, index, None
            if entry.status is QueryStatus.ERROR:
                return ChainState.UPSTREAM_ERROR, index, entry.error

        return ChainState.UPSTREAM_READY, len(self._keys) - 1, None

    def snapshot(self) -> ChainSnapshot:
        state, level, error = self.state()
        stages = {}
        for index, stage in enumerate(self.stages):
            pending = state is ChainState.UPSTREAM_LOADING and level < index
            stages[stage.name] = self._retention[index].snapshot(pending=pending)
        return ChainSnapshot(state=state, level=level, error=error, stages=stages)

    def in_flight(self) -> List[Any]:
        """Tasks currently loading for this chain's active keys."""
        tasks = []
        for key in self._keys:
            if key is not None:
                task = self.scheduler.in_flight(key)
                if task is not None:
                    tasks.append(task)
        return tasks

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._unsubscribe()
        self._listeners.clear()

    def _index(self, stage_name: str) -> int:
        for index, stage in enumerate(self.stages):
            if stage.name == stage_name:
                return index
        raise KeyError(stage_name)

    def _on_cache_change(self, key: QueryKey, entry: CacheEntry) -> None:
        if key in self._keys:
            self.evaluate()
        elif any(retention.previous == key for retention in self._retention):
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
