"""
Explorer sessions.

A session owns one query cache, one fetch scheduler and the three views
that share them. Nothing is cached across sessions.
"""

import time
from typing import TYPE_CHECKING, Callable, Dict, Optional

from shared.config import BaseConfig, get_config
from shared.errors import NotFoundError
from shared.logging import get_logger, new_session_id
from shared.retry import RetryConfig, retry_hook
from .adapters.catalog_client import CatalogClient
from .caching.query_cache import QueryCache
from .caching.scheduler import FetchScheduler
from .views import CharacterSearch, EpisodeList, LocationExplorer

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ExplorerSession:
    """One user's browsing session."""

    def __init__(
        self,
        config: Optional[BaseConfig] = None,
        client: Optional[CatalogClient] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or get_config()
        self.session_id = session_id or new_session_id()
        self.client = client or CatalogClient(
            self.config.catalog_base_url,
            timeout=self.config.http_timeout_seconds,
            relation_concurrency=self.config.relation_concurrency,
        )
        self.logger = get_logger("explorer.session").bind(session_id=self.session_id)
        self.created_at = time.time()

        self.cache = QueryCache(clock=clock)
        self.scheduler = FetchScheduler(
            self.cache,
            fetch_hook=retry_hook(
                RetryConfig(
                    max_attempts=self.config.fetch_retry_attempts,
                    base_delay=self.config.fetch_retry_base_delay,
                    max_delay=self.config.fetch_retry_max_delay,
                )
            ),
            metrics=metrics,
        )

        self.characters = CharacterSearch(
            self.cache,
            self.scheduler,
            self.client,
            stale_time=self.config.character_stale_seconds,
            debounce_interval=self.config.search_debounce_seconds,
        )
        self.episodes = EpisodeList(
            self.cache,
            self.scheduler,
            self.client,
            stale_time=self.config.episode_stale_seconds,
            debounce_interval=self.config.search_debounce_seconds,
        )
        self.locations = LocationExplorer(
            self.cache,
            self.scheduler,
            self.client,
            search_stale_time=self.config.location_search_stale_seconds,
            location_stale_time=self.config.location_stale_seconds,
            resident_stale_time=self.config.resident_stale_seconds,
            debounce_interval=self.config.location_debounce_seconds,
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def view(self, name: str):
        """Look up a view by its route name."""
        views = {
            "characters": self.characters,
            "episodes": self.episodes,
            "locations": self.locations,
        }
        if name not in views:
            raise NotFoundError(f"Unknown view '{name}'", details={"view": name, "allowed": sorted(views)})
        return views[name]

    def describe(self) -> Dict[str, object]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at,
            "cached_queries": len(self.cache),
        }

    async def close(self) -> None:
        """Stop timers, cancel outstanding fetches and drop the cache."""
        if self._closed:
            return
        self._closed = True
        self.characters.close()
        self.episodes.close()
        self.locations.close()
        await self.scheduler.shutdown()
        self.cache.clear()
        self.logger.info("Session closed")


class SessionRegistry:
    """Open sessions by id."""

    def __init__(
        self,
        factory: Callable[[], ExplorerSession],
        max_sessions: int = 1000,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.factory = factory
        self.max_sessions = max_sessions
        self.metrics = metrics
        self.logger = get_logger("explorer.sessions")
        self._sessions: Dict[str, ExplorerSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    async def open(self) -> ExplorerSession:
        """Create a session, evicting the oldest one when the registry is full."""
        while len(self._sessions) >= self.max_sessions:
            oldest = next(iter(self._sessions))
            self.logger.info("Evicting oldest session", session_id=oldest)
            await self.close(oldest)

        session = self.factory()
        self._sessions[session.session_id] = session
        self._update_gauge()
        self.logger.info("Session opened", session_id=session.session_id)
        return session

    def get(self, session_id: str) -> ExplorerSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session not found", details={"session_id": session_id})
        return session

    async def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise NotFoundError("Session not found", details={"session_id": session_id})
        self._update_gauge()
        await session.close()

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)

    def _update_gauge(self) -> None:
        if self.metrics:
            self.metrics.set_gauge("active_sessions", len(self._sessions))
