"""
Episode list view.
"""

from typing import Any, Dict

from ..adapters.catalog_client import CatalogClient
from ..caching.keys import QueryKey, build_key
from ..caching.query_cache import QueryCache
from ..caching.scheduler import FetchScheduler
from ..domain.schemas import Episode, Paged
from .base import PagedQueryView


class EpisodeList(PagedQueryView):
    """Paged episodes, optionally filtered by a debounced name search."""

    name = "episodes"

    def __init__(
        self,
        cache: QueryCache,
        scheduler: FetchScheduler,
        client: CatalogClient,
        stale_time: float = 30.0,
        debounce_interval: float = 0.35,
    ):
        super().__init__(cache, scheduler, stale_time)
        self.client = client
        self._name = self.debounced(debounce_interval, "name", initial="")

    def set_name(self, value: str) -> None:
        self._name.push(value)

    def build_key(self) -> QueryKey:
        return build_key("episodes", name=self._name.value, page=self._page)

    async def fetch(self, key: QueryKey) -> Paged[Episode]:
        return await self.client.list_episodes(name=key.get("name"), page=key.get("page", 1))

    def to_dict(self) -> Dict[str, Any]:
        state = super().to_dict()
        state["filters"] = {"name": self._name.latest, "page": self._page}
        return state
