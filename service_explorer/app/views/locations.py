"""
Location explorer: a debounced location search plus the location -> residents chain.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from ..adapters.catalog_client import CatalogClient
from ..caching.keys import QueryKey, build_key
from ..caching.query_cache import QueryCache
from ..caching.scheduler import FetchScheduler
from ..domain.schemas import Character, Location
from ..query.dependency import ChainSnapshot, DependencyChain, QueryStage
from ..query.retention import ViewState
from .base import QueryView


class LocationSearch(QueryView):
    """Location options for a typed query; disabled while the query is empty."""

    name = "locations"

    def __init__(
        self,
        cache: QueryCache,
        scheduler: FetchScheduler,
        client: CatalogClient,
        stale_time: float = 60.0,
        debounce_interval: float = 0.3,
    ):
        super().__init__(cache, scheduler, stale_time)
        self.client = client
        self._query = self.debounced(debounce_interval, "query", initial="")

    @property
    def query(self) -> str:
        return self._query.latest

    def set_query(self, value: str) -> None:
        self._query.push(value)

    def build_key(self) -> Optional[QueryKey]:
        key = build_key("loc-search", name=self._query.value)
        return key if key.get("name") else None

    async def fetch(self, key: QueryKey) -> List[Location]:
        return await self.client.search_locations(key.get("name"))


class LocationExplorer:
    """Search for a location, select one, and browse its residents.

    The selected location and its residents form a dependency chain: the
    residents key is derived from the location's resident references, so it
    is unknown until the location has loaded.
    """

    def __init__(
        self,
        cache: QueryCache,
        scheduler: FetchScheduler,
        client: CatalogClient,
        search_stale_time: float = 60.0,
        location_stale_time: float = 60.0,
        resident_stale_time: float = 30.0,
        debounce_interval: float = 0.3,
    ):
        self.client = client
        self.search = LocationSearch(
            cache,
            scheduler,
            client,
            stale_time=search_stale_time,
            debounce_interval=debounce_interval,
        )
        self.chain = DependencyChain(
            "location",
            cache,
            scheduler,
            [
                QueryStage("location", self._fetch_location, location_stale_time),
                QueryStage(
                    "residents",
                    self._fetch_residents,
                    resident_stale_time,
                    edge=_residents_key,
                    is_empty=lambda key: not key.get("refs"),
                ),
            ],
        )
        self._selected_id: Optional[int] = None

    @property
    def selected_id(self) -> Optional[int]:
        return self._selected_id

    def set_query(self, value: str) -> None:
        self.search.set_query(value)

    def select(self, location_id: Optional[int]) -> None:
        """Select a location by id; None clears the selection."""
        self._selected_id = location_id
        key = build_key("location", id=location_id) if location_id is not None else None
        self.chain.select(key)

    def refetch(self) -> None:
        self.search.refetch()
        self.chain.refetch()

    def snapshot(self) -> Dict[str, Any]:
        return {"options": self.search.snapshot(), "chain": self.chain.snapshot()}

    def to_dict(self) -> Dict[str, Any]:
        chain: ChainSnapshot = self.chain.snapshot()
        options: ViewState = self.search.snapshot()
        return {
            "query": self.search.query,
            "selected_id": self._selected_id,
            "options": options.to_dict(),
            "chain": chain.to_dict(),
        }

    async def settle(self) -> Dict[str, Any]:
        """Apply the pending search, then wait until the whole chain stops loading."""
        await self.search.settle()
        tasks = self.chain.in_flight()
        while tasks:
            await asyncio.gather(*(asyncio.shield(task) for task in tasks))
            tasks = self.chain.in_flight()
        return self.to_dict()

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        unsubscribers = [self.search.subscribe(listener), self.chain.subscribe(listener)]

        def unsubscribe() -> None:
            for remove in unsubscribers:
                remove()

        return unsubscribe

    def close(self) -> None:
        self.search.close()
        self.chain.close()

    async def _fetch_location(self, key: QueryKey) -> Location:
        return await self.client.get_location(key.get("id"))

    async def _fetch_residents(self, key: QueryKey) -> List[Character]:
        residents = await self.client.resolve_characters(list(key.get("refs", ())))
        # Key refs sort as strings; show residents in catalog id order
        return sorted(residents, key=lambda character: character.id)


def _residents_key(location: Location) -> QueryKey:
    return build_key("residents", refs=location.residents)
