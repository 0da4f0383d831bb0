"""
Character search view.
"""

from typing import Any, Dict, Optional

from ..adapters.catalog_client import CatalogClient
from ..caching.keys import QueryKey, build_key
from ..caching.query_cache import QueryCache
from ..caching.scheduler import FetchScheduler
from ..domain.schemas import Character, Paged, normalize_status
from .base import PagedQueryView


class CharacterSearch(PagedQueryView):
    """Characters filtered by name, status and species, one page at a time.

    Name and species are typed, so they are debounced; status is a select
    and applies immediately.
    """

    name = "characters"

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
        self._species = self.debounced(debounce_interval, "species", initial="")
        self._status: Optional[str] = None

    @property
    def status(self) -> Optional[str]:
        return self._status

    def set_name(self, value: str) -> None:
        self._name.push(value)

    def set_species(self, value: str) -> None:
        self._species.push(value)

    def set_status(self, value: Optional[str]) -> None:
        """Apply a status filter; blank clears it, unknown values raise ValidationError."""
        status = normalize_status(value)
        if status == self._status:
            return
        self._status = status
        self._page = 1
        self.refresh()

    def build_key(self) -> QueryKey:
        return build_key(
            "characters",
            name=self._name.value,
            status=self._status,
            species=self._species.value,
            page=self._page,
        )

    async def fetch(self, key: QueryKey) -> Paged[Character]:
        return await self.client.list_characters(
            name=key.get("name"),
            status=key.get("status"),
            species=key.get("species"),
            page=key.get("page", 1),
        )

    def filters(self) -> Dict[str, Any]:
        return {
            "name": self._name.latest,
            "status": self._status,
            "species": self._species.latest,
            "page": self._page,
        }

    def to_dict(self) -> Dict[str, Any]:
        state = super().to_dict()
        state["filters"] = self.filters()
        return state
