"""
Catalog client for the Explorer.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import httpx

from shared.logging import get_logger
from shared.errors import ResponseError, ShapeError, TransportError
from ..domain.schemas import Character, Episode, Location, Paged, parse_payload


class CatalogClient:
    """Client for the public read-only catalog REST API."""

    def __init__(self, base_url: str, timeout: float = 10.0, relation_concurrency: int = 8):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.relation_concurrency = max(1, relation_concurrency)
        self.logger = get_logger("explorer.catalog_client")

    async def list_characters(
        self,
        name: Optional[str] = None,
        status: Optional[str] = None,
        species: Optional[str] = None,
        page: Optional[int] = 1,
    ) -> Paged[Character]:
        """Fetch one page of characters matching the filters."""
        params = self._params(name=name, status=status, species=species, page=page)
        payload = await self._get_collection("/character", params)
        return parse_payload(Paged[Character], payload, "character page")

    async def list_episodes(self, name: Optional[str] = None, page: Optional[int] = 1) -> Paged[Episode]:
        """Fetch one page of episodes."""
        params = self._params(name=name, page=page)
        payload = await self._get_collection("/episode", params)
        return parse_payload(Paged[Episode], payload, "episode page")

    async def search_locations(self, name: Optional[str]) -> List[Location]:
        """Return locations whose name matches; an empty query makes no call."""
        if not name:
            return []
        payload = await self._get_collection("/location", {"name": name})
        return parse_payload(Paged[Location], payload, "location search").results

    async def get_location(self, location_id: int) -> Location:
        """Fetch a single location including its resident references."""
        url = f"{self.base_url}/location/{location_id}"
        payload = await self._get(url, not_found_message="Location not found")
        return parse_payload(Location, payload, "location")

    async def resolve_characters(self, refs: Sequence[str]) -> List[Character]:
        """Resolve character references (URLs) in order; an empty list makes no call."""
        if not refs:
            return []

        semaphore = asyncio.Semaphore(self.relation_concurrency)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            async def _resolve(ref: str) -> Character:
                async with semaphore:
                    payload = await self._send(client, ref, not_found_message="Character not found")
                return parse_payload(Character, payload, "character")

            results = await asyncio.gather(*(_resolve(ref) for ref in refs), return_exceptions=True)

        for outcome in results:
            if isinstance(outcome, BaseException):
                raise outcome

        self.logger.debug("Resolved character references", count=len(results))
        return list(results)

    async def _get_collection(self, path: str, params: Dict[str, Any]) -> Any:
        """GET a collection; the catalog's 404 for no matches becomes an empty page."""
        url = f"{self.base_url}{path}"
        payload = await self._get(url, params, empty_on_not_found=True)
        if payload is None:
            self.logger.debug("No catalog matches", url=url, params=params)
            return Paged.empty().model_dump()
        return payload

    async def _get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        empty_on_not_found: bool = False,
        not_found_message: Optional[str] = None,
    ) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._send(
                client,
                url,
                params,
                empty_on_not_found=empty_on_not_found,
                not_found_message=not_found_message,
            )

    async def _send(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        empty_on_not_found: bool = False,
        not_found_message: Optional[str] = None,
    ) -> Any:
        """Execute one GET and map failures onto the explorer error taxonomy."""
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            self.logger.warning("Catalog request failed", url=url, params=params, error=str(exc))
            raise TransportError(
                f"Could not reach the catalog: {exc}",
                details={"url": url, "error_type": type(exc).__name__}
            ) from exc

        if response.status_code == 404 and empty_on_not_found:
            return None

        if not response.is_success:
            self.logger.warning(
                "Catalog request returned an error status",
                url=url,
                params=params,
                status_code=response.status_code
            )
            message = not_found_message if response.status_code == 404 else None
            raise ResponseError(
                response.status_code,
                message,
                details={"url": url, "body": response.text[:500]}
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ShapeError(
                "Catalog returned a response that is not valid JSON",
                details={"url": url}
            ) from exc

    @staticmethod
    def _params(**values: Any) -> Dict[str, Any]:
        return {name: value for name, value in values.items() if value not in (None, "")}
