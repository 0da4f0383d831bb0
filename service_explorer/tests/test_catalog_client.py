"""
Unit tests for the catalog client.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from service_explorer.app.adapters.catalog_client import CatalogClient
from service_explorer.app.domain.schemas import Character, Location, Paged
from shared.errors import ResponseError, ShapeError, TransportError


BASE_URL = "https://catalog.test/api"


def make_response(status_code, payload, url=BASE_URL):
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return httpx.Response(
        status_code=status_code,
        content=content,
        request=httpx.Request("GET", url)
    )


class TestCatalogClient:
    """Test cases for CatalogClient."""

    @pytest.fixture
    def catalog_client(self):
        """Create CatalogClient instance."""
        return CatalogClient(BASE_URL + "/", timeout=5.0, relation_concurrency=2)

    @pytest.fixture
    def rick(self):
        return {
            "id": 1,
            "name": "Rick Sanchez",
            "status": "Alive",
            "species": "Human",
            "type": "",
            "gender": "Male",
            "image": "https://catalog.test/api/character/avatar/1.jpeg",
            "url": "https://catalog.test/api/character/1"
        }

    @pytest.fixture
    def morty(self):
        return {
            "id": 2,
            "name": "Morty Smith",
            "status": "Alive",
            "species": "Human",
            "type": "",
            "gender": "Male",
            "image": "https://catalog.test/api/character/avatar/2.jpeg",
            "url": "https://catalog.test/api/character/2"
        }

    @pytest.fixture
    def character_page(self, rick, morty):
        return {
            "info": {"count": 2, "pages": 1, "next": None, "prev": None},
            "results": [rick, morty]
        }

    @pytest.mark.asyncio
    async def test_list_characters_success(self, catalog_client, character_page):
        """Filters are sent as query params and the page is parsed."""
        with patch('httpx.AsyncClient') as mock_client:
            get = mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=make_response(200, character_page)
            )

            result = await catalog_client.list_characters(name="rick", status="Alive", species="", page=2)

            assert isinstance(result, Paged)
            assert result.info.pages == 1
            assert [c.name for c in result.results] == ["Rick Sanchez", "Morty Smith"]
            assert isinstance(result.results[0], Character)
            get.assert_awaited_once_with(
                f"{BASE_URL}/character",
                params={"name": "rick", "status": "Alive", "page": 2}
            )
            mock_client.assert_called_with(timeout=5.0)

    @pytest.mark.asyncio
    async def test_collection_not_found_is_empty_page(self, catalog_client):
        """The catalog's 404 for no matches is an empty page, not an error."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=make_response(404, {"error": "There is nothing here"})
            )

            result = await catalog_client.list_episodes(name="no such episode", page=1)

            assert result.results == []
            assert result.info.pages == 0

    @pytest.mark.asyncio
    async def test_server_error_raises_response_error(self, catalog_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=make_response(502, {"error": "bad gateway"})
            )

            with pytest.raises(ResponseError) as exc_info:
                await catalog_client.list_characters(page=1)

            assert exc_info.value.status_code == 502
            assert exc_info.value.code == "RESPONSE_ERROR"

    @pytest.mark.asyncio
    async def test_transport_failure_raises_transport_error(self, catalog_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.ConnectError("Connection failed")
            )

            with pytest.raises(TransportError) as exc_info:
                await catalog_client.list_episodes(page=1)

            assert exc_info.value.details["error_type"] == "ConnectError"

    @pytest.mark.asyncio
    async def test_invalid_json_raises_shape_error(self, catalog_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=make_response(200, "<html>oops</html>")
            )

            with pytest.raises(ShapeError):
                await catalog_client.list_episodes(page=1)

    @pytest.mark.asyncio
    async def test_schema_mismatch_raises_shape_error(self, catalog_client):
        """Payloads that do not match the expected shape fail closed."""
        page = {"info": {"count": 1, "pages": 1}, "results": [{"id": "not-a-number"}]}

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=make_response(200, page)
            )

            with pytest.raises(ShapeError) as exc_info:
                await catalog_client.list_characters(page=1)

            assert exc_info.value.code == "SHAPE_ERROR"
            assert exc_info.value.details["errors"]

    @pytest.mark.asyncio
    async def test_search_locations_empty_query_makes_no_call(self, catalog_client):
        with patch('httpx.AsyncClient') as mock_client:
            result = await catalog_client.search_locations("")

            assert result == []
            mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_locations(self, catalog_client):
        page = {
            "info": {"count": 1, "pages": 1},
            "results": [{"id": 1, "name": "Earth (C-137)", "type": "Planet", "residents": []}]
        }

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=make_response(200, page)
            )

            result = await catalog_client.search_locations("earth")

            assert len(result) == 1
            assert isinstance(result[0], Location)
            assert result[0].name == "Earth (C-137)"

    @pytest.mark.asyncio
    async def test_get_location_not_found(self, catalog_client):
        """A missing location is an error with a readable message."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=make_response(404, {"error": "Location not found"})
            )

            with pytest.raises(ResponseError) as exc_info:
                await catalog_client.get_location(9999)

            assert exc_info.value.message == "Location not found"
            assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_resolve_characters_keeps_order(self, catalog_client, rick, morty):
        """Resolved characters follow the order of the references."""
        responses = {rick["url"]: rick, morty["url"]: morty}

        async def fake_get(url, params=None):
            return make_response(200, responses[url], url)

        with patch('httpx.AsyncClient') as mock_client:
            get = mock_client.return_value.__aenter__.return_value.get = AsyncMock(side_effect=fake_get)

            result = await catalog_client.resolve_characters([morty["url"], rick["url"]])

            assert [c.id for c in result] == [2, 1]
            assert get.await_count == 2
            assert mock_client.call_count == 1

    @pytest.mark.asyncio
    async def test_resolve_characters_empty_makes_no_call(self, catalog_client):
        with patch('httpx.AsyncClient') as mock_client:
            assert await catalog_client.resolve_characters([]) == []
            mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolve_characters_failure(self, catalog_client, rick):
        """One failing reference fails the whole resolution."""
        async def fake_get(url, params=None):
            if url == rick["url"]:
                return make_response(200, rick, url)
            return make_response(500, {"error": "boom"}, url)

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(side_effect=fake_get)

            with pytest.raises(ResponseError):
                await catalog_client.resolve_characters([rick["url"], "https://catalog.test/api/character/999"])
