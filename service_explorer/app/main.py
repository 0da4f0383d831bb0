"""
Catalog Explorer service.

Exposes explorer sessions over HTTP: each session holds its own query cache
and the character, episode and location views built on it.
"""

from typing import Any, Dict, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.logging import set_session_context
from .adapters.catalog_client import CatalogClient
from .domain.requests import CharacterFilters, EpisodeFilters, LocationInput
from .session import ExplorerSession, SessionRegistry


class ExplorerService(BaseService):
    """Explorer service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, catalog_client: Optional[CatalogClient] = None):
        super().__init__("explorer", 8000, config=config)
        self.catalog_client = catalog_client or CatalogClient(
            self.config.catalog_base_url,
            timeout=self.config.http_timeout_seconds,
            relation_concurrency=self.config.relation_concurrency,
        )
        self.sessions = SessionRegistry(
            self._new_session,
            max_sessions=self.config.max_sessions,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.sessions.close_all()

        self._setup_explorer_routes()

    def _new_session(self) -> ExplorerSession:
        return ExplorerSession(self.config, self.catalog_client, metrics=self.metrics)

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"catalog": self.config.catalog_base_url}

    def _session(self, session_id: str, view: Optional[str] = None) -> ExplorerSession:
        session = self.sessions.get(session_id)
        set_session_context(session.session_id, view)
        return session

    async def _render(self, view: Any, wait: bool) -> Dict[str, Any]:
        if wait:
            await view.settle()
        return view.to_dict()

    def _setup_explorer_routes(self):
        """Set up explorer routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "explorer",
                "message": "Catalog Explorer",
                "version": "1.0.0"
            }

        @self.app.post("/api/v1/sessions", status_code=201)
        async def open_session():
            """Open a new explorer session."""
            session = await self.sessions.open()
            set_session_context(session.session_id)
            return session.describe()

        @self.app.delete("/api/v1/sessions/{session_id}")
        async def close_session(session_id: str):
            """Close a session, cancelling its pending work."""
            set_session_context(session_id)
            await self.sessions.close(session_id)
            return {"session_id": session_id, "closed": True}

        @self.app.put("/api/v1/sessions/{session_id}/characters")
        async def update_characters(session_id: str, filters: CharacterFilters, wait: bool = Query(False)):
            """Apply raw character search inputs."""
            view = self._session(session_id, "characters").characters
            fields = filters.model_fields_set
            if "name" in fields:
                view.set_name(filters.name or "")
            if "species" in fields:
                view.set_species(filters.species or "")
            if "status" in fields:
                view.set_status(filters.status)
            if "page" in fields and filters.page is not None:
                if fields & {"name", "species"}:
                    # An explicit page wins over the reset a settled filter causes
                    view.flush()
                view.set_page(filters.page)
            return await self._render(view, wait)

        @self.app.get("/api/v1/sessions/{session_id}/characters")
        async def get_characters(session_id: str, wait: bool = Query(False)):
            """Current character view."""
            view = self._session(session_id, "characters").characters
            view.refresh()
            return await self._render(view, wait)

        @self.app.put("/api/v1/sessions/{session_id}/episodes")
        async def update_episodes(session_id: str, filters: EpisodeFilters, wait: bool = Query(False)):
            """Apply raw episode list inputs."""
            view = self._session(session_id, "episodes").episodes
            fields = filters.model_fields_set
            if "name" in fields:
                view.set_name(filters.name or "")
            if "page" in fields and filters.page is not None:
                if "name" in fields:
                    view.flush()
                view.set_page(filters.page)
            return await self._render(view, wait)

        @self.app.get("/api/v1/sessions/{session_id}/episodes")
        async def get_episodes(session_id: str, wait: bool = Query(False)):
            """Current episode view."""
            view = self._session(session_id, "episodes").episodes
            view.refresh()
            return await self._render(view, wait)

        @self.app.put("/api/v1/sessions/{session_id}/locations")
        async def update_locations(session_id: str, body: LocationInput, wait: bool = Query(False)):
            """Apply the location search text and/or selection."""
            view = self._session(session_id, "locations").locations
            fields = body.model_fields_set
            if "query" in fields:
                view.set_query(body.query or "")
            if "selected_id" in fields:
                view.select(body.selected_id)
            return await self._render(view, wait)

        @self.app.get("/api/v1/sessions/{session_id}/locations")
        async def get_locations(session_id: str, wait: bool = Query(False)):
            """Current location explorer view."""
            view = self._session(session_id, "locations").locations
            view.search.refresh()
            view.chain.evaluate()
            return await self._render(view, wait)

        @self.app.post("/api/v1/sessions/{session_id}/{view_name}/refetch")
        async def refetch_view(session_id: str, view_name: str, wait: bool = Query(False)):
            """Explicitly re-trigger a view's queries."""
            view = self._session(session_id, view_name).view(view_name)
            view.refetch()
            return await self._render(view, wait)


def create_app(config: Optional[ServiceConfig] = None, catalog_client: Optional[CatalogClient] = None):
    """Create FastAPI application."""
    service = ExplorerService(config or get_config("explorer", 8000), catalog_client)
    return service.app


if __name__ == "__main__":
    service = ExplorerService()
    service.run()
