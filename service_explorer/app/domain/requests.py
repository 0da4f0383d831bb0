"""
Request models for the explorer API.

Every field is optional; only fields present in the body are applied, so a
PUT can change one filter without touching the others.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CharacterFilters(BaseModel):
    """Raw character search inputs."""
    name: Optional[str] = Field(None, description="Name search text (debounced)")
    status: Optional[str] = Field(None, description="Alive, Dead or unknown; blank clears the filter")
    species: Optional[str] = Field(None, description="Species search text (debounced)")
    page: Optional[int] = Field(None, ge=1, description="1-based page number")


class EpisodeFilters(BaseModel):
    """Raw episode list inputs."""
    name: Optional[str] = Field(None, description="Episode name search text (debounced)")
    page: Optional[int] = Field(None, ge=1, description="1-based page number")


class LocationInput(BaseModel):
    """Raw location explorer inputs."""
    query: Optional[str] = Field(None, description="Location search text (debounced)")
    selected_id: Optional[int] = Field(None, ge=1, description="Selected location id; null clears the selection")
