"""
UI-facing views over the query cache.
"""

from .base import PagedQueryView, QueryView
from .characters import CharacterSearch
from .episodes import EpisodeList
from .locations import LocationExplorer, LocationSearch

__all__ = [
    "QueryView",
    "PagedQueryView",
    "CharacterSearch",
    "EpisodeList",
    "LocationSearch",
    "LocationExplorer",
]
