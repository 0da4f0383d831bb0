"""
Validated shapes of catalog responses.
"""

from typing import Any, Generic, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from shared.errors import ShapeError, ValidationError

T = TypeVar("T")
M = TypeVar("M")

CHARACTER_STATUSES = ("Alive", "Dead", "unknown")


class PageInfo(BaseModel):
    count: int = Field(default=0, ge=0)
    pages: int = Field(default=0, ge=0)
    next: Optional[str] = None
    prev: Optional[str] = None


class Paged(BaseModel, Generic[T]):
    """Collection envelope: paging info plus one page of results."""
    info: PageInfo = Field(default_factory=PageInfo)
    results: List[T] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "Paged[T]":
        return cls(info=PageInfo(), results=[])


class Character(BaseModel):
    id: int
    name: str
    status: Literal["Alive", "Dead", "unknown"]
    species: str
    type: str = ""
    gender: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None


class Episode(BaseModel):
    id: int
    name: str
    episode: str
    air_date: str
    characters: List[str] = Field(default_factory=list)
    url: Optional[str] = None


class Location(BaseModel):
    id: int
    name: str
    type: str = ""
    dimension: Optional[str] = None
    residents: List[str] = Field(default_factory=list)
    url: Optional[str] = None


def parse_payload(model: Type[M], payload: Any, what: str) -> M:
    """Validate ``payload`` against ``model``, failing closed with ShapeError."""
    try:
        return TypeAdapter(model).validate_python(payload)
    except PydanticValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        ]
        raise ShapeError(
            f"Unexpected {what} response from catalog",
            details={"errors": problems}
        ) from exc


def normalize_status(value: Optional[str]) -> Optional[str]:
    """Map a user-supplied status onto the catalog's spelling; blank means no filter."""
    if value is None or not value.strip():
        return None
    for status in CHARACTER_STATUSES:
        if status.lower() == value.strip().lower():
            return status
    raise ValidationError(
        f"Unknown status '{value}'",
        details={"allowed": list(CHARACTER_STATUSES)}
    )
