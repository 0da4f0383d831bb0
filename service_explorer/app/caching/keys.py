"""
Canonical query keys.

A key identifies a request by its scope (which collection or entity kind it
targets) plus its normalised parameters. Parameters that are not applied
(None, empty or blank strings) are dropped entirely, so ``{"name": ""}``,
``{"name": None}`` and ``{}`` all produce the same key.
"""

from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterator, Mapping, Optional, Tuple

from shared.errors import ValidationError


@dataclass(frozen=True)
class QueryKey:
    """Ordered, hashable identity of a query."""

    scope: str
    params: Tuple[Tuple[str, Hashable], ...] = ()

    def get(self, name: str, default: Any = None) -> Any:
        """Return a parameter value, or ``default`` when not applied."""
        for param, value in self.params:
            if param == name:
                return value
        return default

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    def __iter__(self) -> Iterator[Any]:
        yield self.scope
        yield from self.params

    def __str__(self) -> str:
        if not self.params:
            return self.scope
        rendered = "&".join(f"{name}={_render(value)}" for name, value in self.params)
        return f"{self.scope}?{rendered}"


def _render(value: Any) -> str:
    if isinstance(value, tuple):
        return ",".join(str(item) for item in value)
    return str(value)


def _normalize(name: str, value: Any) -> Optional[Hashable]:
    """Normalise one parameter value; None means 'not applied'."""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        items = []
        for item in value:
            normalized = _normalize(name, item)
            if normalized is not None:
                items.append(normalized)
        try:
            return tuple(sorted(items))
        except TypeError as exc:
            raise ValidationError(
                f"Parameter '{name}' mixes incomparable values",
                details={"param": name}
            ) from exc
    raise ValidationError(
        f"Unsupported value for query parameter '{name}'",
        details={"param": name, "type": type(value).__name__}
    )


def build_key(scope: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> QueryKey:
    """Derive the canonical key for ``scope`` and its parameters."""
    if not scope:
        raise ValidationError("Query scope is required")

    merged: Dict[str, Any] = dict(params or {})
    merged.update(kwargs)

    normalized = []
    for name in sorted(merged):
        value = _normalize(name, merged[name])
        if value is not None:
            normalized.append((name, value))

    return QueryKey(scope=scope, params=tuple(normalized))
