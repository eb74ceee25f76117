"""Domain models for the windowed item collection."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError


@dataclass(frozen=True)
class Item:
    """Immutable element of the canonical collection."""

    id: int
    value: int


@dataclass(frozen=True)
class PageRequest:
    """Describe one window of the filtered, ordered collection."""

    page: int = 1
    page_size: int = 20
    search: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.page, bool) or not isinstance(self.page, int):
            raise ValidationError(f"page must be an integer: {self.page!r}")
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int):
            raise ValidationError(f"page size must be an integer: {self.page_size!r}")
        if self.page < 1:
            raise ValidationError(f"page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValidationError(f"page size must be >= 1, got {self.page_size}")
        if self.search is None:
            object.__setattr__(self, "search", "")

    @property
    def offset(self) -> int:
        """Index of the first row covered by this request."""
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class PageResult:
    """Represent a paginated slice of items."""

    items: list[Item]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        """Number of pages of ``page_size`` needed to cover ``total``."""
        return math.ceil(self.total / self.page_size) if self.page_size else 0


@dataclass(frozen=True)
class StateSnapshot:
    """Order override and selection captured together with their version."""

    order: tuple[int, ...] = ()
    selected: frozenset[int] = field(default_factory=frozenset)
    version: int = 0


def item_to_dict(item: Item) -> dict[str, int]:
    """Convert ``item`` into a plain ``dict``."""
    return {"id": item.id, "value": item.value}


def item_from_dict(data: Mapping[str, Any]) -> Item:
    """Create :class:`Item` from a plain ``dict``."""
    for key in ("id", "value"):
        if key not in data:
            raise KeyError(f"missing required field: {key}")
    return Item(id=int(data["id"]), value=int(data["value"]))


def page_to_dict(result: PageResult) -> dict[str, Any]:
    """Convert ``result`` into the wire representation used by the HTTP API."""
    return {
        "items": [item_to_dict(item) for item in result.items],
        "total": result.total,
        "page": result.page,
        "totalPages": result.total_pages,
    }


def page_from_dict(data: Mapping[str, Any], *, page_size: int) -> PageResult:
    """Create :class:`PageResult` from its wire representation."""
    raw_items = data.get("items") or []
    if not isinstance(raw_items, Sequence):
        raise TypeError("items must be a list")
    return PageResult(
        items=[item_from_dict(entry) for entry in raw_items],
        total=int(data.get("total", 0)),
        page=int(data.get("page", 1)),
        page_size=page_size,
    )


def state_to_dict(state: StateSnapshot) -> dict[str, Any]:
    """Convert ``state`` into the wire representation used by the HTTP API."""
    return {
        "order": list(state.order),
        "selected": sorted(state.selected),
        "version": state.version,
    }


def state_from_dict(data: Mapping[str, Any]) -> StateSnapshot:
    """Create :class:`StateSnapshot` from its wire representation."""
    order = data.get("order") or []
    selected = data.get("selected") or []
    return StateSnapshot(
        order=tuple(int(entry) for entry in order),
        selected=frozenset(int(entry) for entry in selected),
        version=int(data.get("version", 0)),
    )


__all__ = [
    "Item",
    "PageRequest",
    "PageResult",
    "StateSnapshot",
    "item_from_dict",
    "item_to_dict",
    "page_from_dict",
    "page_to_dict",
    "state_from_dict",
    "state_to_dict",
]
