"""Substring search helpers for the item collection."""

from __future__ import annotations

from array import array
from collections.abc import Iterable, Sequence

from .model import Item


def matches_search(value: int, term: str) -> bool:
    """Return ``True`` when the decimal text of ``value`` contains ``term``.

    An empty ``term`` matches every value. Matching is a plain substring test
    on the textual representation, not a numeric range or prefix match.
    """
    if not term:
        return True
    return term in str(value)


def search_items(items: Iterable[Item], term: str) -> list[Item]:
    """Return ``items`` whose value matches ``term`` preserving their order."""
    if not term:
        return list(items)
    return [item for item in items if term in str(item.value)]


def matching_ids(size: int, term: str) -> Sequence[int]:
    """Return ascending ids in ``[1, size]`` whose value matches ``term``.

    The canonical set has ``id == value`` so the identifiers double as values.
    An empty ``term`` returns a lazy :class:`range`; other terms return a
    compact ``array("l")`` rather than a list of int objects.
    """
    if not term:
        return range(1, size + 1)
    return array("l", (candidate for candidate in range(1, size + 1) if term in str(candidate)))


__all__ = ["matches_search", "matching_ids", "search_items"]
