"""Order override helpers shared by the query engine and the client.

Both sides rank items with :func:`order_key`: ids present in the override come
first in override order, the rest follow in ascending id order. Sorting a
sequence that is already in this order is a no-op, which lets the client
re-apply the saved order to a freshly fetched page without disturbing it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TypeVar

from .model import Item

T = TypeVar("T")


def rank_map(order: Iterable[int]) -> dict[int, int]:
    """Map each id of ``order`` to its last position."""
    ranks: dict[int, int] = {}
    for position, item_id in enumerate(order):
        ranks[item_id] = position
    return ranks


def order_key(ranks: Mapping[int, int]) -> Callable[[Item], tuple[int, int]]:
    """Return a sort key ranking listed ids before unlisted ones."""

    def key(item: Item) -> tuple[int, int]:
        rank = ranks.get(item.id)
        if rank is None:
            return (1, item.id)
        return (0, rank)

    return key


def sort_by_order(items: Iterable[Item], order: Sequence[int]) -> list[Item]:
    """Return ``items`` sorted by the override ``order``."""
    result = list(items)
    if not order:
        return result
    result.sort(key=order_key(rank_map(order)))
    return result


def move_index(sequence: Sequence[T], source: int, destination: int) -> list[T]:
    """Return a copy of ``sequence`` with the entry at ``source`` moved to ``destination``."""
    size = len(sequence)
    if not 0 <= source < size:
        raise IndexError(f"source index {source} out of range")
    if not 0 <= destination < size:
        raise IndexError(f"destination index {destination} out of range")
    result = list(sequence)
    moved = result.pop(source)
    result.insert(destination, moved)
    return result


def reconcile_subset(
    full: Sequence[T],
    positions: Sequence[int],
    reordered: Sequence[T],
) -> list[T]:
    """Write ``reordered`` back into the slots ``positions`` of ``full``.

    ``positions`` are the ascending indices of the filtered entries inside
    ``full``. Entries outside the filtered view keep their slots, so only the
    relative order of the filtered entries changes.
    """
    if len(positions) != len(reordered):
        raise ValueError("positions and reordered entries differ in length")
    result = list(full)
    for slot, entry in zip(positions, reordered):
        result[slot] = entry
    return result


__all__ = [
    "move_index",
    "order_key",
    "rank_map",
    "reconcile_subset",
    "sort_by_order",
]
