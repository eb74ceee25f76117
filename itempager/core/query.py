"""Paginated, filtered and ordered windows over the collection store."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Sequence

from .model import PageRequest, PageResult
from .store import CollectionStore


def _nth_unlisted(listed_positions: Sequence[int], k: int) -> int:
    """Return the position of the ``k``-th (0-based) entry not in ``listed_positions``.

    ``listed_positions`` must be sorted. The result is the least fixed point of
    ``p = k + |{q in listed_positions : q <= p}|``, which is never itself listed.
    """
    position = k
    while True:
        candidate = k + bisect_right(listed_positions, position)
        if candidate == position:
            return position
        position = candidate


def _listed_ids(store: CollectionStore, term: str) -> list[int]:
    """Return the override ids matching ``term``, each at its last occurrence."""
    listed: list[int] = []
    seen: set[int] = set()
    for item_id in reversed(store.order):
        if item_id in seen:
            continue
        seen.add(item_id)
        if store.matches(item_id, term):
            listed.append(item_id)
    listed.reverse()
    return listed


class QueryEngine:
    """Turn a :class:`PageRequest` into a :class:`PageResult`.

    The filtered sequence is ordered by the override (listed ids first, in
    override order) followed by unlisted ids ascending. Only the requested
    window is materialised: unlisted ids are located by skipping the listed
    positions with a binary search instead of sorting the whole collection.
    """

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def query(self, request: PageRequest) -> PageResult:
        """Return the window described by ``request``."""
        term = request.search or ""
        matching = self.store.matching_ids(term)
        total = len(matching)

        listed = _listed_ids(self.store, term)

        start = request.offset
        stop = min(start + request.page_size, total)
        ids: list[int] = []
        if start < stop:
            if start < len(listed):
                ids.extend(listed[start:stop])
            remaining = stop - start - len(ids)
            if remaining > 0:
                listed_positions = sorted(bisect_left(matching, item_id) for item_id in listed)
                listed_lookup = set(listed_positions)
                position = _nth_unlisted(listed_positions, max(0, start - len(listed)))
                while remaining > 0 and position < total:
                    if position not in listed_lookup:
                        ids.append(matching[position])
                        remaining -= 1
                    position += 1

        return PageResult(
            items=[self.store.get(item_id) for item_id in ids],
            total=total,
            page=request.page,
            page_size=request.page_size,
        )


__all__ = ["QueryEngine"]
