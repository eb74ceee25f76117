"""Canonical item collection with its mutable order and selection overlay."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Iterable, Iterator, Sequence
from typing import overload

from .errors import ConflictError, ValidationError
from .model import Item, StateSnapshot
from .search import matches_search, matching_ids

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_SIZE = 1_000_000
_SEARCH_CACHE_SIZE = 8


class ItemRange(Sequence[Item]):
    """Lazy view over the canonical items ``1..size`` in natural id order."""

    __slots__ = ("_size",)

    def __init__(self, size: int) -> None:
        self._size = size

    def __len__(self) -> int:
        return self._size

    @overload
    def __getitem__(self, index: int) -> Item: ...

    @overload
    def __getitem__(self, index: slice) -> list[Item]: ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [Item(i + 1, i + 1) for i in range(*index.indices(self._size))]
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("item index out of range")
        return Item(index + 1, index + 1)

    def __iter__(self) -> Iterator[Item]:
        for item_id in range(1, self._size + 1):
            yield Item(item_id, item_id)


def _normalize_ids(ids: Iterable[int], field: str) -> list[int]:
    if isinstance(ids, (str, bytes, bytearray)):
        raise ValidationError(f"{field} must be a list of integers")
    try:
        values = list(ids)
    except TypeError as exc:
        raise ValidationError(f"{field} must be a list of integers") from exc
    for entry in values:
        if isinstance(entry, bool) or not isinstance(entry, int):
            raise ValidationError(f"{field} must contain integers only, got {entry!r}")
    return values


class CollectionStore:
    """Own the immutable items plus the order override and selection set.

    The overlay is guarded by a lock and versioned: every successful write
    bumps :attr:`version`. Writers may pass ``expected_version`` to detect
    lost updates; without it the last write wins. Ids are not checked against
    the canonical set, unknown ids are simply never matched by queries.
    """

    def __init__(
        self,
        size: int = DEFAULT_COLLECTION_SIZE,
        *,
        lock: threading.RLock | None = None,
    ) -> None:
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValidationError(f"collection size must be a non-negative integer: {size!r}")
        self._size = size
        self._items = ItemRange(size)
        self._lock = lock if lock is not None else threading.RLock()
        self._order: tuple[int, ...] = ()
        self._selected: frozenset[int] = frozenset()
        self._version = 0
        self._search_cache: OrderedDict[str, Sequence[int]] = OrderedDict()

    # ------------------------------------------------------------------
    @property
    def size(self) -> int:
        """Number of items in the canonical set."""
        return self._size

    @property
    def version(self) -> int:
        """Monotonic counter bumped by each overlay write."""
        with self._lock:
            return self._version

    @property
    def order(self) -> tuple[int, ...]:
        with self._lock:
            return self._order

    @property
    def selected(self) -> frozenset[int]:
        with self._lock:
            return self._selected

    # ------------------------------------------------------------------
    def get_all(self) -> Sequence[Item]:
        """Return every item in natural id order without materialising them."""
        return self._items

    def contains(self, item_id: int) -> bool:
        """Return ``True`` when ``item_id`` belongs to the canonical set."""
        return 1 <= item_id <= self._size

    def get(self, item_id: int) -> Item:
        """Return the item identified by ``item_id``."""
        if not self.contains(item_id):
            raise KeyError(item_id)
        return Item(item_id, item_id)

    def matches(self, item_id: int, term: str) -> bool:
        """Return ``True`` when ``item_id`` exists and its value matches ``term``."""
        return self.contains(item_id) and matches_search(item_id, term)

    def matching_ids(self, term: str) -> Sequence[int]:
        """Return ascending ids whose value contains ``term``.

        Results for non-empty terms are memoised because the canonical set
        never changes after construction.
        """
        if not term:
            return matching_ids(self._size, term)
        with self._lock:
            cached = self._search_cache.get(term)
            if cached is not None:
                self._search_cache.move_to_end(term)
                return cached
        result = matching_ids(self._size, term)
        with self._lock:
            self._search_cache[term] = result
            while len(self._search_cache) > _SEARCH_CACHE_SIZE:
                self._search_cache.popitem(last=False)
        return result

    # ------------------------------------------------------------------
    def _check_version(self, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != self._version:
            raise ConflictError(expected_version, self._version)

    def replace_order(
        self, ids: Iterable[int], *, expected_version: int | None = None
    ) -> StateSnapshot:
        """Replace the order override and return the state this write produced."""
        order = tuple(_normalize_ids(ids, "order"))
        with self._lock:
            self._check_version(expected_version)
            self._order = order
            self._version += 1
            state = self._snapshot()
        logger.debug("order override replaced (%d ids, version=%d)", len(order), state.version)
        return state

    def replace_selection(
        self, ids: Iterable[int], *, expected_version: int | None = None
    ) -> StateSnapshot:
        """Replace the selection set and return the state this write produced."""
        selected = frozenset(_normalize_ids(ids, "selected"))
        with self._lock:
            self._check_version(expected_version)
            self._selected = selected
            self._version += 1
            state = self._snapshot()
        logger.debug("selection replaced (%d ids, version=%d)", len(selected), state.version)
        return state

    def apply_order(
        self, ids: Iterable[int], *, expected_version: int | None = None
    ) -> int:
        """Replace the order override and return the new version."""
        return self.replace_order(ids, expected_version=expected_version).version

    def apply_selection(
        self, ids: Iterable[int], *, expected_version: int | None = None
    ) -> int:
        """Replace the selection set and return the new version."""
        return self.replace_selection(ids, expected_version=expected_version).version

    def current_state(self) -> StateSnapshot:
        """Return the overlay state as one consistent snapshot."""
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            order=self._order,
            selected=self._selected,
            version=self._version,
        )


__all__ = ["CollectionStore", "DEFAULT_COLLECTION_SIZE", "ItemRange"]
