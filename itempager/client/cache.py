"""Sparse, index-addressable cache of fetched items."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator

from ..core.model import Item


class ClientCache:
    """Hold the fetched rows of the filtered, ordered collection.

    Rows are keyed by their index in the server ordering.  Indices that were
    never fetched are *pending* and read back as ``None``.  The cache is
    disposable: :meth:`clear` drops everything and a fresh fetch sequence
    rebuilds it.

    The GUI thread reads rows while the worker merges pages, so every access
    to the row mapping holds :attr:`lock`.
    """

    def __init__(self) -> None:
        self._rows: dict[int, Item] = {}
        self.total: int | None = None
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return self.logical_length()

    def logical_length(self, loading: bool = False) -> int:
        """Return the number of addressable rows.

        The server ``total`` wins once known.  Before that the length is one
        past the highest loaded index, plus one more placeholder while a
        trailing fetch is in flight.
        """
        if self.total is not None:
            return self.total
        with self.lock:
            length = max(self._rows) + 1 if self._rows else 0
        return length + 1 if loading else length

    @property
    def loaded_count(self) -> int:
        """Number of rows actually fetched."""
        return len(self._rows)

    def get(self, index: int) -> Item | None:
        """Return the row at ``index`` or ``None`` while it is pending."""
        return self._rows.get(index)

    def is_loaded(self, index: int) -> bool:
        return index in self._rows

    def put(self, index: int, item: Item) -> None:
        with self.lock:
            self._rows[index] = item

    def put_page(self, offset: int, items: Iterable[Item]) -> None:
        """Write ``items`` starting at row ``offset``."""
        with self.lock:
            for position, item in enumerate(items, start=offset):
                self._rows[position] = item

    def replace(self, items: Iterable[Item], total: int | None = None) -> None:
        """Drop every row and start over from ``items`` at row ``0``."""
        rows = dict(enumerate(items))
        with self.lock:
            self._rows = rows
            if total is not None:
                self.total = total

    def truncate(self, index: int) -> int:
        """Forget rows at ``index`` and beyond; return how many were dropped."""
        with self.lock:
            stale = [position for position in self._rows if position >= index]
            for position in stale:
                del self._rows[position]
        return len(stale)

    def clear(self) -> None:
        """Forget every row and the known total."""
        with self.lock:
            self._rows.clear()
            self.total = None

    def contiguous_length(self) -> int:
        """Number of rows loaded without a gap from row ``0``."""
        with self.lock:
            length = 0
            while length in self._rows:
                length += 1
        return length

    def loaded_entries(self) -> list[tuple[int, Item]]:
        """Return ``(index, item)`` pairs in ascending index order."""
        with self.lock:
            entries = list(self._rows.items())
        entries.sort()
        return entries

    def loaded_items(self) -> list[Item]:
        return [item for _, item in self.loaded_entries()]

    def __iter__(self) -> Iterator[Item | None]:
        for index in range(self.logical_length()):
            yield self._rows.get(index)


__all__ = ["ClientCache"]
