from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..core.errors import ValidationError
from ..core.model import PageRequest, PageResult, StateSnapshot
from ..core.query import QueryEngine
from ..core.store import DEFAULT_COLLECTION_SIZE, CollectionStore


@dataclass
class ItemsService:
    """High level gateway around the collection store and query engine.

    Overlay writes are pure accessors: ids are not checked against the
    canonical set and writing the same ids twice yields the same ordering.
    """

    store: CollectionStore = field(
        default_factory=lambda: CollectionStore(DEFAULT_COLLECTION_SIZE)
    )
    max_page_size: int | None = None
    _engine: QueryEngine = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._engine = QueryEngine(self.store)

    # ------------------------------------------------------------------
    def get_items(self, page: int = 1, limit: int = 20, search: str = "") -> PageResult:
        """Return page ``page`` of ``limit`` items matching ``search``."""

        if (
            self.max_page_size is not None
            and isinstance(limit, int)
            and limit > self.max_page_size
        ):
            raise ValidationError(
                f"page size must be <= {self.max_page_size}, got {limit}"
            )
        request = PageRequest(page=page, page_size=limit, search=search or "")
        return self._engine.query(request)

    # ------------------------------------------------------------------
    def get_state(self) -> StateSnapshot:
        """Return the current order override and selection."""

        return self.store.current_state()

    def set_order(
        self, ids: Iterable[int] | None, *, version: int | None = None
    ) -> StateSnapshot:
        """Replace the order override with ``ids``."""

        if ids is None:
            raise ValidationError("order is required")
        return self.store.replace_order(ids, expected_version=version)

    def set_selected(
        self, ids: Iterable[int] | None, *, version: int | None = None
    ) -> StateSnapshot:
        """Replace the selection set with ``ids``."""

        if ids is None:
            raise ValidationError("selected is required")
        return self.store.replace_selection(ids, expected_version=version)
