"""Headless list model combining fetching, rendering, reordering and selection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from ..core.model import Item, StateSnapshot
from ..settings import ClientSettings
from .api import ItemsApiClient
from .cache import ClientCache
from .fetcher import FetchToken, WindowFetcher
from .local_state import LocalStateStore
from .reorder import MutationStatus, PendingMutation, ReorderEngine
from .selection import SelectionManager
from .viewport import InfiniteScrollTrigger, Launcher, VirtualRenderer, VirtualRow

logger = logging.getLogger(__name__)


class ItemListModel:
    """Maintain the client view of the collection.

    The model owns one :class:`ClientCache` shared by the fetcher and the
    reorder engine.  Page loads started by scrolling are handed to
    ``launch``; by default they are scheduled as tasks on the running event
    loop.
    """

    def __init__(
        self,
        api: ItemsApiClient,
        settings: ClientSettings | None = None,
        *,
        local_state: LocalStateStore | None = None,
        launch: Launcher | None = None,
    ) -> None:
        self.api = api
        self.settings = settings or api.settings
        self.local_state = local_state
        search = local_state.search if local_state is not None else ""
        self.cache = ClientCache()
        self.fetcher = WindowFetcher(
            api,
            self.cache,
            page_size=self.settings.page_size,
            timeout=self.settings.request_timeout,
            search_term=search,
            on_state=self._on_state,
        )
        self.renderer = VirtualRenderer(self.settings.row_height, self.settings.overscan)
        self.reorder = ReorderEngine(
            api,
            self.cache,
            search_term=search,
            max_retries=self.settings.max_retries,
            failure_policy=self.settings.failure_policy,
        )
        self.selection = SelectionManager(api, local_state)
        self._tasks: set[asyncio.Future] = set()
        self.trigger = InfiniteScrollTrigger(self.fetcher, launch or self._spawn)

    # ------------------------------------------------------------------
    def _spawn(self, coroutine: Coroutine[Any, Any, Any]) -> asyncio.Future:
        task = asyncio.ensure_future(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for page loads launched by scrolling."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _on_state(self, state: StateSnapshot) -> None:
        self.reorder.sync(state)

    # data access -----------------------------------------------------
    @property
    def search_term(self) -> str:
        return self.fetcher.search_term

    @property
    def total(self) -> int | None:
        return self.cache.total

    @property
    def loading(self) -> bool:
        return self.fetcher.loading

    def row_count(self) -> int:
        """Number of rows the list should expose, placeholders included."""
        return self.cache.logical_length(self.fetcher.loading)

    def total_size(self) -> int:
        return self.renderer.total_size(self.row_count())

    def get_row(self, index: int) -> Item | None:
        return self.cache.get(index)

    def filtered_view(self) -> list[Item]:
        """Loaded rows passing the active search, in display order."""
        return [item for _, item in self.reorder.filtered_entries()]

    def visible_ids(self) -> list[int]:
        return [item.id for item in self.filtered_view()]

    def view_index(self, row: int) -> int | None:
        """Translate a list row into its index in :meth:`filtered_view`."""
        for position, (index, _item) in enumerate(self.reorder.filtered_entries()):
            if index == row:
                return position
        return None

    def is_selected(self, item_id: int) -> bool:
        return item_id in self.selection

    def viewport(self, offset: float, height: float) -> list[VirtualRow]:
        """Return rows to draw and request any page the viewport needs."""
        window = self.renderer.visible_range(offset, height, self.row_count())
        self.trigger.check_range(window)
        return self.renderer.rows(self.cache, offset, height, loading=self.fetcher.loading)

    def rows_for(self, first: int, last: int) -> None:
        """Request pages for the row indices ``first..last`` shown by a widget."""
        offset = first * self.renderer.row_height
        height = (last - first + 1) * self.renderer.row_height
        self.trigger.check_range(self.renderer.visible_range(offset, height, self.row_count()))

    # lifecycle -------------------------------------------------------
    async def start(self) -> bool:
        """Load the first page and reconcile the selection with the server."""
        merged = await self.fetcher.load_page(1)
        state = self.fetcher.state
        if merged and state is not None and self.selection.reconcile(state):
            await self.selection.push()
        return merged

    def set_search_query(self, term: str) -> FetchToken:
        """Switch to ``term``, invalidating rows and fetches of the old term."""
        term = term or ""
        self.reorder.search_term = term
        if self.local_state is not None:
            self.local_state.record_search(term)
        return self.fetcher.reset(term)

    async def search(self, term: str) -> bool:
        self.set_search_query(term)
        return await self.start()

    async def retry(self) -> None:
        """Retry whatever failed last: a page load, an order push or a selection push."""
        pending = self.reorder.pending
        if pending is not None and pending.diverged:
            await self.reorder.push(pending)
            self._settle(pending)
        if self.selection.dirty:
            await self.selection.push()
        failed = self.fetcher.failed_page
        if failed is not None:
            self.fetcher.last_error = None
            self.fetcher.failed_page = None
            await self.fetcher.load_page(failed)

    # selection -------------------------------------------------------
    async def toggle(self, item_id: int) -> bool:
        selected = self.selection.toggle(item_id)
        await self.selection.push()
        return selected

    async def select_all(self) -> None:
        """Select every loaded row passing the active search."""
        self.selection.select_all(self.visible_ids())
        await self.selection.push()

    async def clear_selection(self) -> None:
        self.selection.clear()
        await self.selection.push()

    # reordering ------------------------------------------------------
    async def drop(self, source: int, destination: int | None) -> PendingMutation | None:
        """Move view row ``source`` to ``destination`` and persist the order."""
        mutation = await self.reorder.drop_and_push(source, destination)
        if mutation is not None:
            self._settle(mutation)
        return mutation

    def _settle(self, mutation: PendingMutation) -> None:
        """Drop cached rows a confirmed push moved to other server positions."""
        if mutation.status is not MutationStatus.CONFIRMED or mutation.stale_from is None:
            return
        self.fetcher.invalidate_from(mutation.stale_from)
        mutation.stale_from = None


__all__ = ["ItemListModel"]
