"""Fetch pages of the collection and merge them into the client cache."""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ItemPagerError, TransientIOError
from ..core.model import PageResult, StateSnapshot
from ..core.ordering import sort_by_order
from ..settings import DEFAULT_PAGE_SIZE, DEFAULT_REQUEST_TIMEOUT
from ..telemetry import log_event
from ..util.cancellation import CancellationEvent, OperationCancelledError
from .api import ItemsApiClient
from .cache import ClientCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchToken:
    """Identify the intent a fetch was issued for.

    A response is merged only while its token is still the fetcher's current
    one.  Changing the search term or resetting the fetcher issues a new
    token and cancels the previous one.
    """

    search: str
    page_size: int
    generation: int
    cancellation: CancellationEvent = field(
        default_factory=CancellationEvent, compare=False, repr=False
    )

    @property
    def cancelled(self) -> bool:
        return self.cancellation.cancelled


class WindowFetcher:
    """Load pages on demand and keep :attr:`cache` in sync with the server.

    Only one page load runs at a time: :attr:`loading` is claimed under a
    lock by :meth:`start_page` and released only after the page is merged,
    so a second trigger, from this thread or the GUI thread, is a no-op.
    The first page always fetches the server state before the items so that
    the saved order can be re-applied to it.
    """

    def __init__(
        self,
        api: ItemsApiClient,
        cache: ClientCache | None = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        search_term: str = "",
        on_state: Callable[[StateSnapshot], None] | None = None,
    ) -> None:
        self.api = api
        self.cache = cache if cache is not None else ClientCache()
        self.page_size = page_size
        self.timeout = timeout
        self.on_state = on_state
        self.search_term = search_term
        self.current_page = 0
        self.loading = False
        self.last_error: ItemPagerError | None = None
        self.failed_page: int | None = None
        self.state: StateSnapshot | None = None
        self._generation = 0
        self._token = FetchToken(search_term, page_size, 0)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    @property
    def token(self) -> FetchToken:
        """Token describing the current fetch intent."""
        return self._token

    @property
    def total(self) -> int | None:
        return self.cache.total

    @property
    def total_pages(self) -> int | None:
        if self.cache.total is None:
            return None
        return math.ceil(self.cache.total / self.page_size)

    def is_current(self, token: FetchToken) -> bool:
        return token is self._token and not token.cancelled

    def reset(self, search_term: str | None = None) -> FetchToken:
        """Invalidate in-flight fetches and start over, optionally with a new term."""
        with self._lock:
            if search_term is not None:
                self.search_term = search_term
            self._renew_token()
            self.cache.clear()
            self.current_page = 0
        logger.debug(
            "Fetcher reset (search=%r, generation=%d)", self.search_term, self._generation
        )
        return self._token

    def invalidate_from(self, index: int) -> FetchToken:
        """Forget rows from ``index`` on and discard fetches still in flight.

        Rows before ``index`` stay cached.  :attr:`current_page` falls back to
        the last page they fill completely, so scrolling loads the rest again.
        """
        with self._lock:
            self._renew_token()
            dropped = self.cache.truncate(index)
            self.current_page = min(self.current_page, index // self.page_size)
        log_event(
            "CACHE_INVALIDATED",
            {"from": index, "dropped": dropped, "current_page": self.current_page},
        )
        return self._token

    def _renew_token(self) -> None:
        self._token.cancellation.set()
        self._generation += 1
        self._token = FetchToken(self.search_term, self.page_size, self._generation)
        self.loading = False
        self.last_error = None
        self.failed_page = None

    # ------------------------------------------------------------------
    def start_page(self, page: int) -> Coroutine[Any, Any, bool] | None:
        """Claim :attr:`loading` and return the coroutine loading ``page``.

        Returns ``None`` without side effects when a load is already in
        flight.  The caller decides where the coroutine runs.
        """
        with self._lock:
            if self.loading:
                return None
            self.loading = True
            token = self._token
        return self._run(token, page)

    async def load_page(self, page: int) -> bool:
        """Load ``page`` and merge it; return ``True`` when it was merged."""
        coroutine = self.start_page(page)
        if coroutine is None:
            logger.debug("Page %d skipped: another load is in flight", page)
            return False
        return await coroutine

    async def _fetch(self, token: FetchToken, page: int) -> tuple[PageResult, StateSnapshot | None]:
        state: StateSnapshot | None = None
        if page == 1:
            state = await self.api.get_state_async()
            token.cancellation.raise_if_cancelled()
        result = await self.api.get_items_async(page, token.page_size, token.search)
        return result, state

    async def _run(self, token: FetchToken, page: int) -> bool:
        try:
            return await self._load(token, page)
        finally:
            with self._lock:
                if token is self._token:
                    self.loading = False

    async def _load(self, token: FetchToken, page: int) -> bool:
        start = time.monotonic()
        log_event(
            "PAGE_REQUEST",
            {
                "page": page,
                "page_size": token.page_size,
                "search": token.search,
                "generation": token.generation,
            },
        )
        try:
            result, state = await asyncio.wait_for(self._fetch(token, page), self.timeout)
            if not self.is_current(token):
                raise OperationCancelledError()
        except OperationCancelledError:
            log_event(
                "PAGE_DISCARDED",
                {"page": page, "search": token.search, "generation": token.generation},
                start_time=start,
            )
            return False
        except asyncio.TimeoutError:
            error = TransientIOError(f"page {page} timed out after {self.timeout}s")
            self._record_failure(token, page, error, start)
            return False
        except ItemPagerError as exc:
            self._record_failure(token, page, exc, start)
            return False

        self._merge(page, result, state)
        log_event(
            "PAGE_RESULT",
            {
                "page": page,
                "count": len(result.items),
                "total": result.total,
                "generation": token.generation,
            },
            start_time=start,
        )
        return True

    def _record_failure(
        self, token: FetchToken, page: int, error: ItemPagerError, start: float
    ) -> None:
        log_event(
            "PAGE_ERROR",
            {"page": page, "search": token.search, "error": str(error)},
            start_time=start,
            level=logging.WARNING,
        )
        if token is self._token:
            self.last_error = error
            self.failed_page = page

    def _merge(self, page: int, result: PageResult, state: StateSnapshot | None) -> None:
        items = result.items
        if state is not None:
            self.state = state
            log_event(
                "STATE_SYNC",
                {
                    "version": state.version,
                    "order": len(state.order),
                    "selected": len(state.selected),
                },
            )
            if state.order:
                items = sort_by_order(items, state.order)
            if self.on_state is not None:
                self.on_state(state)
        if page == 1:
            self.cache.replace(items, total=result.total)
            self.current_page = 1
        else:
            self.cache.put_page((page - 1) * self.page_size, items)
            self.cache.total = result.total
            self.current_page = max(self.current_page, page)
        self.last_error = None
        self.failed_page = None


__all__ = ["FetchToken", "WindowFetcher"]
