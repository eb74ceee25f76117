"""Map scroll offsets to row windows and trigger page loads as the user scrolls."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from ..core.model import Item
from ..settings import DEFAULT_OVERSCAN, DEFAULT_ROW_HEIGHT
from .cache import ClientCache
from .fetcher import WindowFetcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VirtualRow:
    """One rendered row; ``item is None`` marks a placeholder."""

    index: int
    start: int
    size: int
    item: Item | None

    @property
    def is_placeholder(self) -> bool:
        return self.item is None


@dataclass(frozen=True)
class VisibleRange:
    """Inclusive row window ``[start, end]`` including overscan."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start + 1

    def indices(self) -> range:
        return range(self.start, self.end + 1)


class VirtualRenderer:
    """Compute which rows of a fixed-height list need to be rendered."""

    def __init__(
        self,
        row_height: int = DEFAULT_ROW_HEIGHT,
        overscan: int = DEFAULT_OVERSCAN,
    ) -> None:
        if row_height <= 0:
            raise ValueError("row_height must be positive")
        if overscan < 0:
            raise ValueError("overscan must not be negative")
        self.row_height = row_height
        self.overscan = overscan

    def total_size(self, count: int) -> int:
        """Return the scrollable extent in pixels for ``count`` rows."""
        return max(0, count) * self.row_height

    def visible_range(self, offset: float, height: float, count: int) -> VisibleRange | None:
        """Return the rows intersecting the viewport, widened by the overscan.

        ``None`` is returned for an empty list.
        """
        if count <= 0:
            return None
        offset = max(0.0, offset)
        first = int(offset // self.row_height)
        if height > 0:
            last = int((offset + height - 1) // self.row_height)
        else:
            last = first
        first = min(first, count - 1)
        last = min(max(last, first), count - 1)
        return VisibleRange(
            start=max(0, first - self.overscan),
            end=min(count - 1, last + self.overscan),
        )

    def rows(
        self,
        cache: ClientCache,
        offset: float,
        height: float,
        *,
        loading: bool = False,
    ) -> list[VirtualRow]:
        """Return the rows to draw for the viewport over ``cache``."""
        window = self.visible_range(offset, height, cache.logical_length(loading))
        if window is None:
            return []
        return [
            VirtualRow(
                index=index,
                start=index * self.row_height,
                size=self.row_height,
                item=cache.get(index),
            )
            for index in window.indices()
        ]


Launcher = Callable[[Coroutine[Any, Any, bool]], Any]


class InfiniteScrollTrigger:
    """Decide when scrolling needs the next page.

    The trigger is level-triggered: call :meth:`check` on every render.  A
    page is requested only when it lies beyond :attr:`WindowFetcher.current_page`,
    no load is in flight and fewer rows than ``total`` are cached, so the
    same window never produces a duplicate request.  ``launch`` receives the
    load coroutine and decides where it runs.
    """

    def __init__(self, fetcher: WindowFetcher, launch: Launcher) -> None:
        self.fetcher = fetcher
        self.launch = launch

    def page_for(self, index: int) -> int:
        return index // self.fetcher.page_size + 1

    def check(self, last_index: int) -> int | None:
        """Request the page holding ``last_index`` when needed and return it."""
        fetcher = self.fetcher
        total = fetcher.cache.total
        if total is None or last_index < 0:
            return None
        page = self.page_for(last_index)
        if page <= fetcher.current_page or fetcher.loading:
            return None
        if fetcher.cache.loaded_count >= total:
            return None
        return self._launch(page)

    def check_range(self, window: VisibleRange | None) -> int | None:
        """Apply :meth:`check` to ``window`` and back-fill pending rows inside it.

        Jumping with the scrollbar can leave pages below
        :attr:`WindowFetcher.current_page` unfetched; those are loaded one at a
        time while the window covers them.  Back-filling pauses while
        :attr:`WindowFetcher.last_error` is set.
        """
        if window is None:
            return None
        page = self.check(window.end)
        if page is not None:
            return page
        fetcher = self.fetcher
        total = fetcher.cache.total
        if total is None or fetcher.loading or fetcher.last_error is not None:
            return None
        for index in range(window.start, min(window.end, total - 1) + 1):
            if not fetcher.cache.is_loaded(index):
                return self._launch(self.page_for(index))
        return None

    def _launch(self, page: int) -> int | None:
        coroutine = self.fetcher.start_page(page)
        if coroutine is None:
            return None
        logger.debug("Scroll requested page %d", page)
        self.launch(coroutine)
        return page


__all__ = ["InfiniteScrollTrigger", "VirtualRenderer", "VirtualRow", "VisibleRange"]
