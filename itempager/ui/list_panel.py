"""Virtual list panel rendering the item window with wxPython."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import wx

from ..client.model import ItemListModel

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Loading…"
CHECKED = "☑"
UNCHECKED = "☐"


class ItemVirtualList(wx.ListCtrl):
    """Report-mode list asking the model for rows only when they are drawn."""

    def __init__(self, parent: wx.Window, model: ItemListModel) -> None:
        super().__init__(
            parent,
            style=wx.LC_REPORT | wx.LC_VIRTUAL | wx.LC_SINGLE_SEL | wx.LC_HRULES,
        )
        self.model = model
        self.InsertColumn(0, "", width=36)
        self.InsertColumn(1, "Item", width=240)

    def OnGetItemText(self, item: int, column: int) -> str:  # noqa: N802 - wx API
        row = self.model.get_row(item)
        if row is None:
            return PLACEHOLDER_TEXT if column == 1 else ""
        if column == 0:
            return CHECKED if self.model.is_selected(row.id) else UNCHECKED
        return f"#{row.value}"


class ItemListPanel(wx.Panel):
    """Panel with a search box, selection buttons and the virtual item list.

    Network work runs on a single background worker and every model mutation
    is funnelled through it.  The poll timer reads rows on the GUI thread and
    may claim a page load there; the cache and the fetcher guard that with
    their locks, and the load itself still runs on the worker.
    """

    POLL_INTERVAL_MS = 150
    SEARCH_DELAY_MS = 300

    def __init__(
        self,
        parent: wx.Window,
        model: ItemListModel,
        *,
        pool: ThreadPoolExecutor | None = None,
    ) -> None:
        wx.Panel.__init__(self, parent)
        self.model = model
        self._pool = pool or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ItemPagerWorker"
        )
        self._owns_pool = pool is None
        self._drag_source: int | None = None
        self._search_call: wx.CallLater | None = None
        self._closed = False
        model.trigger.launch = self._submit

        self.search = wx.SearchCtrl(self, value=model.search_term)
        self.search.ShowCancelButton(True)
        self.select_all_btn = wx.Button(self, label="Select all")
        self.clear_btn = wx.Button(self, label="Clear selection")
        self.retry_btn = wx.Button(self, label="Retry")
        self.retry_btn.Hide()
        self.status = wx.StaticText(self, label="")
        self.list = ItemVirtualList(self, model)

        header = wx.BoxSizer(wx.HORIZONTAL)
        header.Add(self.search, 1, wx.EXPAND | wx.RIGHT, 5)
        header.Add(self.select_all_btn, 0, wx.RIGHT, 5)
        header.Add(self.clear_btn, 0, wx.RIGHT, 5)
        header.Add(self.retry_btn, 0)
        sizer = wx.BoxSizer(wx.VERTICAL)
        sizer.Add(header, 0, wx.EXPAND | wx.ALL, 5)
        sizer.Add(self.status, 0, wx.LEFT | wx.RIGHT | wx.BOTTOM, 5)
        sizer.Add(self.list, 1, wx.EXPAND)
        self.SetSizer(sizer)

        self.search.Bind(wx.EVT_TEXT, self._on_search_text)
        self.search.Bind(wx.EVT_SEARCHCTRL_CANCEL_BTN, self._on_search_cancel)
        self.select_all_btn.Bind(wx.EVT_BUTTON, self._on_select_all)
        self.clear_btn.Bind(wx.EVT_BUTTON, self._on_clear)
        self.retry_btn.Bind(wx.EVT_BUTTON, self._on_retry)
        self.list.Bind(wx.EVT_LIST_ITEM_ACTIVATED, self._on_activate)
        self.list.Bind(wx.EVT_LIST_BEGIN_DRAG, self._on_begin_drag)
        self.list.Bind(wx.EVT_LEFT_UP, self._on_left_up)
        self.Bind(wx.EVT_WINDOW_DESTROY, self._on_destroy)

        self._timer = wx.Timer(self)
        self.Bind(wx.EVT_TIMER, self._on_poll, self._timer)
        self._timer.Start(self.POLL_INTERVAL_MS)
        self._submit(model.start())
        self.refresh()

    # background work -------------------------------------------------
    def _submit(self, coroutine: Coroutine[Any, Any, Any]) -> Future[Any] | None:
        if self._closed:
            coroutine.close()
            return None
        future = self._pool.submit(asyncio.run, coroutine)

        def on_complete(task: Future[Any]) -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.error("Background list task failed", exc_info=exc)
            wx.CallAfter(self._refresh_if_alive)

        future.add_done_callback(on_complete)
        return future

    def _refresh_if_alive(self) -> None:
        if not self._closed and self:
            self.refresh()

    def shutdown(self) -> None:
        """Stop polling and release the worker."""
        if self._closed:
            return
        self._closed = True
        if self._timer.IsRunning():
            self._timer.Stop()
        if self._owns_pool:
            self._pool.shutdown(wait=False, cancel_futures=True)

    # view ------------------------------------------------------------
    def refresh(self) -> None:
        """Resize the virtual list to the model and redraw visible rows."""
        count = self.model.row_count()
        if self.list.GetItemCount() != count:
            self.list.SetItemCount(count)
        self.list.Refresh()
        total = self.model.total
        shown = len(self.model.cache.loaded_entries())
        summary = f"Loaded {shown} of {total if total is not None else '?'} items"
        summary += f" • {len(self.model.selection)} selected"
        error = self.model.fetcher.last_error or self.model.selection.last_error
        pending = self.model.reorder.pending
        if pending is not None and pending.error is not None and pending.diverged:
            error = pending.error
        if error is not None:
            summary += f" • {error}"
        self.status.SetLabel(summary)
        self.retry_btn.Show(error is not None)
        self.Layout()

    def _on_poll(self, _event: wx.TimerEvent) -> None:
        count = self.list.GetItemCount()
        if count:
            top = self.list.GetTopItem()
            last = min(count - 1, top + self.list.GetCountPerPage())
            self.model.rows_for(top, last)
        if self.model.row_count() != count:
            self.refresh()

    # events ----------------------------------------------------------
    def _on_search_text(self, _event: wx.CommandEvent) -> None:
        if self._search_call is not None and self._search_call.IsRunning():
            self._search_call.Stop()
        self._search_call = wx.CallLater(self.SEARCH_DELAY_MS, self._apply_search)

    def _on_search_cancel(self, _event: wx.CommandEvent) -> None:
        self.search.SetValue("")

    def _apply_search(self) -> None:
        term = self.search.GetValue().strip()
        if term == self.model.search_term:
            return
        self._submit(self.model.search(term))

    def _on_select_all(self, _event: wx.CommandEvent) -> None:
        self._submit(self.model.select_all())

    def _on_clear(self, _event: wx.CommandEvent) -> None:
        self._submit(self.model.clear_selection())

    def _on_retry(self, _event: wx.CommandEvent) -> None:
        self._submit(self.model.retry())

    def _on_activate(self, event: wx.ListEvent) -> None:
        row = self.model.get_row(event.GetIndex())
        if row is not None:
            self._submit(self.model.toggle(row.id))

    def _on_begin_drag(self, event: wx.ListEvent) -> None:
        self._drag_source = event.GetIndex()

    def _on_left_up(self, event: wx.MouseEvent) -> None:
        event.Skip()
        source_row = self._drag_source
        self._drag_source = None
        if source_row is None:
            return
        target_row, _flags = self.list.HitTest(event.GetPosition())
        if target_row == wx.NOT_FOUND:
            return
        source = self.model.view_index(source_row)
        destination = self.model.view_index(target_row)
        if source is None or destination is None:
            return
        self._submit(self.model.drop(source, destination))

    def _on_destroy(self, event: wx.WindowDestroyEvent) -> None:
        if event.GetEventObject() is self:
            self.shutdown()
        event.Skip()


class ItemListFrame(wx.Frame):
    """Top-level window hosting :class:`ItemListPanel`."""

    def __init__(self, parent: wx.Window | None, model: ItemListModel) -> None:
        super().__init__(parent, title="ItemPager", size=(480, 640))
        self.panel = ItemListPanel(self, model)
        self.Bind(wx.EVT_CLOSE, self._on_close)

    def _on_close(self, event: wx.CloseEvent) -> None:
        self.panel.shutdown()
        event.Skip()


__all__ = ["ItemListFrame", "ItemListPanel", "ItemVirtualList"]
