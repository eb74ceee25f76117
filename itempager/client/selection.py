"""Client-side selection with durable mirroring and server sync."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from ..core.errors import ItemPagerError
from ..core.model import StateSnapshot
from ..telemetry import log_event
from .api import ItemsApiClient
from .local_state import LocalStateStore

logger = logging.getLogger(__name__)


class SelectionManager:
    """Own the set of selected ids on the client.

    Every change is mirrored to :class:`LocalStateStore` right away and
    flagged dirty until :meth:`push` gets it acknowledged by the server.
    """

    def __init__(
        self,
        api: ItemsApiClient,
        store: LocalStateStore | None = None,
    ) -> None:
        self.api = api
        self.store = store
        self.selected: set[int] = set(store.selected) if store is not None else set()
        self.version: int | None = store.synced_version if store is not None else None
        self.dirty = store.dirty if store is not None else False
        self.last_error: ItemPagerError | None = None
        self._revision = 0

    def __contains__(self, item_id: int) -> bool:
        return item_id in self.selected

    def __len__(self) -> int:
        return len(self.selected)

    # ------------------------------------------------------------------
    def _changed(self) -> None:
        self.dirty = True
        self._revision += 1
        if self.store is not None:
            self.store.record_selection(self.selected, dirty=True)

    def toggle(self, item_id: int) -> bool:
        """Flip membership of ``item_id`` and return the new membership."""
        self.selected ^= {item_id}
        self._changed()
        return item_id in self.selected

    def select_all(self, visible_ids: Iterable[int]) -> None:
        """Replace the selection with ``visible_ids``."""
        self.selected = set(visible_ids)
        self._changed()

    def clear(self) -> None:
        self.selected = set()
        self._changed()

    # ------------------------------------------------------------------
    async def push(self) -> int | None:
        """Send the selection to the server; return the new version or ``None``."""
        snapshot = sorted(self.selected)
        revision = self._revision
        start = time.monotonic()
        try:
            version = await self.api.save_selected_async(snapshot)
        except ItemPagerError as exc:
            self.last_error = exc
            log_event(
                "SELECTION_PUSH_FAILED",
                {"selected": len(snapshot), "error": str(exc)},
                start_time=start,
                level=logging.WARNING,
            )
            return None
        self.last_error = None
        self.version = version
        if revision == self._revision:
            self.dirty = False
            if self.store is not None:
                self.store.mark_synced(version)
        log_event(
            "STATE_SYNC",
            {"selected": len(snapshot), "version": version, "direction": "push"},
            start_time=start,
        )
        return version

    def reconcile(self, server_state: StateSnapshot) -> bool:
        """Merge ``server_state`` with the local selection.

        Unsynced local edits win and ``True`` is returned so the caller pushes
        them.  Otherwise the server selection replaces the local one and
        ``False`` is returned.
        """
        if self.dirty:
            logger.info(
                "Local selection has unsynced edits (synced version %s, server %d); pushing",
                self.version,
                server_state.version,
            )
            return True
        self.selected = set(server_state.selected)
        self.version = server_state.version
        if self.store is not None:
            self.store.record_selection(self.selected, dirty=False)
            self.store.mark_synced(server_state.version)
        log_event(
            "STATE_SYNC",
            {
                "selected": len(self.selected),
                "version": server_state.version,
                "direction": "pull",
            },
        )
        return False


__all__ = ["SelectionManager"]
