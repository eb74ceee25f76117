"""Drag-and-drop reordering with optimistic cache updates."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..core.errors import ItemPagerError
from ..core.model import Item, StateSnapshot
from ..core.ordering import move_index, order_key, rank_map, reconcile_subset
from ..core.search import matches_search
from ..settings import DEFAULT_MAX_RETRIES
from ..telemetry import log_event
from .api import ItemsApiClient
from .cache import ClientCache

logger = logging.getLogger(__name__)


def _gapless_prefix(positions: Sequence[int]) -> int:
    """Count the leading cache indices that run ``0, 1, 2, ...`` without a gap."""
    count = 0
    for index in positions:
        if index != count:
            break
        count += 1
    return count


class MutationStatus(str, Enum):
    """Lifecycle of an order push."""

    APPLIED = "applied"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REVERTED = "reverted"


@dataclass
class PendingMutation:
    """An order change applied to the cache but not yet confirmed by the server."""

    order: list[int]
    base_order: tuple[int, ...]
    previous: dict[int, Item]
    source: int
    destination: int
    status: MutationStatus = MutationStatus.APPLIED
    attempts: int = 0
    error: ItemPagerError | None = field(default=None, repr=False)
    version: int | None = None
    stale_from: int | None = None

    @property
    def diverged(self) -> bool:
        """``True`` while the cache shows an order the server has not accepted."""
        return self.status in (MutationStatus.APPLIED, MutationStatus.FAILED)


class ReorderEngine:
    """Move rows of the filtered view and push the resulting order.

    ``drop`` updates :attr:`cache` immediately.  The pushed override is the
    previous server override merged with the loaded rows of the view, ranked
    the way the server ranks them, with the dragged row moved.  Rows outside
    the filtered view keep their slots and their relative order.

    When both ends of the drop lie in the rows loaded without a gap from row
    ``0``, only those rows are pushed and every cached row keeps its server
    position.  Otherwise every loaded row is pushed and the rows past the
    first gap no longer match the server; :attr:`PendingMutation.stale_from`
    tells the owner of the fetcher where to invalidate once it is confirmed.
    """

    def __init__(
        self,
        api: ItemsApiClient,
        cache: ClientCache,
        *,
        search_term: str = "",
        max_retries: int = DEFAULT_MAX_RETRIES,
        failure_policy: str = "retry",
    ) -> None:
        if failure_policy not in ("retry", "revert"):
            raise ValueError(f"unknown failure policy: {failure_policy!r}")
        self.api = api
        self.cache = cache
        self.search_term = search_term
        self.max_retries = max_retries
        self.failure_policy = failure_policy
        self.order: tuple[int, ...] = ()
        self.pending: PendingMutation | None = None

    # ------------------------------------------------------------------
    @property
    def diverged(self) -> bool:
        return self.pending is not None and self.pending.diverged

    def sync(self, state: StateSnapshot) -> None:
        """Adopt the server override unless a local change is still unconfirmed."""
        if self.diverged:
            logger.debug("Keeping local order while a reorder is unconfirmed")
            return
        self.order = tuple(state.order)

    def filtered_entries(self) -> list[tuple[int, Item]]:
        """Return ``(cache index, item)`` pairs of the loaded rows passing the search."""
        term = self.search_term
        return [
            (index, item)
            for index, item in self.cache.loaded_entries()
            if matches_search(item.value, term)
        ]

    def _merged_order(self, view: Sequence[Item], moved: Sequence[Item]) -> list[int]:
        ranks = rank_map(self.order)
        known: dict[int, Item] = {item.id: item for item in view}
        for item_id in ranks:
            known.setdefault(item_id, Item(item_id, item_id))
        merged = sorted(known.values(), key=order_key(ranks))
        position = {item.id: slot for slot, item in enumerate(merged)}
        slots = sorted(position[item.id] for item in view)
        return [item.id for item in reconcile_subset(merged, slots, moved)]

    # ------------------------------------------------------------------
    def drop(self, source: int, destination: int | None) -> PendingMutation | None:
        """Apply a drop of view row ``source`` onto ``destination``.

        Returns ``None`` when the gesture is a no-op.
        """
        if destination is None or source == destination:
            return None
        entries = self.filtered_entries()
        view = [item for _, item in entries]
        positions = [index for index, _ in entries]
        moved = move_index(view, source, destination)

        previous = dict(entries)
        for index, item in zip(positions, moved):
            self.cache.put(index, item)

        prefix = _gapless_prefix(positions)
        stale_from: int | None = None
        if source < prefix and destination < prefix:
            order = self._merged_order(view[:prefix], moved[:prefix])
        else:
            order = self._merged_order(view, moved)
            if prefix < len(view):
                stale_from = prefix
        mutation = PendingMutation(
            order=order,
            base_order=self.order,
            previous=previous,
            source=source,
            destination=destination,
            stale_from=stale_from,
        )
        self.order = tuple(order)
        self.pending = mutation
        log_event(
            "REORDER",
            {
                "source": source,
                "destination": destination,
                "item": view[source].id,
                "order_size": len(order),
                "stale_from": stale_from,
            },
        )
        return mutation

    async def push(self, mutation: PendingMutation) -> MutationStatus:
        """Send ``mutation`` and apply the failure policy when it is rejected."""
        status = await self.retry(mutation)
        while status is MutationStatus.FAILED:
            if self.failure_policy == "revert":
                self.revert(mutation)
                break
            if mutation.attempts > self.max_retries:
                logger.warning(
                    "Order push gave up after %d attempts: %s",
                    mutation.attempts,
                    mutation.error,
                )
                break
            status = await self.retry(mutation)
        return mutation.status

    async def retry(self, mutation: PendingMutation) -> MutationStatus:
        """Make one more attempt to push ``mutation``."""
        if mutation.status in (MutationStatus.CONFIRMED, MutationStatus.REVERTED):
            return mutation.status
        mutation.attempts += 1
        start = time.monotonic()
        try:
            version = await self.api.save_order_async(mutation.order)
        except ItemPagerError as exc:
            mutation.status = MutationStatus.FAILED
            mutation.error = exc
            log_event(
                "REORDER_FAILED",
                {"attempt": mutation.attempts, "error": str(exc)},
                start_time=start,
                level=logging.WARNING,
            )
            return mutation.status
        mutation.status = MutationStatus.CONFIRMED
        mutation.version = version
        mutation.error = None
        log_event(
            "REORDER_CONFIRMED",
            {"attempt": mutation.attempts, "version": version},
            start_time=start,
        )
        return mutation.status

    def revert(self, mutation: PendingMutation) -> None:
        """Restore the cache rows and override captured before ``mutation``.

        A mutation superseded by a later drop is only marked reverted; the
        later drop already carries its rows.
        """
        if mutation.status is MutationStatus.CONFIRMED:
            raise ValueError("cannot revert a confirmed mutation")
        if mutation is self.pending:
            for index, item in mutation.previous.items():
                self.cache.put(index, item)
            self.order = mutation.base_order
        mutation.status = MutationStatus.REVERTED
        log_event(
            "REORDER_REVERTED",
            {"source": mutation.source, "destination": mutation.destination},
        )

    async def drop_and_push(
        self, source: int, destination: int | None
    ) -> PendingMutation | None:
        """Apply the drop locally and push it; return the mutation or ``None``."""
        mutation = self.drop(source, destination)
        if mutation is not None:
            await self.push(mutation)
        return mutation


__all__ = ["MutationStatus", "PendingMutation", "ReorderEngine"]
