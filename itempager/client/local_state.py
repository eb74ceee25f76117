"""Durable client-side state kept between sessions."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class LocalStateStore:
    """Persist the selection, the search term and the last synced version.

    The file is a cache of server state: ``dirty`` marks selection edits not
    yet acknowledged by the server and ``synced_version`` records the server
    version the selection was last reconciled with.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self.selected: set[int] = set()
        self.search: str = ""
        self.synced_version: int | None = None
        self.dirty = False
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to load client state %s: %s", self._path, exc)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed client state %s", self._path)
            return
        selected = data.get("selected", [])
        if isinstance(selected, list):
            self.selected = {
                entry for entry in selected if isinstance(entry, int) and not isinstance(entry, bool)
            }
        search = data.get("search", "")
        if isinstance(search, str):
            self.search = search
        version = data.get("synced_version")
        if isinstance(version, int) and not isinstance(version, bool):
            self.synced_version = version
        self.dirty = bool(data.get("dirty", False))

    def to_dict(self) -> dict[str, Any]:
        return {
            "selected": sorted(self.selected),
            "search": self.search,
            "synced_version": self.synced_version,
            "dirty": self.dirty,
        }

    def flush(self) -> None:
        """Persist state to disk."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2, sort_keys=True)
        tmp_path.replace(self._path)

    # ------------------------------------------------------------------
    def record_selection(self, selected: Iterable[int], *, dirty: bool = True) -> None:
        """Store ``selected`` and write the file."""
        self.selected = set(selected)
        self.dirty = dirty
        self.flush()

    def record_search(self, search: str) -> None:
        self.search = search or ""
        self.flush()

    def mark_synced(self, version: int) -> None:
        """Record that the server acknowledged the selection at ``version``."""
        self.synced_version = version
        self.dirty = False
        self.flush()


__all__ = ["LocalStateStore"]
