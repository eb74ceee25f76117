"""Logging utilities for ItemPager.

Both the application logger and the server request logger write the same
pair of rotating files: a human readable ``.log`` and a ``.jsonl`` file with
one structured record per line.  :func:`attach_file_handlers` builds that
pair for any logger.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .util.time import utc_now_iso

LOG_DIR_ENV = "ITEMPAGER_LOG_DIR"
_DEFAULT_HOME_DIR = ".itempager"
_DEFAULT_LOG_SUBDIR = "logs"
_LOG_STEM = "itempager"
_ROTATION_BACKUPS = 5
_LOG_MAX_BYTES = 5 * 1024 * 1024
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("itempager")

_log_dir: Path | None = None


class ConsoleFormatter(logging.Formatter):
    """Console formatter that appends the payload of telemetry events."""

    def __init__(self) -> None:
        super().__init__("%(levelname)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        payload = _event_payload(record)
        if payload is None:
            return base
        return f"{base} {json.dumps(payload, ensure_ascii=False, default=str)}"


def _event_payload(record: logging.LogRecord) -> Any | None:
    """Return the payload of a record emitted by ``telemetry.log_event``.

    Only records whose message is exactly the event name qualify, so ordinary
    messages that happen to carry ``extra={"json": ...}`` print unchanged.
    """
    extra_json = getattr(record, "json", None)
    if not isinstance(extra_json, dict):
        return None
    event_name = extra_json.get("event")
    if not (isinstance(record.msg, str) and isinstance(event_name, str)):
        return None
    if record.msg.strip() != event_name.strip():
        return None
    return extra_json.get("payload")


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object, merging ``extra={"json": ...}``."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        payload: Any = getattr(record, "json", None)
        if isinstance(payload, dict):
            data: dict[str, Any] = dict(payload)
        elif payload is None:
            data = {}
        else:
            data = {"data": payload}
        data.setdefault("message", record.message)
        data.setdefault("level", record.levelname)
        data.setdefault("logger", record.name)
        data.setdefault("timestamp", utc_now_iso())
        if record.exc_info and "exc_info" not in data:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False, default=str)


class JsonlHandler(RotatingFileHandler):
    """Rotating handler writing :class:`JsonFormatter` lines."""

    def __init__(
        self,
        filename: Path | str,
        *,
        max_bytes: int = _LOG_MAX_BYTES,
        backup_count: int = _ROTATION_BACKUPS,
        encoding: str = "utf-8",
        delay: bool = False,
    ) -> None:
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding=encoding,
            delay=delay,
        )
        self.setFormatter(JsonFormatter())


def _rotate_if_already_full(handler: RotatingFileHandler, existing_size: int) -> None:
    """Roll *handler* over when the file it appends to is already at its limit."""
    max_bytes = getattr(handler, "maxBytes", 0) or 0
    if max_bytes > 0 and existing_size >= max_bytes:
        handler.doRollover()


def _file_size(path: Path) -> int:
    return path.stat().st_size if path.exists() else 0


def attach_file_handlers(
    target: logging.Logger,
    directory: Path,
    stem: str,
    *,
    level: int = logging.DEBUG,
    max_bytes: int = _LOG_MAX_BYTES,
    text_format: str = _TEXT_FORMAT,
    tag: str | None = None,
) -> tuple[RotatingFileHandler, JsonlHandler]:
    """Attach ``<stem>.log`` and ``<stem>.jsonl`` handlers under *directory*.

    Files left over from a previous run that already reached ``max_bytes``
    are rotated before the first write.  When *tag* is given it is set as a
    truthy attribute on both handlers so their owner can find and close them.
    """
    directory.mkdir(parents=True, exist_ok=True)

    text_path = directory / f"{stem}.log"
    text_size = _file_size(text_path)
    text_handler = RotatingFileHandler(
        text_path,
        encoding="utf-8",
        maxBytes=max_bytes,
        backupCount=_ROTATION_BACKUPS,
    )
    text_handler.setFormatter(logging.Formatter(text_format))
    _rotate_if_already_full(text_handler, text_size)

    json_path = directory / f"{stem}.jsonl"
    json_size = _file_size(json_path)
    json_handler = JsonlHandler(json_path, max_bytes=max_bytes)
    _rotate_if_already_full(json_handler, json_size)

    for handler in (text_handler, json_handler):
        handler.setLevel(level)
        if tag:
            setattr(handler, tag, True)
        target.addHandler(handler)
    return text_handler, json_handler


def _resolve_log_dir(log_dir: str | Path | None) -> Path:
    """Pick the explicit directory, then ``ITEMPAGER_LOG_DIR``, then ``~/.itempager/logs``."""
    if log_dir is not None:
        path = Path(log_dir).expanduser()
    elif os.environ.get(LOG_DIR_ENV):
        path = Path(os.environ[LOG_DIR_ENV]).expanduser()
    else:
        path = Path.home() / _DEFAULT_HOME_DIR / _DEFAULT_LOG_SUBDIR
    path.mkdir(parents=True, exist_ok=True)
    return path.resolve()


def configure_logging(level: int = logging.INFO, *, log_dir: str | Path | None = None) -> None:
    """Configure the ``itempager`` logger once.

    Later calls are no-ops, so the CLI, the GUI and the embedded server can
    all call this on startup.
    """
    global _log_dir

    if logger.handlers:
        if _log_dir is None:
            _log_dir = _resolve_log_dir(log_dir)
        return

    _log_dir = _resolve_log_dir(log_dir)

    if sys.stderr is not None:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(ConsoleFormatter())
        logger.addHandler(console)

    attach_file_handlers(logger, _log_dir, _LOG_STEM)
    logger.setLevel(logging.DEBUG)


def install_exception_hooks() -> None:
    """Log uncaught exceptions through the application logger."""

    previous = sys.excepthook

    def _excepthook(exc_type, exc_value, exc_traceback):
        logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
        )
        previous(exc_type, exc_value, exc_traceback)

    sys.excepthook = _excepthook


def get_log_directory() -> Path:
    """Return directory where ItemPager writes log files."""
    if _log_dir is None:
        configure_logging()
    assert _log_dir is not None
    return _log_dir


def get_log_file_paths() -> tuple[Path, Path]:
    """Return paths to text and JSONL log files, configuring logging if needed."""
    directory = get_log_directory()
    return directory / f"{_LOG_STEM}.log", directory / f"{_LOG_STEM}.jsonl"


__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "JsonlHandler",
    "LOG_DIR_ENV",
    "attach_file_handlers",
    "configure_logging",
    "get_log_directory",
    "get_log_file_paths",
    "install_exception_hooks",
    "logger",
]
