"""Dedicated request logging for the ItemPager HTTP server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import Request

from ..log import attach_file_handlers, configure_logging, get_log_directory, logger
from ..telemetry import sanitize
from ..util.time import utc_now_iso

request_logger = logger.getChild("server.requests")
request_logger.setLevel(logging.INFO)
request_logger.propagate = False

_LOG_STEM = "server"
_HANDLER_TAG = "itempager_request"
_REQUEST_LOG_MAX_BYTES = 2 * 1024 * 1024


def configure_request_logging(log_dir: str | Path | None) -> Path:
    """Attach request logger handlers and return the resolved log directory."""
    configure_logging(log_dir=log_dir)
    close_request_logging_handlers()

    if log_dir:
        log_dir_path = Path(log_dir).expanduser()
    else:
        log_dir_path = get_log_directory() / "server"
    attach_file_handlers(
        request_logger,
        log_dir_path,
        _LOG_STEM,
        level=logging.INFO,
        max_bytes=_REQUEST_LOG_MAX_BYTES,
        text_format="%(asctime)s %(levelname)s %(message)s",
        tag=_HANDLER_TAG,
    )
    return log_dir_path


def log_request(
    request: Request,
    status: int,
    *,
    duration_ms: float | None = None,
    error: str | None = None,
) -> None:
    """Emit a structured request log record for a handled HTTP request."""
    entry: dict[str, Any] = {
        "timestamp": utc_now_iso(),
        "method": request.method,
        "path": request.url.path,
        "query": dict(request.query_params),
        "headers": sanitize(dict(request.headers)),
        "status": status,
    }
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        entry["request_id"] = request_id
    client = request.client
    if client:
        entry["client"] = {"host": client.host, "port": client.port}
    if duration_ms is not None:
        entry["duration_ms"] = round(duration_ms, 3)
    if error is not None:
        entry["error"] = error
    request_logger.info(
        "%s %s -> %s",
        request.method,
        request.url.path,
        status,
        extra={"json": entry},
    )


def close_request_logging_handlers() -> None:
    """Detach and close handlers managed by this module."""
    for handler in list(request_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            request_logger.removeHandler(handler)
            handler.close()


__all__ = [
    "close_request_logging_handlers",
    "configure_request_logging",
    "log_request",
    "request_logger",
]
