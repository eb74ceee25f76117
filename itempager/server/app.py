"""HTTP server exposing the item collection.

The FastAPI application is built by :func:`create_app` around one
:class:`~itempager.services.ItemsService`.  :func:`start_server` runs uvicorn
in a background thread so that the wxPython main loop and the test-suite stay
responsive, while :func:`serve` blocks in the foreground for the CLI.
"""
from __future__ import annotations

import threading
import time
from pathlib import Path
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, StrictInt

from ..core.errors import ConflictError, ValidationError
from ..core.model import page_to_dict, state_to_dict
from ..core.store import CollectionStore
from ..log import logger
from ..services.items import ItemsService
from ..settings import ServerSettings
from .envelope import INTERNAL_ERROR_MESSAGE, error_response, format_response
from .request_logging import (
    close_request_logging_handlers,
    configure_request_logging,
    log_request,
)


class OrderPayload(BaseModel):
    """Body of ``POST /api/items/order``."""

    model_config = ConfigDict(extra="ignore")

    order: list[StrictInt]
    version: StrictInt | None = None


class SelectedPayload(BaseModel):
    """Body of ``POST /api/items/selected``."""

    model_config = ConfigDict(extra="ignore")

    selected: list[StrictInt]
    version: StrictInt | None = None


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "invalid request"


def build_service(settings: ServerSettings) -> ItemsService:
    """Return a fresh :class:`ItemsService` configured from ``settings``."""
    return ItemsService(
        CollectionStore(settings.collection_size),
        max_page_size=settings.max_page_size,
    )


def create_app(
    service: ItemsService | None = None,
    settings: ServerSettings | None = None,
) -> FastAPI:
    """Create the FastAPI application serving ``service``."""
    settings = settings or ServerSettings()
    if service is None:
        service = build_service(settings)

    app = FastAPI(title="ItemPager")
    app.state.service = service
    app.state.settings = settings

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next):
        """Tag every request with an id and log its outcome."""
        request.state.request_id = uuid4().hex
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            log_request(
                request,
                500,
                duration_ms=elapsed,
                error=f"{type(exc).__name__}: {exc}",
            )
            raise
        elapsed = (time.perf_counter() - start) * 1000
        log_request(request, response.status_code, duration_ms=elapsed)
        return response

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(400, "Invalid request", _describe_validation_error(exc))

    @app.exception_handler(ValidationError)
    async def _validation_handler(request: Request, exc: ValidationError):
        return error_response(400, "Invalid request", str(exc))

    @app.exception_handler(ConflictError)
    async def _conflict_handler(request: Request, exc: ConflictError):
        return error_response(409, "State version conflict", str(exc))

    @app.exception_handler(Exception)
    async def _unhandled_handler(request: Request, exc: Exception):
        logger.exception("Unhandled failure while serving %s", request.url.path)
        return error_response(500, INTERNAL_ERROR_MESSAGE, str(exc))

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Report readiness information for external health probes."""
        return {"status": "ok"}

    @app.get("/api/items")
    async def get_items(
        page: int = Query(1),
        limit: int | None = Query(None),
        search: str = Query(""),
    ) -> dict:
        """Return one page of the filtered, ordered collection."""
        size = settings.default_page_size if limit is None else limit
        result = service.get_items(page, size, search)
        return format_response(200, "Items retrieved successfully", page_to_dict(result))

    @app.post("/api/items/order")
    async def save_order(payload: OrderPayload) -> dict:
        """Replace the order override."""
        state = service.set_order(payload.order, version=payload.version)
        return format_response(200, "Order saved successfully", {"version": state.version})

    @app.post("/api/items/selected")
    async def save_selected(payload: SelectedPayload) -> dict:
        """Replace the selection set."""
        state = service.set_selected(payload.selected, version=payload.version)
        return format_response(
            200, "Selected items saved successfully", {"version": state.version}
        )

    @app.get("/api/items/state")
    async def get_state() -> dict:
        """Return the order override, the selection and their version."""
        state = service.get_state()
        return format_response(200, "State retrieved successfully", state_to_dict(state))

    return app


app = create_app()


# Internal state for the background server
_uvicorn_server: uvicorn.Server | None = None
_server_thread: threading.Thread | None = None


def is_running() -> bool:
    """Return ``True`` if the background server is currently running."""
    return _uvicorn_server is not None


def start_server(
    settings: ServerSettings | None = None,
    *,
    service: ItemsService | None = None,
    log_dir: str | Path | None = None,
) -> FastAPI:
    """Start the HTTP server in a background thread and return its application.

    Args:
        settings: Host, port and collection configuration.  Defaults are used
            when omitted.
        service: Pre-built service to expose, mainly for tests.
        log_dir: Directory where request logs are stored.  Defaults to
            ``settings.log_dir`` or the application log directory under
            ``server``.
    """
    global _uvicorn_server, _server_thread

    settings = settings or ServerSettings()
    if _uvicorn_server is not None:
        logger.info("Server already running; start request ignored")
        return _uvicorn_server.config.app

    configure_request_logging(log_dir or settings.log_dir)
    application = create_app(service, settings)
    config = uvicorn.Config(
        application, host=settings.host, port=settings.port, log_level="info"
    )
    server = uvicorn.Server(config)
    # Disable signal handlers so uvicorn can run outside the main thread
    server.install_signal_handlers = False
    _uvicorn_server = server

    def _run() -> None:
        try:
            server.run()
        except Exception:
            logger.exception("Server terminated with an unhandled exception")
            raise

    _server_thread = threading.Thread(target=_run, daemon=True)
    _server_thread.start()
    logger.info("Server starting on http://%s:%s", settings.host, settings.port)
    return application


def stop_server() -> None:
    """Stop the background HTTP server if it is running."""
    global _uvicorn_server, _server_thread

    if _uvicorn_server is None:
        logger.info("Server stop requested but no server instance is active")
        return

    start = time.perf_counter()
    _uvicorn_server.should_exit = True

    if _server_thread is not None:
        timeout = 5.0
        _server_thread.join(timeout=timeout)
        if _server_thread.is_alive():
            logger.warning(
                "Server thread did not exit within %.1fs; forcing shutdown",
                timeout,
            )
            _uvicorn_server.force_exit = True
            _server_thread.join(timeout=1.0)
            if _server_thread.is_alive():
                logger.error("Server thread still running after forced shutdown request")
        else:
            logger.info("Server thread exited cleanly")

    _uvicorn_server = None
    _server_thread = None
    close_request_logging_handlers()
    logger.info("Server shutdown completed in %.3fs", time.perf_counter() - start)


def serve(settings: ServerSettings | None = None) -> None:
    """Run the HTTP server in the foreground until interrupted."""
    settings = settings or ServerSettings()
    configure_request_logging(settings.log_dir)
    application = create_app(None, settings)
    logger.info(
        "Serving %d items on http://%s:%s",
        settings.collection_size,
        settings.host,
        settings.port,
    )
    uvicorn.run(application, host=settings.host, port=settings.port, log_level="info")


__all__ = [
    "OrderPayload",
    "SelectedPayload",
    "app",
    "build_service",
    "create_app",
    "is_running",
    "serve",
    "start_server",
    "stop_server",
]
