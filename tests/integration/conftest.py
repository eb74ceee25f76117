"""Integration-test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from itempager.core.store import CollectionStore
from itempager.server.app import start_server, stop_server
from itempager.services import ItemsService
from itempager.settings import ServerSettings
from tests.api_utils import _wait_until_ready


@pytest.fixture
def items_server(
    tmp_path_factory: pytest.TempPathFactory, free_tcp_port: int
) -> tuple[int, ItemsService]:
    """Start the HTTP server on a temporary port for the duration of a test."""

    port = free_tcp_port
    log_dir: Path = tmp_path_factory.mktemp("items-server")
    service = ItemsService(CollectionStore(1_000))
    settings = ServerSettings(port=port, collection_size=1_000, log_dir=str(log_dir))

    stop_server()
    start_server(settings, service=service)
    _wait_until_ready(port)

    try:
        yield port, service
    finally:
        stop_server()
