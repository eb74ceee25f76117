"""Tests for the HTTP client against an in-process server."""

import asyncio

import httpx
import pytest

from itempager.client.api import ItemsApiClient
from itempager.core.errors import ConflictError, TransientIOError, ValidationError
from itempager.core.model import StateSnapshot
from itempager.settings import ClientSettings
from tests.api_utils import make_client

pytestmark = pytest.mark.integration


def test_get_items_sync():
    client, _service = make_client(size=45, page_size=20)
    result = client.get_items(3)
    assert [item.id for item in result.items] == list(range(41, 46))
    assert result.total == 45
    assert result.total_pages == 3
    assert result.page_size == 20


def test_get_items_async_with_search():
    client, _service = make_client(size=20)
    result = asyncio.run(client.get_items_async(1, 5, "1"))
    assert [item.id for item in result.items] == [1, 10, 11, 12, 13]
    assert result.total == 11


def test_writes_return_versions_and_state_round_trips():
    client, service = make_client()
    assert client.save_order([4, 2]) == 1
    assert asyncio.run(client.save_selected_async([7])) == 2
    assert client.get_state() == StateSnapshot(order=(4, 2), selected=frozenset({7}), version=2)
    assert asyncio.run(client.get_state_async()) == service.get_state()


def test_bad_request_maps_to_validation_error():
    client, _service = make_client()
    with pytest.raises(ValidationError):
        client.get_items(0)


def test_conflict_maps_to_conflict_error():
    client, service = make_client()
    service.set_selected([1])
    with pytest.raises(ConflictError):
        client.save_order([3], version=0)
    with pytest.raises(ConflictError):
        asyncio.run(client.save_selected_async([3], version=5))


def test_server_error_maps_to_transient_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            500,
            json={"status": 500, "message": "Internal server error", "data": None, "error": "boom"},
        )

    client = ItemsApiClient(
        ClientSettings(base_url="http://testserver"), transport=httpx.MockTransport(handler)
    )
    with pytest.raises(TransientIOError) as excinfo:
        client.get_state()
    assert excinfo.value.status == 500
    assert "boom" in str(excinfo.value)


def test_non_json_body_maps_to_transient_error():
    client = ItemsApiClient(
        ClientSettings(base_url="http://testserver"),
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway")),
    )
    with pytest.raises(TransientIOError):
        asyncio.run(client.get_items_async())


def test_network_failure_maps_to_transient_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = ItemsApiClient(
        ClientSettings(base_url="http://testserver"), transport=httpx.MockTransport(handler)
    )
    with pytest.raises(TransientIOError):
        client.save_selected([1])
    assert client.check_ready() is False


def test_check_ready():
    client, _service = make_client()
    assert client.check_ready() is True
    assert asyncio.run(client.check_ready_async()) is True


def test_request_parameters_are_sent():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        data = {"items": [], "total": 0, "page": 2, "totalPages": 0}
        return httpx.Response(200, json={"status": 200, "message": "ok", "data": data})

    client = ItemsApiClient(
        ClientSettings(base_url="http://testserver/", page_size=15),
        transport=httpx.MockTransport(handler),
    )
    client.get_items(2, search="42")
    request = seen[0]
    assert request.url.path == "/api/items"
    assert dict(request.url.params) == {"page": "2", "limit": "15", "search": "42"}
