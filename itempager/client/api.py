"""HTTP client for the ItemPager JSON API."""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from ..core.errors import ConflictError, TransientIOError, ValidationError
from ..core.model import PageResult, StateSnapshot, page_from_dict, state_from_dict
from ..settings import ClientSettings
from ..telemetry import log_debug_payload

logger = logging.getLogger(__name__)


class ItemsApiClient:
    """Thin wrapper around the ``/api/items`` routes.

    Every call exists in a blocking and an ``async`` flavour.  Responses are
    unwrapped from the ``{status, message, data, error?}`` envelope; a 400
    becomes :class:`ValidationError`, a 409 becomes :class:`ConflictError` and
    any other failure, timeouts included, becomes :class:`TransientIOError`.

    ``transport`` replaces the network layer, which lets tests route requests
    to an in-process application through :class:`httpx.MockTransport` or
    :class:`httpx.ASGITransport` (the latter only for ``async`` calls).
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._transport = transport
        self._timeout = httpx.Timeout(self.settings.request_timeout)

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    # ------------------------------------------------------------------
    def _request_sync(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> httpx.Response:
        """Execute *method* request synchronously and return the response."""
        with httpx.Client(
            base_url=self.base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            return client.request(method, path, params=params, json=json_body)

    async def _request_async(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> httpx.Response:
        """Execute *method* request asynchronously and return the response."""
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            return await client.request(method, path, params=params, json=json_body)

    @staticmethod
    def _unwrap(method: str, path: str, response: httpx.Response) -> Any:
        """Return the envelope ``data`` or raise the mapped error."""
        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = None
        log_debug_payload(
            "HTTP_RESPONSE",
            {"method": method, "path": path, "status": response.status_code, "body": payload},
        )
        if not isinstance(payload, Mapping):
            raise TransientIOError(
                f"{method} {path} returned a non-JSON body", status=response.status_code
            )
        message = str(payload.get("error") or payload.get("message") or "")
        status = response.status_code
        if status == 400:
            raise ValidationError(message or "invalid request")
        if status == 409:
            raise ConflictError(message=message or "state version conflict")
        if not 200 <= status < 300:
            raise TransientIOError(f"{method} {path} failed with {status}: {message}", status=status)
        return payload.get("data")

    def _call(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        log_debug_payload(
            "HTTP_REQUEST", {"method": method, "path": path, "params": params, "body": json_body}
        )
        try:
            response = self._request_sync(method, path, params=params, json_body=json_body)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransientIOError(f"{method} {path} failed: {exc}") from exc
        return self._unwrap(method, path, response)

    async def _call_async(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        log_debug_payload(
            "HTTP_REQUEST", {"method": method, "path": path, "params": params, "body": json_body}
        )
        try:
            response = await self._request_async(
                method, path, params=params, json_body=json_body
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransientIOError(f"{method} {path} failed: {exc}") from exc
        return self._unwrap(method, path, response)

    # ------------------------------------------------------------------
    @staticmethod
    def _page_params(page: int, limit: int, search: str) -> dict[str, Any]:
        return {"page": page, "limit": limit, "search": search or ""}

    @staticmethod
    def _write_body(key: str, ids: Iterable[int], version: int | None) -> dict[str, Any]:
        body: dict[str, Any] = {key: list(ids)}
        if version is not None:
            body["version"] = version
        return body

    @staticmethod
    def _version_of(data: Any) -> int:
        if not isinstance(data, Mapping) or "version" not in data:
            raise TransientIOError("write response did not include a version")
        return int(data["version"])

    # ------------------------------------------------------------------
    def get_items(self, page: int = 1, limit: int | None = None, search: str = "") -> PageResult:
        """Fetch page ``page`` of ``limit`` items matching ``search``."""
        size = limit or self.settings.page_size
        data = self._call("GET", "/api/items", params=self._page_params(page, size, search))
        return page_from_dict(data or {}, page_size=size)

    async def get_items_async(
        self, page: int = 1, limit: int | None = None, search: str = ""
    ) -> PageResult:
        """Asynchronous counterpart to :meth:`get_items`."""
        size = limit or self.settings.page_size
        data = await self._call_async(
            "GET", "/api/items", params=self._page_params(page, size, search)
        )
        return page_from_dict(data or {}, page_size=size)

    def get_state(self) -> StateSnapshot:
        """Fetch the order override, the selection and their version."""
        return state_from_dict(self._call("GET", "/api/items/state") or {})

    async def get_state_async(self) -> StateSnapshot:
        """Asynchronous counterpart to :meth:`get_state`."""
        return state_from_dict(await self._call_async("GET", "/api/items/state") or {})

    def save_order(self, order: Iterable[int], *, version: int | None = None) -> int:
        """Replace the server order override and return the new version."""
        data = self._call(
            "POST", "/api/items/order", json_body=self._write_body("order", order, version)
        )
        return self._version_of(data)

    async def save_order_async(
        self, order: Iterable[int], *, version: int | None = None
    ) -> int:
        """Asynchronous counterpart to :meth:`save_order`."""
        data = await self._call_async(
            "POST", "/api/items/order", json_body=self._write_body("order", order, version)
        )
        return self._version_of(data)

    def save_selected(self, selected: Iterable[int], *, version: int | None = None) -> int:
        """Replace the server selection and return the new version."""
        data = self._call(
            "POST",
            "/api/items/selected",
            json_body=self._write_body("selected", selected, version),
        )
        return self._version_of(data)

    async def save_selected_async(
        self, selected: Iterable[int], *, version: int | None = None
    ) -> int:
        """Asynchronous counterpart to :meth:`save_selected`."""
        data = await self._call_async(
            "POST",
            "/api/items/selected",
            json_body=self._write_body("selected", selected, version),
        )
        return self._version_of(data)

    # ------------------------------------------------------------------
    def check_ready(self) -> bool:
        """Return ``True`` when ``/health`` answers with ``{"status": "ok"}``."""
        try:
            response = self._request_sync("GET", "/health")
        except httpx.HTTPError as exc:
            logger.debug("Readiness probe failed: %s", exc)
            return False
        return response.status_code == 200 and _is_ok(response)

    async def check_ready_async(self) -> bool:
        """Asynchronous counterpart to :meth:`check_ready`."""
        try:
            response = await self._request_async("GET", "/health")
        except httpx.HTTPError as exc:
            logger.debug("Readiness probe failed: %s", exc)
            return False
        return response.status_code == 200 and _is_ok(response)


def _is_ok(response: httpx.Response) -> bool:
    try:
        payload = response.json()
    except json.JSONDecodeError:
        return False
    return isinstance(payload, Mapping) and payload.get("status") == "ok"


__all__ = ["ItemsApiClient"]
