"""Response envelope shared by every ``/api`` route."""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

INTERNAL_ERROR_MESSAGE = "Internal server error"


def format_response(
    status: int,
    message: str,
    data: Any = None,
    error: str | None = None,
) -> dict[str, Any]:
    """Return the ``{status, message, data, error?}`` envelope.

    ``status`` mirrors the HTTP status code of the response.
    """
    envelope: dict[str, Any] = {"status": status, "message": message, "data": data}
    if error is not None:
        envelope["error"] = error
    return envelope


def error_response(status_code: int, message: str, error: str) -> JSONResponse:
    """Return a :class:`JSONResponse` carrying an error envelope."""
    return JSONResponse(
        format_response(status_code, message, None, error),
        status_code=status_code,
    )


__all__ = ["INTERNAL_ERROR_MESSAGE", "error_response", "format_response"]
