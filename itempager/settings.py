"""Typed application settings with Pydantic validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .core.store import DEFAULT_COLLECTION_SIZE

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 1000
DEFAULT_ROW_HEIGHT = 35
DEFAULT_OVERSCAN = 5
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 3


def _coerce_int(value: int | str | None, *, name: str) -> int | str | None:
    """Return ``value`` as ``int`` when possible, leaving junk to Pydantic."""
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:  # pragma: no cover - delegated to Pydantic
            return value
    if isinstance(value, bool):
        raise TypeError(f"Boolean is not a valid {name} value")
    return int(value)


def _normalize_optional_path(value: str | Path | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def default_state_path() -> str:
    """Return the default location of the client durable state file."""
    return str(Path.home() / ".itempager" / "client_state.json")


class ServerSettings(BaseModel):
    """Settings for the HTTP server hosting the collection."""

    model_config = ConfigDict(validate_assignment=True)

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    collection_size: int = Field(DEFAULT_COLLECTION_SIZE, ge=0)
    default_page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1)
    max_page_size: int = Field(MAX_PAGE_SIZE, ge=1)
    log_dir: str | None = None
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("host", mode="before")
    @classmethod
    def _normalize_host(cls, value: str | None) -> str:
        if value is None:
            return DEFAULT_HOST
        text = str(value).strip()
        return text or DEFAULT_HOST

    @field_validator("log_dir", mode="before")
    @classmethod
    def _normalize_log_dir(cls, value: str | Path | None) -> str | None:
        """Convert empty strings to ``None`` and normalise paths."""
        return _normalize_optional_path(value)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _normalize_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        """Accept a comma separated string and drop blank entries."""
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(entry).strip() for entry in value if str(entry).strip()]

    @field_validator("default_page_size", mode="before")
    @classmethod
    def _normalize_default_page_size(cls, value: int | str | None) -> int:
        """Fall back to the default for empty or non-positive sizes."""
        numeric = _coerce_int(value, name="default_page_size")
        if numeric is None:
            return DEFAULT_PAGE_SIZE
        if isinstance(numeric, int) and numeric <= 0:
            return DEFAULT_PAGE_SIZE
        return numeric

    @field_validator("max_page_size", mode="before")
    @classmethod
    def _normalize_max_page_size(cls, value: int | str | None) -> int:
        numeric = _coerce_int(value, name="max_page_size")
        if numeric is None:
            return MAX_PAGE_SIZE
        if isinstance(numeric, int) and numeric <= 0:
            return MAX_PAGE_SIZE
        return numeric


class ClientSettings(BaseModel):
    """Settings for the windowed list client."""

    model_config = ConfigDict(validate_assignment=True)

    base_url: str = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    row_height: int = Field(DEFAULT_ROW_HEIGHT, ge=1)
    overscan: int = Field(DEFAULT_OVERSCAN, ge=0)
    request_timeout: float = Field(DEFAULT_REQUEST_TIMEOUT, gt=0)
    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0)
    failure_policy: Literal["retry", "revert"] = "retry"
    state_path: str = Field(default_factory=default_state_path)

    @field_validator("base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: str | None) -> str:
        """Strip whitespace and trailing slashes from the server address."""
        if value is None:
            return f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"
        text = str(value).strip().rstrip("/")
        return text or f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"

    @field_validator("page_size", mode="before")
    @classmethod
    def _normalize_page_size(cls, value: int | str | None) -> int:
        """Clamp the page size into ``1..MAX_PAGE_SIZE``."""
        numeric = _coerce_int(value, name="page_size")
        if numeric is None:
            return DEFAULT_PAGE_SIZE
        if isinstance(numeric, int):
            if numeric <= 0:
                return DEFAULT_PAGE_SIZE
            if numeric > MAX_PAGE_SIZE:
                return MAX_PAGE_SIZE
        return numeric

    @field_validator("overscan", mode="before")
    @classmethod
    def _normalize_overscan(cls, value: int | str | None) -> int:
        numeric = _coerce_int(value, name="overscan")
        if numeric is None:
            return DEFAULT_OVERSCAN
        if isinstance(numeric, int) and numeric < 0:
            return 0
        return numeric

    @field_validator("request_timeout", mode="before")
    @classmethod
    def _normalize_request_timeout(cls, value: float | str | None) -> float:
        """Coerce *value* into a positive number of seconds."""
        if value is None:
            return DEFAULT_REQUEST_TIMEOUT
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return DEFAULT_REQUEST_TIMEOUT
            try:
                parsed = float(raw)
            except ValueError:  # pragma: no cover - delegated to Pydantic
                return value
        else:
            if isinstance(value, bool):
                raise TypeError("Boolean is not a valid request_timeout value")
            parsed = float(value)
        if parsed <= 0:
            return DEFAULT_REQUEST_TIMEOUT
        return parsed

    @field_validator("max_retries", mode="before")
    @classmethod
    def _normalize_max_retries(cls, value: int | str | None) -> int:
        numeric = _coerce_int(value, name="max_retries")
        if numeric is None:
            return DEFAULT_MAX_RETRIES
        if isinstance(numeric, int) and numeric < 0:
            return 0
        return numeric

    @field_validator("state_path", mode="before")
    @classmethod
    def _normalize_state_path(cls, value: str | Path | None) -> str:
        return _normalize_optional_path(value) or default_state_path()


class AppSettings(BaseModel):
    """Aggregate settings for the application."""

    model_config = ConfigDict(validate_assignment=True)

    server: ServerSettings = Field(default_factory=ServerSettings)
    client: ClientSettings = Field(default_factory=ClientSettings)

    def to_dict(self) -> dict:
        """Return settings as a plain dictionary."""
        return self.model_dump()


def load_app_settings(path: str | Path) -> AppSettings:
    """Load :class:`AppSettings` from *path* with validation.

    Format is detected by file extension: ``.toml`` uses :mod:`tomllib`,
    everything else is treated as JSON.  Any validation errors are wrapped into
    :class:`ValueError` with a human-friendly message.
    """
    p = Path(path)
    with p.open("rb") as fh:
        data = tomllib.load(fh) if p.suffix.lower() == ".toml" else json.load(fh)
    try:
        return AppSettings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


__all__ = [
    "AppSettings",
    "ClientSettings",
    "ServerSettings",
    "default_state_path",
    "load_app_settings",
]
