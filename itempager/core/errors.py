"""Exception hierarchy shared by the server and the client."""

from __future__ import annotations


class ItemPagerError(Exception):
    """Base class for ItemPager failures."""


class ValidationError(ItemPagerError):
    """Raised when pagination, order or selection input is malformed."""


class ConflictError(ItemPagerError):
    """Raised when an overlay write carries a stale version stamp."""

    def __init__(
        self,
        expected: int | None = None,
        actual: int | None = None,
        *,
        message: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        if message is None:
            message = f"state version mismatch: expected {expected}, current {actual}"
        super().__init__(message)


class TransientIOError(ItemPagerError):
    """Raised when a network round-trip fails, times out or returns an error envelope."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


__all__ = [
    "ConflictError",
    "ItemPagerError",
    "TransientIOError",
    "ValidationError",
]
