"""Errors raised by the async client.

Every error carries the same ``user_message``: the UI does not tell a
rejected request apart from an unreachable server.
"""
from __future__ import annotations

from typing import Optional

GENERIC_USER_MESSAGE = "Something went wrong. Please try again."


class ClientError(Exception):
    """Base exception for client-side failures."""

    user_message = GENERIC_USER_MESSAGE

    def __init__(self, message: str = GENERIC_USER_MESSAGE) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(ClientError):
    """The server answered 401; the session has to be re-established."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)
        self.status = 401


class RequestFailedError(ClientError):
    """Any non-2xx response other than 401."""

    def __init__(self, status: int, message: str, body: Optional[object] = None) -> None:
        super().__init__(f"{status}: {message}")
        self.status = status
        self.body = body

    @property
    def is_transient(self) -> bool:
        return self.status >= 500


class TransportError(ClientError):
    """Network unreachable, connection reset or timed out."""


class MalformedResponseError(ClientError):
    """A response did not have the shape the caller expected."""


def is_transient(exc: BaseException) -> bool:
    """Whether a failed read is worth retrying."""
    if isinstance(exc, TransportError):
        return True
    return isinstance(exc, RequestFailedError) and exc.is_transient


__all__ = [
    "ClientError",
    "UnauthorizedError",
    "RequestFailedError",
    "TransportError",
    "MalformedResponseError",
    "GENERIC_USER_MESSAGE",
    "is_transient",
]
