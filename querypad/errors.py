"""Exception hierarchy raised by drivers, the pool and the registry."""

from __future__ import annotations

from typing import ClassVar

from .models import ErrorKind


class QueryPadError(RuntimeError):
    """Base error; ``kind`` maps the exception onto an :class:`ErrorKind`."""

    kind: ClassVar[ErrorKind] = ErrorKind.STATEMENT_ERROR


class ProfileNotFound(QueryPadError):
    """Raised when a profile key is unknown or was dropped at load time."""

    kind = ErrorKind.PROFILE_NOT_FOUND

    def __init__(self, key: str) -> None:
        super().__init__(f"Profile '{key}' not found.")
        self.key = key


class DriverUnavailable(QueryPadError):
    """Raised when a driver module cannot be imported or is not usable."""

    kind = ErrorKind.DRIVER_UNAVAILABLE


class ConnectionFailed(QueryPadError):
    """Raised when the driver refuses to open a connection."""

    kind = ErrorKind.CONNECTION_FAILED


class StatementError(QueryPadError):
    """Raised when a statement fails to prepare, execute or fetch."""

    kind = ErrorKind.STATEMENT_ERROR


class StatementClosed(StatementError):
    """Raised when a statement (or its connection) is already closed."""


class CancelUnsupported(QueryPadError):
    """Raised when a driver offers no way to cancel a running statement."""

    kind = ErrorKind.CANCEL_UNSUPPORTED


class CloseFailure(QueryPadError):
    """Collected while tearing resources down; logged, never propagated."""

    kind = ErrorKind.CLOSE_FAILURE

    def __init__(self, resource: str, cause: BaseException) -> None:
        super().__init__(f"Failed to close {resource}: {cause}")
        self.resource = resource
        self.cause = cause


__all__ = [
    "CancelUnsupported",
    "CloseFailure",
    "ConnectionFailed",
    "DriverUnavailable",
    "ProfileNotFound",
    "QueryPadError",
    "StatementClosed",
    "StatementError",
]
