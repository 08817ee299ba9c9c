"""Shared dataclasses used across pool/registry/executor modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

COMMON_KEY = "common"
DEFAULT_KEY = "default"

_TEXT_SETTINGS = frozenset({"user", "password"})

# Connect arguments drivers expect as integers; everything else stays text.
_INTEGER_SETTINGS = frozenset(
    {
        "port",
        "timeout",
        "connect_timeout",
        "command_timeout",
        "cached_statements",
        "statement_cache_size",
        "max_cached_statement_lifetime",
        "max_cacheable_statement_size",
    }
)


def _coerce(name: str, value: str) -> object:
    lowered = value.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if name in _INTEGER_SETTINGS and lowered.lstrip("-").isdecimal():
        return int(lowered)
    return value


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers or written to the log."""

    PROFILE_NOT_FOUND = "profile_not_found"
    DRIVER_UNAVAILABLE = "driver_unavailable"
    CONNECTION_FAILED = "connection_failed"
    STATEMENT_ERROR = "statement_error"
    CANCEL_UNSUPPORTED = "cancel_unsupported"
    CLOSE_FAILURE = "close_failure"


class ResultCode(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class StatementStatus(str, Enum):
    """Answer to "is this statement closed?".

    UNKNOWN means the driver cannot tell; callers treat it as open.
    """

    OPEN = "open"
    CLOSED = "closed"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Profile:
    """Runtime representation of a connection profile."""

    key: str
    driver: str
    url: str
    user: str | None = None
    password: str | None = None
    properties: Mapping[str, str] = field(default_factory=dict)

    @property
    def has_credentials(self) -> bool:
        return self.user is not None and self.password is not None

    def connect_properties(self) -> dict[str, object]:
        """Settings handed to the driver when user/password are not both set.

        ``true``/``false`` become booleans and numeric settings such as
        ``port`` become integers; everything else, credentials included, is
        passed through as text.
        """

        return {
            name: value if name in _TEXT_SETTINGS else _coerce(name, value)
            for name, value in self.properties.items()
            if name not in {"driver", "url"}
        }


@dataclass(frozen=True, slots=True)
class ResultTable:
    """Column names plus stringified rows of a rendered result."""

    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Typed outcome returned by the query executor."""

    code: ResultCode
    payload: str
    error_kind: ErrorKind | None = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.code is ResultCode.SUCCESS

    @classmethod
    def success(cls, payload: str, *, elapsed_ms: int = 0) -> ExecutionResult:
        return cls(code=ResultCode.SUCCESS, payload=payload, elapsed_ms=elapsed_ms)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, *, elapsed_ms: int = 0) -> ExecutionResult:
        return cls(code=ResultCode.ERROR, payload=message, error_kind=kind, elapsed_ms=elapsed_ms)


__all__ = [
    "COMMON_KEY",
    "DEFAULT_KEY",
    "ErrorKind",
    "ExecutionResult",
    "Profile",
    "ResultCode",
    "ResultTable",
    "StatementStatus",
]
