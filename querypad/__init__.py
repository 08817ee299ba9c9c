"""Pooled, cancellable ad-hoc SQL execution across named profiles."""

from __future__ import annotations

__version__ = "0.1.0"

from .config import AppConfig, ProfileStore, load_config
from .errors import (
    CancelUnsupported,
    CloseFailure,
    ConnectionFailed,
    DriverUnavailable,
    ProfileNotFound,
    QueryPadError,
    StatementError,
)
from .executor import QueryExecutor, parse_profile_key
from .models import ErrorKind, ExecutionResult, Profile, ResultCode, ResultTable
from .pool import ConnectionPool
from .registry import ExecutionBinding, ExecutionRegistry

__all__ = [
    "AppConfig",
    "CancelUnsupported",
    "CloseFailure",
    "ConnectionFailed",
    "ConnectionPool",
    "DriverUnavailable",
    "ErrorKind",
    "ExecutionBinding",
    "ExecutionRegistry",
    "ExecutionResult",
    "Profile",
    "ProfileNotFound",
    "ProfileStore",
    "QueryExecutor",
    "QueryPadError",
    "ResultCode",
    "ResultTable",
    "StatementError",
    "__version__",
    "load_config",
    "parse_profile_key",
]
