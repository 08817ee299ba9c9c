"""Driver adapters behind the Connection/Statement/ResultCursor contracts."""

from __future__ import annotations

import importlib
import logging

from querypad.errors import DriverUnavailable

from .dbapi import DbApiConnection, DbApiDriver, DbApiResultCursor, DbApiStatement
from .postgres import AsyncpgConnection, AsyncpgDriver, AsyncpgStatement, BufferedResultCursor
from .types import Connection, Driver, ResultCursor, Statement

LOG = logging.getLogger(__name__)

ASYNCPG_DRIVER = "asyncpg"


def load_driver(name: str) -> Driver:
    """Return the adapter for ``name``.

    ``asyncpg`` gets the native adapter; any other name is imported as a
    DB-API 2 module (``sqlite3``, ``psycopg``, ``pymysql``, ...).
    """

    name = name.strip()
    if not name:
        raise DriverUnavailable("No driver configured")
    if name == ASYNCPG_DRIVER:
        return AsyncpgDriver()
    try:
        module = importlib.import_module(name)
    except ImportError as exc:
        raise DriverUnavailable(f"Cannot load driver '{name}': {exc}") from exc
    LOG.info("Loaded DB-API driver %s", name)
    return DbApiDriver(module, name=name)


__all__ = [
    "AsyncpgConnection",
    "AsyncpgDriver",
    "AsyncpgStatement",
    "BufferedResultCursor",
    "Connection",
    "DbApiConnection",
    "DbApiDriver",
    "DbApiResultCursor",
    "DbApiStatement",
    "Driver",
    "ResultCursor",
    "Statement",
    "load_driver",
]
