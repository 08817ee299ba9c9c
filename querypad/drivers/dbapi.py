"""Driver adapter for any DB-API 2 module (sqlite3, psycopg, pymysql, ...)."""

from __future__ import annotations

import logging
from types import ModuleType
from typing import Any, Iterator

from querypad.errors import (
    CancelUnsupported,
    CloseFailure,
    ConnectionFailed,
    DriverUnavailable,
    StatementClosed,
    StatementError,
)
from querypad.models import Profile, StatementStatus

LOG = logging.getLogger(__name__)

# Pooled connections are handed to whichever thread acquires them next.
_CONNECT_DEFAULTS: dict[str, dict[str, object]] = {
    "sqlite3": {"check_same_thread": False},
}

# Connection methods that abort the statement running on another thread.
_CANCEL_HOOKS = ("interrupt", "cancel")


def _error_types(module: ModuleType) -> type[BaseException]:
    error = getattr(module, "Error", None)
    if isinstance(error, type) and issubclass(error, Exception):
        return error
    return Exception


class DbApiDriver:
    """Opens connections through a module's ``connect(url, **kwargs)``."""

    def __init__(self, module: ModuleType, *, name: str | None = None) -> None:
        self.name = name or module.__name__
        if not callable(getattr(module, "connect", None)):
            raise DriverUnavailable(f"Driver '{self.name}' does not expose a DB-API connect()")
        self._module = module
        self._errors = _error_types(module)

    def connect(self, profile: Profile) -> DbApiConnection:
        kwargs = dict(_CONNECT_DEFAULTS.get(self.name, {}))
        if profile.has_credentials:
            kwargs["user"] = profile.user
            kwargs["password"] = profile.password
        else:
            kwargs.update(profile.connect_properties())
        try:
            raw = self._module.connect(profile.url, **kwargs)
        except Exception as exc:
            raise ConnectionFailed(f"Failed to connect to profile '{profile.key}': {exc}") from exc
        LOG.debug("Opened %s connection for profile %s", self.name, profile.key)
        return DbApiConnection(raw, driver_name=self.name, errors=self._errors)

    def shutdown(self) -> None:
        return None


class DbApiConnection:
    """Wraps a DB-API connection object."""

    def __init__(self, raw: Any, *, driver_name: str, errors: type[BaseException]) -> None:
        self._raw = raw
        self._driver_name = driver_name
        self._errors = errors
        self._closed = False

    @property
    def raw(self) -> Any:
        return self._raw

    @property
    def errors(self) -> type[BaseException]:
        return self._errors

    @property
    def driver_name(self) -> str:
        return self._driver_name

    def create_statement(self) -> DbApiStatement:
        if self.is_closed():
            raise StatementClosed("Connection is closed.")
        try:
            cursor = self._raw.cursor()
        except self._errors as exc:
            if self.is_closed():
                raise StatementClosed(str(exc)) from exc
            raise StatementError(str(exc)) from exc
        return DbApiStatement(self, cursor)

    def is_closed(self) -> bool:
        if self._closed:
            return True
        closed = getattr(self._raw, "closed", None)
        if closed is not None and not callable(closed):
            return bool(closed)
        # No status attribute (sqlite3): probe with a throwaway cursor.
        try:
            self._raw.cursor().close()
        except self._errors:
            return True
        return False

    def close(self) -> None:
        self._closed = True
        try:
            self._raw.close()
        except self._errors as exc:
            raise CloseFailure(f"{self._driver_name} connection", exc) from exc


class DbApiStatement:
    """Wraps a DB-API cursor; the cursor doubles as the result set."""

    def __init__(self, connection: DbApiConnection, cursor: Any) -> None:
        self._connection = connection
        self._cursor = cursor
        self._max_rows = 0
        self._closed = False
        self._has_result = False
        self.update_count = -1

    def set_max_rows(self, max_rows: int) -> None:
        self._max_rows = max(max_rows, 0)

    def execute(self, sql: str) -> bool:
        if self._closed:
            raise StatementClosed("Statement is closed.")
        try:
            self._cursor.execute(sql)
        except self._connection.errors as exc:
            raise StatementError(str(exc)) from exc
        self._has_result = self._cursor.description is not None
        if self._has_result:
            self.update_count = -1
        else:
            # DB-API reports -1 when the count is not applicable (DDL).
            self.update_count = max(self._cursor.rowcount, 0)
        return self._has_result

    def result_cursor(self) -> DbApiResultCursor:
        if not self._has_result:
            raise StatementError("Statement did not produce a result set.")
        return DbApiResultCursor(self._cursor, max_rows=self._max_rows, errors=self._connection.errors)

    def status(self) -> StatementStatus:
        if self._closed:
            return StatementStatus.CLOSED
        closed = getattr(self._cursor, "closed", None)
        if isinstance(closed, bool):
            return StatementStatus.CLOSED if closed else StatementStatus.OPEN
        if self._connection.is_closed():
            return StatementStatus.CLOSED
        return StatementStatus.UNKNOWN

    def cancel(self) -> None:
        if self._closed:
            LOG.debug("Statement already closed, nothing to cancel")
            return
        raw = self._connection.raw
        for name in _CANCEL_HOOKS:
            hook = getattr(raw, name, None)
            if callable(hook):
                try:
                    hook()
                except self._connection.errors as exc:
                    raise StatementError(f"Cancel failed: {exc}") from exc
                return
        raise CancelUnsupported(f"Driver '{self._connection.driver_name}' does not support cancellation")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        except self._connection.errors as exc:
            raise CloseFailure(f"{self._connection.driver_name} statement", exc) from exc


class DbApiResultCursor:
    """Forward-only view over an executed cursor, capped at ``max_rows``."""

    def __init__(self, cursor: Any, *, max_rows: int, errors: type[BaseException]) -> None:
        self._cursor = cursor
        self._max_rows = max_rows
        self._errors = errors
        self._exhausted = False

    def columns(self) -> tuple[str, ...]:
        return tuple(str(column[0]) for column in self._cursor.description or ())

    def __iter__(self) -> Iterator[tuple[object, ...]]:
        fetched = 0
        while not self._exhausted and (not self._max_rows or fetched < self._max_rows):
            try:
                row = self._cursor.fetchone()
            except self._errors as exc:
                raise StatementError(str(exc)) from exc
            if row is None:
                self._exhausted = True
                return
            fetched += 1
            yield tuple(row)

    def close(self) -> None:
        self._exhausted = True


__all__ = ["DbApiConnection", "DbApiDriver", "DbApiResultCursor", "DbApiStatement"]
