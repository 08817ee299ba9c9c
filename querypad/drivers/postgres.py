"""Driver adapter that talks to PostgreSQL via asyncpg."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Iterator, TypeVar

import asyncpg

from querypad.errors import (
    CloseFailure,
    ConnectionFailed,
    StatementClosed,
    StatementError,
)
from querypad.models import Profile, StatementStatus

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncpgDriver:
    """Runs asyncpg on a private event loop and exposes blocking calls.

    Every connection opened by this driver lives on the same loop thread, so
    a statement blocked in ``execute`` can be cancelled from any other thread.
    """

    name = "asyncpg"

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever,
            name="querypad-asyncpg-driver",
            daemon=True,
        )
        self._loop_thread.start()

    def connect(self, profile: Profile) -> AsyncpgConnection:
        try:
            raw = self.run(asyncpg.connect(**self._connect_kwargs(profile)))
        except Exception as exc:
            raise ConnectionFailed(f"Failed to connect to profile '{profile.key}': {exc}") from exc
        LOG.debug("Opened asyncpg connection for profile %s", profile.key)
        return AsyncpgConnection(self, raw)

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        return self.submit(coro).result()

    def shutdown(self) -> None:
        """Stop the background event loop."""

        if not self._loop.is_running():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._loop_thread.join(timeout=1)

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.shutdown()
        except Exception:
            pass

    def _connect_kwargs(self, profile: Profile) -> dict[str, object]:
        kwargs: dict[str, object] = {"dsn": profile.url}
        if profile.has_credentials:
            kwargs["user"] = profile.user
            kwargs["password"] = profile.password
        else:
            kwargs.update(profile.connect_properties())
        kwargs.setdefault("timeout", self._connect_timeout)
        return kwargs


class AsyncpgConnection:
    """Blocking facade over an ``asyncpg.Connection``."""

    def __init__(self, driver: AsyncpgDriver, raw: asyncpg.Connection) -> None:
        self._driver = driver
        self._raw = raw

    @property
    def driver(self) -> AsyncpgDriver:
        return self._driver

    @property
    def raw(self) -> asyncpg.Connection:
        return self._raw

    def create_statement(self) -> AsyncpgStatement:
        if self.is_closed():
            raise StatementClosed("Connection is closed.")
        return AsyncpgStatement(self)

    def is_closed(self) -> bool:
        return self._raw.is_closed()

    def close(self) -> None:
        try:
            self._driver.run(self._raw.close())
        except Exception as exc:
            raise CloseFailure("asyncpg connection", exc) from exc


class AsyncpgStatement:
    """One statement execution; rows are buffered up to the row cap."""

    def __init__(self, connection: AsyncpgConnection) -> None:
        self._connection = connection
        self._max_rows = 0
        self._closed = False
        self._lock = threading.Lock()
        self._future: concurrent.futures.Future[bool] | None = None
        self._columns: tuple[str, ...] = ()
        self._rows: list[tuple[object, ...]] = []
        self._has_result = False
        self.update_count = -1

    def set_max_rows(self, max_rows: int) -> None:
        self._max_rows = max(max_rows, 0)

    def execute(self, sql: str) -> bool:
        if self._closed or self._connection.is_closed():
            raise StatementClosed("Statement is closed.")
        future = self._connection.driver.submit(self._execute(sql))
        with self._lock:
            self._future = future
        try:
            self._has_result = future.result()
        except concurrent.futures.CancelledError as exc:
            raise StatementError("Statement was cancelled.") from exc
        except Exception as exc:
            raise StatementError(str(exc)) from exc
        finally:
            with self._lock:
                self._future = None
        return self._has_result

    async def _execute(self, sql: str) -> bool:
        conn = self._connection.raw
        prepared = await conn.prepare(sql)
        attributes = prepared.get_attributes()
        if not attributes:
            await prepared.fetch()
            self.update_count = _parse_status_count(prepared.get_statusmsg())
            return False
        self._columns = tuple(attribute.name for attribute in attributes)
        if self._max_rows:
            # Portals (cursors) only exist inside a transaction.
            async with conn.transaction():
                cursor = await prepared.cursor()
                records = await cursor.fetch(self._max_rows)
        else:
            records = await prepared.fetch()
        self._rows = [tuple(record) for record in records]
        return True

    def result_cursor(self) -> BufferedResultCursor:
        if not self._has_result:
            raise StatementError("Statement did not produce a result set.")
        return BufferedResultCursor(self._columns, self._rows, max_rows=self._max_rows)

    def status(self) -> StatementStatus:
        if self._closed or self._connection.is_closed():
            return StatementStatus.CLOSED
        return StatementStatus.OPEN

    def cancel(self) -> None:
        with self._lock:
            future = self._future
        if future is None:
            LOG.debug("No asyncpg statement in flight to cancel")
            return
        # Cancelling the task makes asyncpg send a server-side cancel request.
        future.cancel()

    def close(self) -> None:
        self._closed = True
        self._rows = []


class BufferedResultCursor:
    """Result cursor over rows already fetched into memory."""

    def __init__(
        self,
        columns: tuple[str, ...],
        rows: list[tuple[object, ...]],
        *,
        max_rows: int = 0,
    ) -> None:
        self._columns = columns
        self._rows = rows[:max_rows] if max_rows else rows

    def columns(self) -> tuple[str, ...]:
        return self._columns

    def __iter__(self) -> Iterator[tuple[object, ...]]:
        return iter(self._rows)

    def close(self) -> None:
        self._rows = []


def _parse_status_count(status: str | None) -> int:
    """Affected rows from a command tag such as ``UPDATE 3`` or ``INSERT 0 1``."""

    if not status:
        return 0
    tail = status.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdecimal() else 0


__all__ = [
    "AsyncpgConnection",
    "AsyncpgDriver",
    "AsyncpgStatement",
    "BufferedResultCursor",
]
