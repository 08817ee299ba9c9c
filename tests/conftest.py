"""Shared fakes for pool/registry/executor tests."""

from __future__ import annotations

from typing import Iterator

import pytest

from querypad.config import ProfileStore
from querypad.errors import CancelUnsupported, CloseFailure, StatementClosed, StatementError
from querypad.models import Profile, StatementStatus
from querypad.pool import ConnectionPool
from querypad.registry import ExecutionRegistry


class FakeCursor:
    def __init__(self, columns: tuple[str, ...], rows: list[tuple[object, ...]], max_rows: int) -> None:
        self._columns = columns
        self._rows = rows[:max_rows] if max_rows else rows
        self.closed = False

    def columns(self) -> tuple[str, ...]:
        return self._columns

    def __iter__(self) -> Iterator[tuple[object, ...]]:
        return iter(self._rows)

    def close(self) -> None:
        self.closed = True


class FakeStatement:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self.closed = False
        self.cancelled = 0
        self.max_rows = 0
        self.executed: list[str] = []
        self.update_count = -1
        self.cursor: FakeCursor | None = None

    def set_max_rows(self, max_rows: int) -> None:
        self.max_rows = max_rows

    def execute(self, sql: str) -> bool:
        if self.connection.execute_error:
            raise StatementError(self.connection.execute_error)
        self.executed.append(sql)
        result = self.connection.results.get(sql)
        if result is None:
            self.update_count = self.connection.update_count
            return False
        columns, rows = result
        self.cursor = FakeCursor(columns, rows, self.max_rows)
        return True

    def result_cursor(self) -> FakeCursor:
        assert self.cursor is not None
        return self.cursor

    def status(self) -> StatementStatus:
        if self.closed or self.connection.report_closed_statements:
            return StatementStatus.CLOSED
        return StatementStatus.OPEN

    def cancel(self) -> None:
        if not self.connection.cancel_supported:
            raise CancelUnsupported("fake driver cannot cancel")
        self.cancelled += 1

    def close(self) -> None:
        if self.connection.fail_statement_close:
            raise CloseFailure("fake statement", RuntimeError("close boom"))
        self.closed = True


class FakeConnection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.closed = False
        self.close_calls = 0
        self.statements: list[FakeStatement] = []
        self.results: dict[str, tuple[tuple[str, ...], list[tuple[object, ...]]]] = {}
        self.update_count = 0
        self.execute_error: str | None = None
        self.cancel_supported = True
        self.report_closed_statements = False
        self.fail_close = False
        self.fail_statement_close = False

    def create_statement(self) -> FakeStatement:
        if self.closed:
            raise StatementClosed("fake connection closed")
        statement = FakeStatement(self)
        self.statements.append(statement)
        return statement

    def is_closed(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise CloseFailure(f"fake connection {self.name}", RuntimeError("close boom"))
        self.closed = True


class FakeDriver:
    name = "fake"

    def __init__(self) -> None:
        self.opened: list[FakeConnection] = []
        self.profiles: list[Profile] = []
        self.shutdowns = 0

    def connect(self, profile: Profile) -> FakeConnection:
        connection = FakeConnection(f"{profile.key}-{len(self.opened)}")
        self.opened.append(connection)
        self.profiles.append(profile)
        return connection

    def shutdown(self) -> None:
        self.shutdowns += 1


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def fake_store() -> ProfileStore:
    return ProfileStore.from_properties(
        {
            "default.driver": "fake",
            "default.url": "fake://default",
            "reporting.driver": "fake",
            "reporting.url": "fake://reporting",
            "common.max_count": "3",
        }
    )


@pytest.fixture
def fake_pool(fake_store: ProfileStore, fake_driver: FakeDriver) -> ConnectionPool:
    return ConnectionPool(fake_store, driver_loader=lambda _name: fake_driver)


@pytest.fixture
def fake_registry(fake_pool: ConnectionPool) -> ExecutionRegistry:
    return ExecutionRegistry(fake_pool)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
