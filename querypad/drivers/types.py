"""Capability contracts implemented by every driver adapter."""

from __future__ import annotations

from typing import Iterator, Protocol, runtime_checkable

from querypad.models import Profile, StatementStatus


@runtime_checkable
class ResultCursor(Protocol):
    """Column metadata plus forward-only row iteration."""

    def columns(self) -> tuple[str, ...]:
        """Column names in result order."""

    def __iter__(self) -> Iterator[tuple[object, ...]]:
        """Yield raw row tuples, at most the statement's row cap."""

    def close(self) -> None: ...


@runtime_checkable
class Statement(Protocol):
    """A single executable statement bound to one connection."""

    update_count: int

    def set_max_rows(self, max_rows: int) -> None:
        """Cap the number of rows the result cursor will yield."""

    def execute(self, sql: str) -> bool:
        """Run ``sql``; True when a result cursor is available."""

    def result_cursor(self) -> ResultCursor: ...

    def status(self) -> StatementStatus:
        """Report whether the statement is closed without raising."""

    def cancel(self) -> None:
        """Signal the running statement to stop (may be called from another thread)."""

    def close(self) -> None: ...


@runtime_checkable
class Connection(Protocol):
    """An open database session that can create statements."""

    def create_statement(self) -> Statement: ...

    def is_closed(self) -> bool: ...

    def close(self) -> None: ...


@runtime_checkable
class Driver(Protocol):
    """Factory opening connections for profiles of one client library."""

    name: str

    def connect(self, profile: Profile) -> Connection:
        """Open a new connection or raise ConnectionFailed."""

    def shutdown(self) -> None:
        """Release driver-wide resources (event loops, thread pools)."""


__all__ = ["Connection", "Driver", "ResultCursor", "Statement"]
