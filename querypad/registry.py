"""Binding of external execution ids to their live connection and statement."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from .drivers import Connection, Statement
from .errors import CancelUnsupported, CloseFailure, QueryPadError, StatementClosed
from .models import StatementStatus
from .pool import ConnectionPool

LOG = logging.getLogger(__name__)


@dataclass(slots=True)
class ExecutionBinding:
    """Connection and statement currently serving one execution id."""

    execution_id: str
    profile_key: str
    connection: Connection
    statement: Statement


class ExecutionRegistry:
    """Tracks which statement runs for which execution id.

    A binding outlives the statement it was created for: the next ``bind`` for
    the same id reuses its connection, and ``cancel`` always reaches the most
    recently bound statement.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool
        self._bindings: dict[str, ExecutionBinding] = {}
        self._lock = threading.Lock()

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    def bind(self, execution_id: str, profile_key: str) -> ExecutionBinding:
        """Create a fresh statement for ``execution_id``.

        The previous binding's connection is reused while it is open and
        belongs to the same profile. The previous statement is closed before
        it is replaced. A replaced connection only goes back to the pool once
        the binding no longer points at it; if no statement can be opened the
        binding is dropped.
        """

        with self._lock:
            previous = self._bindings.get(execution_id)

        reused: Connection | None = None
        if previous is not None:
            _close_quietly(previous.statement, "previous statement", execution_id)
            if previous.profile_key == profile_key and not previous.connection.is_closed():
                reused = previous.connection

        try:
            connection, statement = self._open_statement(execution_id, profile_key, reused)
        except QueryPadError:
            with self._lock:
                dropped = previous is not None and self._bindings.get(execution_id) is previous
                if dropped:
                    del self._bindings[execution_id]
            if dropped:
                self._pool.release(previous.profile_key, previous.connection)
            raise

        binding = ExecutionBinding(
            execution_id=execution_id,
            profile_key=profile_key,
            connection=connection,
            statement=statement,
        )
        with self._lock:
            self._bindings[execution_id] = binding
        if previous is not None and previous.connection is not connection:
            self._pool.release(previous.profile_key, previous.connection)
        return binding

    def get(self, execution_id: str) -> ExecutionBinding | None:
        with self._lock:
            return self._bindings.get(execution_id)

    def cancel(self, execution_id: str) -> bool:
        """Signal the statement bound to ``execution_id``; never raises."""

        binding = self.get(execution_id)
        if binding is None:
            LOG.info("Nothing to cancel for execution %s", execution_id)
            return False
        LOG.info("Cancel current query statement", extra={"execution_id": execution_id})
        try:
            binding.statement.cancel()
        except CancelUnsupported as exc:
            LOG.warning("%s", exc, extra={"execution_id": execution_id})
            return False
        except QueryPadError:
            LOG.exception("Error while cancelling", extra={"execution_id": execution_id})
            return False
        return True

    def release(self, execution_id: str) -> bool:
        """Drop the binding and hand its connection back to the idle pool."""

        with self._lock:
            binding = self._bindings.pop(execution_id, None)
        if binding is None:
            return False
        _close_quietly(binding.statement, "statement", execution_id)
        self._pool.release(binding.profile_key, binding.connection)
        return True

    def shutdown(self) -> list[CloseFailure]:
        """Close every bound statement and connection, then the pool.

        Best effort: failures are logged and collected, the remaining
        resources are still closed. Safe to call more than once.
        """

        with self._lock:
            bindings = list(self._bindings.values())
            self._bindings.clear()
        failures: list[CloseFailure] = []
        for binding in bindings:
            try:
                binding.statement.close()
            except CloseFailure as exc:
                failures.append(exc)
        closed: set[int] = set()
        for binding in bindings:
            if id(binding.connection) in closed:
                continue
            closed.add(id(binding.connection))
            try:
                binding.connection.close()
            except CloseFailure as exc:
                failures.append(exc)
        failures.extend(self._pool.close())
        for failure in failures:
            LOG.error("Error while closing: %s", failure, extra={"resource": failure.resource})
        return failures

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)

    def _open_statement(
        self, execution_id: str, profile_key: str, connection: Connection | None
    ) -> tuple[Connection, Statement]:
        """Create a statement, retrying once on a fresh connection if it comes back closed.

        Connections acquired here are handed back to the pool when no
        statement could be created on them.
        """

        fresh = connection is None
        if connection is None:
            connection = self._pool.acquire(profile_key)
        try:
            return connection, self._create_statement(connection)
        except StatementClosed:
            LOG.info(
                "Statement closed on creation, acquiring a fresh connection",
                extra={"execution_id": execution_id},
            )
            _discard(connection, execution_id)
        except QueryPadError:
            if fresh:
                self._pool.release(profile_key, connection)
            raise

        connection = self._pool.acquire(profile_key)
        try:
            return connection, self._create_statement(connection)
        except QueryPadError:
            self._pool.release(profile_key, connection)
            raise

    def _create_statement(self, connection: Connection) -> Statement:
        statement = connection.create_statement()
        status = statement.status()
        if status is StatementStatus.CLOSED:
            raise StatementClosed("Statement was closed on creation.")
        if status is StatementStatus.UNKNOWN:
            LOG.debug("%s cannot report its closed state, assuming open", type(statement).__name__)
        return statement


def _discard(connection: Connection, execution_id: str) -> None:
    try:
        connection.close()
    except CloseFailure:
        LOG.exception("Failed to close stale connection", extra={"execution_id": execution_id})


def _close_quietly(statement: Statement, label: str, execution_id: str) -> None:
    try:
        statement.close()
    except CloseFailure:
        LOG.exception("Failed to close %s", label, extra={"execution_id": execution_id})


__all__ = ["ExecutionBinding", "ExecutionRegistry"]
