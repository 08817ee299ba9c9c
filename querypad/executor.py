"""Query execution: bind, run, render, and report a typed result."""

from __future__ import annotations

import logging
import time
from types import TracebackType

from .config import ProfileStore
from .errors import CloseFailure, QueryPadError
from .models import DEFAULT_KEY, ExecutionResult
from .pool import ConnectionPool
from .registry import ExecutionRegistry
from .serializer import render_result, render_update_count

LOG = logging.getLogger(__name__)

EXPLAIN_PREDICATE = "EXPLAIN "


def parse_profile_key(text: str) -> tuple[str, str]:
    """Split an optional ``(profileKey)`` prefix off submitted text.

    The prefix only counts when the text opens with ``(`` and the closing
    parenthesis appears before the first newline; otherwise the default
    profile is used and the text is the SQL body.
    """

    first_line_end = text.find("\n")
    if first_line_end == -1:
        first_line_end = len(text)
    start = text.find("(")
    end = text.find(")")
    if start != -1 and not text[:start].strip() and start < end < first_line_end:
        key = text[start + 1 : end].strip()
        if key and not any(char.isspace() for char in key):
            return key, text[end + 1 :].strip()
    return DEFAULT_KEY, text.strip()


def is_explain(sql: str) -> bool:
    return EXPLAIN_PREDICATE.lower() in sql.lower()


class QueryExecutor:
    """Runs SQL for execution ids against pooled profile connections.

    Connections stay bound to their execution id after a run so the next run
    with the same id reuses them; ``release`` hands them back to the pool and
    ``close`` tears everything down.
    """

    def __init__(
        self,
        store: ProfileStore,
        *,
        pool: ConnectionPool | None = None,
        registry: ExecutionRegistry | None = None,
    ) -> None:
        self._store = store
        if pool is None:
            pool = registry.pool if registry is not None else ConnectionPool(store)
        self._pool = pool
        self._registry = registry if registry is not None else ExecutionRegistry(pool)
        self._closed = False

    @property
    def store(self) -> ProfileStore:
        return self._store

    @property
    def registry(self) -> ExecutionRegistry:
        return self._registry

    def interpret(self, text: str, execution_id: str) -> ExecutionResult:
        """Run submitted text, honouring a ``(profileKey)`` prefix."""

        LOG.info("Run SQL command %r", text)
        profile_key, sql = parse_profile_key(text)
        LOG.info("PropertyKey: %s, SQL command: %r", profile_key, sql)
        return self.execute(profile_key, sql, execution_id)

    def execute(self, profile_key: str, sql: str, execution_id: str) -> ExecutionResult:
        started = time.perf_counter()
        try:
            binding = self._registry.bind(execution_id, profile_key)
            statement = binding.statement
            max_rows = self._store.max_rows()
            statement.set_max_rows(max_rows)
            is_table = not is_explain(sql)
            try:
                if statement.execute(sql):
                    cursor = statement.result_cursor()
                    try:
                        payload = render_result(cursor, is_table=is_table, max_rows=max_rows)
                    finally:
                        cursor.close()
                else:
                    payload = render_update_count(statement.update_count)
            finally:
                try:
                    statement.close()
                except CloseFailure:
                    LOG.exception("Failed to close statement", extra={"execution_id": execution_id})
        except QueryPadError as exc:
            LOG.error("Cannot run %s: %s", sql, exc, extra={"execution_id": execution_id, "kind": exc.kind.value})
            return ExecutionResult.failure(exc.kind, str(exc), elapsed_ms=_elapsed_ms(started))
        return ExecutionResult.success(payload, elapsed_ms=_elapsed_ms(started))

    def cancel(self, execution_id: str) -> bool:
        return self._registry.cancel(execution_id)

    def release(self, execution_id: str) -> bool:
        return self._registry.release(execution_id)

    def close(self) -> None:
        """Close every statement and connection; idempotent."""

        if self._closed:
            return
        self._closed = True
        self._registry.shutdown()

    def __enter__(self) -> QueryExecutor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = ["EXPLAIN_PREDICATE", "QueryExecutor", "is_explain", "parse_profile_key"]
