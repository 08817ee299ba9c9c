"""Tests for execution id bindings."""

from __future__ import annotations

import logging

import pytest

from querypad.errors import ProfileNotFound, StatementClosed
from querypad.models import Profile, StatementStatus
from querypad.pool import ConnectionPool
from querypad.registry import ExecutionRegistry

from conftest import FakeConnection, FakeDriver


def test_bind_acquires_connection_and_statement(fake_registry: ExecutionRegistry, fake_driver: FakeDriver) -> None:
    binding = fake_registry.bind("para-1", "default")

    assert binding.connection is fake_driver.opened[0]
    assert binding.statement is fake_driver.opened[0].statements[0]
    assert fake_registry.get("para-1") is binding
    assert len(fake_registry) == 1


def test_rebind_reuses_connection_and_closes_previous_statement(
    fake_registry: ExecutionRegistry, fake_driver: FakeDriver
) -> None:
    first = fake_registry.bind("para-1", "default")
    second = fake_registry.bind("para-1", "default")

    assert second.connection is first.connection
    assert second.statement is not first.statement
    assert first.statement.closed is True
    assert len(fake_driver.opened) == 1


def test_rebind_after_connection_closed_gets_fresh_connection(
    fake_registry: ExecutionRegistry, fake_driver: FakeDriver
) -> None:
    first = fake_registry.bind("para-1", "default")
    first.connection.closed = True

    second = fake_registry.bind("para-1", "default")

    assert second.connection is not first.connection
    assert second.connection is fake_driver.opened[1]


def test_profile_switch_returns_old_connection_to_pool(
    fake_registry: ExecutionRegistry, fake_pool: ConnectionPool
) -> None:
    first = fake_registry.bind("para-1", "default")

    second = fake_registry.bind("para-1", "reporting")

    assert second.profile_key == "reporting"
    assert second.connection is not first.connection
    assert fake_pool.idle_count("default") == 1
    assert fake_pool.acquire("default") is first.connection


def test_closed_statement_on_creation_retries_with_fresh_connection(
    fake_registry: ExecutionRegistry, fake_pool: ConnectionPool
) -> None:
    broken = fake_pool.acquire("default")
    broken.report_closed_statements = True
    fake_pool.release("default", broken)

    binding = fake_registry.bind("para-1", "default")

    assert binding.connection is not broken
    assert broken.closed is True
    assert binding.statement.status() is StatementStatus.OPEN


def test_failed_close_of_previous_statement_does_not_block_rebind(
    fake_registry: ExecutionRegistry, caplog: pytest.LogCaptureFixture
) -> None:
    first = fake_registry.bind("para-1", "default")
    first.connection.fail_statement_close = True

    with caplog.at_level(logging.ERROR):
        second = fake_registry.bind("para-1", "default")

    assert second.statement is not first.statement
    assert "Failed to close previous statement" in caplog.text


def test_cancel_unknown_execution_returns_false(fake_registry: ExecutionRegistry) -> None:
    assert fake_registry.cancel("nobody") is False


def test_cancel_signals_bound_statement(fake_registry: ExecutionRegistry) -> None:
    binding = fake_registry.bind("para-1", "default")

    assert fake_registry.cancel("para-1") is True
    assert binding.statement.cancelled == 1


def test_cancel_unsupported_is_reported_not_raised(
    fake_registry: ExecutionRegistry, caplog: pytest.LogCaptureFixture
) -> None:
    binding = fake_registry.bind("para-1", "default")
    binding.connection.cancel_supported = False

    assert fake_registry.cancel("para-1") is False
    assert "fake driver cannot cancel" in caplog.text


def test_release_returns_connection_to_pool(fake_registry: ExecutionRegistry, fake_pool: ConnectionPool) -> None:
    binding = fake_registry.bind("para-1", "default")

    assert fake_registry.release("para-1") is True

    assert binding.statement.closed is True
    assert fake_registry.get("para-1") is None
    assert fake_pool.idle_count("default") == 1
    assert fake_registry.release("para-1") is False


def test_shutdown_closes_everything_best_effort(
    fake_registry: ExecutionRegistry, fake_driver: FakeDriver, caplog: pytest.LogCaptureFixture
) -> None:
    healthy = fake_registry.bind("para-1", "default")
    failing = fake_registry.bind("para-2", "reporting")
    failing.connection.fail_statement_close = True

    failures = fake_registry.shutdown()

    assert [failure.resource for failure in failures] == ["fake statement"]
    assert healthy.statement.closed is True
    assert healthy.connection.closed is True
    assert failing.connection.closed is True
    assert fake_driver.shutdowns == 1
    assert len(fake_registry) == 0
    assert "Error while closing" in caplog.text


def test_shutdown_is_idempotent(fake_registry: ExecutionRegistry, fake_driver: FakeDriver) -> None:
    binding = fake_registry.bind("para-1", "default")
    fake_registry.shutdown()

    assert fake_registry.shutdown() == []
    assert binding.connection.close_calls == 1
    assert fake_driver.shutdowns == 1


def test_shutdown_closes_shared_connection_once(fake_registry: ExecutionRegistry) -> None:
    binding = fake_registry.bind("para-1", "default")
    fake_registry.release("para-1")
    other = fake_registry.bind("para-2", "default")

    fake_registry.shutdown()

    assert other.connection is binding.connection
    assert binding.connection.close_calls == 1


def test_failed_profile_switch_drops_binding_and_frees_connection(
    fake_registry: ExecutionRegistry, fake_pool: ConnectionPool
) -> None:
    first = fake_registry.bind("para-1", "default")

    with pytest.raises(ProfileNotFound):
        fake_registry.bind("para-1", "missing")

    assert fake_registry.get("para-1") is None
    assert fake_pool.idle_count("default") == 1
    other = fake_registry.bind("para-2", "default")
    assert other.connection is first.connection
    assert fake_registry.cancel("para-1") is False
    assert other.statement.cancelled == 0


def test_profile_switch_never_shares_a_connection(
    fake_registry: ExecutionRegistry, fake_pool: ConnectionPool
) -> None:
    fake_registry.bind("para-1", "default")
    fake_registry.bind("para-1", "reporting")
    other = fake_registry.bind("para-2", "default")

    current = fake_registry.get("para-1")
    assert current is not None
    assert current.connection is not other.connection
    assert fake_pool.idle_count("default") == 0


def test_failed_retry_returns_fresh_connection_to_pool(
    fake_registry: ExecutionRegistry, fake_pool: ConnectionPool, fake_driver: FakeDriver
) -> None:
    original_connect = fake_driver.connect

    def _connect_reporting_closed(profile: Profile) -> FakeConnection:
        connection = original_connect(profile)
        connection.report_closed_statements = True
        return connection

    fake_driver.connect = _connect_reporting_closed  # type: ignore[method-assign]

    with pytest.raises(StatementClosed):
        fake_registry.bind("para-1", "default")

    first, second = fake_driver.opened
    assert first.closed is True
    assert fake_pool.idle_count("default") == 1
    assert fake_registry.get("para-1") is None
    assert second.closed is False
