"""Per-profile pool of idle connections with lazy liveness checks."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .config import ProfileStore
from .drivers import Connection, Driver, load_driver
from .errors import CloseFailure, DriverUnavailable

LOG = logging.getLogger(__name__)

DriverLoader = Callable[[str], Driver]


class ConnectionPool:
    """Hands out validated idle connections, opening new ones on demand.

    Idle connections are kept in one list per profile and withdrawn LIFO: the
    most recently used connection is the one most likely to still be alive.
    Liveness is only checked on withdrawal; dead connections are closed and
    dropped, never returned to a caller.
    """

    def __init__(self, store: ProfileStore, *, driver_loader: DriverLoader = load_driver) -> None:
        self._store = store
        self._driver_loader = driver_loader
        self._idle: dict[str, list[Connection]] = {}
        self._drivers: dict[str, Driver] = {}
        self._lock = threading.Lock()

    @property
    def store(self) -> ProfileStore:
        return self._store

    def acquire(self, profile_key: str) -> Connection:
        """Return a live connection for ``profile_key``.

        Raises ProfileNotFound, DriverUnavailable or ConnectionFailed; none of
        them are retried here.
        """

        while True:
            with self._lock:
                idle = self._idle.get(profile_key)
                connection = idle.pop() if idle else None
            if connection is None:
                break
            if not connection.is_closed():
                LOG.debug("Reusing idle connection for profile %s", profile_key)
                return connection
            LOG.info("Discarding stale connection for profile %s", profile_key)
            try:
                connection.close()
            except CloseFailure:
                LOG.exception("Failed to close stale connection", extra={"profile": profile_key})

        profile = self._store.resolve(profile_key)
        driver = self._driver_for(profile.driver)
        LOG.info("Opening new %s connection for profile %s", profile.driver, profile_key)
        return driver.connect(profile)

    def release(self, profile_key: str, connection: Connection) -> bool:
        """Return ``connection`` to the idle list; closed connections are dropped."""

        if connection.is_closed():
            LOG.debug("Not pooling closed connection for profile %s", profile_key)
            return False
        with self._lock:
            idle = self._idle.setdefault(profile_key, [])
            if any(entry is connection for entry in idle):
                return True
            idle.append(connection)
        return True

    def idle_count(self, profile_key: str) -> int:
        with self._lock:
            return len(self._idle.get(profile_key, ()))

    def close(self) -> list[CloseFailure]:
        """Close every idle connection and shut down loaded drivers.

        Failures are collected and returned instead of stopping the teardown.
        """

        with self._lock:
            idle = [connection for connections in self._idle.values() for connection in connections]
            drivers = list(self._drivers.values())
            self._idle.clear()
            self._drivers.clear()
        failures: list[CloseFailure] = []
        for connection in idle:
            try:
                connection.close()
            except CloseFailure as exc:
                failures.append(exc)
        for driver in drivers:
            try:
                driver.shutdown()
            except Exception as exc:
                failures.append(CloseFailure(f"driver {driver.name}", exc))
        return failures

    def _driver_for(self, name: str) -> Driver:
        with self._lock:
            driver = self._drivers.get(name)
        if driver is not None:
            return driver
        try:
            loaded = self._driver_loader(name)
        except DriverUnavailable:
            raise
        except Exception as exc:
            raise DriverUnavailable(f"Cannot load driver '{name}': {exc}") from exc
        with self._lock:
            driver = self._drivers.setdefault(name, loaded)
        if driver is not loaded:
            loaded.shutdown()
        return driver


__all__ = ["ConnectionPool", "DriverLoader"]
