"""
Registry of open drivers keyed by connection string.

Pools are meant to stay open for the life of the owner, so each distinct
connection string gets exactly one driver, created on first use.
"""

import threading
from typing import Callable, Iterator

import structlog

from papergres.core.errors import PapergresError
from papergres.db.protocol import Driver

logger = structlog.get_logger()


class ConnectionRegistry:
    """
    Thread-safe cache of drivers keyed by rendered connection string.

    Usage:
        registry = ConnectionRegistry()
        driver = registry.get(connection.dsn, lambda: PsycopgDriver.from_config(connection, execution))
        ...
        registry.shutdown()
    """

    def __init__(self) -> None:
        self._drivers: dict[str, Driver] = {}
        self._lock = threading.Lock()

    def get(self, key: str, factory: Callable[[], Driver]) -> Driver:
        """
        Return the driver for key, creating it with factory on first use.

        Concurrent first-time callers for the same key share one driver.

        Args:
            key: Rendered connection string
            factory: Creates the driver when the key is not cached

        Returns:
            Cached driver
        """
        driver = self._drivers.get(key)
        if driver is not None:
            return driver

        with self._lock:
            driver = self._drivers.get(key)
            if driver is None:
                driver = factory()
                self._drivers[key] = driver
                logger.debug("driver_registered", drivers=len(self._drivers))
            return driver

    def __contains__(self, key: object) -> bool:
        return key in self._drivers

    def __len__(self) -> int:
        return len(self._drivers)

    def keys(self) -> Iterator[str]:
        return iter(list(self._drivers))

    def close_all(self) -> None:
        """
        Close every cached driver and empty the registry.

        All drivers are closed even when some fail.

        Raises:
            PapergresError: If one or more drivers failed to close
        """
        with self._lock:
            drivers = self._drivers
            self._drivers = {}

        failed: list[str] = []
        for key, driver in drivers.items():
            try:
                driver.close()
            except Exception as e:
                logger.error("driver_close_failed", error=str(e))
                failed.append(key)

        if failed:
            raise PapergresError(f"failed to close {len(failed)} driver(s)")

    def shutdown(self) -> None:
        """
        Close every driver and start empty.

        The registry stays usable; drivers are created again on next use.
        """
        self.close_all()

    def __enter__(self) -> "ConnectionRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
