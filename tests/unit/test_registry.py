"""
Unit tests for the connection registry.
"""

import threading
import time

import pytest

from conftest import FakeDriver
from papergres.core.errors import PapergresError
from papergres.db.registry import ConnectionRegistry


class BrokenDriver(FakeDriver):
    def close(self) -> None:
        raise RuntimeError("close failed")


class TestConnectionRegistry:
    """Tests for ConnectionRegistry."""

    def test_creates_once_per_key(self):
        registry = ConnectionRegistry()
        created = []

        def factory():
            created.append(1)
            return FakeDriver()

        first = registry.get("dbname=a", factory)
        second = registry.get("dbname=a", factory)

        assert first is second
        assert len(created) == 1
        assert "dbname=a" in registry

    def test_distinct_keys_get_distinct_drivers(self):
        registry = ConnectionRegistry()

        a = registry.get("dbname=a", FakeDriver)
        b = registry.get("dbname=b", FakeDriver)

        assert a is not b
        assert len(registry) == 2
        assert sorted(registry.keys()) == ["dbname=a", "dbname=b"]

    def test_concurrent_first_use_shares_one_driver(self):
        """Racing callers for the same key all get the same driver."""
        registry = ConnectionRegistry()
        created = []

        def slow_factory():
            time.sleep(0.02)
            created.append(1)
            return FakeDriver()

        drivers = []
        threads = [
            threading.Thread(target=lambda: drivers.append(registry.get("dbname=a", slow_factory)))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert all(d is drivers[0] for d in drivers)

    def test_close_all(self):
        registry = ConnectionRegistry()
        a = registry.get("dbname=a", FakeDriver)
        b = registry.get("dbname=b", FakeDriver)

        registry.close_all()

        assert a.closed and b.closed
        assert len(registry) == 0

    def test_close_all_continues_after_failure(self):
        """Every driver is closed even when one fails."""
        registry = ConnectionRegistry()
        broken = BrokenDriver()
        registry.get("dbname=broken", lambda: broken)
        healthy = registry.get("dbname=ok", FakeDriver)

        with pytest.raises(PapergresError, match="1 driver"):
            registry.close_all()

        assert healthy.closed
        assert len(registry) == 0

    def test_shutdown_allows_new_drivers(self):
        registry = ConnectionRegistry()
        old = registry.get("dbname=a", FakeDriver)

        registry.shutdown()
        new = registry.get("dbname=a", FakeDriver)

        assert old is not new
        assert old.closed

    def test_context_manager_shuts_down(self):
        with ConnectionRegistry() as registry:
            driver = registry.get("dbname=a", FakeDriver)

        assert driver.closed
