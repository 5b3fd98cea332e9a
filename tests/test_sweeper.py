"""Tests for the background sweeper."""

import time

import pytest

from idemguard.stores import MemoryStore, Store
from idemguard.sweeper import Sweeper


class FailingStore(Store):
    backend = "failing"

    def __init__(self):
        self.sweeps = 0

    def exists(self, key):
        return False

    def set(self, key, ttl=None):
        pass

    def sweep(self):
        self.sweeps += 1
        raise RuntimeError("database went away")


def test_run_once():
    """Test a single sweep."""
    store = MemoryStore()
    store.set("expired", ttl=0.01)
    store.set("live", ttl=10)
    time.sleep(0.05)

    assert Sweeper(store).run_once() == 1
    assert len(store) == 1


def test_background_sweeping():
    """Test that the thread removes expired records on its interval."""
    store = MemoryStore()
    store.set("expired", ttl=0.01)
    store.set("live", ttl=10)

    with Sweeper(store, interval=0.02) as sweeper:
        assert sweeper.running
        time.sleep(0.2)

    assert not sweeper.running
    assert len(store) == 1
    assert store.exists("live") is True


def test_failed_sweep_keeps_running():
    """Test that an error in one sweep doesn't stop the loop."""
    store = FailingStore()
    sweeper = Sweeper(store, interval=0.02)

    sweeper.start()
    time.sleep(0.2)
    assert sweeper.running
    sweeper.stop()

    assert store.sweeps >= 2


def test_start_is_idempotent():
    """Test that starting twice keeps one thread."""
    sweeper = Sweeper(MemoryStore(), interval=10)
    sweeper.start()
    thread = sweeper._thread
    sweeper.start()

    assert sweeper._thread is thread
    sweeper.stop()


def test_invalid_interval():
    """Test that a non-positive interval is rejected."""
    with pytest.raises(ValueError):
        Sweeper(MemoryStore(), interval=0)
