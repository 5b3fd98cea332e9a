"""Tests for settings and startup wiring."""

import pytest
from pydantic import ValidationError

from idemguard import SKIPPED, BloomFilter, MemoryStore
from idemguard.config import GuardSettings
from idemguard.factory import (
    GuardRuntime,
    build_filter,
    build_guard,
    build_runtime,
    build_store,
)
from idemguard.guard import IdempotencyGuard
from idemguard.stores import FileStore


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch):
    """Record configure_logging calls made during startup."""
    calls = []
    monkeypatch.setattr(
        "idemguard.factory.configure_logging",
        lambda level, fmt: calls.append((level, fmt)),
    )
    return calls


def test_defaults():
    """Test the default configuration."""
    settings = GuardSettings(_env_file=None)

    assert settings.backend == "memory"
    assert settings.default_ttl == 20.0
    assert settings.on_store_error == "fail_closed"
    assert settings.sweep_interval == 20.0


def test_settings_from_env(monkeypatch, tmp_path):
    """Test that IDEMPOTENCY_* variables configure the guard."""
    monkeypatch.setenv("IDEMPOTENCY_BACKEND", "file")
    monkeypatch.setenv("IDEMPOTENCY_FILE_DIRECTORY", str(tmp_path))
    monkeypatch.setenv("IDEMPOTENCY_DEFAULT_TTL", "5")
    monkeypatch.setenv("IDEMPOTENCY_ON_STORE_ERROR", "fail_open")

    settings = GuardSettings(_env_file=None)

    assert settings.backend == "file"
    assert settings.file_directory == tmp_path
    assert settings.default_ttl == 5.0
    assert settings.on_store_error == "fail_open"


def test_invalid_settings(monkeypatch):
    """Test that bad values are rejected at startup."""
    monkeypatch.setenv("IDEMPOTENCY_BACKEND", "cassandra")
    with pytest.raises(ValidationError):
        GuardSettings(_env_file=None)

    monkeypatch.delenv("IDEMPOTENCY_BACKEND")
    monkeypatch.setenv("IDEMPOTENCY_FALSE_POSITIVE_RATE", "2")
    with pytest.raises(ValidationError):
        GuardSettings(_env_file=None)


def test_build_store_memory_and_file(tmp_path):
    """Test backend selection."""
    assert isinstance(build_store(GuardSettings(_env_file=None)), MemoryStore)

    settings = GuardSettings(_env_file=None, backend="file", file_directory=tmp_path)
    assert isinstance(build_store(settings), FileStore)


def test_build_filter_sizing():
    """Test that the filter is sized from expected items and FP rate."""
    settings = GuardSettings(_env_file=None, expected_items=1000, false_positive_rate=0.01)
    bloom = build_filter(settings)

    assert bloom.size == 9586
    assert bloom.num_hashes == 7


def test_build_filter_loads_persisted(tmp_path):
    """Test that an existing filter file is loaded."""
    path = tmp_path / "bloom.bin"
    saved = BloomFilter(512, 3)
    saved.add("k")
    saved.dump(path)

    bloom = build_filter(GuardSettings(_env_file=None, bloom_path=path))

    assert bloom.size == 512
    assert bloom.might_contain("k")


def test_build_guard_applies_settings():
    """Test that policies flow from settings into the guard."""
    settings = GuardSettings(
        _env_file=None, default_ttl=3, on_duplicate="raise", strict=True
    )
    guard = build_guard(settings, store=MemoryStore())

    assert guard.default_ttl == 3
    assert guard.on_duplicate == "raise"
    assert guard.strict is True


def test_runtime_lifecycle(tmp_path):
    """Test startup, use and shutdown of the process-wide guard."""
    bloom_path = tmp_path / "bloom.bin"
    settings = GuardSettings(
        _env_file=None,
        backend="file",
        file_directory=tmp_path / "records",
        bloom_path=bloom_path,
        sweep_interval=60,
    )

    with build_runtime(settings) as runtime:
        assert runtime.sweeper is not None and runtime.sweeper.running
        runtime.guard.invoke(["a"], lambda: 1)
        assert runtime.guard.invoke(["a"], lambda: 1) is SKIPPED

    assert not runtime.sweeper.running
    assert bloom_path.exists()

    # A restarted process reloads both filter and records
    with build_runtime(settings) as runtime:
        assert runtime.guard.bloom_filter.count == 1
        assert runtime.guard.invoke(["a"], lambda: 1) is SKIPPED


def test_runtime_applies_log_settings(logging_calls):
    """Test that startup configures logging from the settings."""
    settings = GuardSettings(_env_file=None, log_level="debug", log_format="console")

    with build_runtime(settings):
        pass

    assert logging_calls == [("debug", "console")]


class ClosingStore(MemoryStore):
    """Memory store that records close()."""

    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_runtime_close_closes_store_when_dump_fails(tmp_path):
    """Test that a failed filter dump still closes the store."""
    store = ClosingStore()
    settings = GuardSettings(_env_file=None, bloom_path=tmp_path / "missing" / "bloom.bin")
    runtime = GuardRuntime(
        guard=IdempotencyGuard(store, BloomFilter.for_capacity(10)),
        sweeper=None,
        settings=settings,
    )

    with pytest.raises(OSError):
        runtime.close()

    assert store.closed
