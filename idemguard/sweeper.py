"""Background expiry sweeping for stores without server-side TTLs."""

import threading

import structlog

from .stores.base import Store

logger = structlog.get_logger(__name__)


class Sweeper:
    """Run ``store.sweep()`` on a fixed interval in a daemon thread.

    The sweeper shares no lock with the guard, so it never blocks
    request handling. A failed sweep is logged and retried on the next
    tick.

    Args:
        store: Store to sweep
        interval: Seconds between sweeps (default: 20)
    """

    def __init__(self, store: Store, interval: float = 20.0) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.store = store
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        """Sweep once and return the number of records removed."""
        removed = self.store.sweep()
        logger.debug("sweep_completed", backend=self.store.backend, removed=removed)
        return removed

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                logger.exception("sweep_failed", backend=self.store.backend)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"idemguard-sweeper-{self.store.backend}", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def __enter__(self) -> "Sweeper":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
