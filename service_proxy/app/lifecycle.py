"""
Process-wide ownership of the proxy store: load at startup, snapshot at shutdown.
"""

import asyncio
import concurrent.futures
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union, TYPE_CHECKING

from shared.errors import PersistenceLoadError
from shared.logging import get_logger

from .caching import persistence
from .caching.store import Store

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_SAVE_TIMEOUT = 5.0


class LifecycleState(str, Enum):
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class LifecycleCoordinator:
    """
    Owns the store for the lifetime of the process.

    ``start`` loads the last snapshot (an unreadable or missing snapshot
    yields an empty store) and ``drain`` writes a new one. The write runs on
    a daemon thread and is abandoned once ``save_timeout`` elapses; the
    previous snapshot stays intact because the file is only renamed into
    place when complete.
    """

    def __init__(
        self,
        snapshot_path: Union[str, Path],
        ttl: float,
        *,
        save_timeout: float = DEFAULT_SAVE_TIMEOUT,
        sweep_interval: Optional[float] = None,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.snapshot_path = Path(snapshot_path)
        self.ttl = ttl
        self.save_timeout = save_timeout
        self.sweep_interval = sweep_interval
        self.metrics = metrics
        self.logger = get_logger("proxy.lifecycle")

        self.state = LifecycleState.STARTING
        self.store: Optional[Store] = None
        self._clock = clock
        self._sweeper: Optional[asyncio.Task] = None
        self._saved: Optional[bool] = None

    async def start(self) -> Store:
        """Load persisted state and move to SERVING."""
        if self.store is not None:
            return self.store

        try:
            self.store = persistence.load(self.snapshot_path, self.ttl, clock=self._clock)
        except PersistenceLoadError as exc:
            self.logger.error("Error loading cache", path=str(self.snapshot_path), error=exc.message)
            self._record_snapshot("load", "error")
            self.store = Store(self.ttl, clock=self._clock)
        else:
            self.logger.info("Loaded cache", path=str(self.snapshot_path), items=self.store.count())
            self._record_snapshot("load", "success")

        self._update_entries_gauge()
        if self.sweep_interval:
            self._sweeper = asyncio.create_task(self._sweep_loop(self.sweep_interval))
        self.state = LifecycleState.SERVING
        return self.store

    async def drain(self) -> bool:
        """Snapshot the store within the save budget; True when the snapshot was written."""
        if self.state in (LifecycleState.DRAINING, LifecycleState.STOPPED):
            return bool(self._saved)

        self.state = LifecycleState.DRAINING
        self.logger.info("Shutting down", path=str(self.snapshot_path), timeout=self.save_timeout)
        await self._stop_sweeper()

        if self.store is None:
            self._saved = False
        else:
            self._saved = await self._save_with_budget(self.store)

        self.state = LifecycleState.STOPPED
        return self._saved

    async def _save_with_budget(self, store: Store) -> bool:
        done: concurrent.futures.Future = concurrent.futures.Future()

        def _worker() -> None:
            if not done.set_running_or_notify_cancel():
                return
            try:
                done.set_result(persistence.save(store, self.snapshot_path))
            except Exception as exc:
                done.set_exception(exc)

        threading.Thread(target=_worker, name="snapshot-save", daemon=True).start()

        try:
            written = await asyncio.wait_for(asyncio.wrap_future(done), timeout=self.save_timeout)
        except asyncio.TimeoutError:
            self.logger.error(
                "Timed out writing cache, abandoning snapshot",
                path=str(self.snapshot_path),
                timeout=self.save_timeout,
            )
            self._record_snapshot("save", "timeout")
            return False
        except Exception as exc:
            self.logger.error("Error writing cache", path=str(self.snapshot_path), error=str(exc))
            self._record_snapshot("save", "error")
            return False

        self.logger.info("Cache saved", path=str(self.snapshot_path), items=written)
        self._record_snapshot("save", "success")
        return True

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def sweep(self) -> int:
        """Drop expired entries now; returns how many were removed."""
        if self.store is None:
            return 0
        removed = self.store.delete_expired()
        if removed:
            self.logger.info("Swept expired entries", removed=removed, remaining=self.store.count())
        self._update_entries_gauge()
        return removed

    async def _stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    def _record_snapshot(self, operation: str, status: str) -> None:
        if self.metrics:
            self.metrics.record_snapshot(operation, status)

    def _update_entries_gauge(self) -> None:
        if self.metrics and self.store is not None:
            self.metrics.set_gauge("cache_entries", self.store.count())
