"""
Fixed-interval re-sync task.

Re-runs a callback (the orchestrator load) every ``interval_seconds`` until
stopped. Errors are logged and the schedule continues; there is no backoff.
"""

from __future__ import annotations

import logging
import threading
from threading import Timer
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_SECONDS = 5.0


class SyncPoller:
    def __init__(
        self,
        callback: Callable[[], object],
        interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.callback = callback
        self.interval_seconds = interval_seconds
        self._timer: Optional[Timer] = None
        self._lock = threading.Lock()
        self._running = False
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def _schedule(self) -> None:
        timer = Timer(self.interval_seconds, self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        with self._lock:
            if not self._running:
                return
        logger.debug("Running periodic sync with backend")
        try:
            self.callback()
        except Exception:
            logger.exception("Periodic sync failed")
        finally:
            self.runs += 1
        with self._lock:
            if self._running:
                self._schedule()

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._schedule()
        logger.info("Sync poller started (every %.1fs)", self.interval_seconds)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        logger.info("Sync poller stopped")
