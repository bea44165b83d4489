import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ClockDriver:
    """Periodic tick source for the single running clock.

    Only the owner's session ever starts one. ``on_tick(index)`` is called
    once per interval while running; it is responsible for decrementing and
    republishing the timers.
    """

    def __init__(self, scheduler, on_tick: Callable[[int], None], interval: float = 1.0,
                 lock: Optional[threading.RLock] = None):
        self._scheduler = scheduler
        self._on_tick = on_tick
        self.interval = interval
        self._lock = lock or threading.RLock()
        self._handle = None
        self.running = False
        self.active_index: Optional[int] = None

    def start(self, index: int) -> None:
        with self._lock:
            if self.running:
                # Never spawn a second loop; at most move the existing one
                if index != self.active_index:
                    logger.info(f"[clock-retarget] index {self.active_index} -> {index}")
                    self.active_index = index
                return
            self.running = True
            self.active_index = index
            logger.info(f"[clock-start] index={index} interval={self.interval}s")
            self._schedule()

    def stop(self) -> None:
        with self._lock:
            if not self.running:
                return
            logger.info(f"[clock-stop] index={self.active_index}")
            self.running = False
            self.active_index = None
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _schedule(self) -> None:
        self._handle = self._scheduler.call_later(self.interval, self._fire)

    def _fire(self, handle) -> None:
        with self._lock:
            # A handle from a loop that was stopped (and maybe restarted) is stale
            if not self.running or handle is not self._handle:
                return
            self._on_tick(self.active_index)
            if self.running and handle is self._handle:
                self._schedule()
