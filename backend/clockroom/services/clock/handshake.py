import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

IDLE = 'idle'
REQUESTING = 'requesting'
CONFIGURED = 'configured'
FAILED = 'failed'


class ReconciliationHandshake:
    """Late-joiner snapshot request with bounded exponential backoff.

    After ``initial_delay`` (standing in for "subscription is active") the
    joiner publishes ``request_config``. Each unanswered attempt waits
    ``backoff * 2 ** (attempt - 1)`` before the next one; after
    ``max_attempts`` the state becomes FAILED and the session keeps running
    on its provisional defaults.
    """

    def __init__(self, scheduler, send_request: Callable[[], None], initial_delay: float = 1.0,
                 backoff: float = 1.0, max_attempts: int = 4, lock: Optional[threading.RLock] = None,
                 room_id: str = ''):
        self._scheduler = scheduler
        self._send_request = send_request
        self.initial_delay = initial_delay
        self.backoff = backoff
        self.max_attempts = max(1, max_attempts)
        self._lock = lock or threading.RLock()
        self._handle = None
        self.room_id = room_id
        self.state = IDLE
        self.attempts = 0

    @property
    def failed(self) -> bool:
        return self.state == FAILED

    def begin(self) -> None:
        with self._lock:
            if self.state != IDLE:
                return
            self.state = REQUESTING
            self._handle = self._scheduler.call_later(self.initial_delay, self._attempt)

    def mark_configured(self) -> None:
        with self._lock:
            if self.state == FAILED:
                logger.info(f"[reconcile-late] room={self.room_id} config arrived after giving up")
            self.state = CONFIGURED
            self._cancel()

    def cancel(self) -> None:
        with self._lock:
            self._cancel()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _attempt(self, handle) -> None:
        with self._lock:
            if self.state != REQUESTING or handle is not self._handle:
                return
            self.attempts += 1
            logger.info(f"[reconcile-request] room={self.room_id} attempt={self.attempts}/{self.max_attempts}")
            self._send_request()
            if self.state != REQUESTING:
                return
            wait = self.backoff * (2 ** (self.attempts - 1))
            self._handle = self._scheduler.call_later(wait, self._expire)

    def _expire(self, handle) -> None:
        with self._lock:
            if self.state != REQUESTING or handle is not self._handle:
                return
            if self.attempts >= self.max_attempts:
                self.state = FAILED
                self._handle = None
                logger.warning(
                    f"[reconcile-failed] room={self.room_id} no config after {self.attempts} attempts, using defaults"
                )
                return
            logger.info(f"[reconcile-retry] room={self.room_id} attempt={self.attempts} unanswered")
            self._attempt(handle)
