import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from clockroom.exceptions import NotOwnerError
from clockroom.ids import generate_client_id, topic_for

from . import messages
from .driver import ClockDriver
from .handshake import ReconciliationHandshake
from .router import MessageRouter
from .state import RoomConfig, RoomState

logger = logging.getLogger(__name__)


class Role(enum.Enum):
    OWNER = 'owner'
    JOINER = 'joiner'


@dataclass
class SessionSettings:
    tick_sec: float = 1.0
    reconcile_initial_delay_sec: float = 1.0
    reconcile_backoff_sec: float = 1.0
    reconcile_max_attempts: int = 4

    @classmethod
    def from_config(cls, config) -> 'SessionSettings':
        return cls(
            tick_sec=float(config.get('CLOCK_TICK_SEC', 1.0)),
            reconcile_initial_delay_sec=float(config.get('RECONCILE_INITIAL_DELAY_SEC', 1.0)),
            reconcile_backoff_sec=float(config.get('RECONCILE_BACKOFF_SEC', 1.0)),
            reconcile_max_attempts=int(config.get('RECONCILE_MAX_ATTEMPTS', 4)),
        )


class RoomSession:
    """One participant's view of a room.

    The role is fixed at construction. An owner starts from its own
    RoomConfig, ticks the running clock and answers config requests; a
    joiner starts from provisional defaults and reconciles once with the
    owner. User actions publish a message and then apply that same message
    locally through the router, so the sender and its peers run identical
    code paths.
    """

    def __init__(self, room_id: str, channel, scheduler, role: Role,
                 config: Optional[RoomConfig] = None, client_id: Optional[str] = None,
                 settings: Optional[SessionSettings] = None):
        if role is Role.OWNER and config is None:
            raise ValueError('an owner session needs a RoomConfig')
        self.room_id = room_id
        self.topic = topic_for(room_id)
        self.role = role
        self.client_id = client_id or generate_client_id()
        self.settings = settings or SessionSettings()
        self.channel = channel
        self.state = RoomState(config or RoomConfig.provisional())
        self.clock = messages.LamportClock()
        self._lock = threading.RLock()
        self._unsubscribe = None
        self.closed = False

        self.driver = ClockDriver(scheduler, self._on_tick, self.settings.tick_sec, lock=self._lock)
        self.router = MessageRouter(
            self.state, self.driver, self.clock, self.client_id,
            is_owner=self.is_owner, publish=self._emit,
            on_configured=self._on_configured, room_id=room_id,
        )
        self.handshake = None
        if role is Role.JOINER:
            self.handshake = ReconciliationHandshake(
                scheduler, self._request_config,
                initial_delay=self.settings.reconcile_initial_delay_sec,
                backoff=self.settings.reconcile_backoff_sec,
                max_attempts=self.settings.reconcile_max_attempts,
                lock=self._lock, room_id=room_id,
            )

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER

    @property
    def configured(self) -> bool:
        return self.is_owner or self.router.configured

    # ---- lifecycle ----

    def join(self) -> None:
        """Subscribe to the room topic; joiners then start reconciling."""
        try:
            self._unsubscribe = self.channel.subscribe(self.topic, self.handle_message)
        except Exception as exc:
            logger.warning(f"[subscribe-failed] room={self.room_id} client={self.client_id} error={exc}")
            return
        logger.info(f"[joined] room={self.room_id} client={self.client_id} role={self.role.value}")
        if self.handshake is not None:
            self.handshake.begin()

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            self.driver.stop()
            if self.handshake is not None:
                self.handshake.cancel()
            if self._unsubscribe is not None:
                try:
                    self._unsubscribe()
                except Exception as exc:
                    logger.warning(f"[unsubscribe-failed] room={self.room_id} error={exc}")
                self._unsubscribe = None
        logger.info(f"[left] room={self.room_id} client={self.client_id}")

    def handle_message(self, raw: Any) -> bool:
        with self._lock:
            if self.closed:
                return False
            return self.router.handle(raw)

    # ---- user actions ----

    def toggle_ready(self, index: int) -> None:
        with self._lock:
            ready = list(self.state.ready_states)
            self._check_index(index, len(ready))
            ready[index] = not ready[index]
            self._emit(messages.READY, {'readyStates': ready})

    def rename(self, index: int, name: str) -> None:
        with self._lock:
            names = list(self.state.player_names)
            self._check_index(index, len(names))
            names[index] = name
            self._emit(messages.NAME_UPDATE, {'playerNames': names})

    def restart(self) -> None:
        with self._lock:
            if not self.is_owner:
                raise NotOwnerError('only the room owner can restart the clocks')
            n = self.state.num_players
            self.driver.stop()
            logger.info(f"[restart] room={self.room_id} seconds={self.state.config.initial_seconds}")
            self._emit(messages.RESET, {
                'timers': [self.state.config.initial_seconds] * n,
                'readyStates': [False] * n,
            })

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            data = self.state.snapshot()
            data['running'] = self.driver.active_index if self.driver.running else None
            if self.handshake is not None:
                data['reconciliation'] = self.handshake.state
            return data

    # ---- internals ----

    @staticmethod
    def _check_index(index: int, size: int) -> None:
        if not 0 <= index < size:
            raise IndexError(f"player index {index} out of range 0..{size - 1}")

    def _emit(self, msg_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        message = messages.build(msg_type, payload, sender=self.client_id, version=self.clock.tick())
        self._publish(message)
        self.router.handle(message)
        return message

    def _publish(self, message: Dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self.channel.publish(self.topic, message)
        except Exception as exc:
            logger.warning(f"[publish-failed] room={self.room_id} type={message.get('type')} error={exc}")

    def _request_config(self) -> None:
        message = messages.build(messages.REQUEST_CONFIG, sender=self.client_id, version=self.clock.tick())
        self._publish(message)

    def _on_configured(self) -> None:
        if self.handshake is not None:
            self.handshake.mark_configured()

    def _on_tick(self, index: int) -> None:
        if index is None or self.closed:
            return
        self._emit(messages.UPDATE, {'timers': self.state.ticked(index)})
