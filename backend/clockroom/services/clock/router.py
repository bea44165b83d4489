import logging
from collections import deque
from typing import Any, Callable, Dict, Optional

from clockroom.exceptions import InvalidRoomConfig

from . import messages
from .messages import Message
from .readiness import AllReady, Mixed, RunIndex, decide
from .state import RoomConfig, RoomState

logger = logging.getLogger(__name__)

EARLY_BUFFER = 64

Publish = Callable[[str, Dict[str, Any]], None]


class MessageRouter:
    """Applies inbound protocol messages to the local replica.

    Every state-carrying message replaces a whole slice (names, ready
    vector, timers) and only when its (version, sender) stamp is newer than
    the one last applied to that slice, so duplicates and stale arrivals
    are no-ops. Anything malformed is dropped without raising.
    """

    def __init__(self, state: RoomState, driver, clock: messages.LamportClock,
                 client_id: str, is_owner: bool, publish: Publish,
                 on_configured: Optional[Callable[[], None]] = None, room_id: str = ''):
        self.state = state
        self.driver = driver
        self.clock = clock
        self.client_id = client_id
        self.is_owner = is_owner
        self.publish = publish
        self.on_configured = on_configured
        self.room_id = room_id
        self.configured = False
        # State traffic a joiner saw before its snapshot, replayed once configured
        self._early = deque(maxlen=EARLY_BUFFER)
        self._handlers = {
            messages.READY: self._on_ready,
            messages.UPDATE: self._on_update,
            messages.RESET: self._on_reset,
            messages.REQUEST_CONFIG: self._on_request_config,
            messages.CONFIG: self._on_config,
            messages.NAME_UPDATE: self._on_name_update,
        }

    def handle(self, raw: Any) -> bool:
        """Apply one message. Returns True when local state changed."""
        msg = messages.parse(raw)
        if msg is None:
            logger.debug(f"[message-ignored] room={self.room_id} reason=malformed envelope")
            return False
        self.clock.observe(msg.version)
        if not self.is_owner and not self.configured and msg.type in messages.STATE_TYPES:
            self._early.append(msg)
        return bool(self._handlers[msg.type](msg))

    # ---- versioning ----

    def _is_newer(self, slice_name: str, msg: Message) -> bool:
        stamp = msg.stamp
        if stamp is None:
            return True
        current = self.state.versions.get(slice_name)
        return current is None or stamp > current

    def _mark(self, slice_name: str, msg: Message) -> None:
        if msg.stamp is not None:
            self.state.versions[slice_name] = msg.stamp

    def _ignore(self, msg: Message, reason: str) -> bool:
        logger.debug(f"[message-ignored] room={self.room_id} type={msg.type} sender={msg.sender} reason={reason}")
        return False

    # ---- handlers ----

    def _on_ready(self, msg: Message) -> bool:
        n = self.state.num_players
        ready = messages.bool_list(msg.payload, 'readyStates', n)
        if ready is None:
            return self._ignore(msg, 'bad readyStates')
        if not self._is_newer('ready', msg):
            return self._ignore(msg, 'stale')
        self.state.set_ready(ready)
        self._mark('ready', msg)

        decision = decide(ready)
        if isinstance(decision, RunIndex):
            if self.is_owner:
                self.driver.start(decision.index)
        elif isinstance(decision, Mixed):
            self.driver.stop()
        elif isinstance(decision, AllReady):
            self.driver.stop()
            self.state.reset_ready()
            # The peer whose toggle completed the vector saw it first; the
            # owner speaks for senders that did not identify themselves
            if msg.sender == self.client_id or (msg.sender is None and self.is_owner):
                logger.info(f"[all-ready] room={self.room_id} broadcasting reset")
                self.publish(messages.RESET, {'readyStates': [False] * n})
        return True

    def _on_update(self, msg: Message) -> bool:
        timers = messages.int_list(msg.payload, 'timers', self.state.num_players)
        if timers is None:
            return self._ignore(msg, 'bad timers')
        if not self._is_newer('timers', msg):
            return self._ignore(msg, 'stale')
        self.state.set_timers(timers)
        self._mark('timers', msg)
        return True

    def _on_reset(self, msg: Message) -> bool:
        n = self.state.num_players
        payload = msg.payload
        ready = [False] * n
        if 'readyStates' in payload:
            ready = messages.bool_list(payload, 'readyStates', n)
            if ready is None:
                return self._ignore(msg, 'bad readyStates')
        timers = None
        if 'timers' in payload:
            timers = messages.int_list(payload, 'timers', n)
            if timers is None:
                return self._ignore(msg, 'bad timers')

        changed = False
        if self._is_newer('ready', msg):
            self.driver.stop()
            self.state.set_ready(ready)
            self._mark('ready', msg)
            changed = True
        if timers is not None and self._is_newer('timers', msg):
            self.state.set_timers(timers)
            self._mark('timers', msg)
            changed = True
        if not changed:
            return self._ignore(msg, 'stale')
        return True

    def _on_request_config(self, msg: Message) -> bool:
        if not self.is_owner:
            return False
        logger.info(f"[config-reply] room={self.room_id} to={msg.sender}")
        snapshot = self.state.snapshot()
        # Stamps of the data in the snapshot, not of the reply itself
        snapshot['versions'] = {
            name: list(stamp) if stamp is not None else None
            for name, stamp in self.state.versions.items()
        }
        self.publish(messages.CONFIG, snapshot)
        return False

    def _on_config(self, msg: Message) -> bool:
        if self.is_owner:
            if msg.sender != self.client_id:
                logger.warning(f"[owner-conflict] room={self.room_id} another owner answered: sender={msg.sender}")
            return False
        if self.configured:
            return self._ignore(msg, 'already configured')

        payload = msg.payload
        try:
            config = RoomConfig(payload.get('numPlayers'), payload.get('minutesPerPlayer'))
        except InvalidRoomConfig as exc:
            return self._ignore(msg, str(exc))
        n = config.num_players
        names = messages.str_list(payload, 'playerNames', n)
        timers = messages.int_list(payload, 'timers', n)
        ready = messages.bool_list(payload, 'readyStates', n)
        if names is None or timers is None or ready is None:
            return self._ignore(msg, 'incomplete snapshot')

        self.driver.stop()
        self.state.replace(config, names, ready, timers)
        stamps = messages.stamp_map(payload.get('versions'))
        self.state.versions.update(stamps)
        for stamp in stamps.values():
            if stamp is not None:
                self.clock.observe(stamp[0])
        self.configured = True
        logger.info(f"[configured] room={self.room_id} players={n} minutes={config.minutes_per_player}")

        # Anything the owner had not applied when it answered still gets its
        # chance against the snapshot's stamps
        early = list(self._early)
        self._early.clear()
        for pending in early:
            self._handlers[pending.type](pending)
        if self.on_configured is not None:
            self.on_configured()
        return True

    def _on_name_update(self, msg: Message) -> bool:
        names = messages.str_list(msg.payload, 'playerNames', self.state.num_players)
        if names is None:
            return self._ignore(msg, 'bad playerNames')
        if not self._is_newer('names', msg):
            return self._ignore(msg, 'stale')
        self.state.set_names(names)
        self._mark('names', msg)
        return True
