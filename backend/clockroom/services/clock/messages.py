"""Wire format of the clock room protocol.

Every message is a JSON object::

    {"type": "update", "payload": {"timers": [...]}, "sender": "user-ab12cd", "version": 7}

``version`` is the publisher's Lamport counter. Together with ``sender`` it
orders state-carrying messages so a late duplicate or a stale update cannot
overwrite fresher state.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

READY = 'ready'
UPDATE = 'update'
RESET = 'reset'
REQUEST_CONFIG = 'request_config'
CONFIG = 'config'
NAME_UPDATE = 'name_update'

MESSAGE_TYPES = {READY, UPDATE, RESET, REQUEST_CONFIG, CONFIG, NAME_UPDATE}
# Messages that replace part of the replica
STATE_TYPES = {READY, UPDATE, RESET, NAME_UPDATE}
SLICES = ('names', 'ready', 'timers')


@dataclass(frozen=True)
class Message:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    sender: Optional[str] = None
    version: Optional[int] = None

    @property
    def stamp(self) -> Optional[Tuple[int, str]]:
        if self.version is None:
            return None
        return (self.version, self.sender or '')

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'type': self.type, 'payload': _copy_payload(self.payload)}
        if self.sender is not None:
            data['sender'] = self.sender
        if self.version is not None:
            data['version'] = self.version
        return data


class LamportClock:
    """Per-session logical clock used to version outgoing messages."""

    def __init__(self, value: int = 0):
        self.value = value

    def tick(self) -> int:
        self.value += 1
        return self.value

    def observe(self, version: Optional[int]) -> None:
        if version is not None and version > self.value:
            self.value = version


def _copy_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: list(v) if isinstance(v, list) else v for k, v in payload.items()}


def build(msg_type: str, payload: Optional[Dict[str, Any]] = None,
          sender: Optional[str] = None, version: Optional[int] = None) -> Dict[str, Any]:
    return Message(msg_type, _copy_payload(payload or {}), sender, version).to_dict()


def parse(raw: Any) -> Optional[Message]:
    """Return a Message for a well-formed envelope, otherwise None."""
    if not isinstance(raw, dict):
        return None
    msg_type = raw.get('type')
    if msg_type not in MESSAGE_TYPES:
        return None
    payload = raw.get('payload')
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return None
    sender = raw.get('sender')
    if sender is not None and not isinstance(sender, str):
        return None
    version = raw.get('version')
    if version is not None and (isinstance(version, bool) or not isinstance(version, int) or version < 0):
        return None
    return Message(msg_type, _copy_payload(payload), sender, version)


# ---- payload field readers: return None when the field is absent or malformed ----

def bool_list(payload: Dict[str, Any], key: str, length: int) -> Optional[List[bool]]:
    value = payload.get(key)
    if not isinstance(value, list) or len(value) != length:
        return None
    if not all(isinstance(v, bool) for v in value):
        return None
    return list(value)


def int_list(payload: Dict[str, Any], key: str, length: int) -> Optional[List[int]]:
    value = payload.get(key)
    if not isinstance(value, list) or len(value) != length:
        return None
    if not all(isinstance(v, int) and not isinstance(v, bool) and v >= 0 for v in value):
        return None
    return list(value)


def str_list(payload: Dict[str, Any], key: str, length: int) -> Optional[List[str]]:
    value = payload.get(key)
    if not isinstance(value, list) or len(value) != length:
        return None
    if not all(isinstance(v, str) for v in value):
        return None
    return list(value)


def stamp_map(value: Any) -> Dict[str, Optional[Tuple[int, str]]]:
    """Per-slice (version, sender) stamps from a config payload; bad entries become None."""
    stamps: Dict[str, Optional[Tuple[int, str]]] = {}
    for slice_name in SLICES:
        item = value.get(slice_name) if isinstance(value, dict) else None
        if (isinstance(item, (list, tuple)) and len(item) == 2
                and isinstance(item[0], int) and not isinstance(item[0], bool) and item[0] >= 0
                and isinstance(item[1], str)):
            stamps[slice_name] = (item[0], item[1])
        else:
            stamps[slice_name] = None
    return stamps
