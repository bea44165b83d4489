"""Clock room synchronization core.

Room state, the readiness decision, the owner's clock driver, the message
router and the late-joiner handshake. Nothing here knows about Flask or
Socket.IO; sessions talk to a channel and a scheduler passed in by the
caller.
"""

from .readiness import AllReady, Mixed, RunIndex, decide
from .session import Role, RoomSession, SessionSettings
from .state import RoomConfig, RoomState

__all__ = [
    'AllReady',
    'Mixed',
    'RunIndex',
    'decide',
    'Role',
    'RoomSession',
    'SessionSettings',
    'RoomConfig',
    'RoomState',
]
