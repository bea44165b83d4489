from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from clockroom.exceptions import InvalidRoomConfig

MIN_PLAYERS = 2
MAX_PLAYERS = 10
MIN_MINUTES = 1
MAX_MINUTES = 60

# Provisional values a joiner runs on until the owner's config arrives
DEFAULT_PLAYERS = 2
DEFAULT_MINUTES = 5

# (lamport counter, sender id); None means nothing applied yet
Version = Optional[Tuple[int, str]]


@dataclass(frozen=True)
class RoomConfig:
    num_players: int
    minutes_per_player: int

    def __post_init__(self):
        _check_range('numPlayers', self.num_players, MIN_PLAYERS, MAX_PLAYERS)
        _check_range('minutesPerPlayer', self.minutes_per_player, MIN_MINUTES, MAX_MINUTES)

    @property
    def initial_seconds(self) -> int:
        return self.minutes_per_player * 60

    @classmethod
    def provisional(cls) -> 'RoomConfig':
        return cls(DEFAULT_PLAYERS, DEFAULT_MINUTES)


def _check_range(field: str, value, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidRoomConfig(field, value, low, high)


def default_names(count: int) -> List[str]:
    return [f"Player {i + 1}" for i in range(count)]


class RoomState:
    """Locally applied replica of one room.

    Sequences are only ever replaced wholesale with copies, never mutated
    in place, so a list handed to a publisher cannot change under it.
    """

    def __init__(self, config: RoomConfig):
        self.config = config
        self.player_names: List[str] = default_names(config.num_players)
        self.ready_states: List[bool] = [False] * config.num_players
        self.timers: List[int] = [config.initial_seconds] * config.num_players
        self.versions: Dict[str, Version] = {'names': None, 'ready': None, 'timers': None}

    @property
    def num_players(self) -> int:
        return self.config.num_players

    def clamp(self, seconds: int) -> int:
        return max(0, min(int(seconds), self.config.initial_seconds))

    def set_names(self, names) -> None:
        self.player_names = [str(n) for n in names]

    def set_ready(self, ready) -> None:
        self.ready_states = [bool(r) for r in ready]

    def set_timers(self, timers) -> None:
        self.timers = [self.clamp(t) for t in timers]

    def reset_ready(self) -> None:
        self.ready_states = [False] * self.num_players

    def ticked(self, index: int) -> List[int]:
        """Timers after one second off ``index``; the replica is untouched."""
        timers = list(self.timers)
        timers[index] = max(0, timers[index] - 1)
        return timers

    def replace(self, config: RoomConfig, names, ready, timers) -> None:
        """Overwrite configuration and all three sequences at once."""
        self.config = config
        self.set_names(names)
        self.set_ready(ready)
        self.set_timers(timers)

    def snapshot(self) -> Dict[str, Any]:
        return {
            'numPlayers': self.config.num_players,
            'minutesPerPlayer': self.config.minutes_per_player,
            'playerNames': list(self.player_names),
            'timers': list(self.timers),
            'readyStates': list(self.ready_states),
        }
