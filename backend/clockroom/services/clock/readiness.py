from dataclasses import dataclass
from typing import Sequence, Union


@dataclass(frozen=True)
class RunIndex:
    index: int


@dataclass(frozen=True)
class AllReady:
    pass


@dataclass(frozen=True)
class Mixed:
    pass


Decision = Union[RunIndex, AllReady, Mixed]


def decide(ready_states: Sequence[bool]) -> Decision:
    """Map the ready vector to which clock should run.

    - exactly one participant not ready: their clock runs
    - nobody left: everyone is ready, the round resets
    - two or more not ready: no clock runs
    """
    not_ready = [i for i, ready in enumerate(ready_states) if not ready]
    if len(not_ready) == 1:
        return RunIndex(not_ready[0])
    if not not_ready:
        return AllReady()
    return Mixed()
