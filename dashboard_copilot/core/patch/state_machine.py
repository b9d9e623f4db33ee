from __future__ import annotations

from enum import Enum
from typing import Dict, Set, Tuple


class PatchState(str, Enum):
    IDLE = "idle"
    PATH_VALIDATED = "path_validated"
    TRANSFORMED = "transformed"
    VALIDATED = "validated"
    COMMITTED = "committed"


_ALLOWED: Set[Tuple[PatchState, PatchState]] = {
    (PatchState.IDLE, PatchState.PATH_VALIDATED),
    (PatchState.PATH_VALIDATED, PatchState.TRANSFORMED),
    (PatchState.TRANSFORMED, PatchState.VALIDATED),
    (PatchState.VALIDATED, PatchState.COMMITTED),

    # abort from any in-flight state
    (PatchState.PATH_VALIDATED, PatchState.IDLE),
    (PatchState.TRANSFORMED, PatchState.IDLE),
    (PatchState.VALIDATED, PatchState.IDLE),
}

_TERMINAL: Set[PatchState] = {PatchState.COMMITTED}


def is_terminal(state: PatchState) -> bool:
    return state in _TERMINAL


def can_transition(src: PatchState, dst: PatchState) -> bool:
    if src == dst:
        return True
    if src in _TERMINAL:
        return False
    return (src, dst) in _ALLOWED


def ensure_transition(src: PatchState, dst: PatchState) -> None:
    if not can_transition(src, dst):
        raise ValueError(f"Illegal transition: {src.value} -> {dst.value}")


def allowed_next(src: PatchState) -> Dict[str, bool]:
    out: Dict[str, bool] = {}
    for a, b in _ALLOWED:
        if a == src:
            out[b.value] = True
    return out


class PatchSession:
    """Tracks one patch request through its states."""

    def __init__(self) -> None:
        self.state = PatchState.IDLE
        self.history = [PatchState.IDLE]

    def advance(self, dst: PatchState) -> None:
        ensure_transition(self.state, dst)
        self.state = dst
        self.history.append(dst)

    def abort(self) -> None:
        if self.state not in (PatchState.IDLE, PatchState.COMMITTED):
            self.advance(PatchState.IDLE)
