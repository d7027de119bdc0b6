"""
Movement State Module.

Defines the MovementStatus enum and the hysteresis state machine that keeps
the externally visible status from flapping on single noisy fixes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

HYSTERESIS_COUNT = 2


class MovementStatus(Enum):
    """Enumeration of movement classifications."""

    STATIONARY = "stationary"
    WALKING = "walking"
    VEHICLE = "vehicle"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS: dict[MovementStatus, str] = {
    MovementStatus.STATIONARY: "Parada",
    MovementStatus.WALKING: "Caminhando",
    MovementStatus.VEHICLE: "Em Veículo",
}


@dataclass(frozen=True)
class MovementState:
    """
    Debounce state for one tracked subject.

    ``confirmed`` is what callers see. ``candidate`` is the status observed
    most recently that differs from it, and ``candidate_streak`` counts how
    many consecutive observations agreed on that candidate.
    """

    confirmed: MovementStatus = MovementStatus.STATIONARY
    candidate: MovementStatus = MovementStatus.STATIONARY
    candidate_streak: int = 0


def advance(
    state: MovementState,
    observed: MovementStatus,
    threshold: int = HYSTERESIS_COUNT,
) -> MovementState:
    """
    Apply one observation to the hysteresis state machine.

    Args:
        state: Current state
        observed: Status classified from the latest smoothed reading
        threshold: Consecutive agreeing observations needed to switch

    Returns:
        The next state; ``state`` itself is left untouched
    """
    if observed == state.confirmed:
        # Back on the confirmed status: drop any stale candidate.
        return MovementState(confirmed=observed, candidate=observed, candidate_streak=0)

    if observed == state.candidate:
        streak = state.candidate_streak + 1
    else:
        streak = 1

    if streak >= threshold:
        return MovementState(confirmed=observed, candidate=observed, candidate_streak=0)
    return replace(state, candidate=observed, candidate_streak=streak)
