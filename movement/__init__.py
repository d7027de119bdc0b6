"""
Movement Classification Package.

Debounced stationary / walking / vehicle classification from raw GPS
speed and accuracy readings. Pure local computation, no I/O.
"""

from .classifier import (
    MovementClassifier,
    classify,
    classify_movement,
    normalize_speed,
)
from .models import GpsFix, MovementResult
from .state import MovementState, MovementStatus, advance

__all__ = [
    "GpsFix",
    "MovementClassifier",
    "MovementResult",
    "MovementState",
    "MovementStatus",
    "advance",
    "classify",
    "classify_movement",
    "normalize_speed",
]
