"""
Anti-noise movement classifier.

Turns raw speed and accuracy readings into a stationary / walking / vehicle
status. Readings are normalized to km/h, smoothed over a short rolling
window, forced to zero when slow and imprecise, classified by speed band
and finally debounced by the hysteresis state machine in
:mod:`movement.state`.
"""

from __future__ import annotations

import logging
import math
from collections import deque

from core.constants import MS_TO_KMH
from movement.models import MovementResult
from movement.state import HYSTERESIS_COUNT, MovementState, MovementStatus, advance

logger = logging.getLogger(__name__)

BUFFER_SIZE = 3
NOISE_THRESHOLD_KMH = 2.0
NOISE_ACCURACY_THRESHOLD_M = 30.0
# Max plausible speed in km/h; anything above is a GPS spike
MAX_SPEED_KMH = 200.0
WALKING_MIN_KMH = 1.0
WALKING_MAX_KMH = 15.0


def normalize_speed(speed: float | None) -> float:
    """Convert a m/s reading to km/h, zeroing missing and implausible values."""
    if speed is None or not math.isfinite(speed) or speed <= 0:
        return 0.0
    kmh = speed * MS_TO_KMH
    if kmh > MAX_SPEED_KMH:
        return 0.0
    return round(kmh, 1)


def classify(avg_speed_kmh: float) -> MovementStatus:
    """Map a smoothed speed in km/h to a movement status."""
    if avg_speed_kmh < WALKING_MIN_KMH:
        return MovementStatus.STATIONARY
    if avg_speed_kmh <= WALKING_MAX_KMH:
        return MovementStatus.WALKING
    return MovementStatus.VEHICLE


def classify_movement(speed: float | None) -> MovementResult:
    """
    Stateless single-shot classification for contexts without history.

    Applies normalization only: no smoothing, no noise filter and no
    hysteresis.
    """
    speed_kmh = normalize_speed(speed)
    return MovementResult.for_status(classify(speed_kmh), speed_kmh)


class MovementClassifier:
    """
    Debounced movement classifier for a single tracked subject.

    Call :meth:`update` each time a new GPS reading arrives. Create one
    instance per subject and drive it from a single task: the rolling
    buffer and state are not guarded against concurrent mutation.
    """

    def __init__(
        self,
        buffer_size: int = BUFFER_SIZE,
        hysteresis_count: int = HYSTERESIS_COUNT,
    ) -> None:
        self._buffer: deque[float] = deque(maxlen=buffer_size)
        self._hysteresis_count = hysteresis_count
        self._state = MovementState()

    @property
    def state(self) -> MovementState:
        return self._state

    @property
    def samples(self) -> list[float]:
        return list(self._buffer)

    def update(self, speed: float | None, accuracy_m: float | None) -> MovementResult:
        """
        Feed one reading and return the debounced status.

        Args:
            speed: Reported speed in m/s, or None when the fix has none
            accuracy_m: Horizontal accuracy in meters, or None when unknown

        Returns:
            The confirmed status and the filtered mean speed in km/h
        """
        self._buffer.append(normalize_speed(speed))
        avg = sum(self._buffer) / len(self._buffer)

        if avg <= NOISE_THRESHOLD_KMH and (
            accuracy_m is None
            or not math.isfinite(accuracy_m)
            or accuracy_m > NOISE_ACCURACY_THRESHOLD_M
        ):
            avg = 0.0

        observed = classify(avg)
        previous = self._state.confirmed
        self._state = advance(self._state, observed, self._hysteresis_count)
        if self._state.confirmed != previous:
            logger.debug(
                "Movement status changed %s -> %s at %.1f km/h",
                previous.value,
                self._state.confirmed.value,
                avg,
            )

        return MovementResult.for_status(self._state.confirmed, round(avg, 1))

    def reset(self) -> None:
        self._buffer.clear()
        self._state = MovementState()
