"""Models for raw GPS fixes and movement classification results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from movement.state import MovementStatus


class GpsFix(BaseModel):
    """A single timestamped GPS reading as delivered by the mobile client."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    speed: float | None = None  # m/s
    accuracy: float | None = None  # meters
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class MovementResult:
    """Debounced movement status plus the speed it was derived from."""

    status: MovementStatus
    label: str
    speed_kmh: float

    @classmethod
    def for_status(cls, status: MovementStatus, speed_kmh: float) -> MovementResult:
        return cls(status=status, label=status.label, speed_kmh=speed_kmh)
