"""Per-subject fix pipeline combining movement, geocoding and road snapping."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from config import HOME_RADIUS_M, SNAP_MAX_TRAIL_POINTS
from core.spatial import GeometryService
from movement.classifier import MovementClassifier
from movement.models import GpsFix, MovementResult

from .geocoding import GeocodeResolver
from .map_matching import RoadSnapper
from .schemas import GeoResult, SnapResult

logger = logging.getLogger(__name__)


@dataclass
class SubjectTrack:
    """Per-subject state: its own classifier and its recent trail."""

    classifier: MovementClassifier = field(default_factory=MovementClassifier)
    trail: deque[GpsFix] = field(
        default_factory=lambda: deque(maxlen=SNAP_MAX_TRAIL_POINTS)
    )
    home: tuple[float, float] | None = None

    def trail_points(self) -> list[dict[str, Any]]:
        """Trail as latitude/longitude dicts, most recent first."""
        return [
            {"latitude": fix.latitude, "longitude": fix.longitude}
            for fix in self.trail
        ]


@dataclass(frozen=True)
class FixSummary:
    subject_id: str
    fix: GpsFix
    movement: MovementResult
    address: GeoResult
    road_position: SnapResult
    is_home: bool


class LocationPipeline:
    """
    Facade fanning each incoming fix out to the three pipeline components.

    The resolver and snapper are shared by all subjects; every subject gets
    its own classifier. Fixes for one subject must be ingested from a single
    task at a time.
    """

    def __init__(
        self,
        resolver: GeocodeResolver | None = None,
        snapper: RoadSnapper | None = None,
        *,
        home_radius_m: float = HOME_RADIUS_M,
    ):
        self.resolver = resolver or GeocodeResolver()
        self.snapper = snapper or RoadSnapper()
        self.home_radius_m = home_radius_m
        self._tracks: dict[str, SubjectTrack] = {}

    def track(self, subject_id: str) -> SubjectTrack:
        track = self._tracks.get(subject_id)
        if track is None:
            track = SubjectTrack()
            self._tracks[subject_id] = track
        return track

    def set_home(self, subject_id: str, lat: float, lon: float) -> None:
        """Register the subject's home coordinate for ``is_home`` checks."""
        valid, _ = GeometryService.validate_coordinate_pair([lon, lat])
        if not valid:
            msg = f"Invalid home coordinate: {lat}, {lon}"
            raise ValueError(msg)
        self.track(subject_id).home = (lat, lon)

    def forget(self, subject_id: str) -> None:
        self._tracks.pop(subject_id, None)

    def is_home(self, subject_id: str, lat: float, lon: float) -> bool:
        track = self._tracks.get(subject_id)
        if track is None or track.home is None:
            return False
        home_lat, home_lon = track.home
        distance = GeometryService.haversine_distance(lon, lat, home_lon, home_lat)
        return distance <= self.home_radius_m

    async def ingest(self, subject_id: str, fix: GpsFix) -> FixSummary:
        """
        Process one fix for a subject.

        Args:
            subject_id: Identifier of the tracked subject
            fix: The new GPS reading

        Returns:
            Movement status, display address, road position and home flag
        """
        track = self.track(subject_id)
        movement = track.classifier.update(fix.speed, fix.accuracy)
        track.trail.appendleft(fix)

        address, road_position = await asyncio.gather(
            self.resolver.resolve(fix.latitude, fix.longitude),
            self.snapper.snap(track.trail_points()),
        )
        logger.debug(
            "Fix for %s: %s, %s, snapped=%s",
            subject_id,
            movement.status.value,
            address.display_address,
            road_position.snapped,
        )
        return FixSummary(
            subject_id=subject_id,
            fix=fix,
            movement=movement,
            address=address,
            road_position=road_position,
            is_home=self.is_home(subject_id, fix.latitude, fix.longitude),
        )
