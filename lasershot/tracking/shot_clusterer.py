"""Online spatio-temporal grouping of laser points into shots."""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from lasershot.core.config import get_config
from lasershot.core.models import LaserPoint, Shot, timestamp_ms

logger = logging.getLogger(__name__)


class ShotClusterer:
    """
    Greedy first-match clustering of points into shots.

    Shots are scanned in creation order and a point joins the first shot
    whose running center is within ``spatial_threshold`` AND whose last
    point is within ``temporal_threshold``. Otherwise the point starts a
    new shot. Shots are never merged or re-evaluated.

    Distance is measured to the shot center while time is measured to the
    shot's last point; a point close to a shot's latest point but far from
    its center will not rejoin it.
    """

    def __init__(
        self,
        spatial_threshold: float | None = None,
        temporal_threshold: float | None = None,
    ):
        """
        Args:
            spatial_threshold: Max distance (pixels) from a shot center
            temporal_threshold: Max time (ms) since a shot's last point
        """
        config = get_config()
        self.spatial_threshold = (
            spatial_threshold if spatial_threshold is not None
            else config.clustering.spatial_threshold
        )
        self.temporal_threshold = (
            temporal_threshold if temporal_threshold is not None
            else config.clustering.temporal_threshold
        )

    def matches(self, shot: Shot, point: LaserPoint) -> bool:
        """Check whether a point qualifies to join a shot."""
        cx, cy = shot.center
        distance = math.hypot(point.x - cx, point.y - cy)
        if distance > self.spatial_threshold:
            return False
        time_diff = abs(timestamp_ms(point.timestamp) - timestamp_ms(shot.last_point.timestamp))
        return time_diff <= self.temporal_threshold

    def place(self, shots: list[Shot], point: LaserPoint) -> int:
        """Add a point to the first matching shot (or a new one) and return its index."""
        for index, shot in enumerate(shots):
            if self.matches(shot, point):
                shot.append(point)
                return index

        shots.append(Shot.start(point))
        logger.debug(f"Shot #{len(shots)} started at ({point.x:.1f}, {point.y:.1f})")
        return len(shots) - 1

    def assign(self, shots: list[Shot], point: LaserPoint) -> list[Shot]:
        """
        Add one point to the shot partition.

        Args:
            shots: Existing shots in creation order (updated in place)
            point: New detection

        Returns:
            The same list, with the point appended to a shot or a new shot
        """
        self.place(shots, point)
        return shots

    def cluster(self, points: Iterable[LaserPoint]) -> list[Shot]:
        """Group a whole point sequence, one point at a time."""
        shots: list[Shot] = []
        for point in points:
            self.assign(shots, point)
        return shots


@dataclass
class ShotSession:
    """Caller-owned accumulation of detections and their shots."""

    clusterer: ShotClusterer = field(default_factory=ShotClusterer)
    points: list[LaserPoint] = field(default_factory=list)
    shots: list[Shot] = field(default_factory=list)

    @property
    def total_points(self) -> int:
        return len(self.points)

    def add(self, points: Iterable[LaserPoint]) -> list[Shot]:
        """
        Feed new detections into the session.

        Returns:
            Shots that received a point during this call, in creation order
        """
        touched: set[int] = set()
        for point in points:
            self.points.append(point)
            touched.add(self.clusterer.place(self.shots, point))
        return [self.shots[i] for i in sorted(touched)]

    def reset(self) -> None:
        self.points.clear()
        self.shots.clear()
