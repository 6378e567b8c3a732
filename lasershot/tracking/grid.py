"""Coarse grid grouping of laser points.

A cheaper, non-incremental alternative to shot clustering: points are keyed
by the grid cell they fall in and the wall-clock second they were seen.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from lasershot.core.models import LaserPoint, format_iso_timestamp, parse_iso_timestamp


@dataclass
class PointGroup:
    """Points sharing one grid cell and one second."""

    key: str
    points: list[LaserPoint] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.points)


def _second_key(timestamp: int | float | str) -> str:
    if isinstance(timestamp, str):
        moment = parse_iso_timestamp(timestamp)
    else:
        moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    # "YYYY-MM-DDTHH:MM:SS"
    return format_iso_timestamp(moment)[:19]


def cell_key(point: LaserPoint, cell_size: float = 100.0) -> str:
    """Grouping key: "<cell x>-<cell y>-<UTC second>"."""
    cx = math.floor(point.x / cell_size)
    cy = math.floor(point.y / cell_size)
    return f"{cx}-{cy}-{_second_key(point.timestamp)}"


def group_by_cell(points: Iterable[LaserPoint], cell_size: float = 100.0) -> list[PointGroup]:
    """Group points by grid cell and second, in first-seen order."""
    if cell_size <= 0:
        raise ValueError(f"cell_size must be positive, got {cell_size}")

    groups: dict[str, PointGroup] = {}
    for point in points:
        key = cell_key(point, cell_size)
        if key not in groups:
            groups[key] = PointGroup(key=key)
        groups[key].points.append(point)
    return list(groups.values())
