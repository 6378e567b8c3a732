"""Core domain models for LaserShot."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def timestamp_ms(value: int | float | str) -> float:
    """Normalize a point timestamp (epoch milliseconds or ISO-8601) to milliseconds.

    Numeric timestamps keep their fractional part.
    """
    if isinstance(value, str):
        elapsed = parse_iso_timestamp(value) - _EPOCH
        return (elapsed // timedelta(microseconds=1)) / 1000
    return float(value)


def parse_iso_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    text = value.strip()
    # JavaScript style "Z" suffix
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_iso_timestamp(moment: datetime) -> str:
    """Format a datetime as a UTC ISO-8601 string with millisecond precision."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class LaserPoint:
    """A single marker detection."""

    x: float
    y: float
    timestamp: int | float | str = 0

    @property
    def timestamp_ms(self) -> float:
        """Timestamp in epoch milliseconds."""
        return timestamp_ms(self.timestamp)


@dataclass
class Shot:
    """A group of detections that belong to one shot.

    The center is a running mean that is only ever updated incrementally.
    """

    points: list[LaserPoint] = field(default_factory=list)
    center_x: float = 0.0
    center_y: float = 0.0

    @classmethod
    def start(cls, point: LaserPoint) -> "Shot":
        """Create a shot holding a single point."""
        return cls(points=[point], center_x=float(point.x), center_y=float(point.y))

    @property
    def center(self) -> tuple[float, float]:
        """Get shot center as (x, y)."""
        return (self.center_x, self.center_y)

    @property
    def last_point(self) -> LaserPoint:
        """Most recently appended point."""
        return self.points[-1]

    @property
    def size(self) -> int:
        return len(self.points)

    def append(self, point: LaserPoint) -> None:
        """Append a point and update the running mean center."""
        self.points.append(point)
        n = len(self.points)
        self.center_x = (self.center_x * (n - 1) + point.x) / n
        self.center_y = (self.center_y * (n - 1) + point.y) / n


@dataclass(frozen=True)
class Resolution:
    """Frame resolution in pixels."""

    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def from_tuple(cls, size: tuple[int, int]) -> "Resolution":
        return cls(width=int(size[0]), height=int(size[1]))


class CornerSlot(str, Enum):
    """Calibration corner slots, declared in canonical homography order."""

    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_RIGHT = "bottom-right"
    BOTTOM_LEFT = "bottom-left"

    @classmethod
    def ordered(cls) -> list["CornerSlot"]:
        """Slots in the order [top-left, top-right, bottom-right, bottom-left]."""
        return list(cls)

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").upper()


@dataclass(frozen=True)
class DeviceInfo:
    """Metadata reported by the frame source."""

    camera_id: str
    label: str
    width: int
    height: int

    @property
    def resolution(self) -> Resolution:
        return Resolution(self.width, self.height)


@dataclass(frozen=True)
class CalibrationRecord:
    """Persisted result of a four-corner calibration."""

    camera_id: str
    resolution: Resolution
    timestamp: str
    corners: tuple[LaserPoint, ...]

    @property
    def is_complete(self) -> bool:
        return len(self.corners) == 4

    @property
    def calibrated_at(self) -> datetime:
        return parse_iso_timestamp(self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cameraId": self.camera_id,
            "resolution": {
                "width": self.resolution.width,
                "height": self.resolution.height,
            },
            "timestamp": self.timestamp,
            "corners": [{"x": c.x, "y": c.y} for c in self.corners],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CalibrationRecord":
        """Create from dictionary (e.g., from JSON)."""
        resolution = data["resolution"]
        return cls(
            camera_id=str(data["cameraId"]),
            resolution=Resolution(int(resolution["width"]), int(resolution["height"])),
            timestamp=str(data["timestamp"]),
            corners=tuple(
                LaserPoint(x=float(c["x"]), y=float(c["y"])) for c in data["corners"]
            ),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "CalibrationRecord":
        return cls.from_dict(json.loads(text))
