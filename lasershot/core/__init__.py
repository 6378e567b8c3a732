"""Core domain models and configuration."""

from lasershot.core.models import (
    CalibrationRecord,
    CornerSlot,
    DeviceInfo,
    LaserPoint,
    Resolution,
    Shot,
)
from lasershot.core.config import get_config, LaserShotConfig

__all__ = [
    "CalibrationRecord",
    "CornerSlot",
    "DeviceInfo",
    "LaserPoint",
    "Resolution",
    "Shot",
    "get_config",
    "LaserShotConfig",
]
