"""LaserShot - laser marker detection, shot grouping and target calibration."""

from lasershot.calibration import CalibrationManager, CalibrationPhase, JsonFileStore, MemoryStore
from lasershot.core.config import LaserShotConfig, get_config
from lasershot.core.errors import (
    AcquisitionError,
    CalibrationInvalidError,
    DegenerateConfigurationError,
    LaserShotError,
    PrecompleteError,
)
from lasershot.core.models import CalibrationRecord, CornerSlot, LaserPoint, Resolution, Shot
from lasershot.core.video import FrameSource
from lasershot.detection import ColorSegmenter, MarkerExtractor
from lasershot.processing import DetectionLoop, PerspectiveCorrector
from lasershot.tracking import ShotClusterer, ShotSession

__version__ = "0.1.0"

__all__ = [
    "AcquisitionError",
    "CalibrationInvalidError",
    "CalibrationManager",
    "CalibrationPhase",
    "CalibrationRecord",
    "ColorSegmenter",
    "CornerSlot",
    "DegenerateConfigurationError",
    "DetectionLoop",
    "FrameSource",
    "JsonFileStore",
    "LaserPoint",
    "LaserShotConfig",
    "LaserShotError",
    "MarkerExtractor",
    "MemoryStore",
    "PerspectiveCorrector",
    "PrecompleteError",
    "Resolution",
    "Shot",
    "ShotClusterer",
    "ShotSession",
    "get_config",
]
