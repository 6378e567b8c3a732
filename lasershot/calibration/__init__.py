"""Target calibration module for LaserShot."""

from .homography import (
    compute_homography,
    destination_corners,
    project_point,
    project_points,
    reprojection_error,
)
from .manager import (
    CALIBRATION_MAX_AGE,
    CalibrationManager,
    CalibrationPhase,
    CalibrationState,
    is_valid,
    validate_record,
)
from .store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    # Homography math
    "compute_homography",
    "destination_corners",
    "project_point",
    "project_points",
    "reprojection_error",
    # Workflow
    "CALIBRATION_MAX_AGE",
    "CalibrationManager",
    "CalibrationPhase",
    "CalibrationState",
    "is_valid",
    "validate_record",
    # Persistence
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
]
