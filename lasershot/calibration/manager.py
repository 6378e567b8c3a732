"""Four-corner calibration workflow.

Corner capture is modeled as an explicit state:

    IDLE -> COLLECTING (0-3 corners) -> COMPLETE (4 corners) -> VALID | INVALID

A stored record is only trusted for the same camera, the same resolution
and for at most 30 days of elapsed wall-clock time.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import numpy as np

from lasershot.calibration.homography import compute_homography
from lasershot.calibration.store import KeyValueStore, MemoryStore
from lasershot.core.config import get_config
from lasershot.core.errors import CalibrationInvalidError, LaserShotError, PrecompleteError
from lasershot.core.models import (
    CalibrationRecord,
    CornerSlot,
    LaserPoint,
    Resolution,
    format_iso_timestamp,
)

logger = logging.getLogger(__name__)

CALIBRATION_MAX_AGE = timedelta(days=30)


class CalibrationPhase(str, Enum):
    """Phase of the calibration workflow."""

    IDLE = "idle"
    COLLECTING = "collecting"
    COMPLETE = "complete"
    VALID = "valid"
    INVALID = "invalid"


@dataclass
class CalibrationState:
    """Tagged calibration state: phase plus the corners captured so far."""

    phase: CalibrationPhase = CalibrationPhase.IDLE
    corners: dict[CornerSlot, LaserPoint] = field(default_factory=dict)
    active_slot: Optional[CornerSlot] = None

    @property
    def filled(self) -> frozenset[CornerSlot]:
        return frozenset(self.corners)

    @property
    def missing(self) -> list[CornerSlot]:
        return [slot for slot in CornerSlot.ordered() if slot not in self.corners]

    @property
    def is_complete(self) -> bool:
        return len(self.corners) == 4

    def ordered_corners(self) -> list[LaserPoint]:
        """Captured corners in canonical order (missing slots skipped)."""
        return [self.corners[slot] for slot in CornerSlot.ordered() if slot in self.corners]


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def validate_record(
    record: Optional[CalibrationRecord],
    current_resolution: Resolution | tuple[int, int],
    current_camera_id: str,
    now: Optional[datetime] = None,
) -> CalibrationRecord:
    """
    Check a stored calibration against the current setup.

    Raises:
        CalibrationInvalidError: With the reason the record cannot be used
    """
    if record is None:
        raise CalibrationInvalidError("no calibration stored")

    if record.camera_id != current_camera_id:
        raise CalibrationInvalidError(
            f"recorded for camera '{record.camera_id}', current camera is '{current_camera_id}'"
        )

    if not isinstance(current_resolution, Resolution):
        current_resolution = Resolution.from_tuple(current_resolution)
    if record.resolution != current_resolution:
        raise CalibrationInvalidError(
            f"recorded at {record.resolution}, current resolution is {current_resolution}"
        )

    if not record.is_complete:
        raise CalibrationInvalidError(f"record has {len(record.corners)} corners, expected 4")

    try:
        calibrated_at = record.calibrated_at
    except ValueError:
        raise CalibrationInvalidError(f"unreadable timestamp '{record.timestamp}'")

    now = _utc(now or datetime.now(timezone.utc))
    age = now - calibrated_at
    if age > CALIBRATION_MAX_AGE:
        raise CalibrationInvalidError(
            f"calibration is {age.total_seconds() / 86400:.1f} days old "
            f"(limit {CALIBRATION_MAX_AGE.days})"
        )

    return record


def is_valid(
    record: Optional[CalibrationRecord],
    current_resolution: Resolution | tuple[int, int],
    current_camera_id: str,
    now: Optional[datetime] = None,
) -> bool:
    """Return True if the record can be used for this camera and resolution."""
    try:
        validate_record(record, current_resolution, current_camera_id, now)
    except CalibrationInvalidError:
        return False
    return True


class CalibrationManager:
    """
    Collects four target corners and owns the derived homography.

    Usage:
        manager = CalibrationManager("camera-0", Resolution(640, 360), store)
        if not manager.restore():
            manager.select_corner(CornerSlot.TOP_LEFT)
            manager.capture(point)
            ...
            manager.compute_homography()
            manager.save()
    """

    def __init__(
        self,
        camera_id: str,
        resolution: Resolution | tuple[int, int],
        store: Optional[KeyValueStore] = None,
        dest_width: Optional[int] = None,
        dest_height: Optional[int] = None,
        storage_key: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            camera_id: Identity of the camera being calibrated
            resolution: Processing resolution the corners are measured in
            store: Key-value store for persistence (in-memory if omitted)
            dest_width: Destination rectangle width
            dest_height: Destination rectangle height
            storage_key: Key the record is stored under
            clock: Returns the current time (UTC)
        """
        config = get_config().calibration
        self.camera_id = camera_id
        self.resolution = (
            resolution if isinstance(resolution, Resolution) else Resolution.from_tuple(resolution)
        )
        self.store = store if store is not None else MemoryStore()
        self.dest_width = dest_width if dest_width is not None else config.dest_width
        self.dest_height = dest_height if dest_height is not None else config.dest_height
        self.storage_key = storage_key or config.storage_key
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self._state = CalibrationState()
        self._homography: Optional[np.ndarray] = None
        self._record: Optional[CalibrationRecord] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def phase(self) -> CalibrationPhase:
        return self._state.phase

    @property
    def homography(self) -> Optional[np.ndarray]:
        """Current homography, or None when uncalibrated."""
        return self._homography

    @property
    def record(self) -> Optional[CalibrationRecord]:
        return self._record

    @property
    def corners(self) -> list[LaserPoint]:
        return self._state.ordered_corners()

    @property
    def is_calibrated(self) -> bool:
        return self._homography is not None

    def _after_corner_change(self) -> None:
        if self._state.is_complete:
            self._state.phase = CalibrationPhase.COMPLETE
        elif self._state.corners or self._state.active_slot is not None:
            self._state.phase = CalibrationPhase.COLLECTING
        else:
            self._state.phase = CalibrationPhase.IDLE

    # -------------------------------------------------------------------------
    # Corner capture
    # -------------------------------------------------------------------------

    def select_corner(self, slot: CornerSlot) -> bool:
        """
        Designate the slot the next captured point goes to.

        Returns:
            False (no change) if the slot is already filled
        """
        slot = CornerSlot(slot)
        if slot in self._state.corners:
            logger.info(f"Corner {slot.value} already captured; ignoring selection")
            return False

        self._state.active_slot = slot
        self._after_corner_change()
        return True

    def capture(self, point: LaserPoint) -> bool:
        """
        Store a point in the active slot.

        Returns:
            False (no change) if no slot is active or the slot is filled
        """
        slot = self._state.active_slot
        if slot is None:
            logger.debug("Capture ignored: no corner selected")
            return False
        if slot in self._state.corners:
            logger.info(f"Corner {slot.value} already captured; ignoring capture")
            return False

        self._state.corners[slot] = point
        self._state.active_slot = None
        self._after_corner_change()
        logger.info(f"Captured {slot.value} at ({point.x:.1f}, {point.y:.1f})")
        return True

    def add_corner(self, point: LaserPoint) -> bool:
        """
        Fill the next empty slot in canonical order.

        Returns:
            False (no change) once four corners exist
        """
        missing = self._state.missing
        if not missing:
            logger.info("Four corners already captured; ignoring point")
            return False

        self._state.active_slot = missing[0]
        return self.capture(point)

    def clear_corner(self, slot: CornerSlot) -> bool:
        """Remove one captured corner so it can be captured again."""
        slot = CornerSlot(slot)
        if self._state.corners.pop(slot, None) is None:
            return False
        self._after_corner_change()
        return True

    def reset(self) -> None:
        """Drop captured corners; the current homography stays until recomputed."""
        self._state = CalibrationState()

    # -------------------------------------------------------------------------
    # Homography
    # -------------------------------------------------------------------------

    def compute_homography(
        self,
        dest_width: Optional[int] = None,
        dest_height: Optional[int] = None,
    ) -> np.ndarray:
        """
        Compute the homography from the captured corners.

        On success a new CalibrationRecord supersedes the previous one and
        the phase becomes VALID. On failure the state and any previous
        homography are left untouched.

        Raises:
            PrecompleteError: If fewer than four corners are captured
            DegenerateConfigurationError: If the corners admit no unique solution
        """
        if not self._state.is_complete:
            raise PrecompleteError(len(self._state.corners))

        width = dest_width if dest_width is not None else self.dest_width
        height = dest_height if dest_height is not None else self.dest_height
        corners = self._state.ordered_corners()

        h_matrix = compute_homography(corners, width, height)

        self.dest_width = width
        self.dest_height = height
        self._homography = h_matrix
        self._record = CalibrationRecord(
            camera_id=self.camera_id,
            resolution=self.resolution,
            timestamp=format_iso_timestamp(self.clock()),
            corners=tuple(corners),
        )
        self._state.phase = CalibrationPhase.VALID
        logger.info(f"Calibration computed for {self.camera_id} at {self.resolution}")
        return h_matrix

    # -------------------------------------------------------------------------
    # Validity and persistence
    # -------------------------------------------------------------------------

    def is_valid(
        self,
        record: Optional[CalibrationRecord] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Check a record (default: the current one) against this camera and resolution."""
        if record is None:
            record = self._record
        return is_valid(record, self.resolution, self.camera_id, now or self.clock())

    def save(self, record: Optional[CalibrationRecord] = None) -> CalibrationRecord:
        """
        Persist a record, replacing any stored one.

        Raises:
            PrecompleteError: If there is no complete record to save
        """
        record = record or self._record
        if record is None or not record.is_complete:
            raise PrecompleteError(len(record.corners) if record else len(self._state.corners))

        self.store.set(self.storage_key, record.to_json())
        logger.info(f"Saved calibration under '{self.storage_key}'")
        return record

    def load(self) -> Optional[CalibrationRecord]:
        """Load the stored record, or None if absent or unreadable."""
        raw = self.store.get(self.storage_key)
        if raw is None:
            return None
        try:
            return CalibrationRecord.from_json(raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable calibration record: {e}")
            return None

    def restore(self, now: Optional[datetime] = None) -> bool:
        """
        Load and validate the stored record at startup.

        Returns:
            True and phase VALID if the record is usable; otherwise False and
            phase INVALID, meaning the session runs uncalibrated
        """
        record = self.load()
        try:
            validate_record(record, self.resolution, self.camera_id, now or self.clock())
            h_matrix = compute_homography(list(record.corners), self.dest_width, self.dest_height)
        except CalibrationInvalidError as e:
            logger.info(f"Stored calibration not used: {e.reason}")
            self._invalidate()
            return False
        except LaserShotError as e:
            logger.warning(f"Stored calibration not used: {e.message}")
            self._invalidate()
            return False

        self._record = record
        self._homography = h_matrix
        self._state = CalibrationState(
            phase=CalibrationPhase.VALID,
            corners=dict(zip(CornerSlot.ordered(), record.corners)),
        )
        logger.info(f"Restored calibration from {record.timestamp}")
        return True

    def _invalidate(self) -> None:
        self._record = None
        self._homography = None
        self._state = CalibrationState(phase=CalibrationPhase.INVALID)
