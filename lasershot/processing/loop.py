"""Fixed-period polling loop driving detection, grouping and calibration.

Each cycle runs to completion before the next one starts:

    [FrameSource] -> [PerspectiveCorrector] -> [MarkerExtractor] -> [ShotSession | CalibrationManager]

Stopping the loop is the only cancellation; it takes effect at the next
cycle boundary.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from threading import Event
from typing import Optional, Protocol

import cv2
import numpy as np

from lasershot.calibration.manager import CalibrationManager
from lasershot.core.config import get_config
from lasershot.core.errors import AcquisitionError, LaserShotError
from lasershot.core.models import LaserPoint, Resolution, Shot
from lasershot.core.profiler import StageProfiler, null_profiler
from lasershot.detection.marker_extractor import MarkerExtractor
from lasershot.processing.perspective import PerspectiveCorrector
from lasershot.tracking.shot_clusterer import ShotSession

logger = logging.getLogger(__name__)


class FrameReader(Protocol):
    def read(self) -> Optional[np.ndarray]: ...


class LoopMode(str, Enum):
    """What detections are used for."""

    TRACKING = "tracking"
    CALIBRATION = "calibration"


@dataclass
class CycleStats:
    """Timing and throughput of one cycle."""

    frame_time_ms: float
    points: int
    total_points: int
    resolution: Optional[Resolution] = None

    @property
    def fps(self) -> float:
        return 1000.0 / self.frame_time_ms if self.frame_time_ms > 0 else 0.0

    @property
    def points_per_second(self) -> float:
        if self.frame_time_ms <= 0:
            return 0.0
        return self.points / (self.frame_time_ms / 1000.0)


@dataclass
class CycleResult:
    """Outcome of one polling cycle."""

    index: int
    ready: bool
    points: list[LaserPoint] = field(default_factory=list)
    shots: list[Shot] = field(default_factory=list)
    stats: Optional[CycleStats] = None
    frame: Optional[np.ndarray] = None


class DetectionLoop:
    """
    Polls a frame source and routes detections.

    In TRACKING mode points go to the shot session, corrected by the
    calibration homography when one exists. In CALIBRATION mode raw points
    are kept as the capture candidates for the calibration manager.
    """

    def __init__(
        self,
        source: FrameReader,
        extractor: MarkerExtractor,
        session: Optional[ShotSession] = None,
        calibration: Optional[CalibrationManager] = None,
        corrector: Optional[PerspectiveCorrector] = None,
        poll_interval_ms: Optional[int] = None,
        correction_mode: Optional[str] = None,
        profiler: Optional[StageProfiler] = None,
        sleep: Optional[Callable[[float], object]] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            source: Anything with read() -> frame | None
            extractor: Marker extractor (owns the segmentation resource)
            session: Shot accumulation (a new one if omitted)
            calibration: Calibration manager providing the homography
            corrector: Perspective corrector (built from config if omitted)
            poll_interval_ms: Cycle period
            correction_mode: "frame" warps frames before detection,
                "points" maps detected points afterwards
            profiler: Timing collector
            sleep: Wait function between cycles (defaults to an interruptible wait)
            monotonic: Clock used for scheduling
        """
        config = get_config()
        self.source = source
        self.extractor = extractor
        self.session = session if session is not None else ShotSession()
        self.calibration = calibration
        self.corrector = corrector or PerspectiveCorrector()
        self.poll_interval_ms = (
            poll_interval_ms if poll_interval_ms is not None else config.loop.poll_interval_ms
        )
        self.correction_mode = correction_mode or config.loop.correction_mode
        if self.correction_mode not in ("frame", "points"):
            raise ValueError(f"Unknown correction mode: {self.correction_mode}")
        self.profiler = profiler if profiler is not None else null_profiler()

        self._stop = Event()
        self._sleep = sleep or self._stop.wait
        self._monotonic = monotonic
        self._cycle_index = 0

        self.mode = LoopMode.TRACKING
        self.latest_points: list[LaserPoint] = []
        self.acquisition_errors = 0
        self.detection_errors = 0

    # -------------------------------------------------------------------------
    # Mode control
    # -------------------------------------------------------------------------

    def start_calibration(self) -> None:
        self.mode = LoopMode.CALIBRATION
        self.latest_points = []

    def stop_calibration(self) -> None:
        self.mode = LoopMode.TRACKING
        self.latest_points = []

    @property
    def latest_point(self) -> Optional[LaserPoint]:
        """Capture candidate: the last point of the most recent ready frame."""
        return self.latest_points[-1] if self.latest_points else None

    def capture_corner(self) -> bool:
        """Hand the current capture candidate to the calibration manager."""
        if self.calibration is None or self.latest_point is None:
            return False
        return self.calibration.capture(self.latest_point)

    @property
    def homography(self) -> Optional[np.ndarray]:
        if self.calibration is None:
            return None
        return self.calibration.homography

    # -------------------------------------------------------------------------
    # Cycles
    # -------------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        """Process one frame to completion."""
        index = self._cycle_index
        self._cycle_index += 1
        started = time.perf_counter()

        try:
            with self.profiler.time("capture", "read"):
                frame = self.source.read()
        except AcquisitionError as e:
            self.acquisition_errors += 1
            logger.error(f"Frame acquisition failed: {e.message}")
            frame = None

        if frame is None:
            return CycleResult(index=index, ready=False)

        homography = self.homography if self.mode == LoopMode.TRACKING else None

        if homography is not None and self.correction_mode == "frame":
            with self.profiler.time("correction", "warp"):
                frame = self.corrector.apply(homography, frame)

        try:
            with self.profiler.time("detection", "extract"):
                points = self.extractor.extract(frame)
        except (cv2.error, LaserShotError) as e:
            self.detection_errors += 1
            logger.warning(f"Marker extraction failed on cycle {index}: {e}")
            return CycleResult(index=index, ready=False)

        if homography is not None and self.correction_mode == "points":
            with self.profiler.time("correction", "points"):
                points = self.corrector.apply_points(homography, points)

        touched: list[Shot] = []
        if self.mode == LoopMode.CALIBRATION:
            self.latest_points = points
        elif points:
            with self.profiler.time("clustering", "assign"):
                touched = self.session.add(points)

        h, w = frame.shape[:2]
        stats = CycleStats(
            frame_time_ms=(time.perf_counter() - started) * 1000.0,
            points=len(points),
            total_points=self.session.total_points,
            resolution=Resolution(w, h),
        )
        return CycleResult(
            index=index,
            ready=True,
            points=points,
            shots=touched,
            stats=stats,
            frame=frame,
        )

    def run(
        self,
        max_cycles: Optional[int] = None,
        on_cycle: Optional[Callable[[CycleResult], None]] = None,
    ) -> int:
        """
        Run cycles on a fixed period until stopped.

        Args:
            max_cycles: Stop after this many cycles (None = until stop())
            on_cycle: Called with every CycleResult

        Returns:
            Number of cycles run
        """
        self._stop.clear()
        period = self.poll_interval_ms / 1000.0
        next_tick = self._monotonic()
        count = 0

        while not self._stop.is_set():
            if max_cycles is not None and count >= max_cycles:
                break

            result = self.run_cycle()
            count += 1
            if on_cycle is not None:
                on_cycle(result)

            next_tick += period
            delay = next_tick - self._monotonic()
            if delay > 0:
                self._sleep(delay)
            else:
                # Behind schedule: restart the cadence instead of bursting
                next_tick = self._monotonic()

        logger.debug(f"Loop finished after {count} cycles")
        return count

    def stop(self) -> None:
        """Request the loop to stop at the next cycle boundary."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()
