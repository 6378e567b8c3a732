"""Tests for the polling loop."""

from unittest.mock import Mock

import numpy as np
import pytest

from lasershot.calibration.manager import CalibrationManager
from lasershot.core.errors import AcquisitionError, LaserShotError
from lasershot.core.models import CornerSlot, LaserPoint, Resolution
from lasershot.core.profiler import StageProfiler
from lasershot.detection.marker_extractor import MarkerExtractor
from lasershot.detection.segmentation import ColorSegmenter
from lasershot.processing.loop import CycleStats, DetectionLoop, LoopMode
from lasershot.tracking.shot_clusterer import ShotClusterer, ShotSession


class ListSource:
    """Frame source replaying a fixed list (None = not ready)."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.reads = 0

    def read(self):
        self.reads += 1
        if not self.frames:
            return None
        return self.frames.pop(0)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def extractor():
    ticks = iter(range(0, 100_000, 50))
    with MarkerExtractor(ColorSegmenter(), clock=lambda: next(ticks)) as ext:
        yield ext


@pytest.fixture
def clock():
    return FakeClock()


def _loop(source, extractor, clock, **kwargs):
    return DetectionLoop(
        source,
        extractor,
        sleep=clock.sleep,
        monotonic=clock.monotonic,
        **kwargs,
    )


class TestRunCycle:
    """Tests for single cycles."""

    def test_not_ready_frame(self, extractor, clock):
        loop = _loop(ListSource([None]), extractor, clock)
        result = loop.run_cycle()
        assert not result.ready
        assert result.points == []
        assert loop.session.total_points == 0

    def test_points_go_to_session(self, extractor, clock, frame_factory):
        loop = _loop(ListSource([frame_factory([(100, 100)])]), extractor, clock)
        result = loop.run_cycle()

        assert result.ready
        assert [(p.x, p.y) for p in result.points] == [(100.5, 100.5)]
        assert len(result.shots) == 1
        assert loop.session.total_points == 1

    def test_stats(self, extractor, clock, frame_factory):
        loop = _loop(ListSource([frame_factory([(100, 100)])]), extractor, clock)
        stats = loop.run_cycle().stats
        assert stats.points == 1
        assert stats.total_points == 1
        assert stats.resolution == Resolution(640, 360)
        assert stats.frame_time_ms >= 0

    def test_acquisition_error_is_not_fatal(self, extractor, clock, frame_factory):
        source = Mock()
        source.read.side_effect = [AcquisitionError("device lost"), frame_factory([(50, 50)])]
        loop = _loop(source, extractor, clock)

        assert not loop.run_cycle().ready
        assert loop.acquisition_errors == 1
        assert loop.run_cycle().ready

    def test_single_channel_frames_keep_running(self, extractor, clock):
        frames = [np.zeros((360, 640, 1), dtype=np.uint8)] * 3
        loop = _loop(ListSource(frames), extractor, clock)

        assert loop.run(max_cycles=3) == 3
        assert loop.detection_errors == 0

    def test_extraction_error_is_not_fatal(self, extractor, clock):
        """Frames OpenCV cannot convert are skipped, not raised."""
        frames = [np.zeros((360, 640, 2), dtype=np.uint8)] * 3
        loop = _loop(ListSource(frames), extractor, clock)
        results = []

        assert loop.run(max_cycles=3, on_cycle=results.append) == 3
        assert loop.detection_errors == 3
        assert [r.ready for r in results] == [False, False, False]

    def test_extractor_laser_shot_error_is_not_fatal(self, clock, frame_factory):
        failing = Mock()
        failing.extract.side_effect = LaserShotError("segmenter unavailable")
        loop = _loop(ListSource([frame_factory([(100, 100)])]), failing, clock)

        assert not loop.run_cycle().ready
        assert loop.detection_errors == 1

    def test_unknown_correction_mode(self, extractor, clock):
        with pytest.raises(ValueError):
            _loop(ListSource([]), extractor, clock, correction_mode="lens")

    def test_profiler_records_stages(self, extractor, clock, frame_factory):
        profiler = StageProfiler()
        loop = _loop(ListSource([frame_factory([(100, 100)])]), extractor, clock, profiler=profiler)
        loop.run_cycle()

        assert {row.stage for row in profiler.summary()} == {
            "capture/read",
            "detection/extract",
            "clustering/assign",
        }


class TestCorrection:
    """Tests for homography application inside the loop."""

    @pytest.fixture
    def calibration(self):
        manager = CalibrationManager("CAM12345", Resolution(640, 360))
        # Target occupies the top-left quarter of the view
        for point in [LaserPoint(0, 0), LaserPoint(320, 0), LaserPoint(320, 180), LaserPoint(0, 180)]:
            manager.add_corner(point)
        manager.compute_homography()
        return manager

    def test_points_mode(self, extractor, clock, frame_factory, calibration):
        loop = _loop(
            ListSource([frame_factory([(100, 50)])]),
            extractor,
            clock,
            calibration=calibration,
            correction_mode="points",
        )
        result = loop.run_cycle()
        assert (result.points[0].x, result.points[0].y) == pytest.approx((201.0, 101.0))

    def test_frame_mode(self, extractor, clock, frame_factory, calibration):
        loop = _loop(
            ListSource([frame_factory([(100, 50)])]),
            extractor,
            clock,
            calibration=calibration,
            correction_mode="frame",
        )
        result = loop.run_cycle()
        assert len(result.points) == 1
        assert result.points[0].x == pytest.approx(201, abs=3)
        assert result.points[0].y == pytest.approx(101, abs=3)

    def test_uncalibrated_is_bypassed(self, extractor, clock, frame_factory):
        calibration = CalibrationManager("CAM12345", Resolution(640, 360))
        loop = _loop(ListSource([frame_factory([(100, 50)])]), extractor, clock, calibration=calibration)
        result = loop.run_cycle()
        assert (result.points[0].x, result.points[0].y) == (100.5, 50.5)


class TestCalibrationMode:
    """Tests for routing detections to calibration capture."""

    def test_points_held_for_capture(self, extractor, clock, frame_factory):
        manager = CalibrationManager("CAM12345", Resolution(640, 360))
        loop = _loop(
            ListSource([frame_factory([(100, 100)]), frame_factory([(300, 200)])]),
            extractor,
            clock,
            calibration=manager,
        )
        loop.start_calibration()
        assert loop.mode == LoopMode.CALIBRATION

        loop.run_cycle()
        loop.run_cycle()

        assert loop.session.total_points == 0
        assert (loop.latest_point.x, loop.latest_point.y) == (300.5, 200.5)

        manager.select_corner(CornerSlot.TOP_LEFT)
        assert loop.capture_corner()
        assert manager.state.corners[CornerSlot.TOP_LEFT].x == 300.5

    def test_capture_without_point(self, extractor, clock):
        manager = CalibrationManager("CAM12345", Resolution(640, 360))
        loop = _loop(ListSource([]), extractor, clock, calibration=manager)
        loop.start_calibration()
        manager.select_corner(CornerSlot.TOP_LEFT)
        assert not loop.capture_corner()

    def test_stop_calibration_resumes_tracking(self, extractor, clock, frame_factory):
        loop = _loop(ListSource([frame_factory([(100, 100)])]), extractor, clock)
        loop.start_calibration()
        loop.stop_calibration()
        loop.run_cycle()
        assert loop.mode == LoopMode.TRACKING
        assert loop.session.total_points == 1


class TestRun:
    """Tests for the fixed-period schedule."""

    def test_max_cycles(self, extractor, clock):
        source = ListSource([])
        loop = _loop(source, extractor, clock, poll_interval_ms=50)
        assert loop.run(max_cycles=4) == 4
        assert source.reads == 4
        assert clock.sleeps == pytest.approx([0.05] * 4)

    def test_stop_from_callback(self, extractor, clock, frame_factory):
        loop = _loop(ListSource([frame_factory([(100, 100)])] * 10), extractor, clock)
        seen = []

        def on_cycle(result):
            seen.append(result.index)
            if len(seen) == 3:
                loop.stop()

        assert loop.run(on_cycle=on_cycle) == 3
        assert seen == [0, 1, 2]
        assert loop.stopped

    def test_behind_schedule_does_not_sleep(self, extractor, frame_factory):
        clock = FakeClock()

        class SlowSource(ListSource):
            def read(self):
                clock.now += 0.2
                return super().read()

        loop = _loop(SlowSource([]), extractor, clock, poll_interval_ms=50)
        loop.run(max_cycles=3)
        assert clock.sleeps == []

    def test_session_is_caller_owned(self, extractor, clock, frame_factory):
        session = ShotSession(clusterer=ShotClusterer(10, 300))
        loop = _loop(ListSource([frame_factory([(100, 100)])] * 3), extractor, clock, session=session)
        loop.run(max_cycles=3)
        assert session.total_points == 3
        assert len(session.shots) == 1


class TestCycleStats:
    def test_rates(self):
        stats = CycleStats(frame_time_ms=20.0, points=2, total_points=10)
        assert stats.fps == pytest.approx(50.0)
        assert stats.points_per_second == pytest.approx(100.0)

    def test_zero_time(self):
        stats = CycleStats(frame_time_ms=0.0, points=0, total_points=0)
        assert stats.fps == 0.0
        assert stats.points_per_second == 0.0
