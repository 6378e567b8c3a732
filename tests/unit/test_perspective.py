"""Tests for perspective correction."""

import numpy as np
import pytest

from lasershot.calibration.homography import compute_homography
from lasershot.core.config import CalibrationConfig, LaserShotConfig, set_config
from lasershot.core.models import LaserPoint
from lasershot.processing.perspective import PerspectiveCorrector


class TestPerspectiveCorrector:
    """Tests for PerspectiveCorrector."""

    @pytest.fixture
    def corrector(self):
        return PerspectiveCorrector(640, 360)

    def test_bypass_without_homography(self, corrector, blank_frame):
        assert corrector.apply(None, blank_frame) is blank_frame

    def test_bypass_without_frame(self, corrector):
        assert corrector.apply(np.eye(3), None) is None

    def test_identity_warp(self, corrector, frame_factory):
        frame = frame_factory([(200, 100)])
        warped = corrector.apply(np.eye(3), frame)
        assert warped.shape == frame.shape
        np.testing.assert_array_equal(warped, frame)

    def test_output_size(self, frame_factory):
        corrector = PerspectiveCorrector(320, 180)
        warped = corrector.apply(np.eye(3), frame_factory())
        assert warped.shape[:2] == (180, 320)

    def test_warp_moves_marker(self, corrector, frame_factory):
        """A half-scale target region is stretched to fill the output."""
        corners = [LaserPoint(0, 0), LaserPoint(320, 0), LaserPoint(320, 180), LaserPoint(0, 180)]
        h = compute_homography(corners, 640, 360)

        warped = corrector.apply(h, frame_factory([(100, 50)]))

        ys, xs = np.nonzero(warped[:, :, 2] > 128)
        assert xs.mean() == pytest.approx(201, abs=2)
        assert ys.mean() == pytest.approx(101, abs=2)

    def test_points_keep_timestamps(self, corrector):
        h = np.array([[2.0, 0, 0], [0, 2.0, 0], [0, 0, 1.0]])
        points = corrector.apply_points(h, [LaserPoint(10, 20, 7), LaserPoint(1, 1, 8)])
        assert [(p.x, p.y, p.timestamp) for p in points] == [(20, 40, 7), (2, 2, 8)]

    def test_points_bypass(self, corrector):
        points = [LaserPoint(10, 20, 7)]
        assert corrector.apply_points(None, points) == points

    def test_homography_not_modified(self, corrector, blank_frame):
        h = np.eye(3)
        before = h.copy()
        corrector.apply(h, blank_frame)
        corrector.apply_points(h, [LaserPoint(1, 2)])
        np.testing.assert_array_equal(h, before)

    def test_size_from_config(self):
        set_config(LaserShotConfig(calibration=CalibrationConfig(dest_width=800, dest_height=600)))
        assert PerspectiveCorrector().dest_size == (800, 600)

    def test_zero_size_is_rejected(self):
        with pytest.raises(ValueError):
            PerspectiveCorrector(0, 360)
        with pytest.raises(ValueError):
            PerspectiveCorrector(640, 0)
