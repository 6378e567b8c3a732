"""Tests for color segmentation and marker extraction."""

from unittest.mock import Mock, patch

import cv2
import numpy as np
import pytest

from lasershot.core.config import DetectionConfig, HsvRange
from lasershot.detection.marker_extractor import MarkerExtractor
from lasershot.detection.segmentation import ColorSegmenter, frame_buffers


class TestColorSegmenter:
    """Tests for ColorSegmenter."""

    @pytest.fixture
    def segmenter(self):
        with ColorSegmenter() as seg:
            yield seg

    def test_segment_before_load_raises(self):
        with pytest.raises(RuntimeError):
            ColorSegmenter().segment(np.zeros((10, 10, 3), dtype=np.uint8))

    def test_blank_frame_has_no_regions(self, segmenter, blank_frame):
        assert segmenter.segment(blank_frame) == []

    def test_red_square_bounding_rect(self, segmenter, frame_factory):
        rects = segmenter.segment(frame_factory([(200, 100)]))
        assert rects == [(197, 97, 7, 7)]

    def test_other_colors_ignored(self, segmenter, blank_frame):
        frame = blank_frame.copy()
        cv2.rectangle(frame, (50, 50), (60, 60), (0, 255, 0), -1)  # green
        cv2.rectangle(frame, (100, 50), (110, 60), (255, 0, 0), -1)  # blue
        assert segmenter.segment(frame) == []

    def test_rgb_color_order(self, frame_factory):
        rgb = cv2.cvtColor(frame_factory([(300, 200)]), cv2.COLOR_BGR2RGB)
        with ColorSegmenter(color_order="rgb") as seg:
            assert seg.segment(rgb) == [(297, 197, 7, 7)]

    def test_rgba_frames(self, frame_factory):
        rgba = cv2.cvtColor(frame_factory([(300, 200)]), cv2.COLOR_BGR2RGBA)
        with ColorSegmenter(color_order="rgba") as seg:
            assert seg.segment(rgba) == [(297, 197, 7, 7)]

    def test_single_channel_frame(self, segmenter):
        frame = np.zeros((360, 640, 1), dtype=np.uint8)
        frame[100:110, 100:110] = 255
        # Gray has no saturation, so nothing matches the red range
        assert segmenter.segment(frame) == []

    def test_multiple_ranges_are_combined(self, blank_frame):
        frame = blank_frame.copy()
        cv2.rectangle(frame, (50, 50), (56, 56), (0, 0, 255), -1)  # red
        cv2.rectangle(frame, (150, 50), (156, 56), (0, 255, 0), -1)  # green
        ranges = [((0, 120, 120), (10, 255, 255)), ((50, 120, 120), (70, 255, 255))]
        with ColorSegmenter(hsv_ranges=ranges) as seg:
            assert sorted(seg.segment(frame)) == [(50, 50, 7, 7), (150, 50, 7, 7)]

    def test_from_config(self):
        config = DetectionConfig(
            color_order="rgb",
            hsv_ranges=[HsvRange(lower=(170, 100, 100), upper=(179, 255, 255))],
        )
        seg = ColorSegmenter.from_config(config)
        assert seg.color_order == "rgb"
        assert seg.hsv_ranges == [((170, 100, 100), (179, 255, 255))]

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            ColorSegmenter(hsv_ranges=[])
        with pytest.raises(ValueError):
            ColorSegmenter(color_order="yuv")

    def test_buffers_released_after_segment(self, segmenter, frame_factory):
        segmenter.segment(frame_factory([(200, 100)]))
        assert segmenter.last_buffers.is_released

    def test_buffers_released_on_error(self, segmenter, frame_factory):
        with patch(
            "lasershot.detection.segmentation.cv2.findContours",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(RuntimeError):
                segmenter.segment(frame_factory([(200, 100)]))
        assert segmenter.last_buffers.is_released

    def test_close_unloads(self):
        seg = ColorSegmenter()
        seg.load()
        assert seg.is_loaded
        seg.close()
        assert not seg.is_loaded


class TestFrameBuffers:
    def test_scope_releases(self):
        with frame_buffers() as buffers:
            buffers.hsv = np.zeros((2, 2, 3), dtype=np.uint8)
            buffers.masks.append(np.zeros((2, 2), dtype=np.uint8))
            assert not buffers.is_released
        assert buffers.is_released


class TestMarkerExtractor:
    """Tests for MarkerExtractor."""

    @pytest.fixture
    def extractor(self):
        with MarkerExtractor(ColorSegmenter(), clock=lambda: 1234) as ext:
            yield ext

    def test_none_frame_returns_empty(self, extractor):
        assert extractor.extract(None) == []

    def test_empty_frame_returns_empty(self, extractor):
        assert extractor.extract(np.zeros((0, 0, 3), dtype=np.uint8)) == []

    def test_no_marker(self, extractor, blank_frame):
        assert extractor.extract(blank_frame) == []

    def test_bounding_box_center(self, extractor, frame_factory):
        points = extractor.extract(frame_factory([(200, 100)]))
        assert len(points) == 1
        assert (points[0].x, points[0].y) == (200.5, 100.5)
        assert points[0].timestamp == 1234

    def test_one_point_per_region_shared_timestamp(self, extractor, frame_factory):
        points = extractor.extract(frame_factory([(100, 100), (400, 250)]), timestamp=99)
        assert sorted((p.x, p.y) for p in points) == [(100.5, 100.5), (400.5, 250.5)]
        assert {p.timestamp for p in points} == {99}

    def test_uses_segmenter_rects(self):
        segmenter = Mock()
        segmenter.segment.return_value = [(10, 20, 4, 6)]
        extractor = MarkerExtractor(segmenter, clock=lambda: 5)

        points = extractor.extract(np.zeros((4, 4, 3), dtype=np.uint8))

        segmenter.load.assert_called_once()
        assert (points[0].x, points[0].y, points[0].timestamp) == (12.0, 23.0, 5)

    def test_not_ready_frame_does_not_touch_segmenter(self):
        segmenter = Mock()
        MarkerExtractor(segmenter).extract(None)
        segmenter.segment.assert_not_called()

    def test_close_releases_segmenter(self):
        segmenter = Mock()
        with MarkerExtractor(segmenter):
            pass
        segmenter.load.assert_called_once()
        segmenter.close.assert_called_once()
