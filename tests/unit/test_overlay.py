"""Tests for preview overlays."""

import numpy as np

from lasershot.core.config import OverlayConfig
from lasershot.core.models import CornerSlot, LaserPoint, Shot
from lasershot.output.overlay import OverlayRenderer, OverlayStyle


class TestOverlayRenderer:
    """Tests for OverlayRenderer."""

    def test_input_frame_untouched(self, blank_frame):
        renderer = OverlayRenderer()
        canvas = renderer.render_frame(blank_frame, points=[LaserPoint(100, 100)])
        assert blank_frame.max() == 0
        assert canvas.max() > 0

    def test_point_ring_radius(self, blank_frame):
        renderer = OverlayRenderer()
        canvas = renderer.render_frame(blank_frame, points=[LaserPoint(100, 100)])

        # Blue ring at radius 10, center left empty
        assert tuple(canvas[100, 110]) == (255, 0, 0)
        assert canvas[100, 100].max() == 0

    def test_grayscale_frame(self):
        gray = np.zeros((360, 640), dtype=np.uint8)
        canvas = OverlayRenderer().render_frame(gray, points=[LaserPoint(50, 50)])
        assert canvas.shape == (360, 640, 3)

    def test_shots_drawn(self, blank_frame):
        shot = Shot.start(LaserPoint(200, 200))
        canvas = OverlayRenderer().render_frame(blank_frame, shots=[shot])
        assert tuple(canvas[200, 200]) == (0, 255, 255)

    def test_corners_with_outline(self, blank_frame, rectangle_corners):
        corners = {
            slot: LaserPoint(p.x * 0.5 + 100, p.y * 0.5 + 50)
            for slot, p in zip(CornerSlot.ordered(), rectangle_corners)
        }
        canvas = OverlayRenderer().render_frame(blank_frame, corners=corners)
        assert tuple(canvas[50, 100]) == (0, 255, 0)
        # Outline along the top edge
        assert tuple(canvas[50, 250]) == (0, 255, 0)

    def test_style_from_config(self):
        style = OverlayStyle.from_config(OverlayConfig(point_radius=4, point_color=(1, 2, 3)))
        assert style.point_radius == 4
        assert style.point_color == (1, 2, 3)
