"""Preview overlay rendering for detections, shots and calibration corners."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from lasershot.core.config import OverlayConfig
from lasershot.core.models import CornerSlot, LaserPoint, Shot


@dataclass
class OverlayStyle:
    """Configuration for overlay appearance."""

    # Detected points
    point_color: tuple[int, int, int] = (255, 0, 0)  # Blue (BGR)
    point_radius: int = 10
    point_thickness: int = 2

    # Shot centers
    shot_color: tuple[int, int, int] = (0, 255, 255)  # Yellow (BGR)
    shot_radius: int = 4
    label_scale: float = 0.5

    # Calibration corners
    corner_color: tuple[int, int, int] = (0, 255, 0)  # Green (BGR)
    corner_radius: int = 6

    @classmethod
    def from_config(cls, config: OverlayConfig) -> "OverlayStyle":
        return cls(
            point_color=config.point_color,
            point_radius=config.point_radius,
            point_thickness=config.point_thickness,
            shot_color=config.shot_color,
            corner_color=config.corner_color,
        )


class OverlayRenderer:
    """
    Draws preview overlays on frames.

    All drawing happens on a copy; the frame used for detection is never
    modified.
    """

    def __init__(self, style: Optional[OverlayStyle] = None):
        self.style = style or OverlayStyle()

    def draw_points(self, frame: np.ndarray, points: Sequence[LaserPoint]) -> np.ndarray:
        """Draw a ring around each detected point (frame modified in place)."""
        for point in points:
            cv2.circle(
                frame,
                (int(round(point.x)), int(round(point.y))),
                self.style.point_radius,
                self.style.point_color,
                self.style.point_thickness,
            )
        return frame

    def draw_shots(self, frame: np.ndarray, shots: Sequence[Shot]) -> np.ndarray:
        """Draw each shot center with its 1-based number and point count."""
        for number, shot in enumerate(shots, start=1):
            center = (int(round(shot.center_x)), int(round(shot.center_y)))
            cv2.circle(frame, center, self.style.shot_radius, self.style.shot_color, -1)
            cv2.putText(
                frame,
                f"#{number} ({shot.size})",
                (center[0] + 8, center[1] - 8),
                cv2.FONT_HERSHEY_SIMPLEX,
                self.style.label_scale,
                self.style.shot_color,
                1,
                cv2.LINE_AA,
            )
        return frame

    def draw_corners(
        self,
        frame: np.ndarray,
        corners: dict[CornerSlot, LaserPoint],
    ) -> np.ndarray:
        """Draw captured calibration corners and the outline once all four exist."""
        for slot, point in corners.items():
            center = (int(round(point.x)), int(round(point.y)))
            cv2.circle(frame, center, self.style.corner_radius, self.style.corner_color, -1)
            cv2.putText(
                frame,
                slot.label,
                (center[0] + 8, center[1] + 16),
                cv2.FONT_HERSHEY_SIMPLEX,
                self.style.label_scale,
                self.style.corner_color,
                1,
                cv2.LINE_AA,
            )

        if len(corners) == 4:
            outline = np.array(
                [[corners[slot].x, corners[slot].y] for slot in CornerSlot.ordered()],
                dtype=np.int32,
            ).reshape(-1, 1, 2)
            cv2.polylines(frame, [outline], True, self.style.corner_color, 1)
        return frame

    def render_frame(
        self,
        frame: np.ndarray,
        points: Sequence[LaserPoint] = (),
        shots: Sequence[Shot] = (),
        corners: Optional[dict[CornerSlot, LaserPoint]] = None,
    ) -> np.ndarray:
        """
        Render all overlays onto a copy of the frame.

        Args:
            frame: Frame to annotate (not modified)
            points: Detections of this frame
            shots: Shots to mark
            corners: Captured calibration corners

        Returns:
            Annotated copy of the frame
        """
        canvas = frame.copy()
        if canvas.ndim == 2:
            canvas = cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)
        if shots:
            self.draw_shots(canvas, shots)
        if points:
            self.draw_points(canvas, points)
        if corners:
            self.draw_corners(canvas, corners)
        return canvas
