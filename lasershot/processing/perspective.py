"""Perspective correction into the calibrated target rectangle."""

from collections.abc import Sequence
from typing import Optional

import cv2
import numpy as np

from lasershot.calibration.homography import project_points
from lasershot.core.config import get_config
from lasershot.core.models import LaserPoint


class PerspectiveCorrector:
    """
    Remaps frames or points into canonical target space.

    With no homography the corrector is bypassed and input is returned
    unchanged. The homography itself is never modified here.
    """

    def __init__(
        self,
        dest_width: Optional[int] = None,
        dest_height: Optional[int] = None,
        interpolation: int = cv2.INTER_LINEAR,
    ):
        config = get_config().calibration
        self.dest_width = dest_width if dest_width is not None else config.dest_width
        self.dest_height = dest_height if dest_height is not None else config.dest_height
        if self.dest_width <= 0 or self.dest_height <= 0:
            raise ValueError(
                f"Destination size must be positive, got {self.dest_width}x{self.dest_height}"
            )
        self.interpolation = interpolation

    @property
    def dest_size(self) -> tuple[int, int]:
        """Destination (width, height)."""
        return (self.dest_width, self.dest_height)

    def apply(
        self,
        homography: Optional[np.ndarray],
        frame: Optional[np.ndarray],
    ) -> Optional[np.ndarray]:
        """Warp a frame into the destination rectangle."""
        if homography is None or frame is None:
            return frame
        return cv2.warpPerspective(
            frame,
            np.asarray(homography, dtype=np.float64),
            self.dest_size,
            flags=self.interpolation,
        )

    def apply_points(
        self,
        homography: Optional[np.ndarray],
        points: Sequence[LaserPoint],
    ) -> list[LaserPoint]:
        """Map detected points into the destination rectangle, keeping timestamps."""
        if homography is None or not points:
            return list(points)

        projected = project_points(homography, points)
        return [
            LaserPoint(x=float(x), y=float(y), timestamp=p.timestamp)
            for p, (x, y) in zip(points, projected)
        ]
