"""Per-frame laser marker extraction."""

import logging
import time
from collections.abc import Callable

import numpy as np

from lasershot.core.models import LaserPoint
from lasershot.detection.segmentation import Segmenter

logger = logging.getLogger(__name__)


def current_millis() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class MarkerExtractor:
    """
    Converts segmented regions into timestamped laser points.

    Each region reported by the segmenter becomes one point at the center
    of its bounding box. All points from one frame share one timestamp.
    No confidence is attached and no deduplication is done.

    The segmenter is owned by the caller's session: it is loaded once when
    the extractor is entered (or on first use) and released by close().
    """

    def __init__(
        self,
        segmenter: Segmenter,
        clock: Callable[[], int] | None = None,
    ):
        """
        Args:
            segmenter: Segmentation resource (e.g. ColorSegmenter)
            clock: Millisecond clock used to stamp detections
        """
        self.segmenter = segmenter
        self.clock = clock or current_millis
        self._loaded = False

    def load(self) -> None:
        if not self._loaded:
            self.segmenter.load()
            self._loaded = True

    def close(self) -> None:
        if self._loaded:
            self.segmenter.close()
            self._loaded = False

    def extract(
        self,
        frame: np.ndarray | None,
        timestamp: int | float | str | None = None,
    ) -> list[LaserPoint]:
        """
        Detect laser points in a frame.

        Args:
            frame: Frame pixels, or None when no frame was ready this cycle
            timestamp: Timestamp for all points (defaults to the clock)

        Returns:
            One LaserPoint per detected region; empty when the frame is not ready
        """
        if frame is None or frame.size == 0:
            return []

        self.load()
        if timestamp is None:
            timestamp = self.clock()

        points = [
            LaserPoint(x=x + w / 2, y=y + h / 2, timestamp=timestamp)
            for x, y, w, h in self.segmenter.segment(frame)
        ]

        if len(points) > 1:
            logger.debug(f"{len(points)} marker regions in one frame at t={timestamp}")

        return points

    def __enter__(self):
        self.load()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
