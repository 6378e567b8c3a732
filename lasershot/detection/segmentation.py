"""HSV color segmentation for laser marker candidates.

Turns a frame into bounding rectangles of the external contours of every
region whose color falls inside the configured HSV bounds.
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Protocol

import cv2
import numpy as np

from lasershot.core.config import DetectionConfig

# (x, y, width, height) in pixels
Rect = tuple[int, int, int, int]

_HSV_CONVERSIONS = {
    "bgr": cv2.COLOR_BGR2HSV,
    "rgb": cv2.COLOR_RGB2HSV,
}


class Segmenter(Protocol):
    """Segmentation resource with an explicit load/use/release lifecycle."""

    def load(self) -> None: ...

    def segment(self, frame: np.ndarray) -> list[Rect]: ...

    def close(self) -> None: ...


class FrameBuffers:
    """Intermediate images produced while segmenting one frame."""

    def __init__(self) -> None:
        self.hsv: np.ndarray | None = None
        self.masks: list[np.ndarray] = []
        self.mask: np.ndarray | None = None
        self.contours: Sequence[np.ndarray] = ()

    @property
    def is_released(self) -> bool:
        return self.hsv is None and self.mask is None and not self.masks and not self.contours

    def release(self) -> None:
        self.hsv = None
        self.masks.clear()
        self.mask = None
        self.contours = ()


@contextmanager
def frame_buffers() -> Iterator[FrameBuffers]:
    """Scope per-frame buffers so they are dropped on every exit path."""
    buffers = FrameBuffers()
    try:
        yield buffers
    finally:
        buffers.release()


class ColorSegmenter:
    """
    Finds colored regions with cv2.inRange + cv2.findContours.

    Multiple HSV ranges are OR-ed together, which lets red markers be
    matched on both ends of the hue circle when needed.
    """

    def __init__(
        self,
        hsv_ranges: Sequence[tuple[Sequence[int], Sequence[int]]] = (((0, 120, 120), (10, 255, 255)),),
        color_order: str = "bgr",
    ):
        """
        Args:
            hsv_ranges: Sequence of (lower, upper) HSV bounds, OpenCV scale
            color_order: Channel order of incoming frames ("bgr", "rgb" or "rgba")
        """
        if not hsv_ranges:
            raise ValueError("At least one HSV range is required")
        if color_order not in ("bgr", "rgb", "rgba"):
            raise ValueError(f"Unsupported color order: {color_order}")

        self.hsv_ranges = [(tuple(lower), tuple(upper)) for lower, upper in hsv_ranges]
        self.color_order = color_order
        self._bounds: list[tuple[np.ndarray, np.ndarray]] | None = None
        self.last_buffers: FrameBuffers | None = None

    @classmethod
    def from_config(cls, config: DetectionConfig) -> "ColorSegmenter":
        return cls(
            hsv_ranges=[(r.lower, r.upper) for r in config.hsv_ranges],
            color_order=config.color_order,
        )

    @property
    def is_loaded(self) -> bool:
        return self._bounds is not None

    def load(self) -> None:
        """Allocate the bound arrays used by every segment() call."""
        if self._bounds is None:
            self._bounds = [
                (np.array(lower, dtype=np.uint8), np.array(upper, dtype=np.uint8))
                for lower, upper in self.hsv_ranges
            ]

    def close(self) -> None:
        self._bounds = None

    def _to_hsv(self, frame: np.ndarray) -> np.ndarray:
        if frame.ndim == 3 and frame.shape[2] == 1:
            frame = frame[:, :, 0]
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
            return cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)

        if frame.shape[2] == 4:
            if self.color_order == "bgr":
                frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
            else:
                frame = cv2.cvtColor(frame, cv2.COLOR_RGBA2RGB)

        order = "rgb" if self.color_order == "rgba" else self.color_order
        return cv2.cvtColor(frame, _HSV_CONVERSIONS[order])

    def segment(self, frame: np.ndarray) -> list[Rect]:
        """
        Return bounding rectangles of external contours of in-range regions.

        Raises:
            RuntimeError: If called before load()
        """
        if self._bounds is None:
            raise RuntimeError("ColorSegmenter.segment() called before load()")

        with frame_buffers() as buffers:
            self.last_buffers = buffers
            buffers.hsv = self._to_hsv(frame)

            for lower, upper in self._bounds:
                buffers.masks.append(cv2.inRange(buffers.hsv, lower, upper))

            mask = buffers.masks[0]
            for extra in buffers.masks[1:]:
                mask = cv2.bitwise_or(mask, extra)
            buffers.mask = mask

            contours, _ = cv2.findContours(
                buffers.mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
            )
            buffers.contours = contours

            rects = []
            for contour in buffers.contours:
                x, y, w, h = cv2.boundingRect(contour)
                rects.append((int(x), int(y), int(w), int(h)))
            return rects

    def __enter__(self):
        self.load()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
