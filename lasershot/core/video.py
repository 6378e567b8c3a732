"""Frame source abstraction for LaserShot."""

import logging
from pathlib import Path

import cv2
import numpy as np

from lasershot.core.errors import AcquisitionError
from lasershot.core.models import DeviceInfo

logger = logging.getLogger(__name__)


class FrameSource:
    """
    Camera or video file wrapper that delivers frames at the processing resolution.

    A device index (int or digit string) opens a camera; anything else is
    treated as a file path or stream URL. Frames are resized to the
    processing resolution, which stays fixed for the session regardless of
    the capture resolution.
    """

    def __init__(
        self,
        source: int | str | Path = 0,
        capture_size: tuple[int, int] | None = (1280, 720),
        processing_size: tuple[int, int] | None = (640, 360),
        camera_id: str | None = None,
    ):
        self._cap: cv2.VideoCapture | None = None
        self._info: DeviceInfo | None = None
        self._camera_id = camera_id

        if isinstance(source, str) and source.isdigit():
            source = int(source)
        self.source = source
        self.capture_size = capture_size
        self.processing_size = processing_size

    @property
    def is_camera(self) -> bool:
        return isinstance(self.source, int)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self) -> "FrameSource":
        """Open the underlying capture device."""
        if self.is_open:
            return self

        if not self.is_camera:
            path = Path(self.source)
            if "://" not in str(self.source) and not path.exists():
                raise AcquisitionError(
                    f"Video file not found: {path}",
                    hint="Check the file path or pass a camera index such as 0",
                )

        target = self.source if self.is_camera else str(self.source)
        cap = cv2.VideoCapture(target)
        if not cap.isOpened():
            cap.release()
            raise AcquisitionError(
                f"Cannot open video source: {self.source}",
                hint="Check that the camera is connected and not in use",
            )

        if self.is_camera and self.capture_size is not None:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.capture_size[0])
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.capture_size[1])

        self._cap = cap
        logger.info(f"Opened video source {self.source}")
        return self

    @property
    def info(self) -> DeviceInfo:
        """Get device metadata (lazy loaded)."""
        if self._info is None:
            self._info = self._extract_info()
        return self._info

    def _extract_info(self) -> DeviceInfo:
        cap = self.open()._cap
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

        if self.is_camera:
            label = f"Camera {self.source}"
            default_id = f"camera-{self.source}"
        else:
            label = Path(str(self.source)).name
            default_id = label

        return DeviceInfo(
            camera_id=self._camera_id or default_id,
            label=label,
            width=width,
            height=height,
        )

    def read(self) -> np.ndarray | None:
        """
        Read the next frame.

        Returns:
            Frame at the processing resolution, or None when no frame is
            ready this cycle (including end of a file).
        """
        if not self.is_open:
            self.open()

        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None

        if self.processing_size is not None:
            h, w = frame.shape[:2]
            if (w, h) != tuple(self.processing_size):
                frame = cv2.resize(frame, tuple(self.processing_size), interpolation=cv2.INTER_AREA)

        return frame

    def close(self):
        """Release capture resources."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
