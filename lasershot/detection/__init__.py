"""Laser marker detection module for LaserShot."""

from .marker_extractor import MarkerExtractor, current_millis
from .segmentation import ColorSegmenter, FrameBuffers, Rect, Segmenter, frame_buffers

__all__ = [
    "ColorSegmenter",
    "FrameBuffers",
    "MarkerExtractor",
    "Rect",
    "Segmenter",
    "current_millis",
    "frame_buffers",
]
