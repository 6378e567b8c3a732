"""Frame processing: perspective correction and the polling loop."""

from .loop import CycleResult, CycleStats, DetectionLoop, LoopMode
from .perspective import PerspectiveCorrector

__all__ = [
    "CycleResult",
    "CycleStats",
    "DetectionLoop",
    "LoopMode",
    "PerspectiveCorrector",
]
