"""Preview rendering for LaserShot."""

from .overlay import OverlayRenderer, OverlayStyle

__all__ = ["OverlayRenderer", "OverlayStyle"]
