"""Shot tracking module for LaserShot."""

from .grid import PointGroup, group_by_cell
from .shot_clusterer import ShotClusterer, ShotSession

__all__ = [
    "PointGroup",
    "ShotClusterer",
    "ShotSession",
    "group_by_cell",
]
