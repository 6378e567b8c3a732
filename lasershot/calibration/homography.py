"""Four-point homography estimation and point projection.

Source corners are given in canonical order
[top-left, top-right, bottom-right, bottom-left] and map onto the
destination rectangle [(0, 0), (W, 0), (W, H), (0, H)].
"""

from __future__ import annotations

from collections.abc import Sequence
from itertools import combinations
from typing import TYPE_CHECKING, Union

import cv2
import numpy as np

from lasershot.core.errors import DegenerateConfigurationError, PrecompleteError
from lasershot.core.models import LaserPoint

if TYPE_CHECKING:
    from numpy.typing import NDArray

CornerLike = Union[LaserPoint, Sequence[float]]

# Relative area below which three corners count as collinear
COLLINEAR_TOLERANCE = 1e-6


def as_point_array(points: Sequence[CornerLike]) -> NDArray[np.float64]:
    """Convert LaserPoints or (x, y) pairs to an (N, 2) float64 array."""
    rows = []
    for p in points:
        if isinstance(p, LaserPoint):
            rows.append((p.x, p.y))
        else:
            rows.append((p[0], p[1]))
    return np.array(rows, dtype=np.float64).reshape(-1, 2)


def destination_corners(width: float, height: float) -> NDArray[np.float64]:
    """Destination rectangle corners in canonical order."""
    return np.array(
        [
            [0.0, 0.0],
            [width, 0.0],
            [width, height],
            [0.0, height],
        ],
        dtype=np.float64,
    )


def _triangle_area(a: NDArray, b: NDArray, c: NDArray) -> float:
    return abs((b[0] - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (b[1] - a[1])) / 2.0


def check_corners(corners: NDArray[np.float64]) -> None:
    """
    Reject corner sets with no unique projective solution.

    Raises:
        DegenerateConfigurationError: If coordinates are not finite or any
            three corners are (nearly) collinear
    """
    if not np.all(np.isfinite(corners)):
        raise DegenerateConfigurationError("Corner coordinates must be finite")

    span = float(np.ptp(corners, axis=0).max())
    min_area = COLLINEAR_TOLERANCE * max(span * span, 1.0)

    for i, j, k in combinations(range(4), 3):
        if _triangle_area(corners[i], corners[j], corners[k]) <= min_area:
            raise DegenerateConfigurationError(
                f"Corners {i + 1}, {j + 1} and {k + 1} are collinear or coincident"
            )


def compute_homography(
    corners: Sequence[CornerLike],
    dest_width: float,
    dest_height: float,
) -> NDArray[np.float64]:
    """
    Compute the homography mapping four source corners onto the destination rectangle.

    Args:
        corners: Exactly 4 corners, ordered TL, TR, BR, BL
        dest_width: Destination rectangle width
        dest_height: Destination rectangle height

    Returns:
        3x3 float64 matrix normalized so that H[2, 2] == 1

    Raises:
        PrecompleteError: If not exactly 4 corners are given
        DegenerateConfigurationError: If the configuration has no unique solution
    """
    if len(corners) != 4:
        raise PrecompleteError(len(corners))

    if dest_width <= 0 or dest_height <= 0:
        raise DegenerateConfigurationError(
            f"Destination size must be positive, got {dest_width}x{dest_height}"
        )

    src = as_point_array(corners)
    check_corners(src)
    dst = destination_corners(dest_width, dest_height)

    try:
        matrix = cv2.getPerspectiveTransform(src.astype(np.float32), dst.astype(np.float32))
    except cv2.error as e:
        raise DegenerateConfigurationError(f"Perspective solve failed: {e}") from e

    h_matrix = np.asarray(matrix, dtype=np.float64)
    if (
        h_matrix.shape != (3, 3)
        or not np.all(np.isfinite(h_matrix))
        or abs(h_matrix[2, 2]) < 1e-12
    ):
        raise DegenerateConfigurationError("Perspective solve produced no usable matrix")

    h_matrix = h_matrix / h_matrix[2, 2]
    if abs(np.linalg.det(h_matrix)) < 1e-12:
        raise DegenerateConfigurationError("Homography is singular")

    return h_matrix


def project_points(
    homography: NDArray[np.float64],
    points: Sequence[CornerLike] | NDArray[np.float64],
) -> NDArray[np.float64]:
    """Apply a homography to (N, 2) points."""
    pts = points if isinstance(points, np.ndarray) else as_point_array(points)
    if len(pts) == 0:
        return np.empty((0, 2), dtype=np.float64)
    projected = cv2.perspectiveTransform(
        pts.reshape(-1, 1, 2).astype(np.float64), np.asarray(homography, dtype=np.float64)
    )
    return projected.reshape(-1, 2)


def project_point(homography: NDArray[np.float64], x: float, y: float) -> tuple[float, float]:
    """Apply a homography to a single point."""
    pt = np.array([x, y, 1.0], dtype=np.float64)
    result = homography @ pt
    result = result / result[2]
    return (float(result[0]), float(result[1]))


def reprojection_error(
    homography: NDArray[np.float64],
    corners: Sequence[CornerLike],
    dest_width: float,
    dest_height: float,
) -> float:
    """Largest distance between projected corners and the destination corners."""
    projected = project_points(homography, corners)
    target = destination_corners(dest_width, dest_height)
    return float(np.max(np.linalg.norm(projected - target, axis=1)))
