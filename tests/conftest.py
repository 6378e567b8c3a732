"""Pytest configuration and fixtures."""

import numpy as np
import pytest

from lasershot.core.config import CalibrationConfig, LaserShotConfig, reset_config, set_config
from lasershot.core.models import LaserPoint

RED_BGR = (0, 0, 255)


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (real-time loop tests)",
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (run with --run-slow)")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is specified."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="Need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Default config with the calibration store inside the test's tmp dir."""
    config = LaserShotConfig(
        calibration=CalibrationConfig(store_path=tmp_path / "calibration.json")
    )
    set_config(config)
    yield config
    reset_config()


def make_frame(
    spots: list[tuple[int, int]] = (),
    size: tuple[int, int] = (640, 360),
    half: int = 3,
) -> np.ndarray:
    """Black BGR frame with a filled red square of side 2*half+1 at each spot."""
    width, height = size
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    for x, y in spots:
        frame[y - half:y + half + 1, x - half:x + half + 1] = RED_BGR
    return frame


@pytest.fixture
def blank_frame():
    return make_frame()


@pytest.fixture
def rectangle_corners():
    """The four corners of the 640x360 destination rectangle."""
    return [
        LaserPoint(0, 0),
        LaserPoint(640, 0),
        LaserPoint(640, 360),
        LaserPoint(0, 360),
    ]


@pytest.fixture
def skewed_corners():
    """A plausible camera view of the target: a convex, non-rectangular quad."""
    return [
        LaserPoint(102, 48),
        LaserPoint(541, 63),
        LaserPoint(590, 322),
        LaserPoint(71, 301),
    ]


@pytest.fixture
def frame_factory():
    """Build synthetic frames: frame_factory([(x, y), ...])."""
    return make_frame
