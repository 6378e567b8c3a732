"""Error types for LaserShot."""


class LaserShotError(Exception):
    """Base exception for LaserShot errors."""

    def __init__(self, message: str, hint: str | None = None):
        self.message = message
        self.hint = hint
        super().__init__(message)


class AcquisitionError(LaserShotError):
    """Camera or video device could not deliver frames."""
    pass


class PrecompleteError(LaserShotError):
    """Homography requested without exactly four calibration corners."""

    def __init__(self, corner_count: int):
        super().__init__(
            f"Need exactly 4 corners to compute homography, got {corner_count}",
            hint="Capture all four target corners before computing the transform",
        )
        self.corner_count = corner_count


class DegenerateConfigurationError(LaserShotError):
    """Corner configuration has no unique projective solution."""

    def __init__(self, message: str):
        super().__init__(
            message,
            hint="Recapture the corners; no three of them may lie on a line",
        )


class CalibrationInvalidError(LaserShotError):
    """Stored calibration is missing, stale or belongs to another setup."""

    def __init__(self, reason: str):
        super().__init__(
            f"Calibration invalid: {reason}",
            hint="Run 'lasershot calibrate' to capture a new calibration",
        )
        self.reason = reason
