"""Configuration management for LaserShot."""

from pathlib import Path
from typing import Literal, Optional

import yaml
from platformdirs import user_config_dir
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Nested Configuration Classes
# =============================================================================


class HsvRange(BaseModel):
    """Inclusive HSV bounds for the marker color (OpenCV scale: H 0-179)."""

    lower: tuple[int, int, int] = (0, 120, 120)
    upper: tuple[int, int, int] = (10, 255, 255)


class DetectionConfig(BaseModel):
    """Marker detection configuration."""

    processing_size: tuple[int, int] = (640, 360)
    capture_size: tuple[int, int] = (1280, 720)
    color_order: Literal["bgr", "rgb", "rgba"] = "bgr"  # OpenCV captures are BGR
    hsv_ranges: list[HsvRange] = Field(default_factory=lambda: [HsvRange()])


class ClusteringConfig(BaseModel):
    """Shot grouping thresholds."""

    spatial_threshold: float = 10.0  # pixels, measured to the shot center
    temporal_threshold: float = 300.0  # milliseconds, measured to the last point


class CalibrationConfig(BaseModel):
    """Calibration capture and persistence configuration."""

    dest_width: int = 640
    dest_height: int = 360
    camera_id: Optional[str] = None  # Overrides the id reported by the source
    storage_key: str = "calibrationData"
    store_path: Path = Field(
        default_factory=lambda: Path(user_config_dir("lasershot")) / "calibration.json"
    )


class LoopConfig(BaseModel):
    """Frame polling configuration."""

    poll_interval_ms: int = 50
    correction_mode: Literal["frame", "points"] = "frame"


class OverlayConfig(BaseModel):
    """Preview overlay configuration."""

    point_color: tuple[int, int, int] = (255, 0, 0)  # Blue (BGR)
    point_radius: int = 10
    point_thickness: int = 2
    shot_color: tuple[int, int, int] = (0, 255, 255)  # Yellow (BGR)
    corner_color: tuple[int, int, int] = (0, 255, 0)  # Green (BGR)


# =============================================================================
# Main Configuration Class
# =============================================================================


class LaserShotConfig(BaseSettings):
    """Configuration settings for LaserShot."""

    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    overlay: OverlayConfig = Field(default_factory=OverlayConfig)

    model_config = SettingsConfigDict(
        env_prefix="LASERSHOT_",
        env_nested_delimiter="__",  # Allows LASERSHOT_CLUSTERING__SPATIAL_THRESHOLD
    )

    # -------------------------------------------------------------------------
    # YAML Loading
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, path: Path) -> "LaserShotConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls(**data) if data else cls()

    @classmethod
    def find_and_load(cls) -> "LaserShotConfig":
        """Find and load config from standard locations."""
        locations = [
            Path.cwd() / "lasershot.yaml",
            Path.home() / ".config" / "lasershot" / "lasershot.yaml",
        ]

        for path in locations:
            if path.exists():
                return cls.from_yaml(path)

        # Fall back to defaults + environment variables
        return cls()


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[LaserShotConfig] = None


def get_config() -> LaserShotConfig:
    """Get global configuration instance."""
    global _config
    if _config is None:
        _config = LaserShotConfig.find_and_load()
    return _config


def set_config(config: LaserShotConfig) -> None:
    """Set global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset global configuration instance (useful for testing)."""
    global _config
    _config = None
