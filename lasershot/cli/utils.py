"""CLI utilities for LaserShot."""

import functools
import logging
from collections.abc import Callable
from typing import Any, Optional, TypeVar

import typer
from rich.console import Console

from lasershot.calibration.manager import CalibrationManager
from lasershot.calibration.store import JsonFileStore
from lasershot.core.config import get_config
from lasershot.core.errors import LaserShotError
from lasershot.core.models import Resolution
from lasershot.core.video import FrameSource

console = Console()

F = TypeVar("F", bound=Callable[..., Any])


def handle_errors(func: F) -> F:
    """Decorator to handle common errors in CLI commands."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except LaserShotError as e:
            console.print(f"\n[red]Error:[/red] {e.message}")
            if e.hint:
                console.print(f"[dim]Hint: {e.hint}[/dim]")
            raise typer.Exit(1)
        except FileNotFoundError as e:
            console.print(f"\n[red]Error:[/red] File not found: {e.filename}")
            raise typer.Exit(1)
        except PermissionError as e:
            console.print(f"\n[red]Error:[/red] Permission denied: {e.filename}")
            console.print("[dim]Hint: Check permissions of the calibration store directory[/dim]")
            raise typer.Exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            raise typer.Exit(130)
        except Exception as e:
            console.print(f"\n[red]Unexpected error:[/red] {type(e).__name__}: {e}")
            console.print("[dim]Hint: Re-run with --verbose for debug logging[/dim]")
            raise typer.Exit(1)

    return wrapper  # type: ignore[return-value]


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route library logging to stderr at a level matching the CLI flags."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", force=True)


def open_source(source: str) -> FrameSource:
    """Open a camera index or video file with the configured resolutions."""
    config = get_config()
    frame_source = FrameSource(
        source,
        capture_size=config.detection.capture_size,
        processing_size=config.detection.processing_size,
        camera_id=config.calibration.camera_id,
    )
    return frame_source.open()


def build_calibration_manager(
    camera_id: str,
    resolution: Optional[Resolution] = None,
) -> CalibrationManager:
    """Calibration manager backed by the configured JSON store."""
    config = get_config()
    if resolution is None:
        resolution = Resolution.from_tuple(config.detection.processing_size)
    return CalibrationManager(
        camera_id=camera_id,
        resolution=resolution,
        store=JsonFileStore(config.calibration.store_path),
    )
