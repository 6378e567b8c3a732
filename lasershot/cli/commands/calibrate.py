"""Calibrate command - capture the four target corners."""

import typer
from rich.console import Console

from lasershot.calibration.manager import CalibrationManager
from lasershot.cli.utils import build_calibration_manager, handle_errors, open_source
from lasershot.core.config import get_config
from lasershot.core.models import CornerSlot
from lasershot.detection.marker_extractor import MarkerExtractor
from lasershot.detection.segmentation import ColorSegmenter
from lasershot.processing.loop import CycleResult, DetectionLoop

console = Console()


def capture_slot(
    loop: DetectionLoop,
    manager: CalibrationManager,
    slot: CornerSlot,
    max_cycles: int,
) -> bool:
    """
    Poll until a point is seen, then capture it into the given slot.

    Returns:
        True if the corner was captured
    """
    if not manager.select_corner(slot):
        return False

    loop.start_calibration()

    def on_cycle(result: CycleResult) -> None:
        if result.points:
            loop.stop()

    loop.run(max_cycles=max_cycles, on_cycle=on_cycle)
    return loop.capture_corner()


@handle_errors
def calibrate(
    source: str = typer.Argument(
        "0",
        help="Camera index or path to a video file",
    ),
    timeout_cycles: int = typer.Option(
        100,
        "--timeout-cycles",
        help="Polling cycles to wait for the laser on each corner",
    ),
    retries: int = typer.Option(
        3,
        "--retries",
        help="Attempts per corner before giving up",
    ),
    save: bool = typer.Option(
        True,
        "--save/--no-save",
        help="Persist the calibration for later sessions",
    ),
) -> None:
    """
    Capture the four target corners and store the calibration.

    Point the laser at each corner when asked and press Enter. The latest
    detected point is taken as the corner.
    """
    config = get_config()

    console.print("\n[bold]LaserShot Calibrate[/bold]")
    console.print(f"Source: [cyan]{source}[/cyan]")

    with open_source(source) as frame_source:
        info = frame_source.info
        manager = build_calibration_manager(info.camera_id)
        console.print(f"Camera: [cyan]{info.camera_id}[/cyan] ({info.label})")
        console.print(f"Resolution: [yellow]{manager.resolution}[/yellow]\n")

        segmenter = ColorSegmenter.from_config(config.detection)
        with MarkerExtractor(segmenter) as extractor:
            loop = DetectionLoop(frame_source, extractor, calibration=manager)

            for slot in CornerSlot.ordered():
                captured = False
                for _ in range(retries):
                    typer.prompt(
                        f"Aim at the {slot.label} corner and press Enter",
                        default="",
                        show_default=False,
                    )
                    if capture_slot(loop, manager, slot, timeout_cycles):
                        point = manager.state.corners[slot]
                        console.print(f"  [green]✓[/green] {slot.label}: ({point.x:.1f}, {point.y:.1f})")
                        captured = True
                        break
                    console.print("  [yellow]No laser point detected, try again[/yellow]")

                if not captured:
                    console.print(f"\n[red]Error:[/red] Could not capture the {slot.label} corner")
                    raise typer.Exit(1)

            loop.stop_calibration()

    manager.compute_homography()
    console.print("\n[bold green]Calibration computed![/bold green]")

    if save:
        manager.save()
        console.print(f"[dim]Saved to: {config.calibration.store_path}[/dim]")
