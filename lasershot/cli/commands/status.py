"""Status command - inspect the stored calibration."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from lasershot.calibration.manager import validate_record
from lasershot.cli.utils import build_calibration_manager, handle_errors
from lasershot.core.config import get_config
from lasershot.core.errors import CalibrationInvalidError
from lasershot.core.models import CornerSlot, Resolution

console = Console()


@handle_errors
def status(
    camera_id: Optional[str] = typer.Option(
        None,
        "--camera-id", "-c",
        help="Camera identity to validate against (default: configured id or camera-0)",
    ),
    width: Optional[int] = typer.Option(
        None,
        "--width",
        help="Processing width (default from config)",
    ),
    height: Optional[int] = typer.Option(
        None,
        "--height",
        help="Processing height (default from config)",
    ),
) -> None:
    """Show the stored calibration and whether it can be used."""
    config = get_config()
    default_w, default_h = config.detection.processing_size
    resolution = Resolution(width or default_w, height or default_h)
    camera_id = camera_id or config.calibration.camera_id or "camera-0"

    manager = build_calibration_manager(camera_id, resolution)
    record = manager.load()

    console.print(f"\nStore: [cyan]{config.calibration.store_path}[/cyan]")
    if record is None:
        console.print("[yellow]No stored calibration[/yellow]")
        return

    table = Table(title="Stored Calibration")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Camera", record.camera_id)
    table.add_row("Resolution", str(record.resolution))
    table.add_row("Captured", record.timestamp)
    for slot, point in zip(CornerSlot.ordered(), record.corners):
        table.add_row(slot.label.title(), f"{point.x:.1f}, {point.y:.1f}")
    console.print(table)

    try:
        validate_record(record, resolution, camera_id, manager.clock())
    except CalibrationInvalidError as e:
        console.print(f"[red]Invalid:[/red] {e.reason}")
        return
    console.print(f"[green]Valid[/green] for {camera_id} at {resolution}")
