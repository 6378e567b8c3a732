"""Track command - detect laser hits and group them into shots."""

import json
from pathlib import Path
from typing import Optional

import cv2
import typer
from rich.console import Console
from rich.table import Table

from lasershot.cli.utils import build_calibration_manager, handle_errors, open_source
from lasershot.core.config import get_config
from lasershot.core.models import Shot
from lasershot.core.profiler import StageProfiler, StageSummary
from lasershot.detection.marker_extractor import MarkerExtractor
from lasershot.detection.segmentation import ColorSegmenter
from lasershot.output.overlay import OverlayRenderer, OverlayStyle
from lasershot.processing.loop import CycleResult, DetectionLoop
from lasershot.tracking.grid import group_by_cell
from lasershot.tracking.shot_clusterer import ShotClusterer, ShotSession

console = Console()

PREVIEW_WINDOW = "lasershot"


@handle_errors
def track(
    source: str = typer.Argument(
        "0",
        help="Camera index or path to a video file",
    ),
    cycles: Optional[int] = typer.Option(
        None,
        "--cycles", "-n",
        help="Stop after N polling cycles (default: until the stream ends or Ctrl+C)",
    ),
    spatial: Optional[float] = typer.Option(
        None,
        "--spatial",
        help="Max distance in pixels from a shot center to join it",
    ),
    temporal: Optional[float] = typer.Option(
        None,
        "--temporal",
        help="Max milliseconds since a shot's last hit to join it",
    ),
    preview: bool = typer.Option(
        False,
        "--preview/--no-preview",
        help="Show a live window with detections (press q to stop)",
    ),
    grid: bool = typer.Option(
        False,
        "--grid",
        help="Also print hits grouped by 100px cell and second",
    ),
    output_json: Optional[Path] = typer.Option(
        None,
        "--json", "-o",
        help="Write shots to a JSON file",
    ),
    profile: bool = typer.Option(
        False,
        "--profile",
        help="Print per-stage timing after the run",
    ),
) -> None:
    """
    Detect laser hits on a camera or video and group them into shots.

    A stored calibration for this camera is applied automatically when it
    is still valid.

    Examples:
        lasershot track                     # Default camera
        lasershot track session.mp4 -o shots.json
        lasershot track 1 --preview --spatial 15
    """
    config = get_config()
    profiler = StageProfiler(enabled=profile)

    console.print("\n[bold]LaserShot Track[/bold]")
    console.print(f"Source: [cyan]{source}[/cyan]")

    with open_source(source) as frame_source:
        info = frame_source.info
        calibration = build_calibration_manager(info.camera_id)
        if calibration.restore():
            console.print(f"Calibration: [green]valid[/green] ({calibration.record.timestamp})")
        else:
            console.print("Calibration: [yellow]none[/yellow] (raw camera coordinates)")
        console.print()

        session = ShotSession(
            clusterer=ShotClusterer(spatial_threshold=spatial, temporal_threshold=temporal)
        )
        renderer = OverlayRenderer(OverlayStyle.from_config(config.overlay)) if preview else None
        ended = False

        def on_cycle(result: CycleResult) -> None:
            nonlocal ended
            if not result.ready:
                if not frame_source.is_camera:
                    # End of file
                    ended = True
                    loop.stop()
                return
            for shot in result.shots:
                if shot.size == 1:
                    console.print(
                        f"[dim]New shot at {shot.center_x:.1f}, {shot.center_y:.1f}[/dim]"
                    )
            if renderer is not None:
                canvas = renderer.render_frame(result.frame, result.points, session.shots)
                cv2.imshow(PREVIEW_WINDOW, canvas)
                if cv2.waitKey(1) & 0xFF == ord("q"):
                    loop.stop()

        segmenter = ColorSegmenter.from_config(config.detection)
        with MarkerExtractor(segmenter) as extractor:
            loop = DetectionLoop(
                frame_source,
                extractor,
                session=session,
                calibration=calibration,
                profiler=profiler,
            )
            try:
                count = loop.run(max_cycles=cycles, on_cycle=on_cycle)
            finally:
                if renderer is not None:
                    cv2.destroyWindow(PREVIEW_WINDOW)

    console.print(f"Processed [cyan]{count}[/cyan] cycles" + (" (end of stream)" if ended else ""))
    if loop.acquisition_errors:
        console.print(f"[yellow]{loop.acquisition_errors} frame read errors[/yellow]")
    if loop.detection_errors:
        console.print(f"[yellow]{loop.detection_errors} frames could not be segmented[/yellow]")
    console.print()

    _print_shot_table(session.shots, session.total_points)

    if grid:
        _print_grid_table(session)

    if output_json:
        output_json.parent.mkdir(parents=True, exist_ok=True)
        with open(output_json, "w") as f:
            json.dump(_shots_to_dict(session.shots), f, indent=2)
        console.print(f"\n[dim]Shots saved to: {output_json}[/dim]")

    if profile:
        _print_profile_table(profiler.summary(), profiler.total_ms)


def _shots_to_dict(shots: list[Shot]) -> dict:
    return {
        "shots": [
            {
                "number": number,
                "center": {"x": round(shot.center_x, 2), "y": round(shot.center_y, 2)},
                "hits": shot.size,
                "points": [
                    {"x": p.x, "y": p.y, "timestamp": p.timestamp} for p in shot.points
                ],
            }
            for number, shot in enumerate(shots, start=1)
        ]
    }


def _print_shot_table(shots: list[Shot], total_points: int) -> None:
    if not shots:
        console.print("[yellow]No shots detected[/yellow]")
        return

    table = Table(title=f"Shots ({total_points} hits)")
    table.add_column("Shot", style="cyan", justify="right")
    table.add_column("Hits", style="green", justify="right")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")

    for number, shot in enumerate(shots, start=1):
        table.add_row(
            f"#{number}",
            str(shot.size),
            f"{shot.center_x:.1f}",
            f"{shot.center_y:.1f}",
        )

    console.print(table)


def _print_grid_table(session: ShotSession) -> None:
    groups = group_by_cell(session.points)
    if not groups:
        return

    table = Table(title="Hits by cell")
    table.add_column("Cell / second", style="cyan")
    table.add_column("Hits", style="green", justify="right")
    for group in groups:
        table.add_row(group.key, str(group.count))

    console.print()
    console.print(table)


def _print_profile_table(stages: list[StageSummary], total_ms: float) -> None:
    """Print per-stage timings for the retained window, slowest stage first."""
    console.print()
    if not stages:
        console.print("[yellow]No profiling data collected[/yellow]")
        return

    console.print(f"[bold]Timed:[/bold] {total_ms:.1f} ms over {sum(r.count for r in stages)} samples")
    table = Table(title="Time Breakdown by Stage")
    table.add_column("Stage", style="cyan")
    table.add_column("Calls", justify="right")
    table.add_column("Mean (ms)", justify="right")
    table.add_column("Max (ms)", justify="right")
    table.add_column("Share", justify="right")

    for row in stages:
        table.add_row(
            row.stage,
            str(row.count),
            f"{row.mean_ms:.2f}",
            f"{row.max_ms:.2f}",
            f"{row.share:.0%}",
        )

    console.print(table)
