"""Main CLI entry point for LaserShot."""

import typer

from lasershot.cli.commands.calibrate import calibrate as calibrate_command
from lasershot.cli.commands.status import status as status_command
from lasershot.cli.commands.track import track as track_command
from lasershot.cli.utils import configure_logging

app = typer.Typer(
    name="lasershot",
    help="Laser shooting range - hit detection, shot grouping and target calibration",
    no_args_is_help=True,
)

# Register commands
app.command(name="track")(track_command)
app.command(name="calibrate")(calibrate_command)
app.command(name="status")(status_command)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
):
    """LaserShot - laser hit detection and target calibration CLI."""
    configure_logging(verbose=verbose, quiet=quiet)


if __name__ == "__main__":
    app()
