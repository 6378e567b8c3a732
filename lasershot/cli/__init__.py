"""Command-line interface for LaserShot."""
