"""Command-line interface."""

from note_analytics.cli.main import cli


__all__ = ["cli"]
