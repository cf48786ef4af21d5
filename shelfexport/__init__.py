"""Launcher for the library export service and its one-shot export command."""

__version__ = "1.0.0"
