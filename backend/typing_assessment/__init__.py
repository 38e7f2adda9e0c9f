"""Timed typing assessment engine for candidate screening."""

__version__ = "1.0.0"
