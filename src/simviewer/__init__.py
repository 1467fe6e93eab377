"""simviewer: progressive loader for time-stepped infection simulation output."""

__version__ = "0.1.0"
