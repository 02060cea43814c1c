"""Live poker tournament clock sync server."""

__version__ = "0.1.0"
