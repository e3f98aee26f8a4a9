"""Chat and file sharing between clients of a small TCP relay server."""

__version__ = "0.1.0"