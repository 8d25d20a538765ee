"""Donk - collaborative tiled canvas server."""

__version__ = "0.1.0"
