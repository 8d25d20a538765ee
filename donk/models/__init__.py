"""Data models for the tiling engine."""

from .grid import GridGeometry, TileLocation
from .instance import Instance, composite_url_for
from .session import Session, SessionRecord

__all__ = [
    "GridGeometry",
    "TileLocation",
    "Instance",
    "composite_url_for",
    "Session",
    "SessionRecord",
]
