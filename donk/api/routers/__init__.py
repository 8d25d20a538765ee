"""API routers for Donk."""

from . import instances, sessions

__all__ = ["instances", "sessions"]
