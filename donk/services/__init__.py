"""Tiling, storage and compositing services."""

from .blob_store import BlobStore
from .compositor import CompositeResult, Compositor
from .instance_service import InstanceService
from .rebuild_locks import RebuildLocks, rebuild_locks
from .session_service import SessionService, normalize_edit_payload
from .tile_store import TileStore

__all__ = [
    "BlobStore",
    "CompositeResult",
    "Compositor",
    "InstanceService",
    "RebuildLocks",
    "rebuild_locks",
    "SessionService",
    "normalize_edit_payload",
    "TileStore",
]
