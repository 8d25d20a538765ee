"""Per-instance storage of tile override images."""

import logging
from typing import Optional
from uuid import UUID

from ..models.grid import TileLocation
from .blob_store import BlobStore

logger = logging.getLogger(__name__)

TILE_EXTENSION = ".jpg"


def instance_prefix(instance_id: UUID) -> str:
    """Blob key prefix owning everything stored for an instance."""
    return f"instances/{instance_id}"


def tiles_prefix(instance_id: UUID) -> str:
    return f"{instance_prefix(instance_id)}/tiles"


def tile_key(instance_id: UUID, location: TileLocation) -> str:
    return f"{tiles_prefix(instance_id)}/{location.key}{TILE_EXTENSION}"


class TileStore:
    """Maps (instance, location) to an optional override image blob.

    Absence of an override is a normal state meaning the cell still shows
    the source image.
    """

    def __init__(self, store: BlobStore):
        self.store = store

    def put(self, instance_id: UUID, location: TileLocation, image_bytes: bytes) -> None:
        """Store an override, replacing any previous one at this location."""
        self.store.write(tile_key(instance_id, location), image_bytes)
        logger.info("Saved tile %s for instance %s", location, instance_id)

    def get(self, instance_id: UUID, location: TileLocation) -> Optional[bytes]:
        """Get an override's bytes, or None if the cell has none."""
        return self.store.read(tile_key(instance_id, location))

    def has(self, instance_id: UUID, location: TileLocation) -> bool:
        return self.store.exists(tile_key(instance_id, location))

    def locations(self, instance_id: UUID) -> list[TileLocation]:
        """Locations that currently hold an override.

        Blob names that are not of the form ``x,y.jpg`` are ignored.
        """
        found = []
        for name in self.store.list_keys(tiles_prefix(instance_id)):
            if not name.endswith(TILE_EXTENSION):
                continue
            location = TileLocation.from_key(name[: -len(TILE_EXTENSION)])
            if location is not None:
                found.append(location)
        return found

    def list_overrides(self, instance_id: UUID) -> dict[TileLocation, bytes]:
        """All current overrides for an instance, keyed by location."""
        overrides = {}
        for location in self.locations(instance_id):
            data = self.get(instance_id, location)
            if data is not None:
                overrides[location] = data
        return overrides
