"""Instance lifecycle, tile edits and composite persistence."""

import logging
import uuid
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import yaml
from PIL import Image
from pydantic import ValidationError

from ..config import AppConfig, get_config
from ..errors import (
    CompositeNotReady,
    InstanceNotFound,
    InvalidLocation,
    SourceImageUnreadable,
    StoreIOError,
)
from ..models.grid import GridGeometry, TileLocation
from ..models.instance import Instance
from ..utils.image_utils import IMAGE_DECODE_ERRORS, encode_jpeg, load_image
from .blob_store import BlobStore
from .compositor import CompositeResult, Compositor
from .rebuild_locks import RebuildLocks, rebuild_locks
from .tile_store import TileStore, instance_prefix

logger = logging.getLogger(__name__)

INSTANCES_PREFIX = "instances"


def metadata_key(instance_id: UUID) -> str:
    return f"{instance_prefix(instance_id)}/instance.yaml"


def composite_key(instance_id: UUID) -> str:
    return f"{instance_prefix(instance_id)}/composite.jpg"


def parse_instance_id(instance_id: Union[str, UUID]) -> UUID:
    """Parse an instance id, raising InstanceNotFound for malformed ids."""
    if isinstance(instance_id, UUID):
        return instance_id
    try:
        return UUID(instance_id)
    except ValueError:
        raise InstanceNotFound(f"'{instance_id}' is not a valid instance id") from None


class InstanceService:
    """Creates, opens and recomposites instances stored in a blob store."""

    def __init__(
        self,
        store: BlobStore,
        config: Optional[AppConfig] = None,
        locks: Optional[RebuildLocks] = None,
    ):
        """
        Initialize instance service.

        Args:
            store: Blob store holding instance artifacts
            config: Application config (global config if None)
            locks: Rebuild lock registry (process-wide registry if None)
        """
        self.store = store
        self.config = config or get_config()
        self.tiles = TileStore(store)
        self._locks = locks or rebuild_locks

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(
        self,
        source_image_path: Union[str, Path],
        step_count_x: Optional[int] = None,
        step_count_y: Optional[int] = None,
    ) -> Instance:
        """
        Create a new instance from a source image.

        The source image is decoded once to learn its dimensions, the grid
        geometry is derived and the metadata persisted.

        Raises:
            SourceImageUnreadable: If the image cannot be opened or decoded
            InvalidConfiguration: If the step counts are unusable
        """
        source_image_path = str(source_image_path)
        source = self._read_source(source_image_path)
        logger.info("Source image %s is %dx%d", source_image_path, source.width, source.height)

        grid = GridGeometry(
            width=source.width,
            height=source.height,
            step_count_x=step_count_x if step_count_x is not None else self.config.default_step_count_x,
            step_count_y=step_count_y if step_count_y is not None else self.config.default_step_count_y,
        )
        instance = Instance.from_geometry(uuid.uuid4(), source_image_path, grid)

        self.store.ensure_namespace(instance_prefix(instance.id))
        self.save(instance)
        logger.info(
            "New instance %s: width=%d, height=%d, stepSizeX=%d, stepSizeY=%d",
            instance.id, grid.width, grid.height, grid.step_size_x, grid.step_size_y,
        )
        return instance

    def save(self, instance: Instance) -> None:
        self.store.write(metadata_key(instance.id), instance.to_yaml())

    def open(self, instance_id: Union[str, UUID], missing_ok: bool = False) -> Instance:
        """
        Load a persisted instance.

        Args:
            instance_id: Instance id
            missing_ok: Return a bare, unconfigured instance instead of raising
                when no metadata is stored

        Raises:
            InstanceNotFound: If the id is malformed or has no metadata
        """
        parsed = parse_instance_id(instance_id)
        data = self.store.read(metadata_key(parsed))
        if data is None:
            if missing_ok:
                return Instance.bare(parsed)
            raise InstanceNotFound(f"Instance {parsed} not found")

        try:
            instance = Instance.from_yaml(data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise StoreIOError(f"Corrupt metadata for instance {parsed}: {e}") from e

        logger.debug("Loaded instance %s", parsed)
        return instance

    def list_instances(self) -> list[UUID]:
        """Ids of every instance with stored metadata."""
        ids = []
        for name in self.store.list_namespaces(INSTANCES_PREFIX):
            try:
                instance_id = UUID(name)
            except ValueError:
                continue
            if self.store.exists(metadata_key(instance_id)):
                ids.append(instance_id)
        return ids

    # ------------------------------------------------------------------
    # Source image and tiles
    # ------------------------------------------------------------------

    def _read_source(self, path: str) -> Image.Image:
        try:
            return load_image(path)
        except IMAGE_DECODE_ERRORS as e:
            raise SourceImageUnreadable(f"Failed to read source image {path}: {e}") from e

    def load_source(self, instance: Instance) -> Image.Image:
        """Decode an instance's source image."""
        return self._read_source(instance.source_image_path)

    def validate_location(self, instance: Instance, location: TileLocation) -> None:
        """Raise InvalidLocation if the location is outside the instance grid."""
        if not instance.grid.contains(location):
            raise InvalidLocation(location.x, location.y, instance.step_count_x, instance.step_count_y)

    def tile_status(self, instance: Instance) -> list[tuple[TileLocation, bool]]:
        """Every grid cell paired with whether it has an override."""
        present = set(self.tiles.locations(instance.id))
        return [(location, location in present) for location in instance.grid.cells()]

    # ------------------------------------------------------------------
    # Composite
    # ------------------------------------------------------------------

    def build_composite(self, instance: Instance) -> CompositeResult:
        """Build the composite image in memory without persisting it."""
        source = self.load_source(instance)
        overrides = self.tiles.list_overrides(instance.id)
        return Compositor(instance.grid).composite(source, overrides)

    def _rebuild(self, instance: Instance) -> None:
        result = self.build_composite(instance)
        data = encode_jpeg(result.image, quality=self.config.composite_quality)
        self.store.write(composite_key(instance.id), data)
        logger.info(
            "Saved composite for instance %s (%d override(s), %d fallback(s))",
            instance.id, len(result.override_cells), len(result.fallback_cells),
        )

    def rebuild_composite(self, instance: Instance, ticket: Optional[int] = None) -> bool:
        """
        Rebuild and persist an instance's composite.

        Rebuilds of one instance never overlap. The previous composite stays in
        place until the new one has been encoded and written.

        Args:
            instance: Instance to recomposite
            ticket: Change ticket from a tile edit; the rebuild is skipped when
                a newer rebuild already includes that change

        Returns:
            True if a rebuild ran
        """
        return self._locks.gate(instance.id).run(lambda: self._rebuild(instance), ticket)

    def get_composite(self, instance: Instance) -> bytes:
        """Read the persisted composite.

        Raises:
            CompositeNotReady: If no composite has been built yet
        """
        data = self.store.read(composite_key(instance.id))
        if data is None:
            raise CompositeNotReady(f"No composite has been built for instance {instance.id}")
        return data

    def apply_tile_edit(self, instance: Instance, location: TileLocation, image_bytes: bytes) -> None:
        """Store a tile override then rebuild the composite.

        Raises:
            InvalidLocation: If the location is outside the grid
        """
        self.validate_location(instance, location)
        self.tiles.put(instance.id, location, image_bytes)
        gate = self._locks.gate(instance.id)
        if not self.rebuild_composite(instance, ticket=gate.request()):
            logger.debug("Edit at %s already included in a newer composite", location)
