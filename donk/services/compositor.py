"""Composite assembly: overlay tile overrides onto the source image."""

import logging
from dataclasses import dataclass, field
from typing import Mapping

from PIL import Image

from ..errors import TileDecodeError
from ..models.grid import GridGeometry, TileLocation
from ..utils.image_utils import IMAGE_DECODE_ERRORS, decode_image

logger = logging.getLogger(__name__)


@dataclass
class CompositeResult:
    """A built composite plus which cells came from overrides."""

    image: Image.Image
    override_cells: list[TileLocation] = field(default_factory=list)
    fallback_cells: list[TileLocation] = field(default_factory=list)


class Compositor:
    """Builds the full-resolution composite for one instance grid."""

    def __init__(self, grid: GridGeometry):
        self.grid = grid

    def _decode_override(self, location: TileLocation, data: bytes) -> Image.Image:
        try:
            return decode_image(data)
        except IMAGE_DECODE_ERRORS as e:
            raise TileDecodeError(f"Failed to decode tile {location}: {e}") from e

    def composite(
        self,
        source: Image.Image,
        overrides: Mapping[TileLocation, bytes],
    ) -> CompositeResult:
        """
        Overlay overrides onto the source image.

        The canvas starts as a copy of the source, so pixels outside the grid
        (the strip left by truncating step sizes) always come from the source.
        Cells are then written row by row. An override is pasted whole at its
        cell's origin without resizing: a smaller override leaves the rest of
        its cell showing source pixels, a larger one spills into neighbouring
        cells until those cells are written in turn. Overrides that cannot be
        decoded are logged and the cell falls back to source pixels.

        Args:
            source: Decoded source image with the instance's dimensions
            overrides: Encoded override images keyed by location

        Returns:
            CompositeResult whose image has the source image's size
        """
        grid = self.grid
        if source.size != (grid.width, grid.height):
            logger.warning(
                "Source image is %dx%d but the grid was derived for %dx%d",
                source.width, source.height, grid.width, grid.height,
            )

        source = source.convert("RGB")
        canvas = source.copy()
        result = CompositeResult(image=canvas)

        for location in grid.cells():
            origin = grid.cell_origin(location)
            data = overrides.get(location)

            if data is not None:
                try:
                    tile = self._decode_override(location, data)
                except TileDecodeError as e:
                    logger.warning("%s; using source pixels", e)
                    result.fallback_cells.append(location)
                else:
                    canvas.paste(tile, origin)
                    result.override_cells.append(location)
                    continue

            canvas.paste(source.crop(grid.cell_box(location)), origin)

        ignored = [loc for loc in overrides if not grid.contains(loc)]
        if ignored:
            logger.warning("Ignoring %d tile(s) outside the grid: %s", len(ignored), ", ".join(map(str, ignored)))

        return result
