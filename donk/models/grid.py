"""Grid geometry and tile location models."""

import re
from dataclasses import dataclass
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict

from ..errors import InvalidConfiguration

_TILE_KEY_PATTERN = re.compile(r"^(-?\d+),(-?\d+)$")


class TileLocation(BaseModel):
    """Integer (x, y) coordinate of one grid cell."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int

    @property
    def key(self) -> str:
        """Storage key used for this location (e.g. '2,1')."""
        return f"{self.x},{self.y}"

    @classmethod
    def from_key(cls, key: str) -> Optional["TileLocation"]:
        """Parse a storage key, returning None if it is not of the form 'x,y'."""
        match = _TILE_KEY_PATTERN.match(key)
        if match is None:
            return None
        return cls(x=int(match.group(1)), y=int(match.group(2)))

    def __str__(self) -> str:
        return f"({self.x},{self.y})"


@dataclass(frozen=True)
class GridGeometry:
    """Partition of a width x height image into equal-size cells.

    Step sizes use truncating division, so ``step_size_x * step_count_x`` may
    be smaller than ``width``. The uncovered right/bottom strip belongs to no
    cell and is always rendered from the source image.
    """

    width: int
    height: int
    step_count_x: int
    step_count_y: int

    def __post_init__(self):
        if self.step_count_x <= 0 or self.step_count_y <= 0:
            raise InvalidConfiguration(
                f"Grid step counts must be positive, got {self.step_count_x}x{self.step_count_y}"
            )
        if self.step_count_x > self.width or self.step_count_y > self.height:
            raise InvalidConfiguration(
                f"Grid {self.step_count_x}x{self.step_count_y} is finer than the "
                f"{self.width}x{self.height} image"
            )

    @property
    def step_size_x(self) -> int:
        return self.width // self.step_count_x

    @property
    def step_size_y(self) -> int:
        return self.height // self.step_count_y

    @property
    def covered_width(self) -> int:
        """Width covered by grid cells."""
        return self.step_size_x * self.step_count_x

    @property
    def covered_height(self) -> int:
        """Height covered by grid cells."""
        return self.step_size_y * self.step_count_y

    @property
    def has_remainder(self) -> bool:
        """Whether truncation left a strip not covered by any cell."""
        return self.covered_width < self.width or self.covered_height < self.height

    @property
    def cell_count(self) -> int:
        return self.step_count_x * self.step_count_y

    def contains(self, location: TileLocation) -> bool:
        """Check whether a location lies inside the grid."""
        return 0 <= location.x < self.step_count_x and 0 <= location.y < self.step_count_y

    def cell_origin(self, location: TileLocation) -> tuple[int, int]:
        """Top-left pixel of a cell in source image coordinates."""
        return (location.x * self.step_size_x, location.y * self.step_size_y)

    def cell_box(self, location: TileLocation) -> tuple[int, int, int, int]:
        """Nominal (left, top, right, bottom) box of a cell."""
        left, top = self.cell_origin(location)
        return (left, top, left + self.step_size_x, top + self.step_size_y)

    def cells(self) -> Iterator[TileLocation]:
        """Iterate over every cell, row by row."""
        for y in range(self.step_count_y):
            for x in range(self.step_count_x):
                yield TileLocation(x=x, y=y)
