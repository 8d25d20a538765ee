"""Instance metadata model."""

from typing import Optional
from uuid import UUID

import yaml
from pydantic import BaseModel, Field

from .grid import GridGeometry


def composite_url_for(instance_id: UUID) -> str:
    """API path where an instance's composite is served."""
    return f"/v1/instances/{instance_id}/composite"


class Instance(BaseModel):
    """One source image, its grid partition and its tile overrides.

    Geometry is derived once at creation and persisted; reopening an instance
    loads these fields as stored rather than re-reading the source image.
    """

    id: UUID
    source_image_path: str = Field(default="", description="Path of the source image")
    composite_image_url: Optional[str] = Field(default=None, description="Where the composite is served")
    source_image_width: int = Field(default=0, ge=0)
    source_image_height: int = Field(default=0, ge=0)
    step_count_x: int = Field(default=0, ge=0, description="Grid columns")
    step_count_y: int = Field(default=0, ge=0, description="Grid rows")
    step_size_x: int = Field(default=0, ge=0, description="Cell width in pixels")
    step_size_y: int = Field(default=0, ge=0, description="Cell height in pixels")

    @classmethod
    def from_geometry(cls, instance_id: UUID, source_image_path: str, grid: GridGeometry) -> "Instance":
        """Build an instance from derived grid geometry."""
        return cls(
            id=instance_id,
            source_image_path=source_image_path,
            composite_image_url=composite_url_for(instance_id),
            source_image_width=grid.width,
            source_image_height=grid.height,
            step_count_x=grid.step_count_x,
            step_count_y=grid.step_count_y,
            step_size_x=grid.step_size_x,
            step_size_y=grid.step_size_y,
        )

    @classmethod
    def bare(cls, instance_id: UUID) -> "Instance":
        """Zero-valued instance for an id with no stored metadata."""
        return cls(id=instance_id)

    @property
    def is_configured(self) -> bool:
        """Whether this instance carries source image and grid metadata."""
        return bool(self.source_image_path) and self.step_count_x > 0 and self.step_count_y > 0

    @property
    def grid(self) -> GridGeometry:
        """Grid geometry rebuilt from the persisted dimensions and counts."""
        return GridGeometry(
            width=self.source_image_width,
            height=self.source_image_height,
            step_count_x=self.step_count_x,
            step_count_y=self.step_count_y,
        )

    @classmethod
    def from_yaml(cls, data: bytes) -> "Instance":
        """Load instance metadata from YAML bytes."""
        return cls(**yaml.safe_load(data))

    def to_yaml(self) -> bytes:
        """Serialize instance metadata to YAML bytes."""
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False).encode("utf-8")
