"""API request/response models."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.grid import TileLocation
from ..models.instance import Instance
from ..models.session import Session


# =============================================================================
# Instance Schemas
# =============================================================================


class InstanceCreate(BaseModel):
    """Request to create a new instance."""

    source_image: Optional[str] = Field(
        default=None,
        description="Path of the source image (configured default if omitted)",
    )
    step_count_x: Optional[int] = Field(default=None, ge=1, description="Grid columns")
    step_count_y: Optional[int] = Field(default=None, ge=1, description="Grid rows")


class InstanceDetail(BaseModel):
    """Instance metadata with computed grid fields."""

    id: UUID
    source_image_path: str
    composite_image_url: Optional[str] = None
    source_image_width: int
    source_image_height: int
    step_count_x: int
    step_count_y: int
    step_size_x: int
    step_size_y: int
    tile_count: int
    has_remainder: bool

    @classmethod
    def from_instance(cls, instance: Instance) -> "InstanceDetail":
        """Create from an Instance model."""
        grid = instance.grid
        return cls(
            **instance.model_dump(),
            tile_count=grid.cell_count,
            has_remainder=grid.has_remainder,
        )


class TileCell(BaseModel):
    """One grid cell and whether it has an override."""

    x: int
    y: int
    x_offset: int
    y_offset: int
    has_override: bool = False


class TileGridResponse(BaseModel):
    """Response containing the tile grid for an instance."""

    instance_id: UUID
    cols: int
    rows: int
    step_size_x: int
    step_size_y: int
    tiles: list[TileCell]


# =============================================================================
# Session Schemas
# =============================================================================


class SessionDetail(BaseModel):
    """A session as returned to editing clients."""

    id: UUID
    instance_id: UUID
    location: TileLocation
    background_url: str
    save_url: str

    @classmethod
    def from_session(cls, session: Session) -> "SessionDetail":
        base = f"/v1/instances/{session.instance.id}/sessions/{session.id}"
        return cls(
            id=session.id,
            instance_id=session.instance.id,
            location=session.location,
            background_url=f"{base}/background",
            save_url=f"{base}/save",
        )


# =============================================================================
# Generic Schemas
# =============================================================================


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str = "Operation completed successfully"
