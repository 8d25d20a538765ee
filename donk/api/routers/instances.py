"""Instance management and composite endpoints."""

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from ...config import get_config
from ...errors import (
    CompositeNotReady,
    InstanceNotFound,
    InvalidConfiguration,
    SourceImageUnreadable,
    StoreIOError,
)
from ...models.instance import Instance
from ...services.blob_store import BlobStore
from ...services.instance_service import InstanceService
from ..schemas import (
    InstanceCreate,
    InstanceDetail,
    SuccessResponse,
    TileCell,
    TileGridResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_instance_service() -> InstanceService:
    """Instance service backed by the configured data directory."""
    config = get_config()
    return InstanceService(BlobStore(config.data_dir), config)


def load_instance(instance_id: str) -> Instance:
    """Load an instance by id.

    Raises:
        HTTPException: If instance not found
    """
    try:
        return get_instance_service().open(instance_id)
    except InstanceNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreIOError as e:
        logger.error("Failed to open instance %s: %s", instance_id, e)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=list[UUID])
async def list_instances():
    """List the ids of all stored instances."""
    return get_instance_service().list_instances()


@router.post("", response_model=InstanceDetail, status_code=201)
async def create_instance(request: InstanceCreate):
    """Create a new instance and build its first composite."""
    service = get_instance_service()
    source_image = request.source_image or str(service.config.default_source_image)

    def create_and_build() -> Instance:
        instance = service.create(source_image, request.step_count_x, request.step_count_y)
        service.rebuild_composite(instance)
        return instance

    try:
        instance = await asyncio.to_thread(create_and_build)
    except SourceImageUnreadable as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidConfiguration as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreIOError as e:
        logger.error("Failed to create instance: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    return InstanceDetail.from_instance(instance)


@router.get("/{instance_id}", response_model=InstanceDetail)
async def get_instance(instance_id: str):
    """Get instance metadata."""
    return InstanceDetail.from_instance(load_instance(instance_id))


@router.get("/{instance_id}/tiles", response_model=TileGridResponse)
async def get_tile_grid(instance_id: str):
    """Get the tile grid and which cells have overrides."""
    instance = load_instance(instance_id)
    grid = instance.grid
    status = get_instance_service().tile_status(instance)

    tiles = []
    for location, has_override in status:
        x_offset, y_offset = grid.cell_origin(location)
        tiles.append(TileCell(
            x=location.x,
            y=location.y,
            x_offset=x_offset,
            y_offset=y_offset,
            has_override=has_override,
        ))

    return TileGridResponse(
        instance_id=instance.id,
        cols=grid.step_count_x,
        rows=grid.step_count_y,
        step_size_x=grid.step_size_x,
        step_size_y=grid.step_size_y,
        tiles=tiles,
    )


@router.get("/{instance_id}/composite")
async def get_composite(instance_id: str):
    """Get the instance's composite image."""
    instance = load_instance(instance_id)
    try:
        data = get_instance_service().get_composite(instance)
    except CompositeNotReady as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(content=data, media_type="image/jpeg")


@router.post("/{instance_id}/composite/rebuild", response_model=SuccessResponse)
async def rebuild_composite(instance_id: str):
    """Rebuild the composite from the source image and current tiles."""
    instance = load_instance(instance_id)
    service = get_instance_service()
    try:
        await asyncio.to_thread(service.rebuild_composite, instance)
    except SourceImageUnreadable as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreIOError as e:
        logger.error("Failed to rebuild composite for %s: %s", instance.id, e)
        raise HTTPException(status_code=500, detail=str(e))

    return SuccessResponse(message=f"Composite for instance {instance.id} rebuilt")
