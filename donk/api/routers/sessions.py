"""Editing session endpoints."""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from ...errors import (
    BackgroundNotFound,
    InvalidLocation,
    MalformedImagePayload,
    SessionNotFound,
    SourceImageUnreadable,
    StoreIOError,
)
from ...models.grid import TileLocation
from ...models.session import Session
from ...services.session_service import SessionService
from ..schemas import SessionDetail, SuccessResponse
from .instances import get_instance_service, load_instance

logger = logging.getLogger(__name__)

# Mounted under /v1/instances
router = APIRouter()

# Mounted under /v1/sessions
lookup_router = APIRouter()


def get_session_service() -> SessionService:
    return SessionService(get_instance_service())


def load_session(instance_id: str, session_id: str) -> Session:
    """Load a session of an instance.

    Raises:
        HTTPException: If the instance or session is not found
    """
    instance = load_instance(instance_id)
    try:
        return get_session_service().open(instance, session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{instance_id}/sessions/{session_id}", response_model=SessionDetail)
async def get_session(instance_id: str, session_id: str):
    """Get a session of an instance."""
    return SessionDetail.from_session(load_session(instance_id, session_id))


@router.get("/{instance_id}/sessions/{session_id}/background")
async def get_session_background(instance_id: str, session_id: str):
    """Get the image an editor should start from."""
    session = load_session(instance_id, session_id)
    try:
        data = get_session_service().read_background(session)
    except BackgroundNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(content=data, media_type="image/jpeg")


@router.post("/{instance_id}/sessions/{session_id}/save", response_model=SuccessResponse)
async def save_session_image(instance_id: str, session_id: str, request: Request):
    """Submit a finished edit for the session's tile.

    The body is either raw image bytes or a base64 data URI.
    """
    session = load_session(instance_id, session_id)
    body = await request.body()
    service = get_session_service()
    try:
        await asyncio.to_thread(service.submit_edit, session, body)
    except MalformedImagePayload as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceImageUnreadable as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreIOError as e:
        logger.error("Failed to save edit for session %s: %s", session.id, e)
        raise HTTPException(status_code=500, detail=str(e))

    return SuccessResponse(message=f"Tile {session.location} saved")


# Registered after /save so "<session_id>/save" is not read as a tile location
@router.post("/{instance_id}/sessions/{x}/{y}", response_model=SessionDetail, status_code=201)
async def create_session(instance_id: str, x: int, y: int):
    """Start an editing session on tile (x, y)."""
    instance = load_instance(instance_id)
    service = get_session_service()
    try:
        session = await asyncio.to_thread(service.create, instance, TileLocation(x=x, y=y))
    except InvalidLocation as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceImageUnreadable as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreIOError as e:
        logger.error("Failed to create session: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("Created session %s", session.id)
    return SessionDetail.from_session(session)


@lookup_router.get("/{session_id}", response_model=SessionDetail)
async def find_session(session_id: str):
    """Find a session by id without knowing its instance."""
    try:
        session = await asyncio.to_thread(get_session_service().find, session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SessionDetail.from_session(session)
