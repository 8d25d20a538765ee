"""Editing sessions: background crops and edit submission."""

import logging
import uuid
from typing import Union
from uuid import UUID

import yaml
from pydantic import ValidationError

from ..errors import (
    BackgroundNotFound,
    InstanceNotFound,
    MalformedImagePayload,
    SessionNotFound,
    StoreIOError,
)
from ..models.grid import TileLocation
from ..models.instance import Instance
from ..models.session import Session, SessionRecord
from ..utils.image_utils import (
    IMAGE_DECODE_ERRORS,
    crop_region,
    decode_base64_payload,
    decode_image,
    encode_jpeg,
    is_data_uri,
    is_jpeg,
)
from .instance_service import InstanceService
from .tile_store import instance_prefix

logger = logging.getLogger(__name__)


def session_prefix(instance_id: UUID, session_id: UUID) -> str:
    return f"{instance_prefix(instance_id)}/sessions/{session_id}"


def session_key(instance_id: UUID, session_id: UUID) -> str:
    return f"{session_prefix(instance_id, session_id)}/session.yaml"


def background_key(instance_id: UUID, session_id: UUID) -> str:
    return f"{session_prefix(instance_id, session_id)}/background.jpg"


def parse_session_id(session_id: Union[str, UUID]) -> UUID:
    if isinstance(session_id, UUID):
        return session_id
    try:
        return UUID(session_id)
    except ValueError:
        raise SessionNotFound(f"'{session_id}' is not a valid session id") from None


def _as_jpeg(image_bytes: bytes, quality: int) -> bytes:
    try:
        image = decode_image(image_bytes)
    except IMAGE_DECODE_ERRORS as e:
        raise MalformedImagePayload(f"Edit payload is not a readable image: {e}") from e
    if is_jpeg(image_bytes):
        return image_bytes
    return encode_jpeg(image, quality=quality)


def normalize_edit_payload(payload: Union[bytes, str], quality: int = 100) -> bytes:
    """
    Turn a submitted edit into JPEG bytes.

    Accepts raw image bytes, bare base64 text or a
    ``data:image/...;base64,...`` data URI. JPEG input is kept byte for byte;
    any other format Pillow reads is re-encoded as JPEG at ``quality``, with
    transparency flattened onto white.

    Raises:
        MalformedImagePayload: If the payload does not decode to an image
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    if not is_data_uri(payload):
        try:
            return _as_jpeg(payload, quality)
        except MalformedImagePayload:
            pass

    try:
        image_bytes = decode_base64_payload(payload)
    except ValueError as e:
        raise MalformedImagePayload(f"Failed to decode edit payload: {e}") from e
    return _as_jpeg(image_bytes, quality)


class SessionService:
    """Opens editing sessions on instance tiles and forwards their edits."""

    def __init__(self, instances: InstanceService):
        self.instances = instances
        self.store = instances.store

    @property
    def config(self):
        return self.instances.config

    def create(self, instance: Instance, location: TileLocation) -> Session:
        """
        Start a session on one tile and materialize its background.

        The background is the tile's current override, byte for byte, or a
        fresh crop of the source image when the tile has none.

        Raises:
            InvalidLocation: If the location is outside the grid (nothing is written)
            SourceImageUnreadable: If the source crop cannot be made (nothing is written)
        """
        self.instances.validate_location(instance, location)
        session = Session(id=uuid.uuid4(), instance=instance, location=location)
        background = self._initial_background(session)

        self.store.ensure_namespace(session_prefix(instance.id, session.id))
        logger.info("Created path for session %s", session.id)

        self.store.write(background_key(instance.id, session.id), background)
        self.store.write(session_key(instance.id, session.id), session.to_record().to_yaml())
        return session

    def _initial_background(self, session: Session) -> bytes:
        instance = session.instance
        existing = self.instances.tiles.get(instance.id, session.location)
        if existing is not None:
            logger.info("Using existing tile image for %s", session.location)
            return existing

        logger.info("No existing tile at %s, generating a background from source", session.location)
        source = self.instances.load_source(instance)
        crop = crop_region(source, instance.grid.cell_box(session.location))
        return encode_jpeg(crop, quality=self.config.background_quality)

    def open(self, instance: Instance, session_id: Union[str, UUID]) -> Session:
        """Reload a session stored under an instance.

        Raises:
            SessionNotFound: If the id is malformed or has no record here
        """
        parsed = parse_session_id(session_id)
        data = self.store.read(session_key(instance.id, parsed))
        if data is None:
            raise SessionNotFound(f"Session {parsed} not found in instance {instance.id}")

        try:
            record = SessionRecord.from_yaml(data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise StoreIOError(f"Corrupt record for session {parsed}: {e}") from e

        logger.debug("Loaded session for %s", record.location)
        return Session(id=record.id, instance=instance, location=record.location)

    def find(self, session_id: Union[str, UUID]) -> Session:
        """Locate a session by id across every instance.

        Raises:
            SessionNotFound: If no instance holds the session
        """
        parsed = parse_session_id(session_id)
        for instance_id in self.instances.list_instances():
            if self.store.exists(session_key(instance_id, parsed)):
                try:
                    instance = self.instances.open(instance_id)
                except InstanceNotFound:
                    continue
                return self.open(instance, parsed)
        raise SessionNotFound(f"Failed to find session {parsed}")

    def read_background(self, session: Session) -> bytes:
        """Read the session's background image.

        Raises:
            BackgroundNotFound: If the background artifact is missing
        """
        data = self.store.read(background_key(session.instance.id, session.id))
        if data is None:
            raise BackgroundNotFound(f"No background image for session {session.id}")
        return data

    def submit_edit(self, session: Session, payload: Union[bytes, str]) -> None:
        """
        Store a finished edit as the session tile's override.

        The payload is validated before anything is written. The tile is then
        stored, the composite rebuilt, and the session background refreshed so
        it matches the latest edit.

        Raises:
            MalformedImagePayload: If the payload cannot be decoded
        """
        image_bytes = normalize_edit_payload(payload, self.config.background_quality)
        self.instances.apply_tile_edit(session.instance, session.location, image_bytes)
        self.store.write(background_key(session.instance.id, session.id), image_bytes)
        logger.info("Saved edit from session %s at %s", session.id, session.location)
