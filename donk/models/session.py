"""Editing session model."""

from uuid import UUID

import yaml
from pydantic import BaseModel

from .grid import TileLocation
from .instance import Instance


class SessionRecord(BaseModel):
    """Persisted part of a session: which instance and which tile it edits."""

    id: UUID
    instance_id: UUID
    location: TileLocation

    @classmethod
    def from_yaml(cls, data: bytes) -> "SessionRecord":
        return cls(**yaml.safe_load(data))

    def to_yaml(self) -> bytes:
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False).encode("utf-8")


class Session(BaseModel):
    """An editing handle bound to one instance and one tile location.

    The instance is shared; a session never changes instance-level geometry.
    """

    id: UUID
    instance: Instance
    location: TileLocation

    def to_record(self) -> SessionRecord:
        return SessionRecord(id=self.id, instance_id=self.instance.id, location=self.location)
