"""Game event data models.

Pydantic models for decoded protocol messages and the consumer-side
records built from them.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FrozenModel(BaseModel):
    """Base model for immutable values produced by the decoder."""

    model_config = ConfigDict(frozen=True)


class MessageKind(str, Enum):
    """Which typed callback a decoded message is routed to."""

    BOOL = "bool"
    INT = "int"
    REAL = "real"
    STRING = "string"
    VECTOR = "vector"
    HIT = "hit"
    CREATE = "create"
    DESTROY = "destroy"
    OTHER = "other"


class Vector3(FrozenModel):
    """Simple 3D vector (position, velocity, direction, up...)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


class Collision(FrozenModel):
    """Information about a collision reported by the game.

    Attributes:
        other_name: The name of the other object which was hit
        velocity: The relative velocity of the two objects
    """

    other_name: str
    velocity: float = 0.0


class Identity(FrozenModel):
    """The (object, instance_id, param) triple a message is addressed to."""

    object: str
    instance_id: int = 0
    param: str


class DecodedMessage(FrozenModel):
    """The result of decoding one message line.

    ``identity`` is None for OTHER messages, which are passed through with
    their raw fields. For CREATE and DESTROY the identity's instance_id is
    the integer payload and ``value`` is None.
    """

    kind: MessageKind
    name: str
    type: str
    content: str
    identity: Identity | None = None
    value: Any = None


class ObjectRecord(BaseModel):
    """Consumer-side record of a game object seen on the connection.

    Tracks the latest vectors reported for the object along with the last
    value received for every other parameter.
    """

    name: str
    instance_id: int = 0
    key: str
    pos: Vector3 = Field(default_factory=Vector3)
    vel: Vector3 = Field(default_factory=Vector3)
    dir: Vector3 = Field(default_factory=Vector3)
    params: dict[str, Any] = Field(default_factory=dict)
    last_hit: Collision | None = None
    created: bool = False
    updated_at: float = Field(default_factory=time.time)


class EventRecord(FrozenModel):
    """One entry in the session's recent-event log."""

    kind: MessageKind
    object: str
    instance_id: int = 0
    param: str | None = None
    value: Any = None
    timestamp: float = Field(default_factory=time.time)
