"""Session state and the handler that maintains it.

Provides:
- SessionState: Counters, object registry and recent-event log for one receiver
- SessionTracker: Handler that keeps a SessionState up to date

State is written only from the engine thread. Readers on other threads
(the MCP monitor) go through the locked accessors, which return copies.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any

from gamecon.dispatcher import DefaultHandler, instance_key
from gamecon.models import Collision, EventRecord, MessageKind, ObjectRecord, Vector3

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 200

# Vector params stored on the record itself rather than in params
VECTOR_FIELDS = ("pos", "vel", "dir")


class SessionState:
    """Everything the receiver knows about the current game session.

    Attributes:
        connected: Whether a game is currently connected
        connection_count: Number of connections accepted so far
        tick_count: Number of ticks seen
        message_count: Number of messages seen
        connected_at: Time of the most recent connect
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._lock = threading.Lock()
        # Keyed by (name, instance_id); instance_key() is only for display
        self._objects: dict[tuple[str, int], ObjectRecord] = {}
        self._events: deque[EventRecord] = deque(maxlen=max_events)
        self.connected = False
        self.connection_count = 0
        self.tick_count = 0
        self.message_count = 0
        self.connected_at: float | None = None

    # -- writers (engine thread) ------------------------------------------

    def mark_connected(self) -> None:
        with self._lock:
            self.connected = True
            self.connection_count += 1
            self.connected_at = time.time()

    def mark_disconnected(self) -> None:
        """Record a lost connection. Objects do not outlive their connection."""
        with self._lock:
            self.connected = False
            self.connected_at = None
            self._objects.clear()

    def record_tick(self) -> None:
        with self._lock:
            self.tick_count += 1

    def record_event(self, event: EventRecord) -> None:
        with self._lock:
            self.message_count += 1
            self._events.append(event)

    def create_object(self, name: str, instance_id: int) -> ObjectRecord:
        """Register an object, replacing any previous record for it."""
        record = ObjectRecord(
            name=name,
            instance_id=instance_id,
            key=instance_key(name, instance_id),
            created=True,
        )
        with self._lock:
            self._objects[(name, instance_id)] = record
        return record

    def remove_object(self, name: str, instance_id: int) -> bool:
        """Remove an object.

        Returns:
            True if the object was known
        """
        with self._lock:
            return self._objects.pop((name, instance_id), None) is not None

    def set_vector(self, name: str, instance_id: int, param: str, vector: Vector3) -> None:
        with self._lock:
            record = self._ensure_object(name, instance_id)
            if param in VECTOR_FIELDS:
                setattr(record, param, vector)
            else:
                record.params[param] = vector
            record.updated_at = time.time()

    def set_param(self, name: str, instance_id: int, param: str, value: Any) -> None:
        with self._lock:
            record = self._ensure_object(name, instance_id)
            record.params[param] = value
            record.updated_at = time.time()

    def set_hit(self, name: str, instance_id: int, collision: Collision) -> None:
        with self._lock:
            record = self._ensure_object(name, instance_id)
            record.last_hit = collision
            record.updated_at = time.time()

    def _ensure_object(self, name: str, instance_id: int) -> ObjectRecord:
        # Some objects (projectiles) appear without a create message
        record = self._objects.get((name, instance_id))
        if record is None:
            record = ObjectRecord(
                name=name, instance_id=instance_id, key=instance_key(name, instance_id)
            )
            self._objects[(name, instance_id)] = record
        return record

    # -- readers (any thread) ---------------------------------------------

    def get_object(self, name: str, instance_id: int = 0) -> ObjectRecord | None:
        """Get a copy of one object's record."""
        with self._lock:
            record = self._objects.get((name, instance_id))
            return record.model_copy(deep=True) if record is not None else None

    def list_objects(self) -> list[ObjectRecord]:
        """Get copies of all object records, ordered by name and instance id."""
        with self._lock:
            return [
                self._objects[key].model_copy(deep=True) for key in sorted(self._objects)
            ]

    def recent_events(self, limit: int | None = None) -> list[EventRecord]:
        """Get the most recent events, oldest first."""
        with self._lock:
            events = list(self._events)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def snapshot(self) -> dict[str, Any]:
        """Summary of the session counters."""
        with self._lock:
            return {
                "connected": self.connected,
                "connection_count": self.connection_count,
                "tick_count": self.tick_count,
                "message_count": self.message_count,
                "object_count": len(self._objects),
                "connected_at": self.connected_at,
            }


class SessionTracker(DefaultHandler):
    """Handler that records every callback into a SessionState.

    Observers registered with on_event() are called with each EventRecord
    after it is stored.
    """

    def __init__(self, state: SessionState | None = None) -> None:
        self.state = state if state is not None else SessionState()
        self._event_callbacks: list[Callable[[EventRecord], None]] = []

    def on_event(self, callback: Callable[[EventRecord], None]) -> None:
        """Register a callback for recorded events.

        Args:
            callback: Function to call with each new EventRecord
        """
        self._event_callbacks.append(callback)

    def _record(
        self,
        kind: MessageKind,
        object: str,
        instance_id: int = 0,
        param: str | None = None,
        value: Any = None,
    ) -> None:
        event = EventRecord(
            kind=kind, object=object, instance_id=instance_id, param=param, value=value
        )
        self.state.record_event(event)

        for callback in self._event_callbacks:
            try:
                callback(event)
            except Exception as e:
                callback_name = getattr(callback, "__name__", repr(callback))
                logger.error(
                    "Error in event callback '%s': %s",
                    callback_name,
                    e,
                    exc_info=True,
                )

    # -- lifecycle --------------------------------------------------------

    def on_connect(self) -> None:
        self.state.mark_connected()

    def on_disconnect(self) -> None:
        self.state.mark_disconnected()

    def on_tick(self) -> None:
        self.state.record_tick()

    # -- typed messages ---------------------------------------------------

    def on_create(self, object: str, instance_id: int) -> None:
        self.state.create_object(object, instance_id)
        self._record(MessageKind.CREATE, object, instance_id)

    def on_destroy(self, object: str, instance_id: int) -> None:
        if not self.state.remove_object(object, instance_id):
            logger.debug("Destroy for unknown object %s", instance_key(object, instance_id))
        self._record(MessageKind.DESTROY, object, instance_id)

    def on_bool(self, object: str, instance_id: int, param: str, flag: bool) -> None:
        self.state.set_param(object, instance_id, param, flag)
        self._record(MessageKind.BOOL, object, instance_id, param, flag)

    def on_int(self, object: str, instance_id: int, param: str, value: int) -> None:
        self.state.set_param(object, instance_id, param, value)
        self._record(MessageKind.INT, object, instance_id, param, value)

    def on_real(self, object: str, instance_id: int, param: str, value: float) -> None:
        self.state.set_param(object, instance_id, param, value)
        self._record(MessageKind.REAL, object, instance_id, param, value)

    def on_string(self, object: str, instance_id: int, param: str, value: str) -> None:
        self.state.set_param(object, instance_id, param, value)
        self._record(MessageKind.STRING, object, instance_id, param, value)

    def on_vector(
        self, object: str, instance_id: int, param: str, x: float, y: float, z: float
    ) -> None:
        vector = Vector3(x=x, y=y, z=z)
        self.state.set_vector(object, instance_id, param, vector)
        self._record(MessageKind.VECTOR, object, instance_id, param, vector)

    def on_hit(self, object: str, instance_id: int, collision: Collision) -> None:
        self.state.set_hit(object, instance_id, collision)
        self._record(MessageKind.HIT, object, instance_id, None, collision)

    def on_other(self, name: str, type_: str, content: str) -> None:
        self._record(MessageKind.OTHER, name, 0, type_, content)
