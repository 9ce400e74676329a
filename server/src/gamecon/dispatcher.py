"""Protocol dispatcher and handler interfaces.

Provides:
- GameEventHandler: Protocol with one callback per payload kind
- DefaultHandler: Adapter that ignores lifecycle events and logs unhandled ones
- CompositeHandler: Fans every callback out to several handlers
- ProtocolDispatcher: Decodes message lines and invokes the handler

All callbacks are invoked on the connection engine's thread, one at a time.
"""

from __future__ import annotations

import logging
from typing import Protocol

from gamecon.models import Collision, DecodedMessage, MessageKind
from gamecon.protocol import decode_message, split_fields

logger = logging.getLogger(__name__)


def instance_key(name: str, instance_id: int) -> str:
    """Combine an object name and instance id into one lookup key.

    An instance id of zero means "no id" and yields the bare name.
    """
    if not instance_id:
        return name
    return f"{name}{instance_id}"


class GameEventHandler(Protocol):
    """Callbacks for everything the game can send.

    ``object`` and ``param`` come from the message name, ``instance_id`` is
    0 unless the game sent an upper-case type code.
    """

    def on_connect(self) -> None:
        """The game connected."""
        ...

    def on_disconnect(self) -> None:
        """The game connection was lost."""
        ...

    def on_tick(self) -> None:
        """Regular scheduling callback, roughly once per tick interval."""
        ...

    def on_create(self, object: str, instance_id: int) -> None:
        """A game object was added to the game."""
        ...

    def on_destroy(self, object: str, instance_id: int) -> None:
        """A game object was removed from the game."""
        ...

    def on_bool(self, object: str, instance_id: int, param: str, flag: bool) -> None:
        ...

    def on_int(self, object: str, instance_id: int, param: str, value: int) -> None:
        ...

    def on_real(self, object: str, instance_id: int, param: str, value: float) -> None:
        ...

    def on_string(self, object: str, instance_id: int, param: str, value: str) -> None:
        ...

    def on_vector(
        self, object: str, instance_id: int, param: str, x: float, y: float, z: float
    ) -> None:
        """Position, velocity or direction of a game object (param says which)."""
        ...

    def on_hit(self, object: str, instance_id: int, collision: Collision) -> None:
        """The object collided with another object."""
        ...

    def on_other(self, name: str, type_: str, content: str) -> None:
        """A message with a type code the dispatcher does not decode."""
        ...


class DefaultHandler:
    """Handler adapter: override only the callbacks you need.

    Lifecycle callbacks do nothing. Typed callbacks that are not overridden
    are logged at DEBUG so unexpected traffic is visible. Unknown message
    types are dropped silently.
    """

    def on_connect(self) -> None:
        pass

    def on_disconnect(self) -> None:
        pass

    def on_tick(self) -> None:
        pass

    def on_create(self, object: str, instance_id: int) -> None:
        logger.debug("Unhandled on_create: %s %d", object, instance_id)

    def on_destroy(self, object: str, instance_id: int) -> None:
        logger.debug("Unhandled on_destroy: %s %d", object, instance_id)

    def on_bool(self, object: str, instance_id: int, param: str, flag: bool) -> None:
        logger.debug("Unhandled on_bool: %s %d %s %d", object, instance_id, param, flag)

    def on_int(self, object: str, instance_id: int, param: str, value: int) -> None:
        logger.debug("Unhandled on_int: %s %d %s %d", object, instance_id, param, value)

    def on_real(self, object: str, instance_id: int, param: str, value: float) -> None:
        logger.debug("Unhandled on_real: %s %d %s %f", object, instance_id, param, value)

    def on_string(self, object: str, instance_id: int, param: str, value: str) -> None:
        logger.debug(
            'Unhandled on_string: %s %d %s "%s"', object, instance_id, param, value
        )

    def on_vector(
        self, object: str, instance_id: int, param: str, x: float, y: float, z: float
    ) -> None:
        logger.debug(
            "Unhandled on_vector: %s %d %s %f %f %f", object, instance_id, param, x, y, z
        )

    def on_hit(self, object: str, instance_id: int, collision: Collision) -> None:
        logger.debug(
            "Unhandled on_hit: %s %d %s %f",
            object,
            instance_id,
            collision.other_name,
            collision.velocity,
        )

    def on_other(self, name: str, type_: str, content: str) -> None:
        pass


class CompositeHandler:
    """Forwards every callback to each wrapped handler, in order."""

    def __init__(self, *handlers: GameEventHandler) -> None:
        self.handlers: list[GameEventHandler] = list(handlers)

    def add(self, handler: GameEventHandler) -> None:
        self.handlers.append(handler)

    def on_connect(self) -> None:
        for handler in self.handlers:
            handler.on_connect()

    def on_disconnect(self) -> None:
        for handler in self.handlers:
            handler.on_disconnect()

    def on_tick(self) -> None:
        for handler in self.handlers:
            handler.on_tick()

    def on_create(self, object: str, instance_id: int) -> None:
        for handler in self.handlers:
            handler.on_create(object, instance_id)

    def on_destroy(self, object: str, instance_id: int) -> None:
        for handler in self.handlers:
            handler.on_destroy(object, instance_id)

    def on_bool(self, object: str, instance_id: int, param: str, flag: bool) -> None:
        for handler in self.handlers:
            handler.on_bool(object, instance_id, param, flag)

    def on_int(self, object: str, instance_id: int, param: str, value: int) -> None:
        for handler in self.handlers:
            handler.on_int(object, instance_id, param, value)

    def on_real(self, object: str, instance_id: int, param: str, value: float) -> None:
        for handler in self.handlers:
            handler.on_real(object, instance_id, param, value)

    def on_string(self, object: str, instance_id: int, param: str, value: str) -> None:
        for handler in self.handlers:
            handler.on_string(object, instance_id, param, value)

    def on_vector(
        self, object: str, instance_id: int, param: str, x: float, y: float, z: float
    ) -> None:
        for handler in self.handlers:
            handler.on_vector(object, instance_id, param, x, y, z)

    def on_hit(self, object: str, instance_id: int, collision: Collision) -> None:
        for handler in self.handlers:
            handler.on_hit(object, instance_id, collision)

    def on_other(self, name: str, type_: str, content: str) -> None:
        for handler in self.handlers:
            handler.on_other(name, type_, content)


class ProtocolDispatcher:
    """Turns message lines into typed handler calls.

    The dispatcher keeps no state between lines. It also acts as the
    connection engine's event sink, forwarding connect, disconnect and tick
    to the handler.

    Attributes:
        handler: The handler receiving decoded callbacks
    """

    def __init__(self, handler: GameEventHandler | None = None) -> None:
        """Initialize the dispatcher.

        Args:
            handler: Callback target (defaults to a DefaultHandler)
        """
        self.handler: GameEventHandler = handler if handler is not None else DefaultHandler()

    # -- engine event sink ------------------------------------------------

    def handle_connect(self) -> None:
        self.handler.on_connect()

    def handle_disconnect(self) -> None:
        self.handler.on_disconnect()

    def tick(self) -> None:
        self.handler.on_tick()

    def handle_line(self, line: str) -> DecodedMessage:
        """Tokenize a raw line into its three fields and dispatch it."""
        name, type_, content = split_fields(line)
        return self.handle_message(name, type_, content)

    # -- decoding ---------------------------------------------------------

    def handle_message(self, name: str, type_: str, content: str) -> DecodedMessage:
        """Decode one message and invoke the matching callback.

        Returns:
            The decoded message, for callers that want to log or record it
        """
        decoded = decode_message(name, type_, content)
        self.dispatch(decoded)
        return decoded

    def dispatch(self, decoded: DecodedMessage) -> None:
        """Invoke the handler callback for an already-decoded message."""
        handler = self.handler
        identity = decoded.identity

        if decoded.kind is MessageKind.OTHER or identity is None:
            handler.on_other(decoded.name, decoded.type, decoded.content)
            return

        obj, iid, param = identity.object, identity.instance_id, identity.param
        kind = decoded.kind

        if kind is MessageKind.BOOL:
            handler.on_bool(obj, iid, param, decoded.value)
        elif kind is MessageKind.INT:
            handler.on_int(obj, iid, param, decoded.value)
        elif kind is MessageKind.CREATE:
            handler.on_create(obj, iid)
        elif kind is MessageKind.DESTROY:
            handler.on_destroy(obj, iid)
        elif kind is MessageKind.REAL:
            handler.on_real(obj, iid, param, decoded.value)
        elif kind is MessageKind.STRING:
            handler.on_string(obj, iid, param, decoded.value)
        elif kind is MessageKind.VECTOR:
            v = decoded.value
            handler.on_vector(obj, iid, param, v.x, v.y, v.z)
        elif kind is MessageKind.HIT:
            handler.on_hit(obj, iid, decoded.value)
