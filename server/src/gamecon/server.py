"""Engine facade: a dispatcher and a connection engine wired together.

This is the usual entry point for applications embedding the receiver:

    with GameEngineServer(MyHandler()) as server:
        ...  # callbacks arrive on the engine thread

Configuration is managed via the config module. See config.py for details.
"""

from __future__ import annotations

import logging
from types import TracebackType

from gamecon.config import Config, get_config
from gamecon.connection import ConnectionEngine, EngineState
from gamecon.dispatcher import GameEventHandler, ProtocolDispatcher

logger = logging.getLogger(__name__)


class GameEngineServer:
    """Receives game events on a TCP port and dispatches them to a handler.

    Attributes:
        config: Settings the engine was built from
        dispatcher: Decodes lines for the handler
        engine: Owns the sockets and the engine thread
    """

    def __init__(
        self,
        handler: GameEventHandler | None = None,
        config: Config | None = None,
    ) -> None:
        """Initialize the server. Nothing is bound until start().

        Args:
            handler: Callback target (defaults to a DefaultHandler)
            config: Settings (default: from get_config())
        """
        self.config = config if config is not None else get_config()
        self.dispatcher = ProtocolDispatcher(handler)
        self.engine = ConnectionEngine.from_config(self.dispatcher, self.config)

    @property
    def handler(self) -> GameEventHandler:
        return self.dispatcher.handler

    @property
    def state(self) -> EngineState:
        return self.engine.state

    @property
    def address(self) -> tuple[str, int] | None:
        """The bound (host, port), once started."""
        return self.engine.address

    @property
    def is_running(self) -> bool:
        return self.engine.is_running

    def start(self) -> None:
        """Bind the port and start receiving.

        Raises:
            BindError: If the port cannot be bound
        """
        self.engine.start()

    def stop(self, grace_timeout: float | None = None) -> None:
        """Stop receiving. No disconnect callback is made for an open connection.

        Raises:
            ShutdownTimeout: If the engine thread does not exit in time
        """
        self.engine.stop(grace_timeout)

    def __enter__(self) -> GameEngineServer:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
