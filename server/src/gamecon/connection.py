"""Connection engine: one listening socket, at most one game connection.

Provides:
- EngineState: Lifecycle of the engine thread
- LineBuffer: Byte-level line framing that survives fragmented reads
- ConnectionEngine: Background thread running accept/read waits and ticks

The engine thread is the only thread that touches the sockets. Every event
it emits (connect, disconnect, line, tick) is delivered synchronously on
that thread, so consumers see a strictly ordered stream of callbacks.
"""

from __future__ import annotations

import contextlib
import logging
import select
import socket
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from gamecon.protocol import (
    DEFAULT_ACCEPT_POLL_MS,
    DEFAULT_MAX_LINE_LENGTH,
    DEFAULT_PORT,
    DEFAULT_READ_BUFFER_SIZE,
    DEFAULT_SHUTDOWN_GRACE_MS,
    DEFAULT_TICK_INTERVAL_MS,
)

if TYPE_CHECKING:
    from gamecon.config import Config

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================


class BindError(OSError):
    """The listening socket could not be created. Fatal at startup."""

    def __init__(self, host: str, port: int, reason: OSError) -> None:
        super().__init__(f"Could not listen on {host}:{port}: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class TransportError(OSError):
    """The active connection failed; it is dropped and never retried."""


class ShutdownTimeout(RuntimeError):
    """The engine thread did not exit within the grace period."""


# =============================================================================
# State and event sink
# =============================================================================


class EngineState(str, Enum):
    """Lifecycle of a ConnectionEngine.

    IDLE -> LISTENING <-> ACTIVE -> SHUTTING_DOWN -> CLOSED

    While SHUTTING_DOWN an active connection is closed without emitting a
    disconnect event.
    """

    IDLE = "idle"
    LISTENING = "listening"
    ACTIVE = "active"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


class ConnectionEvents(Protocol):
    """What the engine reports to the layer above it."""

    def handle_connect(self) -> None:
        ...

    def handle_disconnect(self) -> None:
        ...

    def handle_line(self, line: str) -> Any:
        ...

    def tick(self) -> None:
        ...


# =============================================================================
# Line framing
# =============================================================================


class LineBuffer:
    """Splits a byte stream into text lines.

    Bytes are buffered (not text) so multi-byte characters split across
    reads decode correctly. An unterminated trailing fragment is held until
    the rest of the line arrives.

    Attributes:
        max_line_length: Longest line accepted, in bytes
        encoding: Text encoding of the stream
    """

    def __init__(
        self,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        encoding: str = "utf-8",
    ) -> None:
        self.max_line_length = max_line_length
        self.encoding = encoding
        self._buffer = bytearray()
        self._overflow: TransportError | None = None

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet terminated by a newline."""
        return len(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()
        self._overflow = None

    def take_overflow(self) -> TransportError | None:
        """Return and reset the error recorded when a line grew too long."""
        overflow, self._overflow = self._overflow, None
        return overflow

    def _overflowed(self, message: str) -> None:
        self._buffer.clear()
        self._overflow = TransportError(message)

    def feed(self, data: bytes) -> list[str]:
        """Add received bytes and return every line they complete.

        Blank lines are dropped. Lines that fail to decode are logged and
        skipped. When a line grows past max_line_length the buffer is
        discarded, the lines completed before it are still returned, and
        the error is kept for ``take_overflow``.
        """
        self._buffer.extend(data)
        lines: list[str] = []

        while True:
            newline_pos = self._buffer.find(b"\n")
            if newline_pos < 0:
                break

            if newline_pos > self.max_line_length:
                self._overflowed(f"Line length exceeded {self.max_line_length} bytes")
                return lines

            line_bytes = bytes(self._buffer[:newline_pos])
            del self._buffer[: newline_pos + 1]

            try:
                line = line_bytes.decode(self.encoding).strip()
            except UnicodeDecodeError as e:
                logger.error("Decode error on incoming line: %s", e)
                continue

            if line:
                lines.append(line)

        if len(self._buffer) > self.max_line_length:
            self._overflowed(
                f"Unterminated line exceeded {self.max_line_length} bytes"
            )

        return lines


# =============================================================================
# Engine
# =============================================================================


class ConnectionEngine:
    """Owns the listening socket, the game connection and the tick.

    One background thread alternates between waiting for a connection
    (while none is active) and waiting for data on the active connection.
    After every wait it fires ``tick`` if at least one tick interval has
    passed since the previous tick. Ticks never catch up: a slow wait or a
    slow callback simply delays the next tick.

    Attributes:
        events: Receiver of connect/disconnect/line/tick events
        host: Listen address
        port: Listen port (0 picks a free port, see ``address``)
        tick_interval: Seconds between ticks, also the read-wait timeout
        accept_poll: Seconds each accept-wait blocks
        read_buffer_size: Maximum bytes per read
        shutdown_grace: Seconds stop() waits for the thread by default
    """

    def __init__(
        self,
        events: ConnectionEvents,
        *,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        tick_interval: float = DEFAULT_TICK_INTERVAL_MS / 1000.0,
        accept_poll: float = DEFAULT_ACCEPT_POLL_MS / 1000.0,
        read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE,
        shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE_MS / 1000.0,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
    ) -> None:
        """Initialize the engine. Nothing is bound until start().

        Args:
            events: Receiver of engine events (usually a ProtocolDispatcher)
            host: Listen address
            port: Listen port
            tick_interval: Seconds between ticks
            accept_poll: Seconds each accept-wait blocks
            read_buffer_size: Maximum bytes taken per read
            shutdown_grace: Default seconds stop() waits for the thread
            max_line_length: Longest accepted line in bytes
        """
        self.events = events
        self.host = host
        self.port = port
        self.tick_interval = tick_interval
        self.accept_poll = accept_poll
        self.read_buffer_size = read_buffer_size
        self.shutdown_grace = shutdown_grace

        self._lines = LineBuffer(max_line_length)
        self._listener: socket.socket | None = None
        self._connection: socket.socket | None = None
        self._peer: tuple[str, int] | None = None
        self._address: tuple[str, int] | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state = EngineState.IDLE
        self._last_tick = 0.0

    @classmethod
    def from_config(cls, events: ConnectionEvents, config: Config) -> ConnectionEngine:
        """Create an engine using the timing and buffer settings of a Config."""
        return cls(
            events,
            host=config.host,
            port=config.port,
            tick_interval=config.tick_interval,
            accept_poll=config.accept_poll,
            read_buffer_size=config.read_buffer_size,
            shutdown_grace=config.shutdown_grace,
            max_line_length=config.max_line_length,
        )

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the engine thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_connected(self) -> bool:
        return self._state is EngineState.ACTIVE

    @property
    def address(self) -> tuple[str, int] | None:
        """The bound (host, port) of the listening socket, once started."""
        return self._address

    @property
    def peer(self) -> tuple[str, int] | None:
        """The (host, port) of the connected game, if any."""
        return self._peer

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        """Bind the listening socket and start the engine thread.

        Raises:
            BindError: If the listening socket cannot be created
            RuntimeError: If the engine was already started
        """
        if self._state is not EngineState.IDLE:
            raise RuntimeError(f"Connection engine cannot start from state {self._state.value}")

        try:
            listener = socket.create_server((self.host, self.port), backlog=1)
        except OSError as e:
            raise BindError(self.host, self.port, e) from e

        listener.setblocking(False)
        self._listener = listener
        self._address = listener.getsockname()[:2]
        self._state = EngineState.LISTENING
        self._thread = threading.Thread(
            target=self._run, name="ConnectionEngine", daemon=True
        )
        self._thread.start()
        logger.info("Connection engine listening on %s:%d", *self._address)

    def stop(self, grace_timeout: float | None = None) -> None:
        """Ask the engine thread to exit and wait for it.

        An active connection is closed without a disconnect event. Called
        from the engine thread itself (e.g. inside a callback), this only
        requests the exit.

        Args:
            grace_timeout: Seconds to wait (defaults to shutdown_grace)

        Raises:
            ShutdownTimeout: If the thread is still running after the wait
        """
        thread = self._thread
        if thread is None:
            return

        self._stop_event.set()
        if thread is threading.current_thread():
            return

        timeout = self.shutdown_grace if grace_timeout is None else grace_timeout
        thread.join(timeout)
        if thread.is_alive():
            raise ShutdownTimeout(
                f"Connection engine thread did not exit within {timeout:.3f}s"
            )

        self._thread = None
        logger.info("Connection engine stopped")

    # -- engine thread ----------------------------------------------------

    def _run(self) -> None:
        self._last_tick = time.monotonic()
        try:
            while not self._stop_event.is_set():
                if self._connection is None:
                    self._wait_for_connection()
                else:
                    self._service_connection()

                if self._stop_event.is_set():
                    break

                now = time.monotonic()
                if now - self._last_tick >= self.tick_interval:
                    self._last_tick = now
                    self._emit(self.events.tick)
        except Exception as e:
            logger.error(
                "Connection engine crashed: %s: %s", type(e).__name__, e, exc_info=True
            )
        finally:
            self._shutdown()

    def _wait_for_connection(self) -> None:
        listener = self._listener
        if listener is None:
            self._stop_event.set()
            return

        readable, _, _ = select.select([listener], [], [], self.accept_poll)
        if not readable:
            return

        try:
            connection, peer = listener.accept()
        except BlockingIOError:
            # Peer gave up between the wait and the accept
            return
        except OSError as e:
            logger.warning("Failed to accept connection: %s", e)
            return

        connection.setblocking(False)
        self._connection = connection
        self._peer = (peer[0], peer[1])
        self._lines.clear()
        self._state = EngineState.ACTIVE
        # A fresh connection discards accumulated schedule drift
        self._last_tick = time.monotonic()

        logger.info("Connected to %s:%d", *self._peer)
        self._emit(self.events.handle_connect)

    def _service_connection(self) -> None:
        connection = self._connection
        assert connection is not None

        try:
            readable, _, errored = select.select(
                [connection], [], [connection], self.tick_interval
            )
        except (OSError, ValueError) as e:
            self._disconnect(f"wait failed: {e}")
            return

        if errored:
            self._disconnect("wait reported an error condition")
            return

        if not readable:
            self._stop_event.wait(self.tick_interval)
            return

        try:
            lines = self._read(connection)
        except TransportError as e:
            self._disconnect(str(e))
            return

        for line in lines:
            logger.debug("Received line: %s", line)
            self._emit(self.events.handle_line, line)

        overflow = self._lines.take_overflow()
        if overflow is not None:
            self._disconnect(str(overflow))

    def _read(self, connection: socket.socket) -> list[str]:
        try:
            data = connection.recv(self.read_buffer_size)
        except (BlockingIOError, InterruptedError):
            # Spurious wake: readiness reported but nothing to read
            return []
        except OSError as e:
            raise TransportError(f"read failed: {e}") from e

        if not data:
            raise TransportError("connection closed by peer")

        return self._lines.feed(data)

    def _close_connection(self) -> tuple[str, int] | None:
        connection, peer = self._connection, self._peer
        self._connection = None
        self._peer = None
        self._lines.clear()
        if connection is not None:
            with contextlib.suppress(OSError):
                connection.close()
        return peer

    def _disconnect(self, reason: str) -> None:
        peer = self._close_connection()
        self._state = EngineState.LISTENING
        if peer is not None:
            logger.info("Disconnected from %s:%d (%s)", peer[0], peer[1], reason)
        self._emit(self.events.handle_disconnect)

    def _shutdown(self) -> None:
        # Shutdown bypasses handle_disconnect: the consumer is being torn
        # down with us and must not be re-entered.
        self._state = EngineState.SHUTTING_DOWN
        peer = self._close_connection()
        if peer is not None:
            logger.info("Dropped connection to %s:%d on shutdown", *peer)

        if self._listener is not None:
            with contextlib.suppress(OSError):
                self._listener.close()
            self._listener = None

        self._state = EngineState.CLOSED

    def _emit(self, callback: Callable[..., Any], *args: Any) -> None:
        """Invoke a consumer callback, logging (not propagating) its errors."""
        try:
            callback(*args)
        except Exception as e:
            callback_name = getattr(callback, "__name__", repr(callback))
            logger.error(
                "Error in connection callback '%s': %s",
                callback_name,
                e,
                exc_info=True,
            )
