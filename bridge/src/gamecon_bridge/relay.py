"""Async relay from a game process's stdout to the receiver's TCP port.

The game writes protocol lines to its stdout, which is piped into this
process's stdin. Each non-blank line is forwarded to the receiver as-is,
newline-terminated.

The receiver serves one connection at a time. A relay started while another
game is attached sits in the receiver's listen backlog until that game
disconnects.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from asyncio import StreamWriter
from typing import BinaryIO, Protocol

from gamecon_bridge.protocol import (
    DEFAULT_HOST,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_MAX_STDIN_EOF_RETRIES,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_STDIN_EOF_RETRY_DELAY,
    MAX_RECONNECT_BACKOFF,
    normalize_line,
)

logger = logging.getLogger(__name__)


class AsyncLineReader(Protocol):
    """Anything with an awaitable ``readline`` (StreamReader, test doubles)."""

    async def readline(self) -> bytes:
        """Return the next line, or empty bytes on EOF."""
        ...


def backoff_delay(attempt: int, base: float) -> float:
    """Delay before retry number ``attempt`` (1-based), doubling from ``base``."""
    return min(base * (2 ** (attempt - 1)), MAX_RECONNECT_BACKOFF)


class Relay:
    """Forwards protocol lines to the receiver, reconnecting as needed.

    A line that cannot be delivered is parked in a single-slot buffer; a
    newer undeliverable line replaces it. The parked line goes out first
    once a connection is available again.

    Attributes:
        host: Receiver host
        port: Receiver port
        reconnect_delay: Base delay between connection attempts, in seconds
        max_reconnect_attempts: Attempts before giving up on a connection
        stdin_eof_retry_delay: Pause after an EOF on stdin, in seconds
        max_stdin_eof_retries: Consecutive EOFs tolerated before stopping
        sent_count: Lines delivered over the lifetime of the relay
        reconnect_count: Successful reconnects after a dropped connection
    """

    def __init__(
        self,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        stdin_eof_retry_delay: float = DEFAULT_STDIN_EOF_RETRY_DELAY,
        max_stdin_eof_retries: int = DEFAULT_MAX_STDIN_EOF_RETRIES,
    ) -> None:
        self.host = host
        self.port = port
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.stdin_eof_retry_delay = stdin_eof_retry_delay
        self.max_stdin_eof_retries = max_stdin_eof_retries

        self.sent_count = 0
        self.reconnect_count = 0
        self._writer: StreamWriter | None = None
        self._pending_message: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    @property
    def pending_message(self) -> str | None:
        """The parked line awaiting delivery, if any."""
        return self._pending_message

    # =========================================================================
    # Connection management
    # =========================================================================

    async def connect(self) -> bool:
        """Open a connection to the receiver.

        Returns:
            True if the connection was established
        """
        try:
            _, self._writer = await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            logger.warning("Receiver at %s:%d unreachable: %s", self.host, self.port, e)
            self._writer = None
            return False

        logger.info("Attached to receiver at %s:%d", self.host, self.port)
        return True

    async def connect_with_retry(self) -> bool:
        """Connect, backing off exponentially between failed attempts.

        Returns:
            True once connected, False after max_reconnect_attempts failures
        """
        for attempt in range(1, self.max_reconnect_attempts + 1):
            if await self.connect():
                return True
            if attempt == self.max_reconnect_attempts:
                break

            delay = backoff_delay(attempt, self.reconnect_delay)
            logger.info(
                "Attempt %d/%d failed, next try in %.2fs",
                attempt,
                self.max_reconnect_attempts,
                delay,
            )
            await asyncio.sleep(delay)

        logger.error(
            "Giving up on %s:%d after %d attempts",
            self.host,
            self.port,
            self.max_reconnect_attempts,
        )
        return False

    async def _reattach(self) -> bool:
        """Reconnect after a drop, at a fixed pace."""
        for attempt in range(1, self.max_reconnect_attempts + 1):
            await asyncio.sleep(self.reconnect_delay)
            logger.info("Reattach attempt %d/%d", attempt, self.max_reconnect_attempts)
            if await self.connect():
                self.reconnect_count += 1
                return True
        return False

    async def _drop_connection(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()

    async def close(self) -> None:
        """Close the connection to the receiver, if any."""
        if self._writer is not None:
            await self._drop_connection()
            logger.info("Detached from receiver")

    # =========================================================================
    # Sending
    # =========================================================================

    async def _write(self, line: str) -> bool:
        if self._writer is None:
            return False
        try:
            self._writer.write(line.encode("utf-8"))
            await self._writer.drain()
        except OSError as e:
            logger.warning("Send to receiver failed: %s", e)
            await self._drop_connection()
            return False

        self.sent_count += 1
        return True

    async def send_line(self, line: str) -> bool:
        """Deliver one protocol line.

        Blank lines are skipped. A line that cannot be delivered replaces
        whatever was parked before it.

        Args:
            line: The protocol line; a trailing newline is optional

        Returns:
            True if delivered or skipped, False if parked
        """
        normalized = normalize_line(line)
        if not normalized:
            return True

        if not self.is_connected and not await self._reattach():
            logger.warning("Receiver unavailable, parking line")
            self._pending_message = normalized
            return False

        parked, self._pending_message = self._pending_message, None
        if parked is not None and not await self._write(parked):
            self._pending_message = normalized
            return False

        if not await self._write(normalized):
            self._pending_message = normalized
            return False
        return True

    # =========================================================================
    # Stdin forwarding
    # =========================================================================

    async def _wait_out_eof(self, stdin: AsyncLineReader, eof_count: int) -> bool:
        """Pause after an EOF; returns False when EOFs have persisted too long."""
        if eof_count > self.max_stdin_eof_retries:
            logger.info("stdin closed for good after %d retries", self.max_stdin_eof_retries)
            return False

        logger.warning(
            "EOF on stdin (%d/%d), waiting %.1fs",
            eof_count,
            self.max_stdin_eof_retries,
            self.stdin_eof_retry_delay,
        )
        await asyncio.sleep(self.stdin_eof_retry_delay)
        if isinstance(stdin, ThreadedLineReader):
            stdin.restart()
        return True

    async def _forward_stdin(self, stdin: AsyncLineReader) -> None:
        eof_count = 0
        while True:
            raw = await stdin.readline()
            if not raw:
                eof_count += 1
                if not await self._wait_out_eof(stdin, eof_count):
                    return
                continue

            eof_count = 0
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                logger.error("Skipping undecodable line from game: %s", e)
                continue
            await self.send_line(line)

    async def run(self, stdin: AsyncLineReader) -> None:
        """Connect, then forward lines from ``stdin`` until it is exhausted."""
        if not await self.connect_with_retry():
            return

        try:
            await self._forward_stdin(stdin)
        except asyncio.CancelledError:
            logger.info("Relay cancelled")
        finally:
            await self.close()
        logger.info("Relay finished, %d lines sent", self.sent_count)


class ThreadedLineReader:
    """Reads a blocking binary stream on a daemon thread.

    Needed on Windows, where the Proactor event loop cannot attach a pipe
    reader to stdin. Lines are handed to the event loop through a queue;
    end of stream is signalled with empty bytes. The reader can be
    restarted after it stops.
    """

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self._stream = stream
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._alive = threading.Event()

    def _put(self, data: bytes) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, data)

    def _pump(self) -> None:
        stream = self._stream if self._stream is not None else sys.stdin.buffer
        try:
            for line in iter(stream.readline, b""):
                self._put(line)
        except (OSError, ValueError) as e:
            logger.error("Line reader stopped: %s: %s", type(e).__name__, e)
        finally:
            self._alive.clear()
            self._put(b"")

    def _spawn(self) -> None:
        self._alive.set()
        threading.Thread(target=self._pump, name="LineReader", daemon=True).start()

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._spawn()

    def is_running(self) -> bool:
        return self._alive.is_set()

    def restart(self) -> None:
        """Spawn a fresh reader thread if the previous one has stopped."""
        if self.is_running() or self._loop is None:
            return
        logger.info("Restarting line reader")
        # Stale EOF markers belong to the previous thread
        self._queue = asyncio.Queue()
        self._spawn()

    async def readline(self) -> bytes:
        return await self._queue.get()


async def create_stdin_reader() -> AsyncLineReader:
    """Return an async line reader over this process's stdin."""
    loop = asyncio.get_running_loop()
    if sys.platform == "win32":
        threaded = ThreadedLineReader()
        threaded.start(loop)
        return threaded

    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def run_relay(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> int:
    """Relay stdin to the receiver at ``host:port``.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    relay = Relay(host=host, port=port)
    try:
        await relay.run(await create_stdin_reader())
    except OSError as e:
        logger.error("Relay I/O error: %s", e)
        return 1
    return 0
