"""Replay recorded sessions without a game or a network.

Provides:
- ReplayProvider: Feeds session files through a ProtocolDispatcher
- ReplayError: Exception for replay problems

A session file holds protocol lines exactly as the game sends them. Blank
lines and lines starting with ``#`` are skipped. The dispatcher sees the
same callback sequence a live connection would produce: connect, each line
followed by a tick, then disconnect.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gamecon.config import Config
    from gamecon.dispatcher import ProtocolDispatcher

logger = logging.getLogger(__name__)

SESSION_GLOB = "*.txt"
COMMENT_PREFIX = "#"


class ReplayError(Exception):
    """Exception raised for replay errors."""

    pass


def read_session(path: Path) -> list[str]:
    """Read the protocol lines of a session file.

    Args:
        path: Session file

    Returns:
        Lines to replay, comments and blank lines removed

    Raises:
        ReplayError: If the file cannot be read
    """
    if not path.is_file():
        raise ReplayError(f"Session file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReplayError(f"Failed to read session file {path}: {e}") from e

    lines = []
    for raw in text.splitlines():
        line = raw.strip()
        if line and not line.startswith(COMMENT_PREFIX):
            lines.append(line)
    return lines


class ReplayProvider:
    """Plays session files through a dispatcher.

    Usage:
        provider = ReplayProvider(dispatcher, Path("sessions/level1.txt"))
        provider.run()
    """

    def __init__(
        self,
        dispatcher: ProtocolDispatcher,
        path: Path | None = None,
        delay_ms: int = 15,
    ) -> None:
        """Initialize the replay provider.

        Args:
            dispatcher: Dispatcher receiving the replayed session
            path: Session file, or directory of session files
            delay_ms: Delay in milliseconds after each replayed line
        """
        self._dispatcher = dispatcher
        self._path = path
        self._delay_ms = delay_ms
        self._stop_event = threading.Event()

    @classmethod
    def from_config(cls, dispatcher: ProtocolDispatcher, config: Config) -> ReplayProvider:
        return cls(
            dispatcher,
            path=Path(config.replay_file) if config.replay_file else None,
            delay_ms=config.replay_delay_ms,
        )

    def stop(self) -> None:
        """Abandon the replay after the current line."""
        self._stop_event.set()

    def run(self) -> int:
        """Replay the configured path.

        A file is replayed as one session; a directory replays each session
        file in name order.

        Returns:
            Number of lines replayed

        Raises:
            ReplayError: If the path is unset, missing or unreadable
        """
        if self._path is None:
            raise ReplayError("No replay path configured")

        if not self._path.exists():
            raise ReplayError(f"Replay path not found: {self._path}")

        if self._path.is_file():
            return self.replay_file(self._path)
        if self._path.is_dir():
            return self.replay_directory(self._path)
        raise ReplayError(f"Replay path is neither file nor directory: {self._path}")

    def replay_directory(self, directory: Path) -> int:
        if not directory.is_dir():
            raise ReplayError(f"Path is not a directory: {directory}")

        files = sorted(directory.glob(SESSION_GLOB))
        if not files:
            logger.debug(f"No session files found in {directory}")
            return 0

        logger.info(f"Replaying {len(files)} sessions from {directory}")
        total = 0
        for path in files:
            if self._stop_event.is_set():
                break
            total += self.replay_file(path)
        return total

    def replay_file(self, path: Path) -> int:
        """Replay one session file as one connection."""
        lines = read_session(path)
        logger.info(f"Replaying {len(lines)} lines from {path.name}")
        return self.replay_lines(lines)

    def replay_lines(self, lines: list[str]) -> int:
        """Replay protocol lines as one connection.

        Returns:
            Number of lines replayed
        """
        dispatcher = self._dispatcher
        delay = self._delay_ms / 1000.0
        count = 0

        dispatcher.handle_connect()
        try:
            for line in lines:
                if self._stop_event.is_set():
                    break
                dispatcher.handle_line(line)
                dispatcher.tick()
                count += 1
                if delay > 0:
                    self._stop_event.wait(delay)
        finally:
            dispatcher.handle_disconnect()

        return count
