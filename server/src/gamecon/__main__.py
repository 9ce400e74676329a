"""Entry point for the gamecon receiver.

Usage:
    python -m gamecon

Environment Variables:
    GAMECON_HOST: Listen address for the game connection (default: 127.0.0.1)
    GAMECON_PORT: Listen port for the game connection (default: 60000)
    GAMECON_LOG_LEVEL: Logging level (default: INFO)
    GAMECON_MONITOR: Run the MCP monitor in the foreground (default: false)
    GAMECON_HTTP_PORT: HTTP port for the MCP monitor (default: 8000)
    GAMECON_TRANSPORT: MCP transport type: 'http' or 'stdio' (default: http)
    GAMECON_REPLAY_MODE: Replay a recorded session instead of listening
    GAMECON_REPLAY_FILE: Session file or directory for replay mode
    GAMECON_REPLAY_DELAY_MS: Delay between replayed lines (default: 15)

See config.py for the engine timing settings.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading

from pydantic import ValidationError

from gamecon import __version__
from gamecon.config import Config, get_config, set_config
from gamecon.connection import BindError, ShutdownTimeout
from gamecon.dispatcher import ProtocolDispatcher
from gamecon.models import EventRecord
from gamecon.replay import ReplayError, ReplayProvider
from gamecon.server import GameEngineServer
from gamecon.state import SessionTracker

logger = logging.getLogger(__name__)


def _log_event(event: EventRecord) -> None:
    logger.debug(
        "%s %s[%d].%s = %r",
        event.kind.value,
        event.object,
        event.instance_id,
        event.param,
        event.value,
    )


def run_replay(config: Config) -> int:
    """Replay the configured session file(s) and print the final summary.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    tracker = SessionTracker()
    tracker.on_event(_log_event)
    provider = ReplayProvider.from_config(ProtocolDispatcher(tracker), config)

    try:
        count = provider.run()
    except ReplayError as e:
        logger.error(f"Replay error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        provider.stop()
        return 0

    summary = tracker.state.snapshot()
    print(
        f"Replayed {count} lines: {summary['message_count']} messages, "
        f"{summary['tick_count']} ticks"
    )
    return 0


def _wait_for_interrupt() -> None:
    """Block the main thread until Ctrl+C."""
    threading.Event().wait()


def _serve(config: Config, server: GameEngineServer, tracker: SessionTracker) -> int:
    use_stdio = config.transport == "stdio"
    out = sys.stderr if use_stdio else sys.stdout

    try:
        if config.monitor:
            from gamecon.monitor import run_monitor

            if not use_stdio:
                print(f"MCP monitor running at http://{config.host}:{config.http_port}/mcp")
            asyncio.run(run_monitor(config, server, tracker))
        else:
            print("Press Ctrl+C to stop.", file=out)
            _wait_for_interrupt()
        return 0

    except KeyboardInterrupt:
        if not use_stdio:
            print("\nServer stopped.")
        return 0
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run_server(config: Config) -> int:
    """Run the engine, optionally with the MCP monitor in the foreground.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    out = sys.stderr if config.transport == "stdio" else sys.stdout

    tracker = SessionTracker()
    tracker.on_event(_log_event)
    server = GameEngineServer(tracker, config)

    try:
        server.start()
    except BindError as e:
        logger.error(f"Failed to start engine: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    host, port = server.address or (config.host, config.port)
    print(f"Listening for the game on {host}:{port}", file=out)

    exit_code = _serve(config, server, tracker)

    try:
        server.stop()
    except ShutdownTimeout as e:
        logger.critical(f"{e}")
        return 1
    return exit_code


def main() -> int:
    """Main entry point."""
    try:
        config = get_config()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    config.setup_logging()
    set_config(config)

    use_stdio = config.transport == "stdio"
    out = sys.stderr if use_stdio else sys.stdout

    print(f"gamecon receiver v{__version__}", file=out)
    print("Configuration:", file=out)
    print(f"  Game: {config.host}:{config.port}", file=out)
    print(f"  Tick: {config.tick_interval_ms} ms", file=out)
    print(f"  Log level: {config.log_level}", file=out)
    if config.monitor:
        print(f"  Monitor: {config.transport} (HTTP port {config.http_port})", file=out)

    if config.replay_mode:
        print(f"  Replay mode: enabled (file: {config.replay_file})", file=out)
        return run_replay(config)

    return run_server(config)


if __name__ == "__main__":
    sys.exit(main())
