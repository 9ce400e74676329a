"""Entry point for the gamecon bridge relay.

Usage:
    my_game | python -m gamecon_bridge

Environment Variables:
    GAMECON_BRIDGE_HOST: Receiver host (default: 127.0.0.1)
    GAMECON_BRIDGE_PORT: Receiver port (default: 60000)
    GAMECON_BRIDGE_LOG_LEVEL: Logging level (default: INFO)
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from gamecon_bridge import __version__
from gamecon_bridge.protocol import DEFAULT_HOST, DEFAULT_PORT
from gamecon_bridge.relay import run_relay

ENV_PREFIX = "GAMECON_BRIDGE_"


def _env(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default)


def main() -> int:
    """Main entry point."""
    logging.basicConfig(
        level=getattr(logging, _env("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    host = _env("HOST", DEFAULT_HOST)
    port_text = _env("PORT", str(DEFAULT_PORT))
    if not port_text.isdigit() or not 0 < int(port_text) < 65536:
        print(f"Error: {ENV_PREFIX}PORT must be a port number, got {port_text!r}", file=sys.stderr)
        return 1

    logging.getLogger(__name__).info(
        "gamecon bridge v%s relaying stdin to %s:%s", __version__, host, port_text
    )
    try:
        return asyncio.run(run_relay(host=host, port=int(port_text)))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
