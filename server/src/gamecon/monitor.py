"""FastMCP monitor server.

Exposes the tracked game session read-only over MCP.

Key responsibilities:
- Share one SessionTracker between the engine thread and MCP handlers
- Start the engine in the lifespan when the caller has not already done so
- Register the monitor tools and resources

Configuration is managed via the config module. See config.py for details.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial
from typing import Any

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from gamecon import tools as tool_impl
from gamecon.config import Config, get_config
from gamecon.server import GameEngineServer
from gamecon.state import SessionTracker

logger = logging.getLogger(__name__)

SERVER_NAME = "gamecon"


# ==============================================================================
# Application context
# ==============================================================================


@dataclass
class AppContext:
    """Application context shared across the MCP server lifecycle.

    Attributes:
        tracker: SessionTracker receiving the engine's callbacks
        server: Running engine (None when the session is fed some other way)
        config: Application configuration
    """

    tracker: SessionTracker
    server: GameEngineServer | None
    config: Config


# Type alias for MCP Context with our AppContext
MCPContext = Context[ServerSession, AppContext]

# Set by the CLI when the engine is started before the MCP server runs
_pre_initialized_context: AppContext | None = None

# Context of the running lifespan, for handlers without a request context
_active_context: AppContext | None = None


def set_pre_initialized_context(ctx: AppContext | None) -> None:
    """Set the context the lifespan should use instead of starting an engine.

    Args:
        ctx: The pre-initialized context, or None to clear it
    """
    global _pre_initialized_context
    _pre_initialized_context = ctx


def get_pre_initialized_context() -> AppContext | None:
    return _pre_initialized_context


def get_active_context() -> AppContext:
    """Get the context of the running lifespan.

    Raises:
        RuntimeError: If no lifespan is running
    """
    if _active_context is None:
        raise RuntimeError("Monitor context is only available while the server runs")
    return _active_context


@asynccontextmanager
async def app_lifespan(
    server: FastMCP,  # noqa: ARG001 - Required by FastMCP lifespan signature
    config: Config | None = None,
) -> AsyncIterator[AppContext]:
    """Manage application lifecycle with type-safe context.

    Uses the pre-initialized context if one is set; its engine is owned by
    the caller. Otherwise starts an engine with a fresh SessionTracker and
    stops it on exit.

    Args:
        server: FastMCP server instance (required by lifespan protocol)
        config: Application configuration (default: from get_config())

    Yields:
        AppContext containing tracker, server and config
    """
    global _active_context

    pre_ctx = get_pre_initialized_context()
    if pre_ctx is not None:
        logger.info("Using pre-initialized context (engine already running)")
        _active_context = pre_ctx
        try:
            yield pre_ctx
        finally:
            _active_context = None
        return

    cfg = config if config is not None else get_config()
    tracker = SessionTracker()
    engine = GameEngineServer(tracker, cfg)
    engine.start()
    logger.info(f"Engine started on {cfg.host}:{cfg.port} (monitor lifespan)")

    ctx = AppContext(tracker=tracker, server=engine, config=cfg)
    _active_context = ctx
    try:
        yield ctx
    finally:
        _active_context = None
        if engine.is_running:
            engine.stop()
            logger.info("Engine stopped")


def create_monitor(config: Config | None = None) -> FastMCP:
    """Create a FastMCP server with the monitor tools and resources registered.

    Args:
        config: Application configuration (default: from get_config() at startup)
    """
    kwargs: dict[str, Any] = {}
    if config is not None:
        kwargs.update(host=config.host, port=config.http_port, log_level=config.log_level)

    server = FastMCP(
        name=SERVER_NAME,
        lifespan=partial(app_lifespan, config=config),
        **kwargs,
    )
    register_handlers(server)
    return server


def _error(message: str) -> str:
    return json.dumps({"success": False, "error": message})


def register_handlers(server: FastMCP) -> None:
    """Register all monitor tools and resources on a server.

    Args:
        server: FastMCP server instance to register handlers on
    """

    # ==========================================================================
    # MCP Tool Registration
    # ==========================================================================

    @server.tool()
    async def get_session(ctx: MCPContext) -> str:
        """Get the session summary.

        Returns whether a game is connected, how many connections, ticks and
        messages have been seen, and how many objects are tracked.

        Returns:
            JSON string of the session summary.
        """
        app_ctx = ctx.request_context.lifespan_context
        return json.dumps(tool_impl.get_session(app_ctx.tracker.state))

    @server.tool()
    async def list_objects(ctx: MCPContext) -> str:
        """List every game object currently tracked.

        Returns:
            JSON array of object records (name, instance id, vectors, params).
        """
        app_ctx = ctx.request_context.lifespan_context
        return json.dumps(tool_impl.list_objects(app_ctx.tracker.state))

    @server.tool()
    async def get_object(ctx: MCPContext, name: str, instance_id: int = 0) -> str:
        """Get one tracked game object.

        Args:
            name: Object name as sent by the game
            instance_id: Instance id, 0 for objects without one

        Returns:
            JSON string of the object record, or an error.
        """
        app_ctx = ctx.request_context.lifespan_context
        try:
            return json.dumps(
                tool_impl.get_object(app_ctx.tracker.state, name, instance_id)
            )
        except tool_impl.ToolError as e:
            return _error(str(e))

    @server.tool()
    async def get_recent_events(ctx: MCPContext, limit: int = 20) -> str:
        """Get the most recent game events, oldest first.

        Args:
            limit: Number of events to return (1-200)

        Returns:
            JSON array of events, or an error.
        """
        app_ctx = ctx.request_context.lifespan_context
        try:
            return json.dumps(
                tool_impl.get_recent_events(app_ctx.tracker.state, limit)
            )
        except tool_impl.ToolError as e:
            return _error(str(e))

    # ==========================================================================
    # MCP Resource Registration
    # ==========================================================================

    @server.resource("gamecon://session")
    def session_resource() -> str:
        """Current session summary."""
        state = get_active_context().tracker.state
        return json.dumps(tool_impl.get_session(state))

    @server.resource("gamecon://objects")
    def objects_resource() -> str:
        """All tracked game objects."""
        state = get_active_context().tracker.state
        return json.dumps(tool_impl.list_objects(state))


async def run_monitor(config: Config, server: GameEngineServer, tracker: SessionTracker) -> None:
    """Run the monitor in the foreground over an already running engine.

    Args:
        config: Application configuration
        server: The running engine
        tracker: Tracker attached to the engine
    """
    set_pre_initialized_context(AppContext(tracker=tracker, server=server, config=config))
    try:
        monitor = create_monitor(config)
        if config.transport == "stdio":
            logger.info("Starting MCP monitor with stdio transport")
            await monitor.run_stdio_async()
        else:
            logger.info(f"Starting MCP monitor on http://{config.host}:{config.http_port}")
            await monitor.run_streamable_http_async()
    finally:
        set_pre_initialized_context(None)
