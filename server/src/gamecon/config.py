"""Configuration management for the gamecon receiver.

This module provides centralized configuration with support for:
- Environment variables (primary)
- Sensible defaults for all settings
- Type validation via Pydantic
- Easy testing through config overrides

Environment Variables:
    GAMECON_HOST: Listen address for the game connection (default: 127.0.0.1)
    GAMECON_PORT: Listen port for the game connection (default: 60000)
    GAMECON_TICK_INTERVAL_MS: Tick cadence in milliseconds (default: 15)
    GAMECON_ACCEPT_POLL_MS: Accept-wait poll interval (default: 200)
    GAMECON_READ_BUFFER_SIZE: Bytes read per socket read (default: 32768)
    GAMECON_SHUTDOWN_GRACE_MS: Thread join timeout on stop (default: 4000)
    GAMECON_MAX_LINE_LENGTH: Longest accepted message line (default: 65536)
    GAMECON_LOG_LEVEL: Logging level (default: INFO)
    GAMECON_MONITOR: Run the MCP monitor server (default: false)
    GAMECON_HTTP_PORT: HTTP port for the MCP monitor (default: 8000)
    GAMECON_TRANSPORT: MCP transport, 'http' or 'stdio' (default: http)
    GAMECON_REPLAY_MODE: Replay a recorded session instead of listening
    GAMECON_REPLAY_FILE: Session file or directory for replay mode
    GAMECON_REPLAY_DELAY_MS: Delay between replayed lines (default: 15)

Usage:
    from gamecon.config import get_config, Config

    config = get_config()
    port = config.port

    # For testing, create a custom config
    test_config = Config(port=60001, tick_interval_ms=5)
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gamecon.protocol import (
    DEFAULT_ACCEPT_POLL_MS,
    DEFAULT_MAX_LINE_LENGTH,
    DEFAULT_PORT,
    DEFAULT_READ_BUFFER_SIZE,
    DEFAULT_SHUTDOWN_GRACE_MS,
    DEFAULT_TICK_INTERVAL_MS,
)


class Config(BaseSettings):
    """Application configuration with environment variable support.

    All settings can be overridden via environment variables prefixed with
    GAMECON_. For example, GAMECON_PORT=60001 sets port to 60001.

    Attributes:
        host: Listen address for the game connection
        port: Listen port for the game connection
        tick_interval_ms: Interval between tick callbacks
        accept_poll_ms: How long each accept-wait blocks
        read_buffer_size: Maximum bytes taken per socket read
        shutdown_grace_ms: How long stop() waits for the engine thread
        max_line_length: Longest line accepted before the peer is dropped
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        monitor: Run the MCP monitor alongside the engine
        http_port: Port for the MCP monitor's HTTP transport
        transport: MCP transport type
        replay_mode: Replay a recorded session file instead of listening
        replay_file: Path to a session file or directory of session files
        replay_delay_ms: Delay between replayed lines
    """

    model_config = SettingsConfigDict(
        env_prefix="GAMECON_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Network configuration
    host: str = Field(
        default="127.0.0.1",
        description="Listen address for the game connection",
    )
    port: int = Field(
        default=DEFAULT_PORT,
        ge=1,
        le=65535,
        description="Listen port for the game connection",
    )

    # Engine timing and buffers
    tick_interval_ms: int = Field(
        default=DEFAULT_TICK_INTERVAL_MS,
        ge=1,
        description="Interval between tick callbacks (milliseconds)",
    )
    accept_poll_ms: int = Field(
        default=DEFAULT_ACCEPT_POLL_MS,
        ge=1,
        description="Accept-wait poll interval (milliseconds)",
    )
    read_buffer_size: int = Field(
        default=DEFAULT_READ_BUFFER_SIZE,
        ge=1,
        description="Maximum bytes per socket read",
    )
    shutdown_grace_ms: int = Field(
        default=DEFAULT_SHUTDOWN_GRACE_MS,
        ge=0,
        description="How long stop() waits for the engine thread (milliseconds)",
    )
    max_line_length: int = Field(
        default=DEFAULT_MAX_LINE_LENGTH,
        ge=1,
        description="Longest accepted message line in bytes",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Monitor configuration
    monitor: bool = Field(
        default=False,
        description="Run the MCP monitor server",
    )
    http_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the MCP monitor HTTP server",
    )
    transport: Literal["http", "stdio"] = Field(
        default="http",
        description="MCP transport type: 'http' for streamable-http, 'stdio' for stdio",
    )

    # Replay configuration
    replay_mode: bool = Field(
        default=False,
        description="Replay a recorded session instead of listening",
    )
    replay_file: str | None = Field(
        default=None,
        description="Path to a session file or directory for replay mode",
    )
    replay_delay_ms: int = Field(
        default=DEFAULT_TICK_INTERVAL_MS,
        ge=0,
        description="Delay between replayed lines (milliseconds)",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @model_validator(mode="after")
    def validate_replay_mode(self) -> Config:
        """Validate that replay_file is set when replay_mode is enabled."""
        if self.replay_mode and not self.replay_file:
            raise ValueError(
                "replay_file must be set when replay_mode is enabled. "
                "Set GAMECON_REPLAY_FILE environment variable."
            )
        return self

    def setup_logging(self) -> None:
        """Configure logging based on config settings."""
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    # Engine timings in seconds

    @property
    def tick_interval(self) -> float:
        return self.tick_interval_ms / 1000.0

    @property
    def accept_poll(self) -> float:
        return self.accept_poll_ms / 1000.0

    @property
    def shutdown_grace(self) -> float:
        return self.shutdown_grace_ms / 1000.0

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for logging/debugging."""
        return self.model_dump()


# Module-level singleton instance
_config_instance: Config | None = None


def get_config() -> Config:
    """Get the singleton configuration instance.

    Creates the config on first call, caching it for subsequent calls.
    The config is loaded from environment variables and optional .env file.

    Returns:
        The Config singleton instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def set_config(config: Config) -> None:
    """Set the configuration instance (primarily for testing).

    Args:
        config: Config instance to use as the singleton
    """
    global _config_instance
    _config_instance = config


def reset_config() -> None:
    """Reset the configuration singleton.

    Forces the next get_config() call to reload from environment.
    """
    global _config_instance
    _config_instance = None
