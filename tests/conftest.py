"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import socket
import sys
from pathlib import Path

import pytest

# Add both server and bridge src directories to Python path
# This enables integration tests to import from both packages
_repo_root = Path(__file__).parent.parent
_server_src = _repo_root / "server" / "src"
_bridge_src = _repo_root / "bridge" / "src"

if str(_server_src) not in sys.path:
    sys.path.insert(0, str(_server_src))
if str(_bridge_src) not in sys.path:
    sys.path.insert(0, str(_bridge_src))


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sessions_dir(fixtures_dir: Path) -> Path:
    """Return the path to the recorded session fixtures."""
    return fixtures_dir / "sessions"


@pytest.fixture
def free_port() -> int:
    """Return a loopback port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
