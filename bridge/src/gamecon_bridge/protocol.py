"""Protocol constants and message encoding for the bridge.

Handles:
- Protocol constants (host, port, reconnect and stdin retry settings)
- Encoding typed values into ``<name> <type> <content>`` lines
- Line validation and framing
"""

from __future__ import annotations

from collections.abc import Sequence

# =============================================================================
# Protocol Constants
# =============================================================================

# Default receiver connection settings
DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 60000

# Reconnection settings
DEFAULT_RECONNECT_DELAY: float = 1.0  # seconds
DEFAULT_MAX_RECONNECT_ATTEMPTS: int = 5
MAX_RECONNECT_BACKOFF: float = 10.0  # seconds

# Stdin EOF retry settings
DEFAULT_STDIN_EOF_RETRY_DELAY: float = 1.0  # seconds
DEFAULT_MAX_STDIN_EOF_RETRIES: int = 3

# Type characters; the upper-case form announces a leading instance id
TYPE_BOOL: str = "b"
TYPE_INT: str = "i"
TYPE_REAL: str = "r"
TYPE_STRING: str = "s"
TYPE_VECTOR: str = "v"
TYPE_COLLISION: str = "c"

VALID_TYPES: frozenset[str] = frozenset("birsvc")


# =============================================================================
# Encoding
# =============================================================================


def _check_token(value: str, what: str) -> None:
    if not value:
        raise ValueError(f"{what} must not be empty")
    if any(ch.isspace() or ch in "\"'" for ch in value):
        raise ValueError(f"{what} must not contain whitespace or quotes: {value!r}")


def _format_real(value: float) -> str:
    return repr(float(value))


def format_message(
    name: str,
    type_char: str,
    values: Sequence[str],
    instance_id: int | None = None,
    *,
    quote: bool = False,
) -> str:
    """Build one protocol line.

    Args:
        name: Message name (``object.param`` or a bare name)
        type_char: One of b, i, r, s, v, c
        values: Already-formatted content tokens
        instance_id: Instance id; when given, the type is sent upper-case
            and the id leads the content
        quote: Always quote the content (multi-token content is quoted
            regardless)

    Returns:
        The line, newline-terminated

    Raises:
        ValueError: If the name or type is not encodable
    """
    _check_token(name, "Message name")
    if type_char.lower() not in VALID_TYPES or len(type_char) != 1:
        raise ValueError(f"Unknown message type: {type_char!r}")

    tokens = list(values)
    type_code = type_char.lower()
    if instance_id is not None:
        tokens.insert(0, str(int(instance_id)))
        type_code = type_code.upper()

    content = " ".join(tokens)
    if quote or len(tokens) != 1 or not content:
        content = f'"{content}"'
    return f"{name} {type_code} {content}\n"


def bool_message(name: str, flag: bool, instance_id: int | None = None) -> str:
    return format_message(name, TYPE_BOOL, ["1" if flag else "0"], instance_id)


def int_message(name: str, value: int, instance_id: int | None = None) -> str:
    return format_message(name, TYPE_INT, [str(int(value))], instance_id)


def real_message(name: str, value: float, instance_id: int | None = None) -> str:
    return format_message(name, TYPE_REAL, [_format_real(value)], instance_id)


def string_message(name: str, value: str, instance_id: int | None = None) -> str:
    """Encode a string value.

    The receiver reads a single token, so the value may not contain
    whitespace or quotes. An empty value is sent as ``""``.
    """
    if value:
        _check_token(value, "String value")
    values = [value] if value else []
    return format_message(name, TYPE_STRING, values, instance_id, quote=True)


def vector_message(
    name: str, x: float, y: float, z: float, instance_id: int | None = None
) -> str:
    return format_message(
        name,
        TYPE_VECTOR,
        [_format_real(x), _format_real(y), _format_real(z)],
        instance_id,
    )


def collision_message(
    name: str, other_name: str, velocity: float = 0.0, instance_id: int | None = None
) -> str:
    """Encode a hit between ``name`` and ``other_name``."""
    _check_token(other_name, "Other object name")
    return format_message(
        name, TYPE_COLLISION, [other_name, _format_real(velocity)], instance_id
    )


def create_message(object_name: str, instance_id: int = 0) -> str:
    """Announce a new game object."""
    return int_message(f"{object_name}.create", instance_id)


def destroy_message(object_name: str, instance_id: int = 0) -> str:
    """Announce that a game object was removed."""
    return int_message(f"{object_name}.destroy", instance_id)


# =============================================================================
# Message Validation
# =============================================================================


def is_valid_message(line: str) -> bool:
    """Check if a line is a valid message to relay.

    Empty lines and whitespace-only lines are not valid messages.

    Args:
        line: The line to check

    Returns:
        True if the line is a valid message to relay
    """
    return bool(line.strip())


def normalize_line(line: str) -> str:
    """Normalize a line for transmission.

    Ensures the line ends with exactly one newline.

    Args:
        line: The line to normalize

    Returns:
        The line with a trailing newline, or "" for a blank line
    """
    if not is_valid_message(line):
        return ""
    return line.rstrip("\n\r") + "\n"
