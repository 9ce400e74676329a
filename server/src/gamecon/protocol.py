"""Protocol constants and message decoding.

Handles:
- Protocol and engine defaults
- Whitespace tokenizing that keeps double-quoted tokens together
- Best-effort numeric parsing (malformed numbers decode to zero)
- Identity splitting and typed decoding of ``<name> <type> <content>``

Every function here is pure: decoding the same fields twice always gives
the same result.
"""

from __future__ import annotations

import re

from gamecon.models import Collision, DecodedMessage, Identity, MessageKind, Vector3

# =============================================================================
# Protocol Constants
# =============================================================================

DEFAULT_PORT: int = 60000
DEFAULT_TICK_INTERVAL_MS: int = 15
DEFAULT_ACCEPT_POLL_MS: int = 200
DEFAULT_READ_BUFFER_SIZE: int = 32768
DEFAULT_SHUTDOWN_GRACE_MS: int = 4000
DEFAULT_MAX_LINE_LENGTH: int = 64 * 1024

# Message type characters (upper-case variants carry a leading instance id)
TYPE_BOOL: str = "b"
TYPE_INT: str = "i"
TYPE_REAL: str = "r"
TYPE_STRING: str = "s"
TYPE_VECTOR: str = "v"
TYPE_COLLISION: str = "c"

# Integer params that announce object lifetime instead of a value
ACTION_CREATE: str = "create"
ACTION_DESTROY: str = "destroy"

QUOTE_CHARS: str = "\"'"

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


# =============================================================================
# Tokenizing
# =============================================================================


def tokenize(text: str) -> list[str]:
    """Split text on whitespace, keeping double-quoted runs as one token.

    Quote characters stay in the token. An unterminated quote runs to the
    end of the text.

    Examples:
        >>> tokenize('light.on B "-9294 0"')
        ['light.on', 'B', '"-9294 0"']
    """
    tokens: list[str] = []
    current: list[str] = []
    in_quotes = False

    for ch in text:
        if ch == '"':
            in_quotes = not in_quotes
            current.append(ch)
        elif ch.isspace() and not in_quotes:
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(ch)

    if current:
        tokens.append("".join(current))
    return tokens


def unquote(text: str) -> str:
    """Remove one leading and one trailing quote character, if present."""
    if text and text[0] in QUOTE_CHARS:
        text = text[1:]
    if text and text[-1] in QUOTE_CHARS:
        text = text[:-1]
    return text


def split_fields(line: str) -> tuple[str, str, str]:
    """Split a message line into its (name, type, content) fields.

    Missing fields come back as empty strings; tokens past the third are
    ignored.
    """
    tokens = tokenize(line)
    tokens.extend([""] * (3 - len(tokens)))
    return tokens[0], tokens[1], tokens[2]


def split_name(name: str) -> tuple[str, str]:
    """Split a message name into (object, param) at the last dot.

    A name without a dot is both the object and the param.
    """
    if "." in name:
        obj, _, param = name.rpartition(".")
        return obj, param
    return name, name


# =============================================================================
# Best-effort numeric parsing
# =============================================================================


def parse_int(token: str) -> int:
    """Parse the leading integer of a token, or 0 if there is none.

    Examples:
        >>> parse_int("-9294")
        -9294
        >>> parse_int("12abc")
        12
        >>> parse_int("abc")
        0
    """
    match = _INT_PREFIX.match(token)
    return int(match.group(1)) if match else 0


def parse_float(token: str) -> float:
    """Parse the leading decimal number of a token, or 0.0 if there is none."""
    match = _FLOAT_PREFIX.match(token)
    return float(match.group(1)) if match else 0.0


# =============================================================================
# Decoding
# =============================================================================


class _Cursor:
    """Walks content tokens; reading past the end yields empty strings."""

    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        self.index = 0

    def next(self) -> str:
        token = self.tokens[self.index] if self.index < len(self.tokens) else ""
        self.index += 1
        return token


def decode_message(name: str, type_: str, content: str) -> DecodedMessage:
    """Decode the three fields of a message line.

    Args:
        name: Message name, ``object.param`` or a bare name
        type_: Type code; only its first character is significant
        content: Content field, optionally wrapped in quotes

    Returns:
        The decoded message. Unknown type codes decode to an OTHER message
        carrying the raw fields.
    """
    type_char = type_[:1]
    interior = unquote(content)
    cursor = _Cursor(tokenize(interior))

    instance_id = 0
    if type_char.isupper():
        instance_id = parse_int(cursor.next())
        type_char = type_char.lower()

    obj, param = split_name(name)

    def typed(kind: MessageKind, value: object, iid: int = instance_id) -> DecodedMessage:
        return DecodedMessage(
            kind=kind,
            name=name,
            type=type_,
            content=content,
            identity=Identity(object=obj, instance_id=iid, param=param),
            value=value,
        )

    if type_char == TYPE_BOOL:
        return typed(MessageKind.BOOL, parse_int(cursor.next()) != 0)

    if type_char == TYPE_INT:
        data = parse_int(cursor.next())
        if param == ACTION_CREATE:
            return typed(MessageKind.CREATE, None, iid=data)
        if param == ACTION_DESTROY:
            return typed(MessageKind.DESTROY, None, iid=data)
        return typed(MessageKind.INT, data)

    if type_char == TYPE_REAL:
        return typed(MessageKind.REAL, parse_float(cursor.next()))

    if type_char == TYPE_STRING:
        return typed(MessageKind.STRING, cursor.next())

    if type_char == TYPE_VECTOR:
        x = parse_float(cursor.next())
        y = parse_float(cursor.next())
        z = parse_float(cursor.next())
        return typed(MessageKind.VECTOR, Vector3(x=x, y=y, z=z))

    if type_char == TYPE_COLLISION:
        other_name = cursor.next()
        velocity = parse_float(cursor.next())
        return typed(MessageKind.HIT, Collision(other_name=other_name, velocity=velocity))

    return DecodedMessage(kind=MessageKind.OTHER, name=name, type=type_, content=content)


def decode_line(line: str) -> DecodedMessage:
    """Split a raw line into fields and decode it."""
    return decode_message(*split_fields(line))
