"""Monitor query implementations.

Read-only views of a SessionState, used by the MCP monitor:
- get_session: Session counters
- list_objects: Every tracked game object
- get_object: One object by name and instance id
- get_recent_events: The tail of the event log
"""

from __future__ import annotations

from typing import Any

from gamecon.state import SessionState

MAX_EVENT_LIMIT = 200


class ToolError(Exception):
    """Exception raised when a monitor query fails.

    Used for validation errors and lookups that should be reported back to
    the MCP client as tool errors.
    """

    pass


def get_session(state: SessionState) -> dict[str, Any]:
    """Get the session summary.

    Args:
        state: The session to read

    Returns:
        Connection flag and counters
    """
    return state.snapshot()


def list_objects(state: SessionState) -> list[dict[str, Any]]:
    """List every object currently tracked, ordered by key."""
    return [record.model_dump(mode="json") for record in state.list_objects()]


def get_object(state: SessionState, name: str, instance_id: int = 0) -> dict[str, Any]:
    """Get one tracked object.

    Args:
        state: The session to read
        name: Object name as sent by the game
        instance_id: Instance id (0 for objects without one)

    Returns:
        The object's record

    Raises:
        ToolError: If the name is empty or the object unknown
    """
    if not name:
        raise ToolError("Object name must not be empty.")

    record = state.get_object(name, instance_id)
    if record is None:
        known = len(state.list_objects())
        raise ToolError(
            f"Unknown object: {name} (instance {instance_id}). "
            f"{known} objects are currently tracked."
        )
    return record.model_dump(mode="json")


def get_recent_events(state: SessionState, limit: int = 20) -> list[dict[str, Any]]:
    """Get the most recent events, oldest first.

    Args:
        state: The session to read
        limit: Number of events to return (1 to MAX_EVENT_LIMIT)

    Raises:
        ToolError: If limit is out of range
    """
    if limit < 1 or limit > MAX_EVENT_LIMIT:
        raise ToolError(
            f"Invalid limit: {limit}. Limit must be between 1 and {MAX_EVENT_LIMIT}."
        )
    return [event.model_dump(mode="json") for event in state.recent_events(limit)]
