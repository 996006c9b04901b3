"""
Idempotency key utilities.

A client retrying a workflow command sends the same key; the engine finds
the recorded action for ``(application, command, key)`` and replays its
result instead of applying the command twice.  Actions the engine chains
on behalf of a keyed command derive their keys from it, so a retry of the
outer command also replays the chained ones.
"""

from uuid import UUID


def generate_idempotency_key(
    producer: str,
    command: str,
    request_id: UUID | str,
) -> str:
    """
    Format: producer:command:request_id

    Example:
        >>> generate_idempotency_key("owner-portal", "submit", uuid)
        "owner-portal:submit:550e8400-e29b-41d4-a716-446655440000"
    """
    return f"{producer}:{command}:{request_id}"


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Split a key produced by ``generate_idempotency_key``.

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 2)
    if len(parts) != 3:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], parts[1], parts[2]


def derived_key(parent_key: str | None, command: str) -> str | None:
    """Key for a command chained from a keyed parent command (None stays None)."""
    if parent_key is None:
        return None
    return f"{parent_key}>{command}"
