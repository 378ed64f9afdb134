"""
Idempotency key generation utilities.

Idempotency keys ensure that the same count line always produces the same
inventory ledger entry, even under retries and concurrent posting attempts.
"""

from uuid import UUID


def generate_idempotency_key(
    producer: str,
    session_id: UUID | str,
    material_id: UUID | str,
) -> str:
    """
    Generate an idempotency key for one posted count line.

    Format: producer:session_id:material_id

    The key is stored on the InventoryLedgerEntry and has a unique
    constraint, so a session can never post the same material twice.

    Example:
        >>> generate_idempotency_key("cycle_count", session_uuid, material_uuid)
        "cycle_count:550e8400-...:9f1c2d3e-..."
    """
    return f"{producer}:{session_id}:{material_id}"


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Parse an idempotency key into its components.

    Returns:
        Tuple of (producer, session_id, material_id).

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 2)
    if len(parts) != 3:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], parts[1], parts[2]
