"""
Utility helper functions for timestamps and payload decoding.
"""
import json
from datetime import datetime, timezone
from typing import Any, Optional


def utc_timestamp() -> str:
    """
    Current time as an ISO 8601 UTC string.

    Returns:
        Timestamp such as "2026-01-01T12:00:00.000000Z"
    """
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def safe_json(raw: Optional[bytes]) -> Optional[Any]:
    """
    Decode JSON bytes, returning None for empty or malformed input.

    Args:
        raw: Bytes to decode, or None

    Returns:
        Decoded value or None
    """
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        return None
