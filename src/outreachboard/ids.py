"""Canonical identifier handling.

Backend ids arrive in several shapes (plain strings, integers, extended-JSON
``{"$oid": ...}`` objects). Every id is reduced to one canonical string so
that activity association is a plain dict lookup.

Creation-ordered ids are 24 hex characters; the first 8 encode the creation
time as big-endian Unix seconds.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

_CREATION_ORDERED_RE = re.compile(r"^[0-9a-fA-F]{24}$")
_TIMESTAMP_HEX_WIDTH = 8


def coerce_id(value: Any) -> Optional[str]:
    """Reduce a raw id value to its canonical string form.

    Args:
        value: String, int, ``{"$oid": ...}``/``{"_id": ...}`` dict, or None

    Returns:
        Stripped string id, or None if the value carries no id
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, dict):
        for nested_key in ("$oid", "_id", "id"):
            if nested_key in value:
                return coerce_id(value[nested_key])
        return None

    if isinstance(value, (int, str)):
        text = str(value).strip()
        return text or None

    return None


def is_creation_ordered_id(contact_id: Optional[str]) -> bool:
    """Check whether an id has the 24-hex creation-ordered shape."""
    return bool(contact_id) and bool(_CREATION_ORDERED_RE.match(contact_id))


def id_timestamp(contact_id: Optional[str]) -> Optional[datetime]:
    """Decode the creation time embedded in a creation-ordered id.

    Args:
        contact_id: Canonical id string

    Returns:
        UTC-aware datetime, or None for ids without an embedded timestamp
    """
    if not is_creation_ordered_id(contact_id):
        return None

    seconds = int(contact_id[:_TIMESTAMP_HEX_WIDTH], 16)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
