"""ULID primary keys for consultbook rows."""

from typing import Optional

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())


def parse_ulid(value: Optional[str]) -> Optional[ulid.ULID]:
    """Parsed ULID, or None for anything that is not a 26-character ULID string."""
    if not isinstance(value, str) or len(value) != 26:
        return None
    try:
        return ulid.ULID.from_str(value)
    except ValueError:
        return None


def is_valid_ulid(value: Optional[str]) -> bool:
    return parse_ulid(value) is not None
