"""Partition and row key validation."""

from typing import Any

from .constants import FORBIDDEN_KEY_CHARACTERS, MAX_KEY_LENGTH, PARTITION_KEY, ROW_KEY
from .exceptions import KeyFormatError


def utf16_length(value: str) -> int:
    """Length of a string in UTF-16 code units."""
    return len(value.encode("utf-16-le")) // 2


def ordinal_key(value: str) -> bytes:
    """Sort key that orders strings by UTF-16 code unit, like the table service."""
    return value.encode("utf-16-be")


def validate_key(value: Any, key_name: str) -> str:
    """
    Validate a single partition or row key.

    Rules:
    - Must be a string
    - At most 512 UTF-16 code units
    - No '/', '\\', '#' or '?' characters

    Raises:
        KeyFormatError: If the key breaks a rule
    """
    if not isinstance(value, str):
        raise KeyFormatError(key_name, value, "key must be a string")

    if utf16_length(value) > MAX_KEY_LENGTH:
        raise KeyFormatError(
            key_name, value[:32] + "...",
            f"key must be at most {MAX_KEY_LENGTH} UTF-16 code units"
        )

    if bad := sorted(FORBIDDEN_KEY_CHARACTERS.intersection(value)):
        raise KeyFormatError(key_name, value, f"key contains forbidden characters {''.join(bad)!r}")

    return value


def validate_keys(partition_key: Any, row_key: Any) -> None:
    """Validate a partition key / row key pair."""
    validate_key(partition_key, PARTITION_KEY)
    validate_key(row_key, ROW_KEY)
