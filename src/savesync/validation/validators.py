"""
Value validation functions.

Used by the configuration layer and the command line. Every validator
returns the cleaned value or raises ValidationError naming the field.
"""

import hashlib
import re
from typing import Any, List, NoReturn, Optional, Union

from .exceptions import ValidationError

# rclone remote: "<name>:<path>", the name may not start with '-' or space
_REMOTE_PATTERN = re.compile(r'^[A-Za-z0-9_.][A-Za-z0-9_. -]*:.*$')

# Game names become remote folder names
_RESERVED_NAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')

Number = Union[int, float]


def _fail(field_name: str, message: str, value: Any) -> NoReturn:
    raise ValidationError(f"{field_name} {message}", field_name=field_name, value=value)


def _check_bounds(number: Number, min_value: Number, max_value: Optional[Number], field_name: str, value: Any) -> None:
    if number < min_value:
        _fail(field_name, f"must be >= {min_value}, got {number}", value)
    if max_value is not None and number > max_value:
        _fail(field_name, f"must be <= {max_value}, got {number}", value)


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate an integer within ``[min_value, max_value]``.

    Numeric strings are accepted (``"7"``); booleans are not, even though
    Python treats them as integers.
    """
    if isinstance(value, bool):
        _fail(field_name, f"must be a valid integer, got {value}", value)
    try:
        number = int(value)
    except (ValueError, TypeError):
        _fail(field_name, f"must be a valid integer, got {value}", value)
    _check_bounds(number, min_value, max_value, field_name, value)
    return number


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """Validate a number (seconds, minutes, megabytes) within bounds."""
    try:
        number = float(value)
    except (ValueError, TypeError):
        _fail(field_name, f"must be a valid number, got {value}", value)
    _check_bounds(number, min_value, max_value, field_name, value)
    return number


def validate_game_name(
    name: str,
    existing_names: Optional[List[str]] = None,
    field_name: str = "game_name"
) -> str:
    """
    Validate a game name.

    Names are used as remote folder names, so path separators and control
    characters are rejected.

    Args:
        name: Game name to validate
        existing_names: Names already configured (for the uniqueness check)
        field_name: Name of the field being validated

    Returns:
        The name with surrounding whitespace removed
    """
    if not isinstance(name, str) or not name.strip():
        _fail(field_name, "must be a non-empty string", name)

    name = name.strip()
    if _RESERVED_NAME_CHARS.search(name):
        _fail(field_name, f"must not contain path separators or reserved characters: {name}", name)
    if existing_names and name in existing_names:
        _fail(field_name, f"must be unique, '{name}' already exists", name)
    return name


def validate_remote(remote: str, field_name: str = "remote") -> str:
    """Validate an rclone remote ("name:path"); a trailing slash is dropped."""
    if not isinstance(remote, str) or not _REMOTE_PATTERN.match(remote):
        _fail(field_name, f"must look like 'remote:path', got {remote!r}", remote)
    return remote.rstrip("/")


def validate_hash_algorithm(name: Any, field_name: str = "hash_algorithm") -> str:
    """
    Validate a hashlib algorithm usable for manifest checksums.

    Only algorithms every Python build provides are accepted, and only
    fixed-length ones: a ``shake_*`` digest needs a length argument.
    """
    algorithm = validate_enum_choice(
        name,
        valid_choices=sorted(hashlib.algorithms_guaranteed),
        field_name=field_name,
        case_sensitive=False,
    ).lower()
    if algorithm.startswith("shake_"):
        _fail(field_name, "must be a fixed-length digest", algorithm)
    return algorithm


def validate_string_list(value: Any, field_name: str = "value") -> List[str]:
    """Validate a list of non-empty strings; a missing value is empty."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        _fail(field_name, "must be a list of non-empty strings", value)
    return list(value)


def validate_enum_choice(
    value: Any,
    valid_choices: Optional[List[str]] = None,
    field_name: str = "value",
    case_sensitive: bool = True
) -> str:
    """
    Validate that a value is one of the allowed choices.

    Returns:
        The matching choice, spelled as in ``valid_choices``
    """
    if not valid_choices:
        _fail(field_name, "has no valid choices", value)

    text = str(value)
    for choice in valid_choices:
        if choice == text or (not case_sensitive and choice.lower() == text.lower()):
            return choice
    _fail(field_name, f"must be one of {valid_choices}, got {value}", value)
