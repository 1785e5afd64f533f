"""
Input Validators - checks applied when rules and categories enter the store.

Parse at the boundary: a rule edit or a loaded document is validated once,
before it reaches the store, so the resolution pipeline can trust every
rule it reads (non-empty principle, string ids, one-line category names).
"""

import logging
import re

logger = logging.getLogger(__name__)

CATEGORY_NAME_PATTERN = re.compile(r"^[^\x00-\x1f\x7f]+$")


class ValidationError(ValueError):
    """Raised when input validation fails. Contains a user-friendly message."""

    pass


def validate_not_empty(value: str, field_name: str = "input") -> str:
    """Validate that a string is not empty or whitespace-only."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")
    return value.strip()


def validate_length(
    value: str,
    field_name: str = "input",
    min_length: int = 0,
    max_length: int = 100_000,
) -> str:
    """Validate string length is within bounds."""
    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


def validate_category_name(value: str, field_name: str = "category") -> str:
    """Validate a category name: non-empty, one line, no control characters."""
    value = validate_not_empty(value, field_name)
    if not CATEGORY_NAME_PATTERN.match(value):
        raise ValidationError(
            f"{field_name} cannot contain control characters (got {value!r})"
        )
    return value


def validate_in_choices(value: str, choices: list[str], field_name: str = "value") -> str:
    """Validate that a value is one of the allowed choices."""
    if value not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")
    return value


def validate_string_list(
    items: list,
    field_name: str = "list",
    max_items: int = 100,
) -> list[str]:
    """Validate a list of non-empty strings, stripping whitespace."""
    if not isinstance(items, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list of strings")
    if len(items) > max_items:
        raise ValidationError(
            f"{field_name} cannot have more than {max_items} items (got {len(items)})"
        )
    cleaned = []
    for item in items:
        if not isinstance(item, str):
            raise ValidationError(f"{field_name} must contain only strings (got {item!r})")
        if item.strip():
            cleaned.append(item.strip())
    return cleaned
