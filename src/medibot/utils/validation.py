"""
Input validation utilities for Medibot.

Only basic format checks live here: identifiers must parse as UUIDs and
e-mail addresses must look like e-mail addresses.
"""

import re
from uuid import UUID


class ValidationError(Exception):
    """Caller supplied malformed or missing input."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_EMAIL_LENGTH = 254


def parse_identifier(value: str | UUID | None, field: str = "id") -> UUID:
    """
    Parse an identity reference.

    Args:
        value: Raw identifier, usually a string from a request
        field: Field name used in the error message

    Returns:
        Parsed UUID

    Raises:
        ValidationError: If value is missing or not a valid UUID
    """
    if isinstance(value, UUID):
        return value
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError) as e:
        raise ValidationError(f"Invalid {field}", field=field) from e


def parse_optional_identifier(
    value: str | UUID | None, field: str = "id"
) -> UUID | None:
    """Parse an identifier where empty means "not supplied"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_identifier(value, field)


def validate_email(email: str | None) -> str:
    """Validate and normalize an e-mail address."""
    if email is None or not email.strip():
        raise ValidationError("email is required", field="email")

    normalized = email.strip().lower()
    if len(normalized) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email address", field="email")
    return normalized
