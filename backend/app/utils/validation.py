"""
Validation utilities for input validation and error handling.
"""
import re
from datetime import datetime, timezone
from typing import Any

from .error_handlers import ValidationError

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
USERNAME_PATTERN = r'^[A-Za-z0-9_.-]+$'


def _invalid(field: str, message: str) -> ValidationError:
    return ValidationError(message, errors=[{"field": field, "message": message}])


def validate_email(email: str, field_name: str = "email") -> str:
    """Validate email format."""
    if not email or not isinstance(email, str):
        raise _invalid(field_name, "Email is required")

    email = email.strip().lower()
    if len(email) > 255:
        raise _invalid(field_name, "Email too long (max 255 characters)")

    if not re.match(EMAIL_PATTERN, email):
        raise _invalid(field_name, "Invalid email format")

    return email


def validate_password(password: str) -> None:
    """Validate password strength."""
    if not password or not isinstance(password, str):
        raise _invalid("password", "Password is required")

    if len(password) < 6:
        raise _invalid("password", "Password must be at least 6 characters")

    # bcrypt only looks at the first 72 bytes.
    if len(password.encode("utf-8")) > 72:
        raise _invalid("password", "Password too long (max 72 bytes)")


def validate_username(username: str) -> str:
    value = validate_string_field(username, "username", min_length=2, max_length=50)
    if not re.match(USERNAME_PATTERN, value):
        raise _invalid("username", "Username may only contain letters, digits, '.', '_' and '-'")
    return value


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000,
    required: bool = True,
    pattern: str | None = None,
) -> str | None:
    """Validate a string field with common rules."""
    if value is None:
        if required:
            raise _invalid(field_name, f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise _invalid(field_name, f"{field_name} must be a string")

    value = value.strip()

    if not value:
        if required:
            raise _invalid(field_name, f"{field_name} cannot be empty")
        return None

    if len(value) < min_length:
        raise _invalid(field_name, f"{field_name} must be at least {min_length} characters")

    if len(value) > max_length:
        raise _invalid(field_name, f"{field_name} must not exceed {max_length} characters")

    if pattern and not re.match(pattern, value):
        raise _invalid(field_name, f"{field_name} format is invalid")

    return value


def validate_integer_field(
    value: Any,
    field_name: str,
    min_value: int | None = None,
    max_value: int | None = None,
    required: bool = True,
) -> int | None:
    """Validate an integer field."""
    if value is None:
        if required:
            raise _invalid(field_name, f"{field_name} is required")
        return None

    if isinstance(value, bool):
        raise _invalid(field_name, f"{field_name} must be a valid integer")

    if not isinstance(value, int):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise _invalid(field_name, f"{field_name} must be a valid integer")

    if min_value is not None and value < min_value:
        raise _invalid(field_name, f"{field_name} must be at least {min_value}")

    if max_value is not None and value > max_value:
        raise _invalid(field_name, f"{field_name} must not exceed {max_value}")

    return value


def validate_choice(value: Any, field_name: str, choices: set[str], required: bool = True) -> str | None:
    """Validate a tag against a closed set (role, job status, application status)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise _invalid(field_name, f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise _invalid(field_name, f"{field_name} must be a string")

    value = value.strip().lower()
    if value not in choices:
        raise _invalid(
            field_name,
            f"Invalid {field_name}. Must be one of: {', '.join(sorted(choices))}",
        )
    return value


def validate_salary_bounds(salary_min: int | None, salary_max: int | None) -> None:
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise _invalid("salaryMin", "Minimum salary cannot exceed maximum salary")


def parse_iso_datetime(value: Any, field_name: str) -> datetime | None:
    """Parse an ISO 8601 string (a trailing 'Z' is accepted) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except (ValueError, AttributeError):
            raise _invalid(field_name, f"Invalid {field_name} format. Use ISO 8601 format.")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    # Stores such as SQLite drop the offset, so keep everything in UTC.
    return parsed.astimezone(timezone.utc)


def clean_string_list(values: Any, field_name: str) -> list[str]:
    """Trim, drop empties and de-duplicate case-insensitively, keeping first spelling."""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, list):
        raise _invalid(field_name, f"{field_name} must be a list")

    out: list[str] = []
    seen: set[str] = set()
    for item in values:
        s = str(item).strip()
        if not s or s.lower() in seen:
            continue
        seen.add(s.lower())
        out.append(s)
    return out
