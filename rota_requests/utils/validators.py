"""
Validation utilities for the Rota Requests API
Provides reusable parsing and validation helpers for JSON endpoints

Failures raise ValidationException so @handle_errors renders them.
"""
import re
from datetime import datetime, date
from typing import Any, Dict, List, Optional

from rota_requests import rules
from rota_requests.error_handlers.exceptions import ValidationException
from rota_requests.utils.timezone import to_naive_utc

PIN_PATTERN = re.compile(r'^\d{4}$')


def validate_date_param(date_str: Optional[str], param_name: str = 'date') -> date:
    """
    Validate and parse date parameter from string.

    Args:
        date_str: Date string in YYYY-MM-DD format
        param_name: Name of parameter for error messages (default: 'date')

    Returns:
        date: Parsed date object

    Raises:
        ValidationException: If date format is invalid

    Examples:
        >>> validate_date_param('2026-10-18')
        datetime.date(2026, 10, 18)
    """
    if not date_str:
        raise ValidationException(f"{param_name} is required")
    try:
        return datetime.strptime(str(date_str), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationException(
            f"Invalid {param_name} format. Use YYYY-MM-DD (e.g., 2026-10-18)"
        )


def validate_datetime_param(value: Optional[str], param_name: str = 'datetime') -> Optional[datetime]:
    """Parse an ISO 8601 datetime, returning None for empty input."""
    if value in (None, ''):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationException(f"Invalid {param_name} format. Use ISO 8601")
    # Stored as naive UTC
    return to_naive_utc(parsed)


def validate_required_fields(data: Optional[Dict[str, Any]], required_fields: List[str]) -> Dict[str, Any]:
    """
    Validate that all required fields are present in request data.

    Args:
        data: Request data dictionary
        required_fields: List of required field names

    Returns:
        The data dictionary

    Raises:
        ValidationException: If any required field is missing
    """
    if not isinstance(data, dict):
        raise ValidationException('Request body must be a JSON object')
    missing = [field for field in required_fields if data.get(field) in (None, '')]
    if missing:
        raise ValidationException(f"Missing required fields: {', '.join(missing)}")
    return data


def validate_int_param(value: Any, param_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationException(f"{param_name} must be an integer")


def validate_pin_format(pin: Optional[str]) -> str:
    """PINs are exactly four digits."""
    pin = (pin or '').strip()
    if not PIN_PATTERN.match(pin):
        raise ValidationException('PIN must be 4 digits')
    return pin


def validate_request_value(value: Optional[str]) -> str:
    """Validate a preference code or the off marker."""
    value = (value or '').strip()
    if not value:
        raise ValidationException('value is required')
    if len(value) > rules.MAX_CODE_LENGTH:
        raise ValidationException(f'value must be at most {rules.MAX_CODE_LENGTH} characters')
    return value


def validate_rank(value: str, rank: Any) -> Optional[int]:
    """A rank is only accepted on an off request and only as 1 or 2."""
    if rank in (None, ''):
        return None
    rank = validate_int_param(rank, 'important_rank')
    if rank not in rules.PRIORITY_RANKS:
        raise ValidationException('important_rank must be 1 or 2')
    if value != rules.OFF_CODE:
        raise ValidationException('important_rank is only allowed on off requests')
    return rank


def sanitize_request_data(data: str) -> str:
    """
    Remove sensitive data from request strings for safe logging.

    Examples:
        >>> sanitize_request_data('{"pin": "1234"}')
        '{"pin": "[REDACTED]"}'
    """
    data = re.sub(r'("pin"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE)
    data = re.sub(r'("new_pin"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE)
    data = re.sub(r'("password"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE)
    data = re.sub(r'("token"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE)
    data = re.sub(r'("carrier"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE)

    return data
