"""
Input validation utilities for the adoption aggregation service.

Provides reusable validation functions for configuration values such as
query limits, timeouts, table names and the pet search base URL.
"""

import re
from urllib.parse import urlparse


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def validate_limit(limit: int, field_name: str = "limit", max_limit: int = 10000) -> int:
    """
    Validate a limit parameter for queries.

    Args:
        limit: The limit value to validate
        field_name: Name of the field (for error messages)
        max_limit: Maximum allowed limit value

    Returns:
        The validated limit value

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_limit(25)
        25
        >>> validate_limit(0)  # doctest: +SKIP
        ValidationError: limit must be a positive integer
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(limit).__name__}")

    if limit <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {limit}")

    if limit > max_limit:
        raise ValidationError(f"{field_name} exceeds maximum of {max_limit}")

    return limit


def validate_timeout(timeout: float, field_name: str = "timeout") -> float:
    """
    Validate a timeout expressed in seconds.

    Raises:
        ValidationError: If the value is not a positive number
    """
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ValidationError(f"{field_name} must be a number, got {type(timeout).__name__}")

    if timeout <= 0:
        raise ValidationError(f"{field_name} must be positive, got {timeout}")

    return float(timeout)


def validate_base_url(url: str, field_name: str = "pet_search_url") -> str:
    """
    Validate the base URL of an HTTP service.

    The URL may already carry a query string; further query parameters
    are appended to it.

    Args:
        url: The URL to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated URL (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_base_url("http://search.local/api/search?")
        'http://search.local/api/search?'
        >>> validate_base_url("ftp://search.local")  # doctest: +SKIP
        ValidationError: pet_search_url must use http or https
    """
    if not url or not isinstance(url, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    url = url.strip()
    parsed = urlparse(url)

    if parsed.scheme not in ("http", "https"):
        raise ValidationError(f"{field_name} must use http or https, got '{parsed.scheme}'")

    if not parsed.netloc:
        raise ValidationError(f"{field_name} must include a host")

    return url


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Sanitize an SQL identifier (table name, column name, etc.).

    Use this for dynamic table names to prevent SQL injection.

    Args:
        identifier: The identifier to sanitize
        field_name: Name of the field (for error messages)

    Returns:
        The validated identifier

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> sanitize_sql_identifier("transactions")
        'transactions'
        >>> sanitize_sql_identifier("transactions; DROP TABLE pets;")  # doctest: +SKIP
        ValidationError: identifier contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )

    if len(identifier) > 63:  # PostgreSQL limit
        raise ValidationError(f"{field_name} exceeds PostgreSQL maximum length of 63 characters")

    return identifier
