"""Shared validation utilities for statement parsing."""

import logging
import math
import re
from datetime import date, datetime
from typing import Any

# Configure logging for parsers
logger = logging.getLogger("finflow.parsers")

# Date formats seen in Indian bank statements, tried in order
DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
    "%d-%m-%y",
    "%d %b %Y",
    "%d-%b-%Y",
    "%d %B %Y",
    "%d-%b-%y",
    "%Y/%m/%d",
)

_CURRENCY_PATTERN = re.compile(r"(?:₹|â‚¹|₨|\bRs\.?|\bINR)", re.IGNORECASE)
_DIRECTION_SUFFIX_PATTERN = re.compile(r"\s*(?:Dr|Cr)\.?$", re.IGNORECASE)


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


def validate_file_contents(contents: bytes, min_size: int = 10) -> None:
    """
    Validate file contents before parsing.

    Args:
        contents: Raw file bytes
        min_size: Minimum expected file size in bytes

    Raises:
        ValidationError: If validation fails
    """
    if not contents:
        raise ValidationError("File is empty")

    if len(contents) < min_size:
        raise ValidationError(f"File too small ({len(contents)} bytes), minimum {min_size} bytes expected")


def validate_amount(amount: float, min_val: float = -1_000_000_000, max_val: float = 1_000_000_000) -> bool:
    """
    Validate that an amount is within reasonable bounds.

    Args:
        amount: The amount to validate
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        True if valid, False otherwise
    """
    if amount is None:
        return False

    # Check for NaN or infinity
    if math.isnan(amount) or math.isinf(amount):
        return False

    return min_val <= amount <= max_val


def validate_date(txn_date: date, min_year: int = 2000, max_year: int = 2100) -> bool:
    """
    Validate that a date is within reasonable bounds.

    Args:
        txn_date: The date to validate
        min_year: Minimum allowed year
        max_year: Maximum allowed year

    Returns:
        True if valid, False otherwise
    """
    if txn_date is None:
        return False

    return min_year <= txn_date.year <= max_year


def validate_description(description: str, min_length: int = 1, max_length: int = 500) -> bool:
    """
    Validate a transaction description.

    Args:
        description: The description to validate
        min_length: Minimum length
        max_length: Maximum length

    Returns:
        True if valid, False otherwise
    """
    if not description:
        return False

    description = description.strip()
    length = len(description)

    return min_length <= length <= max_length


def clean_amount_string(amount_str: str) -> str:
    """
    Clean an amount string for parsing.

    Handles rupee symbols, Indian digit grouping (1,23,456.78),
    trailing Dr/Cr markers, parentheses and trailing minus signs.

    Args:
        amount_str: Raw amount string

    Returns:
        Cleaned amount string ready for float conversion
    """
    if not amount_str:
        return "0"

    cleaned = _DIRECTION_SUFFIX_PATTERN.sub("", amount_str.strip())

    # Remove currency symbols and whitespace
    cleaned = _CURRENCY_PATTERN.sub("", cleaned).replace("$", "").replace(" ", "").strip()

    # Remove thousand separators
    cleaned = cleaned.replace(",", "")

    # Handle parentheses for negative numbers
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]

    # Handle trailing minus sign
    if cleaned.endswith("-"):
        cleaned = "-" + cleaned[:-1]

    return cleaned


def parse_amount_safe(value: Any, default: float = 0.0) -> tuple[float, bool]:
    """
    Safely parse an amount from a number or an amount string.

    Args:
        value: Raw amount (int, float or string)
        default: Default value if parsing fails

    Returns:
        Tuple of (parsed amount, success flag)
    """
    if isinstance(value, bool):
        return default, False

    try:
        if isinstance(value, (int, float)):
            amount = float(value)
        elif isinstance(value, str):
            if not value.strip():
                return default, False
            cleaned = clean_amount_string(value)
            if not cleaned or cleaned == "-":
                return default, False
            amount = float(cleaned)
        else:
            return default, False

        if not validate_amount(amount):
            return default, False

        return amount, True
    except (ValueError, TypeError):
        return default, False


def parse_statement_date(value: Any) -> date | None:
    """
    Parse a transaction date in any of the supported statement formats.

    Returns:
        The parsed date, or None if the value is not a plausible date
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value if validate_date(value) else None
    if not isinstance(value, str) or not value.strip():
        return None

    text = " ".join(value.split())
    # ISO timestamps: keep the calendar part
    if re.match(r"^\d{4}-\d{2}-\d{2}T", text):
        text = text[:10]

    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        if validate_date(parsed):
            return parsed

    return None


def normalize_description(description: str) -> str:
    """Collapse internal whitespace in a description."""
    if not description:
        return ""

    return " ".join(description.split())
