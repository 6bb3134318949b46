"""Field coercion shared by the ledger record models.

Raw rows arrive from CSV files, JSON payloads or test fixtures, so the same
field may be a string, an int, a float or already a Decimal. These helpers
normalize them and raise the model's own error type, carrying the record,
when a value cannot be used.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Type

from financial.calculations import DecimalMath
from financial.errors import InvalidInputError
from utils.timezone_utils import parse_ledger_date

_decimal_math = DecimalMath()


# Spreadsheet and export placeholders for an empty numeric or date cell
MISSING_MARKERS = ('nan', 'none', 'null', 'nat')


def is_blank(value: Any) -> bool:
    """Check whether a raw field value is empty (None, NaN or whitespace)."""
    if value is None:
        return True
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, str):
        return not value.strip()
    return False


def is_missing(value: Any) -> bool:
    """Check whether a raw numeric or date value should be treated as missing.

    Besides blank values this accepts the placeholder strings in
    ``MISSING_MARKERS``; text fields do not, so a ticker such as ``NAN``
    stays a ticker.
    """
    if is_blank(value):
        return True
    return isinstance(value, str) and value.strip().lower() in MISSING_MARKERS


def decimal_field(value: Any, name: str, error_cls: Type[InvalidInputError], record: Any,
                  default: Optional[Decimal] = None, required: bool = True) -> Optional[Decimal]:
    """Coerce a raw value to Decimal.

    Args:
        value: Raw field value
        name: Field name used in the error message
        error_cls: Error type raised on failure
        record: Record attached to the error
        default: Value used when the field is blank
        required: Whether a blank field without default is an error

    Returns:
        Decimal value, the default, or None for a blank optional field
    """
    if is_missing(value):
        if default is not None:
            return default
        if required:
            raise error_cls(f"{name} is required", record=record)
        return None
    try:
        return _decimal_math.to_decimal(value)
    except InvalidInputError as e:
        raise error_cls(f"Invalid {name}: {value!r}", record=record) from e


def date_field(value: Any, name: str, error_cls: Type[InvalidInputError], record: Any,
               tz: Optional[timezone] = None) -> datetime:
    """Coerce a raw value to a timezone-aware datetime."""
    if is_missing(value):
        raise error_cls(f"{name} is required", record=record)
    try:
        return parse_ledger_date(value, tz)
    except ValueError as e:
        raise error_cls(f"Unparseable {name}: {value!r}", record=record) from e


def optional_date_field(value: Any, name: str, error_cls: Type[InvalidInputError], record: Any,
                        tz: Optional[timezone] = None) -> Optional[datetime]:
    if is_missing(value):
        return None
    return date_field(value, name, error_cls, record, tz)


def text_field(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Strip a raw text value, returning ``default`` when blank."""
    if is_blank(value):
        return default
    return str(value).strip()


def decimal_to_str(value: Optional[Decimal]) -> Optional[str]:
    """Render a Decimal without exponent notation for serialization."""
    if value is None:
        return None
    return f"{value:f}"
