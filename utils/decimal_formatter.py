"""
Decimal formatting utilities for the display boundary.

Engine results stay Decimal; these helpers turn them into the strings (or,
for charting, floats) that presentation collaborators render. Nothing
formatted here is ever fed back into a calculation.
"""

from decimal import Decimal
from typing import Any, Union

from config.constants import (
    COP_DECIMAL_PLACES,
    MONEY_DECIMAL_PLACES,
    PERCENT_DECIMAL_PLACES,
)
from financial.calculations import DecimalMath
from financial.errors import InvalidInputError

_decimal_math = DecimalMath()

DisplayValue = Union[Decimal, float, int, str, None]


def format_money(value: DisplayValue, places: int = MONEY_DECIMAL_PLACES, default: str = "0.00") -> str:
    """
    Format a money value as a fixed-point string.

    Args:
        value: Value to format
        places: Decimal places (default: 2)
        default: Returned when the value is None or not numeric

    Returns:
        str: e.g. "1234.57"
    """
    if value is None:
        return default
    try:
        return _decimal_math.to_fixed(value, places)
    except InvalidInputError:
        return default


def format_shares(value: DisplayValue, default: str = "0.0000") -> str:
    """Format a quantity to 4 decimal places."""
    return format_money(value, 4, default)


def format_percentage(value: DisplayValue, places: int = PERCENT_DECIMAL_PLACES, default: str = "0.00") -> str:
    """Format a percentage value (29.87 means 29.87%) without the % sign."""
    return format_money(value, places, default)


def format_currency(value: DisplayValue, currency: str = 'USD') -> str:
    """
    Format a value with currency symbol and thousands separators.

    USD keeps 2 decimals, COP none.

    Examples:
        >>> format_currency("1234.5")
        '$1,234.50'
        >>> format_currency("4100000.4", "COP")
        'COP $4,100,000'
    """
    currency = currency.upper()
    places = COP_DECIMAL_PLACES if currency == 'COP' else MONEY_DECIMAL_PLACES
    fixed = Decimal(format_money(value, places, default="0"))
    text = f"{abs(fixed):,.{places}f}"
    sign = '-' if fixed < 0 else ''
    if currency == 'COP':
        return f"{sign}COP ${text}"
    return f"{sign}${text}"


def to_display_float(value: Any, default: float = 0.0) -> float:
    """
    Convert a value to float for charting libraries.

    Args:
        value: Value to convert
        default: Returned when the value is None or not numeric

    Returns:
        Float value
    """
    if value is None:
        return default
    try:
        return _decimal_math.to_float(value)
    except InvalidInputError:
        return default
