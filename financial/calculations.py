"""
Decimal arithmetic utility for money and quantity calculations.

Every monetary and quantity value in the engine goes through ``DecimalMath``
so that cost-basis averaging and fee summation never accumulate binary
floating-point error. Precision and rounding live in an explicit
``DecimalConfig`` owned by each ``DecimalMath`` instance; the process-wide
``decimal`` context is never modified.
"""

import decimal
import math
from dataclasses import dataclass
from decimal import Decimal, Context, InvalidOperation, Overflow, ROUND_HALF_UP
from typing import Iterable, Union

from .errors import DivisionByZeroError, InvalidInputError

# Type alias for numeric inputs that will be converted to Decimal
# Floats are accepted for convenience and converted through str()
NumericInput = Union[int, str, Decimal, float]

MIN_PRECISION = 20

ROUNDING_MODES = (
    decimal.ROUND_HALF_UP,
    decimal.ROUND_HALF_EVEN,
    decimal.ROUND_HALF_DOWN,
    decimal.ROUND_DOWN,
    decimal.ROUND_UP,
    decimal.ROUND_FLOOR,
    decimal.ROUND_CEILING,
)

ZERO = Decimal('0')
HUNDRED = Decimal('100')


@dataclass(frozen=True)
class DecimalConfig:
    """Precision and rounding mode for a ``DecimalMath`` instance.

    Args:
        precision: Significant digits kept by every operation (at least 20)
        rounding: One of the ``decimal`` module rounding constants
    """
    precision: int = 28
    rounding: str = ROUND_HALF_UP

    def __post_init__(self):
        if not isinstance(self.precision, int) or self.precision < MIN_PRECISION:
            raise ValueError(
                f"Decimal precision must be an integer >= {MIN_PRECISION}, got {self.precision!r}"
            )
        if self.rounding not in ROUNDING_MODES:
            raise ValueError(f"Unknown rounding mode: {self.rounding!r}")


class DecimalMath:
    """
    Arbitrary-precision decimal arithmetic bound to one configuration.

    Operands may be strings, ints, Decimals or floats; each is converted with
    ``to_decimal`` before the operation runs in the instance's own context.

    Examples:
        >>> dm = DecimalMath()
        >>> dm.div("1001", "10")
        Decimal('100.1')
        >>> dm.to_fixed("29.870129", 2)
        '29.87'
    """

    def __init__(self, config: DecimalConfig = None):
        """
        Initialize the calculator.

        Args:
            config: Precision and rounding to use (defaults to 28 digits, half-up)
        """
        self.config = config or DecimalConfig()
        self._context = Context(
            prec=self.config.precision,
            rounding=self.config.rounding,
            traps=[InvalidOperation, decimal.DivisionByZero, Overflow],
        )

    def __repr__(self) -> str:
        return f"DecimalMath(precision={self.config.precision}, rounding={self.config.rounding})"

    def to_decimal(self, value: NumericInput) -> Decimal:
        """
        Convert a numeric input to a finite Decimal.

        Args:
            value: String, int, Decimal or float

        Returns:
            Decimal: The converted value

        Raises:
            InvalidInputError: If the value is None, empty, NaN, infinite or not numeric
        """
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, bool):
            raise InvalidInputError(f"Cannot convert boolean {value!r} to Decimal", record=value)
        elif isinstance(value, int):
            result = Decimal(value)
        elif isinstance(value, float):
            if not math.isfinite(value):
                raise InvalidInputError(f"Cannot convert non-finite float {value!r} to Decimal", record=value)
            result = Decimal(str(value))
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                raise InvalidInputError("Cannot convert empty string to Decimal", record=value)
            try:
                result = Decimal(text)
            except (InvalidOperation, ValueError) as e:
                raise InvalidInputError(f"Cannot convert {value!r} to Decimal", record=value) from e
        else:
            raise InvalidInputError(
                f"Cannot convert {type(value).__name__} value {value!r} to Decimal", record=value
            )

        if not result.is_finite():
            raise InvalidInputError(f"Decimal value must be finite, got {value!r}", record=value)
        return result

    def add(self, *values: NumericInput) -> Decimal:
        result = ZERO
        for value in values:
            result = self._context.add(result, self.to_decimal(value))
        return result

    def sum(self, values: Iterable[NumericInput]) -> Decimal:
        """Sum an iterable of values (0 for an empty iterable)."""
        return self.add(*values)

    def sub(self, a: NumericInput, b: NumericInput) -> Decimal:
        return self._context.subtract(self.to_decimal(a), self.to_decimal(b))

    def mul(self, *values: NumericInput) -> Decimal:
        result = Decimal('1')
        for value in values:
            result = self._context.multiply(result, self.to_decimal(value))
        return result

    def div(self, a: NumericInput, b: NumericInput) -> Decimal:
        """
        Divide ``a`` by ``b``.

        Raises:
            DivisionByZeroError: If ``b`` is zero
        """
        numerator = self.to_decimal(a)
        divisor = self.to_decimal(b)
        if divisor.is_zero():
            raise DivisionByZeroError(f"Division by zero: {numerator} / {divisor}")
        return self._context.divide(numerator, divisor)

    def safe_div(self, a: NumericInput, b: NumericInput, default: NumericInput = ZERO) -> Decimal:
        """Divide ``a`` by ``b``, returning ``default`` when ``b`` is zero."""
        if self.is_zero(b):
            return self.to_decimal(default)
        return self.div(a, b)

    def percent(self, part: NumericInput, whole: NumericInput) -> Decimal:
        """
        Express ``part`` as a percentage of ``whole``.

        Returns:
            Decimal: part / whole * 100, or 0 when ``whole`` is zero

        Examples:
            >>> DecimalMath().percent("25", "200")
            Decimal('12.5')
        """
        if self.is_zero(whole):
            return ZERO
        return self._context.multiply(self.div(part, whole), HUNDRED)

    def abs(self, value: NumericInput) -> Decimal:
        return self._context.abs(self.to_decimal(value))

    def neg(self, value: NumericInput) -> Decimal:
        return self._context.minus(self.to_decimal(value))

    def gt(self, a: NumericInput, b: NumericInput) -> bool:
        return self.to_decimal(a) > self.to_decimal(b)

    def gte(self, a: NumericInput, b: NumericInput) -> bool:
        return self.to_decimal(a) >= self.to_decimal(b)

    def lt(self, a: NumericInput, b: NumericInput) -> bool:
        return self.to_decimal(a) < self.to_decimal(b)

    def lte(self, a: NumericInput, b: NumericInput) -> bool:
        return self.to_decimal(a) <= self.to_decimal(b)

    def eq(self, a: NumericInput, b: NumericInput) -> bool:
        return self.to_decimal(a) == self.to_decimal(b)

    def is_zero(self, value: NumericInput) -> bool:
        return self.to_decimal(value).is_zero()

    def to_fixed(self, value: NumericInput, places: int = 2) -> str:
        """
        Format a value as a fixed-point string using the configured rounding.

        Args:
            value: The value to format
            places: Digits after the decimal point

        Returns:
            str: Fixed-point representation without exponent

        Examples:
            >>> DecimalMath().to_fixed("10.995", 2)
            '11.00'
            >>> DecimalMath().to_fixed("-0.001", 2)
            '0.00'
        """
        quantum = Decimal(1).scaleb(-places)
        rounded = self.to_decimal(value).quantize(quantum, rounding=self.config.rounding, context=self._context)
        if rounded.is_zero():
            rounded = rounded.copy_abs()
        return f"{rounded:f}"

    def to_plain_string(self, value: NumericInput) -> str:
        """Render a value without exponent notation and without rounding."""
        return f"{self.to_decimal(value):f}"

    def to_float(self, value: NumericInput) -> float:
        """
        Convert to float for display only.

        Never feed the result back into a calculation.
        """
        return float(self.to_decimal(value))
