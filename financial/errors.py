"""
Error taxonomy for the portfolio accounting engine.

All errors are local computation failures. Input errors carry the offending
record so the caller can decide whether to skip it or surface it to the user.
XIRR non-convergence is not an exception; see ``financial.xirr.XirrResult``.
"""

from typing import Any, Optional


class PortfolioEngineError(Exception):
    """Base exception for portfolio engine operations."""
    pass


class InvalidInputError(PortfolioEngineError, ValueError):
    """Exception raised when a ledger record or numeric input is malformed."""

    def __init__(self, message: str, record: Optional[Any] = None):
        super().__init__(message)
        self.record = record


class InvalidTradeError(InvalidInputError):
    """Exception raised when a trade record fails validation."""
    pass


class InvalidCashFlowError(InvalidInputError):
    """Exception raised when a cash flow record fails validation."""
    pass


class DivisionByZeroError(PortfolioEngineError, ZeroDivisionError):
    """Exception raised when a decimal division has a zero divisor."""
    pass
