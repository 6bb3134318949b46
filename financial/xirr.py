"""
XIRR (money-weighted annualized return) solver.

The rate r solves NPV(r) = sum(amount_i / (1 + r) ** years_i) = 0, where
years_i is the time from the earliest flow measured in Julian years
(365.25 days). Newton-Raphson runs on native floats; the root is an
approximation anyway, and amounts and the resulting rate cross the Decimal
boundary only on the way in and out.

Sign convention: money paid into the portfolio is negative, money taken out
(including the terminal market value) is positive.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from config.constants import (
    MS_PER_YEAR,
    XIRR_DEFAULT_GUESS,
    XIRR_MAX_ITERATIONS,
    XIRR_TOLERANCE,
    XIRR_MIN_RATE,
    XIRR_MAX_RATE,
)
from utils.timezone_utils import get_current_time, parse_ledger_date
from .calculations import DecimalMath, NumericInput, HUNDRED, ZERO

logger = logging.getLogger(__name__)

# Result reasons
CONVERGED = 'converged'
INSUFFICIENT_FLOWS = 'insufficient_flows'
FLAT_DERIVATIVE = 'flat_derivative'
MAX_ITERATIONS = 'max_iterations'
OVERFLOW = 'overflow'


@dataclass(frozen=True)
class XirrCashFlow:
    """A dated, signed USD amount fed to the solver."""
    date: datetime
    amount: Decimal


@dataclass(frozen=True)
class XirrResult:
    """
    Outcome of an XIRR solve.

    ``rate_percent`` is 0 whenever ``converged`` is False; ``reason`` tells a
    degenerate input apart from a genuine 0% return.
    """
    rate_percent: Decimal
    converged: bool
    iterations: int
    reason: str

    def as_percent_string(self, calc: DecimalMath = None) -> str:
        """Format as a 2-decimal percentage string, or "0" when not converged."""
        if not self.converged:
            return "0"
        return (calc or DecimalMath()).to_fixed(self.rate_percent, 2)


def years_between(start: datetime, end: datetime) -> float:
    """Elapsed time in Julian years (elapsed milliseconds / ms per 365.25 days)."""
    return ((end - start) / timedelta(milliseconds=1)) / MS_PER_YEAR


def _npv_and_derivative(points: Sequence, rate: float):
    npv = 0.0
    derivative = 0.0
    for years, amount in points:
        npv += amount / (1 + rate) ** years
        derivative -= years * amount / (1 + rate) ** (years + 1)
    return npv, derivative


def solve_xirr(cash_flows: Iterable[XirrCashFlow],
               guess: float = XIRR_DEFAULT_GUESS,
               max_iterations: int = XIRR_MAX_ITERATIONS,
               tolerance: float = XIRR_TOLERANCE,
               min_rate: float = XIRR_MIN_RATE,
               max_rate: float = XIRR_MAX_RATE,
               calc: DecimalMath = None) -> XirrResult:
    """
    Find the annualized rate that zeroes the NPV of the cash flows.

    Args:
        cash_flows: Dated signed amounts in any order
        guess: Starting rate (0.10 = 10%)
        max_iterations: Newton-Raphson iteration limit
        tolerance: Convergence threshold on |NPV|; also the flat-derivative threshold
        min_rate: Lower clamp applied after every update
        max_rate: Upper clamp applied after every update
        calc: Decimal arithmetic used at the boundary

    Returns:
        XirrResult with the rate as a percentage (10 means 10%)

    Examples:
        Paying 1000 and getting 1100 back 365 days later gives roughly 10%.
    """
    calc = calc or DecimalMath()
    flows = list(cash_flows)

    if len(flows) < 2:
        return XirrResult(ZERO, False, 0, INSUFFICIENT_FLOWS)

    origin = min(flow.date for flow in flows)
    points = [(years_between(origin, flow.date), calc.to_float(flow.amount)) for flow in flows]

    rate = guess
    for iteration in range(1, max_iterations + 1):
        try:
            npv, derivative = _npv_and_derivative(points, rate)
        except OverflowError:
            logger.warning(f"XIRR overflow at rate {rate} after {iteration - 1} iterations")
            return XirrResult(ZERO, False, iteration, OVERFLOW)

        if abs(npv) < tolerance:
            logger.debug(f"XIRR converged to {rate} in {iteration} iterations")
            return XirrResult(calc.mul(rate, HUNDRED), True, iteration, CONVERGED)

        if abs(derivative) < tolerance:
            logger.warning(f"XIRR derivative is flat at rate {rate}; reporting 0")
            return XirrResult(ZERO, False, iteration, FLAT_DERIVATIVE)

        rate = rate - npv / derivative
        rate = min(max(rate, min_rate), max_rate)

    logger.warning(f"XIRR did not converge after {max_iterations} iterations; reporting 0")
    return XirrResult(ZERO, False, max_iterations, MAX_ITERATIONS)


def calculate_xirr(cash_flows: Iterable[XirrCashFlow], guess: float = XIRR_DEFAULT_GUESS,
                   calc: DecimalMath = None, **solver_options) -> str:
    """
    Annualized return as a percentage string.

    Returns:
        str: e.g. "15.00" for 15%, or "0" for fewer than 2 flows or a
        solve that did not converge
    """
    return solve_xirr(cash_flows, guess=guess, calc=calc, **solver_options).as_percent_string(calc)


def build_xirr_cash_flows(cash_flows: Iterable, terminal_value: NumericInput,
                          as_of: Optional[datetime] = None,
                          calc: DecimalMath = None,
                          tz: Optional[timezone] = None) -> List[XirrCashFlow]:
    """
    Turn ledger cash flows and the current market value into solver input.

    Deposits become negative amounts, withdrawals positive ones; fee rows are
    left out because they are already reflected in the market value. The
    terminal value is appended as a positive flow dated ``as_of``.

    Args:
        cash_flows: Cash flow records (read by ``type``, ``date`` and ``usd_amount``)
        terminal_value: Current portfolio market value in USD
        as_of: Valuation date (now by default); a naive value is read in ``tz``
        calc: Decimal arithmetic to use
        tz: Ledger timezone for a naive ``as_of`` (UTC by default)

    Returns:
        List of XirrCashFlow
    """
    calc = calc or DecimalMath()
    flows = []
    for cash_flow in cash_flows:
        if cash_flow.type == 'deposit':
            flows.append(XirrCashFlow(cash_flow.date, calc.neg(cash_flow.usd_amount)))
        elif cash_flow.type == 'withdrawal':
            flows.append(XirrCashFlow(cash_flow.date, calc.to_decimal(cash_flow.usd_amount)))

    valuation_date = parse_ledger_date(as_of, tz) if as_of is not None else get_current_time(tz)
    flows.append(XirrCashFlow(valuation_date, calc.to_decimal(terminal_value)))
    return flows
