"""Holdings calculation module.

Turns an unordered trade ledger into open positions using the average-cost
method: every share of a ticker carries one blended cost, buys add their
total (fee included) to the cost basis, and sells scale the remaining cost
down in proportion to the quantity sold. Realized gain on a sale is not
tracked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from config.constants import DEFAULT_ASSET_TYPE
from data.models.portfolio import Holding
from data.models.trade import Trade
from financial.calculations import DecimalMath, ZERO

logger = logging.getLogger(__name__)


@dataclass
class _RunningPosition:
    """Running totals for one ticker during the average-cost walk."""
    quantity: Decimal = ZERO
    cost: Decimal = ZERO
    fees: Decimal = ZERO
    asset_type: str = DEFAULT_ASSET_TYPE


class HoldingsCalculator:
    """Builds holdings from trades with the average-cost method.

    The calculator is pure: it never mutates the trades handed to it and
    returns a fresh mapping on every call.
    """

    def __init__(self, calc: DecimalMath = None):
        """Initialize holdings calculator.

        Args:
            calc: Decimal arithmetic to use
        """
        self.calc = calc or DecimalMath()

    def calculate(self, trades: Iterable[Trade]) -> Dict[str, Holding]:
        """Calculate open holdings from a trade ledger.

        Args:
            trades: Trades for one user, in any order

        Returns:
            Mapping of ticker to Holding, only for tickers with a positive
            remaining quantity

        Raises:
            InvalidTradeError: If any trade breaks a business rule; the error
                carries the offending trade
        """
        by_ticker = self.group_by_ticker(trades)

        holdings = {}
        for ticker in sorted(by_ticker):
            position = self._walk(ticker, by_ticker[ticker])
            if position.quantity > 0:
                holdings[ticker] = self._to_holding(ticker, position)
            else:
                logger.debug(f"{ticker}: position closed, omitted from holdings")

        logger.debug(f"Calculated {len(holdings)} holdings from {sum(len(t) for t in by_ticker.values())} trades")
        return holdings

    def group_by_ticker(self, trades: Iterable[Trade]) -> Dict[str, List[Trade]]:
        """Validate trades and partition them by ticker.

        Each partition is sorted by date; the sort is stable so trades that
        share a timestamp keep their input order.
        """
        by_ticker: Dict[str, List[Trade]] = {}
        for trade in trades:
            trade.validate()
            by_ticker.setdefault(trade.ticker, []).append(trade)

        for ticker_trades in by_ticker.values():
            ticker_trades.sort(key=lambda t: t.date)
        return by_ticker

    def _walk(self, ticker: str, trades: List[Trade]) -> _RunningPosition:
        calc = self.calc
        position = _RunningPosition()

        for trade in trades:
            position.asset_type = trade.asset_type

            if trade.is_buy():
                position.quantity = calc.add(position.quantity, trade.quantity)
                position.cost = calc.add(position.cost, trade.resolved_total(calc))
                position.fees = calc.add(position.fees, trade.total_fees(calc))
                continue

            if position.quantity <= 0:
                logger.warning(
                    f"{ticker}: sell of {trade.quantity} on {trade.date.date()} with no open position "
                    f"(trade {trade.id or '?'}), ignored"
                )
                continue

            avg_cost = calc.div(position.cost, position.quantity)
            remaining = calc.sub(position.quantity, trade.quantity)
            if remaining <= 0:
                if remaining < 0:
                    logger.warning(
                        f"{ticker}: sell of {trade.quantity} exceeds open quantity {position.quantity} "
                        f"(trade {trade.id or '?'}), position closed at zero"
                    )
                position.quantity = ZERO
                position.cost = ZERO
                position.fees = ZERO
                continue

            position.fees = calc.div(calc.mul(position.fees, remaining), position.quantity)
            position.quantity = remaining
            position.cost = calc.mul(remaining, avg_cost)

        return position

    def _to_holding(self, ticker: str, position: _RunningPosition) -> Holding:
        calc = self.calc
        cost_without_fees = calc.sub(position.cost, position.fees)
        return Holding(
            ticker=ticker,
            quantity=position.quantity,
            avg_cost=calc.div(position.cost, position.quantity),
            total_invested=position.cost,
            asset_type=position.asset_type,
            total_fees=position.fees,
            avg_cost_without_fees=calc.div(cost_without_fees, position.quantity),
            fee_impact_percent=calc.percent(position.fees, cost_without_fees)
        )


def calculate_holdings(trades: Iterable[Trade], calc: DecimalMath = None) -> Dict[str, Holding]:
    """Convenience function to build holdings from trades.

    Examples:
        Buying 10 @ 100 with a 1.00 fee, then selling 4, leaves 6 shares at
        an average cost of 100.1 and a total invested of 600.6.
    """
    return HoldingsCalculator(calc).calculate(trades)
