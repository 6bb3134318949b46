"""Position calculation module.

This module marks holdings to market and provides the portfolio-level
analytics built on top of priced holdings: totals, allocation breakdowns
and the largest positions.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Union

from config.constants import TOP_HOLDINGS_COUNT
from data.models.market_data import MarketPrice
from data.models.portfolio import Holding
from financial.calculations import DecimalMath, NumericInput, ZERO

logger = logging.getLogger(__name__)

PriceInput = Union[Mapping[str, NumericInput], Iterable[MarketPrice]]


def prices_from_market_data(market_prices: Iterable[MarketPrice]) -> Dict[str, Decimal]:
    """Build a ticker to price mapping from market price rows.

    When a ticker has several rows the most recent ``updated_at`` wins; rows
    without a timestamp lose to timestamped ones, and later rows win ties.

    Args:
        market_prices: MarketPrice rows from the price feed

    Returns:
        Dictionary of ticker to USD price
    """
    latest: Dict[str, MarketPrice] = {}
    for row in market_prices:
        current = latest.get(row.ticker)
        if current is None or _is_newer_or_same(row, current):
            latest[row.ticker] = row
    return {ticker: row.price for ticker, row in latest.items()}


def _is_newer_or_same(row: MarketPrice, current: MarketPrice) -> bool:
    if row.updated_at is None:
        return current.updated_at is None
    if current.updated_at is None:
        return True
    return row.updated_at >= current.updated_at


class PositionCalculator:
    """Marks holdings to market and computes portfolio analytics.

    Every method returns new structures; holdings are frozen and never
    mutated in place.
    """

    def __init__(self, calc: DecimalMath = None):
        """Initialize position calculator.

        Args:
            calc: Decimal arithmetic to use
        """
        self.calc = calc or DecimalMath()

    def update_position_with_price(self, holding: Holding, current_price: NumericInput) -> Holding:
        """Update a holding with a current price and recalculate derived values.

        Args:
            holding: Holding to price
            current_price: Current USD price per unit

        Returns:
            New Holding with market_value, unrealized_pl and
            unrealized_pl_percent set (percent is 0 when total_invested is 0)
        """
        calc = self.calc
        price = calc.to_decimal(current_price)
        market_value = calc.mul(holding.quantity, price)
        unrealized_pl = calc.sub(market_value, holding.total_invested)
        return holding.with_market_data(
            current_price=price,
            market_value=market_value,
            unrealized_pl=unrealized_pl,
            unrealized_pl_percent=calc.percent(unrealized_pl, holding.total_invested)
        )

    def update_holdings_with_prices(self, holdings: Mapping[str, Holding], prices: PriceInput) -> Dict[str, Holding]:
        """Mark a holdings mapping to market.

        Tickers missing from ``prices`` pass through unchanged with their
        previous market fields.

        Args:
            holdings: Mapping of ticker to Holding
            prices: Mapping of ticker to USD price, or MarketPrice rows

        Returns:
            New mapping of ticker to Holding
        """
        price_map = self._normalize_prices(prices)

        updated = {}
        missing = []
        for ticker, holding in holdings.items():
            if ticker in price_map:
                updated[ticker] = self.update_position_with_price(holding, price_map[ticker])
            else:
                missing.append(ticker)
                updated[ticker] = holding

        if missing:
            logger.warning(f"No market price for {', '.join(missing)}; keeping previous values")
        return updated

    def calculate_portfolio_totals(self, holdings: Mapping[str, Holding]) -> Dict[str, Decimal]:
        """Calculate total market value, invested capital and unrealized P/L.

        Returns:
            Dictionary with total_market_value, total_invested,
            total_unrealized_pl and total_unrealized_pl_percent
        """
        calc = self.calc
        total_market_value = calc.sum(h.market_value for h in holdings.values())
        total_invested = calc.sum(h.total_invested for h in holdings.values())
        total_pl = calc.sum(h.unrealized_pl for h in holdings.values())
        return {
            'total_market_value': total_market_value,
            'total_invested': total_invested,
            'total_unrealized_pl': total_pl,
            'total_unrealized_pl_percent': calc.percent(total_pl, total_invested)
        }

    def breakdown_by_asset_type(self, holdings: Mapping[str, Holding]) -> Dict[str, Dict[str, Decimal]]:
        """Group market value by asset type.

        Returns:
            Dictionary of asset type to {'value', 'percent'} where percent is
            the share of total market value
        """
        values: Dict[str, Decimal] = {}
        for holding in holdings.values():
            values[holding.asset_type] = self.calc.add(values.get(holding.asset_type, ZERO), holding.market_value)
        return self._with_percentages(values)

    def breakdown_by_ticker(self, holdings: Mapping[str, Holding]) -> Dict[str, Dict[str, Decimal]]:
        """Market value and allocation percentage per ticker."""
        return self._with_percentages({ticker: h.market_value for ticker, h in holdings.items()})

    def top_holdings(self, holdings: Mapping[str, Holding], count: int = TOP_HOLDINGS_COUNT) -> List[Holding]:
        """Get the largest holdings by market value (ticker breaks ties)."""
        ranked = sorted(holdings.values(), key=lambda h: (-h.market_value, h.ticker))
        return ranked[:count]

    def _with_percentages(self, values: Dict[str, Decimal]) -> Dict[str, Dict[str, Decimal]]:
        total = self.calc.sum(values.values())
        return {
            key: {'value': value, 'percent': self.calc.percent(value, total)}
            for key, value in values.items()
        }

    def _normalize_prices(self, prices: PriceInput) -> Dict[str, Decimal]:
        if isinstance(prices, Mapping):
            return {str(ticker).upper(): self.calc.to_decimal(price) for ticker, price in prices.items()}
        return prices_from_market_data(prices)


def update_holdings_with_prices(holdings: Mapping[str, Holding], prices: PriceInput,
                                calc: DecimalMath = None) -> Dict[str, Holding]:
    """Convenience function to mark holdings to market."""
    return PositionCalculator(calc).update_holdings_with_prices(holdings, prices)


def summarize_positions(holdings: Mapping[str, Holding], calc: DecimalMath = None) -> Dict[str, Any]:
    """Totals and allocation breakdowns for priced holdings."""
    calculator = PositionCalculator(calc)
    summary: Dict[str, Any] = calculator.calculate_portfolio_totals(holdings)
    summary['by_asset_type'] = calculator.breakdown_by_asset_type(holdings)
    summary['by_ticker'] = calculator.breakdown_by_ticker(holdings)
    summary['top_holdings'] = calculator.top_holdings(holdings)
    return summary
