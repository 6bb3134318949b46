#!/usr/bin/env python3
"""
Tests for the average-cost holdings calculator.

Covers:
1. The buy/partial-sell example (6 shares at 100.1 average cost)
2. Sell to zero and oversell handling
3. Trade order independence and stable ordering of same-day trades
4. Validation errors carrying the offending trade
5. Fee tracking through partial sells
"""

import random
import unittest
import sys
from pathlib import Path
from decimal import Decimal

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from financial.errors import InvalidTradeError
from portfolio.holdings_calculator import HoldingsCalculator, calculate_holdings
from test_helpers import make_trade


class TestAverageCost(unittest.TestCase):
    """Test the average-cost walk."""

    def setUp(self):
        self.calculator = HoldingsCalculator()

    def test_buy_then_partial_sell(self):
        """Buy 10 @100 fee 1, sell 4 @120 fee 1 leaves 6 @ 100.1."""
        trades = [
            make_trade("AAPL", "buy", "10", "100", date="2023-01-01", fee="1"),
            make_trade("AAPL", "sell", "4", "120", date="2023-06-01", fee="1"),
        ]
        holdings = self.calculator.calculate(trades)

        holding = holdings["AAPL"]
        self.assertEqual(holding.quantity, Decimal("6"))
        self.assertEqual(holding.avg_cost, Decimal("100.1"))
        self.assertEqual(holding.total_invested, Decimal("600.6"))
        self.assertEqual(holding.market_value, Decimal("0"))
        self.assertIsNone(holding.current_price)

    def test_multiple_buys_blend_cost(self):
        trades = [
            make_trade("MSFT", "buy", "10", "100"),
            make_trade("MSFT", "buy", "10", "200", date="2023-02-01"),
        ]
        holding = self.calculator.calculate(trades)["MSFT"]
        self.assertEqual(holding.quantity, Decimal("20"))
        self.assertEqual(holding.avg_cost, Decimal("150"))
        self.assertEqual(holding.total_invested, Decimal("3000"))

    def test_explicit_total_is_used_as_cost(self):
        trade = make_trade("AAPL", "buy", "10", "100", fee="1", total="1005")
        holding = self.calculator.calculate([trade])["AAPL"]
        self.assertEqual(holding.total_invested, Decimal("1005"))

    def test_rebuy_after_close_starts_fresh(self):
        trades = [
            make_trade("TSLA", "buy", "5", "200", date="2023-01-01"),
            make_trade("TSLA", "sell", "5", "250", date="2023-02-01"),
            make_trade("TSLA", "buy", "2", "100", date="2023-03-01"),
        ]
        holding = self.calculator.calculate(trades)["TSLA"]
        self.assertEqual(holding.quantity, Decimal("2"))
        self.assertEqual(holding.avg_cost, Decimal("100"))

    def test_fractional_quantities(self):
        trades = [
            make_trade("BTC-USD", "buy", "0.05", "20000", asset_type="crypto"),
            make_trade("BTC-USD", "sell", "0.02", "25000", date="2023-03-01", asset_type="crypto"),
        ]
        holding = self.calculator.calculate(trades)["BTC-USD"]
        self.assertEqual(holding.quantity, Decimal("0.03"))
        self.assertEqual(holding.total_invested, Decimal("600"))
        self.assertEqual(holding.asset_type, "crypto")

    def test_output_sorted_by_ticker(self):
        trades = [make_trade("ZZZ"), make_trade("AAA"), make_trade("MMM")]
        self.assertEqual(list(self.calculator.calculate(trades)), ["AAA", "MMM", "ZZZ"])

    def test_empty_ledger(self):
        self.assertEqual(self.calculator.calculate([]), {})

    def test_convenience_function(self):
        holdings = calculate_holdings([make_trade("AAPL", "buy", "1", "10")])
        self.assertEqual(holdings["AAPL"].total_invested, Decimal("10"))


class TestClosingPositions(unittest.TestCase):
    """Test that closed positions are omitted and quantity never goes negative."""

    def setUp(self):
        self.calculator = HoldingsCalculator()

    def test_sell_to_zero_removes_ticker(self):
        trades = [
            make_trade("AAPL", "buy", "10", "100"),
            make_trade("AAPL", "sell", "10", "120", date="2023-02-01"),
            make_trade("MSFT", "buy", "1", "300"),
        ]
        holdings = self.calculator.calculate(trades)
        self.assertNotIn("AAPL", holdings)
        self.assertIn("MSFT", holdings)

    def test_sell_without_position_is_ignored(self):
        trades = [
            make_trade("AAPL", "sell", "5", "100", date="2023-01-01"),
            make_trade("AAPL", "buy", "3", "100", date="2023-02-01"),
        ]
        with self.assertLogs('portfolio.holdings_calculator', level='WARNING'):
            holding = self.calculator.calculate(trades)["AAPL"]
        self.assertEqual(holding.quantity, Decimal("3"))
        self.assertEqual(holding.total_invested, Decimal("300"))

    def test_oversell_closes_at_zero(self):
        trades = [
            make_trade("AAPL", "buy", "5", "100", date="2023-01-01"),
            make_trade("AAPL", "sell", "8", "100", date="2023-02-01"),
            make_trade("AAPL", "buy", "2", "50", date="2023-03-01"),
        ]
        with self.assertLogs('portfolio.holdings_calculator', level='WARNING'):
            holding = self.calculator.calculate(trades)["AAPL"]
        self.assertEqual(holding.quantity, Decimal("2"))
        self.assertEqual(holding.avg_cost, Decimal("50"))


class TestOrdering(unittest.TestCase):
    """Test that the result depends on trade dates, not input order."""

    def setUp(self):
        self.calculator = HoldingsCalculator()

    def test_input_order_does_not_matter(self):
        trades = [
            make_trade("AAPL", "buy", "10", "100", date="2023-01-01", fee="1"),
            make_trade("AAPL", "buy", "5", "110", date="2023-02-01", fee="1"),
            make_trade("AAPL", "sell", "4", "120", date="2023-03-01", fee="1"),
            make_trade("AAPL", "sell", "3", "90", date="2023-04-01"),
            make_trade("MSFT", "buy", "2", "300", date="2023-01-15"),
        ]
        expected = self.calculator.calculate(trades)

        shuffled = list(trades)
        random.Random(7).shuffle(shuffled)
        self.assertEqual(self.calculator.calculate(shuffled), expected)
        self.assertEqual(self.calculator.calculate(list(reversed(trades))), expected)

    def test_same_timestamp_keeps_input_order(self):
        """A same-day buy then sell closes the position only in that order."""
        buy = make_trade("AAPL", "buy", "10", "100", date="2023-01-01")
        sell = make_trade("AAPL", "sell", "10", "100", date="2023-01-01")

        self.assertEqual(self.calculator.calculate([buy, sell]), {})
        with self.assertLogs('portfolio.holdings_calculator', level='WARNING'):
            holdings = self.calculator.calculate([sell, buy])
        self.assertEqual(holdings["AAPL"].quantity, Decimal("10"))

    def test_trades_are_not_mutated(self):
        trades = [make_trade("AAPL", date="2023-02-01"), make_trade("AAPL", date="2023-01-01")]
        ids = [t.id for t in trades]
        self.calculator.calculate(trades)
        self.assertEqual([t.id for t in trades], ids)


class TestValidation(unittest.TestCase):
    """Test that invalid trades fail fast with the offending record."""

    def setUp(self):
        self.calculator = HoldingsCalculator()

    def test_invalid_trades(self):
        cases = {
            'zero quantity': make_trade(quantity="0"),
            'negative quantity': make_trade(quantity="-1"),
            'negative price': make_trade(price="-5"),
            'negative fee': make_trade(fee="-1"),
            'unknown side': make_trade(side="short"),
            'unknown asset type': make_trade(asset_type="bond"),
        }
        for label, trade in cases.items():
            with self.subTest(label):
                with self.assertRaises(InvalidTradeError) as ctx:
                    self.calculator.calculate([make_trade("OK"), trade])
                self.assertIs(ctx.exception.record, trade)

    def test_unparseable_date(self):
        with self.assertRaises(InvalidTradeError):
            make_trade(date="not a date")

    def test_zero_price_is_allowed(self):
        holding = self.calculator.calculate([make_trade("GIFT", price="0")])["GIFT"]
        self.assertEqual(holding.avg_cost, Decimal("0"))


class TestFeeTracking(unittest.TestCase):
    """Test the fee fields carried on holdings."""

    def setUp(self):
        self.calculator = HoldingsCalculator()

    def test_fees_scale_down_with_sells(self):
        trades = [
            make_trade("AAPL", "buy", "10", "100", date="2023-01-01", fee="1"),
            make_trade("AAPL", "sell", "4", "120", date="2023-06-01", fee="1"),
        ]
        holding = self.calculator.calculate(trades)["AAPL"]
        self.assertEqual(holding.total_fees, Decimal("0.6"))
        self.assertEqual(holding.avg_cost_without_fees, Decimal("100"))
        self.assertEqual(holding.fee_impact_percent, Decimal("0.1"))

    def test_detailed_fees_win_over_single_fee(self):
        trade = make_trade("AAPL", "buy", "10", "100", fee="9", total="1003",
                           deposit_fee="1", trading_fee="1.5", closing_fee="0.5")
        holding = self.calculator.calculate([trade])["AAPL"]
        self.assertEqual(holding.total_fees, Decimal("3.0"))

    def test_no_fees(self):
        holding = self.calculator.calculate([make_trade("AAPL", "buy", "2", "50")])["AAPL"]
        self.assertEqual(holding.total_fees, Decimal("0"))
        self.assertEqual(holding.fee_impact_percent, Decimal("0"))


if __name__ == '__main__':
    unittest.main()
