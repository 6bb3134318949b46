#!/usr/bin/env python3
"""
Unit tests for decimal formatting utilities.

This module tests the display-boundary formatters to ensure consistent
and correct decimal precision in USD and COP output.
"""

import unittest
from decimal import Decimal
import sys
import os

# Add parent directory to path to import utils
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from utils.decimal_formatter import (
    format_money, format_shares, format_currency, format_percentage, to_display_float
)


class TestDecimalFormatter(unittest.TestCase):
    """Test cases for decimal formatting utilities."""

    def test_format_money(self):
        """Test money formatting to 2 decimal places."""
        self.assertEqual(format_money(Decimal("1234.567")), "1234.57")
        self.assertEqual(format_money("2.675"), "2.68")
        self.assertEqual(format_money(10), "10.00")
        self.assertEqual(format_money("600.6", places=4), "600.6000")

    def test_format_money_defaults(self):
        """Test that missing or invalid values fall back to the default."""
        self.assertEqual(format_money(None), "0.00")
        self.assertEqual(format_money("abc"), "0.00")
        self.assertEqual(format_money(None, default="N/A"), "N/A")

    def test_format_shares(self):
        self.assertEqual(format_shares("1.23456"), "1.2346")
        self.assertEqual(format_shares(6), "6.0000")

    def test_format_percentage(self):
        self.assertEqual(format_percentage(Decimal("29.8701298")), "29.87")
        self.assertEqual(format_percentage("-0.001"), "0.00")

    def test_format_currency(self):
        """Test currency formatting with symbols and separators."""
        self.assertEqual(format_currency("1234.5"), "$1,234.50")
        self.assertEqual(format_currency("-1234.5", "usd"), "-$1,234.50")
        self.assertEqual(format_currency("4100000.4", "COP"), "COP $4,100,000")
        self.assertEqual(format_currency(None), "$0.00")

    def test_to_display_float(self):
        self.assertEqual(to_display_float(Decimal("1.5")), 1.5)
        self.assertEqual(to_display_float(None), 0.0)
        self.assertEqual(to_display_float("bad", default=-1.0), -1.0)


if __name__ == '__main__':
    unittest.main()
