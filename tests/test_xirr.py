"""
Unit tests for the XIRR solver.

Tests cover the one-year 10% example, degenerate inputs that report "0",
clamping, order independence, and building solver input from the ledger.
"""

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import sys
from pathlib import Path

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from financial.xirr import (
    CONVERGED,
    FLAT_DERIVATIVE,
    INSUFFICIENT_FLOWS,
    MAX_ITERATIONS,
    XirrCashFlow,
    XirrResult,
    build_xirr_cash_flows,
    calculate_xirr,
    solve_xirr,
    years_between
)
from test_helpers import make_cash_flow


def _flow(date_str, amount):
    return XirrCashFlow(datetime.fromisoformat(date_str).replace(tzinfo=timezone.utc), Decimal(amount))


class TestYearsBetween(unittest.TestCase):
    """Test the Julian year convention."""

    def test_julian_year(self):
        start = datetime(2023, 1, 1, tzinfo=timezone.utc)
        end = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.assertAlmostEqual(years_between(start, end), 365 / 365.25, places=12)
        self.assertAlmostEqual(years_between(start, start + (end - start) * 365.25 / 365), 1.0, places=9)

    def test_zero_elapsed(self):
        moment = datetime(2023, 5, 5, tzinfo=timezone.utc)
        self.assertEqual(years_between(moment, moment), 0.0)


class TestSolveXirr(unittest.TestCase):
    """Test the Newton-Raphson solve."""

    def test_one_year_ten_percent(self):
        flows = [_flow("2023-01-01", "-1000"), _flow("2024-01-01", "1100")]
        result = solve_xirr(flows)
        self.assertTrue(result.converged)
        self.assertEqual(result.reason, CONVERGED)
        self.assertAlmostEqual(float(result.rate_percent), 10.0, delta=0.05)
        self.assertAlmostEqual(float(calculate_xirr(flows)), 10.0, delta=0.05)

    def test_negative_return(self):
        flows = [_flow("2023-01-01", "-1000"), _flow("2024-01-01", "800")]
        self.assertAlmostEqual(float(calculate_xirr(flows)), -20.0, delta=0.1)

    def test_input_order_does_not_matter(self):
        flows = [
            _flow("2023-01-01", "-1000"),
            _flow("2023-04-01", "-500"),
            _flow("2023-09-01", "200"),
            _flow("2024-01-01", "1450"),
        ]
        forward = float(solve_xirr(flows).rate_percent)
        backward = float(solve_xirr(list(reversed(flows))).rate_percent)
        self.assertAlmostEqual(forward, backward, places=4)

    def test_rate_stays_within_clamp(self):
        flows = [_flow("2023-01-01", "-100"), _flow("2023-01-11", "1000000")]
        result = solve_xirr(flows)
        self.assertLessEqual(result.rate_percent, Decimal("1000"))

    def test_result_is_two_decimal_string(self):
        flows = [_flow("2023-01-01", "-1000"), _flow("2024-01-01", "1150")]
        text = calculate_xirr(flows)
        self.assertRegex(text, r"^\d+\.\d{2}$")


class TestDegenerateInputs(unittest.TestCase):
    """Test inputs that report "0" instead of raising."""

    def test_fewer_than_two_flows(self):
        self.assertEqual(calculate_xirr([]), "0")
        self.assertEqual(calculate_xirr([_flow("2023-01-01", "-1000")]), "0")
        self.assertEqual(solve_xirr([]).reason, INSUFFICIENT_FLOWS)

    def test_flows_on_same_date_have_flat_derivative(self):
        flows = [_flow("2023-01-01", "-1000"), _flow("2023-01-01", "1100")]
        result = solve_xirr(flows)
        self.assertFalse(result.converged)
        self.assertEqual(result.reason, FLAT_DERIVATIVE)
        self.assertEqual(result.as_percent_string(), "0")

    def test_iteration_limit_reports_zero(self):
        flows = [_flow("2023-01-01", "-1000"), _flow("2024-01-01", "1100")]
        result = solve_xirr(flows, max_iterations=1)
        self.assertFalse(result.converged)
        self.assertEqual(result.reason, MAX_ITERATIONS)
        self.assertEqual(result.rate_percent, Decimal("0"))

    def test_genuine_zero_is_distinguishable(self):
        flows = [_flow("2023-01-01", "-1000"), _flow("2024-01-01", "1000")]
        result = solve_xirr(flows)
        self.assertTrue(result.converged)
        self.assertEqual(result.as_percent_string(), "0.00")

    def test_unconverged_result_string(self):
        self.assertEqual(XirrResult(Decimal("12.3"), False, 100, MAX_ITERATIONS).as_percent_string(), "0")


class TestBuildXirrCashFlows(unittest.TestCase):
    """Test turning ledger cash flows into solver input."""

    def test_signs_and_terminal_flow(self):
        as_of = datetime(2024, 1, 1, tzinfo=timezone.utc)
        cash_flows = [
            make_cash_flow("deposit", "1000", date="2023-01-01"),
            make_cash_flow("withdrawal", "100", date="2023-06-01"),
            make_cash_flow("fee", "5", date="2023-06-02"),
        ]
        flows = build_xirr_cash_flows(cash_flows, "950", as_of)

        self.assertEqual([f.amount for f in flows], [Decimal("-1000"), Decimal("100"), Decimal("950")])
        self.assertEqual(flows[-1].date, as_of)

    def test_cop_deposit_uses_usd_amount(self):
        cash_flows = [make_cash_flow("deposit", "4000000", currency="COP", fx_rate="4000")]
        flows = build_xirr_cash_flows(cash_flows, "0", datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(flows[0].amount, Decimal("-1000"))

    def test_default_as_of_is_now(self):
        flows = build_xirr_cash_flows([], "10")
        self.assertEqual(len(flows), 1)
        self.assertIsNotNone(flows[0].date.tzinfo)

    def test_end_to_end_one_year(self):
        cash_flows = [make_cash_flow("deposit", "1000", date="2023-01-01")]
        flows = build_xirr_cash_flows(cash_flows, "1100", datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertAlmostEqual(float(calculate_xirr(flows)), 10.0, delta=0.05)

    def test_naive_as_of_uses_ledger_timezone(self):
        cash_flows = [make_cash_flow("deposit", "1000", date="2023-01-01")]
        flows = build_xirr_cash_flows(cash_flows, "1100", datetime(2024, 1, 1))

        self.assertEqual(flows[-1].date, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertAlmostEqual(float(calculate_xirr(flows)), 10.0, delta=0.05)

    def test_naive_as_of_with_offset(self):
        bogota = timezone(timedelta(hours=-5))
        flows = build_xirr_cash_flows([], "10", datetime(2024, 1, 1), tz=bogota)
        self.assertEqual(flows[0].date.utcoffset(), timedelta(hours=-5))


if __name__ == '__main__':
    unittest.main()
