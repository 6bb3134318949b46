"""
Cash flow aggregation.

Sums the ``usd_amount`` of deposit, withdrawal and fee rows into invested
capital and fee totals, and groups them by calendar month and fee
sub-category. Every sum is done in Decimal, so the result does not depend on
the order of the input rows.

Cash flow records are read by attribute: ``type``, ``date``,
``usd_amount``, ``fee_type``, ``broker_id``, ``related_trade_id`` and a
``validate()`` method raising ``InvalidCashFlowError``.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from utils.timezone_utils import DateInput, filter_by_date_range, month_key
from .calculations import DecimalMath, ZERO

logger = logging.getLogger(__name__)

# Fee sub-categories reported by the aggregator
FEE_CATEGORIES = ('deposit', 'trading', 'closing', 'maintenance', 'other')

UNSPECIFIED_BROKER = 'Unspecified'


def fee_category(fee_type: Optional[str]) -> str:
    """
    Map a raw fee_type to a reporting category.

    Missing and unknown types (including withdrawal fees) are reported as
    'other'.

    Examples:
        >>> fee_category('trading')
        'trading'
        >>> fee_category(None)
        'other'
    """
    if fee_type and fee_type.lower() in FEE_CATEGORIES:
        return fee_type.lower()
    return 'other'


@dataclass
class CashFlowSummary:
    """USD totals of a set of cash flows."""
    total_deposits: Decimal = ZERO
    total_withdrawals: Decimal = ZERO
    total_fees: Decimal = ZERO
    net_invested: Decimal = ZERO
    count: int = 0

    def to_dict(self) -> Dict[str, str]:
        return {
            'total_deposits': f"{self.total_deposits:f}",
            'total_withdrawals': f"{self.total_withdrawals:f}",
            'total_fees': f"{self.total_fees:f}",
            'net_invested': f"{self.net_invested:f}",
            'count': str(self.count)
        }


@dataclass
class FeeBreakdown:
    """Fee cash flows totalled by category, by broker and by month."""
    deposit_fees: Decimal = ZERO
    trading_fees: Decimal = ZERO
    closing_fees: Decimal = ZERO
    maintenance_fees: Decimal = ZERO
    other_fees: Decimal = ZERO
    total_fees: Decimal = ZERO
    fees_by_broker: Dict[str, Decimal] = field(default_factory=dict)
    fees_by_month: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            'deposit_fees': f"{self.deposit_fees:f}",
            'trading_fees': f"{self.trading_fees:f}",
            'closing_fees': f"{self.closing_fees:f}",
            'maintenance_fees': f"{self.maintenance_fees:f}",
            'other_fees': f"{self.other_fees:f}",
            'total_fees': f"{self.total_fees:f}",
            'fees_by_broker': {k: f"{v:f}" for k, v in self.fees_by_broker.items()},
            'fees_by_month': {k: f"{v:f}" for k, v in self.fees_by_month.items()}
        }


@dataclass
class TimelinePoint:
    """Cumulative invested capital and fees at the end of a month."""
    period: str
    invested_capital: Decimal
    cumulative_fees: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            'period': self.period,
            'invested_capital': f"{self.invested_capital:f}",
            'cumulative_fees': f"{self.cumulative_fees:f}"
        }


class CashFlowAggregator:
    """
    Classifies and sums cash flows.

    All methods validate their input first and fail fast with
    ``InvalidCashFlowError`` carrying the offending row.
    """

    def __init__(self, calc: DecimalMath = None):
        """
        Initialize the aggregator.

        Args:
            calc: Decimal arithmetic to use
        """
        self.calc = calc or DecimalMath()

    def validate(self, cash_flows: Iterable) -> List:
        """Validate every cash flow and return them as a list."""
        rows = list(cash_flows)
        for cash_flow in rows:
            cash_flow.validate()
        return rows

    def summarize(self, cash_flows: Iterable) -> CashFlowSummary:
        """
        Sum usd_amount by type.

        Args:
            cash_flows: Cash flow records

        Returns:
            CashFlowSummary with deposits, withdrawals, fees and
            net invested (deposits - withdrawals)

        Raises:
            InvalidCashFlowError: If a row has an unknown type or currency, a
                negative amount, or a COP amount without a positive fx_rate
        """
        rows = self.validate(cash_flows)
        return self._summarize_valid(rows)

    def by_month(self, cash_flows: Iterable) -> Dict[str, CashFlowSummary]:
        """Group cash flows by calendar month (``YYYY-MM``), oldest first."""
        rows = self.validate(cash_flows)
        groups: Dict[str, List] = {}
        for cash_flow in rows:
            groups.setdefault(month_key(cash_flow.date), []).append(cash_flow)
        return {period: self._summarize_valid(groups[period]) for period in sorted(groups)}

    def by_fee_category(self, cash_flows: Iterable) -> Dict[str, Decimal]:
        """
        Total fee rows by fee sub-category.

        Returns:
            Dictionary with every category in FEE_CATEGORIES (0 when unused)
        """
        rows = self.validate(cash_flows)
        totals = {category: ZERO for category in FEE_CATEGORIES}
        for cash_flow in rows:
            if cash_flow.type != 'fee':
                continue
            category = fee_category(cash_flow.fee_type)
            totals[category] = self.calc.add(totals[category], cash_flow.usd_amount)
        return totals

    def fee_breakdown(self, cash_flows: Iterable, broker_names: Optional[Dict[str, str]] = None,
                      start: Optional[DateInput] = None, end: Optional[DateInput] = None) -> FeeBreakdown:
        """
        Fee totals by category, broker and month.

        Args:
            cash_flows: Cash flow records
            broker_names: Optional mapping of broker id to display name
            start: Earliest fee date included (no lower bound by default)
            end: Latest fee date included (no upper bound by default)

        Returns:
            FeeBreakdown; fees without a broker are listed as 'Unspecified'
        """
        rows = [cf for cf in self.validate(cash_flows) if cf.type == 'fee']
        rows = filter_by_date_range(rows, start, end)
        by_category = self.by_fee_category(rows)
        broker_names = broker_names or {}

        by_broker: Dict[str, Decimal] = {}
        by_month: Dict[str, Decimal] = {}
        for cash_flow in rows:
            broker = broker_names.get(cash_flow.broker_id, cash_flow.broker_id) or UNSPECIFIED_BROKER
            by_broker[broker] = self.calc.add(by_broker.get(broker, ZERO), cash_flow.usd_amount)
            period = month_key(cash_flow.date)
            by_month[period] = self.calc.add(by_month.get(period, ZERO), cash_flow.usd_amount)

        return FeeBreakdown(
            deposit_fees=by_category['deposit'],
            trading_fees=by_category['trading'],
            closing_fees=by_category['closing'],
            maintenance_fees=by_category['maintenance'],
            other_fees=by_category['other'],
            total_fees=self.calc.sum(by_category.values()),
            fees_by_broker=dict(sorted(by_broker.items())),
            fees_by_month=dict(sorted(by_month.items()))
        )

    def cash_balance(self, cash_flows: Iterable, trades: Iterable) -> Decimal:
        """
        Uninvested cash in USD.

        deposits - withdrawals - fees - buy totals + sell totals. Fee rows
        linked to a trade in ``trades`` are skipped because the trade total
        already carries that fee.

        Args:
            cash_flows: Cash flow records
            trades: Trade records (read by ``id``, ``side`` and ``resolved_total``)

        Returns:
            Decimal: Cash balance (may be negative when the ledger is incomplete)
        """
        trades = list(trades)
        trade_ids = {trade.id for trade in trades if trade.id}
        rows = self.validate(cash_flows)

        balance = ZERO
        for cash_flow in rows:
            if cash_flow.type == 'deposit':
                balance = self.calc.add(balance, cash_flow.usd_amount)
            elif cash_flow.type == 'withdrawal':
                balance = self.calc.sub(balance, cash_flow.usd_amount)
            elif cash_flow.related_trade_id not in trade_ids:
                balance = self.calc.sub(balance, cash_flow.usd_amount)

        for trade in trades:
            total = trade.resolved_total(self.calc)
            if trade.is_buy():
                balance = self.calc.sub(balance, total)
            elif trade.is_sell():
                balance = self.calc.add(balance, total)
        return balance

    def timeline(self, cash_flows: Iterable) -> List[TimelinePoint]:
        """
        Cumulative invested capital and fees per month, oldest first.

        Months without cash flows are not listed.
        """
        invested = ZERO
        fees = ZERO
        points = []
        for period, summary in self.by_month(cash_flows).items():
            invested = self.calc.add(invested, summary.net_invested)
            fees = self.calc.add(fees, summary.total_fees)
            points.append(TimelinePoint(period=period, invested_capital=invested, cumulative_fees=fees))
        return points

    def _summarize_valid(self, rows: List) -> CashFlowSummary:
        calc = self.calc
        deposits = calc.sum(cf.usd_amount for cf in rows if cf.type == 'deposit')
        withdrawals = calc.sum(cf.usd_amount for cf in rows if cf.type == 'withdrawal')
        fees = calc.sum(cf.usd_amount for cf in rows if cf.type == 'fee')
        return CashFlowSummary(
            total_deposits=deposits,
            total_withdrawals=withdrawals,
            total_fees=fees,
            net_invested=calc.sub(deposits, withdrawals),
            count=len(rows)
        )


def summarize_cash_flows(cash_flows: Iterable, calc: DecimalMath = None) -> CashFlowSummary:
    """Convenience function for the cash flow totals."""
    return CashFlowAggregator(calc).summarize(cash_flows)
