"""
Fee and return attribution.

Recombines holdings, cash flow totals and XIRR into presentation-ready
breakdowns:

- the return waterfall: starting capital, + market gains, - deposit,
  trading, closing and other fees, +/- FX impact, = net position;
- per-trade fee attribution, fee impact and fee efficiency per ticker;
- the FX impact report and the fee reconciliation report;
- the net worth summary.

A fee is counted once: fee cash flows are used as recorded, and a trade's
own fee fields are only added when no fee cash flow is linked to that
trade.

Records are read by attribute. Holdings need ``ticker``, ``market_value``;
trades need ``id``, ``ticker``, ``date``, ``side``, ``quantity``,
``trade_value``, ``total_fees`` and the detailed fee fields; cash flows need
``type``, ``currency``, ``amount``, ``fx_rate``, ``usd_amount``,
``fee_type``, ``related_trade_id`` and ``related_type``.
"""

import logging
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.constants import RECONCILIATION_TOLERANCE
from utils.timezone_utils import DateInput, filter_by_date_range, format_ledger_date, month_key
from .calculations import DecimalMath, NumericInput, ZERO
from .cash_flows import CashFlowAggregator, fee_category
from .currency_handler import CurrencyHandler

logger = logging.getLogger(__name__)

FX_PERIODS_REPORTED = 12


def _decimal_dict(obj) -> Dict[str, Any]:
    """Serialize a dataclass, rendering Decimals as plain strings."""
    result = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, Decimal):
            value = f"{value:f}"
        elif isinstance(value, dict):
            value = {k: f"{v:f}" if isinstance(v, Decimal) else v for k, v in value.items()}
        result[f.name] = value
    return result


@dataclass
class ReturnAttribution:
    """Return waterfall in USD, each stage also as a % of starting capital.

    Fee impacts are positive amounts that are subtracted from the waterfall.
    """
    starting_capital: Decimal = ZERO
    market_gains: Decimal = ZERO
    deposit_fees_impact: Decimal = ZERO
    trading_fees_impact: Decimal = ZERO
    closing_fees_impact: Decimal = ZERO
    other_fees_impact: Decimal = ZERO
    total_fees_impact: Decimal = ZERO
    fx_impact: Decimal = ZERO
    net_position: Decimal = ZERO
    net_return: Decimal = ZERO
    market_gains_pct: Decimal = ZERO
    deposit_fees_impact_pct: Decimal = ZERO
    trading_fees_impact_pct: Decimal = ZERO
    closing_fees_impact_pct: Decimal = ZERO
    other_fees_impact_pct: Decimal = ZERO
    total_fees_impact_pct: Decimal = ZERO
    fx_impact_pct: Decimal = ZERO
    net_position_pct: Decimal = ZERO
    net_return_pct: Decimal = ZERO
    xirr: str = "0"

    def waterfall(self) -> List[Dict[str, Any]]:
        """Stages in display order, fees as negative deltas."""
        return [
            {'label': 'Starting capital', 'value': self.starting_capital},
            {'label': 'Market gains', 'value': self.market_gains},
            {'label': 'Deposit fees', 'value': ZERO - self.deposit_fees_impact},
            {'label': 'Trading fees', 'value': ZERO - self.trading_fees_impact},
            {'label': 'Closing fees', 'value': ZERO - self.closing_fees_impact},
            {'label': 'Other fees', 'value': ZERO - self.other_fees_impact},
            {'label': 'FX impact', 'value': self.fx_impact},
            {'label': 'Net position', 'value': self.net_position},
        ]

    def to_dict(self) -> Dict[str, Any]:
        return _decimal_dict(self)


@dataclass
class FeeAttribution:
    """Fees charged on one trade."""
    trade_id: str
    ticker: str
    date: str
    side: str
    deposit_fee: Decimal
    trading_fee: Decimal
    closing_fee: Decimal
    total_fees: Decimal
    trade_value: Decimal
    fee_impact_pct: Decimal
    cash_flow_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _decimal_dict(self)


@dataclass
class TickerFeeImpact:
    """How fees weigh on the money put into one ticker."""
    ticker: str
    net_quantity: Decimal
    total_cost: Decimal
    total_fees: Decimal
    fee_impact_pct: Decimal
    trade_count: int

    def to_dict(self) -> Dict[str, Any]:
        return _decimal_dict(self)


@dataclass
class TickerFeeEfficiency:
    """Fee cost of trading one ticker, over the trades that paid fees."""
    ticker: str
    trade_count: int
    total_fees: Decimal
    total_value: Decimal
    avg_fee_pct: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return _decimal_dict(self)


@dataclass
class FXImpactReport:
    """Exchange rate movement since the COP deposits were made."""
    avg_investment_rate: Decimal = ZERO
    current_rate: Decimal = ZERO
    rate_change_pct: Decimal = ZERO
    fx_impact_usd: Decimal = ZERO
    fx_impact_pct: Decimal = ZERO
    impact_by_period: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _decimal_dict(self)


@dataclass
class ReconciliationIssue:
    trade_id: str
    ticker: str
    date: str
    expected_fees: Decimal
    actual_cash_flow_fees: Decimal
    difference: Decimal
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return _decimal_dict(self)


@dataclass
class ReconciliationReport:
    """Trade fees compared with the fee cash flows linked to trades."""
    is_reconciled: bool = True
    total_trade_fees: Decimal = ZERO
    total_cash_flow_fees: Decimal = ZERO
    difference: Decimal = ZERO
    missing_links: List[str] = field(default_factory=list)
    orphaned_cash_flows: List[str] = field(default_factory=list)
    discrepancies: List[ReconciliationIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result = _decimal_dict(self)
        result['discrepancies'] = [issue.to_dict() for issue in self.discrepancies]
        return result


@dataclass
class NetWorthSummary:
    """Holdings plus cash, compared with the capital put in."""
    holdings_value: Decimal = ZERO
    cash_balance: Decimal = ZERO
    net_worth: Decimal = ZERO
    total_invested: Decimal = ZERO
    total_fees: Decimal = ZERO
    total_gain_loss: Decimal = ZERO
    total_gain_loss_pct: Decimal = ZERO
    xirr: str = "0"
    by_asset_type: Dict[str, Decimal] = field(default_factory=dict)
    by_ticker: Dict[str, Decimal] = field(default_factory=dict)
    top_holdings: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result = _decimal_dict(self)
        result['top_holdings'] = [holding.to_dict() for holding in self.top_holdings]
        return result


class AttributionCalculator:
    """
    Builds the fee and return breakdowns.

    Pure: inputs are only read, every call returns new report objects.
    """

    def __init__(self, calc: DecimalMath = None):
        """
        Initialize the calculator.

        Args:
            calc: Decimal arithmetic to use
        """
        self.calc = calc or DecimalMath()
        self.aggregator = CashFlowAggregator(self.calc)
        self.currency = CurrencyHandler(self.calc)

    def fees_by_category(self, trades: Iterable, cash_flows: Iterable) -> Dict[str, Decimal]:
        """
        Fee totals per category, counting each fee once.

        Fee cash flows go to their fee_type category (maintenance and unknown
        types go to 'other'). Trades with no linked fee cash flow add their
        detailed deposit/trading/closing fees, or their single fee as a
        trading fee.

        Returns:
            Dictionary with 'deposit', 'trading', 'closing' and 'other'
        """
        calc = self.calc
        totals = {'deposit': ZERO, 'trading': ZERO, 'closing': ZERO, 'other': ZERO}

        cash_flows = self.aggregator.validate(cash_flows)
        linked_trade_ids = set()
        for cash_flow in cash_flows:
            if cash_flow.type != 'fee':
                continue
            if cash_flow.related_trade_id:
                linked_trade_ids.add(cash_flow.related_trade_id)
            category = fee_category(cash_flow.fee_type)
            if category == 'maintenance':
                category = 'other'
            totals[category] = calc.add(totals[category], cash_flow.usd_amount)

        for trade in trades:
            if trade.id and trade.id in linked_trade_ids:
                continue
            if trade.has_detailed_fees():
                totals['deposit'] = calc.add(totals['deposit'], trade.deposit_fee)
                totals['trading'] = calc.add(totals['trading'], trade.trading_fee)
                totals['closing'] = calc.add(totals['closing'], trade.closing_fee)
            else:
                totals['trading'] = calc.add(totals['trading'], trade.fee)
        return totals

    def market_gains(self, holdings: Mapping[str, Any], trades: Iterable) -> Decimal:
        """
        Realized plus unrealized gains before fees.

        holdings market value + gross sell value - gross buy value
        """
        calc = self.calc
        gains = calc.sum(holding.market_value for holding in holdings.values())
        for trade in trades:
            if trade.is_buy():
                gains = calc.sub(gains, trade.trade_value(calc))
            elif trade.is_sell():
                gains = calc.add(gains, trade.trade_value(calc))
        return gains

    def fx_impact(self, cash_flows: Iterable, latest_rate: Optional[NumericInput]) -> Decimal:
        """
        Currency effect on the capital put in.

        Net invested at entry rates minus the same amount with COP rows
        restated at the latest rate; USD rows are unaffected. 0 without a
        latest rate.
        """
        if latest_rate is None:
            return ZERO
        calc = self.calc
        impact = ZERO
        for cash_flow in cash_flows:
            if cash_flow.currency != 'COP' or cash_flow.type not in ('deposit', 'withdrawal'):
                continue
            restated = self.currency.cop_to_usd(cash_flow.amount, latest_rate)
            delta = calc.sub(cash_flow.usd_amount, restated)
            impact = calc.add(impact, delta) if cash_flow.type == 'deposit' else calc.sub(impact, delta)
        return impact

    def return_attribution(self, holdings: Mapping[str, Any], trades: Iterable, cash_flows: Iterable,
                           fx_rates: Iterable = (), xirr: str = "0") -> ReturnAttribution:
        """
        Decompose the return into the waterfall stages.

        Args:
            holdings: Priced holdings keyed by ticker
            trades: Trade records
            cash_flows: Cash flow records
            fx_rates: FX rate records (the latest one restates COP deposits)
            xirr: XIRR percentage string to carry along

        Returns:
            ReturnAttribution; every _pct field is 0 when starting capital is 0

        Raises:
            InvalidCashFlowError: If a cash flow breaks a business rule
        """
        calc = self.calc
        trades = list(trades)
        cash_flows = self.aggregator.validate(cash_flows)

        starting_capital = self.aggregator.summarize(cash_flows).net_invested
        gains = self.market_gains(holdings, trades)
        fees = self.fees_by_category(trades, cash_flows)
        total_fees = calc.sum(fees.values())
        fx = self.fx_impact(cash_flows, self.currency.latest_rate(fx_rates))

        net_position = calc.add(calc.sub(calc.add(starting_capital, gains), total_fees), fx)
        net_return = calc.sub(net_position, starting_capital)

        def pct(value):
            return calc.percent(value, starting_capital)

        attribution = ReturnAttribution(
            starting_capital=starting_capital,
            market_gains=gains,
            deposit_fees_impact=fees['deposit'],
            trading_fees_impact=fees['trading'],
            closing_fees_impact=fees['closing'],
            other_fees_impact=fees['other'],
            total_fees_impact=total_fees,
            fx_impact=fx,
            net_position=net_position,
            net_return=net_return,
            market_gains_pct=pct(gains),
            deposit_fees_impact_pct=pct(fees['deposit']),
            trading_fees_impact_pct=pct(fees['trading']),
            closing_fees_impact_pct=pct(fees['closing']),
            other_fees_impact_pct=pct(fees['other']),
            total_fees_impact_pct=pct(total_fees),
            fx_impact_pct=pct(fx),
            net_position_pct=pct(net_position),
            net_return_pct=pct(net_return),
            xirr=xirr
        )
        logger.debug(f"Return attribution: start={starting_capital} gains={gains} "
                     f"fees={total_fees} fx={fx} net={net_position}")
        return attribution

    def fee_attribution(self, trades: Iterable, cash_flows: Iterable,
                        start: Optional[DateInput] = None, end: Optional[DateInput] = None) -> List[FeeAttribution]:
        """
        Per-trade fee rows, newest first (ticker breaks ties).

        fee_impact_pct = total fees / trade value * 100, 0 for a zero-value trade.
        ``start`` and ``end`` optionally limit the trades by date (inclusive).
        """
        calc = self.calc
        linked = self._linked_fee_cash_flows(cash_flows)

        rows = []
        for trade in filter_by_date_range(trades, start, end):
            total_fees = trade.total_fees(calc)
            trade_value = trade.trade_value(calc)
            rows.append(FeeAttribution(
                trade_id=trade.id,
                ticker=trade.ticker,
                date=format_ledger_date(trade.date),
                side=trade.side,
                deposit_fee=trade.deposit_fee,
                trading_fee=trade.trading_fee,
                closing_fee=trade.closing_fee,
                total_fees=total_fees,
                trade_value=trade_value,
                fee_impact_pct=calc.percent(total_fees, trade_value),
                cash_flow_ids=[cf.id for cf in linked.get(trade.id, [])]
            ))

        rows.sort(key=lambda row: row.ticker)
        rows.sort(key=lambda row: row.date, reverse=True)
        return rows

    def fee_impact_by_ticker(self, trades: Iterable) -> Dict[str, TickerFeeImpact]:
        """
        Fees relative to the gross buy cost, per ticker.

        fee_impact_pct = total fees / total buy cost * 100, 0 when nothing
        was bought.
        """
        calc = self.calc
        grouped: Dict[str, List] = {}
        for trade in trades:
            grouped.setdefault(trade.ticker, []).append(trade)

        impacts = {}
        for ticker in sorted(grouped):
            ticker_trades = grouped[ticker]
            net_quantity = ZERO
            total_cost = ZERO
            for trade in ticker_trades:
                if trade.is_buy():
                    net_quantity = calc.add(net_quantity, trade.quantity)
                    total_cost = calc.add(total_cost, trade.trade_value(calc))
                else:
                    net_quantity = calc.sub(net_quantity, trade.quantity)
            total_fees = calc.sum(trade.total_fees(calc) for trade in ticker_trades)
            impacts[ticker] = TickerFeeImpact(
                ticker=ticker,
                net_quantity=net_quantity,
                total_cost=total_cost,
                total_fees=total_fees,
                fee_impact_pct=calc.percent(total_fees, total_cost),
                trade_count=len(ticker_trades)
            )
        return impacts

    def fee_efficiency_by_ticker(self, trades: Iterable) -> List[TickerFeeEfficiency]:
        """
        Fee efficiency per ticker, highest total fees first.

        Only trades that paid fees count. avg_fee_pct is the mean of each
        trade's fees / trade value * 100, leaving out zero-value trades
        (0 when none remain).
        """
        calc = self.calc
        grouped: Dict[str, List] = {}
        for trade in trades:
            if trade.total_fees(calc) > 0:
                grouped.setdefault(trade.ticker, []).append(trade)

        rows = []
        for ticker, ticker_trades in grouped.items():
            fee_pcts = [
                calc.percent(trade.total_fees(calc), trade.trade_value(calc))
                for trade in ticker_trades if trade.trade_value(calc) > 0
            ]
            rows.append(TickerFeeEfficiency(
                ticker=ticker,
                trade_count=len(ticker_trades),
                total_fees=calc.sum(trade.total_fees(calc) for trade in ticker_trades),
                total_value=calc.sum(trade.trade_value(calc) for trade in ticker_trades),
                avg_fee_pct=calc.safe_div(calc.sum(fee_pcts), len(fee_pcts))
            ))

        rows.sort(key=lambda row: row.ticker)
        rows.sort(key=lambda row: row.total_fees, reverse=True)
        return rows

    def fx_impact_report(self, cash_flows: Iterable, fx_rates: Iterable,
                         starting_capital: NumericInput = None) -> FXImpactReport:
        """
        Exchange rate movement since investing.

        The average investment rate weighs each deposit's fx_rate by its
        usd_amount. The current rate is the latest known rate, or the
        average when no rate is known. ``impact_by_period`` holds the average
        rate of the last 12 months with rates, oldest first.
        """
        calc = self.calc
        cash_flows = self.aggregator.validate(cash_flows)
        fx_rates = list(fx_rates)

        weighted = ZERO
        weight = ZERO
        for cash_flow in cash_flows:
            if cash_flow.type == 'deposit' and cash_flow.fx_rate is not None:
                weighted = calc.add(weighted, calc.mul(cash_flow.usd_amount, cash_flow.fx_rate))
                weight = calc.add(weight, cash_flow.usd_amount)
        avg_rate = calc.safe_div(weighted, weight)

        latest = self.currency.latest_rate(fx_rates)
        current_rate = latest if latest is not None else avg_rate

        if starting_capital is None:
            starting_capital = self.aggregator.summarize(cash_flows).net_invested
        fx_usd = self.fx_impact(cash_flows, latest)

        by_month: Dict[str, List[Decimal]] = {}
        for rate in fx_rates:
            by_month.setdefault(month_key(rate.date), []).append(rate.rate)
        recent = sorted(by_month)[-FX_PERIODS_REPORTED:]

        return FXImpactReport(
            avg_investment_rate=avg_rate,
            current_rate=current_rate,
            rate_change_pct=calc.percent(calc.sub(current_rate, avg_rate), avg_rate),
            fx_impact_usd=fx_usd,
            fx_impact_pct=calc.percent(fx_usd, starting_capital),
            impact_by_period={
                period: calc.div(calc.sum(by_month[period]), len(by_month[period]))
                for period in recent
            }
        )

    def reconcile_fees(self, trades: Iterable, cash_flows: Iterable) -> ReconciliationReport:
        """
        Compare trade fees with the fee cash flows linked to trades.

        Reports trades with fees but no linked fee cash flow, trade-linked fee
        cash flows whose trade does not exist, and trades whose fees differ
        from their linked cash flows. The ledger is reconciled when none of
        these exist and the totals differ by at most 0.01.
        """
        calc = self.calc
        trades = list(trades)
        cash_flows = self.aggregator.validate(cash_flows)
        trade_ids = {trade.id for trade in trades}
        linked = self._linked_fee_cash_flows(cash_flows)
        report = ReconciliationReport()

        trades_with_fees = [trade for trade in trades if trade.total_fees(calc) > 0]
        report.total_trade_fees = calc.sum(trade.total_fees(calc) for trade in trades_with_fees)
        report.total_cash_flow_fees = calc.sum(
            cf.usd_amount for cf in cash_flows if cf.type == 'fee' and cf.related_type == 'trade'
        )
        report.difference = calc.sub(report.total_trade_fees, report.total_cash_flow_fees)

        for trade in trades_with_fees:
            trade_cash_flows = linked.get(trade.id, [])
            if not trade_cash_flows:
                report.missing_links.append(trade.id)
            actual = calc.sum(cf.usd_amount for cf in trade_cash_flows)
            expected = trade.total_fees(calc)
            if not calc.eq(actual, expected):
                report.discrepancies.append(ReconciliationIssue(
                    trade_id=trade.id,
                    ticker=trade.ticker,
                    date=format_ledger_date(trade.date),
                    expected_fees=expected,
                    actual_cash_flow_fees=actual,
                    difference=calc.sub(expected, actual),
                    description=f"Trade fee ({expected}) doesn't match cash flow fees ({actual})"
                ))

        for cash_flow in cash_flows:
            if (cash_flow.type == 'fee' and cash_flow.related_type == 'trade'
                    and cash_flow.related_trade_id and cash_flow.related_trade_id not in trade_ids):
                report.orphaned_cash_flows.append(cash_flow.id)

        report.is_reconciled = (
            not report.missing_links
            and not report.orphaned_cash_flows
            and not report.discrepancies
            and calc.lte(calc.abs(report.difference), RECONCILIATION_TOLERANCE)
        )
        if not report.is_reconciled:
            logger.info(f"Fee reconciliation: {len(report.missing_links)} missing links, "
                        f"{len(report.orphaned_cash_flows)} orphaned, "
                        f"{len(report.discrepancies)} discrepancies")
        return report

    def net_worth_summary(self, holdings: Mapping[str, Any], cash_balance: NumericInput,
                          total_invested: NumericInput, total_fees: NumericInput,
                          xirr: str = "0", by_asset_type: Optional[Dict[str, Decimal]] = None,
                          top_holdings: Optional[List[Any]] = None) -> NetWorthSummary:
        """
        Net worth = holdings value + cash balance; gain/loss is measured
        against the net invested capital.
        """
        calc = self.calc
        holdings_value = calc.sum(holding.market_value for holding in holdings.values())
        net_worth = calc.add(holdings_value, cash_balance)
        gain_loss = calc.sub(net_worth, total_invested)
        return NetWorthSummary(
            holdings_value=holdings_value,
            cash_balance=calc.to_decimal(cash_balance),
            net_worth=net_worth,
            total_invested=calc.to_decimal(total_invested),
            total_fees=calc.to_decimal(total_fees),
            total_gain_loss=gain_loss,
            total_gain_loss_pct=calc.percent(gain_loss, total_invested),
            xirr=xirr,
            by_asset_type=dict(by_asset_type or {}),
            by_ticker={ticker: holding.market_value for ticker, holding in holdings.items()},
            top_holdings=list(top_holdings or [])
        )

    def _linked_fee_cash_flows(self, cash_flows: Iterable) -> Dict[str, List]:
        linked: Dict[str, List] = {}
        for cash_flow in cash_flows:
            if cash_flow.type == 'fee' and cash_flow.related_trade_id:
                linked.setdefault(cash_flow.related_trade_id, []).append(cash_flow)
        return linked


def calculate_return_attribution(holdings: Mapping[str, Any], trades: Iterable, cash_flows: Iterable,
                                 fx_rates: Iterable = (), xirr: str = "0",
                                 calc: DecimalMath = None) -> ReturnAttribution:
    """Convenience function for the return waterfall."""
    return AttributionCalculator(calc).return_attribution(holdings, trades, cash_flows, fx_rates, xirr)
