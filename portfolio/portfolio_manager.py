"""Portfolio management module.

This module provides the PortfolioManager class, the entry point that
presentation collaborators call. It composes the holdings calculator, the
mark-to-market updater, the cash flow aggregator, the XIRR solver and the
attribution reports over one user's ledger.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from config.constants import TOP_HOLDINGS_COUNT
from config.settings import Settings, get_settings
from data.models.portfolio import Holding, Ledger
from data.repositories.base_repository import LedgerRepository, RepositoryError
from data.repositories.csv_repository import CSVLedgerRepository
from financial.attribution import (
    AttributionCalculator,
    FeeAttribution,
    FXImpactReport,
    NetWorthSummary,
    ReconciliationReport,
    ReturnAttribution,
    TickerFeeEfficiency,
    TickerFeeImpact,
)
from financial.calculations import DecimalMath
from financial.cash_flows import CashFlowAggregator, CashFlowSummary, FeeBreakdown, TimelinePoint
from financial.currency_handler import CurrencyHandler
from financial.xirr import XirrResult, build_xirr_cash_flows, solve_xirr
from utils.log_handler import log_execution_time
from utils.timezone_utils import DateInput, parse_ledger_date
from .holdings_calculator import HoldingsCalculator
from .position_calculator import PositionCalculator

logger = logging.getLogger(__name__)


class PortfolioManagerError(Exception):
    """Base exception for portfolio manager operations."""
    pass


class PortfolioManager:
    """Computes holdings and performance analytics for one ledger.

    The ledger is read-only; every method recomputes its result from the
    ledger, so calls are independent of each other. Input errors
    (``InvalidTradeError``, ``InvalidCashFlowError``) propagate unchanged.
    """

    def __init__(self, ledger: Ledger, settings: Optional[Settings] = None, calc: DecimalMath = None):
        """Initialize portfolio manager.

        Args:
            ledger: The user's trades, cash flows, FX rates and market prices
            settings: Settings providing decimal and XIRR configuration
                (global settings by default)
            calc: Decimal arithmetic to use (built from settings by default)
        """
        self.ledger = ledger
        self.settings = settings or get_settings()
        self.calc = calc or DecimalMath(self.settings.get_decimal_config())
        self.xirr_options = self.settings.get_xirr_config()

        self.holdings_calculator = HoldingsCalculator(self.calc)
        self.position_calculator = PositionCalculator(self.calc)
        self.aggregator = CashFlowAggregator(self.calc)
        self.attribution = AttributionCalculator(self.calc)
        self.currency = CurrencyHandler(self.calc)
        logger.info(f"Portfolio manager initialized with {len(ledger.trades)} trades "
                    f"and {len(ledger.cash_flows)} cash flows")

    @classmethod
    def from_repository(cls, repository: LedgerRepository, settings: Optional[Settings] = None) -> PortfolioManager:
        """Create a manager from a ledger repository.

        Raises:
            PortfolioManagerError: If the ledger cannot be loaded
        """
        try:
            ledger = repository.load_ledger()
        except RepositoryError as e:
            logger.error(f"Failed to load ledger: {e}")
            raise PortfolioManagerError(f"Failed to load ledger: {e}") from e
        return cls(ledger, settings)

    @classmethod
    def from_csv_directory(cls, data_directory: Optional[str] = None,
                           settings: Optional[Settings] = None) -> PortfolioManager:
        """Create a manager from the CSV ledger directory (settings default)."""
        settings = settings or get_settings()
        repository = CSVLedgerRepository(data_directory or settings.get_data_directory(),
                                         tz=settings.get_ledger_timezone(),
                                         calc=DecimalMath(settings.get_decimal_config()))
        return cls.from_repository(repository, settings)

    # Holdings

    def get_holdings(self, priced: bool = True) -> Dict[str, Holding]:
        """Get open holdings, marked to the ledger's market prices by default."""
        holdings = self.holdings_calculator.calculate(self.ledger.trades)
        if priced:
            holdings = self.position_calculator.update_holdings_with_prices(holdings, self.ledger.market_prices)
        return holdings

    def get_portfolio_value(self) -> Decimal:
        """Total market value of the priced holdings in USD."""
        return self.position_calculator.calculate_portfolio_totals(self.get_holdings())['total_market_value']

    # Cash flows

    def get_cash_flow_summary(self) -> CashFlowSummary:
        return self.aggregator.summarize(self.ledger.cash_flows)

    def get_cash_flows_by_month(self) -> Dict[str, CashFlowSummary]:
        return self.aggregator.by_month(self.ledger.cash_flows)

    def get_fee_breakdown(self, broker_names: Optional[Dict[str, str]] = None,
                          start: Optional[DateInput] = None, end: Optional[DateInput] = None) -> FeeBreakdown:
        """Fee totals by category, broker and month, optionally within a date range."""
        return self.aggregator.fee_breakdown(self.ledger.cash_flows, broker_names,
                                             self._date_bound(start), self._date_bound(end))

    def get_cash_balance(self) -> Decimal:
        return self.aggregator.cash_balance(self.ledger.cash_flows, self.ledger.trades)

    def get_timeline(self) -> List[TimelinePoint]:
        return self.aggregator.timeline(self.ledger.cash_flows)

    # Performance

    @log_execution_time()
    def get_xirr_result(self, as_of: Optional[datetime] = None) -> XirrResult:
        """Solve XIRR over deposits, withdrawals and the current market value.

        Args:
            as_of: Valuation date of the terminal market value (now by default)

        Returns:
            XirrResult (rate_percent is 0 when the solve did not converge)
        """
        self.aggregator.validate(self.ledger.cash_flows)
        flows = build_xirr_cash_flows(self.ledger.cash_flows, self.get_portfolio_value(),
                                      as_of, self.calc, tz=self.settings.get_ledger_timezone())
        return solve_xirr(flows, calc=self.calc, **self.xirr_options)

    def get_xirr(self, as_of: Optional[datetime] = None) -> str:
        """XIRR as a 2-decimal percentage string, or "0"."""
        return self.get_xirr_result(as_of).as_percent_string(self.calc)

    @log_execution_time()
    def get_return_attribution(self, as_of: Optional[datetime] = None) -> ReturnAttribution:
        """Return waterfall with the XIRR carried along."""
        return self.attribution.return_attribution(
            self.get_holdings(),
            self.ledger.trades,
            self.ledger.cash_flows,
            self.ledger.fx_rates,
            xirr=self.get_xirr(as_of)
        )

    def get_performance_metrics(self, as_of: Optional[datetime] = None) -> Dict[str, Any]:
        """Headline metrics in USD, with COP equivalents when an FX rate is known.

        Returns:
            Dictionary with portfolio_value, net_invested, total_pl,
            total_pl_percent, total_fees, xirr, latest_fx_rate and, with a
            rate, portfolio_value_cop and deposits_cop
        """
        calc = self.calc
        portfolio_value = self.get_portfolio_value()
        summary = self.get_cash_flow_summary()
        fees = self.attribution.fees_by_category(self.ledger.trades, self.ledger.cash_flows)
        total_pl = calc.sub(portfolio_value, summary.net_invested)
        latest_rate = self.currency.latest_rate(self.ledger.fx_rates)

        metrics = {
            'portfolio_value': portfolio_value,
            'net_invested': summary.net_invested,
            'total_deposits': summary.total_deposits,
            'total_withdrawals': summary.total_withdrawals,
            'total_pl': total_pl,
            'total_pl_percent': calc.percent(total_pl, summary.net_invested),
            'total_fees': calc.sum(fees.values()),
            'xirr': self.get_xirr(as_of),
            'latest_fx_rate': latest_rate,
        }
        if latest_rate is not None:
            metrics['portfolio_value_cop'] = self.currency.usd_to_cop(portfolio_value, latest_rate)
            metrics['deposits_cop'] = self.currency.cop_equivalent_total(self.ledger.cash_flows, latest_rate)
        return metrics

    # Fee analytics

    def get_fee_attribution(self, start: Optional[DateInput] = None,
                            end: Optional[DateInput] = None) -> List[FeeAttribution]:
        """Per-trade fee rows, optionally limited to trades within a date range."""
        return self.attribution.fee_attribution(self.ledger.trades, self.ledger.cash_flows,
                                                self._date_bound(start), self._date_bound(end))

    def get_fee_impact_by_ticker(self) -> Dict[str, TickerFeeImpact]:
        return self.attribution.fee_impact_by_ticker(self.ledger.trades)

    def get_fee_efficiency(self) -> List[TickerFeeEfficiency]:
        return self.attribution.fee_efficiency_by_ticker(self.ledger.trades)

    def get_fx_impact_report(self) -> FXImpactReport:
        return self.attribution.fx_impact_report(self.ledger.cash_flows, self.ledger.fx_rates)

    def reconcile_fees(self) -> ReconciliationReport:
        return self.attribution.reconcile_fees(self.ledger.trades, self.ledger.cash_flows)

    @log_execution_time()
    def get_net_worth_summary(self, as_of: Optional[datetime] = None) -> NetWorthSummary:
        """Holdings value plus cash, with allocation breakdowns and XIRR."""
        holdings = self.get_holdings()
        by_asset_type = {
            asset_type: entry['value']
            for asset_type, entry in self.position_calculator.breakdown_by_asset_type(holdings).items()
        }
        fees = self.attribution.fees_by_category(self.ledger.trades, self.ledger.cash_flows)
        return self.attribution.net_worth_summary(
            holdings,
            cash_balance=self.get_cash_balance(),
            total_invested=self.get_cash_flow_summary().net_invested,
            total_fees=self.calc.sum(fees.values()),
            xirr=self.get_xirr(as_of),
            by_asset_type=by_asset_type,
            top_holdings=self.position_calculator.top_holdings(
                holdings, self.settings.get_display_config().get('top_holdings', TOP_HOLDINGS_COUNT)
            )
        )

    def _date_bound(self, value: Optional[DateInput]):
        """Read a report date bound in the ledger timezone (None stays None)."""
        if value is None:
            return None
        return parse_ledger_date(value, self.settings.get_ledger_timezone())
