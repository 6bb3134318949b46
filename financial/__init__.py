"""
Financial calculations for the portfolio engine.

This module provides precise Decimal arithmetic, cash flow aggregation, the
XIRR solver, fee/return attribution and COP/USD currency handling. Every
money value goes through ``DecimalMath`` to avoid floating-point drift.
"""

from .errors import (
    PortfolioEngineError,
    InvalidInputError,
    InvalidTradeError,
    InvalidCashFlowError,
    DivisionByZeroError
)

from .calculations import (
    DecimalConfig,
    DecimalMath,
    NumericInput
)

from .currency_handler import (
    CurrencyHandler,
    get_latest_fx_rate
)

from .cash_flows import (
    CashFlowAggregator,
    CashFlowSummary,
    FeeBreakdown,
    TimelinePoint,
    fee_category,
    summarize_cash_flows
)

from .xirr import (
    XirrCashFlow,
    XirrResult,
    solve_xirr,
    calculate_xirr,
    build_xirr_cash_flows,
    years_between
)

from .attribution import (
    AttributionCalculator,
    ReturnAttribution,
    FeeAttribution,
    TickerFeeImpact,
    TickerFeeEfficiency,
    FXImpactReport,
    ReconciliationIssue,
    ReconciliationReport,
    NetWorthSummary,
    calculate_return_attribution
)

__all__ = [
    # Errors
    'PortfolioEngineError',
    'InvalidInputError',
    'InvalidTradeError',
    'InvalidCashFlowError',
    'DivisionByZeroError',

    # Decimal arithmetic
    'DecimalConfig',
    'DecimalMath',
    'NumericInput',

    # Currency handling
    'CurrencyHandler',
    'get_latest_fx_rate',

    # Cash flows
    'CashFlowAggregator',
    'CashFlowSummary',
    'FeeBreakdown',
    'TimelinePoint',
    'fee_category',
    'summarize_cash_flows',

    # XIRR
    'XirrCashFlow',
    'XirrResult',
    'solve_xirr',
    'calculate_xirr',
    'build_xirr_cash_flows',
    'years_between',

    # Attribution
    'AttributionCalculator',
    'ReturnAttribution',
    'FeeAttribution',
    'TickerFeeImpact',
    'TickerFeeEfficiency',
    'FXImpactReport',
    'ReconciliationIssue',
    'ReconciliationReport',
    'NetWorthSummary',
    'calculate_return_attribution'
]
