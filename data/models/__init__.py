"""Data models for the portfolio engine.

This module contains the ledger records handed over by the data collaborator
and the derived holding structure, designed to work with CSV and JSON
adapters.
"""

from .trade import Trade
from .cash_flow import CashFlow
from .market_data import FxRate, MarketPrice
from .portfolio import Holding, Ledger

__all__ = ['Trade', 'CashFlow', 'FxRate', 'MarketPrice', 'Holding', 'Ledger']
