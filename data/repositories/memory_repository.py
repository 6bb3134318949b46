"""In-memory ledger repository."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .base_repository import LedgerRepository
from ..models.cash_flow import CashFlow
from ..models.market_data import FxRate, MarketPrice
from ..models.trade import Trade


class InMemoryLedgerRepository(LedgerRepository):
    """Wraps record lists handed in by a collaborator (or a test).

    The lists are copied on construction and again on every read, so
    callers can never mutate the stored ledger through a returned list.
    """

    def __init__(self,
                 trades: Optional[Iterable[Trade]] = None,
                 cash_flows: Optional[Iterable[CashFlow]] = None,
                 fx_rates: Optional[Iterable[FxRate]] = None,
                 market_prices: Optional[Iterable[MarketPrice]] = None):
        self._trades = list(trades or [])
        self._cash_flows = list(cash_flows or [])
        self._fx_rates = list(fx_rates or [])
        self._market_prices = list(market_prices or [])

    def get_trades(self) -> List[Trade]:
        return list(self._trades)

    def get_cash_flows(self) -> List[CashFlow]:
        return list(self._cash_flows)

    def get_fx_rates(self) -> List[FxRate]:
        return list(self._fx_rates)

    def get_market_prices(self) -> List[MarketPrice]:
        return list(self._market_prices)
