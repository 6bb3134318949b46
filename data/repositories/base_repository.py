"""Abstract ledger repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..models.cash_flow import CashFlow
from ..models.market_data import FxRate, MarketPrice
from ..models.portfolio import Ledger
from ..models.trade import Trade


class LedgerRepository(ABC):
    """Abstract base class for ledger access.

    A repository hands the engine one user's already-authorized ledger.
    Implementations are thin adapters; the engine never writes through them.
    """

    @abstractmethod
    def get_trades(self) -> List[Trade]:
        """Retrieve all trades.

        Returns:
            List of Trade objects in source order

        Raises:
            RepositoryError: If data access fails
        """
        pass

    @abstractmethod
    def get_cash_flows(self) -> List[CashFlow]:
        """Retrieve all cash flows.

        Returns:
            List of CashFlow objects in source order

        Raises:
            RepositoryError: If data access fails
        """
        pass

    @abstractmethod
    def get_fx_rates(self) -> List[FxRate]:
        """Retrieve known FX rates (at least the most recent one).

        Returns:
            List of FxRate objects

        Raises:
            RepositoryError: If data access fails
        """
        pass

    @abstractmethod
    def get_market_prices(self) -> List[MarketPrice]:
        """Retrieve the latest market price snapshot per ticker.

        Returns:
            List of MarketPrice objects

        Raises:
            RepositoryError: If data access fails
        """
        pass

    def load_ledger(self) -> Ledger:
        """Load the four ledger collections at once.

        Returns:
            Ledger with trades, cash flows, FX rates and market prices
        """
        return Ledger(
            trades=self.get_trades(),
            cash_flows=self.get_cash_flows(),
            fx_rates=self.get_fx_rates(),
            market_prices=self.get_market_prices()
        )


class RepositoryError(Exception):
    """Base exception for repository operations."""
    pass


class DataValidationError(RepositoryError):
    """Exception raised when a stored row cannot be turned into a record."""
    pass
