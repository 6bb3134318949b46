"""Portfolio data models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import timezone
from decimal import Decimal
from typing import Dict, List, Optional, Any

from config.constants import DEFAULT_ASSET_TYPE
from financial.calculations import DecimalMath
from .cash_flow import CashFlow
from .fields import decimal_to_str
from .market_data import FxRate, MarketPrice
from .trade import Trade


@dataclass(frozen=True)
class Holding:
    """An open position derived from the trade ledger.

    Holdings are recomputed from scratch on every query and never persisted.
    ``total_invested`` is the remaining cost basis (fees included) and
    ``avg_cost`` = total_invested / quantity. Market fields stay at zero
    until a price is applied.
    """
    ticker: str
    quantity: Decimal
    avg_cost: Decimal
    total_invested: Decimal
    market_value: Decimal = Decimal('0')
    unrealized_pl: Decimal = Decimal('0')
    unrealized_pl_percent: Decimal = Decimal('0')
    asset_type: str = DEFAULT_ASSET_TYPE
    total_fees: Decimal = Decimal('0')
    avg_cost_without_fees: Decimal = Decimal('0')
    fee_impact_percent: Decimal = Decimal('0')
    current_price: Optional[Decimal] = None

    @property
    def is_priced(self) -> bool:
        """Check whether a market price has been applied."""
        return self.current_price is not None

    def with_market_data(self, **changes: Any) -> Holding:
        """Return a copy with updated market fields."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape used by presentation collaborators.

        Returns:
            Dictionary with camelCase keys and string decimal values
        """
        return {
            'ticker': self.ticker,
            'assetType': self.asset_type,
            'quantity': decimal_to_str(self.quantity),
            'avgCost': decimal_to_str(self.avg_cost),
            'totalInvested': decimal_to_str(self.total_invested),
            'marketValue': decimal_to_str(self.market_value),
            'unrealizedPL': decimal_to_str(self.unrealized_pl),
            'unrealizedPLPercent': decimal_to_str(self.unrealized_pl_percent),
            'totalFees': decimal_to_str(self.total_fees),
            'avgCostWithoutFees': decimal_to_str(self.avg_cost_without_fees),
            'feeImpactPercent': decimal_to_str(self.fee_impact_percent),
            'currentPrice': decimal_to_str(self.current_price)
        }


@dataclass
class Ledger:
    """One user's read-only ledger as handed over by the data collaborator."""
    trades: List[Trade] = field(default_factory=list)
    cash_flows: List[CashFlow] = field(default_factory=list)
    fx_rates: List[FxRate] = field(default_factory=list)
    market_prices: List[MarketPrice] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.trades or self.cash_flows)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'trades': [trade.to_dict() for trade in self.trades],
            'cash_flows': [cash_flow.to_dict() for cash_flow in self.cash_flows],
            'fx_rates': [rate.to_dict() for rate in self.fx_rates],
            'market_prices': [price.to_dict() for price in self.market_prices]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], tz: Optional[timezone] = None,
                  calc: Optional[DecimalMath] = None) -> Ledger:
        """Create a Ledger from a dictionary of raw record lists.

        Args:
            data: Dictionary with optional 'trades', 'cash_flows', 'fx_rates'
                and 'market_prices' lists
            tz: Timezone for naive dates (UTC by default)
            calc: Decimal arithmetic used to derive cash flow USD amounts

        Returns:
            Ledger instance
        """
        return cls(
            trades=[Trade.from_dict(row, tz) for row in data.get('trades') or []],
            cash_flows=[CashFlow.from_dict(row, tz, calc) for row in data.get('cash_flows') or []],
            fx_rates=[FxRate.from_dict(row, tz) for row in data.get('fx_rates') or []],
            market_prices=[MarketPrice.from_dict(row, tz) for row in data.get('market_prices') or []]
        )
