"""Trade data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Any

from config.constants import ASSET_TYPES, DEFAULT_ASSET_TYPE, TRADE_SIDES
from financial.calculations import DecimalMath
from financial.errors import InvalidTradeError
from .fields import date_field, decimal_field, decimal_to_str, text_field


@dataclass
class Trade:
    """Represents a single buy or sell of a ticker.

    Prices, fees and totals are in USD. The record is read-only to the
    engine; the collaborator owns creation and edits.

    ``total`` is the cash that changed hands: quantity*price + fee for a buy,
    quantity*price - fee for a sell. When the source row has no total it is
    derived with ``resolved_total``.
    """
    id: str
    date: datetime
    ticker: str
    side: str  # buy/sell
    quantity: Decimal
    price: Decimal
    fee: Decimal = Decimal('0')
    total: Optional[Decimal] = None
    asset_type: str = DEFAULT_ASSET_TYPE
    notes: Optional[str] = None
    deposit_fee: Decimal = Decimal('0')
    trading_fee: Decimal = Decimal('0')
    closing_fee: Decimal = Decimal('0')
    broker_id: Optional[str] = None
    transaction_fx_rate: Optional[Decimal] = None

    def __post_init__(self):
        """Coerce raw field values to Decimal, datetime and normalized text."""
        self.id = str(self.id) if self.id is not None else ''
        self.date = date_field(self.date, 'date', InvalidTradeError, self)
        self.ticker = (text_field(self.ticker) or '').upper()
        self.side = (text_field(self.side) or '').lower()
        self.asset_type = (text_field(self.asset_type) or DEFAULT_ASSET_TYPE).lower()

        self.quantity = decimal_field(self.quantity, 'quantity', InvalidTradeError, self)
        self.price = decimal_field(self.price, 'price', InvalidTradeError, self)
        self.fee = decimal_field(self.fee, 'fee', InvalidTradeError, self, default=Decimal('0'))
        self.total = decimal_field(self.total, 'total', InvalidTradeError, self, required=False)
        self.deposit_fee = decimal_field(self.deposit_fee, 'deposit_fee', InvalidTradeError, self,
                                         default=Decimal('0'))
        self.trading_fee = decimal_field(self.trading_fee, 'trading_fee', InvalidTradeError, self,
                                         default=Decimal('0'))
        self.closing_fee = decimal_field(self.closing_fee, 'closing_fee', InvalidTradeError, self,
                                         default=Decimal('0'))
        self.transaction_fx_rate = decimal_field(self.transaction_fx_rate, 'transaction_fx_rate',
                                                 InvalidTradeError, self, required=False)
        self.notes = text_field(self.notes)
        self.broker_id = text_field(self.broker_id)

    def validate(self) -> None:
        """Check the business rules the holdings calculation relies on.

        Raises:
            InvalidTradeError: If ticker, side, asset type, quantity, price or
                any fee is out of range
        """
        if not self.ticker:
            raise InvalidTradeError("Ticker is required", record=self)
        if self.side not in TRADE_SIDES:
            raise InvalidTradeError(f"Unknown trade side: {self.side!r}", record=self)
        if self.asset_type not in ASSET_TYPES:
            raise InvalidTradeError(f"Unknown asset type: {self.asset_type!r}", record=self)
        if self.quantity <= 0:
            raise InvalidTradeError(f"Quantity must be positive, got {self.quantity}", record=self)
        if self.price < 0:
            raise InvalidTradeError(f"Price cannot be negative, got {self.price}", record=self)
        for name in ('fee', 'deposit_fee', 'trading_fee', 'closing_fee'):
            if getattr(self, name) < 0:
                raise InvalidTradeError(f"{name} cannot be negative, got {getattr(self, name)}", record=self)

    def has_detailed_fees(self) -> bool:
        """Check if the deposit/trading/closing fee breakdown is filled in."""
        return any(fee != 0 for fee in (self.deposit_fee, self.trading_fee, self.closing_fee))

    def total_fees(self, calc: DecimalMath = None) -> Decimal:
        """Total fees of the trade.

        The detailed breakdown wins when present; otherwise the single
        ``fee`` field is used.

        Args:
            calc: Decimal arithmetic to use
        """
        if self.has_detailed_fees():
            return (calc or DecimalMath()).add(self.deposit_fee, self.trading_fee, self.closing_fee)
        return self.fee

    def trade_value(self, calc: DecimalMath = None) -> Decimal:
        """Gross value of the trade (quantity * price), before fees."""
        return (calc or DecimalMath()).mul(self.quantity, self.price)

    def resolved_total(self, calc: DecimalMath = None) -> Decimal:
        """Get the trade total, deriving it from quantity, price and fee when absent.

        Args:
            calc: Decimal arithmetic to use

        Returns:
            Decimal total (buy: q*p + fee, sell: q*p - fee)
        """
        if self.total is not None:
            return self.total
        calc = calc or DecimalMath()
        gross = calc.mul(self.quantity, self.price)
        if self.is_sell():
            return calc.sub(gross, self.fee)
        return calc.add(gross, self.fee)

    def is_buy(self) -> bool:
        """Check if this is a buy trade.

        Returns:
            True if side is buy
        """
        return self.side == 'buy'

    def is_sell(self) -> bool:
        """Check if this is a sell trade.

        Returns:
            True if side is sell
        """
        return self.side == 'sell'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for CSV/JSON serialization.

        Decimals are rendered as plain strings so they round-trip exactly.

        Returns:
            Dictionary representation compatible with the CSV ledger format
        """
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'ticker': self.ticker,
            'asset_type': self.asset_type,
            'side': self.side,
            'quantity': decimal_to_str(self.quantity),
            'price': decimal_to_str(self.price),
            'fee': decimal_to_str(self.fee),
            'total': decimal_to_str(self.resolved_total()),
            'notes': self.notes,
            'deposit_fee': decimal_to_str(self.deposit_fee),
            'trading_fee': decimal_to_str(self.trading_fee),
            'closing_fee': decimal_to_str(self.closing_fee),
            'broker_id': self.broker_id,
            'transaction_fx_rate': decimal_to_str(self.transaction_fx_rate)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], tz: Optional[timezone] = None) -> Trade:
        """Create Trade from dictionary (CSV row or JSON record).

        Args:
            data: Dictionary containing trade data
            tz: Timezone for naive dates (UTC by default)

        Returns:
            Trade instance

        Raises:
            InvalidTradeError: If a numeric field or the date cannot be parsed
        """
        return cls(
            id=data.get('id'),
            date=date_field(data.get('date'), 'date', InvalidTradeError, data, tz),
            ticker=data.get('ticker'),
            side=data.get('side'),
            quantity=data.get('quantity'),
            price=data.get('price'),
            fee=data.get('fee'),
            total=data.get('total'),
            asset_type=data.get('asset_type'),
            notes=data.get('notes'),
            deposit_fee=data.get('deposit_fee'),
            trading_fee=data.get('trading_fee'),
            closing_fee=data.get('closing_fee'),
            broker_id=data.get('broker_id'),
            transaction_fx_rate=data.get('transaction_fx_rate')
        )
