"""FX rate and market price models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Any

from config.constants import BASE_CURRENCY
from financial.errors import InvalidInputError
from .fields import date_field, decimal_field, decimal_to_str, optional_date_field, text_field


@dataclass
class FxRate:
    """A COP per USD exchange rate observed on a date."""
    id: str
    date: datetime
    rate: Decimal
    source: Optional[str] = None

    def __post_init__(self):
        self.id = str(self.id) if self.id is not None else ''
        self.date = date_field(self.date, 'date', InvalidInputError, self)
        self.rate = decimal_field(self.rate, 'rate', InvalidInputError, self)
        if self.rate <= 0:
            raise InvalidInputError(f"FX rate must be positive, got {self.rate}", record=self)
        self.source = text_field(self.source)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'rate': decimal_to_str(self.rate),
            'source': self.source
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], tz: Optional[timezone] = None) -> FxRate:
        """Create FxRate from dictionary (CSV row or JSON record)."""
        return cls(
            id=data.get('id'),
            date=date_field(data.get('date'), 'date', InvalidInputError, data, tz),
            rate=data.get('rate'),
            source=data.get('source')
        )


@dataclass
class MarketPrice:
    """Latest market price snapshot for a ticker.

    Supplied by an external price feed; one row per ticker is expected, but
    when several are present the most recent ``updated_at`` wins.
    """
    ticker: str
    price: Decimal
    currency: str = BASE_CURRENCY
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.ticker = (text_field(self.ticker) or '').upper()
        if not self.ticker:
            raise InvalidInputError("Market price ticker is required", record=self)
        self.price = decimal_field(self.price, 'price', InvalidInputError, self)
        self.currency = (text_field(self.currency) or BASE_CURRENCY).upper()
        self.updated_at = optional_date_field(self.updated_at, 'updated_at', InvalidInputError, self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ticker': self.ticker,
            'price': decimal_to_str(self.price),
            'currency': self.currency,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], tz: Optional[timezone] = None) -> MarketPrice:
        """Create MarketPrice from dictionary (CSV row or JSON record)."""
        return cls(
            ticker=data.get('ticker'),
            price=data.get('price'),
            currency=data.get('currency'),
            updated_at=optional_date_field(data.get('updated_at'), 'updated_at', InvalidInputError, data, tz)
        )
