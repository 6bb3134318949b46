"""Cash flow data models."""

from __future__ import annotations

from dataclasses import InitVar, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Any

from config.constants import CASH_FLOW_TYPES, SUPPORTED_CURRENCIES
from financial.calculations import DecimalMath
from financial.errors import InvalidCashFlowError
from .fields import date_field, decimal_field, decimal_to_str, text_field


@dataclass
class CashFlow:
    """Represents a deposit, withdrawal or fee cash movement.

    ``amount`` is in the native currency. ``fx_rate`` is COP per USD and is
    required for COP rows. ``usd_amount`` is trusted as given; it is derived
    (amount for USD, amount / fx_rate for COP) only when the source row has
    none.

    Fee rows may carry a ``fee_type`` sub-category and a link to the trade
    (``related_trade_id``) they were charged for.

    ``calc`` is init-only: the decimal arithmetic used to derive
    ``usd_amount`` (default configuration when omitted).
    """
    id: str
    date: datetime
    type: str  # deposit/withdrawal/fee
    currency: str  # COP/USD
    amount: Decimal
    fx_rate: Optional[Decimal] = None
    usd_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    fee_type: Optional[str] = None
    related_trade_id: Optional[str] = None
    related_type: Optional[str] = None
    broker_id: Optional[str] = None
    calc: InitVar[Optional[DecimalMath]] = None

    def __post_init__(self, calc: Optional[DecimalMath]):
        """Coerce raw field values and derive ``usd_amount`` when absent."""
        self.id = str(self.id) if self.id is not None else ''
        self.date = date_field(self.date, 'date', InvalidCashFlowError, self)
        self.type = (text_field(self.type) or '').lower()
        self.currency = (text_field(self.currency) or '').upper()
        self.amount = decimal_field(self.amount, 'amount', InvalidCashFlowError, self)
        self.fx_rate = decimal_field(self.fx_rate, 'fx_rate', InvalidCashFlowError, self, required=False)
        self.usd_amount = decimal_field(self.usd_amount, 'usd_amount', InvalidCashFlowError, self,
                                        required=False)
        self.notes = text_field(self.notes)
        self.fee_type = text_field(self.fee_type)
        if self.fee_type:
            self.fee_type = self.fee_type.lower()
        self.related_trade_id = text_field(self.related_trade_id)
        self.related_type = text_field(self.related_type)
        self.broker_id = text_field(self.broker_id)

        if self.usd_amount is None:
            self.usd_amount = self._derive_usd_amount(calc or DecimalMath())

    def _derive_usd_amount(self, calc: DecimalMath) -> Optional[Decimal]:
        if self.currency == 'USD':
            return self.amount
        if self.currency == 'COP' and self.fx_rate is not None and self.fx_rate > 0:
            return calc.div(self.amount, self.fx_rate)
        # Left empty; validate() reports the missing rate
        return None

    def validate(self) -> None:
        """Check the business rules the aggregations rely on.

        Raises:
            InvalidCashFlowError: If type or currency is unknown, the amount is
                negative, or a COP row has no positive fx_rate
        """
        if self.type not in CASH_FLOW_TYPES:
            raise InvalidCashFlowError(f"Unknown cash flow type: {self.type!r}", record=self)
        if self.currency not in SUPPORTED_CURRENCIES:
            raise InvalidCashFlowError(f"Unsupported currency: {self.currency!r}", record=self)
        if self.amount < 0:
            raise InvalidCashFlowError(f"Amount cannot be negative, got {self.amount}", record=self)
        if self.currency == 'COP' and (self.fx_rate is None or self.fx_rate <= 0):
            raise InvalidCashFlowError("COP cash flows require a positive fx_rate", record=self)
        if self.usd_amount is None:
            raise InvalidCashFlowError("usd_amount could not be determined", record=self)

    def is_deposit(self) -> bool:
        return self.type == 'deposit'

    def is_withdrawal(self) -> bool:
        return self.type == 'withdrawal'

    def is_fee(self) -> bool:
        return self.type == 'fee'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for CSV/JSON serialization.

        Returns:
            Dictionary representation compatible with the CSV ledger format
        """
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'type': self.type,
            'currency': self.currency,
            'amount': decimal_to_str(self.amount),
            'fx_rate': decimal_to_str(self.fx_rate),
            'usd_amount': decimal_to_str(self.usd_amount),
            'notes': self.notes,
            'fee_type': self.fee_type,
            'related_trade_id': self.related_trade_id,
            'related_type': self.related_type,
            'broker_id': self.broker_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], tz: Optional[timezone] = None,
                  calc: Optional[DecimalMath] = None) -> CashFlow:
        """Create CashFlow from dictionary (CSV row or JSON record).

        Args:
            data: Dictionary containing cash flow data
            tz: Timezone for naive dates (UTC by default)
            calc: Decimal arithmetic used to derive ``usd_amount``

        Returns:
            CashFlow instance

        Raises:
            InvalidCashFlowError: If a numeric field or the date cannot be parsed
        """
        return cls(
            id=data.get('id'),
            date=date_field(data.get('date'), 'date', InvalidCashFlowError, data, tz),
            type=data.get('type'),
            currency=data.get('currency'),
            amount=data.get('amount'),
            fx_rate=data.get('fx_rate'),
            usd_amount=data.get('usd_amount'),
            notes=data.get('notes'),
            fee_type=data.get('fee_type'),
            related_trade_id=data.get('related_trade_id'),
            related_type=data.get('related_type'),
            broker_id=data.get('broker_id'),
            calc=calc
        )
