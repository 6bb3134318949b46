"""
Currency handling module for COP/USD display conversions.

All P/L accounting is done in USD. The latest known COP per USD rate is
only used to show USD figures in COP (and to restate COP deposits for the
FX impact), never to feed USD P/L.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from .calculations import DecimalMath, NumericInput, ZERO
from .errors import InvalidInputError

logger = logging.getLogger(__name__)


class CurrencyHandler:
    """
    Handles FX rate selection and COP/USD conversion.

    Rates are COP per USD. Rate records are read by attribute (``date`` and
    ``rate``) and cash flows by ``type``, ``currency`` and ``amount``.
    """

    SUPPORTED_CURRENCIES = ('COP', 'USD')

    def __init__(self, calc: DecimalMath = None):
        """
        Initialize currency handler.

        Args:
            calc: Decimal arithmetic to use
        """
        self.calc = calc or DecimalMath()

    def latest_fx_rate(self, fx_rates: Iterable):
        """
        Get the most recent FX rate record.

        Ties on the date go to the record that appears last in the input.

        Args:
            fx_rates: FX rate records

        Returns:
            The latest record, or None when there are no rates
        """
        rates = sorted(fx_rates, key=lambda rate: rate.date)
        if not rates:
            return None
        return rates[-1]

    def latest_rate(self, fx_rates: Iterable) -> Optional[Decimal]:
        """Get the most recent COP per USD rate value, or None."""
        latest = self.latest_fx_rate(fx_rates)
        return latest.rate if latest is not None else None

    def usd_to_cop(self, amount: NumericInput, rate: NumericInput) -> Decimal:
        """Convert a USD amount to COP at ``rate`` COP per USD."""
        self._check_rate(rate)
        return self.calc.mul(amount, rate)

    def cop_to_usd(self, amount: NumericInput, rate: NumericInput) -> Decimal:
        """Convert a COP amount to USD at ``rate`` COP per USD."""
        self._check_rate(rate)
        return self.calc.div(amount, rate)

    def convert(self, amount: NumericInput, from_currency: str, to_currency: str,
                rate: NumericInput = None) -> Decimal:
        """
        Convert between COP and USD.

        Args:
            amount: Amount in ``from_currency``
            from_currency: 'COP' or 'USD'
            to_currency: 'COP' or 'USD'
            rate: COP per USD, required when the currencies differ

        Returns:
            Decimal: Converted amount

        Raises:
            InvalidInputError: If a currency is unsupported or the rate is missing
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        for currency in (from_currency, to_currency):
            if currency not in self.SUPPORTED_CURRENCIES:
                raise InvalidInputError(f"Unsupported currency: {currency}")

        if from_currency == to_currency:
            return self.calc.to_decimal(amount)
        if from_currency == 'USD':
            return self.usd_to_cop(amount, rate)
        return self.cop_to_usd(amount, rate)

    def cop_equivalent_total(self, cash_flows: Iterable, latest_rate: NumericInput,
                             flow_type: str = 'deposit') -> Decimal:
        """
        Total of one cash flow type expressed in COP.

        COP rows count at their native amount; USD rows are converted with
        the latest rate.

        Args:
            cash_flows: Cash flow records
            latest_rate: Latest COP per USD rate
            flow_type: Cash flow type to total ('deposit' by default)

        Returns:
            Decimal: COP-equivalent total
        """
        total = ZERO
        for cash_flow in cash_flows:
            if cash_flow.type != flow_type:
                continue
            if cash_flow.currency == 'COP':
                total = self.calc.add(total, cash_flow.amount)
            else:
                total = self.calc.add(total, self.usd_to_cop(cash_flow.amount, latest_rate))
        return total

    def _check_rate(self, rate: NumericInput) -> None:
        if rate is None:
            raise InvalidInputError("An FX rate is required for COP/USD conversion")
        if not self.calc.gt(rate, ZERO):
            raise InvalidInputError(f"FX rate must be positive, got {rate}", record=rate)


def get_latest_fx_rate(fx_rates: Iterable) -> Optional[Decimal]:
    """Convenience function for the most recent COP per USD rate."""
    return CurrencyHandler().latest_rate(fx_rates)
