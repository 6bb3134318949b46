"""CSV-based ledger repository implementation."""

from __future__ import annotations

from datetime import timezone
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar
import pandas as pd
import logging

from config.constants import (
    TRADES_CSV_NAME,
    CASH_FLOWS_CSV_NAME,
    FX_RATES_CSV_NAME,
    MARKET_PRICES_CSV_NAME,
)
from financial.calculations import DecimalMath
from financial.errors import InvalidInputError
from .base_repository import LedgerRepository, RepositoryError, DataValidationError
from ..models.cash_flow import CashFlow
from ..models.market_data import FxRate, MarketPrice
from ..models.portfolio import Ledger
from ..models.trade import Trade

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CSVLedgerRepository(LedgerRepository):
    """CSV-based implementation of the ledger repository.

    Reads ``trades.csv``, ``cash_flows.csv``, ``fx_rates.csv`` and
    ``market_prices.csv`` from one directory. Every column is read as a
    string so decimal values reach the models exactly as written. A missing
    file is an empty collection.
    """

    def __init__(self, data_directory: str, tz: Optional[timezone] = None, calc: DecimalMath = None):
        """Initialize CSV repository.

        Args:
            data_directory: Directory containing the ledger CSV files
            tz: Timezone for naive dates (UTC by default)
            calc: Decimal arithmetic used to derive cash flow USD amounts
        """
        if not data_directory:
            raise ValueError("data_directory is required for CSVLedgerRepository")

        self.data_dir = Path(data_directory)
        self.tz = tz
        self.calc = calc or DecimalMath()
        self.trades_file = self.data_dir / TRADES_CSV_NAME
        self.cash_flows_file = self.data_dir / CASH_FLOWS_CSV_NAME
        self.fx_rates_file = self.data_dir / FX_RATES_CSV_NAME
        self.market_prices_file = self.data_dir / MARKET_PRICES_CSV_NAME

    def get_trades(self) -> List[Trade]:
        """Retrieve trades from trades.csv."""
        return self._load_records(self.trades_file, Trade.from_dict)

    def get_cash_flows(self) -> List[CashFlow]:
        """Retrieve cash flows from cash_flows.csv."""
        return self._load_records(self.cash_flows_file, partial(CashFlow.from_dict, calc=self.calc))

    def get_fx_rates(self) -> List[FxRate]:
        """Retrieve FX rates from fx_rates.csv."""
        return self._load_records(self.fx_rates_file, FxRate.from_dict)

    def get_market_prices(self) -> List[MarketPrice]:
        """Retrieve market prices from market_prices.csv."""
        return self._load_records(self.market_prices_file, MarketPrice.from_dict)

    def save_ledger(self, ledger: Ledger) -> None:
        """Write a ledger to the four CSV files.

        Used by collaborators and tests to export a ledger; the engine itself
        never writes.

        Args:
            ledger: Ledger to write
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._write_records(self.trades_file, [t.to_dict() for t in ledger.trades])
            self._write_records(self.cash_flows_file, [c.to_dict() for c in ledger.cash_flows])
            self._write_records(self.fx_rates_file, [r.to_dict() for r in ledger.fx_rates])
            self._write_records(self.market_prices_file, [p.to_dict() for p in ledger.market_prices])
            logger.info(f"Saved ledger to {self.data_dir}")
        except OSError as e:
            logger.error(f"Failed to save ledger: {e}")
            raise RepositoryError(f"Failed to save ledger: {e}") from e

    def _load_records(self, path: Path, factory: Callable[[Dict[str, Any], Optional[timezone]], T]) -> List[T]:
        """Read one CSV file and convert each row with ``factory``.

        Raises:
            DataValidationError: If a row cannot be converted into a record
            RepositoryError: If the file cannot be read
        """
        if not path.exists():
            logger.info(f"Ledger file does not exist: {path}")
            return []

        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            logger.info(f"Ledger file is empty: {path}")
            return []
        except (OSError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read {path}: {e}")
            raise RepositoryError(f"Failed to read {path}: {e}") from e

        records = []
        for index, row in enumerate(df.to_dict(orient='records')):
            try:
                records.append(factory(row, self.tz))
            except InvalidInputError as e:
                logger.error(f"Invalid row {index + 2} in {path.name}: {e}")
                raise DataValidationError(f"Invalid row {index + 2} in {path.name}: {e}") from e

        logger.debug(f"Loaded {len(records)} records from {path.name}")
        return records

    def _write_records(self, path: Path, rows: List[Dict[str, Any]]) -> None:
        if not rows:
            if path.exists():
                path.unlink()
            return
        pd.DataFrame(rows).to_csv(path, index=False)
