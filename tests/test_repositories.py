"""
Tests for the ledger repositories.

The CSV repository is exercised against real files in a temporary
directory; the in-memory repository against plain lists.
"""

import shutil
import tempfile
from decimal import Decimal
from pathlib import Path
import sys

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from data.models.portfolio import Ledger
from data.repositories import (
    CSVLedgerRepository,
    DataValidationError,
    InMemoryLedgerRepository,
    RepositoryError
)
from financial.calculations import DecimalConfig, DecimalMath
from test_helpers import make_trade


class TestCSVLedgerRepository:
    """Test reading and writing the CSV ledger."""

    def setup_method(self):
        self.data_dir = Path(tempfile.mkdtemp())
        self.repository = CSVLedgerRepository(str(self.data_dir))

    def teardown_method(self):
        if self.data_dir.exists():
            shutil.rmtree(self.data_dir)

    def test_missing_files_are_empty(self):
        ledger = self.repository.load_ledger()
        assert ledger.is_empty
        assert ledger.fx_rates == []
        assert ledger.market_prices == []

    def test_requires_directory(self):
        with pytest.raises(ValueError):
            CSVLedgerRepository("")

    def test_reads_decimals_exactly(self):
        (self.data_dir / "trades.csv").write_text(
            "id,date,ticker,side,quantity,price,fee,total,asset_type\n"
            "t1,2023-01-01,aapl,buy,0.1,100.10,0.30,,\n"
            "t2,2023-02-01,AAPL,sell,0.05,120,0,,stock\n"
        )
        trades = self.repository.get_trades()

        assert [t.id for t in trades] == ["t1", "t2"]
        assert trades[0].ticker == "AAPL"
        assert trades[0].price == Decimal("100.10")
        assert str(trades[0].fee) == "0.30"
        assert trades[0].total is None
        assert trades[0].asset_type == "stock"

    def test_cash_flows_with_blank_optional_columns(self):
        (self.data_dir / "cash_flows.csv").write_text(
            "id,date,type,currency,amount,fx_rate,usd_amount,fee_type,related_trade_id\n"
            "c1,2023-01-01,deposit,COP,4000000,4000,,,\n"
            "c2,2023-01-05,fee,USD,1.5,,,trading,t1\n"
        )
        cash_flows = self.repository.get_cash_flows()

        assert cash_flows[0].usd_amount == Decimal("1000")
        assert cash_flows[1].fx_rate is None
        assert cash_flows[1].related_trade_id == "t1"

    def test_cash_flow_usd_amount_uses_repository_calc(self):
        (self.data_dir / "cash_flows.csv").write_text(
            "id,date,type,currency,amount,fx_rate\n"
            "c1,2023-01-01,deposit,COP,1000000,3\n"
        )
        repository = CSVLedgerRepository(str(self.data_dir), calc=DecimalMath(DecimalConfig(precision=20)))
        assert repository.get_cash_flows()[0].usd_amount == Decimal("333333.33333333333333")

    def test_invalid_row_raises_with_row_number(self):
        (self.data_dir / "fx_rates.csv").write_text(
            "id,date,rate,source\n"
            "r1,2023-01-01,4000,test\n"
            "r2,2023-01-02,abc,test\n"
        )
        with pytest.raises(DataValidationError, match="row 3"):
            self.repository.get_fx_rates()

    def test_empty_file(self):
        (self.data_dir / "market_prices.csv").write_text("")
        assert self.repository.get_market_prices() == []

    def test_save_and_load_ledger(self, sample_ledger):
        self.repository.save_ledger(sample_ledger)
        loaded = self.repository.load_ledger()

        assert loaded.to_dict() == sample_ledger.to_dict()

    def test_save_removes_files_for_empty_collections(self, sample_ledger):
        self.repository.save_ledger(sample_ledger)
        self.repository.save_ledger(Ledger(trades=sample_ledger.trades))

        assert not (self.data_dir / "cash_flows.csv").exists()
        assert len(self.repository.get_trades()) == len(sample_ledger.trades)

    def test_repository_error_is_base_class(self):
        assert issubclass(DataValidationError, RepositoryError)


class TestInMemoryLedgerRepository:
    """Test the in-memory adapter."""

    def test_returns_copies(self):
        trades = [make_trade("AAPL")]
        repository = InMemoryLedgerRepository(trades=trades)

        returned = repository.get_trades()
        returned.append(make_trade("MSFT"))
        trades.append(make_trade("TSLA"))

        assert [t.ticker for t in repository.get_trades()] == ["AAPL"]

    def test_load_ledger(self, sample_ledger):
        repository = InMemoryLedgerRepository(
            sample_ledger.trades, sample_ledger.cash_flows,
            sample_ledger.fx_rates, sample_ledger.market_prices
        )
        ledger = repository.load_ledger()
        assert ledger.trades == sample_ledger.trades
        assert ledger.market_prices == sample_ledger.market_prices
