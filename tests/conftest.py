import pytest
import sys
import os

# Add project root and the tests directory to path so we can import modules and helpers
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from data.models.portfolio import Ledger
from test_helpers import make_cash_flow, make_fx_rate, make_market_price, make_trade


@pytest.fixture
def sample_trades():
    """Buy 10 AAPL @100 (fee 1), sell 4 @120 (fee 1), buy 2 BTC-USD @20000."""
    return [
        make_trade("AAPL", "buy", "10", "100", date="2023-01-01", fee="1", trade_id="t1"),
        make_trade("AAPL", "sell", "4", "120", date="2023-06-01", fee="1", trade_id="t2"),
        make_trade("BTC-USD", "buy", "0.05", "20000", date="2023-02-01", fee="5",
                   trade_id="t3", asset_type="crypto"),
    ]


@pytest.fixture
def sample_cash_flows():
    """A USD deposit, a COP deposit at 4000 COP/USD, and one standalone fee."""
    return [
        make_cash_flow("deposit", "1000", date="2023-01-01", cash_flow_id="c1"),
        make_cash_flow("deposit", "2000000", currency="COP", fx_rate="4000",
                       date="2023-02-01", cash_flow_id="c2"),
        make_cash_flow("fee", "3", date="2023-03-15", fee_type="maintenance", cash_flow_id="c3"),
    ]


@pytest.fixture
def sample_ledger(sample_trades, sample_cash_flows):
    return Ledger(
        trades=sample_trades,
        cash_flows=sample_cash_flows,
        fx_rates=[make_fx_rate("4000", "2023-02-01"), make_fx_rate("5000", "2024-01-01")],
        market_prices=[make_market_price("AAPL", "130"), make_market_price("BTC-USD", "30000")]
    )


@pytest.fixture
def one_year_ledger():
    """Deposit 1000 USD, bought 10 shares @100, now worth 110 each."""
    return Ledger(
        trades=[make_trade("VTI", "buy", "10", "100", date="2023-01-01", trade_id="v1", asset_type="etf")],
        cash_flows=[make_cash_flow("deposit", "1000", date="2023-01-01", cash_flow_id="d1")],
        market_prices=[make_market_price("VTI", "110")]
    )
