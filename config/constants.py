"""System constants and default values."""

# Ledger file names used by the CSV adapter
DEFAULT_DATA_DIR = "ledger_data"
TRADES_CSV_NAME = "trades.csv"
CASH_FLOWS_CSV_NAME = "cash_flows.csv"
FX_RATES_CSV_NAME = "fx_rates.csv"
MARKET_PRICES_CSV_NAME = "market_prices.csv"

# Currency configuration
BASE_CURRENCY = "USD"
SUPPORTED_CURRENCIES = ("COP", "USD")

# Trade vocabulary
TRADE_SIDES = ("buy", "sell")
ASSET_TYPES = ("stock", "etf", "crypto")
DEFAULT_ASSET_TYPE = "stock"

# Cash flow vocabulary
CASH_FLOW_TYPES = ("deposit", "withdrawal", "fee")

# Decimal arithmetic
DEFAULT_DECIMAL_PRECISION = 28
DEFAULT_ROUNDING = "ROUND_HALF_UP"

# XIRR solver
XIRR_DEFAULT_GUESS = 0.1
XIRR_MAX_ITERATIONS = 100
XIRR_TOLERANCE = 1e-6
XIRR_MIN_RATE = -0.99
XIRR_MAX_RATE = 10.0
MS_PER_YEAR = 365.25 * 24 * 60 * 60 * 1000

# Display configuration
MONEY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 2
COP_DECIMAL_PLACES = 0
TOP_HOLDINGS_COUNT = 5

# Reconciliation tolerance (USD) for total fee differences
RECONCILIATION_TOLERANCE = "0.01"

# Logging configuration
LOG_FILE = "fintu_tracker.log"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DEFAULT_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
