"""
System-wide constants for the signal execution service.

Centralizes magic numbers and configuration defaults used across modules.
"""
from decimal import Decimal

# Exchange
EXPECTED_EXCHANGE = "hyperliquid"
PERP_SYMBOL_SUFFIX = "/USDC:USDC"  # ccxt unified suffix for USDC-margined perps
MARKET_SEPARATORS = ("_", "/", "-")
DEFAULT_MARGIN_MODE = "cross"

# Order sizing
SIZE_DECIMALS = 4
OPEN_PRICE_DECIMALS = 2
SIZE_QUANTUM = Decimal(1).scaleb(-SIZE_DECIMALS)  # 0.0001

# Fill retry loop
MAX_FILL_ATTEMPTS = 3
UNFILLED_BACKOFF_SECONDS = 3.0
ERROR_BACKOFF_SECONDS = 1.0

# Timeouts
DEFAULT_API_TIMEOUT_MS = 30000

# Notifications
NOTIFY_MAX_RETRIES = 3
NOTIFY_RETRY_DELAY_SECONDS = 1.0
NOTIFY_QUEUE_SIZE = 100
EMBED_COLOR_LONG = 5763719  # green
EMBED_COLOR_SHORT = 15548997  # red
EMBED_COLOR_EXIT = 10070709  # light gray
EMBED_COLOR_ERROR = 15548997

# Logging
BANNER_WIDTH = 60
