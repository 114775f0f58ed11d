import os
import sys
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test scripts to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)


def _exit_with_config_error(name: str, reason: Exception, expected: str) -> None:
    print(f"\n ERROR: Invalid {name} configuration\n", file=sys.stderr)
    print(f"Reason: {reason}", file=sys.stderr)
    print(f"Expected: {expected}", file=sys.stderr)
    print(f"Current value: {os.environ.get(name, '(not set)')}\n", file=sys.stderr)
    sys.exit(1)


def _decimal_env(name: str, default: str, allow_empty: bool = False) -> Decimal | None:
    raw = os.environ.get(name, default)
    if allow_empty and (raw is None or raw.strip() == ""):
        return None
    try:
        value = Decimal(raw)
        if value < 0:
            raise ValueError(f"{name} must not be negative (got: {value})")
        return value
    except (InvalidOperation, ValueError) as e:
        _exit_with_config_error(name, e, "Non-negative decimal amount (e.g., 0.01, 75.00)")


def _positive_number_env(name: str, default: str, cast=float):
    try:
        value = cast(os.environ.get(name, default))
        if value <= 0:
            raise ValueError(f"{name} must be positive (got: {value})")
        return value
    except ValueError as e:
        _exit_with_config_error(name, e, "Positive number")


# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(os.environ.get("RUNTIME_ENVIRONMENT", RuntimeEnvironment.DEV.value))
except ValueError as e:
    _exit_with_config_error(
        "RUNTIME_ENVIRONMENT", e, f"One of {', '.join(env.value for env in RuntimeEnvironment)}"
    )

# Database
DB_URL = os.environ.get("DB_URL", "sqlite+aiosqlite:///data/storefront.db")
STORE_TRANSACTION_TIMEOUT_SECONDS = _positive_number_env("STORE_TRANSACTION_TIMEOUT_SECONDS", "10")

# Optimistic concurrency (discount consumption, gift card balances)
CONCURRENCY_MAX_RETRIES = _positive_number_env("CONCURRENCY_MAX_RETRIES", "3", cast=int)
CONCURRENCY_RETRY_DELAY_SECONDS = _positive_number_env("CONCURRENCY_RETRY_DELAY_SECONDS", "0.05")

# Store / settlement
BASE_CURRENCY = os.environ.get("BASE_CURRENCY", "USD").upper()
STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "America/New_York")
SERVED_COUNTRY = os.environ.get("SERVED_COUNTRY", "US").upper()
TOTAL_MISMATCH_TOLERANCE = _decimal_env("TOTAL_MISMATCH_TOLERANCE", "0.01")
# Empty string disables the threshold
FREE_SHIPPING_THRESHOLD = _decimal_env("FREE_SHIPPING_THRESHOLD", "", allow_empty=True)

# Sales tax
NO_TAX_STATES = [
    state.strip().upper()
    for state in os.environ.get("NO_TAX_STATES", "DE,MT,NH,OR").split(",")
    if state.strip()
]
TAXJAR_API_KEY = os.environ.get("TAXJAR_API_KEY", "")
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.PROD:
    TAXJAR_API_URL = os.environ.get("TAXJAR_API_URL", "https://api.taxjar.com")
else:
    TAXJAR_API_URL = os.environ.get("TAXJAR_API_URL", "https://api.sandbox.taxjar.com")
TAX_PROVIDER_TIMEOUT_SECONDS = _positive_number_env("TAX_PROVIDER_TIMEOUT_SECONDS", "5")

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask sensitive data in logs
LOG_RETENTION_DAYS = _positive_number_env("LOG_RETENTION_DAYS", "7", cast=int)
