"""
Engine configuration.

Settings come from environment variables with sensible defaults, so the same
code runs locally, in CI and behind a scheduler without a config file.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ECB_API_URL = "https://data-api.ecb.europa.eu/service/data/EXR"

HOME_CURRENCY = "EUR"

# Minor-unit currency codes and their display unit
MINOR_UNIT_CURRENCIES = {
    "GBX": "GBP",
}
MINOR_UNIT_FACTOR = 100.0

# Intraday grid used by the daily progress view
INTRADAY_INTERVAL_MINUTES = 5

# Quotes and ECB rates only exist on trading days; history fetches start this
# many days before the first ledger date so the first days resolve backward
HISTORY_LOOKBACK_DAYS = 10


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass(frozen=True)
class Settings:
    """Runtime settings of the engine and its adapters."""

    data_dir: Path = Path("data")
    transactions_file: str = "transactions.csv"
    deposits_file: str = "deposits.csv"
    vault_file: str = "vault.csv"

    # Seconds a whole fetch batch may take before FetchTimeoutError
    fetch_timeout: float = 30.0
    # None: one concurrent request per distinct ticker or currency
    max_workers: Optional[int] = None
    http_timeout: float = 10.0

    ecb_api_url: str = ECB_API_URL
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from FUND_* / ECB_* / LOG_* environment variables."""
        return cls(
            data_dir=Path(os.getenv("FUND_DATA_DIR", "data")),
            transactions_file=os.getenv("FUND_TRANSACTIONS_FILE", "transactions.csv"),
            deposits_file=os.getenv("FUND_DEPOSITS_FILE", "deposits.csv"),
            vault_file=os.getenv("FUND_VAULT_FILE", "vault.csv"),
            fetch_timeout=_env_float("FUND_FETCH_TIMEOUT", 30.0),
            max_workers=_env_int("FUND_MAX_WORKERS", None),
            http_timeout=_env_float("FUND_HTTP_TIMEOUT", 10.0),
            ecb_api_url=os.getenv("ECB_API_URL", ECB_API_URL),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE") or None,
        )

    def ledger_path(self, ledger: str) -> Path:
        """Path of a ledger file by name ('transactions', 'deposits', 'vault')."""
        files = {
            "transactions": self.transactions_file,
            "deposits": self.deposits_file,
            "vault": self.vault_file,
        }
        if ledger not in files:
            raise KeyError(f"Unknown ledger: {ledger}")
        return Path(self.data_dir) / files[ledger]
