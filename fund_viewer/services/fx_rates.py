"""
Exchange Rate Providers

Rates are expressed as units of a currency per 1 EUR, the convention of the
ECB reference rates. EUR itself is always present with rate 1.0.

API Documentation: https://data.ecb.europa.eu/help/api/data

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from abc import ABC, abstractmethod
from datetime import date
from io import StringIO
from typing import Dict, Iterable, Optional

import pandas as pd
import requests

from fund_viewer.core.config import HOME_CURRENCY, Settings
from fund_viewer.core.exceptions import ExternalFetchError
from fund_viewer.utils.logging_config import setup_logger

logger = setup_logger(__name__)


class ExchangeRateProvider(ABC):
    """Abstract base class for exchange rate services."""

    @abstractmethod
    def get_latest_rates(self) -> Dict[str, float]:
        """Latest table: {currency: units per EUR}."""
        pass

    @abstractmethod
    def get_rates_range(self, start: date, end: date) -> Dict[date, Dict[str, float]]:
        """Historical tables for publication days in [start, end]."""
        pass


class ECBRateProvider(ExchangeRateProvider):
    """
    European Central Bank reference rates (SDMX data API, CSV format).

    The ECB publishes on TARGET business days only, so historical tables are
    sparse; consumers resolve weekends and holidays backward.
    """

    SERIES = "D.{currencies}.EUR.SP00.A"

    def __init__(self, settings: Optional[Settings] = None, currencies: Iterable[str] = ()):
        self.settings = settings or Settings()
        # Empty selection means every currency the ECB quotes
        self.currencies = sorted({c.upper() for c in currencies if c.upper() != HOME_CURRENCY})
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "FundViewer/1.0",
            "Accept": "text/csv"
        })

    @property
    def url(self) -> str:
        series = self.SERIES.format(currencies="+".join(self.currencies))
        return f"{self.settings.ecb_api_url.rstrip('/')}/{series}"

    def _fetch_frame(self, params: Dict[str, str]) -> pd.DataFrame:
        query = dict(params, format="csvdata")
        try:
            response = self.session.get(self.url, params=query, timeout=self.settings.http_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"ECB API request failed: {e}")
            raise ExternalFetchError(f"ECB API request failed: {e}", self.currencies) from e

        if not response.text.strip():
            raise ExternalFetchError("ECB API returned no data", self.currencies)

        try:
            frame = pd.read_csv(StringIO(response.text))
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ExternalFetchError(f"Failed to parse ECB response: {e}", self.currencies) from e

        required = {'CURRENCY', 'TIME_PERIOD', 'OBS_VALUE'}
        if not required.issubset(frame.columns):
            raise ExternalFetchError(
                f"ECB response lacks columns {sorted(required - set(frame.columns))}",
                self.currencies
            )

        frame = frame[['CURRENCY', 'TIME_PERIOD', 'OBS_VALUE']].copy()
        frame['OBS_VALUE'] = pd.to_numeric(frame['OBS_VALUE'], errors='coerce')
        frame['TIME_PERIOD'] = pd.to_datetime(frame['TIME_PERIOD'], errors='coerce')
        return frame.dropna()

    def get_rates_range(self, start: date, end: date) -> Dict[date, Dict[str, float]]:
        frame = self._fetch_frame({
            "startPeriod": start.isoformat(),
            "endPeriod": end.isoformat()
        })

        tables: Dict[date, Dict[str, float]] = {}
        for row in frame.itertuples(index=False):
            day = row.TIME_PERIOD.date()
            tables.setdefault(day, {HOME_CURRENCY: 1.0})[row.CURRENCY] = float(row.OBS_VALUE)

        if not tables:
            raise ExternalFetchError(f"No ECB rates between {start} and {end}", self.currencies)

        logger.info(f"ECB rates: {len(tables)} publication days between {start} and {end}")
        return dict(sorted(tables.items()))

    def get_latest_rates(self) -> Dict[str, float]:
        frame = self._fetch_frame({"lastNObservations": "1"})
        if frame.empty:
            raise ExternalFetchError("ECB returned no latest rates", self.currencies)

        # One observation per currency; keep the newest if several come back
        latest = frame.sort_values('TIME_PERIOD').groupby('CURRENCY')['OBS_VALUE'].last()
        rates = {currency: float(value) for currency, value in latest.items()}
        rates[HOME_CURRENCY] = 1.0

        logger.debug(f"ECB latest rates for {len(rates) - 1} currencies")
        return rates
