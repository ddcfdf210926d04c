"""Quote providers: live prices, daily closes and intraday samples.

Prices are returned in the quote service's own units. For London listings
that is pence (GBX); callers divide by 100 for instruments whose trades were
converted to GBP.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import List, Optional

import pandas as pd
import yfinance as yf

from fund_viewer.core.config import INTRADAY_INTERVAL_MINUTES
from fund_viewer.core.exceptions import ExternalFetchError
from fund_viewer.parsers.records import IntradaySeries, PricePoint
from fund_viewer.utils.logging_config import setup_logger

logger = setup_logger(__name__)

# Suppress yfinance error spam for delisted tickers
logging.getLogger('yfinance').setLevel(logging.CRITICAL)


class QuoteProvider(ABC):
    """Abstract base class for quote services."""

    @abstractmethod
    def get_live_price(self, ticker: str) -> float:
        """Current price of a ticker."""
        pass

    @abstractmethod
    def get_historical_prices(self, ticker: str, start: date) -> List[PricePoint]:
        """Daily closes from `start` to today, ascending; gaps are allowed."""
        pass

    @abstractmethod
    def get_intraday_prices(self, ticker: str) -> IntradaySeries:
        """Today's intraday samples plus the last close."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging."""
        pass


def _valid_price(value) -> Optional[float]:
    if value is None:
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(price) or price <= 0:
        return None
    return price


def _last_close(history: pd.DataFrame) -> Optional[float]:
    if history is None or history.empty or 'Close' not in history.columns:
        return None
    closes = history['Close'].dropna()
    if closes.empty:
        return None
    return _valid_price(closes.iloc[-1])


class YFinanceProvider(QuoteProvider):
    """Yahoo Finance quotes through yfinance."""

    def __init__(self, interval_minutes: int = INTRADAY_INTERVAL_MINUTES):
        self.interval_minutes = interval_minutes

    @property
    def name(self) -> str:
        return "yfinance"

    def get_live_price(self, ticker: str) -> float:
        try:
            stock = yf.Ticker(ticker)
            price = _valid_price(stock.info.get('regularMarketPrice'))
            if price is None:
                # Fallback: latest close of the last trading days
                price = _last_close(stock.history(period='5d', interval='1d'))
        except Exception as e:
            raise ExternalFetchError(f"{self.name}: live quote failed for {ticker}: {e}", [ticker]) from e

        if price is None:
            raise ExternalFetchError(f"{self.name}: no live price for {ticker}", [ticker])

        logger.debug(f"{ticker}: live {price:.4f}")
        return price

    def get_historical_prices(self, ticker: str, start: date) -> List[PricePoint]:
        end = date.today() + timedelta(days=1)
        try:
            history = yf.Ticker(ticker).history(
                start=start.isoformat(),
                end=end.isoformat(),
                interval='1d',
                auto_adjust=False
            )
        except Exception as e:
            raise ExternalFetchError(f"{self.name}: history failed for {ticker}: {e}", [ticker]) from e

        points: List[PricePoint] = []
        if history is not None and not history.empty and 'Close' in history.columns:
            for idx, close in history['Close'].items():
                price = _valid_price(close)
                if price is not None:
                    points.append(PricePoint(date=idx.date(), close=price))

        if not points:
            logger.warning(f"{ticker}: no closes since {start}")
        else:
            logger.info(f"{ticker}: {len(points)} closes since {start}")
        return points

    def get_intraday_prices(self, ticker: str) -> IntradaySeries:
        try:
            stock = yf.Ticker(ticker)
            intraday = stock.history(period='1d', interval=f'{self.interval_minutes}m')
            last_close = _last_close(stock.history(period='5d', interval='1d'))
        except Exception as e:
            raise ExternalFetchError(f"{self.name}: intraday failed for {ticker}: {e}", [ticker]) from e

        samples = []
        if intraday is not None and not intraday.empty and 'Close' in intraday.columns:
            for idx, value in intraday['Close'].items():
                price = _valid_price(value)
                if price is not None:
                    samples.append((_to_local_naive(idx), price))

        if last_close is None:
            if not samples:
                raise ExternalFetchError(f"{self.name}: no intraday data for {ticker}", [ticker])
            last_close = samples[-1][1]

        return IntradaySeries(samples=tuple(samples), last_close=last_close)


def _to_local_naive(timestamp) -> datetime:
    """Exchange timestamp -> naive local time truncated to the minute."""
    moment = pd.Timestamp(timestamp).to_pydatetime()
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment.replace(second=0, microsecond=0)
