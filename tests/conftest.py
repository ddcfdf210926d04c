"""Shared fixtures: record factories and in-memory quote/rate providers."""

from datetime import date
from typing import Dict, List

import pytest

from fund_viewer.core.exceptions import ExternalFetchError
from fund_viewer.parsers.records import (
    DepositRecord,
    IntradaySeries,
    PricePoint,
    TransactionRecord,
    VaultRecord,
)
from fund_viewer.services.fx_rates import ExchangeRateProvider
from fund_viewer.services.market_data import QuoteProvider


class FakeQuotes(QuoteProvider):
    """Quote provider answering from dictionaries and counting calls."""

    def __init__(self, live=None, history=None, intraday=None):
        self.live: Dict[str, float] = live or {}
        self.history: Dict[str, List[PricePoint]] = history or {}
        self.intraday: Dict[str, IntradaySeries] = intraday or {}
        self.calls: List[tuple] = []

    @property
    def name(self) -> str:
        return "fake"

    def get_live_price(self, ticker: str) -> float:
        self.calls.append(('live', ticker))
        if ticker not in self.live:
            raise ExternalFetchError(f"no quote for {ticker}", [ticker])
        return self.live[ticker]

    def get_historical_prices(self, ticker: str, start: date) -> List[PricePoint]:
        self.calls.append(('history', ticker))
        return [p for p in self.history.get(ticker, []) if p.date >= start]

    def get_intraday_prices(self, ticker: str) -> IntradaySeries:
        self.calls.append(('intraday', ticker))
        if ticker not in self.intraday:
            raise ExternalFetchError(f"no intraday data for {ticker}", [ticker])
        return self.intraday[ticker]


class FakeRates(ExchangeRateProvider):
    """Rate provider answering from fixed tables."""

    def __init__(self, latest=None, history=None):
        self.latest = latest or {"EUR": 1.0}
        self.history = history or {}
        self.calls: List[str] = []

    def get_latest_rates(self) -> Dict[str, float]:
        self.calls.append('latest')
        return dict(self.latest)

    def get_rates_range(self, start: date, end: date) -> Dict[date, Dict[str, float]]:
        self.calls.append('range')
        return {day: table for day, table in self.history.items() if start <= day <= end}


@pytest.fixture
def make_trade():
    """Factory for trade records with sensible defaults."""

    def _make(
        ticker="ABC",
        amount=10,
        day=date(2024, 1, 2),
        price=100.0,
        fees=0.0,
        currency="EUR",
        rate=1.0,
        total=None,
        investor="alice",
        converted=False
    ) -> TransactionRecord:
        if total is None:
            total = -(price * amount / rate) - fees
        return TransactionRecord(
            date=day,
            ticker=ticker,
            amount=amount,
            currency=currency,
            exchange_rate=rate,
            fees=fees,
            price_per_share=price,
            total_price_eur=total,
            investor=investor,
            converted_gbx_to_gbp=converted,
        )

    return _make


@pytest.fixture
def deposit():
    def _make(amount, day=date(2024, 1, 1), member="alice") -> DepositRecord:
        return DepositRecord(date=day, amount=amount, member=member)
    return _make


@pytest.fixture
def vault_entry():
    def _make(amount, day=date(2024, 1, 1)) -> VaultRecord:
        return VaultRecord(date=day, amount=amount)
    return _make


@pytest.fixture
def fake_quotes():
    return FakeQuotes


@pytest.fixture
def fake_rates():
    return FakeRates
