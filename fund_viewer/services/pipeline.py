"""
Fund Engine

Single entry point consolidating the historical and the live valuation paths:

1. Fetch the price universe (one concurrent batch) and historical exchange rates
2. Reconstruct day-by-day worth, accumulate deposits, build the worth series
3. Fetch live quotes and the latest rate table, value open positions
4. Optionally fetch intraday series and compute today's progress

All collaborator calls go through the batch fetcher; any failure aborts the
report. The calculators themselves are pure and run on the snapshot as given.

Usage:
    python -m fund_viewer.services.pipeline [data_dir]

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import sys
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from fund_viewer.calculators.aggregation import GroupedHolding, group_by_ticker, open_records
from fund_viewer.calculators.history import (
    DailyWorth,
    DepositPoint,
    WorthPoint,
    accumulate_deposits,
    build_worth_series,
    reconstruct_worth,
)
from fund_viewer.calculators.valuation import (
    FundSummary,
    InstrumentPerformance,
    IntradayPoint,
    InvestorPerformance,
    current_worth,
    daily_progress,
    fund_summary,
    investor_performance,
    open_tickers,
    stock_performance,
)
from fund_viewer.core.config import HISTORY_LOOKBACK_DAYS, HOME_CURRENCY, Settings
from fund_viewer.parsers.ledger_parser import load_snapshot
from fund_viewer.parsers.records import IntradaySeries, LedgerSnapshot, TransactionRecord
from fund_viewer.services.fetcher import fetch_batch, fetch_one
from fund_viewer.services.fx_rates import ECBRateProvider, ExchangeRateProvider
from fund_viewer.services.market_data import QuoteProvider, YFinanceProvider
from fund_viewer.utils.logging_config import configure_logging, setup_logger, get_perf_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class EngineOptions:
    """Feature flags of a report run."""
    include_history: bool = True
    include_daily_progress: bool = False


@dataclass(frozen=True)
class FundReport:
    """Everything computed from one ledger snapshot."""
    generated_at: datetime
    current_worth: float
    summary: FundSummary
    holdings: List[GroupedHolding] = field(default_factory=list)
    stocks: List[InstrumentPerformance] = field(default_factory=list)
    investors: List[InvestorPerformance] = field(default_factory=list)
    worth_points: List[WorthPoint] = field(default_factory=list)
    worth: List[DailyWorth] = field(default_factory=list)
    deposits: List[DepositPoint] = field(default_factory=list)
    daily_progress: Optional[List[IntradayPoint]] = None


def foreign_currencies(records: Sequence[TransactionRecord]) -> List[str]:
    """Trade currencies other than the home currency, first-seen order."""
    return [c for c in dict.fromkeys(t.currency for t in records) if c != HOME_CURRENCY]


class FundEngine:
    """
    Computes a FundReport from a LedgerSnapshot.

    The engine holds collaborators and settings only; ledger state is passed
    in per call and never stored.
    """

    def __init__(
        self,
        quotes: QuoteProvider,
        rates: ExchangeRateProvider,
        settings: Optional[Settings] = None,
        options: Optional[EngineOptions] = None
    ):
        self.quotes = quotes
        self.rates = rates
        self.settings = settings or Settings()
        self.options = options or EngineOptions()

    # Fetch stages

    def fetch_price_universe(self, tickers: Sequence[str], start: date) -> Dict[str, Dict[date, float]]:
        """Daily closes per ticker as {ticker: {date: close}}; tickers without closes are left out."""
        series = fetch_batch(
            tickers,
            lambda ticker: self.quotes.get_historical_prices(ticker, start),
            label="historical prices",
            timeout=self.settings.fetch_timeout,
            max_workers=self.settings.max_workers,
        )

        universe: Dict[str, Dict[date, float]] = {}
        for ticker, points in series.items():
            if not points:
                continue
            universe[ticker] = {p.date: p.close for p in points}
        return universe

    def fetch_rate_history(self, start: date, end: date) -> Dict[date, Dict[str, float]]:
        return fetch_one(
            lambda: self.rates.get_rates_range(start, end),
            label="historical rates",
            timeout=self.settings.fetch_timeout,
        )

    def fetch_live_prices(self, tickers: Sequence[str]) -> Dict[str, float]:
        return fetch_batch(
            tickers,
            self.quotes.get_live_price,
            label="live prices",
            timeout=self.settings.fetch_timeout,
            max_workers=self.settings.max_workers,
        )

    def fetch_latest_rates(self) -> Dict[str, float]:
        return fetch_one(
            self.rates.get_latest_rates,
            label="latest rates",
            timeout=self.settings.fetch_timeout,
        )

    def fetch_intraday(self, tickers: Sequence[str]) -> Dict[str, IntradaySeries]:
        return fetch_batch(
            tickers,
            self.quotes.get_intraday_prices,
            label="intraday prices",
            timeout=self.settings.fetch_timeout,
            max_workers=self.settings.max_workers,
        )

    # Report

    def build_history(self, snapshot: LedgerSnapshot, today: date):
        """Worth points, daily worth series and deposit series up to `today`."""
        start = snapshot.earliest_date()
        if start is None:
            return [], [], []

        fetch_start = start - timedelta(days=HISTORY_LOOKBACK_DAYS)
        prices = self.fetch_price_universe(snapshot.tickers(), fetch_start)

        rate_table: Mapping[date, Mapping[str, float]] = {}
        if foreign_currencies(snapshot.transactions):
            rate_table = self.fetch_rate_history(fetch_start, today)

        points = reconstruct_worth(
            snapshot.transactions,
            snapshot.vault,
            prices,
            rate_table,
            start,
            today,
        )
        deposits = accumulate_deposits(snapshot.deposits, start, today)
        worth = build_worth_series(points, deposits)
        return points, worth, deposits

    def build_report(
        self,
        snapshot: LedgerSnapshot,
        today: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> FundReport:
        """
        Run every enabled stage on the snapshot.

        Args:
            snapshot: normalized ledgers
            today: last day of the history (defaults to the date of `now`)
            now: current time, used for the live summary and daily progress

        Raises:
            ExternalFetchError: a collaborator failed (FetchTimeoutError on timeout)
            UnresolvableSeriesLookupError: a needed close or rate predates its series
            EmptyWeightSetError: an open ticker with no weight to average over
        """
        now = now or datetime.now()
        today = today or now.date()

        logger.info(
            f"Building report: {len(snapshot.transactions)} trades, "
            f"{len(snapshot.deposits)} deposits, {len(snapshot.vault)} vault entries"
        )

        with get_perf_logger(logger, "build_report", threshold_ms=10000):
            points: List[WorthPoint] = []
            worth: List[DailyWorth] = []
            deposits: List[DepositPoint] = []
            if self.options.include_history:
                points, worth, deposits = self.build_history(snapshot, today)

            transactions = snapshot.transactions
            live_records = open_records(transactions)
            tickers = open_tickers(transactions)

            live_prices = self.fetch_live_prices(tickers)
            latest_rates: Dict[str, float] = {}
            if foreign_currencies(live_records):
                latest_rates = self.fetch_latest_rates()

            worth_now = current_worth(transactions, snapshot.vault, live_prices, latest_rates)
            summary = fund_summary(worth_now, snapshot.deposits)

            progress = None
            if self.options.include_daily_progress:
                intraday = self.fetch_intraday(tickers)
                progress = daily_progress(transactions, snapshot.vault, intraday, latest_rates, now)

            report = FundReport(
                generated_at=now,
                current_worth=worth_now,
                summary=summary,
                holdings=group_by_ticker(live_records),
                stocks=stock_performance(transactions, live_prices, latest_rates),
                investors=investor_performance(transactions, snapshot.deposits, live_prices, latest_rates),
                worth_points=points,
                worth=worth,
                deposits=deposits,
                daily_progress=progress,
            )

        logger.info(f"Fund worth {worth_now:.2f} EUR, profit {summary.profit:.2f} EUR")
        return report


def run(
    settings: Optional[Settings] = None,
    options: Optional[EngineOptions] = None,
    quotes: Optional[QuoteProvider] = None,
    rates: Optional[ExchangeRateProvider] = None
) -> FundReport:
    """
    One-shot report from the CSV ledgers with yfinance quotes and ECB rates.

    Raises:
        FileNotFoundError: a ledger file is missing
        ValueError: the ledgers contain no usable rows
    """
    settings = settings or Settings.from_env()
    configure_logging(settings)
    snapshot = load_snapshot(settings)
    if snapshot.earliest_date() is None:
        raise ValueError(f"No ledger data in {settings.data_dir}")

    quotes = quotes or YFinanceProvider()
    rates = rates or ECBRateProvider(settings, currencies=foreign_currencies(snapshot.transactions))

    engine = FundEngine(quotes, rates, settings, options)
    return engine.build_report(snapshot)


def main():
    settings = Settings.from_env()
    if len(sys.argv) > 1:
        settings = replace(settings, data_dir=Path(sys.argv[1]))

    report = run(settings)
    summary = report.summary

    print("=" * 60)
    print(f"Fund worth:   {summary.current_worth:>12.2f} EUR")
    print(f"Deposited:    {summary.deposited:>12.2f} EUR")
    rel = f" ({summary.rel_profit:.2f}%)" if summary.rel_profit is not None else ""
    print(f"Profit:       {summary.profit:>12.2f} EUR{rel}")
    print("=" * 60)

    for stock in report.stocks:
        pct = f"{stock.profit_pct:.2f}%" if stock.profit_pct is not None else "n/a"
        print(f"{stock.ticker:<12} {stock.current_value:>12.2f} EUR  {pct:>9}")

    print("-" * 60)
    for investor in report.investors:
        pct = f"{investor.profit_pct:.2f}%" if investor.profit_pct is not None else "n/a"
        print(f"{investor.name or '-':<12} {investor.current_worth:>12.2f} EUR  {pct:>9}")


if __name__ == "__main__":
    main()
