"""
Historical worth reconstruction.

Rebuilds the fund's worth for every calendar day from the first ledger entry
to today:
- reconstruct_worth: per-day, per-instrument worth from prefix positions,
  backward-resolved closes and backward-resolved FX rates
- accumulate_deposits: dense cumulative deposited capital per day
- build_worth_series: daily totals and relative profit against deposits

Historical points reflect what was held on each day (prefix sums), so a
position that has since been sold still shows up before its sale.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

import pandas as pd

from fund_viewer.calculators.aggregation import PositionCursor, records_by_ticker, to_home_currency
from fund_viewer.calculators.resolver import SeriesResolver
from fund_viewer.core.config import HOME_CURRENCY
from fund_viewer.core.exceptions import UnresolvableSeriesLookupError
from fund_viewer.parsers.records import DepositRecord, TransactionRecord, VaultRecord
from fund_viewer.utils.logging_config import setup_logger, get_perf_logger, log_dataframe_info

logger = setup_logger(__name__)


@dataclass(frozen=True)
class WorthPoint:
    """Worth of one instrument on one day, with the vault level of that day."""
    date: date
    ticker: str
    stocks: float
    vault: float


@dataclass(frozen=True)
class DepositPoint:
    """Capital deposited up to and including a day."""
    date: date
    deposited: float


@dataclass(frozen=True)
class DailyWorth:
    """Fund total for one day. rel_profit is None when it is undefined."""
    date: date
    worth: float
    worth_stocks: float
    worth_vault: float
    rel_profit: Optional[float]


def iter_days(start: date, end: date) -> Iterator[date]:
    """Calendar days from start to end, both inclusive."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


class VaultTimeline:
    """
    Vault level on any day.

    The vault ledger is append-only: the level on a day is the latest entry
    dated on or before it, and among entries sharing a date the one that
    comes last in ledger order wins. Before the first entry the level is 0.0.
    """

    def __init__(self, vault: Sequence[VaultRecord]):
        levels: Dict[date, float] = {}
        for v in sorted(vault, key=lambda v: v.date):
            levels[v.date] = v.amount
        self._resolver = SeriesResolver(levels, name="vault")

    def level_at(self, day: date) -> float:
        earliest = self._resolver.earliest
        if earliest is None or day < earliest:
            return 0.0
        return self._resolver.resolve(day)

    def latest(self) -> float:
        latest = self._resolver.latest
        return 0.0 if latest is None else self._resolver.resolve(latest)


def vault_level_at(vault: Sequence[VaultRecord], day: date) -> float:
    """Vault level on `day` (0.0 before the first entry)."""
    return VaultTimeline(vault).level_at(day)


def relative_profit(worth: float, deposited: Optional[float]) -> Optional[float]:
    """(worth / deposited - 1) * 100, or None when nothing has been deposited."""
    if deposited is None or deposited == 0:
        return None
    return (worth / deposited - 1) * 100


def reconstruct_worth(
    transactions: Sequence[TransactionRecord],
    vault: Sequence[VaultRecord],
    prices: Mapping[str, Mapping[date, float]],
    rates: Mapping[date, Mapping[str, float]],
    start: date,
    end: date
) -> List[WorthPoint]:
    """
    Worth of every held instrument on every day in [start, end].

    For each day D and each ticker present in `prices`:
        worth = close(D) / rate(D, currency) * position(D) + fees(D)
    where position and fees are prefix sums over trades dated <= D, and
    close/rate are the most recent values at or before D. Closes of
    GBX-converted instruments are divided by 100. Days come out in order.

    Args:
        transactions: normalized trade records (all of them, closed included)
        vault: vault level records
        prices: ticker -> {date: close} in quote-currency units
        rates: {date: {currency: units per EUR}}
        start: first day (usually the earliest ledger date)
        end: last day (usually today)

    Raises:
        UnresolvableSeriesLookupError: a needed close or rate predates its series
    """
    by_ticker = records_by_ticker(transactions)

    universe = [ticker for ticker in by_ticker if ticker in prices]
    missing = [ticker for ticker in by_ticker if ticker not in prices]
    if missing:
        logger.warning(f"No price series for {missing}, excluded from history")

    cursors = {ticker: PositionCursor(by_ticker[ticker]) for ticker in universe}
    price_resolvers = {
        ticker: SeriesResolver(prices[ticker], name=f"{ticker} closes")
        for ticker in universe
    }
    rate_resolver = SeriesResolver(rates, name="exchange rates")
    vault_timeline = VaultTimeline(vault)

    points: List[WorthPoint] = []

    with get_perf_logger(logger, f"reconstruct_worth({len(universe)} tickers)", threshold_ms=5000):
        for day in iter_days(start, end):
            vault_worth = vault_timeline.level_at(day)

            for ticker in universe:
                cursor = cursors[ticker]
                cursor.advance_to(day)
                if cursor.latest is None or cursor.amount == 0:
                    continue

                record = cursor.latest
                if record.currency == HOME_CURRENCY:
                    rate = 1.0
                else:
                    rate = rate_resolver.resolve(day, key=record.currency)

                close = price_resolvers[ticker].resolve(day)
                close = record.quote_to_display_price(close)

                stocks = to_home_currency(close, rate, record.currency) * cursor.amount + cursor.fees
                points.append(WorthPoint(date=day, ticker=ticker, stocks=stocks, vault=vault_worth))

    logger.info(f"Reconstructed {len(points)} worth points from {start} to {end}")
    return points


def accumulate_deposits(
    deposits: Sequence[DepositRecord],
    start: date,
    end: date
) -> List[DepositPoint]:
    """
    Cumulative deposits for every day in [start, end).

    The series is dense (one point per calendar day) and never decreases
    unless a withdrawal is booked as a negative deposit.
    """
    days = pd.date_range(start=start, end=end, freq='D', inclusive='left')
    if len(days) == 0:
        return []

    if deposits:
        frame = pd.DataFrame({
            'date': pd.to_datetime([d.date for d in deposits]),
            'amount': [d.amount for d in deposits],
        })
        daily = frame.groupby('date')['amount'].sum()
        carried = float(daily[daily.index < days[0]].sum())
        cumulative = daily.reindex(days, fill_value=0.0).cumsum() + carried
    else:
        cumulative = pd.Series(0.0, index=days)

    log_dataframe_info(logger, cumulative, "Deposits series")

    return [
        DepositPoint(date=ts.date(), deposited=float(value))
        for ts, value in cumulative.items()
    ]


def build_worth_series(
    points: Sequence[WorthPoint],
    deposits: Sequence[DepositPoint]
) -> List[DailyWorth]:
    """
    Merge per-instrument points into one total per day.

    The vault is a level and is taken once per day, not once per instrument.
    Deposited capital for a day is the latest accumulated value on or before
    it; relative profit is None where nothing had been deposited yet.
    """
    by_date: Dict[date, List[WorthPoint]] = {}
    for p in points:
        by_date.setdefault(p.date, []).append(p)

    deposit_resolver = SeriesResolver({d.date: d.deposited for d in deposits}, name="deposits")

    series: List[DailyWorth] = []
    undefined = 0
    for day in sorted(by_date):
        day_points = by_date[day]
        worth_vault = day_points[0].vault
        worth_stocks = sum(p.stocks for p in day_points)
        worth = worth_stocks + worth_vault

        try:
            deposited = deposit_resolver.resolve(day)
        except UnresolvableSeriesLookupError:
            deposited = None

        rel_profit = relative_profit(worth, deposited)
        if rel_profit is None:
            undefined += 1

        series.append(DailyWorth(
            date=day,
            worth=worth,
            worth_stocks=worth_stocks,
            worth_vault=worth_vault,
            rel_profit=rel_profit,
        ))

    if undefined:
        logger.debug(f"Relative profit undefined on {undefined} day(s) without deposits")
    return series
