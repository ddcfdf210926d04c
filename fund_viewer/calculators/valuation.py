"""
Live valuation and attribution.

Values the fund at live quotes:
- current_worth: open positions + latest vault level + all fees paid
- stock_performance: cost basis vs. current value per open instrument
- investor_performance: realized + unrealized result per investor
- daily_progress: today's worth on a 5-minute grid from intraday quotes

Only currently open positions are valued here (global closed-position rule),
unlike the historical reconstruction which follows point-in-time holdings.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from fund_viewer.calculators.aggregation import (
    is_closed,
    net_positions,
    open_records,
    to_home_currency,
)
from fund_viewer.calculators.history import VaultTimeline, relative_profit
from fund_viewer.core.config import HOME_CURRENCY, INTRADAY_INTERVAL_MINUTES
from fund_viewer.core.exceptions import ExternalFetchError
from fund_viewer.parsers.records import (
    DepositRecord,
    IntradaySeries,
    TransactionRecord,
    VaultRecord,
)
from fund_viewer.utils.logging_config import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class InstrumentPerformance:
    """Cost basis (negative = net cost) against current value of one instrument."""
    ticker: str
    total_price_eur: float
    current_value: float

    @property
    def profit(self) -> float:
        return self.total_price_eur + self.current_value

    @property
    def profit_pct(self) -> Optional[float]:
        """Profit relative to the money put in; None when the cost basis is zero."""
        if self.total_price_eur == 0:
            return None
        return 100 * self.profit / -self.total_price_eur


@dataclass(frozen=True)
class InvestorPerformance:
    """
    Result attributed to one investor.

    worth is realized cash flow (sum of the investor's trade totals) plus the
    current value of the investor's open trades; deposit is what the member
    paid in.
    """
    name: str
    worth: float
    deposit: float

    @property
    def current_worth(self) -> float:
        return self.worth + self.deposit

    @property
    def profit_pct(self) -> Optional[float]:
        if self.deposit == 0:
            return None
        return 100 * (self.worth + self.deposit) / self.deposit - 100


@dataclass(frozen=True)
class FundSummary:
    """Headline figures: live worth against everything deposited."""
    current_worth: float
    deposited: float

    @property
    def profit(self) -> float:
        return self.current_worth - self.deposited

    @property
    def rel_profit(self) -> Optional[float]:
        return relative_profit(self.current_worth, self.deposited)


@dataclass(frozen=True)
class IntradayPoint:
    """Fund worth at one intraday slot. Future slots carry no worth."""
    timestamp: datetime
    worth: Optional[float]
    stocks: Optional[Dict[str, float]]
    vault: float


def _rate_for(currency: str, rates: Mapping[str, float]) -> float:
    if currency == HOME_CURRENCY:
        return 1.0
    rate = rates.get(currency)
    if rate is None:
        raise ExternalFetchError(f"No exchange rate for {currency} in the latest table", [currency])
    return rate


def _live_price(ticker: str, live_prices: Mapping[str, float]) -> float:
    price = live_prices.get(ticker)
    if price is None:
        raise ExternalFetchError(f"No live price for {ticker}", [ticker])
    return price


def record_value(
    record: TransactionRecord,
    live_prices: Mapping[str, float],
    rates: Mapping[str, float]
) -> float:
    """Current EUR value of the shares moved by one trade record."""
    price = record.quote_to_display_price(_live_price(record.ticker, live_prices))
    return to_home_currency(price * record.amount, _rate_for(record.currency, rates), record.currency)


def latest_vault_level(vault: Sequence[VaultRecord]) -> float:
    return VaultTimeline(vault).latest()


def open_tickers(transactions: Sequence[TransactionRecord]) -> List[str]:
    """Tickers whose full-history net amount is not zero, first-seen order."""
    return [ticker for ticker, amount in net_positions(transactions).items() if amount != 0]


def current_worth(
    transactions: Sequence[TransactionRecord],
    vault: Sequence[VaultRecord],
    live_prices: Mapping[str, float],
    rates: Mapping[str, float]
) -> float:
    """
    Live fund worth in EUR.

    Sum of live values of records in open positions, plus the latest vault
    level, plus the fees of every trade (closed positions included).
    """
    fees = sum(t.fees for t in transactions)
    holdings = sum(
        record_value(t, live_prices, rates)
        for t in transactions
        if not is_closed(t, transactions)
    )
    return holdings + latest_vault_level(vault) + fees


def stock_performance(
    transactions: Sequence[TransactionRecord],
    live_prices: Mapping[str, float],
    rates: Mapping[str, float]
) -> List[InstrumentPerformance]:
    """Per open instrument: summed cost basis of its open trades and their live value."""
    totals: Dict[str, float] = {}
    values: Dict[str, float] = {}

    for t in open_records(transactions):
        totals[t.ticker] = totals.get(t.ticker, 0.0) + t.total_price_eur
        values[t.ticker] = values.get(t.ticker, 0.0) + record_value(t, live_prices, rates)

    return [
        InstrumentPerformance(ticker=ticker, total_price_eur=totals[ticker], current_value=values[ticker])
        for ticker in totals
    ]


def investor_performance(
    transactions: Sequence[TransactionRecord],
    deposits: Sequence[DepositRecord],
    live_prices: Mapping[str, float],
    rates: Mapping[str, float]
) -> List[InvestorPerformance]:
    """
    Attribute the fund's result to investors.

    Realized worth uses every trade of the investor (closed positions
    included); the unrealized part only the investor's open trades.
    Investors appear in trade order, deposit-only members after them.
    """
    names = list(dict.fromkeys(
        [t.investor for t in transactions] + [d.member for d in deposits]
    ))

    worth = {name: 0.0 for name in names}
    deposited = {name: 0.0 for name in names}

    for t in transactions:
        worth[t.investor] += t.total_price_eur
    for d in deposits:
        deposited[d.member] += d.amount
    for t in open_records(transactions):
        worth[t.investor] += record_value(t, live_prices, rates)

    return [
        InvestorPerformance(name=name, worth=worth[name], deposit=deposited[name])
        for name in names
    ]


def fund_summary(worth: float, deposits: Sequence[DepositRecord]) -> FundSummary:
    return FundSummary(current_worth=worth, deposited=sum(d.amount for d in deposits))


def intraday_grid(day_start: datetime, interval_minutes: int = INTRADAY_INTERVAL_MINUTES) -> List[datetime]:
    """Slots from 00:00 up to (not including) 23:59 of the given day."""
    start = day_start.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(hours=23, minutes=59)
    slots = pd.date_range(start=start, end=end, freq=f'{interval_minutes}min', inclusive='left')
    return [ts.to_pydatetime() for ts in slots]


def daily_progress(
    transactions: Sequence[TransactionRecord],
    vault: Sequence[VaultRecord],
    intraday: Mapping[str, IntradaySeries],
    rates: Mapping[str, float],
    now: datetime
) -> List[IntradayPoint]:
    """
    Today's fund worth on the intraday grid.

    Each open instrument contributes price * net amount / rate, where price is
    the sample at the slot or the last close when there is none. The base is
    vault level plus all fees. Slots after `now` are left empty.
    """
    vault_worth = latest_vault_level(vault)
    base = vault_worth + sum(t.fees for t in transactions)

    positions = net_positions(transactions)
    first_record: Dict[str, TransactionRecord] = {}
    for t in transactions:
        first_record.setdefault(t.ticker, t)

    tickers = open_tickers(transactions)
    for ticker in tickers:
        if ticker not in intraday:
            raise ExternalFetchError(f"No intraday series for {ticker}", [ticker])

    points: List[IntradayPoint] = []
    for slot in intraday_grid(now):
        if slot > now:
            points.append(IntradayPoint(timestamp=slot, worth=None, stocks=None, vault=vault_worth))
            continue

        stocks: Dict[str, float] = {}
        for ticker in tickers:
            record = first_record[ticker]
            price = record.quote_to_display_price(intraday[ticker].value_at(slot))
            stocks[ticker] = to_home_currency(
                price * positions[ticker],
                _rate_for(record.currency, rates),
                record.currency,
            )

        points.append(IntradayPoint(
            timestamp=slot,
            worth=base + sum(stocks.values()),
            stocks=stocks,
            vault=vault_worth,
        ))

    return points
