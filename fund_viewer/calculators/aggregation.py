"""
Trade aggregation: weighted cost bases and the "position closed" rule.

The closed-position predicate here is the one every live consumer uses
(current worth, stock performance, investor attribution). The history
reconstruction deliberately uses prefix sums instead, see history.py.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Union

from fund_viewer.core.exceptions import EmptyWeightSetError, ExternalFetchError
from fund_viewer.parsers.records import TransactionRecord
from fund_viewer.utils.logging_config import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class GroupedHolding:
    """All trades of one ticker folded into a single cost-basis line."""
    ticker: str
    amount: int
    currency: str
    exchange_rate: float
    fees: float
    price_per_share: float
    total_price_eur: float
    converted_gbx_to_gbp: bool = False


def weighted_sum(values: Sequence[float], weights: Sequence[float]) -> float:
    """
    Weighted average: sum(values[i] * weights[i]) / sum(weights).

    Raises:
        EmptyWeightSetError: if the weights sum to zero
        ValueError: if the sequences differ in length
    """
    if len(values) != len(weights):
        raise ValueError(f"values and weights differ in length ({len(values)} != {len(weights)})")

    total_weight = sum(weights)
    if total_weight == 0:
        raise EmptyWeightSetError(f"Weights sum to zero over {len(weights)} value(s)")

    return sum(v * w for v, w in zip(values, weights)) / total_weight


def to_home_currency(amount: float, rate: float, currency: str = "") -> float:
    """Convert an amount in a foreign currency using a units-per-EUR rate."""
    if not rate or rate <= 0:
        raise ExternalFetchError(f"Invalid exchange rate {rate!r} for {currency or 'currency'}", [currency])
    return amount / rate


def net_positions(records: Iterable[TransactionRecord]) -> Dict[str, int]:
    """Full-history net amount per ticker, in first-seen order."""
    positions: Dict[str, int] = {}
    for t in records:
        positions[t.ticker] = positions.get(t.ticker, 0) + t.amount
    return positions


def is_closed(record: Union[TransactionRecord, str], records: Iterable[TransactionRecord]) -> bool:
    """
    True iff the amounts of all records sharing the ticker add up to zero.

    The whole record set is used, not records up to a date: a ticker bought,
    sold and bought again is open; a ticker bought and fully sold is closed.
    """
    ticker = record if isinstance(record, str) else record.ticker
    return sum(t.amount for t in records if t.ticker == ticker) == 0


def records_by_ticker(records: Iterable[TransactionRecord]) -> Dict[str, List[TransactionRecord]]:
    """Trades grouped per ticker, tickers in first-seen order, records in input order."""
    grouped: Dict[str, List[TransactionRecord]] = {}
    for t in records:
        grouped.setdefault(t.ticker, []).append(t)
    return grouped


class PositionCursor:
    """
    Prefix position of one ticker, advanced day by day.

    Trades are walked in date order (input order within a day). After
    advance_to(day), `amount` and `fees` are the sums over trades dated on or
    before that day and `latest` is the last of those trades.
    """

    def __init__(self, records: Iterable[TransactionRecord]):
        self.records = sorted(records, key=lambda t: t.date)
        self.index = 0
        self.amount = 0
        self.fees = 0.0
        self.latest: Optional[TransactionRecord] = None

    def advance_to(self, day: date) -> int:
        """Move forward to `day` and return the prefix amount. Days must not decrease."""
        while self.index < len(self.records) and self.records[self.index].date <= day:
            record = self.records[self.index]
            self.amount += record.amount
            self.fees += record.fees
            self.latest = record
            self.index += 1
        return self.amount


def position_as_of(records: Iterable[TransactionRecord], ticker: str, day: date) -> int:
    """Net amount of `ticker` from trades dated on or before `day`."""
    return PositionCursor(t for t in records if t.ticker == ticker).advance_to(day)


def open_records(records: Sequence[TransactionRecord]) -> List[TransactionRecord]:
    """
    Trade records that make up the currently open positions.

    Closed tickers are dropped. For open tickers, completed round trips are
    dropped too: every record of a ticker up to the last point where its
    running amount returned to zero belongs to an exited position.
    """
    closed = {ticker for ticker, amount in net_positions(records).items() if amount == 0}
    candidates = [t for t in records if t.ticker not in closed]

    running: Dict[str, int] = defaultdict(int)
    cut: Dict[str, int] = {}
    for i, t in enumerate(candidates):
        running[t.ticker] += t.amount
        if running[t.ticker] == 0:
            cut[t.ticker] = i

    result = [
        t for i, t in enumerate(candidates)
        if i > cut.get(t.ticker, -1)
    ]

    dropped = len(records) - len(result)
    if dropped:
        logger.debug(f"open_records: excluded {dropped} record(s) of closed positions or round trips")
    return result


def group_by_ticker(records: Sequence[TransactionRecord]) -> List[GroupedHolding]:
    """
    Fold trades per ticker (first-seen order) into cost-basis lines.

    amount, fees and total_price_eur are plain sums; exchange_rate and
    price_per_share are averages weighted by amount.

    Raises:
        EmptyWeightSetError: for a ticker whose amounts sum to zero
    """
    holdings: List[GroupedHolding] = []
    for ticker, rel in records_by_ticker(records).items():
        weights = [t.amount for t in rel]
        try:
            exchange_rate = weighted_sum([t.exchange_rate for t in rel], weights)
            price_per_share = weighted_sum([t.price_per_share for t in rel], weights)
        except EmptyWeightSetError as e:
            raise EmptyWeightSetError(f"{ticker}: no open amount to weight the cost basis ({e})") from e

        holdings.append(GroupedHolding(
            ticker=ticker,
            amount=sum(weights),
            currency=rel[0].currency,
            exchange_rate=exchange_rate,
            fees=sum(t.fees for t in rel),
            price_per_share=price_per_share,
            total_price_eur=sum(t.total_price_eur for t in rel),
            converted_gbx_to_gbp=rel[0].converted_gbx_to_gbp,
        ))

    return holdings
