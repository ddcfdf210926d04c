"""
Typed Records

Immutable records produced once from the raw ledgers and the market data
collaborators:
- TransactionRecord / DepositRecord / VaultRecord: one per ledger row
- PricePoint / IntradaySeries: quote service payloads
- LedgerSnapshot: the three normalized ledgers passed into the engine

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import datetime as dt
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator


def normalize_ticker(value: str) -> str:
    """Validate an instrument id: stripped, upper-case, non-empty."""
    if value is None:
        raise ValueError("Ticker is required")
    ticker = str(value).strip().upper()
    if not ticker:
        raise ValueError("Ticker cannot be empty")
    return ticker


class LedgerRecord(BaseModel):
    """Base class of the ledger records (frozen, validated on construction)."""

    model_config = ConfigDict(frozen=True)

    date: dt.date


class TransactionRecord(LedgerRecord):
    """
    One trade of the fund.

    amount is signed (positive = buy, negative = sell) and total_price_eur
    follows the cash convention (negative for a net buy). exchange_rate is
    home currency per unit of `currency` at trade time.
    """

    ticker: str
    amount: int
    currency: str
    exchange_rate: float
    fees: float = 0.0
    price_per_share: float
    total_price_eur: float
    investor: str = ""

    # Set when the row was quoted in GBX and rewritten to GBP
    converted_gbx_to_gbp: bool = False

    @field_validator('ticker')
    @classmethod
    def validate_ticker(cls, v):
        return normalize_ticker(v)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        code = str(v).strip().upper()
        if not code:
            raise ValueError("Currency cannot be empty")
        return code

    @field_validator('investor')
    @classmethod
    def strip_investor(cls, v):
        return str(v).strip()

    def quote_to_display_price(self, quoted_price: float) -> float:
        """Bring a quote-service price to the record's currency unit (pence -> pounds)."""
        if self.converted_gbx_to_gbp:
            return quoted_price / 100.0
        return quoted_price


class DepositRecord(LedgerRecord):
    """Capital paid into the fund by a member (EUR)."""

    amount: float
    member: str = ""

    @field_validator('member')
    @classmethod
    def strip_member(cls, v):
        return str(v).strip()


class VaultRecord(LedgerRecord):
    """Cash reserve level on a date (EUR). A level, not a delta."""

    amount: float


@dataclass(frozen=True)
class PricePoint:
    """Daily close of an instrument in quote-currency units."""
    date: dt.date
    close: float


@dataclass(frozen=True)
class IntradaySeries:
    """Intraday samples of one instrument plus the last close as fallback."""
    samples: Tuple[Tuple[datetime, float], ...]
    last_close: float

    def value_at(self, timestamp: datetime) -> float:
        """Sample at exactly `timestamp`, else the last close."""
        for sample_time, value in self.samples:
            if sample_time == timestamp:
                return value
        return self.last_close


@dataclass(frozen=True)
class LedgerSnapshot:
    """The three normalized ledgers, loaded once and shared read-only."""
    transactions: Tuple[TransactionRecord, ...] = ()
    deposits: Tuple[DepositRecord, ...] = ()
    vault: Tuple[VaultRecord, ...] = ()

    @classmethod
    def from_records(
        cls,
        transactions: Iterable[TransactionRecord] = (),
        deposits: Iterable[DepositRecord] = (),
        vault: Iterable[VaultRecord] = ()
    ) -> "LedgerSnapshot":
        return cls(tuple(transactions), tuple(deposits), tuple(vault))

    def earliest_date(self) -> Optional[date]:
        """Earliest date across all three ledgers, None when all are empty."""
        dates = [r.date for r in self.transactions]
        dates += [r.date for r in self.deposits]
        dates += [r.date for r in self.vault]
        return min(dates) if dates else None

    def tickers(self) -> List[str]:
        """Distinct tickers in first-seen order."""
        return list(dict.fromkeys(t.ticker for t in self.transactions))
