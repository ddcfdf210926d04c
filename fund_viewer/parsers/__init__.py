"""Ledger records and the ledger normalizer."""

from fund_viewer.parsers.records import (
    DepositRecord,
    IntradaySeries,
    LedgerSnapshot,
    PricePoint,
    TransactionRecord,
    VaultRecord,
)
from fund_viewer.parsers.ledger_parser import CSVLedgerSource, LedgerParser, load_snapshot

__all__ = [
    'DepositRecord',
    'IntradaySeries',
    'LedgerSnapshot',
    'PricePoint',
    'TransactionRecord',
    'VaultRecord',
    'CSVLedgerSource',
    'LedgerParser',
    'load_snapshot',
]
