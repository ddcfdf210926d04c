"""
Ledger Normalizer and CSV Source

Turns raw ledger rows (column name -> string) into typed records:
- Drops blank trailer rows (empty Date)
- Parses numbers locale-agnostically and dates in DD-MM-YYYY layout
- Rewrites GBX (pence) trades to GBP, once per raw row
- Rejects malformed rows individually, the rest of the ledger still loads
"""

import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar, Union

import pandas as pd
from pydantic import ValidationError

from fund_viewer.core.config import MINOR_UNIT_CURRENCIES, MINOR_UNIT_FACTOR, Settings
from fund_viewer.core.exceptions import MalformedRowError
from fund_viewer.parsers.records import (
    DepositRecord,
    LedgerSnapshot,
    TransactionRecord,
    VaultRecord,
)
from fund_viewer.utils.logging_config import setup_logger, get_perf_logger

logger = setup_logger(__name__)

DATE_FORMAT = '%d-%m-%Y'

RecordT = TypeVar('RecordT')

# Ledger column -> record field
TRANSACTION_COLUMNS = {
    'Date': 'date',
    'Ticker': 'ticker',
    'Amount': 'amount',
    'Currency': 'currency',
    'ExchangeRate': 'exchange_rate',
    'Fees': 'fees',
    'PricePerShare': 'price_per_share',
    'TotalPriceEUR': 'total_price_eur',
    'Investor': 'investor',
}

DEPOSIT_COLUMNS = {
    'Date': 'date',
    'Amount': 'amount',
    'Member': 'member',
}

VAULT_COLUMNS = {
    'Date': 'date',
    'Amount': 'amount',
}

# Numeric columns that may be left blank in the sheet
OPTIONAL_NUMERIC = {'Fees'}


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    if value is None:
        return ''
    if isinstance(value, float) and math.isnan(value):
        return ''
    return str(value).strip()


class LedgerParser:
    """
    Normalizer for the three fund ledgers.

    Each public normalize_* method makes a single pass over the raw rows and
    returns the records in input order. Rows that fail to parse are logged
    and collected in `self.rejected`.
    """

    def __init__(self):
        self.rejected: List[MalformedRowError] = []

    # -- field parsers -------------------------------------------------

    @staticmethod
    def parse_date(value: str) -> date:
        """Parse a DD-MM-YYYY date."""
        return datetime.strptime(value.strip(), DATE_FORMAT).date()

    @staticmethod
    def parse_float(value: str) -> float:
        """Parse a float written with '.' as decimal separator."""
        number = float(value.strip())
        if not math.isfinite(number):
            raise ValueError(f"not a finite number: {value}")
        return number

    @classmethod
    def parse_int(cls, value: str) -> int:
        """Parse a whole number ('10' and '10.0' are accepted, '10.5' is not)."""
        number = cls.parse_float(value)
        if not number.is_integer():
            raise ValueError(f"not a whole number: {value}")
        return int(number)

    # -- row helpers ---------------------------------------------------

    def _field(
        self,
        ledger: str,
        row_number: int,
        row: Mapping[str, Any],
        column: str,
        parser: Callable[[str], Any]
    ) -> Any:
        raw = _cell(row, column)
        if raw == '' and column in OPTIONAL_NUMERIC:
            return 0.0
        try:
            return parser(raw)
        except (ValueError, TypeError) as e:
            raise MalformedRowError(ledger, row_number, column, raw, str(e)) from e

    def _normalize(
        self,
        ledger: str,
        rows: Iterable[Mapping[str, Any]],
        build: Callable[[int, Mapping[str, Any]], RecordT]
    ) -> List[RecordT]:
        records: List[RecordT] = []
        blank = 0

        for row_number, row in enumerate(rows, start=1):
            if _cell(row, 'Date') == '':
                blank += 1
                continue
            try:
                records.append(build(row_number, row))
            except MalformedRowError as e:
                logger.warning(
                    f"Dropping malformed row: {e}",
                    extra={'fund_context': {'ledger': ledger, 'row': row_number}}
                )
                self.rejected.append(e)

        if blank:
            logger.debug(f"{ledger}: skipped {blank} blank row(s)")
        logger.info(f"{ledger}: normalized {len(records)} record(s)")
        return records

    @staticmethod
    def _validated(ledger: str, row_number: int, model, fields: Dict[str, Any]):
        try:
            return model(**fields)
        except ValidationError as e:
            first = e.errors()[0]
            column = str(first['loc'][0]) if first.get('loc') else 'row'
            raise MalformedRowError(ledger, row_number, column, fields.get(column), first['msg']) from e

    # -- ledgers -------------------------------------------------------

    def normalize_transactions(self, rows: Iterable[Mapping[str, Any]]) -> List[TransactionRecord]:
        """Normalize trade rows, converting minor-unit (GBX) quotes to GBP."""
        ledger = 'transactions'

        def build(row_number: int, row: Mapping[str, Any]) -> TransactionRecord:
            fields = {
                'date': self._field(ledger, row_number, row, 'Date', self.parse_date),
                'ticker': _cell(row, 'Ticker'),
                'amount': self._field(ledger, row_number, row, 'Amount', self.parse_int),
                'currency': _cell(row, 'Currency').upper(),
                'exchange_rate': self._field(ledger, row_number, row, 'ExchangeRate', self.parse_float),
                'fees': self._field(ledger, row_number, row, 'Fees', self.parse_float),
                'price_per_share': self._field(ledger, row_number, row, 'PricePerShare', self.parse_float),
                'total_price_eur': self._field(ledger, row_number, row, 'TotalPriceEUR', self.parse_float),
                'investor': _cell(row, 'Investor'),
            }
            fields = convert_minor_unit(fields)
            return self._validated(ledger, row_number, TransactionRecord, fields)

        return self._normalize(ledger, rows, build)

    def normalize_deposits(self, rows: Iterable[Mapping[str, Any]]) -> List[DepositRecord]:
        ledger = 'deposits'

        def build(row_number: int, row: Mapping[str, Any]) -> DepositRecord:
            fields = {
                'date': self._field(ledger, row_number, row, 'Date', self.parse_date),
                'amount': self._field(ledger, row_number, row, 'Amount', self.parse_float),
                # Older sheets label the column Investor
                'member': _cell(row, 'Member') or _cell(row, 'Investor'),
            }
            return self._validated(ledger, row_number, DepositRecord, fields)

        return self._normalize(ledger, rows, build)

    def normalize_vault(self, rows: Iterable[Mapping[str, Any]]) -> List[VaultRecord]:
        ledger = 'vault'

        def build(row_number: int, row: Mapping[str, Any]) -> VaultRecord:
            fields = {
                'date': self._field(ledger, row_number, row, 'Date', self.parse_date),
                'amount': self._field(ledger, row_number, row, 'Amount', self.parse_float),
            }
            return self._validated(ledger, row_number, VaultRecord, fields)

        return self._normalize(ledger, rows, build)


def convert_minor_unit(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rewrite a parsed trade quoted in a minor unit (GBX) to its display unit (GBP).

    Returns a new dict; exchange rate and price per share are divided by 100
    and the conversion flag is set. Rows in any other currency are returned
    unchanged.
    """
    display = MINOR_UNIT_CURRENCIES.get(fields.get('currency', ''))
    if display is None:
        return fields

    converted = dict(fields)
    converted['currency'] = display
    converted['exchange_rate'] = fields['exchange_rate'] / MINOR_UNIT_FACTOR
    converted['price_per_share'] = fields['price_per_share'] / MINOR_UNIT_FACTOR
    converted['converted_gbx_to_gbp'] = True
    return converted


class CSVLedgerSource:
    """Reads the raw ledgers from comma-separated files in a data directory."""

    LEDGERS = ('transactions', 'deposits', 'vault')

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()

    def read_rows(self, ledger: str) -> List[Dict[str, str]]:
        """Return the rows of a ledger as dicts of strings, in file order."""
        path = self.settings.ledger_path(ledger)
        if not path.exists():
            raise FileNotFoundError(f"Ledger file not found: {path}")

        df = pd.read_csv(
            path,
            sep=',',
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
        df.columns = [str(c).strip() for c in df.columns]
        logger.debug(f"Read {len(df)} rows from {path.name}")
        return df.to_dict('records')


def load_snapshot(source: Union[CSVLedgerSource, Settings, str, Path, None] = None) -> LedgerSnapshot:
    """
    Load and normalize all three ledgers into one snapshot.

    Args:
        source: a ledger source, settings, or a data directory path

    Returns:
        LedgerSnapshot with the normalized records
    """
    if source is None:
        source = CSVLedgerSource()
    elif isinstance(source, Settings):
        source = CSVLedgerSource(source)
    elif isinstance(source, (str, Path)):
        source = CSVLedgerSource(Settings(data_dir=Path(source)))

    parser = LedgerParser()
    with get_perf_logger(logger, "load_snapshot", threshold_ms=2000):
        snapshot = LedgerSnapshot.from_records(
            transactions=parser.normalize_transactions(source.read_rows('transactions')),
            deposits=parser.normalize_deposits(source.read_rows('deposits')),
            vault=parser.normalize_vault(source.read_rows('vault')),
        )

    if parser.rejected:
        logger.warning(f"{len(parser.rejected)} malformed ledger row(s) dropped")

    return snapshot
