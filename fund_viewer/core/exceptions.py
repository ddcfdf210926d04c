"""
Error types of the valuation engine.

Row-level problems (MalformedRowError) are caught by the normalizer and the
row is dropped. Everything else aborts the computation it occurs in, because
a partial price/rate universe would corrupt every aggregate built on it.
"""

from datetime import date
from typing import Iterable, Optional


class FundViewerError(Exception):
    """Base class for all engine errors."""
    pass


class MalformedRowError(FundViewerError, ValueError):
    """Raised when a ledger row has an unparseable numeric or date field."""

    def __init__(self, ledger: str, row_number: int, field: str, value, reason: str = ""):
        self.ledger = ledger
        self.row_number = row_number
        self.field = field
        self.value = value
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"{ledger} row {row_number}: cannot parse {field}={value!r}{detail}"
        )


class EmptyWeightSetError(FundViewerError, ValueError):
    """Raised when a weighted sum is taken over weights that sum to zero."""
    pass


class UnresolvableSeriesLookupError(FundViewerError, LookupError):
    """Raised when a backward search reaches the start of a series without a hit."""

    def __init__(self, target: date, earliest: Optional[date], key: Optional[str] = None, series: str = "series"):
        self.target = target
        self.earliest = earliest
        self.key = key
        self.series = series
        what = f"{series}[{key}]" if key else series
        if earliest is None:
            message = f"{what} is empty, cannot resolve {target.isoformat()}"
        else:
            message = (
                f"{what} has no entry on or before {target.isoformat()} "
                f"(earliest entry {earliest.isoformat()})"
            )
        super().__init__(message)


class ExternalFetchError(FundViewerError):
    """Raised when a quote/rate collaborator fails or returns malformed data."""

    def __init__(self, message: str, keys: Iterable[str] = ()):
        self.keys = tuple(keys)
        super().__init__(message)


class FetchTimeoutError(ExternalFetchError):
    """Raised when a fetch batch does not complete within its timeout."""
    pass
