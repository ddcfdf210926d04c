"""Backward resolution over sparse date-keyed series (prices, FX tables, deposits)."""

from bisect import bisect_right
from datetime import date
from typing import Any, Generic, Mapping, Optional, Tuple, TypeVar

from fund_viewer.core.exceptions import UnresolvableSeriesLookupError
from fund_viewer.utils.logging_config import setup_logger

logger = setup_logger(__name__)

V = TypeVar('V')


class SeriesResolver(Generic[V]):
    """
    Finds the most recent entry at or before a target date.

    The series may have gaps (weekends, holidays, days without trading).
    The search walks backward from the target and stops at the earliest key
    of the series; running past it raises UnresolvableSeriesLookupError.

    For nested tables ({date: {currency: rate}}) pass `key` to require an
    entry that carries that currency.
    """

    def __init__(self, series: Mapping[date, V], name: str = "series"):
        self._series = series
        self._dates = sorted(series)
        self.name = name

    @property
    def earliest(self) -> Optional[date]:
        return self._dates[0] if self._dates else None

    @property
    def latest(self) -> Optional[date]:
        return self._dates[-1] if self._dates else None

    def __len__(self) -> int:
        return len(self._dates)

    def resolve_with_date(self, target: date, key: Optional[str] = None) -> Tuple[date, Any]:
        """Like resolve(), also returning the date the value was found on."""
        idx = bisect_right(self._dates, target) - 1

        while idx >= 0:
            found = self._dates[idx]
            entry = self._series[found]
            if key is None:
                value = entry
            else:
                value = entry.get(key) if entry is not None else None
            if value is not None:
                if found != target:
                    logger.debug(f"{self.name}[{key or '-'}]: {target} resolved to {found}")
                return found, value
            idx -= 1

        raise UnresolvableSeriesLookupError(target, self.earliest, key=key, series=self.name)

    def resolve(self, target: date, key: Optional[str] = None) -> Any:
        """
        Most recent value at or before `target`.

        Raises:
            UnresolvableSeriesLookupError: when the series is empty or has no
                usable entry on or before `target`
        """
        return self.resolve_with_date(target, key)[1]


def resolve_backward(
    series: Mapping[date, Any],
    target: date,
    key: Optional[str] = None,
    name: str = "series"
) -> Any:
    """One-off backward lookup; build a SeriesResolver when resolving repeatedly."""
    return SeriesResolver(series, name).resolve(target, key)
