"""
Calculators

Pure functions over immutable ledger records:
- aggregation: weighted cost bases and the closed-position rule
- resolver: bounded backward lookup in sparse series
- history: day-by-day worth reconstruction and deposit accumulation
- valuation: live worth, stock and investor performance, intraday progress
"""

from fund_viewer.calculators.aggregation import (
    GroupedHolding,
    group_by_ticker,
    is_closed,
    open_records,
    weighted_sum,
)
from fund_viewer.calculators.resolver import SeriesResolver, resolve_backward
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
    investor_performance,
    stock_performance,
)

__all__ = [
    'GroupedHolding', 'group_by_ticker', 'is_closed', 'open_records', 'weighted_sum',
    'SeriesResolver', 'resolve_backward',
    'DailyWorth', 'DepositPoint', 'WorthPoint',
    'accumulate_deposits', 'build_worth_series', 'reconstruct_worth',
    'FundSummary', 'InstrumentPerformance', 'IntradayPoint', 'InvestorPerformance',
    'current_worth', 'daily_progress', 'investor_performance', 'stock_performance',
]
