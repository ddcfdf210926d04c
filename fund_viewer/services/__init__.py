"""
Services

Collaborator adapters and the engine:
- fetcher: concurrent all-or-nothing fetch batches with a timeout
- market_data: quote providers (yfinance)
- fx_rates: exchange rate providers (ECB)
- pipeline: FundEngine producing a FundReport from a LedgerSnapshot
"""

from fund_viewer.services.fetcher import fetch_batch, fetch_one
from fund_viewer.services.market_data import QuoteProvider, YFinanceProvider
from fund_viewer.services.fx_rates import ECBRateProvider, ExchangeRateProvider
from fund_viewer.services.pipeline import EngineOptions, FundEngine, FundReport, run

__all__ = [
    'fetch_batch', 'fetch_one',
    'QuoteProvider', 'YFinanceProvider',
    'ECBRateProvider', 'ExchangeRateProvider',
    'EngineOptions', 'FundEngine', 'FundReport', 'run',
]
