"""
Fund Viewer

Valuation and attribution engine for a multi-currency, multi-investor fund
kept in three append-only ledgers (trades, deposits, vault).

Packages:
- parsers: ledger records and the CSV normalizer
- calculators: aggregation, backward resolution, history and live valuation
- services: quote/FX providers, concurrent fetching and the engine
- charts: Plotly figures for the worth series
- core: configuration and error types
- utils: logging

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__version__ = "1.0.0"

__all__ = ['parsers', 'calculators', 'services', 'charts', 'core', 'utils']
