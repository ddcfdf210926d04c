"""Shared utilities (logging)."""

from fund_viewer.utils.logging_config import configure_logging, setup_logger, get_perf_logger

__all__ = ['configure_logging', 'setup_logger', 'get_perf_logger']
