"""
Logging Configuration

Every module logs through setup_logger(__name__):
- One line per record: [TIMESTAMP] [LEVEL] [MODULE:FUNCTION:LINE] MESSAGE {context}
- Level from LOG_LEVEL, optional copy to LOG_FILE
- configure_logging(settings) re-applies level and file to the package loggers
- get_perf_logger() times slow stages (fetch batches, reconstruction)
"""

import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

PACKAGE_LOGGER = 'fund_viewer'


def _render_context(context: Any) -> str:
    if not context:
        return ''
    if isinstance(context, Mapping):
        pairs = ' '.join(f"{k}={v}" for k, v in context.items())
        return f"{{{pairs}}}"
    return str(context)


class StructuredFormatter(logging.Formatter):
    """
    Structured log formatter.

    Records may carry `extra={'fund_context': {...}}` (ledger, row, ticker,
    keys); it is appended as {key=value ...}.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        location = f"{record.module}:{record.funcName}:{record.lineno}"

        line = f"[{timestamp}] [{record.levelname:8s}] [{location}] {record.getMessage()}"

        context = _render_context(getattr(record, 'fund_context', None))
        if context:
            line += f" {context}"

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"

        return line


class PerformanceLogger:
    """Times an operation; warns with SLOW: above the threshold. Exceptions propagate."""

    def __init__(self, logger: logging.Logger, operation: str, threshold_ms: float = 1000):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.elapsed_ms: Optional[float] = None
        self._start: Optional[float] = None

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._start is None:
            return False

        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        if exc_type is not None:
            self.logger.debug(f"{self.operation} failed after {self.elapsed_ms:.1f}ms")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(f"SLOW: {self.operation} took {self.elapsed_ms:.1f}ms")
        else:
            self.logger.debug(f"{self.operation} took {self.elapsed_ms:.1f}ms")
        return False


def _file_handler(log_file: str, level: int) -> logging.FileHandler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_path, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Logger with structured console output and optional file output.

    Args:
        name: Logger name (usually __name__)
        level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL, else INFO
        log_file: Log file path. Defaults to LOG_FILE when set

    Returns:
        Configured logger (the same instance on repeated calls)
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_file = log_file or os.getenv('LOG_FILE') or None

    log_level = getattr(logging, level, logging.INFO)
    logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(StructuredFormatter())
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file, log_level))

    logger.propagate = False
    return logger


def configure_logging(settings) -> int:
    """
    Apply `settings.log_level` and `settings.log_file` to every package logger
    created so far. Returns the number of loggers touched.
    """
    log_level = getattr(logging, str(settings.log_level).upper(), logging.INFO)
    touched = 0

    for name in list(logging.Logger.manager.loggerDict):
        if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + '.'):
            continue
        logger = logging.getLogger(name)
        if not logger.handlers:
            continue

        logger.setLevel(log_level)
        for handler in logger.handlers:
            handler.setLevel(log_level)

        if settings.log_file:
            target = str(Path(settings.log_file).resolve())
            has_file = any(
                isinstance(h, logging.FileHandler) and h.baseFilename == target
                for h in logger.handlers
            )
            if not has_file:
                logger.addHandler(_file_handler(settings.log_file, log_level))
        touched += 1

    return touched


def get_perf_logger(logger: logging.Logger, operation: str, threshold_ms: float = 1000) -> PerformanceLogger:
    """
    Usage:
        with get_perf_logger(logger, "historical prices", threshold_ms=3000):
            prices = fetch_batch(tickers, provider.get_historical_prices)
    """
    return PerformanceLogger(logger, operation, threshold_ms)


def log_dataframe_info(logger: logging.Logger, frame, name: str = "DataFrame"):
    """Debug-log the shape of a pandas DataFrame or Series."""
    if frame is None:
        logger.warning(f"{name} is None")
        return

    if frame.empty:
        logger.info(f"{name} is empty (0 rows)")
        return

    columns = len(frame.columns) if hasattr(frame, 'columns') else 1
    span = ''
    if hasattr(frame.index, 'min') and len(frame.index):
        span = f" from {frame.index.min()} to {frame.index.max()}"
    logger.debug(f"{name}: {len(frame)} rows, {columns} columns{span}")
