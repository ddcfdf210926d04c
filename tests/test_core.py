"""Tests for settings, error types, logging helpers and record types."""

import logging
import pytest
from datetime import date, datetime
from pathlib import Path

from pydantic import ValidationError

from fund_viewer.core.config import Settings
from fund_viewer.core.exceptions import (
    EmptyWeightSetError,
    ExternalFetchError,
    FetchTimeoutError,
    FundViewerError,
    MalformedRowError,
    UnresolvableSeriesLookupError,
)
from fund_viewer.parsers.records import IntradaySeries, LedgerSnapshot
from fund_viewer.utils.logging_config import (
    StructuredFormatter,
    configure_logging,
    get_perf_logger,
    setup_logger,
)


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("FUND_DATA_DIR", "FUND_FETCH_TIMEOUT", "FUND_MAX_WORKERS", "LOG_LEVEL", "LOG_FILE"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()

        assert settings.data_dir == Path("data")
        assert settings.fetch_timeout == 30.0
        assert settings.max_workers is None
        assert settings.log_file is None

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FUND_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("FUND_VAULT_FILE", "cash.csv")
        monkeypatch.setenv("FUND_FETCH_TIMEOUT", "2.5")
        monkeypatch.setenv("FUND_MAX_WORKERS", "3")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = Settings.from_env()

        assert settings.fetch_timeout == 2.5
        assert settings.max_workers == 3
        assert settings.log_level == "DEBUG"
        assert settings.ledger_path("vault") == tmp_path / "cash.csv"

    def test_unknown_ledger(self):
        with pytest.raises(KeyError):
            Settings().ledger_path("orders")


class TestExceptions:

    def test_hierarchy(self):
        assert issubclass(MalformedRowError, ValueError)
        assert issubclass(EmptyWeightSetError, FundViewerError)
        assert issubclass(UnresolvableSeriesLookupError, LookupError)
        assert issubclass(FetchTimeoutError, ExternalFetchError)

    def test_malformed_row_message(self):
        error = MalformedRowError("deposits", 4, "Amount", "abc", "could not convert")
        assert str(error) == "deposits row 4: cannot parse Amount='abc': could not convert"

    def test_unresolvable_message(self):
        error = UnresolvableSeriesLookupError(date(2024, 1, 1), date(2024, 2, 1), key="USD", series="rates")
        assert "rates[USD]" in str(error)
        assert "2024-02-01" in str(error)


class TestLogging:

    def test_setup_logger_idempotent(self):
        first = setup_logger("fund_viewer.tests.idempotent")
        second = setup_logger("fund_viewer.tests.idempotent")

        assert first is second
        assert len(first.handlers) == 1

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "fund.log"
        logger = setup_logger("fund_viewer.tests.file", level="INFO", log_file=str(log_file))
        logger.info("stored")
        for handler in logger.handlers:
            handler.flush()

        assert "stored" in log_file.read_text(encoding="utf-8")

    def test_formatter_layout(self):
        record = logging.LogRecord("x", logging.WARNING, "/src/mod.py", 12, "hello %s", ("world",), None)
        record.funcName = "fn"
        line = StructuredFormatter().format(record)

        assert "[WARNING ]" in line
        assert "[mod:fn:12]" in line
        assert line.endswith("hello world")

    def test_formatter_context(self):
        record = logging.LogRecord("x", logging.WARNING, "/src/mod.py", 12, "dropped", (), None)
        record.fund_context = {'ledger': 'vault', 'row': 3}

        assert StructuredFormatter().format(record).endswith("dropped {ledger=vault row=3}")

    def test_configure_logging_applies_settings(self, tmp_path):
        logger = setup_logger("fund_viewer.tests.configured", level="INFO")
        log_file = tmp_path / "fund.log"

        try:
            touched = configure_logging(Settings(log_level="DEBUG", log_file=str(log_file)))
            logger.debug("now visible")
            for handler in logger.handlers:
                handler.flush()

            assert touched >= 1
            assert logger.level == logging.DEBUG
            assert "now visible" in log_file.read_text(encoding="utf-8")

            # A second call does not add another file handler
            configure_logging(Settings(log_level="DEBUG", log_file=str(log_file)))
            assert sum(isinstance(h, logging.FileHandler) for h in logger.handlers) == 1
        finally:
            configure_logging(Settings(log_level="INFO"))
            for name in list(logging.Logger.manager.loggerDict):
                if not name.startswith("fund_viewer"):
                    continue
                target = logging.getLogger(name)
                for handler in list(target.handlers):
                    if isinstance(handler, logging.FileHandler):
                        target.removeHandler(handler)
                        handler.close()

    def test_perf_logger_measures(self):
        logger = setup_logger("fund_viewer.tests.perf")
        with get_perf_logger(logger, "noop", threshold_ms=10000) as perf:
            pass
        assert perf.elapsed_ms is not None
        assert perf.elapsed_ms >= 0


class TestRecords:

    def test_ticker_normalized(self, make_trade):
        assert make_trade(ticker=" abc ").ticker == "ABC"

    def test_records_frozen(self, make_trade):
        record = make_trade()
        with pytest.raises(ValidationError):
            record.amount = 5

    def test_quote_to_display_price(self, make_trade):
        assert make_trade(converted=True).quote_to_display_price(1000.0) == 10.0
        assert make_trade().quote_to_display_price(1000.0) == 1000.0

    def test_intraday_value_at(self):
        series = IntradaySeries(samples=((datetime(2024, 1, 5, 9, 0), 11.0),), last_close=10.0)
        assert series.value_at(datetime(2024, 1, 5, 9, 0)) == 11.0
        assert series.value_at(datetime(2024, 1, 5, 9, 5)) == 10.0

    def test_snapshot(self, make_trade, deposit):
        snapshot = LedgerSnapshot.from_records(
            transactions=[make_trade(ticker="B"), make_trade(ticker="A"), make_trade(ticker="B")],
            deposits=[deposit(10.0, date(2023, 12, 1))],
        )

        assert snapshot.tickers() == ["B", "A"]
        assert snapshot.earliest_date() == date(2023, 12, 1)
        assert LedgerSnapshot().earliest_date() is None
