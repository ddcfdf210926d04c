"""
Tests for the yfinance and ECB adapters

Network calls are replaced: yfinance.Ticker by a stub returning prepared
frames, the ECB session by a stub returning CSV text.
"""

import pytest
import pandas as pd
import requests
from datetime import date, datetime

from fund_viewer.core.config import Settings
from fund_viewer.core.exceptions import ExternalFetchError
from fund_viewer.services import market_data
from fund_viewer.services.fx_rates import ECBRateProvider
from fund_viewer.services.market_data import YFinanceProvider


class StubTicker:
    """Minimal stand-in for yfinance.Ticker."""

    def __init__(self, info=None, daily=None, intraday=None):
        self.info = info or {}
        self.daily = daily if daily is not None else pd.DataFrame()
        self.intraday = intraday if intraday is not None else pd.DataFrame()
        self.history_calls = []

    def history(self, **kwargs):
        self.history_calls.append(kwargs)
        if kwargs.get('interval', '1d') == '1d':
            return self.daily
        return self.intraday


def closes(index, values):
    return pd.DataFrame({'Close': values}, index=pd.DatetimeIndex(index))


class TestYFinanceProvider:

    @pytest.fixture
    def use_ticker(self, monkeypatch):
        def _use(stub):
            monkeypatch.setattr(market_data.yf, 'Ticker', lambda symbol: stub)
            return stub
        return _use

    def test_live_price_from_info(self, use_ticker):
        use_ticker(StubTicker(info={'regularMarketPrice': 110.5}))
        assert YFinanceProvider().get_live_price('ABC') == 110.5

    def test_live_price_falls_back_to_last_close(self, use_ticker):
        daily = closes(['2024-01-03', '2024-01-04'], [101.0, float('nan')])
        use_ticker(StubTicker(info={}, daily=daily))
        assert YFinanceProvider().get_live_price('ABC') == 101.0

    def test_no_live_price(self, use_ticker):
        use_ticker(StubTicker(info={}))
        with pytest.raises(ExternalFetchError) as exc:
            YFinanceProvider().get_live_price('ABC')
        assert exc.value.keys == ('ABC',)

    def test_historical_skips_gaps(self, use_ticker):
        daily = closes(['2024-01-02', '2024-01-03', '2024-01-04'], [100.0, float('nan'), 102.0])
        stub = use_ticker(StubTicker(daily=daily))
        points = YFinanceProvider().get_historical_prices('ABC', date(2024, 1, 1))

        assert [(p.date, p.close) for p in points] == [
            (date(2024, 1, 2), 100.0),
            (date(2024, 1, 4), 102.0),
        ]
        assert stub.history_calls[0]['start'] == '2024-01-01'
        assert stub.history_calls[0]['auto_adjust'] is False

    def test_historical_error_wrapped(self, monkeypatch):
        def broken(symbol):
            raise RuntimeError("rate limited")

        monkeypatch.setattr(market_data.yf, 'Ticker', broken)
        with pytest.raises(ExternalFetchError, match="rate limited"):
            YFinanceProvider().get_historical_prices('ABC', date(2024, 1, 1))

    def test_intraday_series(self, use_ticker):
        intraday = closes(['2024-01-05 09:00:00', '2024-01-05 09:05:00'], [111.0, 112.0])
        daily = closes(['2024-01-04'], [110.0])
        use_ticker(StubTicker(daily=daily, intraday=intraday))
        series = YFinanceProvider().get_intraday_prices('ABC')

        assert series.last_close == 110.0
        assert series.value_at(datetime(2024, 1, 5, 9, 5)) == 112.0
        assert series.value_at(datetime(2024, 1, 5, 9, 10)) == 110.0

    def test_intraday_empty(self, use_ticker):
        use_ticker(StubTicker())
        with pytest.raises(ExternalFetchError):
            YFinanceProvider().get_intraday_prices('ABC')


ECB_CSV = """KEY,FREQ,CURRENCY,CURRENCY_DENOM,EXR_TYPE,EXR_SUFFIX,TIME_PERIOD,OBS_VALUE
EXR.D.GBP.EUR.SP00.A,D,GBP,EUR,SP00,A,2024-01-02,0.86518
EXR.D.GBP.EUR.SP00.A,D,GBP,EUR,SP00,A,2024-01-03,0.86535
EXR.D.USD.EUR.SP00.A,D,USD,EUR,SP00,A,2024-01-02,1.0956
EXR.D.USD.EUR.SP00.A,D,USD,EUR,SP00,A,2024-01-03,1.0919
"""


class StubResponse:

    def __init__(self, text, status=200):
        self.text = text
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


class TestECBRateProvider:

    @pytest.fixture
    def provider(self):
        return ECBRateProvider(Settings(http_timeout=3.0), currencies=['usd', 'GBP', 'EUR'])

    def stub_get(self, provider, monkeypatch, response):
        requests_made = []

        def get(url, params=None, timeout=None):
            requests_made.append((url, params, timeout))
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr(provider.session, 'get', get)
        return requests_made

    def test_url_selects_currencies(self, provider):
        assert provider.url.endswith('/EXR/D.GBP+USD.EUR.SP00.A')

    def test_rates_range(self, provider, monkeypatch):
        made = self.stub_get(provider, monkeypatch, StubResponse(ECB_CSV))
        tables = provider.get_rates_range(date(2024, 1, 1), date(2024, 1, 3))

        assert list(tables) == [date(2024, 1, 2), date(2024, 1, 3)]
        assert tables[date(2024, 1, 2)] == pytest.approx({'EUR': 1.0, 'GBP': 0.86518, 'USD': 1.0956})

        url, params, timeout = made[0]
        assert params['startPeriod'] == '2024-01-01'
        assert params['endPeriod'] == '2024-01-03'
        assert params['format'] == 'csvdata'
        assert timeout == 3.0

    def test_latest_rates(self, provider, monkeypatch):
        self.stub_get(provider, monkeypatch, StubResponse(ECB_CSV))
        rates = provider.get_latest_rates()

        assert rates == pytest.approx({'EUR': 1.0, 'GBP': 0.86535, 'USD': 1.0919})

    def test_request_error(self, provider, monkeypatch):
        self.stub_get(provider, monkeypatch, requests.ConnectionError("unreachable"))
        with pytest.raises(ExternalFetchError, match="unreachable"):
            provider.get_latest_rates()

    def test_http_error(self, provider, monkeypatch):
        self.stub_get(provider, monkeypatch, StubResponse("", status=503))
        with pytest.raises(ExternalFetchError):
            provider.get_rates_range(date(2024, 1, 1), date(2024, 1, 3))

    def test_empty_body(self, provider, monkeypatch):
        self.stub_get(provider, monkeypatch, StubResponse("   "))
        with pytest.raises(ExternalFetchError, match="no data"):
            provider.get_latest_rates()

    def test_unexpected_columns(self, provider, monkeypatch):
        self.stub_get(provider, monkeypatch, StubResponse("A,B\n1,2\n"))
        with pytest.raises(ExternalFetchError, match="lacks columns"):
            provider.get_latest_rates()
