"""Tests for the Plotly figure builders."""

from datetime import date, datetime

import plotly.graph_objects as go

from fund_viewer.calculators.history import DailyWorth, DepositPoint
from fund_viewer.calculators.valuation import IntradayPoint
from fund_viewer.charts.visualizations import create_daily_progress_chart, create_worth_chart


def test_worth_chart_traces():
    worth = [
        DailyWorth(date=date(2024, 1, 2), worth=1055.0, worth_stocks=1005.0, worth_vault=50.0, rel_profit=-0.47),
        DailyWorth(date=date(2024, 1, 3), worth=1155.0, worth_stocks=1105.0, worth_vault=50.0, rel_profit=None),
    ]
    deposits = [DepositPoint(date=date(2024, 1, 2), deposited=1060.0)]

    fig = create_worth_chart(worth, deposits)

    assert isinstance(fig, go.Figure)
    assert [t.name for t in fig.data] == ['Investment', 'Fund Worth']
    assert list(fig.data[1].y) == [1055.0, 1155.0]
    assert "Vault: €50.00" in fig.data[1].text[0]
    assert "n/a" in fig.data[1].text[1]


def test_worth_chart_empty():
    assert len(create_worth_chart([], []).data) == 0


def test_daily_progress_chart_leaves_future_empty():
    points = [
        IntradayPoint(timestamp=datetime(2024, 1, 5, 9, 0), worth=1155.0, stocks={'ABC': 1100.0}, vault=50.0),
        IntradayPoint(timestamp=datetime(2024, 1, 5, 9, 5), worth=None, stocks=None, vault=50.0),
    ]
    fig = create_daily_progress_chart(points)

    assert len(fig.data) == 1
    assert list(fig.data[0].y) == [1155.0, None]
