"""Visualization components using Plotly for the fund charts."""

from typing import List, Optional, Sequence

import plotly.graph_objects as go

from fund_viewer.calculators.history import DailyWorth, DepositPoint
from fund_viewer.calculators.valuation import IntradayPoint
from fund_viewer.utils.logging_config import setup_logger

logger = setup_logger(__name__)

_AXIS = dict(
    showgrid=True,
    gridcolor='rgba(255,255,255,0.05)',
    zeroline=False,
    tickfont=dict(color='#9CA3AF'),
)


def _layout(fig: go.Figure, title: Optional[str], height: int):
    fig.update_layout(
        title=dict(text=title or "", x=0, font=dict(size=18, family="JetBrains Mono", color="#e6e6e6")),
        xaxis=dict(_AXIS, showline=True, linecolor='#374151'),
        yaxis=dict(_AXIS, tickformat='s'),
        hovermode='x unified',
        legend=dict(
            orientation='h',
            yanchor='top',
            y=-0.2,
            xanchor='center',
            x=0.5,
            font=dict(color='#E5E7EB', size=12),
            bgcolor='rgba(0,0,0,0)',
        ),
        height=height,
        margin=dict(t=90 if title else 30, b=80, l=30, r=20),
        paper_bgcolor='rgba(0,0,0,0)',
        plot_bgcolor='rgba(0,0,0,0)',
        font=dict(family="JetBrains Mono", size=11)
    )


def _worth_hover(point: DailyWorth) -> str:
    rel = f"{point.rel_profit:+.2f}%" if point.rel_profit is not None else "n/a"
    return (
        f"<b>Total</b>: €{point.worth:,.2f}<br>"
        f"Stocks: €{point.worth_stocks:,.2f}<br>"
        f"Vault: €{point.worth_vault:,.2f}<br>"
        f"Rel. profit: {rel}"
    )


def create_worth_chart(
    worth: Sequence[DailyWorth],
    deposits: Sequence[DepositPoint],
    title: Optional[str] = "Fund Worth"
) -> go.Figure:
    """
    Fund worth against invested capital over the whole history.

    The investment line only covers days the deposit series has; the worth
    line carries total, stocks, vault and relative profit in its hover text.
    """
    if not worth:
        return go.Figure()

    fig = go.Figure()

    if deposits:
        fig.add_trace(go.Scatter(
            x=[d.date for d in deposits],
            y=[d.deposited for d in deposits],
            name='Investment',
            mode='lines',
            line=dict(color='#64748b', width=2, dash='dot'),
            hovertemplate='<b>Investment</b>: €%{y:,.0f}<extra></extra>'
        ))

    fig.add_trace(go.Scatter(
        x=[p.date for p in worth],
        y=[p.worth for p in worth],
        name='Fund Worth',
        mode='lines',
        line=dict(color='#3b82f6', width=3),
        fill='tozeroy',
        fillcolor='rgba(59, 130, 246, 0.05)',
        text=[_worth_hover(p) for p in worth],
        hovertemplate='%{text}<extra></extra>'
    ))

    _layout(fig, title, height=580)
    fig.update_xaxes(rangeselector=dict(
        buttons=[
            dict(count=1, label="1M", step="month", stepmode="backward"),
            dict(count=6, label="6M", step="month", stepmode="backward"),
            dict(count=1, label="1Y", step="year", stepmode="backward"),
            dict(step="all", label="ALL")
        ],
        bgcolor='rgba(20, 20, 20, 0.8)',
        activecolor='#3b82f6',
        font=dict(color='#FFFFFF', size=11),
        y=1.12,
        x=1,
        xanchor='right'
    ))

    logger.debug(f"Worth chart: {len(worth)} days, {len(deposits)} deposit points")
    return fig


def create_daily_progress_chart(
    points: Sequence[IntradayPoint],
    title: Optional[str] = "Today"
) -> go.Figure:
    """Intraday fund worth; slots that have not happened yet stay empty."""
    if not points:
        return go.Figure()

    worth: List[Optional[float]] = [p.worth for p in points]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=[p.timestamp for p in points],
        y=worth,
        name='Fund Worth',
        mode='lines',
        line=dict(color='#3b82f6', width=2),
        connectgaps=False,
        hovertemplate='<b>%{x|%H:%M}</b>: €%{y:,.2f}<extra></extra>'
    ))

    _layout(fig, title, height=420)
    fig.update_xaxes(tickformat='%H:%M')
    return fig
