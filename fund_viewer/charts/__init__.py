"""Plotly figures of the fund worth history and today's progress."""

from fund_viewer.charts.visualizations import create_daily_progress_chart, create_worth_chart

__all__ = ['create_daily_progress_chart', 'create_worth_chart']
