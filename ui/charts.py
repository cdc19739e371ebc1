"""
Chart Builders

Plotly figures for the dashboards. Builders only assemble figures; rendering is
left to ui.session_display so they can be used outside Streamlit.
"""

import logging
import pandas as pd
import plotly.graph_objects as go
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

STATE_COLORS = {
    'running': '#28a745',     # Green
    'paused': '#ffc107',      # Yellow
    'fault': '#dc3545',       # Red
    'unrecorded': '#6c757d',  # Gray
}


def build_hourly_breakdown_figure(hourly_df: pd.DataFrame) -> go.Figure:
    """
    Stacked bar chart of running/paused/fault/unrecorded percentage per hour.

    Args:
        hourly_df: DataFrame from calculate_hourly_state_breakdown

    Returns:
        Plotly figure (without traces when the DataFrame is empty)
    """
    fig = go.Figure()
    if hourly_df.empty:
        return fig

    x_values = hourly_df['hour_start']
    for state, color in STATE_COLORS.items():
        fig.add_trace(go.Bar(
            x=x_values,
            y=hourly_df[f'{state}_percent'],
            name=state.capitalize(),
            marker_color=color,
            hovertemplate=f'%{{x|%H:%M}}<br>%{{y:.1f}}% {state.capitalize()}<extra></extra>'
        ))

    fig.update_layout(
        barmode='stack',
        xaxis_title='Hour',
        yaxis_title='Percentage (%)',
        height=400,
        hovermode='x unified',
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        xaxis=dict(
            range=[hourly_df['hour_start'].min(), hourly_df['hour_end'].max()],
            type='date',
            tickformat='%H:%M',
            dtick=3600000  # 1 hour in milliseconds
        )
    )
    return fig


def build_cycle_timeline_figure(cycles: Dict[str, List[Dict[str, Any]]]) -> go.Figure:
    """
    Horizontal timeline with one row per category.

    Args:
        cycles: Serialized cycles keyed by category ('running', 'paused', 'fault'),
                each with ISO 'start'/'end' and 'duration' in ms

    Returns:
        Plotly figure with one bar trace per non-empty category
    """
    fig = go.Figure()

    for category, items in cycles.items():
        if not items:
            continue
        fig.add_trace(go.Bar(
            base=[c['start'] for c in items],
            x=[c['duration'] for c in items],
            y=[category.capitalize()] * len(items),
            orientation='h',
            name=category.capitalize(),
            marker_color=STATE_COLORS.get(category, STATE_COLORS['unrecorded']),
            hovertemplate='%{base|%H:%M:%S} → %{x:,.0f} ms<extra></extra>'
        ))

    fig.update_layout(
        barmode='overlay',
        xaxis=dict(type='date', title='Time'),
        height=250,
        showlegend=False
    )
    return fig


def build_item_stack_figure(item_hourly_stack: Dict[str, Any]) -> go.Figure:
    """
    Stacked bars of item counts per hour since session start.

    Args:
        item_hourly_stack: Output of build_item_hourly_stack
    """
    fig = go.Figure()
    data = item_hourly_stack.get('data', {})
    hours = data.get('hours', [])

    for item_name, counts in data.get('items', {}).items():
        fig.add_trace(go.Bar(x=hours, y=counts, name=item_name))

    fig.update_layout(
        barmode='stack',
        title=item_hourly_stack.get('title', ''),
        xaxis_title='Hours since start',
        yaxis_title='Count',
        height=350
    )
    return fig


def build_fault_summary_figure(fault_data: Dict[str, List[Dict[str, Any]]]) -> go.Figure:
    """Horizontal bars of total minutes per fault type, longest first."""
    fig = go.Figure()
    summaries = sorted(fault_data.get('fault_summaries', []), key=lambda s: s['total_duration'])
    if not summaries:
        return fig

    fig.add_trace(go.Bar(
        x=[s['total_duration'] / 60000 for s in summaries],
        y=[f"{s['fault_type']} ({s['fault_code']})" for s in summaries],
        orientation='h',
        marker_color=STATE_COLORS['fault'],
        text=[s['count'] for s in summaries],
        hovertemplate='%{y}<br>%{x:.1f} min, %{text} occurrence(s)<extra></extra>'
    ))
    fig.update_layout(xaxis_title='Minutes', height=max(200, 40 * len(summaries)))
    return fig
