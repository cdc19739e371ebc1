"""
Session Display Functions

UI components for machine and operator dashboards.
"""

import streamlit as st
import pandas as pd
import logging
from typing import Any, Dict, List

from utils.formatting import convert_all_datetime_to_str, format_timestamp

from .charts import (
    build_cycle_timeline_figure,
    build_fault_summary_figure,
    build_hourly_breakdown_figure,
    build_item_stack_figure,
)

logger = logging.getLogger(__name__)


def _format_hm(formatted: Dict[str, int]) -> str:
    return f"{formatted.get('hours', 0)}h {formatted.get('minutes', 0)}m"


def cycle_rows_to_dataframe(rows: List[Dict[str, Any]], timezone: str = "UTC") -> pd.DataFrame:
    """
    Tabulate serialized cycles with their ISO 'start'/'end' shown as local time.

    Args:
        rows: Fault cycles or completed cycles from a dashboard payload
        timezone: IANA timezone name used for display

    Returns:
        DataFrame ready for st.dataframe
    """
    df = pd.DataFrame(rows)
    for column in ('start', 'end'):
        if column in df.columns:
            df[column] = df[column].map(lambda value: format_timestamp(value, timezone))
    return df


def hourly_breakdown_table(hourly_df: pd.DataFrame) -> pd.DataFrame:
    """Percentage columns of the hourly breakdown with readable hour labels."""
    columns = ['hour_start', 'hour_end'] + [
        f'{state}_percent' for state in ('running', 'paused', 'fault', 'unrecorded')
    ]
    return convert_all_datetime_to_str(hourly_df[columns]).round(1)


def render_performance_metrics(performance: Dict[str, Any]):
    """Four OEE component metrics plus runtime/downtime and output."""
    metrics = performance['performance']

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Availability", metrics['availability']['percentage'])
    with col2:
        st.metric("Efficiency", metrics['efficiency']['percentage'])
    with col3:
        st.metric("Throughput", metrics['throughput']['percentage'])
    with col4:
        st.metric("OEE", metrics['oee']['percentage'])

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Runtime", _format_hm(performance['runtime']['formatted']))
    with col2:
        st.metric("Downtime", _format_hm(performance['downtime']['formatted']))
    with col3:
        st.metric("Pieces", performance['output']['total_count'])
    with col4:
        st.metric("Misfeeds", performance['output']['misfeed_count'])


def render_item_summary(item_summary: Dict[str, Any]):
    """Per-item throughput table."""
    summary = item_summary['machine_summary']
    st.markdown(
        f"**Total:** {summary['total_count']} pieces, {summary['pph']} PPH "
        f"(standard {summary['prorated_standard']}, efficiency {summary['efficiency']}%)"
    )

    rows = [
        {
            'Item': item['name'],
            'Count': item['count_total'],
            'Standard': item['standard'],
            'PPH': item['pph'],
            'Efficiency (%)': item['efficiency'],
        }
        for item in summary['item_summaries'].values()
    ]
    if rows:
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.info("No counts recorded during running cycles")


def render_fault_history(fault_data: Dict[str, List[Dict[str, Any]]], timezone: str = "UTC"):
    """Fault summary chart and the list of fault cycles."""
    if not fault_data['fault_cycles']:
        st.success("✅ No faults in this session")
        return

    st.plotly_chart(build_fault_summary_figure(fault_data), use_container_width=True)
    with st.expander(f"Fault cycles ({len(fault_data['fault_cycles'])})", expanded=False):
        st.dataframe(cycle_rows_to_dataframe(fault_data['fault_cycles'], timezone), use_container_width=True, hide_index=True)


def render_session_dashboard(title: str, payload: Dict[str, Any], hourly_df: pd.DataFrame, timezone: str = "UTC"):
    """
    Render a machine or operator dashboard payload.

    Args:
        title: Header text
        payload: Output of build_machine_dashboard or build_operator_dashboard
        hourly_df: DataFrame from calculate_hourly_state_breakdown over the session
        timezone: IANA timezone name used for displayed timestamps
    """
    st.subheader(title)

    session = payload['session']
    status = payload['current_status']
    st.caption(
        f"Session {format_timestamp(session['start'], timezone)} → {format_timestamp(session['end'], timezone)} "
        f"({_format_hm(session['duration'])}) · current status: {status['name']} ({status['code']})"
    )

    render_performance_metrics(payload['performance'])

    st.markdown("**Cycles**")
    st.plotly_chart(build_cycle_timeline_figure(payload['cycles']), use_container_width=True)

    st.markdown("**Hourly State Breakdown**")
    if hourly_df.empty:
        st.info("No hourly data available")
    else:
        st.plotly_chart(build_hourly_breakdown_figure(hourly_df), use_container_width=True)
        with st.expander("Hourly data", expanded=False):
            st.dataframe(hourly_breakdown_table(hourly_df), use_container_width=True, hide_index=True)

    st.markdown("**Items**")
    render_item_summary(payload['item_summary'])
    st.plotly_chart(build_item_stack_figure(payload['item_hourly_stack']), use_container_width=True)

    st.markdown("**Faults**")
    render_fault_history(payload['fault_data'], timezone)

    if 'completed_cycles' in payload:
        with st.expander(f"Completed cycles ({len(payload['completed_cycles'])})", expanded=False):
            st.dataframe(cycle_rows_to_dataframe(payload['completed_cycles'], timezone), use_container_width=True, hide_index=True)


def render_machine_cycle_totals(results: List[Dict[str, Any]]):
    """Table of strict-window cycle totals for every machine."""
    if not results:
        st.info("No machine states in this window")
        return

    rows = []
    for result in results:
        cycles = result['cycles']
        rows.append({
            'Serial': result['machine']['serial'],
            'Machine': result['machine']['name'] or "Unknown",
            'Running': _format_hm(cycles['running']['formatted']),
            'Paused': _format_hm(cycles['paused']['formatted']),
            'Faulted': _format_hm(cycles['fault']['formatted']),
            'Program': result['program_mode'] or "",
        })
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
