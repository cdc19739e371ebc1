"""Tests for Plotly figure builders and time window helpers."""

from datetime import datetime

import pytest
import pytz

from builders import at
from core.calculations.throughput import calculate_hourly_state_breakdown
from core.states.models import Cycle, CycleCategory
from ui.charts import (
    build_cycle_timeline_figure,
    build_fault_summary_figure,
    build_hourly_breakdown_figure,
    build_item_stack_figure,
)
from ui.time_window_selector import parse_local_datetime, today_window


def test_hourly_breakdown_figure_has_one_trace_per_state() -> None:
    cycles = {'running': [Cycle(at(10), at(10, 45), CycleCategory.RUNNING)], 'paused': [], 'fault': []}
    hourly_df = calculate_hourly_state_breakdown(cycles, at(10), at(12))

    fig = build_hourly_breakdown_figure(hourly_df)

    assert [trace.name for trace in fig.data] == ["Running", "Paused", "Fault", "Unrecorded"]
    assert fig.layout.barmode == 'stack'


def test_cycle_timeline_skips_empty_categories() -> None:
    cycles = {
        'running': [{'start': at(10).isoformat(), 'end': at(10, 30).isoformat(), 'duration': 1800000}],
        'paused': [],
        'fault': [],
    }

    fig = build_cycle_timeline_figure(cycles)

    assert len(fig.data) == 1
    assert fig.data[0].name == "Running"


def test_item_stack_figure_traces_per_item() -> None:
    stack = {'title': "Item Stacked Count Chart", 'data': {'hours': [0, 1], 'items': {'Towel': [3, 4], 'Sheet': [1, 0]}}}

    fig = build_item_stack_figure(stack)

    assert sorted(trace.name for trace in fig.data) == ["Sheet", "Towel"]
    assert list(fig.data[0].x) == [0, 1]


def test_fault_summary_figure_minutes() -> None:
    fault_data = {
        'fault_cycles': [],
        'fault_summaries': [{'fault_code': 3, 'fault_type': "Jam", 'total_duration': 900000, 'count': 2}],
    }

    fig = build_fault_summary_figure(fault_data)

    assert list(fig.data[0].x) == [15.0]
    assert len(build_fault_summary_figure({'fault_summaries': []}).data) == 0


def test_parse_local_datetime_localizes_input() -> None:
    assert parse_local_datetime("2024-01-15 11:00", "Europe/Copenhagen") == at(10)
    with pytest.raises(ValueError):
        parse_local_datetime("15/01/2024", "UTC")


def test_today_window_starts_at_local_midnight() -> None:
    window = today_window("Europe/Copenhagen", now=at(10))

    assert window.start == datetime(2024, 1, 14, 23, 0, tzinfo=pytz.UTC)
    assert window.end == at(10)
