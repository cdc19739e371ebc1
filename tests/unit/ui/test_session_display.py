"""Tests for dashboard table helpers."""

from builders import at
from core.calculations.throughput import calculate_hourly_state_breakdown
from core.states.models import Cycle, CycleCategory
from ui.session_display import cycle_rows_to_dataframe, hourly_breakdown_table


def test_cycle_rows_show_local_time() -> None:
    rows = [{'start': at(10).isoformat(), 'end': at(10, 30).isoformat(), 'duration': 1800000, 'fault_code': 3}]

    df = cycle_rows_to_dataframe(rows, "Europe/Copenhagen")

    assert df.loc[0, 'start'] == "2024-01-15 11:00:00"
    assert df.loc[0, 'end'] == "2024-01-15 11:30:00"
    assert df.loc[0, 'fault_code'] == 3


def test_cycle_rows_without_rows_is_empty() -> None:
    assert cycle_rows_to_dataframe([]).empty


def test_hourly_breakdown_table_labels_hours() -> None:
    cycles = {'running': [Cycle(at(10), at(10, 45), CycleCategory.RUNNING)], 'paused': [], 'fault': []}
    hourly_df = calculate_hourly_state_breakdown(cycles, at(10), at(12))

    table = hourly_breakdown_table(hourly_df)

    assert list(table.columns) == [
        'hour_start', 'hour_end', 'running_percent', 'paused_percent', 'fault_percent', 'unrecorded_percent'
    ]
    assert table.loc[0, 'hour_start'] == "2024-01-15 10:00:00"
    assert table.loc[0, 'running_percent'] == 75.0
    assert table.loc[0, 'unrecorded_percent'] == 25.0
