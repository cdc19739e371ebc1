"""Tests for item throughput summaries and hourly breakdowns."""

from datetime import timedelta

import pytest

from builders import at, make_count
from core.calculations.throughput import (
    build_item_hourly_stack,
    build_item_summary,
    calculate_hourly_state_breakdown,
    calculate_state_summary,
    counts_to_dataframe,
)
from core.states.models import Cycle, CycleCategory


def _two_operator_counts():
    counts = []
    for minute in range(60):
        counts.append(make_count(at(10, minute, 10), item_id=1, item_name="Towel", standard=600, operator_id=117))
        counts.append(make_count(at(10, minute, 40), item_id=2, item_name="Sheet", standard=0, operator_id=118))
    return counts


def test_counts_to_dataframe_columns() -> None:
    df = counts_to_dataframe([make_count(at(10))])

    assert list(df.columns) == ['timestamp', 'operator_id', 'item_id', 'item_name', 'item_standard', 'misfeed']
    assert counts_to_dataframe([]).empty


def test_item_summary_credits_worked_time_per_operator() -> None:
    cycles = [Cycle(at(10), at(11), CycleCategory.RUNNING)]
    counts = [make_count(at(9, 30))] + _two_operator_counts() + [make_count(at(11, 30))]

    summary = build_item_summary(cycles, counts)

    machine = summary['machine_summary']
    assert machine['total_count'] == 120
    assert machine['worked_time_ms'] == 2 * 3600 * 1000
    assert machine['pph'] == 60.0
    assert machine['prorated_standard'] == 633.0
    assert machine['efficiency'] == pytest.approx(9.48)

    towel = machine['item_summaries'][1]
    sheet = machine['item_summaries'][2]
    assert towel['pph'] == 30.0
    assert towel['efficiency'] == 5.0
    assert sheet['standard'] == 666
    assert sheet['efficiency'] == pytest.approx(4.5)

    (session,) = summary['sessions']
    assert [item['name'] for item in session['items']] == ["Towel", "Sheet"]


def test_item_summary_without_counts_is_empty() -> None:
    cycles = [Cycle(at(10), at(11), CycleCategory.RUNNING)]

    summary = build_item_summary(cycles, [])

    assert summary['sessions'] == []
    assert summary['machine_summary']['total_count'] == 0
    assert build_item_summary([], [make_count(at(10))])['sessions'] == []


def test_item_hourly_stack_buckets_by_hours_since_start() -> None:
    counts = [
        make_count(at(9, 59), item_name="Towel"),
        make_count(at(10, 5), item_name="Towel"),
        make_count(at(10, 30), item_id=2, item_name="Sheet"),
        make_count(at(11, 10), item_name="Towel"),
        make_count(at(12, 59), item_name="Towel"),
    ]

    stack = build_item_hourly_stack(counts, at(10))

    assert stack['data']['hours'] == [0, 1, 2]
    assert stack['data']['items'] == {'Sheet': [1, 0, 0], 'Towel': [1, 1, 1]}


def test_item_hourly_stack_without_counts() -> None:
    assert build_item_hourly_stack([], at(10)) == {'title': "No data", 'data': {'hours': [], 'items': {}}}


def _breakdown_cycles():
    return {
        'running': [Cycle(at(10, 30), at(11, 15), CycleCategory.RUNNING)],
        'paused': [],
        'fault': [Cycle(at(11, 15), at(11, 30), CycleCategory.FAULT)],
    }


def test_hourly_state_breakdown_trims_first_and_last_hour() -> None:
    df = calculate_hourly_state_breakdown(_breakdown_cycles(), at(10, 15), at(11, 45))

    assert len(df) == 2
    first, second = df.iloc[0], df.iloc[1]
    assert first['total_seconds'] == 2700
    assert first['running_seconds'] == 1800
    assert first['unrecorded_seconds'] == 900
    assert second['running_seconds'] == 900
    assert second['fault_seconds'] == 900
    assert first['running_percent'] == pytest.approx(200 / 3)


def test_hourly_state_breakdown_empty_window() -> None:
    assert calculate_hourly_state_breakdown(_breakdown_cycles(), at(11), at(11)).empty


def test_state_summary_over_window() -> None:
    summary = calculate_state_summary(_breakdown_cycles(), at(10, 15), at(11, 45))

    assert summary['window_seconds'] == 5400
    assert summary['running_seconds'] == 2700
    assert summary['fault_seconds'] == 900
    assert summary['unrecorded_seconds'] == 1800
    assert summary['running_percent'] == 50.0
    assert timedelta(seconds=summary['paused_seconds']) == timedelta(0)
