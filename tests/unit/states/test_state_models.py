"""Tests for state/count event normalisation and derived record types."""

from datetime import timedelta

import pandas as pd
import pytest

from builders import at, make_state
from core.states.errors import MalformedEvent
from core.states.models import (
    CountEvent,
    Cycle,
    CycleCategory,
    DurationBreakdown,
    FaultCycle,
    Session,
    StateEvent,
    counts_from_records,
    events_from_records,
)


def test_category_predicates_partition_status_codes() -> None:
    assert CycleCategory.for_status(1) is CycleCategory.RUNNING
    assert CycleCategory.for_status(0) is CycleCategory.PAUSED
    assert CycleCategory.for_status(2) is CycleCategory.FAULT
    assert CycleCategory.for_status(42) is CycleCategory.FAULT
    assert CycleCategory.for_status(None) is None
    assert not any(category.matches(None) for category in CycleCategory)

    for code in range(-1, 10):
        assert sum(category.matches(code) for category in CycleCategory) <= 1


def test_from_record_accepts_flat_rows() -> None:
    event = StateEvent.from_record({
        'ts': pd.Timestamp("2024-01-15T10:00:00Z"),
        'machine_serial': 67800.0,
        'machine_name': "SPF1",
        'status_code': 3,
        'status_name': "Jam",
        'program_mode': "largePiece",
        'operators': '[{"id": 117, "name": "Shaun White", "station": 1}]',
    })

    assert event.timestamp == at(10)
    assert event.status_code == 3
    assert event.category is CycleCategory.FAULT
    assert event.machine_serial == 67800
    assert event.has_operator(117)
    assert event.operators[0].station == 1
    assert event.program_mode == "largePiece"


def test_from_record_accepts_nested_documents() -> None:
    event = StateEvent.from_record({
        'timestamp': "2024-01-15T10:00:00+00:00",
        'status': {'code': 1, 'name': "Running"},
        'machine': {'serial': 67800, 'name': "SPF1"},
        'program': {'mode': "smallPiece"},
        'operators': [{'id': 117, 'name': "Shaun White"}, {'name': "no id"}],
    })

    assert event.status_name == "Running"
    assert event.machine.name == "SPF1"
    assert [op.id for op in event.operators] == [117]


@pytest.mark.parametrize("record", [
    {'status_code': 1},
    {'ts': None, 'status_code': 1},
    {'ts': "not a time", 'status_code': 1},
    {'ts': "2024-01-15T10:00:00Z"},
    {'ts': "2024-01-15T10:00:00Z", 'status': {'code': None}},
])
def test_from_record_rejects_unusable_records(record) -> None:
    with pytest.raises(MalformedEvent):
        StateEvent.from_record(record)


def test_events_from_records_skips_malformed_records() -> None:
    events = events_from_records([
        {'ts': "2024-01-15T10:00:00Z", 'status_code': 1},
        {'ts': None, 'status_code': 0},
        {'ts': "2024-01-15T10:05:00Z", 'status_code': 0},
    ])

    assert [e.status_code for e in events] == [1, 0]


def test_count_record_validity() -> None:
    counts = counts_from_records([
        {'ts': "2024-01-15T10:00:00Z", 'machine_serial': 67800, 'operator_id': 117,
         'item_id': 4, 'item_name': "Towel", 'item_standard': 625, 'misfeed': False},
        {'ts': "2024-01-15T10:01:00Z", 'machine_serial': 67800, 'operator_id': -1,
         'item_id': 4, 'misfeed': False},
        {'ts': "2024-01-15T10:02:00Z", 'machine_serial': 67800, 'operator_id': 117, 'misfeed': True},
        {'ts': None},
    ])

    assert len(counts) == 3
    assert counts[0].is_valid
    assert counts[0].item.standard == 625.0
    assert not counts[1].is_valid
    assert counts[2].misfeed and not counts[2].is_valid
    assert CountEvent(timestamp=at(10)).operator_id is None


def test_cycle_serialization_reports_milliseconds() -> None:
    cycle = FaultCycle(at(10), at(10, 1, 30), CycleCategory.FAULT, code=3, name="Jam")

    assert cycle.duration_ms == 90000
    assert cycle.to_dict()['fault_type'] == "Jam"
    assert Cycle(at(10), at(11), CycleCategory.RUNNING).to_dict() == {
        'start': at(10).isoformat(),
        'end': at(11).isoformat(),
        'duration': 3600000,
    }


def test_duration_breakdown_uses_floor_division() -> None:
    breakdown = DurationBreakdown.from_timedelta(timedelta(hours=2, minutes=5, seconds=59, milliseconds=900))

    assert breakdown.to_dict() == {'hours': 2, 'minutes': 5, 'seconds': 59}


def test_session_to_dict() -> None:
    session = Session(at(10), at(11, 30), [make_state(at(10), 1)])

    payload = session.to_dict()

    assert payload['duration'] == {'hours': 1, 'minutes': 30, 'seconds': 0}
    assert payload['states'][0]['status'] == {'code': 1, 'name': None}
