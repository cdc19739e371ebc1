"""Tests for the machine/operator report builders."""

from datetime import timedelta

from builders import at, make_count, make_state
from core.analysis.sessions import (
    build_machine_dashboard,
    build_machine_performance,
    build_operator_dashboard,
    summarize_all_machine_cycles,
    summarize_machine_cycles,
)

SERIAL = 67800


def _machine_states():
    return [
        make_state(at(9, 0), 1, "Running"),
        make_state(at(10, 30), 3, "Jam"),
        make_state(at(10, 40), 1, "Running"),
        make_state(at(11, 30), 0, "Paused"),
    ]


def _machine_counts():
    counts = [make_count(at(10, minute)) for minute in range(0, 60, 6)]
    counts.append(make_count(at(10, 7), misfeed=True))
    return sorted(counts, key=lambda c: c.timestamp)


def test_machine_performance_sections() -> None:
    valid = [c for c in _machine_counts() if c.is_valid]
    misfeeds = [c for c in _machine_counts() if c.misfeed]

    performance = build_machine_performance(_machine_states(), valid, misfeeds, at(10), at(11))

    assert performance['runtime']['total'] == 50 * 60 * 1000
    assert performance['runtime']['formatted'] == {'hours': 0, 'minutes': 50}
    assert performance['downtime']['formatted'] == {'hours': 0, 'minutes': 10}
    assert performance['output'] == {'total_count': 10, 'misfeed_count': 1}
    assert performance['performance']['availability']['percentage'] == "83.33%"
    assert performance['performance']['throughput']['percentage'] == "90.91%"


def test_machine_dashboard_is_built_over_bookended_session(make_store) -> None:
    store = make_store(_machine_states(), _machine_counts())

    payload = build_machine_dashboard(store, SERIAL, at(10), at(11), now=at(12))

    assert payload['machine'] == {'serial': SERIAL, 'name': "SPF1"}
    assert payload['session']['start'] == at(10).isoformat()
    assert payload['session']['end'] == at(11).isoformat()
    assert payload['current_status'] == {'code': 1, 'name': "Running"}
    assert [c['start'] for c in payload['cycles']['running']] == [at(10).isoformat(), at(10, 40).isoformat()]
    assert payload['fault_data']['fault_summaries'][0]['fault_type'] == "Jam"
    assert payload['fault_data']['fault_summaries'][0]['total_duration'] == 10 * 60 * 1000
    assert payload['item_summary']['machine_summary']['total_count'] == 9
    assert payload['item_hourly_stack']['data']['items'] == {'Towel': [10]}
    assert payload['state_summary']['running_seconds'] == 3000


def test_machine_dashboard_without_session_is_none(make_store) -> None:
    store = make_store([make_state(at(10), 0)])

    assert build_machine_dashboard(store, SERIAL, at(10), at(11), now=at(12)) is None


def test_operator_dashboard_lists_completed_cycles(make_store) -> None:
    states = [
        make_state(at(10, 0), 1, operator_ids=[117]),
        make_state(at(10, 20), 0, operator_ids=[117]),
        make_state(at(10, 30), 1, operator_ids=[117]),
        make_state(at(10, 50), 2, "Jam", operator_ids=[117]),
    ]
    counts = [make_count(at(10, 5), operator_id=117), make_count(at(10, 6), operator_id=118)]
    store = make_store(states, counts)

    payload = build_operator_dashboard(store, 117, at(10), at(11), now=at(12))

    assert payload['operator'] == {'id': 117, 'name': "Operator 117"}
    assert payload['machines'] == [{'serial': SERIAL, 'name': "SPF1"}]
    assert [(c['start'], c['final_status']) for c in payload['completed_cycles']] == [
        (at(10, 0).isoformat(), 0),
        (at(10, 30).isoformat(), 2),
    ]
    assert payload['performance']['output']['total_count'] == 1


def test_operator_dashboard_keeps_cycle_started_before_window(make_store) -> None:
    states = [
        make_state(at(9, 0), 1, operator_ids=[117]),
        make_state(at(10, 30), 0, operator_ids=[117]),
    ]
    store = make_store(states)

    payload = build_operator_dashboard(store, 117, at(10), at(11), now=at(12))

    assert payload['session']['start'] == at(10).isoformat()
    assert [(c['start'], c['end'], c['final_status']) for c in payload['completed_cycles']] == [
        (at(9, 0).isoformat(), at(10, 30).isoformat(), 0),
    ]


def test_operator_dashboard_without_session_is_none(make_store) -> None:
    assert build_operator_dashboard(make_store(), 117, at(10), at(11), now=at(12)) is None


def test_machine_cycle_totals_use_strict_window() -> None:
    states = [make_state(at(9, 57), 1), make_state(at(10, 20), 0), make_state(at(10, 40), 1), make_state(at(11, 3), 0)]

    summary = summarize_machine_cycles(states, at(10), at(11))

    assert summary['running']['total_ms'] == 0
    assert summary['paused']['formatted'] == {'hours': 0, 'minutes': 20, 'seconds': 0}
    assert summary['window']['formatted'] == {'hours': 1, 'minutes': 0, 'seconds': 0}


def test_all_machine_cycle_totals_fetch_padded_window(make_store) -> None:
    store = make_store([
        make_state(at(9, 57), 1, serial=1),
        make_state(at(10, 20), 0, serial=1),
        make_state(at(10, 10), 1, serial=2, machine_name="SPF2"),
        make_state(at(10, 25), 4, "Thread break", serial=2, machine_name="SPF2"),
    ])

    results = summarize_all_machine_cycles(store, at(10), at(11), padding_minutes=5)

    assert store.calls == [('all_machines', at(9, 55), at(11, 5))]
    assert [r['machine']['serial'] for r in results] == [1, 2]
    second = results[1]['cycles']
    assert second['running']['total_ms'] == 15 * 60 * 1000
    assert second['fault']['total_ms'] == 35 * 60 * 1000
    assert timedelta(milliseconds=results[0]['cycles']['paused']['total_ms']) == timedelta(minutes=40)
