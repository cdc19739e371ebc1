"""Tests for grouping mixed state streams by machine and operator."""

import pytest

from builders import at, make_state
from core.states.grouping import (
    group_states_by_machine,
    group_states_by_operator,
    group_states_by_operator_and_machine,
    unique_machines,
    unique_operators,
)


def _mixed_states():
    return [
        make_state(at(10, 0), 1, serial=1, operator_ids=[117]),
        make_state(at(10, 5), 1, serial=2, operator_ids=[118, -1], machine_name="SPF2"),
        make_state(at(10, 10), 0, serial=1, operator_ids=[117, 118]),
        make_state(at(10, 15), 0, serial=None, operator_ids=[117]),
    ]


def test_group_by_machine_skips_events_without_serial() -> None:
    grouped = group_states_by_machine(_mixed_states())

    assert sorted(grouped) == [1, 2]
    assert [s.timestamp for s in grouped[1]['states']] == [at(10, 0), at(10, 10)]
    assert grouped[2]['machine'].name == "SPF2"


def test_group_by_machine_requires_a_list() -> None:
    with pytest.raises(TypeError):
        group_states_by_machine(None)


def test_group_by_operator_skips_placeholder_operator() -> None:
    grouped = group_states_by_operator(_mixed_states())

    assert sorted(grouped) == [117, 118]
    assert len(grouped[117]['states']) == 3
    assert len(grouped[118]['states']) == 2


def test_group_by_operator_and_machine_pairs() -> None:
    grouped = group_states_by_operator_and_machine(_mixed_states())

    assert sorted(grouped) == [(117, 1), (118, 1), (118, 2)]
    assert len(grouped[(117, 1)]['states']) == 2


def test_unique_machines_and_operators_in_first_appearance_order() -> None:
    states = _mixed_states()

    assert [m.serial for m in unique_machines(states)] == [1, 2]
    assert [op.id for op in unique_operators(states)] == [117, 118]
