"""
State Grouping

Splits a mixed state stream (many machines, many operators) into per-entity lists.
Events keep their relative order inside each group.
"""

from typing import Any, Dict, List, Sequence, Tuple

from .models import MachineRef, OperatorRef, StateEvent, UNKNOWN_OPERATOR_ID


def group_states_by_machine(states: Sequence[StateEvent]) -> Dict[int, Dict[str, Any]]:
    """
    Group states by machine serial.

    Events without a machine serial are skipped. The machine name is taken from the
    first event of each serial that carries one.

    Args:
        states: State events for any number of machines

    Returns:
        Dictionary of serial -> {'machine': MachineRef, 'program_mode': str or None, 'states': [...]}
    """
    if not isinstance(states, (list, tuple)):
        raise TypeError(f"Expected a list of states but got: {type(states).__name__}")

    grouped: Dict[int, Dict[str, Any]] = {}
    for state in states:
        serial = state.machine_serial
        if serial is None:
            continue

        group = grouped.get(serial)
        if group is None:
            group = {
                'machine': MachineRef(serial, state.machine.name),
                'program_mode': state.program_mode,
                'states': [],
            }
            grouped[serial] = group
        elif group['machine'].name is None and state.machine.name:
            group['machine'] = MachineRef(serial, state.machine.name)

        group['states'].append(state)

    return grouped


def _real_operators(state: StateEvent):
    for operator in state.operators:
        if operator.id != UNKNOWN_OPERATOR_ID:
            yield operator


def group_states_by_operator(states: Sequence[StateEvent]) -> Dict[int, Dict[str, Any]]:
    """
    Group states by operator id.

    A state with several operators is added to each operator's group. The
    placeholder operator id -1 is skipped.

    Returns:
        Dictionary of operator id -> {'operator': OperatorRef, 'states': [...]}
    """
    grouped: Dict[int, Dict[str, Any]] = {}
    for state in states:
        for operator in _real_operators(state):
            group = grouped.setdefault(operator.id, {'operator': operator, 'states': []})
            group['states'].append(state)
    return grouped


def group_states_by_operator_and_machine(
    states: Sequence[StateEvent]
) -> Dict[Tuple[int, int], Dict[str, Any]]:
    """
    Group states by (operator id, machine serial) pairs.

    Returns:
        Dictionary of (operator id, serial) -> {'operator': OperatorRef, 'machine_serial': int, 'states': [...]}
    """
    grouped: Dict[Tuple[int, int], Dict[str, Any]] = {}
    for state in states:
        serial = state.machine_serial
        if serial is None:
            continue
        for operator in _real_operators(state):
            group = grouped.setdefault(
                (operator.id, serial),
                {'operator': operator, 'machine_serial': serial, 'states': []}
            )
            group['states'].append(state)
    return grouped


def unique_machines(states: Sequence[StateEvent]) -> List[MachineRef]:
    """List the distinct machines seen in a state stream, in order of first appearance."""
    return [group['machine'] for group in group_states_by_machine(list(states)).values()]


def unique_operators(states: Sequence[StateEvent]) -> List[OperatorRef]:
    """List the distinct real operators seen in a state stream."""
    return [group['operator'] for group in group_states_by_operator(states).values()]
