"""
Session Report Builders

Composes bookended sessions, extracted cycles and count events into the payloads
shown on the machine and operator dashboards:

1. Machine performance: runtime, downtime, output and OEE components
2. Machine cycle totals: strict-window running/paused/fault totals for every machine
3. Machine dashboard: session, performance, cycles, faults and item throughput
4. Operator dashboard: the same for one operator, plus completed operator cycles
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from core.calculations.oee import calculate_downtime, calculate_session_oee
from core.calculations.throughput import build_item_hourly_stack, build_item_summary, calculate_state_summary
from core.states.bookending import (
    EntityFilter,
    EventStore,
    bookend_machine_session,
    bookend_operator_session,
)
from core.states.cycles import (
    DEFAULT_MAX_OPERATOR_CYCLE,
    extract_completed_operator_cycles,
    extract_cycles,
    total_duration,
)
from core.states.faults import build_fault_data
from core.states.grouping import group_states_by_machine, unique_machines
from core.states.models import (
    ClampPolicy,
    CountEvent,
    CycleCategory,
    DurationBreakdown,
    Session,
    StateEvent,
)
from core.time_windows.models import DEFAULT_PADDING_MINUTES, QueryWindow
from utils.formatting import format_duration, to_milliseconds

logger = logging.getLogger(__name__)


# ============================================================
# PERFORMANCE
# ============================================================

def build_machine_performance(
    states: Sequence[StateEvent],
    valid_counts: Sequence[CountEvent],
    misfeed_counts: Sequence[CountEvent],
    start: datetime,
    end: datetime
) -> Dict[str, Any]:
    """
    Calculate runtime, downtime, output and OEE components over [start, end].

    Args:
        states: Bookended state events sorted ascending
        valid_counts: Valid count events in the window
        misfeed_counts: Misfeed count events in the window
        start: Window start (availability denominator starts here)
        end: Window end

    Returns:
        Dictionary with runtime, downtime, output and performance sections
    """
    running = extract_cycles(states, start, end, category=CycleCategory.RUNNING)
    runtime = total_duration(running)
    total_time = end - start
    downtime = calculate_downtime(total_time, runtime)

    metrics = calculate_session_oee(runtime, total_time, list(valid_counts), len(misfeed_counts))

    return {
        'runtime': {
            'total': to_milliseconds(runtime),
            'formatted': format_duration(runtime),
        },
        'downtime': {
            'total': to_milliseconds(downtime),
            'formatted': format_duration(downtime),
        },
        'output': {
            'total_count': len(valid_counts),
            'misfeed_count': len(misfeed_counts),
        },
        'performance': metrics.to_payload(),
    }


# ============================================================
# CYCLE TOTALS
# ============================================================

def summarize_machine_cycles(
    states: Sequence[StateEvent],
    start: datetime,
    end: datetime
) -> Dict[str, Any]:
    """
    Total running/paused/fault time of one machine using the strict clamp policy.

    Only cycles that start and end inside the window are counted, so the totals
    match the legacy per-machine cycle report.

    Returns:
        Dictionary keyed by category with total_ms, formatted (h/m/s) and cycles,
        plus the window's own formatted length
    """
    cycles = extract_cycles(states, start, end, policy=ClampPolicy.STRICT)

    summary = {}
    for category, category_cycles in cycles.items():
        total = total_duration(category_cycles)
        summary[category] = {
            'total_ms': to_milliseconds(total),
            'formatted': DurationBreakdown.from_timedelta(total).to_dict(),
            'cycles': [cycle.to_dict() for cycle in category_cycles],
        }

    summary['window'] = {
        'start': start.isoformat(),
        'end': end.isoformat(),
        'formatted': DurationBreakdown.from_timedelta(end - start).to_dict(),
    }
    return summary


def summarize_all_machine_cycles(
    store: EventStore,
    start: datetime,
    end: datetime,
    padding_minutes: float = DEFAULT_PADDING_MINUTES
) -> List[Dict[str, Any]]:
    """
    Cycle totals for every machine with states around [start, end].

    States are fetched over the window padded by padding_minutes on both sides so
    that transitions just outside the window are seen; cycles are still bounded by
    the unpadded window.

    Returns:
        List of {'machine', 'program_mode', 'cycles'} sorted by serial
    """
    window = QueryWindow(start, end)
    fetch_window = window.padded(padding_minutes)

    states = store.fetch_all_machine_states(fetch_window.start, fetch_window.end)
    grouped = group_states_by_machine(states)
    logger.info(f"Summarizing cycles for {len(grouped)} machines in {window}")

    results = []
    for serial in sorted(grouped):
        group = grouped[serial]
        machine_states = sorted(group['states'], key=lambda s: s.timestamp)
        results.append({
            'machine': group['machine'].to_dict(),
            'program_mode': group['program_mode'],
            'cycles': summarize_machine_cycles(machine_states, window.start, window.end),
        })
    return results


# ============================================================
# DASHBOARDS
# ============================================================

def _current_status(session: Session) -> Dict[str, Any]:
    states = session.states or session.source_states
    latest = states[-1] if states else None
    if latest is None:
        return {'code': 0, 'name': "Unknown"}
    return {'code': latest.status_code or 0, 'name': latest.status_name or "Unknown"}


def _split_counts(counts: Sequence[CountEvent]):
    valid = [c for c in counts if c.is_valid]
    misfeeds = [c for c in counts if c.misfeed]
    return valid, misfeeds


def _session_section(session: Session) -> Dict[str, Any]:
    return {
        'start': session.session_start.isoformat(),
        'end': session.session_end.isoformat(),
        'duration': DurationBreakdown.from_timedelta(session.duration).to_dict(),
    }


def _session_report(
    session: Session,
    counts: Sequence[CountEvent]
) -> Dict[str, Any]:
    """Sections shared by the machine and operator dashboards."""
    start, end = session.session_start, session.session_end
    states = session.source_states or session.states
    valid, misfeeds = _split_counts(counts)

    cycles = extract_cycles(states, start, end)

    return {
        'current_status': _current_status(session),
        'session': _session_section(session),
        'performance': build_machine_performance(states, valid, misfeeds, start, end),
        'state_summary': calculate_state_summary(cycles, start, end),
        'cycles': {category: [c.to_dict() for c in items] for category, items in cycles.items()},
        'fault_data': build_fault_data(states, start, end),
        'item_summary': build_item_summary(cycles[CycleCategory.RUNNING.value], valid),
        'item_hourly_stack': build_item_hourly_stack(valid, start),
    }


def build_machine_dashboard(
    store: EventStore,
    serial: int,
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None
) -> Optional[Dict[str, Any]]:
    """
    Build the dashboard payload for one machine.

    The requested window is bookended to the machine's true session; every section
    is computed over the session bounds.

    Args:
        store: Event store to read from
        serial: Machine serial
        start: Requested window start
        end: Requested window end (clamped to now)
        now: Current time override

    Returns:
        Dashboard payload, or None when the machine has no session in the window
    """
    session = bookend_machine_session(store, serial, start, end, now=now)
    if session is None:
        return None

    counts = store.fetch_counts(EntityFilter.machine(serial), session.session_start, session.session_end)
    report = _session_report(session, counts)

    machine_name = next(
        (s.machine.name for s in reversed(session.source_states) if s.machine and s.machine.name),
        "Unknown"
    )

    logger.info(f"✅ Built dashboard for machine {serial} ({len(counts)} counts)")
    return {'machine': {'serial': serial, 'name': machine_name}, **report}


def build_operator_dashboard(
    store: EventStore,
    operator_id: int,
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None,
    max_cycle_duration: timedelta = DEFAULT_MAX_OPERATOR_CYCLE
) -> Optional[Dict[str, Any]]:
    """
    Build the dashboard payload for one operator.

    Besides the shared sections, lists the operator's completed running cycles
    (closed by a pause or fault) and the machines the operator worked on.

    Returns:
        Dashboard payload, or None when the operator has no session in the window
    """
    session = bookend_operator_session(store, operator_id, start, end, now=now)
    if session is None:
        return None

    counts = store.fetch_counts(EntityFilter.operator(operator_id), session.session_start, session.session_end)
    report = _session_report(session, counts)

    operator_name = next(
        (op.name for s in session.source_states for op in s.operators if op.id == operator_id and op.name),
        "Unknown"
    )

    completed = extract_completed_operator_cycles(session.source_states, max_duration=max_cycle_duration)

    logger.info(
        f"✅ Built dashboard for operator {operator_id}: "
        f"{len(completed)} completed cycles, {len(counts)} counts"
    )

    return {
        'operator': {'id': operator_id, 'name': operator_name},
        'machines': [machine.to_dict() for machine in unique_machines(session.states)],
        'completed_cycles': [
            {
                'start': cycle.start.isoformat(),
                'end': cycle.end.isoformat(),
                'duration': to_milliseconds(cycle.duration),
                'machine_serial': cycle.start_state.machine_serial,
                'final_status': cycle.final_status,
            }
            for cycle in completed
        ],
        **report,
    }
