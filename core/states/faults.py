"""
Fault Cycle Summarization

Specializes cycle extraction for fault intervals (status code > 1): each fault cycle
keeps the code and name of the event that opened it, and cycles are grouped by
(code, name) into duration summaries for the fault history views.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence

from .cycles import iter_fault_spans
from .models import (
    ClampPolicy,
    CycleCategory,
    FaultCycle,
    FaultSummary,
    StateEvent,
)

logger = logging.getLogger(__name__)

UNKNOWN_FAULT_NAME = "Unknown"


def extract_fault_cycles(
    events: Sequence[StateEvent],
    window_start: datetime,
    window_end: datetime,
    policy: ClampPolicy = ClampPolicy.OVERLAP
) -> Dict[str, List]:
    """
    Extract fault cycles and per-fault summaries from state events.

    Events without a timestamp or status code are dropped and the rest are
    re-sorted (stable, so ties keep their order) before extraction.

    Args:
        events: State events for one entity
        window_start: Start of the clamp range
        window_end: End of the clamp range
        policy: Clamp policy, OVERLAP by default

    Returns:
        Dictionary with:
        - fault_cycles: List[FaultCycle] in start order
        - fault_summaries: List[FaultSummary], one per (code, name) in order of first occurrence
    """
    usable = sorted(
        (e for e in events if e.timestamp is not None and e.status_code is not None),
        key=lambda e: e.timestamp
    )

    fault_cycles = [
        FaultCycle(
            start=start,
            end=end,
            category=CycleCategory.FAULT,
            code=opening_event.status_code,
            name=opening_event.status_name or UNKNOWN_FAULT_NAME,
        )
        for opening_event, start, end in iter_fault_spans(usable, window_start, window_end, policy)
    ]

    return {
        'fault_cycles': fault_cycles,
        'fault_summaries': summarize_fault_cycles(fault_cycles),
    }


def summarize_fault_cycles(fault_cycles: Sequence[FaultCycle]) -> List[FaultSummary]:
    """
    Group fault cycles by (code, name) and total their durations.

    Args:
        fault_cycles: Fault cycles to summarize

    Returns:
        List of FaultSummary in order of first occurrence
    """
    totals: Dict[tuple, Dict[str, Any]] = {}
    for cycle in fault_cycles:
        key = (cycle.code, cycle.name)
        entry = totals.setdefault(key, {'total': timedelta(0), 'count': 0})
        entry['total'] += cycle.duration
        entry['count'] += 1

    return [
        FaultSummary(code=code, name=name, total_duration=entry['total'], count=entry['count'])
        for (code, name), entry in totals.items()
    ]


def build_fault_data(
    states: Sequence[StateEvent],
    start: datetime,
    end: datetime
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Build the fault history section of a dashboard payload.

    Args:
        states: State events for one entity
        start: Window start
        end: Window end

    Returns:
        Dictionary with serialized 'fault_cycles' (sorted by start) and
        'fault_summaries' (with hours/minutes/seconds breakdowns)
    """
    if not states:
        return {'fault_cycles': [], 'fault_summaries': []}

    result = extract_fault_cycles(states, start, end)
    fault_cycles = sorted(result['fault_cycles'], key=lambda c: c.start)

    logger.info(
        f"Fault history: {len(fault_cycles)} cycles across "
        f"{len(result['fault_summaries'])} fault types"
    )

    return {
        'fault_cycles': [cycle.to_dict() for cycle in fault_cycles],
        'fault_summaries': [summary.to_dict() for summary in result['fault_summaries']],
    }
