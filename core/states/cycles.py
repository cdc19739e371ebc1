"""
Cycle Extraction

Converts an ordered stream of state events into contiguous running/paused/fault
intervals ("cycles") clamped to a query window.

Every category is extracted by the same walk (_iter_category_spans) using the
category's status predicate; the clamp policy decides how spans that touch the
window boundaries are treated:

- ClampPolicy.OVERLAP: any span overlapping the window is emitted, clamped to it.
  Used by bookending and dashboards.
- ClampPolicy.STRICT: a closed span is emitted only if its unclamped start and end
  both fall inside the window; a span still open at the end of the events is emitted
  up to window end only if it started inside the window. Used by the legacy
  per-machine cycle totals report.

Zero-length spans are never emitted under either policy.
"""

import logging
import pytz
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .models import (
    ClampPolicy,
    CompletedCycle,
    Cycle,
    CycleCategory,
    StateEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPERATOR_CYCLE = timedelta(hours=24)

Span = Tuple[StateEvent, datetime, datetime]


def _close_span(
    opened_at: datetime,
    closed_at: datetime,
    window_start: datetime,
    window_end: datetime,
    policy: ClampPolicy
) -> Optional[Tuple[datetime, datetime]]:
    """Bound a span closed by a transition; None if nothing remains inside the window."""
    if policy is ClampPolicy.STRICT:
        if opened_at >= window_start and closed_at <= window_end and opened_at < closed_at:
            return opened_at, closed_at
        return None

    start = max(opened_at, window_start)
    end = min(closed_at, window_end)
    if start < end:
        return start, end
    return None


def _close_open_span(
    opened_at: datetime,
    window_start: datetime,
    window_end: datetime,
    policy: ClampPolicy
) -> Optional[Tuple[datetime, datetime]]:
    """Bound a span still open after the last event; it runs to window end."""
    if policy is ClampPolicy.STRICT:
        if window_start <= opened_at < window_end:
            return opened_at, window_end
        return None

    if opened_at < window_end:
        start = max(opened_at, window_start)
        if start < window_end:
            return start, window_end
    return None


def _iter_category_spans(
    events: Sequence[StateEvent],
    category: CycleCategory,
    window_start: datetime,
    window_end: datetime,
    policy: ClampPolicy
) -> Iterator[Span]:
    """
    Walk events in order and yield (opening_event, start, end) for one category.

    Events without a timestamp or status code are skipped; ties are processed in
    list order.
    """
    opening_event: Optional[StateEvent] = None

    for event in events:
        if event.timestamp is None or event.status_code is None:
            continue

        if category.matches(event.status_code):
            if opening_event is None:
                opening_event = event
        elif opening_event is not None:
            bounds = _close_span(opening_event.timestamp, event.timestamp, window_start, window_end, policy)
            if bounds:
                yield (opening_event,) + bounds
            opening_event = None

    if opening_event is not None:
        bounds = _close_open_span(opening_event.timestamp, window_start, window_end, policy)
        if bounds:
            yield (opening_event,) + bounds


def _validate_window(window_start: datetime, window_end: datetime):
    if window_end < window_start:
        raise ValueError(
            f"Window end ({window_end}) must not be before window start ({window_start})"
        )


def extract_cycles(
    events: Sequence[StateEvent],
    window_start: datetime,
    window_end: datetime,
    category: Optional[Union[CycleCategory, str]] = None,
    policy: ClampPolicy = ClampPolicy.OVERLAP
) -> Union[Dict[str, List[Cycle]], List[Cycle]]:
    """
    Partition a chronological event stream into running, paused and fault cycles.

    Events must already be sorted ascending by timestamp; this function does not sort.

    Args:
        events: State events sorted ascending by timestamp
        window_start: Start of the clamp range
        window_end: End of the clamp range (callers clamp future ends to now)
        category: Optional single category to extract ('running', 'paused' or 'fault')
        policy: Clamp policy, OVERLAP by default

    Returns:
        Dict with 'running', 'paused' and 'fault' cycle lists, or a single list
        when category is given

    Raises:
        ValueError: If window_end is before window_start or the category is unknown

    Example:
        >>> cycles = extract_cycles(events, shift_start, shift_end)
        >>> runtime = total_duration(cycles['running'])
    """
    _validate_window(window_start, window_end)

    if category is not None:
        selected = CycleCategory(category)
        return [
            Cycle(start=start, end=end, category=selected)
            for _, start, end in _iter_category_spans(events, selected, window_start, window_end, policy)
        ]

    return {
        cat.value: [
            Cycle(start=start, end=end, category=cat)
            for _, start, end in _iter_category_spans(events, cat, window_start, window_end, policy)
        ]
        for cat in CycleCategory
    }


def iter_fault_spans(
    events: Sequence[StateEvent],
    window_start: datetime,
    window_end: datetime,
    policy: ClampPolicy = ClampPolicy.OVERLAP
) -> Iterator[Span]:
    """Yield (opening_event, start, end) for every fault span of the events."""
    _validate_window(window_start, window_end)
    return _iter_category_spans(events, CycleCategory.FAULT, window_start, window_end, policy)


def total_duration(cycles: Sequence[Cycle]) -> timedelta:
    """Sum the durations of a list of cycles."""
    return sum((cycle.duration for cycle in cycles), timedelta(0))


def extract_completed_operator_cycles(
    states: List[StateEvent],
    max_duration: timedelta = DEFAULT_MAX_OPERATOR_CYCLE
) -> List[CompletedCycle]:
    """
    Extract closed running cycles from an operator's state list.

    Operator state lists are assembled from several machines, so they are re-sorted
    here. A running cycle is closed by the next paused or fault event; a cycle still
    open after the last event is closed at that last event's timestamp. Cycles with a
    non-positive duration or longer than max_duration are dropped.

    Args:
        states: Operator state events in any order
        max_duration: Longest plausible cycle; longer ones are treated as data gaps

    Returns:
        List of CompletedCycle sorted by start
    """
    if not states:
        return []

    sorted_states = sorted(
        (s for s in states if s.timestamp is not None),
        key=lambda s: s.timestamp
    )

    completed = []
    current: Optional[dict] = None

    def _finish(end_state: StateEvent, final_status: Optional[int]):
        duration = end_state.timestamp - current['start_state'].timestamp
        if timedelta(0) < duration <= max_duration:
            completed.append(CompletedCycle(
                start=current['start_state'].timestamp,
                end=end_state.timestamp,
                start_state=current['start_state'],
                end_state=end_state,
                states=tuple(current['states']),
                final_status=final_status,
            ))

    for state in sorted_states:
        if state.status_code is None:
            continue

        if CycleCategory.RUNNING.matches(state.status_code):
            if current is None:
                current = {'start_state': state, 'states': [state]}
            else:
                current['states'].append(state)
        elif current is not None:
            _finish(state, state.status_code)
            current = None

    if current is not None:
        _finish(sorted_states[-1], None)

    logger.debug(f"Extracted {len(completed)} completed operator cycles from {len(states)} states")
    return completed


def calculate_hourly_state_durations(
    cycles: Sequence[Cycle],
    start: datetime,
    end: datetime,
    timezone: str = "UTC"
) -> List[float]:
    """
    Distribute cycle time over the 24 hours of the day.

    Each cycle is clamped to [start, end] and split at local hour boundaries;
    the seconds of each piece are added to its local hour-of-day bucket.

    Args:
        cycles: Cycles of one category
        start: Window start
        end: Window end
        timezone: IANA timezone used to determine the hour of day

    Returns:
        List of 24 floats, seconds per hour of day
    """
    tz = pytz.timezone(timezone)
    hourly_seconds = [0.0] * 24

    for cycle in cycles:
        clamped_start = max(cycle.start, start)
        clamped_end = min(cycle.end, end)

        current = clamped_start
        while current < clamped_end:
            local = current.astimezone(tz)
            hour_floor = tz.normalize(local.replace(minute=0, second=0, microsecond=0))
            next_hour = tz.normalize(hour_floor + timedelta(hours=1))
            segment_end = min(next_hour, clamped_end)

            hourly_seconds[local.hour] += (segment_end - current).total_seconds()
            current = segment_end

    return hourly_seconds
