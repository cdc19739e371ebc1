"""
Session Bookending

Finds the true session boundaries for a machine or operator around a requested
[start, end] window. Three reads are issued against the event store:

1. in-range: events with start <= ts <= end, ascending
2. last-before: the most recent event with ts < start (anchors a cycle already running at start)
3. first-after: the earliest event with ts > end (closes a cycle still open at end)

The combined sequence is run through the cycle extractor (overlap policy, running
category); the session spans from the first running cycle's start to the last
running cycle's end.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from core.time_windows.filters import filter_events_between
from core.time_windows.models import QueryWindow
from .cycles import extract_cycles
from .errors import NoActiveSession, NoDataFound
from .models import ClampPolicy, CountEvent, CycleCategory, Session, StateEvent

logger = logging.getLogger(__name__)

MACHINE = "machine"
OPERATOR = "operator"


@dataclass(frozen=True)
class EntityFilter:
    """Identifies whose events to read: a machine serial or an operator id."""
    kind: str
    value: int

    def __post_init__(self):
        if self.kind not in (MACHINE, OPERATOR):
            raise ValueError(f"Unknown entity kind: '{self.kind}'. Must be one of: {[MACHINE, OPERATOR]}")

    @classmethod
    def machine(cls, serial: int) -> 'EntityFilter':
        return cls(MACHINE, int(serial))

    @classmethod
    def operator(cls, operator_id: int) -> 'EntityFilter':
        return cls(OPERATOR, int(operator_id))

    def matches(self, event: StateEvent) -> bool:
        """Check whether a state event belongs to this entity."""
        if self.kind == MACHINE:
            return event.machine_serial == self.value
        return event.has_operator(self.value)

    def __str__(self) -> str:
        return f"{self.kind} {self.value}"


class EventStore:
    """
    Read-only access to persisted state and count events.

    Implementations return StateEvents already normalised and sorted as documented
    on each method. See core.db.fetchers.PostgresEventStore.
    """

    def fetch_states_in_range(self, entity: EntityFilter, start: datetime, end: datetime) -> List[StateEvent]:
        """Events with start <= ts <= end, ascending."""
        raise NotImplementedError

    def fetch_last_state_before(self, entity: EntityFilter, start: datetime) -> Optional[StateEvent]:
        """The most recent event with ts < start, or None."""
        raise NotImplementedError

    def fetch_first_state_after(self, entity: EntityFilter, end: datetime) -> Optional[StateEvent]:
        """The earliest event with ts > end, or None."""
        raise NotImplementedError

    def fetch_all_machine_states(self, start: datetime, end: datetime) -> List[StateEvent]:
        """Events of every machine with start <= ts <= end, ascending."""
        raise NotImplementedError

    def fetch_counts(self, entity: EntityFilter, start: datetime, end: datetime) -> List[CountEvent]:
        """Count events with start <= ts <= end, ascending."""
        raise NotImplementedError


def fetch_bookend_states(
    store: EventStore,
    entity: EntityFilter,
    start: datetime,
    end: datetime
) -> Tuple[Optional[StateEvent], List[StateEvent], Optional[StateEvent]]:
    """
    Run the three bookending reads concurrently and wait for all of them.

    The reads cover disjoint time ranges, so no ordering between them is required.

    Returns:
        Tuple of (last_before, in_range, first_after)
    """
    with ThreadPoolExecutor(max_workers=3, thread_name_prefix="bookend") as executor:
        before_future = executor.submit(store.fetch_last_state_before, entity, start)
        in_range_future = executor.submit(store.fetch_states_in_range, entity, start, end)
        after_future = executor.submit(store.fetch_first_state_after, entity, end)

        return before_future.result(), in_range_future.result(), after_future.result()


def merge_bookended_states(
    before: Optional[StateEvent],
    in_range: Sequence[StateEvent],
    after: Optional[StateEvent]
) -> List[StateEvent]:
    """Concatenate before + in-range + after and re-sort ascending (stable)."""
    combined = ([before] if before else []) + list(in_range) + ([after] if after else [])
    return sorted(combined, key=lambda s: s.timestamp)


def resolve_session(
    states: List[StateEvent],
    window_start: datetime,
    window_end: datetime
) -> Session:
    """
    Derive the session from an already bookended, sorted state sequence.

    Raises:
        NoDataFound: If the sequence is empty
        NoActiveSession: If no running cycle overlaps the window
    """
    if not states:
        raise NoDataFound(f"No states between {window_start} and {window_end} or around them")

    running = extract_cycles(
        states, window_start, window_end,
        category=CycleCategory.RUNNING,
        policy=ClampPolicy.OVERLAP
    )
    if not running:
        raise NoActiveSession(f"No running cycle between {window_start} and {window_end}")

    session_start = running[0].start
    session_end = running[-1].end

    return Session(
        session_start=session_start,
        session_end=session_end,
        states=filter_events_between(states, session_start, session_end),
        source_states=list(states),
    )


def bookend(
    store: EventStore,
    entity: EntityFilter,
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None
) -> Optional[Session]:
    """
    Bookend a requested window for a machine or operator.

    Args:
        store: Event store to read from
        entity: Machine or operator filter
        start: Requested window start
        end: Requested window end; clamped to now if it lies in the future
        now: Current time override (defaults to the wall clock)

    Returns:
        Session, or None when there is nothing to report (no data, or no running cycle)

    Raises:
        ValueError: If end is before start
    """
    window = QueryWindow(start, end).clamped_to_now(now)

    before, in_range, after = fetch_bookend_states(store, entity, window.start, window.end)
    logger.info(
        f"Bookending {entity}: {len(in_range)} in-range states, "
        f"before={'yes' if before else 'no'}, after={'yes' if after else 'no'}"
    )

    try:
        if entity.kind == OPERATOR and not (before or in_range or after):
            # Historical guard of the operator path, kept alongside the shared check below
            raise NoDataFound(f"No states for {entity} around {window}")

        session = resolve_session(merge_bookended_states(before, in_range, after), window.start, window.end)
    except (NoDataFound, NoActiveSession) as e:
        logger.info(f"No session for {entity}: {e}")
        return None

    logger.info(
        f"Session for {entity}: {session.session_start.isoformat()} to "
        f"{session.session_end.isoformat()} ({len(session.states)} states)"
    )
    return session


def bookend_machine_session(
    store: EventStore,
    serial: int,
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None
) -> Optional[Session]:
    """Bookend a window for one machine serial."""
    return bookend(store, EntityFilter.machine(serial), start, end, now=now)


def bookend_operator_session(
    store: EventStore,
    operator_id: int,
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None
) -> Optional[Session]:
    """Bookend a window for one operator (matched against each event's operator list)."""
    return bookend(store, EntityFilter.operator(operator_id), start, end, now=now)
