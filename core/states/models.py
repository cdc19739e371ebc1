"""
State Event and Cycle Models

Data structures for machine/operator state streams and the intervals derived from them.

Status code convention:
- 1: running
- 0: paused
- > 1: fault/stop condition (the code and its name identify the fault)

Events are normalised once at the storage boundary (StateEvent.from_record); everything
downstream works with these immutable records instead of probing raw documents.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from utils.formatting import (
    format_duration_with_seconds,
    parse_timestamp,
    split_duration,
    to_milliseconds,
)
from .errors import MalformedEvent

logger = logging.getLogger(__name__)

UNKNOWN_OPERATOR_ID = -1


class CycleCategory(str, Enum):
    """Category of a derived cycle, each with its own status code predicate."""
    RUNNING = "running"
    PAUSED = "paused"
    FAULT = "fault"

    def matches(self, status_code: Optional[int]) -> bool:
        """Check whether a status code belongs to this category (None never matches)."""
        if status_code is None:
            return False
        if self is CycleCategory.RUNNING:
            return status_code == 1
        if self is CycleCategory.PAUSED:
            return status_code == 0
        return status_code > 1

    @classmethod
    def for_status(cls, status_code: Optional[int]) -> Optional['CycleCategory']:
        """Return the single category a status code maps to, or None if it is missing."""
        for category in cls:
            if category.matches(status_code):
                return category
        return None


class ClampPolicy(str, Enum):
    """
    How cycles are bounded by the query window.

    OVERLAP: emit any cycle overlapping the window, clamped to it (sessions, dashboards).
    STRICT: emit only cycles whose unclamped start and end fall inside the window
            (legacy state-cycle reports).
    """
    OVERLAP = "overlap"
    STRICT = "strict"


@dataclass(frozen=True)
class MachineRef:
    """Machine identity carried by an event."""
    serial: Optional[int]
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'serial': self.serial, 'name': self.name}


@dataclass(frozen=True)
class OperatorRef:
    """Operator active on an entity at the time of an event."""
    id: int
    name: Optional[str] = None
    station: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'station': self.station}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value) == 'NaT'


def _coerce_int(value: Any) -> Optional[int]:
    """Convert DB/DataFrame values (int, integral float, numeric string) to int."""
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _coerce_str(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    return str(value)


def _parse_operators(raw: Any) -> Tuple[OperatorRef, ...]:
    if _is_missing(raw):
        return ()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return ()
    if not isinstance(raw, (list, tuple)):
        return ()

    operators = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        operator_id = _coerce_int(entry.get('id'))
        if operator_id is None:
            continue
        operators.append(OperatorRef(
            id=operator_id,
            name=_coerce_str(entry.get('name')),
            station=_coerce_int(entry.get('station')),
        ))
    return tuple(operators)


@dataclass(frozen=True)
class StateEvent:
    """
    A point-in-time observation of an entity's operating status.

    status_code is Optional so that partially populated events built in code are
    tolerated; such events are treated as no-op transitions by the cycle extractor.
    """
    timestamp: datetime
    status_code: Optional[int]
    status_name: Optional[str] = None
    machine: Optional[MachineRef] = None
    operators: Tuple[OperatorRef, ...] = ()
    program_mode: Optional[str] = None

    @property
    def category(self) -> Optional[CycleCategory]:
        return CycleCategory.for_status(self.status_code)

    @property
    def machine_serial(self) -> Optional[int]:
        return self.machine.serial if self.machine else None

    def has_operator(self, operator_id: int) -> bool:
        """Check if the operator is among the operators active at this event."""
        return any(op.id == operator_id for op in self.operators)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'StateEvent':
        """
        Build a StateEvent from a stored record.

        Accepts both the flat row shape of the state_events table
        (ts, status_code, status_name, machine_serial, machine_name, program_mode, operators)
        and the nested document shape (timestamp, status.code, status.name, machine.serial, ...).

        Args:
            record: Row or document dictionary

        Returns:
            Normalised StateEvent

        Raises:
            MalformedEvent: If the timestamp or status code is missing or unusable
        """
        raw_timestamp = record.get('ts', record.get('timestamp'))
        if _is_missing(raw_timestamp):
            raise MalformedEvent(f"State record has no timestamp: {record!r}")
        try:
            timestamp = parse_timestamp(raw_timestamp)
        except (ValueError, TypeError) as e:
            raise MalformedEvent(f"State record has an invalid timestamp {raw_timestamp!r}: {e}")

        status = record.get('status') if isinstance(record.get('status'), dict) else {}
        status_code = _coerce_int(record.get('status_code', status.get('code')))
        if status_code is None:
            raise MalformedEvent(f"State record at {timestamp.isoformat()} has no status code")
        status_name = _coerce_str(record.get('status_name', status.get('name')))

        machine_doc = record.get('machine') if isinstance(record.get('machine'), dict) else {}
        serial = _coerce_int(record.get('machine_serial', machine_doc.get('serial')))
        machine_name = _coerce_str(record.get('machine_name', machine_doc.get('name')))
        machine = MachineRef(serial, machine_name) if serial is not None or machine_name else None

        program_doc = record.get('program') if isinstance(record.get('program'), dict) else {}
        program_mode = _coerce_str(record.get('program_mode', program_doc.get('mode')))

        return cls(
            timestamp=timestamp,
            status_code=status_code,
            status_name=status_name,
            machine=machine,
            operators=_parse_operators(record.get('operators')),
            program_mode=program_mode,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'status': {'code': self.status_code, 'name': self.status_name},
            'machine': self.machine.to_dict() if self.machine else None,
            'operators': [op.to_dict() for op in self.operators],
            'program_mode': self.program_mode,
        }


def events_from_records(records: Iterable[Dict[str, Any]]) -> List[StateEvent]:
    """
    Normalise stored records into StateEvents, skipping malformed ones.

    Args:
        records: Iterable of row/document dictionaries

    Returns:
        List of StateEvents in the order the records were given
    """
    events = []
    skipped = 0
    for record in records:
        try:
            events.append(StateEvent.from_record(record))
        except MalformedEvent as e:
            skipped += 1
            logger.warning(f"Skipping malformed state record: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} malformed state record(s) out of {skipped + len(events)}")
    return events


@dataclass(frozen=True)
class DurationBreakdown:
    """Whole hours/minutes/seconds of a duration (floor division)."""
    hours: int
    minutes: int
    seconds: int

    @classmethod
    def from_timedelta(cls, duration: timedelta) -> 'DurationBreakdown':
        return cls(*split_duration(duration))

    def to_dict(self) -> Dict[str, int]:
        return {'hours': self.hours, 'minutes': self.minutes, 'seconds': self.seconds}


@dataclass(frozen=True)
class Cycle:
    """A maximal contiguous span during which an entity stayed in one category."""
    start: datetime
    end: datetime
    category: CycleCategory

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_ms(self) -> int:
        return to_milliseconds(self.duration)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'duration': self.duration_ms,
        }


@dataclass(frozen=True)
class FaultCycle(Cycle):
    """A fault cycle carrying the code and name of the event that opened it."""
    code: int = 0
    name: str = "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({'fault_code': self.code, 'fault_type': self.name})
        return payload


@dataclass(frozen=True)
class FaultSummary:
    """Aggregate of fault cycles sharing the same (code, name)."""
    code: int
    name: str
    total_duration: timedelta
    count: int

    @property
    def formatted(self) -> DurationBreakdown:
        return DurationBreakdown.from_timedelta(self.total_duration)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fault_code': self.code,
            'fault_type': self.name,
            'total_duration': to_milliseconds(self.total_duration),
            'count': self.count,
            'formatted': self.formatted.to_dict(),
        }


@dataclass(frozen=True)
class CompletedCycle:
    """A closed running cycle with the events that opened and closed it."""
    start: datetime
    end: datetime
    start_state: StateEvent
    end_state: StateEvent
    states: Tuple[StateEvent, ...]
    final_status: Optional[int] = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass
class Session:
    """
    Result of bookending: the true running-bounded session for an entity.

    states holds the events inside [session_start, session_end]; source_states keeps
    the full bookended sequence (including the bracketing events outside the window)
    so that report builders can re-run cycle extraction over the session.
    """
    session_start: datetime
    session_end: datetime
    states: List[StateEvent]
    source_states: List[StateEvent] = field(default_factory=list)

    @property
    def duration(self) -> timedelta:
        return self.session_end - self.session_start

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_start': self.session_start.isoformat(),
            'session_end': self.session_end.isoformat(),
            'duration': format_duration_with_seconds(self.duration),
            'states': [state.to_dict() for state in self.states],
        }


# ============================================================
# COUNT EVENTS
# ============================================================

@dataclass(frozen=True)
class ItemRef:
    """Item produced by a count event; standard is pieces per hour (or per minute when < 60)."""
    id: Optional[int]
    name: str = "Unknown"
    standard: float = 0.0


@dataclass(frozen=True)
class CountEvent:
    """A single produced piece (or misfeed) recorded on a machine."""
    timestamp: datetime
    machine: Optional[MachineRef] = None
    operator: Optional[OperatorRef] = None
    item: Optional[ItemRef] = None
    misfeed: bool = False

    @property
    def operator_id(self) -> Optional[int]:
        return self.operator.id if self.operator else None

    @property
    def is_valid(self) -> bool:
        """A valid count is not a misfeed and has a real operator."""
        return not self.misfeed and self.operator_id not in (None, UNKNOWN_OPERATOR_ID)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'CountEvent':
        """
        Build a CountEvent from a count_events row.

        Raises:
            MalformedEvent: If the timestamp is missing or unusable
        """
        raw_timestamp = record.get('ts', record.get('timestamp'))
        if _is_missing(raw_timestamp):
            raise MalformedEvent(f"Count record has no timestamp: {record!r}")
        try:
            timestamp = parse_timestamp(raw_timestamp)
        except (ValueError, TypeError) as e:
            raise MalformedEvent(f"Count record has an invalid timestamp {raw_timestamp!r}: {e}")

        serial = _coerce_int(record.get('machine_serial'))
        operator_id = _coerce_int(record.get('operator_id'))
        item_id = _coerce_int(record.get('item_id'))
        raw_standard = record.get('item_standard')
        standard = 0.0 if _is_missing(raw_standard) else float(raw_standard)

        return cls(
            timestamp=timestamp,
            machine=MachineRef(serial, _coerce_str(record.get('machine_name'))) if serial is not None else None,
            operator=OperatorRef(operator_id, _coerce_str(record.get('operator_name'))) if operator_id is not None else None,
            item=ItemRef(item_id, _coerce_str(record.get('item_name')) or "Unknown", standard) if item_id is not None else None,
            misfeed=bool(record.get('misfeed')) if not _is_missing(record.get('misfeed')) else False,
        )


def counts_from_records(records: Iterable[Dict[str, Any]]) -> List[CountEvent]:
    """Normalise count rows, skipping malformed ones."""
    counts = []
    for record in records:
        try:
            counts.append(CountEvent.from_record(record))
        except MalformedEvent as e:
            logger.warning(f"Skipping malformed count record: {e}")
    return counts
