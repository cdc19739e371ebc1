"""Small builders for state and count events used across the test suite."""

from datetime import datetime
from typing import Optional, Sequence

import pytz

from core.states.models import (
    CountEvent,
    ItemRef,
    MachineRef,
    OperatorRef,
    StateEvent,
)


def at(hour: int, minute: int = 0, second: int = 0, day: int = 15) -> datetime:
    """UTC timestamp on 2024-01-<day>."""
    return datetime(2024, 1, day, hour, minute, second, tzinfo=pytz.UTC)


def make_state(
    timestamp: datetime,
    code: Optional[int],
    name: Optional[str] = None,
    serial: Optional[int] = 67800,
    operator_ids: Sequence[int] = (),
    machine_name: str = "SPF1",
) -> StateEvent:
    return StateEvent(
        timestamp=timestamp,
        status_code=code,
        status_name=name,
        machine=MachineRef(serial, machine_name) if serial is not None else None,
        operators=tuple(OperatorRef(op, f"Operator {op}") for op in operator_ids),
    )


def make_count(
    timestamp: datetime,
    item_id: int = 1,
    item_name: str = "Towel",
    standard: float = 600,
    operator_id: Optional[int] = 117,
    serial: int = 67800,
    misfeed: bool = False,
) -> CountEvent:
    return CountEvent(
        timestamp=timestamp,
        machine=MachineRef(serial, "SPF1"),
        operator=OperatorRef(operator_id, f"Operator {operator_id}") if operator_id is not None else None,
        item=ItemRef(item_id, item_name, standard),
        misfeed=misfeed,
    )
