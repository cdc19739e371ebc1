"""Shared fixtures: an in-memory event store."""

from typing import List, Optional, Sequence

import pytest

from core.states.bookending import MACHINE, EntityFilter, EventStore
from core.states.models import CountEvent, StateEvent


class InMemoryEventStore(EventStore):
    """EventStore over plain lists, recording every call it receives."""

    def __init__(self, states: Sequence[StateEvent] = (), counts: Sequence[CountEvent] = ()):
        self.states = sorted(states, key=lambda s: s.timestamp)
        self.counts = sorted(counts, key=lambda c: c.timestamp)
        self.calls: List[tuple] = []

    def _entity_states(self, entity: EntityFilter) -> List[StateEvent]:
        return [s for s in self.states if entity.matches(s)]

    def fetch_states_in_range(self, entity, start, end):
        self.calls.append(('in_range', entity, start, end))
        return [s for s in self._entity_states(entity) if start <= s.timestamp <= end]

    def fetch_last_state_before(self, entity, start):
        self.calls.append(('before', entity, start))
        before = [s for s in self._entity_states(entity) if s.timestamp < start]
        return before[-1] if before else None

    def fetch_first_state_after(self, entity, end):
        self.calls.append(('after', entity, end))
        after = [s for s in self._entity_states(entity) if s.timestamp > end]
        return after[0] if after else None

    def fetch_all_machine_states(self, start, end):
        self.calls.append(('all_machines', start, end))
        return [s for s in self.states if s.machine_serial is not None and start <= s.timestamp <= end]

    def fetch_counts(self, entity, start, end, misfeed: Optional[bool] = None):
        self.calls.append(('counts', entity, start, end))
        if entity.kind == MACHINE:
            selected = [c for c in self.counts if c.machine and c.machine.serial == entity.value]
        else:
            selected = [c for c in self.counts if c.operator_id == entity.value]
        selected = [c for c in selected if start <= c.timestamp <= end]
        if misfeed is not None:
            selected = [c for c in selected if c.misfeed == misfeed]
        return selected


@pytest.fixture
def make_store():
    def _factory(states=(), counts=()):
        return InMemoryEventStore(states, counts)
    return _factory
