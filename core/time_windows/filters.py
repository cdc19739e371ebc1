"""
Time Window Filtering Utilities

Functions to filter state and count events by time window and to distribute
count events over the cycles they fall in.
"""

from datetime import datetime
from typing import List, Sequence, TypeVar

from core.states.models import CountEvent, Cycle

T = TypeVar('T')


def filter_events_between(events: Sequence[T], start: datetime, end: datetime) -> List[T]:
    """Filter events (StateEvent or CountEvent) to start <= timestamp <= end, keeping order."""
    return [event for event in events if start <= event.timestamp <= end]


def split_counts_by_cycles(
    counts: Sequence[CountEvent],
    cycles: Sequence[Cycle]
) -> List[List[CountEvent]]:
    """
    Assign count events to the cycles they fall in.

    Both inputs must be sorted ascending; counts are walked once. A count exactly on
    a shared boundary goes to the earlier cycle.

    Args:
        counts: Count events sorted by timestamp
        cycles: Non-overlapping cycles sorted by start

    Returns:
        One list of counts per cycle, in cycle order
    """
    buckets: List[List[CountEvent]] = [[] for _ in cycles]
    index = 0

    for bucket, cycle in zip(buckets, cycles):
        while index < len(counts) and counts[index].timestamp < cycle.start:
            index += 1
        while index < len(counts) and counts[index].timestamp <= cycle.end:
            bucket.append(counts[index])
            index += 1

    return buckets
