"""
OEE Calculator for Machine and Operator Sessions

OEE = Availability × Efficiency × Throughput

- Availability: running time / total window time
- Efficiency: earned time credit (from item standards) / running time
- Throughput: valid pieces / (valid pieces + misfeeds)

All ratios are clamped to 0.0-1.0.
"""

import logging
import numpy as np
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Sequence

from core.states.models import CountEvent
from utils.formatting import format_percentage

logger = logging.getLogger(__name__)

PER_MINUTE_STANDARD_LIMIT = 60
SECONDS_PER_HOUR = 3600


@dataclass
class OEEMetrics:
    """Container for OEE calculation results"""
    availability: float  # 0.0 to 1.0
    efficiency: float    # 0.0 to 1.0
    throughput: float    # 0.0 to 1.0
    oee: float           # 0.0 to 1.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for easy display"""
        return {
            'availability': self.availability,
            'efficiency': self.efficiency,
            'throughput': self.throughput,
            'oee': self.oee
        }

    def to_percentage_dict(self) -> Dict[str, float]:
        """Convert to percentage values for display"""
        return {
            'availability': round(self.availability * 100, 2),
            'efficiency': round(self.efficiency * 100, 2),
            'throughput': round(self.throughput * 100, 2),
            'oee': round(self.oee * 100, 2)
        }

    def to_payload(self) -> Dict[str, Dict[str, Any]]:
        """Value plus rendered percentage string per metric"""
        return {
            name: {'value': value, 'percentage': format_percentage(value)}
            for name, value in self.to_dict().items()
        }


def _clamp_ratio(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


def calculate_downtime(total_time: timedelta, runtime: timedelta) -> timedelta:
    """Downtime is whatever part of the window was not running, never negative."""
    return max(total_time - runtime, timedelta(0))


def calculate_availability(runtime: timedelta, total_time: timedelta) -> float:
    """
    Calculate availability as runtime over total window time.

    Returns:
        Ratio clamped to 0.0-1.0; 0.0 for an empty window
    """
    total_seconds = total_time.total_seconds()
    if total_seconds <= 0:
        return 0.0
    return _clamp_ratio(runtime.total_seconds() / total_seconds)


def calculate_throughput(valid_count: int, misfeed_count: int) -> float:
    """
    Calculate throughput as the share of valid pieces in the total output.

    Args:
        valid_count: Number of valid (non-misfeed) pieces
        misfeed_count: Number of misfeeds

    Returns:
        Ratio clamped to 0.0-1.0; 0.0 when nothing was produced
    """
    total_output = valid_count + misfeed_count
    if total_output <= 0:
        return 0.0
    return _clamp_ratio(valid_count / total_output)


def standard_per_hour(standard: float) -> float:
    """Item standards below 60 are stored per minute; normalise to pieces per hour."""
    if standard < PER_MINUTE_STANDARD_LIMIT:
        return standard * 60
    return standard


def calculate_time_credits_by_item(counts: Sequence[CountEvent]) -> List[Dict[str, Any]]:
    """
    Calculate earned time credit per item.

    Time credit is the number of seconds the produced pieces are worth at the item's
    standard rate: count / (standard_per_hour / 3600).

    Args:
        counts: Count events (misfeeds should already be excluded)

    Returns:
        List of dicts with id, name, standard, count and time_credit (seconds, 2 decimals)
    """
    items: Dict[tuple, Dict[str, Any]] = {}
    for count in counts:
        if count.item is None:
            continue
        key = (count.item.id, count.item.name)
        entry = items.setdefault(key, {
            'id': count.item.id,
            'name': count.item.name,
            'standard': count.item.standard,
            'count': 0
        })
        entry['count'] += 1

    credits = []
    for entry in items.values():
        rate = standard_per_hour(entry['standard'])
        time_credit = entry['count'] / (rate / SECONDS_PER_HOUR) if rate > 0 else 0.0
        credits.append({**entry, 'time_credit': round(time_credit, 2)})

    return credits


def calculate_total_time_credit(counts: Sequence[CountEvent]) -> float:
    """Sum of per-item time credits in seconds."""
    return round(sum(item['time_credit'] for item in calculate_time_credits_by_item(counts)), 2)


def calculate_efficiency(runtime: timedelta, counts: Sequence[CountEvent]) -> float:
    """
    Calculate efficiency as earned time credit over running time.

    Args:
        runtime: Total running time
        counts: Valid count events produced during that time

    Returns:
        Ratio clamped to 0.0-1.0; 0.0 without runtime or counts
    """
    runtime_seconds = runtime.total_seconds()
    if runtime_seconds <= 0 or not counts:
        return 0.0
    return _clamp_ratio(calculate_total_time_credit(counts) / runtime_seconds)


def calculate_oee(availability: float, efficiency: float, throughput: float) -> float:
    """OEE is the product of its three components."""
    return availability * efficiency * throughput


def calculate_session_oee(
    runtime: timedelta,
    total_time: timedelta,
    valid_counts: Sequence[CountEvent],
    misfeed_count: int
) -> OEEMetrics:
    """
    Calculate all OEE components for one machine or operator session.

    Args:
        runtime: Sum of running cycle durations
        total_time: Length of the reporting window
        valid_counts: Valid count events within the window
        misfeed_count: Number of misfeeds within the window

    Returns:
        OEEMetrics object with all OEE components

    Examples:
        >>> metrics = calculate_session_oee(timedelta(hours=6), timedelta(hours=8), counts, 3)
        >>> print(f"OEE: {metrics.oee:.1%}")
    """
    availability = calculate_availability(runtime, total_time)
    efficiency = calculate_efficiency(runtime, valid_counts)
    throughput = calculate_throughput(len(valid_counts), misfeed_count)
    oee = calculate_oee(availability, efficiency, throughput)

    logger.debug(
        f"OEE: availability={availability:.3f}, efficiency={efficiency:.3f}, "
        f"throughput={throughput:.3f} -> {oee:.3f}"
    )

    return OEEMetrics(
        availability=availability,
        efficiency=efficiency,
        throughput=throughput,
        oee=oee
    )
