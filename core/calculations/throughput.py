"""
Throughput Calculation Functions

Per-item throughput over running cycles, hourly item count stacks, and hourly
running/paused/fault breakdowns of a reporting window.
"""

import pandas as pd
import numpy as np
import logging
import pytz
from typing import Any, Dict, List, Sequence
from datetime import datetime, timedelta

from core.states.models import CountEvent, Cycle, CycleCategory
from core.time_windows.filters import split_counts_by_cycles
from utils.formatting import format_duration, to_milliseconds
from .oee import standard_per_hour

logger = logging.getLogger(__name__)

DEFAULT_ITEM_STANDARD = 666
COUNT_COLUMNS = ['timestamp', 'operator_id', 'item_id', 'item_name', 'item_standard', 'misfeed']
CATEGORIES = [c.value for c in CycleCategory]


def counts_to_dataframe(counts: Sequence[CountEvent]) -> pd.DataFrame:
    """
    Flatten count events into a DataFrame.

    Returns:
        DataFrame with columns: timestamp, operator_id, item_id, item_name, item_standard, misfeed
    """
    rows = [
        {
            'timestamp': count.timestamp,
            'operator_id': count.operator_id,
            'item_id': count.item.id if count.item else None,
            'item_name': count.item.name if count.item else "Unknown",
            'item_standard': count.item.standard if count.item else 0.0,
            'misfeed': count.misfeed,
        }
        for count in counts
    ]
    return pd.DataFrame(rows, columns=COUNT_COLUMNS)


def _item_rates(count: int, worked: timedelta, standard: float) -> Dict[str, float]:
    hours = worked.total_seconds() / 3600
    pph = count / hours if hours > 0 else 0.0
    rate = standard_per_hour(standard)
    efficiency = pph / rate if rate > 0 else 0.0
    return {
        'pph': round(pph, 2),
        'efficiency': round(efficiency * 100, 2),
    }


def build_item_summary(
    running_cycles: Sequence[Cycle],
    counts: Sequence[CountEvent]
) -> Dict[str, Any]:
    """
    Summarize item throughput over running cycles.

    For each running cycle the counts inside it are grouped by item. Worked time of a
    cycle is its duration multiplied by the number of distinct operators that produced
    counts in it (at least 1); every item of the cycle is credited that worked time.

    Args:
        running_cycles: Running cycles sorted by start
        counts: Valid count events sorted by timestamp

    Returns:
        Dictionary with:
        - sessions: per-cycle item breakdown
        - machine_summary: totals, PPH, prorated standard, efficiency and per-item summaries
    """
    empty_summary = {
        'sessions': [],
        'machine_summary': {
            'total_count': 0,
            'worked_time_ms': 0,
            'worked_time_formatted': format_duration(timedelta(0)),
            'pph': 0,
            'prorated_standard': 0,
            'efficiency': 0,
            'item_summaries': {}
        }
    }
    if not running_cycles or not counts:
        return empty_summary

    item_totals: Dict[Any, Dict[str, Any]] = {}
    total_worked = timedelta(0)
    total_count = 0
    sessions = []

    for cycle, cycle_counts in zip(running_cycles, split_counts_by_cycles(counts, running_cycles)):
        if not cycle_counts:
            continue

        df = counts_to_dataframe(cycle_counts)
        operator_count = df['operator_id'].dropna().nunique()
        worked = cycle.duration * max(1, operator_count)
        total_worked += worked

        cycle_items = []
        for item_id, group in df.groupby('item_id', dropna=False, sort=True):
            key = None if pd.isna(item_id) else int(item_id)
            name = group['item_name'].iloc[0]
            standard = float(group['item_standard'].iloc[0])
            if standard <= 0:
                standard = DEFAULT_ITEM_STANDARD
            count_total = len(group)

            entry = item_totals.setdefault(key, {
                'name': name,
                'standard': standard,
                'count': 0,
                'worked': timedelta(0)
            })
            entry['count'] += count_total
            entry['worked'] += worked
            total_count += count_total

            cycle_items.append({
                'item_id': key,
                'name': name,
                'count_total': count_total,
                'standard': standard,
                **_item_rates(count_total, worked, standard)
            })

        sessions.append({
            'start': cycle.start.isoformat(),
            'end': cycle.end.isoformat(),
            'worked_time_ms': to_milliseconds(worked),
            'worked_time_formatted': format_duration(worked),
            'items': cycle_items
        })

    if not sessions:
        return empty_summary

    total_hours = total_worked.total_seconds() / 3600
    machine_pph = total_count / total_hours if total_hours > 0 else 0.0
    prorated_standard = sum(
        (item['count'] / total_count) * standard_per_hour(item['standard'])
        for item in item_totals.values()
    ) if total_count else 0.0
    machine_efficiency = machine_pph / prorated_standard if prorated_standard > 0 else 0.0

    item_summaries = {
        item_id: {
            'name': item['name'],
            'standard': item['standard'],
            'count_total': item['count'],
            'worked_time_formatted': format_duration(item['worked']),
            **_item_rates(item['count'], item['worked'], item['standard'])
        }
        for item_id, item in item_totals.items()
    }

    logger.info(f"Item summary: {total_count} pieces over {len(sessions)} running cycles")

    return {
        'sessions': sessions,
        'machine_summary': {
            'total_count': total_count,
            'worked_time_ms': to_milliseconds(total_worked),
            'worked_time_formatted': format_duration(total_worked),
            'pph': round(machine_pph, 2),
            'prorated_standard': round(prorated_standard, 2),
            'efficiency': round(machine_efficiency * 100, 2),
            'item_summaries': item_summaries
        }
    }


def build_item_hourly_stack(counts: Sequence[CountEvent], start: datetime) -> Dict[str, Any]:
    """
    Bucket counts per item into whole hours since the window start.

    Args:
        counts: Count events
        start: Window start; hour 0 is [start, start + 1h)

    Returns:
        Dictionary with title and data: {'hours': [0..N], 'items': {item_name: [count per hour]}}
    """
    df = counts_to_dataframe(counts)
    if df.empty:
        return {'title': "No data", 'data': {'hours': [], 'items': {}}}

    elapsed = pd.to_datetime(df['timestamp'], utc=True) - pd.Timestamp(start)
    df['hour_index'] = (elapsed.dt.total_seconds() // 3600).astype(int)
    df = df[df['hour_index'] >= 0]
    if df.empty:
        return {'title': "No data", 'data': {'hours': [], 'items': {}}}

    hours = list(range(int(df['hour_index'].max()) + 1))
    stacked = (
        df.groupby(['hour_index', 'item_name']).size()
        .unstack(fill_value=0)
        .reindex(hours, fill_value=0)
    )

    return {
        'title': "Item Stacked Count Chart",
        'data': {
            'hours': hours,
            'items': {str(name): [int(v) for v in stacked[name].tolist()] for name in stacked.columns}
        }
    }


def _overlap_seconds(cycles: Sequence[Cycle], start: datetime, end: datetime) -> float:
    seconds = 0.0
    for cycle in cycles:
        overlap_start = max(cycle.start, start)
        overlap_end = min(cycle.end, end)
        if overlap_end > overlap_start:
            seconds += (overlap_end - overlap_start).total_seconds()
    return seconds


def calculate_hourly_state_breakdown(
    cycles: Dict[str, List[Cycle]],
    start_ts: datetime,
    end_ts: datetime,
    timezone: str = "UTC"
) -> pd.DataFrame:
    """
    Split running/paused/fault cycles into hourly buckets.

    Buckets are aligned to local clock hours; the first and last bucket are trimmed to
    the window. Time not covered by any cycle is reported as unrecorded.

    Args:
        cycles: Output of extract_cycles (keys 'running', 'paused', 'fault')
        start_ts: Start of the analysis window
        end_ts: End of the analysis window
        timezone: IANA timezone for hour alignment

    Returns:
        DataFrame with columns:
        - hour_start, hour_end: bucket bounds (local time)
        - running_seconds, paused_seconds, fault_seconds, unrecorded_seconds, total_seconds
        - running_percent, paused_percent, fault_percent, unrecorded_percent
    """
    if end_ts <= start_ts:
        logger.warning("Empty window provided for hourly breakdown")
        return pd.DataFrame()

    tz = pytz.timezone(timezone)
    rows = []
    current_hour = tz.normalize(start_ts.astimezone(tz).replace(minute=0, second=0, microsecond=0))

    while current_hour < end_ts:
        hour_end = tz.normalize(current_hour + timedelta(hours=1))
        bucket_start = max(current_hour, start_ts)
        bucket_end = min(hour_end, end_ts)

        row = {
            'hour_start': current_hour,
            'hour_end': hour_end,
            'total_seconds': (bucket_end - bucket_start).total_seconds()
        }
        for category in CATEGORIES:
            row[f'{category}_seconds'] = _overlap_seconds(cycles.get(category, []), bucket_start, bucket_end)
        rows.append(row)

        current_hour = hour_end

    df = pd.DataFrame(rows)
    recorded = df[[f'{c}_seconds' for c in CATEGORIES]].sum(axis=1)
    df['unrecorded_seconds'] = np.maximum(df['total_seconds'] - recorded, 0.0)

    for column in CATEGORIES + ['unrecorded']:
        df[f'{column}_percent'] = np.where(
            df['total_seconds'] > 0,
            df[f'{column}_seconds'] / df['total_seconds'] * 100,
            0.0
        )

    logger.info(f"Calculated hourly breakdown: {len(df)} hours")
    return df


def calculate_state_summary(
    cycles: Dict[str, List[Cycle]],
    start_ts: datetime,
    end_ts: datetime
) -> Dict[str, float]:
    """
    Sum up total time in each category over the full window.

    Returns:
        Dictionary with <category>_seconds and <category>_percent for running, paused,
        fault and unrecorded, plus window_seconds
    """
    window_seconds = max((end_ts - start_ts).total_seconds(), 0.0)
    summary = {'window_seconds': window_seconds}

    recorded = 0.0
    for category in CATEGORIES:
        seconds = _overlap_seconds(cycles.get(category, []), start_ts, end_ts)
        summary[f'{category}_seconds'] = seconds
        recorded += seconds
    summary['unrecorded_seconds'] = max(window_seconds - recorded, 0.0)

    for column in CATEGORIES + ['unrecorded']:
        seconds = summary[f'{column}_seconds']
        summary[f'{column}_percent'] = (seconds / window_seconds * 100) if window_seconds > 0 else 0.0

    return summary
