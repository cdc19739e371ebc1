"""
Formatting Utilities

Functions for parsing and formatting timestamps, breaking durations down for display,
and validating user-selected time ranges.
"""

import logging
import pandas as pd
import pytz
from datetime import datetime, timedelta
from dateutil import parser as dateutil_parser
from typing import Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

MILLISECONDS_IN_SECOND = 1000
SECONDS_IN_MINUTE = 60
SECONDS_IN_HOUR = 3600


def ensure_utc(value: datetime) -> datetime:
    """
    Return a timezone-aware datetime in UTC.

    Naive datetimes are assumed to already be UTC, the same convention the
    event store uses for its timestamp columns.
    """
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def parse_timestamp(value: Union[str, datetime, pd.Timestamp]) -> datetime:
    """
    Parse an ISO 8601 string, datetime or pandas Timestamp into an aware UTC datetime.

    Args:
        value: Timestamp in any of the supported representations

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the value is empty or cannot be parsed
    """
    if value is None or value is pd.NaT:
        raise ValueError("Timestamp is missing")

    if isinstance(value, (datetime, pd.Timestamp)):
        return ensure_utc(value)

    if isinstance(value, str):
        if not value.strip():
            raise ValueError("Timestamp is empty")
        try:
            return ensure_utc(dateutil_parser.isoparse(value))
        except (ValueError, OverflowError):
            # Fall back to the lenient parser for non-ISO inputs such as "2025-06-10 14:00"
            return ensure_utc(dateutil_parser.parse(value))

    raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")


def split_duration(duration: timedelta) -> Tuple[int, int, int]:
    """
    Split a duration into whole hours, minutes and seconds.

    Uses floor division on the total number of whole seconds; negative durations
    are treated as zero.
    """
    total_seconds = max(int(duration.total_seconds()), 0)
    hours = total_seconds // SECONDS_IN_HOUR
    minutes = (total_seconds % SECONDS_IN_HOUR) // SECONDS_IN_MINUTE
    seconds = total_seconds % SECONDS_IN_MINUTE
    return hours, minutes, seconds


def format_duration(duration: timedelta) -> Dict[str, int]:
    """
    Format a duration into hours and minutes for dashboard payloads.

    Args:
        duration: Duration to format

    Returns:
        Dictionary with 'hours' and 'minutes'
    """
    hours, minutes, _ = split_duration(duration)
    return {'hours': hours, 'minutes': minutes}


def format_duration_with_seconds(duration: timedelta) -> Dict[str, int]:
    """Format a duration into hours, minutes and seconds."""
    hours, minutes, seconds = split_duration(duration)
    return {'hours': hours, 'minutes': minutes, 'seconds': seconds}


def to_milliseconds(duration: timedelta) -> int:
    """Convert a duration to whole milliseconds."""
    return int(round(duration.total_seconds() * MILLISECONDS_IN_SECOND))


def format_percentage(ratio: float) -> str:
    """Render a 0.0-1.0 ratio as a percentage string such as '87.50%'."""
    return f"{ratio * 100:.2f}%"


def format_timestamp(iso_timestamp, timezone: str = "UTC") -> str:
    """
    Convert a timestamp to readable format (YYYY-MM-DD HH:MM:SS) in the given timezone.

    Args:
        iso_timestamp: ISO timestamp string, datetime object, or None
        timezone: IANA timezone name used for display

    Returns:
        Formatted timestamp string or empty string if invalid
    """
    if iso_timestamp is None or iso_timestamp is pd.NaT:
        return ""
    try:
        dt_obj = parse_timestamp(iso_timestamp)
        return dt_obj.astimezone(pytz.timezone(timezone)).strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, TypeError, pytz.UnknownTimeZoneError):
        return str(iso_timestamp) if iso_timestamp else ""


def convert_all_datetime_to_str(df: pd.DataFrame) -> pd.DataFrame:
    """
    Convert all datetime columns in a DataFrame to string format (YYYY-MM-DD HH:MM:SS).

    Args:
        df: DataFrame with datetime columns

    Returns:
        DataFrame with datetime columns converted to strings
    """
    df = df.copy()
    for col in df.columns:
        if pd.api.types.is_datetime64_any_dtype(df[col]):
            df[col] = df[col].dt.strftime("%Y-%m-%d %H:%M:%S")
    return df


def validate_time_range(start_dt: datetime, end_dt: datetime) -> Tuple[List[str], List[str], bool]:
    """
    Validate time range and return validation results with warnings/errors.

    Args:
        start_dt: Start datetime
        end_dt: End datetime

    Returns:
        Tuple of (validation_errors, validation_warnings, is_valid)
    """
    validation_errors = []
    validation_warnings = []

    start_dt_tz = ensure_utc(start_dt)
    end_dt_tz = ensure_utc(end_dt)

    if end_dt_tz <= start_dt_tz:
        validation_errors.append("End time must be after start time")
        return validation_errors, validation_warnings, False

    time_diff = end_dt_tz - start_dt_tz

    if time_diff.total_seconds() < 60:
        validation_warnings.append("⚠️ Very short time range (< 1 minute) - may not capture meaningful data")

    if time_diff.days > 90:
        validation_errors.append("Time range too large (> 90 days) - please select a smaller range")
        return validation_errors, validation_warnings, False

    if time_diff.days > 7:
        validation_warnings.append(f"⚠️ Large time range ({time_diff.days} days) - queries may take longer to complete")

    now_utc = datetime.now(pytz.UTC)

    if start_dt_tz > now_utc:
        validation_errors.append("Start time cannot be in the future")
        return validation_errors, validation_warnings, False

    if end_dt_tz > now_utc:
        validation_warnings.append("⚠️ End time is in the future - it will be clamped to the current time")

    return validation_errors, validation_warnings, True
