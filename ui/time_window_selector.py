"""
Time Window Selector UI Component

Sidebar controls for choosing the reporting window: quick presets (last N hours,
today so far) or manual start/end entry in a chosen timezone.
"""

import streamlit as st
import logging
import pytz
from datetime import datetime
from typing import Optional

from core.time_windows.models import QueryWindow
from utils.formatting import validate_time_range

logger = logging.getLogger(__name__)

TIMEZONE_OPTIONS = ["Europe/Copenhagen", "UTC", "America/New_York", "Asia/Tokyo"]
INPUT_FORMATS = ('%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M')


def parse_local_datetime(value: str, timezone: str) -> datetime:
    """
    Parse a 'YYYY-MM-DD HH:MM[:SS]' string in the given timezone.

    Raises:
        ValueError: If the string matches none of the accepted formats
    """
    tz = pytz.timezone(timezone)
    for fmt in INPUT_FORMATS:
        try:
            return tz.localize(datetime.strptime(value.strip(), fmt))
        except ValueError:
            continue
    raise ValueError(f"Invalid time '{value}'. Use YYYY-MM-DD HH:MM:SS or YYYY-MM-DD HH:MM")


def today_window(timezone: str, now: Optional[datetime] = None) -> QueryWindow:
    """Window from local midnight to now."""
    tz = pytz.timezone(timezone)
    now_local = (now or datetime.now(pytz.UTC)).astimezone(tz)
    midnight = tz.localize(now_local.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None))
    return QueryWindow(midnight, now_local)


def render_time_window_selector(
    default_timezone: str = "Europe/Copenhagen",
    default_hours: int = 8,
    key_prefix: str = "report_window"
) -> Optional[QueryWindow]:
    """
    Render UI for selecting the reporting window.

    Args:
        default_timezone: Timezone preselected for manual entry
        default_hours: Hours covered by the "last N hours" preset
        key_prefix: Unique key prefix for Streamlit widgets

    Returns:
        QueryWindow, or None while the manual input is invalid
    """
    timezone = st.selectbox(
        "Timezone:",
        options=TIMEZONE_OPTIONS,
        index=TIMEZONE_OPTIONS.index(default_timezone) if default_timezone in TIMEZONE_OPTIONS else 0,
        key=f"{key_prefix}_timezone",
        help="Timezone for the time inputs and hourly breakdown"
    )

    mode = st.radio(
        "Window:",
        options=[f"Last {default_hours} hours", "Today", "Custom"],
        key=f"{key_prefix}_mode",
        horizontal=True
    )

    if mode == "Today":
        return today_window(timezone)
    if mode != "Custom":
        return QueryWindow.last_hours(default_hours)

    now_tz = datetime.now(pytz.timezone(timezone))
    col1, col2 = st.columns(2)
    with col1:
        start_str = st.text_input(
            f"Start [{timezone}]:",
            value=now_tz.replace(hour=8, minute=0, second=0, microsecond=0).strftime('%Y-%m-%d %H:%M:%S'),
            key=f"{key_prefix}_start"
        )
    with col2:
        end_str = st.text_input(
            f"End [{timezone}]:",
            value=now_tz.replace(hour=16, minute=0, second=0, microsecond=0).strftime('%Y-%m-%d %H:%M:%S'),
            key=f"{key_prefix}_end"
        )

    try:
        start = parse_local_datetime(start_str, timezone)
        end = parse_local_datetime(end_str, timezone)
    except ValueError as e:
        st.error(f"❌ {e}")
        return None

    errors, warnings, is_valid = validate_time_range(start, end)
    for warning in warnings:
        st.warning(f"⚠️ {warning}")
    if not is_valid:
        for error in errors:
            st.error(f"❌ {error}")
        return None

    return QueryWindow(start, end)
