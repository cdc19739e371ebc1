"""
Machine & Operator Session Analytics - Main Application

Streamlit dashboard over the event store:
- Machine dashboard: bookended session, OEE, cycles, faults and item throughput
- Operator dashboard: the same for one operator, plus completed operator cycles
- Cycle totals: running/paused/faulted time for every machine in the window
"""

import streamlit as st
import logging
from datetime import timedelta

from utils.config import get_app_config, load_config, validate_config

# Load configuration
load_config()
app_config = get_app_config()

# Configure logging
logging.basicConfig(
    level=getattr(logging, app_config['log_level'].upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from core.analysis.sessions import (
    build_machine_dashboard,
    build_operator_dashboard,
    summarize_all_machine_cycles,
)
from core.calculations.throughput import calculate_hourly_state_breakdown
from core.db.fetchers import PostgresEventStore
from core.states.models import Cycle, CycleCategory
from ui.session_display import render_machine_cycle_totals, render_session_dashboard
from ui.time_window_selector import render_time_window_selector
from utils.formatting import parse_timestamp

# Streamlit page config
st.set_page_config(
    page_title="Machine Session Analytics",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Validate configuration
config_errors = validate_config()
if config_errors:
    st.error("❌ Configuration errors detected:")
    for error in config_errors:
        st.error(error)
    st.stop()

st.title("🏭 Machine Session Analytics")
st.markdown("**Running, paused and fault cycles, sessions and OEE per machine and operator**")

store = PostgresEventStore()


def _hourly_breakdown(payload: dict):
    """Rebuild cycle objects from the serialized payload for the hourly chart."""
    start = parse_timestamp(payload['session']['start'])
    end = parse_timestamp(payload['session']['end'])
    cycles = {
        category: [
            Cycle(parse_timestamp(c['start']), parse_timestamp(c['end']), CycleCategory(category))
            for c in items
        ]
        for category, items in payload['cycles'].items()
    }
    return calculate_hourly_state_breakdown(cycles, start, end, timezone=app_config['timezone'])


with st.sidebar:
    st.header("⏰ Reporting Window")
    window = render_time_window_selector(
        default_timezone=app_config['timezone'],
        default_hours=app_config['default_time_window_hours']
    )

    st.header("🔎 Report")
    report = st.radio("Report:", options=["Machine", "Operator", "All machines"], key="report_type")

    entity_id = None
    if report != "All machines":
        entity_id = st.number_input(
            "Machine serial:" if report == "Machine" else "Operator ID:",
            min_value=0,
            step=1,
            key="entity_id"
        )

if window is None:
    st.info("Configure a valid reporting window in the sidebar.")
    st.stop()

st.caption(f"Window: {window}")

if st.button("📊 Load Report", type="primary", use_container_width=True):
    with st.spinner("Reading events and building report..."):
        try:
            if report == "Machine":
                payload = build_machine_dashboard(store, int(entity_id), window.start, window.end)
                if payload is None:
                    st.warning(f"⚠️ Machine {int(entity_id)} has no running session in this window")
                else:
                    render_session_dashboard(
                        f"🛠️ {payload['machine']['name']} ({payload['machine']['serial']})",
                        payload,
                        _hourly_breakdown(payload),
                        timezone=app_config['timezone']
                    )

            elif report == "Operator":
                payload = build_operator_dashboard(
                    store, int(entity_id), window.start, window.end,
                    max_cycle_duration=timedelta(hours=app_config['max_operator_cycle_hours'])
                )
                if payload is None:
                    st.warning(f"⚠️ Operator {int(entity_id)} has no running session in this window")
                else:
                    render_session_dashboard(
                        f"👷 {payload['operator']['name']} ({payload['operator']['id']})",
                        payload,
                        _hourly_breakdown(payload),
                        timezone=app_config['timezone']
                    )

            else:
                results = summarize_all_machine_cycles(
                    store, window.start, window.end,
                    padding_minutes=app_config['default_padding_minutes']
                )
                st.subheader(f"📋 Cycle totals for {len(results)} machine(s)")
                render_machine_cycle_totals(results)

        except Exception as e:
            logger.error(f"❌ Failed to build {report} report: {e}", exc_info=True)
            st.error(f"❌ Failed to build report: {e}")
