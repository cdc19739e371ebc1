"""
Data Fetching Module

Reads state and count events from the PostgreSQL event store and normalises
them into StateEvent / CountEvent records. PostgresEventStore is the production
implementation of the EventStore contract used by the session bookender.
"""

import logging
import pandas as pd
import psycopg2
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from core.states.bookending import EntityFilter, EventStore
from core.states.models import CountEvent, StateEvent, counts_from_records, events_from_records
from .pool import get_events_connection
from .queries import secure_query_builder

logger = logging.getLogger(__name__)


def fetch_dataframe(
    connection_factory: Callable,
    query: str,
    parameters: List[Any],
    description: str
) -> pd.DataFrame:
    """
    Execute a query and return its rows as a DataFrame.

    Args:
        connection_factory: Context manager factory yielding a psycopg2 connection
        query: Parameterized SQL
        parameters: Query parameters
        description: Short label for log messages

    Returns:
        DataFrame with column names from the cursor description (empty if no rows)

    Raises:
        psycopg2.Error: On any database failure (logged, then re-raised)
    """
    try:
        with connection_factory() as conn:
            with conn.cursor() as cursor:
                cursor.execute(query, parameters)
                data = cursor.fetchall()

                logger.info(f"PostgreSQL returned {len(data)} rows for {description}")
                if not data:
                    return pd.DataFrame()

                # Create DataFrame using column names from cursor description
                columns = [desc[0] for desc in cursor.description]
                return pd.DataFrame(data, columns=columns)

    except psycopg2.Error as e:
        logger.error(f"Error fetching {description}: {e}", exc_info=True)
        raise


def _to_records(df: pd.DataFrame) -> List[dict]:
    if df.empty:
        return []
    return df.to_dict('records')


class PostgresEventStore(EventStore):
    """
    Event store backed by the state_events and count_events tables.

    Methods are safe to call from several threads at once; each call checks out
    its own connection.
    """

    def __init__(self, connection_factory: Optional[Callable] = None):
        self.connection_factory = connection_factory or get_events_connection

    def _fetch_states(self, query_and_params: Tuple[str, List[Any]], description: str) -> List[StateEvent]:
        query, parameters = query_and_params
        df = fetch_dataframe(self.connection_factory, query, parameters, description)
        return events_from_records(_to_records(df))

    def fetch_states_in_range(self, entity: EntityFilter, start: datetime, end: datetime) -> List[StateEvent]:
        return self._fetch_states(
            secure_query_builder.build_states_in_range_query(entity, start, end),
            f"states of {entity} in range"
        )

    def fetch_last_state_before(self, entity: EntityFilter, start: datetime) -> Optional[StateEvent]:
        states = self._fetch_states(
            secure_query_builder.build_last_state_before_query(entity, start),
            f"last state of {entity} before {start.isoformat()}"
        )
        return states[0] if states else None

    def fetch_first_state_after(self, entity: EntityFilter, end: datetime) -> Optional[StateEvent]:
        states = self._fetch_states(
            secure_query_builder.build_first_state_after_query(entity, end),
            f"first state of {entity} after {end.isoformat()}"
        )
        return states[0] if states else None

    def fetch_all_machine_states(self, start: datetime, end: datetime) -> List[StateEvent]:
        return self._fetch_states(
            secure_query_builder.build_all_machine_states_query(start, end),
            "states of all machines"
        )

    def fetch_counts(
        self,
        entity: EntityFilter,
        start: datetime,
        end: datetime,
        misfeed: Optional[bool] = None
    ) -> List[CountEvent]:
        """
        Fetch count events for a machine or operator.

        Args:
            misfeed: Only misfeeds (True), only valid counts (False) or both (None)
        """
        query, parameters = secure_query_builder.build_counts_query(entity, start, end, misfeed=misfeed)
        df = fetch_dataframe(self.connection_factory, query, parameters, f"counts of {entity}")
        return counts_from_records(_to_records(df))
