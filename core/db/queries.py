"""
Secure Query Builder Module

Parameterized queries against the event store tables:
- state_events(ts, machine_serial, machine_name, status_code, status_name, program_mode, operators jsonb)
- count_events(ts, machine_serial, machine_name, operator_id, operator_name, item_id, item_name, item_standard, misfeed)

Entity filters and timestamps are validated before a query is built; values are
always passed as parameters, never formatted into the SQL text.
"""

import json
import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple

from core.states.bookending import MACHINE, OPERATOR, EntityFilter

logger = logging.getLogger(__name__)

STATE_COLUMNS = """
    ts,
    machine_serial,
    machine_name,
    status_code,
    status_name,
    program_mode,
    operators
"""

COUNT_COLUMNS = """
    ts,
    machine_serial,
    machine_name,
    operator_id,
    operator_name,
    item_id,
    item_name,
    item_standard,
    misfeed
"""


class SecureQueryBuilder:
    """Secure query builder with parameterized queries and input validation."""

    @staticmethod
    def validate_datetime(value: Any) -> bool:
        """
        Validate a query bound.

        Args:
            value: datetime or ISO 8601 string

        Returns:
            bool: True if the value is a timezone-aware datetime or a parseable ISO string
        """
        if isinstance(value, datetime):
            return value.tzinfo is not None
        try:
            datetime.fromisoformat(str(value).replace('Z', '+00:00'))
            return True
        except (ValueError, TypeError):
            return False

    @staticmethod
    def validate_entity(entity: EntityFilter) -> bool:
        """Entity kind must be known and its id a non-negative integer."""
        if not isinstance(entity, EntityFilter):
            return False
        if entity.kind not in (MACHINE, OPERATOR):
            return False
        return isinstance(entity.value, int) and not isinstance(entity.value, bool) and entity.value >= 0

    def _check_bounds(self, *bounds: Any):
        for bound in bounds:
            if not self.validate_datetime(bound):
                raise ValueError(f"Invalid timestamp for query: {bound!r}")

    def _state_entity_clause(self, entity: EntityFilter) -> Tuple[str, List[Any]]:
        if not self.validate_entity(entity):
            raise ValueError(f"Invalid entity filter: {entity!r}")
        if entity.kind == MACHINE:
            return "machine_serial = %s", [entity.value]
        return "operators @> %s::jsonb", [json.dumps([{"id": entity.value}])]

    def build_states_in_range_query(
        self,
        entity: EntityFilter,
        start: datetime,
        end: datetime
    ) -> Tuple[str, List[Any]]:
        """
        Build query for an entity's states with start <= ts <= end, ascending.

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)
        """
        self._check_bounds(start, end)
        clause, parameters = self._state_entity_clause(entity)

        query = f"""
            SELECT {STATE_COLUMNS}
            FROM state_events
            WHERE {clause}
            AND ts >= %s
            AND ts <= %s
            ORDER BY ts ASC;
        """

        logger.debug(f"Built in-range state query for {entity}")
        return query, parameters + [start, end]

    def build_last_state_before_query(self, entity: EntityFilter, start: datetime) -> Tuple[str, List[Any]]:
        """Build query for the most recent state with ts < start."""
        self._check_bounds(start)
        clause, parameters = self._state_entity_clause(entity)

        query = f"""
            SELECT {STATE_COLUMNS}
            FROM state_events
            WHERE {clause}
            AND ts < %s
            ORDER BY ts DESC
            LIMIT 1;
        """

        return query, parameters + [start]

    def build_first_state_after_query(self, entity: EntityFilter, end: datetime) -> Tuple[str, List[Any]]:
        """Build query for the earliest state with ts > end."""
        self._check_bounds(end)
        clause, parameters = self._state_entity_clause(entity)

        query = f"""
            SELECT {STATE_COLUMNS}
            FROM state_events
            WHERE {clause}
            AND ts > %s
            ORDER BY ts ASC
            LIMIT 1;
        """

        return query, parameters + [end]

    def build_all_machine_states_query(self, start: datetime, end: datetime) -> Tuple[str, List[Any]]:
        """
        Build query for the states of every machine in a time range.

        Ordered by machine then time so that grouping keeps per-machine order.
        """
        self._check_bounds(start, end)

        query = f"""
            SELECT {STATE_COLUMNS}
            FROM state_events
            WHERE machine_serial IS NOT NULL
            AND ts >= %s
            AND ts <= %s
            ORDER BY machine_serial ASC, ts ASC;
        """

        logger.debug(f"Built all-machine state query for {start} to {end}")
        return query, [start, end]

    def build_counts_query(
        self,
        entity: EntityFilter,
        start: datetime,
        end: datetime,
        misfeed: Optional[bool] = None
    ) -> Tuple[str, List[Any]]:
        """
        Build query for count events of a machine or operator.

        Args:
            entity: Machine or operator filter
            start: Range start (inclusive)
            end: Range end (inclusive)
            misfeed: Only misfeeds (True), only valid counts (False) or both (None)

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)
        """
        self._check_bounds(start, end)
        if not self.validate_entity(entity):
            raise ValueError(f"Invalid entity filter: {entity!r}")

        column = "machine_serial" if entity.kind == MACHINE else "operator_id"
        conditions = [f"{column} = %s", "ts >= %s", "ts <= %s"]
        parameters: List[Any] = [entity.value, start, end]

        if misfeed is not None:
            conditions.append("misfeed = %s")
            parameters.append(bool(misfeed))

        query = f"""
            SELECT {COUNT_COLUMNS}
            FROM count_events
            WHERE {' AND '.join(conditions)}
            ORDER BY ts ASC;
        """

        logger.debug(f"Built count query for {entity} (misfeed={misfeed})")
        return query, parameters


# Global instance for convenience
secure_query_builder = SecureQueryBuilder()
