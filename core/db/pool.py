"""
Database Connection Pool Manager

Provides thread-safe PostgreSQL connection pooling for the event store
(state_events and count_events tables) with health checks and a direct
connection fallback when the pool is exhausted.
"""

import threading
import time
import logging
from contextlib import contextmanager
from typing import Optional, Dict, Any

import psycopg2
from psycopg2 import pool

from utils.config import get_database_config


logger = logging.getLogger(__name__)


class EventStorePool:
    """Thread-safe connection pool for the event store database."""

    def __init__(self, db_config: Optional[Dict[str, Any]] = None):
        """
        Initialize the pool manager.

        Args:
            db_config: psycopg2 connection keyword arguments; read from the
                environment when omitted

        Raises:
            ValueError: If required configuration is missing
        """
        self.db_config = dict(db_config) if db_config else get_database_config()
        self.db_config.setdefault("sslmode", "disable")
        self.pool: Optional[pool.AbstractConnectionPool] = None
        self.pool_lock = threading.Lock()
        self.stats = {
            "connections_created": 0,
            "connections_used": 0,
            "connections_returned": 0,
            "pool_exhausted": 0,
            "fallback_connections": 0,
            "errors": 0
        }

    def initialize_pool(self, min_connections: int = 2, max_connections: int = 10) -> bool:
        """
        Initialize the connection pool.

        Up to three connections are used at once per bookending request, so
        max_connections bounds the number of concurrent requests.

        Returns:
            bool: True if pool was created successfully, False otherwise
        """
        try:
            with self.pool_lock:
                if self.pool is not None:
                    logger.info("Event store pool already initialized")
                    return True

                self.pool = psycopg2.pool.ThreadedConnectionPool(
                    min_connections,
                    max_connections,
                    **self.db_config
                )
                self.stats["connections_created"] = min_connections

            logger.info(
                f"Initialized event store pool with {min_connections}-{max_connections} connections"
            )
            return True

        except psycopg2.Error as e:
            logger.error(f"Failed to initialize event store pool: {e}")
            self.stats["errors"] += 1
            return False

    @contextmanager
    def get_connection(self):
        """
        Get a connection from the pool using context manager.

        Yields:
            psycopg2.connection: Database connection

        Example:
            >>> store_pool = EventStorePool()
            >>> with store_pool.get_connection() as conn:
            ...     cursor = conn.cursor()
            ...     cursor.execute("SELECT * FROM state_events LIMIT 1")
        """
        connection = None
        pooled = False
        start_time = time.time()

        try:
            if self.pool is not None:
                try:
                    connection = self.pool.getconn()
                    pooled = True
                    self.stats["connections_used"] += 1
                except pool.PoolError:
                    self.stats["pool_exhausted"] += 1
                    logger.warning("Event store pool exhausted, using direct connection")

            if connection is None:
                self.stats["fallback_connections"] += 1
                connection = psycopg2.connect(**self.db_config)

            yield connection

        except psycopg2.Error as e:
            self.stats["errors"] += 1
            elapsed = time.time() - start_time
            logger.error(f"Event store connection error after {elapsed:.2f}s: {e}")
            raise

        finally:
            if connection is not None:
                if pooled and self.pool is not None:
                    self.pool.putconn(connection)
                    self.stats["connections_returned"] += 1
                else:
                    connection.close()

    def close_pool(self):
        """Close all connections in the pool."""
        with self.pool_lock:
            if self.pool is not None:
                self.pool.closeall()
                self.pool = None
                logger.info("Closed event store connection pool")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get connection pool statistics.

        Returns:
            Dictionary with pool statistics
        """
        stats = self.stats.copy()
        stats["pool_initialized"] = self.pool is not None
        if self.pool is not None:
            stats["pool_type"] = type(self.pool).__name__
        return stats

    def health_check(self) -> bool:
        """
        Perform a health check on the pool.

        Returns:
            bool: True if the database answers, False otherwise
        """
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1")
                    return cursor.fetchone() is not None
        except psycopg2.Error as e:
            logger.error(f"Event store health check failed: {e}")
            return False


# Global pool instance
_event_store_pool: Optional[EventStorePool] = None
_pool_lock = threading.Lock()


def get_pool() -> EventStorePool:
    """
    Get or create the event store pool.

    Raises:
        ValueError: If the event store configuration is missing
    """
    global _event_store_pool

    with _pool_lock:
        if _event_store_pool is None:
            _event_store_pool = EventStorePool()
            _event_store_pool.initialize_pool()
        return _event_store_pool


def close_pool():
    """Close the event store pool if it was created."""
    global _event_store_pool

    with _pool_lock:
        if _event_store_pool is not None:
            _event_store_pool.close_pool()
            _event_store_pool = None


@contextmanager
def get_events_connection():
    """
    Get an event store connection using context manager.

    Yields:
        psycopg2.connection: Database connection
    """
    with get_pool().get_connection() as conn:
        yield conn


def get_pool_stats() -> Dict[str, Any]:
    """Statistics of the event store pool, empty if it was never created."""
    if _event_store_pool is None:
        return {}
    return _event_store_pool.get_stats()
