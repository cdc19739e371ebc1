"""
Configuration Management

Simple utility for loading and validating environment configuration.
"""

import os
from typing import Optional
from dotenv import load_dotenv


def load_config(env_path: Optional[str] = None) -> bool:
    """
    Load environment configuration from .env file.

    Args:
        env_path: Optional path to .env file. If None, searches in current directory.

    Returns:
        bool: True if .env file was found and loaded, False otherwise
    """
    if env_path:
        return load_dotenv(env_path)
    return load_dotenv()


def get_database_config() -> dict:
    """
    Get the event store database configuration.

    Returns:
        dict: psycopg2 connection keyword arguments

    Raises:
        ValueError: If required configuration is missing
    """
    config = {
        "host": os.getenv("EVENTDB_HOST"),
        "port": os.getenv("EVENTDB_PORT", "5432"),
        "database": os.getenv("EVENTDB_NAME"),
        "user": os.getenv("EVENTDB_USER"),
        "password": os.getenv("EVENTDB_PASS"),
    }

    missing = [k for k, v in config.items() if not v]
    if missing:
        raise ValueError(
            f"Missing event store configuration: {missing}. "
            f"Please check your .env file."
        )

    return config


def get_app_config() -> dict:
    """
    Get application configuration settings.

    Returns:
        dict: Application settings
    """
    return {
        "timezone": os.getenv("TIMEZONE", "Europe/Copenhagen"),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "default_padding_minutes": int(os.getenv("DEFAULT_PADDING_MINUTES", "5")),
        "max_operator_cycle_hours": float(os.getenv("MAX_OPERATOR_CYCLE_HOURS", "24")),
        "default_time_window_hours": int(os.getenv("DEFAULT_TIME_WINDOW_HOURS", "8")),
    }


def validate_config() -> list:
    """
    Validate all required configuration is present.

    Returns:
        list: List of configuration problems (empty if all valid)
    """
    problems = []

    try:
        get_database_config()
    except ValueError as e:
        problems.append(f"EVENTDB: {str(e)}")

    try:
        get_app_config()
    except ValueError as e:
        problems.append(f"APP: {str(e)}")

    return problems
