"""
Application configuration and constants for Railfare API Server.

This module centralizes environment-based configuration, batch and lock limits,
tariff constraints and other constants.

Configuration values can be overridden via environment variables.
"""

from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "Railfare API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@railfare.local")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "railfare")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "railfare-core-server")


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = int(environ.get("MUTEX_LOCK_TIMEOUT", 10))  # seconds
MUTEX_LOCK_MAX_WAIT_TIME = int(environ.get("MUTEX_LOCK_MAX_WAIT_TIME", 60))  # seconds


# ---------------------------------------------------------------------------
# Route distance batch constants
# ---------------------------------------------------------------------------
MIN_STOPS_IN_ROUTE = 2  # Minimum number of stops needed to derive a distance
BATCH_MAX_WORKERS = int(environ.get("BATCH_MAX_WORKERS", 4))  # Worker threads
# Overall deadline for one batch run (in seconds), unset means no deadline
BATCH_DEADLINE = (
    float(environ["BATCH_DEADLINE"]) if environ.get("BATCH_DEADLINE") else None
)


# ---------------------------------------------------------------------------
# Tariff constants
# ---------------------------------------------------------------------------
FARE_DECIMAL_PLACES = 2  # Money and distances are rounded to 2 places
MAX_TARIFF_KM = 100000  # Upper sanity bound for any range boundary (in km)
