"""
Centralized exception handling for Railfare API.

This module provides:
- Base APIException class extending FastAPI's HTTPException.
- Pricing and routing exceptions with appropriate status codes and headers.
- Utility functions for formatting DB errors, logging, and routing exceptions.

Usage:
    - Raise specific exceptions in the engines or route handlers.
    - Use `handle()` to normalize raw exceptions (DB, Redis, Pydantic) into API-friendly responses.
"""

from decimal import Decimal
from traceback import format_exception
from logging import getLogger
from typing import Any, Optional
from fastapi import status, HTTPException
from sqlalchemy.exc import IntegrityError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from redis.exceptions import RedisError

from railfare.src.constants import MIN_STOPS_IN_ROUTE


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def formatIntegrityError(e: IntegrityError) -> str:
    """
    Format a database integrity error into a user-friendly message.

    PostgreSQL errors carry a diagnostic detail which is cleaned up,
    other backends fall back to the driver message.
    """
    diag = getattr(e.orig, "diag", None)
    if diag is None or diag.message_detail is None:
        return str(e.orig)
    errorMessage: str = diag.message_detail
    errorMessage = errorMessage.translate({ord(i): None for i in '\\"\\.\\(\\)'})
    errorMessage = errorMessage.replace("Key ", "For ")
    errorMessage = errorMessage.replace("=", " value ")
    return errorMessage


def formatKm(value: Optional[Decimal]) -> str:
    """Render a range boundary, an open upper bound is shown as infinity."""
    return "∞" if value is None else f"{value}"


def logException(e: Exception) -> None:
    """Log an exception with traceback using Uvicorn's error logger."""
    detail = str(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("detail", self.detail)
        kwargs.setdefault("headers", self.headers)
        super().__init__(*args, **kwargs)


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as API-friendly errors.

    Converts raw exceptions from DB, Pydantic, Redis, etc. into
    corresponding APIException subclasses.
    """
    if isinstance(e, IntegrityError):
        diag = getattr(e.orig, "diag", None)
        sqlstate = getattr(diag, "sqlstate", None)
        if sqlstate == UNIQUE_VIOLATION or "UNIQUE" in str(e.orig).upper():
            raise UniqueViolation(formatIntegrityError(e))
        if sqlstate == FOREIGN_KEY_VIOLATION or "FOREIGN KEY" in str(e.orig).upper():
            raise ForeignKeyViolation(formatIntegrityError(e))
    if isinstance(e, ValidationError):
        raise PydanticError(detail=e.errors())
    if isinstance(e, APIException):
        raise e
    if isinstance(e, RedisError):
        raise RedisDBError(detail=str(e))

    logException(e)
    raise e


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class PydanticError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "PydanticError"}

    def __init__(self, detail: Any):
        super().__init__(detail=detail)


class UniqueViolation(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "UniqueViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "ForeignKeyViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InvalidRequest(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidRequest"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "NotFound"}

    def __init__(self, orm_class, identifier: Any):
        detail = f"{orm_class.__name__} {identifier} does not exist"
        super().__init__(detail=detail)


class CoachNotInTrain(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "CoachNotInTrain"}

    def __init__(self, coach_id: int, train_id: int):
        detail = f"Coach {coach_id} is not attached to train {train_id}"
        super().__init__(detail=detail)


class StopNotOnRoute(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "StopNotOnRoute"}

    def __init__(self, station_id: int, train_id: int):
        detail = f"Station {station_id} is not on the route of train {train_id}"
        super().__init__(detail=detail)


class RouteNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "RouteNotFound"}

    def __init__(self, train_id: int):
        detail = f"Train {train_id} has no route configured"
        super().__init__(detail=detail)


class InsufficientStops(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "InsufficientStops"}

    def __init__(self, train_id: int, stop_count: int):
        detail = (
            f"Train {train_id} has {stop_count} stop(s), "
            f"at least {MIN_STOPS_IN_ROUTE} are required"
        )
        super().__init__(detail=detail)


class PricingNotConfigured(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "PricingNotConfigured"}

    def __init__(self, component: str):
        self.component = component
        detail = f"No {component} is configured for this journey"
        super().__init__(detail=detail)


class InvalidRange(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "InvalidRange"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class RangeOverlap(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "RangeOverlap"}

    def __init__(self, scope: Any, min_km: Decimal, max_km: Optional[Decimal]):
        self.scope = scope
        self.min_km = min_km
        self.max_km = max_km
        detail = (
            f"Range overlaps with existing range "
            f"[{formatKm(min_km)}, {formatKm(max_km)}) in scope {scope}"
        )
        super().__init__(detail=detail)


class LockAcquireTimeout(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "LockAcquireTimeout"}
    detail = "Lock acquisition timed out"


class RedisDBError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "RedisAPIError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)
