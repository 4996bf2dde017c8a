"""
Centralized API error handling helpers.

Goal: report an unreachable backend (node down, wrong host/port, refused
connection) as a 503 with a hint, instead of a generic 500.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status

from backend.config import settings
from backend.core.exceptions import BackendNotConnectedError, UnsupportedOperationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiError:
    status_code: int
    code: str
    message: str
    hint: str | None = None
    debug: str | None = None


def _maybe_debug(exc: BaseException) -> str | None:
    if settings.APP_DEBUG:
        return str(exc)
    return None


def classify_backend_error(exc: BaseException) -> ApiError | None:
    """
    Classify driver failures into user-actionable errors.

    Uses string matching on the class name and message: the three drivers
    raise unrelated exception hierarchies, and some failures reach the API
    layer already wrapped.
    """

    name = exc.__class__.__name__
    lower = str(exc).lower()

    # cassandra.cluster.NoHostAvailable
    if name == "NoHostAvailable" or "unable to connect to any servers" in lower:
        return ApiError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="CASSANDRA_UNAVAILABLE",
            message="No Cassandra host is reachable.",
            hint="Check CASSANDRA_HOST / CASSANDRA_PORT and that the node is up, then retry.",
            debug=_maybe_debug(exc),
        )

    # pymongo.errors.ServerSelectionTimeoutError
    if name == "ServerSelectionTimeoutError" or "server selection timeout" in lower:
        return ApiError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="MONGODB_UNAVAILABLE",
            message="No MongoDB server is reachable.",
            hint="Check MONGODB_URI and that mongod is running, then retry.",
            debug=_maybe_debug(exc),
        )

    if isinstance(exc, OSError) and (
        "connect call failed" in lower or "connection refused" in lower
    ):
        return ApiError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="BACKEND_CONNECTION_REFUSED",
            message="Connection to the database was refused.",
            hint="Check the configured host/port and that the database is running, then retry.",
            debug=_maybe_debug(exc),
        )

    if isinstance(exc, BackendNotConnectedError):
        return ApiError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="BACKEND_NOT_CONNECTED",
            message=str(exc),
            debug=_maybe_debug(exc),
        )

    if isinstance(exc, UnsupportedOperationError):
        return ApiError(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="UNSUPPORTED_OPERATION",
            message=str(exc),
        )

    return None


def http_exception(operation: str, exc: BaseException) -> HTTPException:
    """
    Convert an exception into a consistent HTTPException payload.
    """
    # Log the full traceback to the server console for debugging
    logger.error(
        "API error during '%s': %s\n%s",
        operation,
        exc,
        traceback.format_exc(),
    )

    classified = classify_backend_error(exc)
    if classified is not None:
        detail: dict[str, Any] = {
            "code": classified.code,
            "message": classified.message,
            "operation": operation,
        }
        if classified.hint:
            detail["hint"] = classified.hint
        if classified.debug:
            detail["debug"] = classified.debug
        return HTTPException(status_code=classified.status_code, detail=detail)

    # Default: preserve a safe summary + optional debug.
    base_detail: dict[str, Any] = {
        "code": "INTERNAL_ERROR",
        "message": f"{operation} failed.",
        "operation": operation,
    }
    dbg = _maybe_debug(exc)
    if dbg:
        base_detail["debug"] = dbg
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=base_detail,
    )
