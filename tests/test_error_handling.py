"""
Unit tests for API error classification.
"""

from __future__ import annotations

import pytest
from cassandra.cluster import NoHostAvailable
from pymongo.errors import ServerSelectionTimeoutError

from backend.api.error_handling import classify_backend_error, http_exception
from backend.core.exceptions import BackendNotConnectedError, UnsupportedOperationError


@pytest.mark.parametrize(
    "exc, code",
    [
        (NoHostAvailable("Unable to connect to any servers", {}), "CASSANDRA_UNAVAILABLE"),
        (ServerSelectionTimeoutError("localhost:27017: timed out"), "MONGODB_UNAVAILABLE"),
        (
            ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 26257)"),
            "BACKEND_CONNECTION_REFUSED",
        ),
        (BackendNotConnectedError("MongoDB"), "BACKEND_NOT_CONNECTED"),
    ],
)
def test_unreachable_backends_map_to_503(exc: BaseException, code: str) -> None:
    classified = classify_backend_error(exc)

    assert classified is not None
    assert classified.status_code == 503
    assert classified.code == code


def test_unsupported_operation_maps_to_400() -> None:
    classified = classify_backend_error(UnsupportedOperationError("redis", "write"))

    assert classified is not None
    assert classified.status_code == 400


def test_unknown_errors_are_not_classified() -> None:
    assert classify_backend_error(ValueError("bad value")) is None


def test_http_exception_payload() -> None:
    exc = http_exception("run all tests", NoHostAvailable("Unable to connect to any servers", {}))

    assert exc.status_code == 503
    assert exc.detail["code"] == "CASSANDRA_UNAVAILABLE"
    assert exc.detail["operation"] == "run all tests"
    assert "hint" in exc.detail


def test_http_exception_default_is_500() -> None:
    exc = http_exception("run all tests", KeyError("results"))

    assert exc.status_code == 500
    assert exc.detail == {
        "code": "INTERNAL_ERROR",
        "message": "run all tests failed.",
        "operation": "run all tests",
    }
