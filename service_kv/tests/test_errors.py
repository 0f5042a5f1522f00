"""
Tests for the error taxonomy and its HTTP mapping.
"""

import json

import pytest

from shared.errors import (
    STATUS_BY_CODE,
    BackendError,
    KeyValueError,
    NotFound,
    Overloaded,
    PayloadTooLarge,
    TimedOut,
    Unauthorized,
    render_error,
    status_for,
)


@pytest.mark.parametrize(
    "error, status",
    [
        (NotFound("alpha"), 404),
        (BackendError("boom"), 500),
        (TimedOut(), 408),
        (Overloaded(), 503),
        (Unauthorized(), 401),
        (PayloadTooLarge(10), 413),
        (KeyValueError("unexpected"), 500),
    ],
)
def test_status_for_each_kind(error, status):
    assert status_for(error) == status


def test_every_kind_is_in_the_table():
    kinds = [NotFound, BackendError, TimedOut, Overloaded, Unauthorized, PayloadTooLarge, KeyValueError]
    assert {kind.code for kind in kinds} == set(STATUS_BY_CODE)


def test_render_not_found():
    response = render_error(NotFound("alpha"))

    assert response.status_code == 404
    body = json.loads(response.body)
    assert body["code"] == "NOT_FOUND"
    assert body["message"] == "Unable to find key 'alpha'."
    assert body["trace_id"] is None


def test_render_backend_error_message():
    body = json.loads(render_error(BackendError("connection reset")).body)

    assert body["message"] == "Unable to perform Redis operation: connection reset."


def test_render_unauthorized_sets_challenge():
    response = render_error(Unauthorized())

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_render_payload_too_large_details():
    body = json.loads(render_error(PayloadTooLarge(64)).body)

    assert body["details"] == {"limit": 64}
    assert body["message"] == "payload exceeds 64 bytes"
