"""Unit tests for client.py — requests.post is replaced by a fake."""
import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
import requests

from loaner import client
from loaner.client import ApiError, request_plan

PLAN_BODY = {
    "borrowerPayments": [
        {
            "date": "2018-01-01T00:00:00Z",
            "borrowerPaymentAmount": "1001.25",
            "interest": "1.67",
            "principal": "999.58",
            "initialOutstandingPrincipal": "2000",
            "remainingOutstandingPrincipal": "1000.42",
        },
        {
            "date": "2018-02-01T00:00:00Z",
            "borrowerPaymentAmount": "1001.25",
            "interest": "0.83",
            "principal": "1000.42",
            "initialOutstandingPrincipal": "1000.42",
            "remainingOutstandingPrincipal": "0",
        },
    ]
}


def _response(status_code: int, body) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = body if isinstance(body, bytes) else json.dumps(body).encode()
    return resp


@pytest.fixture
def fake_post(monkeypatch):
    """Install a fake requests.post; returns the list of recorded calls."""
    calls = []
    replies = []

    def post(url, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(client.requests, "post", post)
    return calls, replies


def _request(start=date(2018, 1, 1)):
    return request_plan("http://loaner.test/", Decimal("2000.0"), Decimal("1.0"), 2, start)


class TestRequestPlan:
    def test_payload(self, fake_post):
        calls, replies = fake_post
        replies.append(_response(200, PLAN_BODY))
        _request()
        (call,) = calls
        assert call["url"] == "http://loaner.test/loan-plan"
        assert call["timeout"] == client.CLIENT_TIMEOUT
        assert call["json"] == {
            "loanAmount": "2000.0",
            "nominalRate": "1.0",
            "duration": 2,
            "startDate": "2018-01-01T00:00:00+00:00",
        }

    def test_aware_start_date_keeps_its_offset(self, fake_post):
        calls, replies = fake_post
        replies.append(_response(200, PLAN_BODY))
        start = datetime.fromisoformat("2018-01-01T12:00:00+01:00")
        _request(start)
        assert calls[0]["json"]["startDate"] == "2018-01-01T12:00:00+01:00"

    def test_payments_are_parsed(self, fake_post):
        _, replies = fake_post
        replies.append(_response(200, PLAN_BODY))
        payments = _request()
        assert len(payments) == 2
        first, last = payments
        assert first.date == datetime(2018, 1, 1, tzinfo=timezone.utc)
        assert first.payment_amount == Decimal("1001.25")
        assert first.principal == Decimal("999.58")
        assert last.remaining_outstanding_principal == Decimal("0")

    def test_error_envelope_message(self, fake_post):
        _, replies = fake_post
        replies.append(_response(400, {"error": {"message": "invalid parameter start_date"}}))
        with pytest.raises(ApiError, match="start_date") as exc_info:
            _request()
        assert exc_info.value.status_code == 400

    def test_error_without_envelope(self, fake_post):
        _, replies = fake_post
        replies.append(_response(502, b"<html>bad gateway</html>"))
        with pytest.raises(ApiError, match="502") as exc_info:
            _request()
        assert exc_info.value.status_code == 502

    def test_connection_failure(self, fake_post):
        _, replies = fake_post
        replies.append(requests.ConnectionError("connection refused"))
        with pytest.raises(ApiError, match="connection refused") as exc_info:
            _request()
        assert exc_info.value.status_code is None

    @pytest.mark.parametrize("body", [
        b"not json",
        {"payments": []},
        {"borrowerPayments": [{"date": "2018-01-01T00:00:00Z"}]},
        {"borrowerPayments": [dict(PLAN_BODY["borrowerPayments"][0], interest="abc")]},
    ])
    def test_unparseable_response(self, fake_post, body):
        _, replies = fake_post
        replies.append(_response(200, body))
        with pytest.raises(ApiError, match="parse"):
            _request()
