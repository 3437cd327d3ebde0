"""
Unit tests for outbound webhook delivery.

HTTP goes through httpx.MockTransport and the backoff sleep is recorded
instead of slept, so retries run instantly.
"""

import json

import httpx
import pytest

from app.db.postgres import execute_raw_sql
from app.services.webhook_service import (
    WebhookService,
    build_payload,
    create_signature,
    mask_secret,
    parse_events,
    verify_signature,
)

SECRET = "a" * 64


def make_service(handler, sleeps=None, max_retries=3):
    sleeps = sleeps if sleeps is not None else []
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return WebhookService(client=client, max_retries=max_retries, sleep=sleeps.append)


def webhook(url="https://hooks.example.com/gradii"):
    return {"id": "wh-1", "url": url, "secret": SECRET, "company_id": "company-1"}


def deliveries():
    return execute_raw_sql(
        "SELECT attempt, response_status, success FROM webhook_deliveries WHERE webhook_id = 'wh-1' ORDER BY attempt"
    )


class TestSigning:

    def test_signature_round_trip(self):
        body = json.dumps({"event": "candidate.created"})
        signature = create_signature(body, SECRET)
        assert signature.startswith("sha256=")
        assert verify_signature(body, signature, SECRET)
        assert not verify_signature(body + " ", signature, SECRET)
        assert not verify_signature(body, "", SECRET)

    def test_mask_secret(self):
        assert mask_secret("0123456789abcdef") == "wh_01234567..."

    def test_parse_events(self):
        assert parse_events('["a", "b"]') == ["a", "b"]
        assert parse_events(["a"]) == ["a"]
        assert parse_events("not json") == []
        assert parse_events('{"a": 1}') == []


class TestDeliver:

    def test_success_sends_signed_body(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = request.content.decode()
            captured["headers"] = request.headers
            return httpx.Response(200, text="ok")

        service = make_service(handler)
        payload = build_payload("candidate.created", {"id": "c1"}, "company-1")
        result = service.deliver(webhook(), payload)

        assert result["success"] is True
        assert result["attempts"] == 1
        assert captured["headers"]["x-webhook-event"] == "candidate.created"
        assert verify_signature(captured["body"], captured["headers"]["x-webhook-signature"], SECRET)
        assert json.loads(captured["body"])["companyId"] == "company-1"

    def test_server_errors_are_retried_with_backoff(self):
        responses = iter([httpx.Response(503), httpx.Response(500), httpx.Response(200)])
        sleeps = []
        service = make_service(lambda request: next(responses), sleeps)

        result = service.deliver(webhook(), build_payload("interview.completed", {}, "company-1"))

        assert result["success"] is True
        assert result["attempts"] == 3
        assert sleeps == [2, 4]
        assert [d["response_status"] for d in deliveries()] == [503, 500, 200]

    def test_client_errors_are_not_retried(self):
        sleeps = []
        service = make_service(lambda request: httpx.Response(404), sleeps)

        result = service.deliver(webhook(), build_payload("interview.completed", {}, "company-1"))

        assert result["success"] is False
        assert result["attempts"] == 1
        assert result["error"] == "HTTP 404"
        assert sleeps == []

    def test_transport_errors_exhaust_retries(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        service = make_service(handler, max_retries=2)
        result = service.deliver(webhook(), build_payload("interview.completed", {}, "company-1"))

        assert result["success"] is False
        assert result["status_code"] is None
        assert result["attempts"] == 2
        assert "connection refused" in result["error"]
        assert len(deliveries()) == 2


def test_trigger_event_without_subscribers_sends_nothing():
    def handler(request):
        pytest.fail("no request expected")

    assert make_service(handler).trigger_event("company-1", "candidate.created", {}) == []
