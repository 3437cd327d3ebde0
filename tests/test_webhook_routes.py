import json
import re
from unittest.mock import patch

import httpx

from app.services.webhook_service import WebhookService, verify_signature

WEBHOOK = {"name": "ATS sync", "url": "https://hooks.example.com/gradii", "events": ["candidate.created"]}


async def create_webhook(client, company, **overrides) -> dict:
    response = await client.post("/api/webhooks", headers=company["headers"], json={**WEBHOOK, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


async def test_secret_is_revealed_once(client, company):
    created = await create_webhook(client, company)
    assert re.fullmatch(r"[0-9a-f]{64}", created["secret"])
    assert created["events"] == ["candidate.created"]

    listed = (await client.get("/api/webhooks", headers=company["headers"])).json()
    assert listed[0]["secret"] == f"wh_{created['secret'][:8]}..."


async def test_unknown_event_is_rejected(client, company):
    response = await client.post("/api/webhooks", headers=company["headers"],
                                 json={**WEBHOOK, "events": ["candidate.exploded"]})
    assert response.status_code == 422


async def test_update_and_get(client, company):
    created = await create_webhook(client, company)
    response = await client.put(f"/api/webhooks/{created['id']}", headers=company["headers"], json={
        "events": ["interview.completed", "interview.scheduled"],
        "is_active": False,
    })
    assert response.status_code == 200

    fetched = (await client.get(f"/api/webhooks/{created['id']}", headers=company["headers"])).json()
    assert fetched["events"] == ["interview.completed", "interview.scheduled"]
    assert fetched["is_active"] is False
    assert fetched["name"] == "ATS sync"


async def test_test_delivery_is_signed_and_logged(client, company):
    created = await create_webhook(client, company)
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200, text="ok")

    service = WebhookService(client=httpx.Client(transport=httpx.MockTransport(handler)), sleep=lambda _: None)
    with patch("app.api.routes.webhook_routes.get_webhook_service", return_value=service):
        response = await client.post(f"/api/webhooks/{created['id']}/test", headers=company["headers"])

    assert response.json() == {"success": True, "status_code": 200, "error": None, "attempts": 1}
    body = received[0].content.decode()
    assert json.loads(body)["event"] == "webhook.test"
    assert verify_signature(body, received[0].headers["X-Webhook-Signature"], created["secret"])

    deliveries = (await client.get(f"/api/webhooks/{created['id']}/deliveries", headers=company["headers"])).json()
    assert len(deliveries) == 1
    assert deliveries[0]["success"] is True
    assert deliveries[0]["response_body"] == "ok"

    touched = (await client.get(f"/api/webhooks/{created['id']}", headers=company["headers"])).json()
    assert touched["last_triggered_at"] is not None


async def test_failed_test_delivery_is_reported(client, company):
    created = await create_webhook(client, company)
    service = WebhookService(
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(410))),
        sleep=lambda _: None,
    )
    with patch("app.api.routes.webhook_routes.get_webhook_service", return_value=service):
        result = (await client.post(f"/api/webhooks/{created['id']}/test", headers=company["headers"])).json()

    assert result["success"] is False
    assert result["error"] == "HTTP 410"
    assert result["attempts"] == 1


async def test_webhooks_are_company_scoped(client, company, register):
    created = await create_webhook(client, company)
    other = await register(email="owner@globex.io", company_name="Globex")

    assert (await client.get(f"/api/webhooks/{created['id']}", headers=other["headers"])).status_code == 404
    assert (await client.delete(f"/api/webhooks/{created['id']}", headers=other["headers"])).status_code == 404
    assert (await client.delete(f"/api/webhooks/{created['id']}", headers=company["headers"])).status_code == 200
    assert (await client.get("/api/webhooks", headers=company["headers"])).json() == []
