"""
Webhook Service - outbound event delivery to company endpoints.

Every delivery is a JSON POST of {event, timestamp, data, companyId}
signed with HMAC-SHA256 over the exact body bytes. Transport errors and
5xx responses are retried with 2^attempt second backoff; 4xx responses
are final. Each HTTP attempt is recorded in webhook_deliveries.
"""

import hashlib
import hmac
import json
import secrets
import time
import uuid
from datetime import datetime
from typing import List, Optional

import httpx
from sqlalchemy import text

from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql
from app.db.schema import new_id

logger = get_logger(__name__)

USER_AGENT = "Gradii-Webhooks/1.0"
SIGNATURE_PREFIX = "sha256="
MAX_RESPONSE_BODY = 1000
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 3
TEST_EVENT = "webhook.test"


def generate_secret() -> str:
    """32 random bytes, hex encoded."""
    return secrets.token_hex(32)


def mask_secret(secret: str) -> str:
    return f"wh_{secret[:8]}..."


def create_signature(body: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: str, signature: str, secret: str) -> bool:
    """Constant-time check of an X-Webhook-Signature value."""
    if not signature:
        return False
    return hmac.compare_digest(create_signature(body, secret), signature)


def build_payload(event: str, data: dict, company_id: str) -> dict:
    return {
        "event": event,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "data": data,
        "companyId": company_id,
    }


def parse_events(raw) -> List[str]:
    if isinstance(raw, list):
        return raw
    try:
        events = json.loads(raw or "[]")
    except (TypeError, ValueError):
        return []
    return events if isinstance(events, list) else []


class WebhookService:
    """
    Delivers events to every active webhook subscribed to them.

    `client` and `sleep` are injectable so delivery can run against a fake
    transport without waiting out the backoff.
    """

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = DEFAULT_TIMEOUT,
                 max_retries: int = DEFAULT_MAX_RETRIES, sleep=time.sleep):
        self.client = client or httpx.Client(timeout=timeout)
        self.max_retries = max_retries
        self.sleep = sleep

    def get_subscribed_webhooks(self, company_id: str, event: str) -> List[dict]:
        rows = execute_raw_sql(
            "SELECT id, url, events, secret FROM webhooks WHERE company_id = :cid AND is_active = :active",
            {"cid": company_id, "active": True}
        )
        return [row for row in rows if event in parse_events(row["events"])]

    def trigger_event(self, company_id: str, event: str, data: dict) -> List[dict]:
        """
        Deliver `event` to the company's subscribers.
        Never raises; returns one result dict per webhook.
        """
        try:
            subscribers = self.get_subscribed_webhooks(company_id, event)
        except Exception as e:
            logger.error(f"Could not load webhooks for company {company_id}: {e}")
            return []

        if not subscribers:
            return []

        payload = build_payload(event, data, company_id)
        results = []
        for webhook in subscribers:
            try:
                results.append(self.deliver(webhook, payload))
            except Exception as e:
                logger.error(f"Webhook {webhook['id']} delivery crashed: {e}")
                results.append({"success": False, "error": str(e), "webhook_id": webhook["id"]})
        return results

    def deliver(self, webhook: dict, payload: dict) -> dict:
        """POST one payload to one webhook, retrying as described above."""
        delivery_id = str(uuid.uuid4())
        body = json.dumps(payload, default=str)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-Webhook-Signature": create_signature(body, webhook["secret"]),
            "X-Webhook-Delivery": delivery_id,
            "X-Webhook-Event": payload["event"],
            "X-Webhook-Timestamp": payload["timestamp"],
        }

        status_code = None
        error = None
        success = False
        attempt = 0

        for attempt in range(1, self.max_retries + 1):
            response_body = None
            try:
                response = self.client.post(webhook["url"], content=body, headers=headers)
                status_code = response.status_code
                response_body = response.text[:MAX_RESPONSE_BODY]
                success = response.is_success
                error = None if success else f"HTTP {status_code}"
            except httpx.HTTPError as e:
                status_code = None
                error = str(e) or e.__class__.__name__

            self._log_delivery(webhook["id"], payload["event"], body, status_code,
                               response_body, attempt, success, error)

            if success or (status_code is not None and 400 <= status_code < 500):
                break
            if attempt < self.max_retries:
                self.sleep(2 ** attempt)

        self._touch(webhook["id"])

        if success:
            logger.info(f"Webhook {webhook['id']} delivered {payload['event']} on attempt {attempt}")
        else:
            logger.warning(f"Webhook {webhook['id']} failed {payload['event']} after {attempt} attempts: {error}")

        return {
            "success": success,
            "status_code": status_code,
            "error": error,
            "attempts": attempt,
            "delivery_id": delivery_id,
            "webhook_id": webhook["id"],
        }

    def send_test(self, webhook: dict) -> dict:
        payload = build_payload(
            TEST_EVENT,
            {"message": "This is a test webhook from Gradii", "webhook_id": webhook["id"]},
            webhook["company_id"]
        )
        return self.deliver(webhook, payload)

    def _log_delivery(self, webhook_id: str, event: str, body: str, status_code: Optional[int],
                      response_body: Optional[str], attempt: int, success: bool, error: Optional[str]) -> None:
        try:
            with get_db_session() as db:
                db.execute(
                    text("""
                        INSERT INTO webhook_deliveries
                            (id, webhook_id, event, payload, response_status, response_body, attempt, success, error)
                        VALUES (:id, :webhook_id, :event, :payload, :status, :body, :attempt, :success, :error)
                    """),
                    {
                        "id": new_id(), "webhook_id": webhook_id, "event": event, "payload": body,
                        "status": status_code, "body": response_body, "attempt": attempt,
                        "success": success, "error": error,
                    }
                )
        except Exception as e:
            logger.error(f"Failed to log webhook delivery for {webhook_id}: {e}")

    def _touch(self, webhook_id: str) -> None:
        try:
            with get_db_session() as db:
                db.execute(
                    text("UPDATE webhooks SET last_triggered_at = :now WHERE id = :id"),
                    {"now": datetime.utcnow(), "id": webhook_id}
                )
        except Exception as e:
            logger.error(f"Failed to update last_triggered_at for {webhook_id}: {e}")


# Singleton instance
_webhook_service: WebhookService = None


def get_webhook_service() -> WebhookService:
    global _webhook_service
    if _webhook_service is None:
        _webhook_service = WebhookService()
    return _webhook_service


def trigger_event(company_id: str, event: str, data: dict) -> List[dict]:
    """Shortcut used by route handlers (usually through BackgroundTasks)."""
    return get_webhook_service().trigger_event(company_id, event, data)
