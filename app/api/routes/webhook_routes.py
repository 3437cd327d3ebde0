"""
Webhook Routes

POST /webhooks - Register an endpoint (secret generated server-side)
GET /webhooks - List endpoints
GET /webhooks/{id} - Endpoint details
PUT /webhooks/{id} - Update endpoint
DELETE /webhooks/{id} - Remove endpoint
POST /webhooks/{id}/test - Send a webhook.test delivery
GET /webhooks/{id}/deliveries - Delivery log
"""

from typing import List

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text

from app.core.auth import get_current_company
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.webhook_service import get_webhook_service, generate_secret, mask_secret, parse_events
from app.utils.serialization import dumps_json
from app.schemas.schemas import (
    WebhookCreate, WebhookUpdate, WebhookResponse, WebhookDeliveryResponse, MessageResponse
)

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _to_response(row: dict, reveal_secret: bool = False) -> WebhookResponse:
    row["events"] = parse_events(row["events"])
    if not reveal_secret:
        row["secret"] = mask_secret(row["secret"])
    return WebhookResponse(**row)


def _get_owned_webhook(webhook_id: str, company_id: str) -> dict:
    row = fetch_one(
        "SELECT * FROM webhooks WHERE id = :id AND company_id = :cid",
        {"id": webhook_id, "cid": company_id}
    )
    if not row:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return row


@router.post("", response_model=WebhookResponse, status_code=201)
async def create_webhook(data: WebhookCreate, company: dict = Depends(get_current_company)):
    """
    Register a webhook endpoint.

    The signing secret is returned in full only in this response.
    """
    webhook_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO webhooks (id, company_id, name, url, events, secret, is_active)
                VALUES (:id, :company_id, :name, :url, :events, :secret, :is_active)
            """),
            {
                "id": webhook_id, "company_id": company["company_id"], "name": data.name,
                "url": str(data.url), "events": dumps_json([e.value for e in data.events]),
                "secret": generate_secret(), "is_active": data.is_active,
            }
        )
    logger.info(f"Company {company['company_id']} registered webhook {webhook_id}")
    return _to_response(_get_owned_webhook(webhook_id, company["company_id"]), reveal_secret=True)


@router.get("", response_model=List[WebhookResponse])
async def list_webhooks(company: dict = Depends(get_current_company)):
    rows = execute_raw_sql(
        "SELECT * FROM webhooks WHERE company_id = :cid ORDER BY created_at DESC",
        {"cid": company["company_id"]}
    )
    return [_to_response(r) for r in rows]


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(webhook_id: str, company: dict = Depends(get_current_company)):
    return _to_response(_get_owned_webhook(webhook_id, company["company_id"]))


@router.put("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(webhook_id: str, data: WebhookUpdate, company: dict = Depends(get_current_company)):
    _get_owned_webhook(webhook_id, company["company_id"])

    updates = []
    params = {"id": webhook_id}
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if field == "events":
            value = dumps_json([e.value for e in value])
        elif field == "url":
            value = str(value)
        updates.append(f"{field} = :{field}")
        params[field] = value

    if updates:
        updates.append("updated_at = CURRENT_TIMESTAMP")
        with get_db_session() as db:
            db.execute(text(f"UPDATE webhooks SET {', '.join(updates)} WHERE id = :id"), params)

    return _to_response(_get_owned_webhook(webhook_id, company["company_id"]))


@router.delete("/{webhook_id}", response_model=MessageResponse)
async def delete_webhook(webhook_id: str, company: dict = Depends(get_current_company)):
    _get_owned_webhook(webhook_id, company["company_id"])
    with get_db_session() as db:
        db.execute(text("DELETE FROM webhook_deliveries WHERE webhook_id = :id"), {"id": webhook_id})
        db.execute(text("DELETE FROM webhooks WHERE id = :id"), {"id": webhook_id})
    return MessageResponse(message="Webhook deleted")


@router.post("/{webhook_id}/test")
async def test_webhook(webhook_id: str, company: dict = Depends(get_current_company)):
    webhook = _get_owned_webhook(webhook_id, company["company_id"])
    result = get_webhook_service().send_test(webhook)
    return {
        "success": result["success"],
        "status_code": result["status_code"],
        "error": result["error"],
        "attempts": result["attempts"],
    }


@router.get("/{webhook_id}/deliveries", response_model=List[WebhookDeliveryResponse])
async def list_deliveries(webhook_id: str, limit: int = Query(50, ge=1, le=200),
                          company: dict = Depends(get_current_company)):
    _get_owned_webhook(webhook_id, company["company_id"])
    rows = execute_raw_sql(
        f"SELECT * FROM webhook_deliveries WHERE webhook_id = :id ORDER BY delivered_at DESC LIMIT {limit}",
        {"id": webhook_id}
    )
    return [WebhookDeliveryResponse(**r) for r in rows]
