"""
Billing Routes

GET /billing/plans - Subscription plans on offer
POST /billing/checkout - Start a Stripe checkout session
POST /billing/portal - Open the Stripe billing portal
POST /billing/webhooks - Stripe event receiver (signature verified, no JWT)
"""

from typing import List

import stripe
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Request

from app.core.auth import get_current_company
from app.core.logging_config import get_logger
from app.db.postgres import execute_raw_sql, fetch_one
from app.services.billing_service import get_billing_service, BillingError
from app.services.plan_config import list_plans, format_limit
from app.services.webhook_service import trigger_event
from app.utils.serialization import loads_json
from app.schemas.schemas import PlanResponse, CheckoutRequest, CheckoutResponse, PortalResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


def _billing_company(company_id: str) -> dict:
    row = fetch_one("SELECT id, name, stripe_customer_id FROM companies WHERE id = :id", {"id": company_id})
    if not row:
        raise HTTPException(status_code=404, detail="Company not found")
    return row


@router.get("/plans", response_model=List[PlanResponse])
async def list_subscription_plans():
    """Active plans from the database, or the built-in catalogue when none are configured."""
    rows = execute_raw_sql(
        "SELECT * FROM subscription_plans WHERE is_active = TRUE ORDER BY monthly_price"
    )
    if rows:
        return [
            PlanResponse(
                **{**r, "features": loads_json(r.get("features"), [])},
                max_interviews_label=format_limit(r["max_interviews"]),
                max_users_label=format_limit(r["max_users"]),
            )
            for r in rows
        ]

    return [
        PlanResponse(
            name=p["name"],
            display_name=p["label"],
            monthly_price=p["monthly_price"],
            yearly_price=p["yearly_price"],
            max_interviews=p["max_interviews"],
            max_users=p["max_users"],
            max_interviews_label=format_limit(p["max_interviews"]),
            max_users_label=format_limit(p["max_users"]),
        )
        for p in list_plans()
    ]


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(data: CheckoutRequest, company: dict = Depends(get_current_company)):
    billing_company = _billing_company(company["company_id"])
    try:
        session = get_billing_service().create_checkout_session(
            billing_company, company["email"], data.plan_id, data.billing_period.value
        )
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout failed for company {company['company_id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create checkout session")
    return CheckoutResponse(**session)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(company: dict = Depends(get_current_company)):
    billing_company = _billing_company(company["company_id"])
    try:
        url = get_billing_service().create_portal_session(billing_company)
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except stripe.StripeError as e:
        logger.error(f"Stripe portal failed for company {company['company_id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create portal session")
    return PortalResponse(url=url)


@router.post("/webhooks")
async def stripe_webhook(request: Request, background_tasks: BackgroundTasks):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")

    service = get_billing_service()
    try:
        event = service.verify_event(payload, signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    logger.info(f"Stripe event {event.get('type')} ({event.get('id')})")
    for company_id, event_name, data in service.handle_event(event):
        background_tasks.add_task(trigger_event, company_id, event_name, data)

    return {"received": True}
