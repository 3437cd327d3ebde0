"""
Billing Service - Stripe subscriptions.

- Customers are created lazily at first checkout and stored on companies
- Checkout sessions run in subscription mode with company metadata
- Incoming Stripe events update the company's plan, limits and status

handle_event returns the company-webhook relays ((company_id, event, data))
for the caller to dispatch once the Stripe request has been answered.
"""

import json
from datetime import datetime
from typing import List, Optional, Tuple

import stripe
from sqlalchemy import text

from app.core.config import get_settings
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, fetch_one
from app.db.schema import new_id
from app.services.plan_config import get_plan_config

settings = get_settings()
logger = get_logger(__name__)

stripe.api_key = settings.stripe_secret_key

Relay = Tuple[str, str, dict]


class BillingError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def _ts(value) -> Optional[datetime]:
    return datetime.utcfromtimestamp(value) if value else None


def _subscription_price_id(subscription: dict) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


def _subscription_period(subscription: dict) -> Tuple[Optional[datetime], Optional[datetime]]:
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None:
        items = (subscription.get("items") or {}).get("data") or [{}]
        start = items[0].get("current_period_start")
        end = items[0].get("current_period_end")
    return _ts(start), _ts(end)


# ============================================================
# PLAN LOOKUPS
# ============================================================

def find_plan_by_price(price_id: str) -> Optional[dict]:
    plan = fetch_one(
        """
        SELECT name, max_interviews, max_users, stripe_monthly_price_id, stripe_yearly_price_id
        FROM subscription_plans
        WHERE stripe_monthly_price_id = :price OR stripe_yearly_price_id = :price
        """,
        {"price": price_id}
    )
    if plan:
        plan["billing_cycle"] = "yearly" if plan["stripe_yearly_price_id"] == price_id else "monthly"
    return plan


def find_plan(plan_id: str) -> Optional[dict]:
    """Checkout accepts either the plan row id or its name."""
    return fetch_one(
        """
        SELECT id, name, display_name, stripe_monthly_price_id, stripe_yearly_price_id
        FROM subscription_plans WHERE (id = :plan OR name = :plan) AND is_active = :active
        """,
        {"plan": plan_id, "active": True}
    )


def resolve_company_id(obj: dict) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    if metadata.get("companyId"):
        return metadata["companyId"]
    customer_id = obj.get("customer")
    if not customer_id:
        return None
    row = fetch_one("SELECT id FROM companies WHERE stripe_customer_id = :cid", {"cid": customer_id})
    return row["id"] if row else None


# ============================================================
# CHECKOUT & PORTAL
# ============================================================

class BillingService:

    def get_or_create_customer(self, company: dict, email: str) -> str:
        if company.get("stripe_customer_id"):
            return company["stripe_customer_id"]

        customer = stripe.Customer.create(
            email=email,
            name=company["name"],
            metadata={"companyId": company["id"]},
        )
        with get_db_session() as db:
            db.execute(
                text("UPDATE companies SET stripe_customer_id = :cid, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {"cid": customer["id"], "id": company["id"]}
            )
        logger.info(f"Created Stripe customer {customer['id']} for company {company['id']}")
        return customer["id"]

    def create_checkout_session(self, company: dict, email: str, plan_id: str, billing_period: str) -> dict:
        plan = find_plan(plan_id)
        if not plan:
            raise BillingError("Plan not found", 404)

        price_id = plan["stripe_yearly_price_id"] if billing_period == "yearly" else plan["stripe_monthly_price_id"]
        if not price_id:
            raise BillingError(f"Plan {plan['name']} has no {billing_period} price configured")

        customer_id = self.get_or_create_customer(company, email)
        base = settings.app_base_url.rstrip("/")
        session = stripe.checkout.Session.create(
            mode="subscription",
            customer=customer_id,
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{base}/dashboard/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base}/dashboard/billing?canceled=true",
            metadata={"companyId": company["id"], "planName": plan["name"], "billingPeriod": billing_period},
            subscription_data={"metadata": {"companyId": company["id"], "planName": plan["name"]}},
        )
        return {"session_id": session["id"], "url": session["url"]}

    def create_portal_session(self, company: dict) -> str:
        if not company.get("stripe_customer_id"):
            raise BillingError("No billing account found for this company")
        session = stripe.billing_portal.Session.create(
            customer=company["stripe_customer_id"],
            return_url=f"{settings.app_base_url.rstrip('/')}/dashboard/billing",
        )
        return session["url"]

    # ============================================================
    # STRIPE EVENTS
    # ============================================================

    @staticmethod
    def verify_event(payload: bytes, signature: str) -> dict:
        """Check the Stripe signature and return the event as a plain dict."""
        stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
        return json.loads(payload)

    def handle_event(self, event: dict) -> List[Relay]:
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        handler = {
            "customer.subscription.created": self._on_subscription_changed,
            "customer.subscription.updated": self._on_subscription_changed,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "invoice.payment_succeeded": self._on_invoice_paid,
            "invoice.payment_failed": self._on_invoice_failed,
            "checkout.session.completed": self._on_checkout_completed,
            "customer.created": self._on_customer,
            "customer.updated": self._on_customer,
        }.get(event_type)

        if handler is None:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            return []
        return handler(obj, event_type)

    def _on_subscription_changed(self, subscription: dict, event_type: str) -> List[Relay]:
        company_id = resolve_company_id(subscription)
        if not company_id:
            logger.warning(f"No company for subscription {subscription.get('id')}")
            return []

        price_id = _subscription_price_id(subscription)
        plan = find_plan_by_price(price_id) if price_id else None
        if not plan:
            metadata_plan = (subscription.get("metadata") or {}).get("planName")
            config = get_plan_config(metadata_plan)
            plan = {"name": config["name"], "max_interviews": config["max_interviews"],
                    "max_users": config["max_users"], "billing_cycle": "monthly"}

        previous = fetch_one("SELECT subscription_plan FROM companies WHERE id = :id", {"id": company_id})
        period_start, period_end = _subscription_period(subscription)
        status = subscription.get("status") or "active"

        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE companies SET
                        subscription_plan = :plan, subscription_status = :status, billing_cycle = :cycle,
                        max_interviews = :max_interviews, max_users = :max_users,
                        stripe_subscription_id = :sub_id, stripe_price_id = :price_id, stripe_status = :status,
                        stripe_current_period_start = :start, stripe_current_period_end = :end,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id
                """),
                {
                    "plan": plan["name"], "status": status, "cycle": plan["billing_cycle"],
                    "max_interviews": plan["max_interviews"], "max_users": plan["max_users"],
                    "sub_id": subscription.get("id"), "price_id": price_id,
                    "start": period_start, "end": period_end, "id": company_id,
                }
            )
        logger.info(f"Company {company_id} subscription {status} on plan {plan['name']}")

        data = {
            "subscriptionId": subscription.get("id"),
            "status": status,
            "priceId": price_id,
            "plan": plan["name"],
            "currentPeriodStart": period_start.isoformat() if period_start else None,
            "currentPeriodEnd": period_end.isoformat() if period_end else None,
        }
        relay_event = "subscription.created" if event_type.endswith("created") else "subscription.updated"
        relays = [(company_id, relay_event, data)]
        if previous and previous["subscription_plan"] != plan["name"]:
            relays.append((company_id, "plan.changed", {
                "subscriptionId": subscription.get("id"),
                "oldPlan": previous["subscription_plan"],
                "newPlan": plan["name"],
            }))
        return relays

    def _on_subscription_deleted(self, subscription: dict, event_type: str) -> List[Relay]:
        company_id = resolve_company_id(subscription)
        if not company_id:
            return []

        free = get_plan_config("free")
        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE companies SET
                        subscription_plan = 'free', subscription_status = 'canceled', stripe_status = 'canceled',
                        max_interviews = :max_interviews, max_users = :max_users,
                        stripe_subscription_id = NULL, stripe_price_id = NULL,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id
                """),
                {"max_interviews": free["max_interviews"], "max_users": free["max_users"], "id": company_id}
            )
        logger.info(f"Company {company_id} subscription canceled, reverted to free plan")
        return [(company_id, "subscription.cancelled", {
            "subscriptionId": subscription.get("id"),
            "cancelledAt": datetime.utcnow().isoformat(),
        })]

    def _record_invoice(self, invoice: dict, status: str, company_status: str) -> Optional[str]:
        company_id = resolve_company_id(invoice)
        if not company_id:
            logger.warning(f"No company for invoice {invoice.get('id')}")
            return None

        lines = (invoice.get("lines") or {}).get("data") or [{}]
        period = lines[0].get("period") or {}
        amount = invoice.get("amount_paid") if status == "succeeded" else invoice.get("amount_due")

        with get_db_session() as db:
            plan = db.execute(
                text("SELECT subscription_plan FROM companies WHERE id = :id"), {"id": company_id}
            ).fetchone()
            db.execute(
                text("""
                    INSERT INTO subscription_transactions
                        (id, company_id, plan_name, amount, currency, status, stripe_invoice_id,
                         stripe_payment_intent_id, billing_period_start, billing_period_end)
                    VALUES (:id, :company_id, :plan, :amount, :currency, :status, :invoice_id,
                            :intent_id, :start, :end)
                """),
                {
                    "id": new_id(), "company_id": company_id, "plan": plan[0] if plan else None,
                    "amount": amount or 0, "currency": invoice.get("currency") or "usd", "status": status,
                    "invoice_id": invoice.get("id"), "intent_id": invoice.get("payment_intent"),
                    "start": _ts(period.get("start")), "end": _ts(period.get("end")),
                }
            )
            db.execute(
                text("UPDATE companies SET subscription_status = :status, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {"status": company_status, "id": company_id}
            )
        return company_id

    def _on_invoice_paid(self, invoice: dict, event_type: str) -> List[Relay]:
        company_id = self._record_invoice(invoice, "succeeded", "active")
        if not company_id:
            return []
        return [(company_id, "payment.succeeded", {
            "invoiceId": invoice.get("id"),
            "subscriptionId": invoice.get("subscription"),
            "customerId": invoice.get("customer"),
            "amountPaid": invoice.get("amount_paid"),
            "currency": invoice.get("currency"),
            "receiptUrl": invoice.get("hosted_invoice_url"),
        })]

    def _on_invoice_failed(self, invoice: dict, event_type: str) -> List[Relay]:
        company_id = self._record_invoice(invoice, "failed", "past_due")
        if not company_id:
            return []
        return [(company_id, "payment.failed", {
            "invoiceId": invoice.get("id"),
            "subscriptionId": invoice.get("subscription"),
            "customerId": invoice.get("customer"),
            "amountDue": invoice.get("amount_due"),
            "currency": invoice.get("currency"),
            "attemptCount": invoice.get("attempt_count"),
        })]

    def _on_checkout_completed(self, session: dict, event_type: str) -> List[Relay]:
        company_id = (session.get("metadata") or {}).get("companyId")
        if company_id and session.get("customer"):
            self._store_customer(company_id, session["customer"])
        return []

    def _on_customer(self, customer: dict, event_type: str) -> List[Relay]:
        company_id = (customer.get("metadata") or {}).get("companyId")
        if not company_id:
            return []
        self._store_customer(company_id, customer["id"])
        return [(company_id, event_type, {
            "customerId": customer["id"],
            "email": customer.get("email"),
            "name": customer.get("name"),
        })]

    @staticmethod
    def _store_customer(company_id: str, customer_id: str) -> None:
        with get_db_session() as db:
            db.execute(
                text("UPDATE companies SET stripe_customer_id = :cid, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {"cid": customer_id, "id": company_id}
            )


def get_billing_service() -> BillingService:
    return BillingService()
