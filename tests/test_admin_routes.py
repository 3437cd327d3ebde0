from sqlalchemy import text

from app.db.postgres import get_db_session
from app.db.schema import new_id

PLAN = {
    "name": "Growth",
    "display_name": "Growth",
    "monthly_price": 79,
    "yearly_price": 790,
    "max_interviews": 120,
    "max_users": 8,
    "features": ["Custom branding"],
}


async def test_company_tokens_are_refused(client, company):
    response = await client.get("/api/admin/companies", headers=company["headers"])
    assert response.status_code == 403


async def test_list_and_search_companies(client, admin, company, register):
    await register(email="owner@globex.io", company_name="Globex")

    everyone = (await client.get("/api/admin/companies", headers=admin["headers"])).json()
    assert everyone["total"] == 2

    found = (await client.get("/api/admin/companies", headers=admin["headers"], params={"search": "glob"})).json()
    assert [c["name"] for c in found["companies"]] == ["Globex"]

    details = (await client.get(f"/api/admin/companies/{company['company_id']}", headers=admin["headers"])).json()
    assert details["stats"]["users"] == 1
    assert details["stats"]["interviews"] == 0


async def test_plan_change_applies_limits_and_is_audited(client, admin, company):
    response = await client.put(f"/api/admin/companies/{company['company_id']}", headers=admin["headers"],
                                json={"subscription_plan": "pro"})

    assert response.status_code == 200
    assert response.json()["subscription_plan"] == "scale"
    assert response.json()["max_interviews"] == 200

    logs = (await client.get("/api/admin/activity-logs", headers=admin["headers"])).json()
    assert logs[0]["action"] == "update_company"
    assert logs[0]["target_id"] == company["company_id"]
    assert logs[0]["details"]["previous_plan"] == "free"


async def test_suspended_company_is_locked_out(client, admin, company):
    await client.put(f"/api/admin/companies/{company['company_id']}", headers=admin["headers"],
                     json={"is_active": False})
    response = await client.get("/api/companies/profile", headers=company["headers"])
    assert response.status_code == 403


async def test_admin_cannot_deactivate_self(client, admin):
    response = await client.put(f"/api/admin/users/{admin['user_id']}", headers=admin["headers"],
                                json={"is_active": False})
    assert response.status_code == 400


async def test_deactivate_user(client, admin, company):
    response = await client.put(f"/api/admin/users/{company['user_id']}", headers=admin["headers"],
                                json={"is_active": False})
    assert response.json()["is_active"] is False
    assert (await client.get("/api/auth/me", headers=company["headers"])).status_code == 403


async def test_analytics(client, admin, company):
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO subscription_transactions (id, company_id, plan_name, amount, currency, status)
                VALUES (:a, :cid, 'starter', 2900, 'usd', 'succeeded'),
                       (:b, :cid, 'starter', 2900, 'usd', 'failed')
            """),
            {"a": new_id(), "b": new_id(), "cid": company["company_id"]}
        )

    analytics = (await client.get("/api/admin/analytics", headers=admin["headers"])).json()
    assert analytics["total_companies"] == 1
    assert analytics["total_users"] == 2
    assert analytics["total_revenue"] == 2900
    assert analytics["plan_distribution"] == {"free": 1}

    transactions = (await client.get("/api/admin/subscription-transactions", headers=admin["headers"],
                                     params={"status": "succeeded"})).json()
    assert [t["company_name"] for t in transactions["transactions"]] == ["Acme Corp"]


async def test_subscription_plan_crud(client, admin):
    created = await client.post("/api/admin/subscription-plans", headers=admin["headers"], json=PLAN)
    assert created.status_code == 201
    plan = created.json()
    assert plan["name"] == "growth"
    assert plan["features"] == ["Custom branding"]

    duplicate = await client.post("/api/admin/subscription-plans", headers=admin["headers"], json=PLAN)
    assert duplicate.status_code == 400

    updated = await client.put(f"/api/admin/subscription-plans/{plan['id']}", headers=admin["headers"],
                               json={**PLAN, "monthly_price": 99})
    assert updated.json()["monthly_price"] == 99

    public = (await client.get("/api/billing/plans")).json()
    assert [p["name"] for p in public] == ["growth"]

    deleted = await client.delete(f"/api/admin/subscription-plans/{plan['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert (await client.get("/api/admin/subscription-plans", headers=admin["headers"])).json() == {"plans": []}
