from unittest.mock import patch

import pytest

MEMBER = {"email": "Lin@Acme.io", "first_name": "Lin", "last_name": "Ops", "password": "welcome-123"}


@pytest.fixture
def email_service():
    with patch("app.api.routes.company_routes.get_email_service") as factory:
        yield factory.return_value


async def test_profile_update(client, company):
    response = await client.put("/api/companies/profile", headers=company["headers"], json={
        "industry": "Logistics",
        "domain": " Acme.IO ",
    })
    assert response.status_code == 200
    assert response.json()["industry"] == "Logistics"
    assert response.json()["domain"] == "acme.io"


async def test_domain_clash(client, company, register):
    await register(email="owner@globex.io", company_name="Globex", domain="globex.io")
    response = await client.put("/api/companies/profile", headers=company["headers"], json={"domain": "globex.io"})
    assert response.status_code == 400


async def test_usage_on_free_plan(client, company):
    usage = (await client.get("/api/companies/usage", headers=company["headers"])).json()
    assert usage == {
        "plan": "free",
        "plan_label": "Free",
        "interviews_used": 0,
        "max_interviews": 10,
        "max_interviews_label": "10",
        "users": 1,
        "max_users": 2,
        "max_users_label": "2",
    }


async def test_add_team_member_sends_invite(client, company, email_service):
    response = await client.post("/api/companies/team", headers=company["headers"], json=MEMBER)

    assert response.status_code == 201
    assert response.json()["email"] == "lin@acme.io"
    assert response.json()["role"] == "company"
    email_service.send_team_invite.assert_called_once()
    assert email_service.send_team_invite.call_args.kwargs["inviter_name"] == "Ada Owner"

    team = (await client.get("/api/companies/team", headers=company["headers"])).json()
    assert {m["email"] for m in team} == {"owner@acme.io", "lin@acme.io"}

    login = await client.post("/api/auth/login", json={"email": "lin@acme.io", "password": "welcome-123"})
    assert login.status_code == 200


async def test_team_limit_and_duplicates(client, company, email_service):
    duplicate = await client.post("/api/companies/team", headers=company["headers"],
                                  json={**MEMBER, "email": "owner@acme.io"})
    assert duplicate.status_code == 400

    await client.post("/api/companies/team", headers=company["headers"], json=MEMBER)
    over_limit = await client.post("/api/companies/team", headers=company["headers"],
                                   json={**MEMBER, "email": "third@acme.io"})
    assert over_limit.status_code == 403
