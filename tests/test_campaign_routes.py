"""
Campaign routes: CRUD, scoring parameters, interview setups and analytics.
"""


async def test_salary_range_is_validated(client, company):
    response = await client.post("/api/campaigns", headers=company["headers"], json={
        "campaign_name": "Backend", "job_title": "Engineer", "salary_min": 100, "salary_max": 50,
    })
    assert response.status_code == 400


async def test_create_and_list(client, company, campaign, candidate):
    assert campaign["required_skills"] == ["python", "sql"]
    assert campaign["status"] == "active"

    listed = (await client.get("/api/campaigns", headers=company["headers"])).json()
    assert listed["total"] == 1
    assert listed["campaigns"][0]["candidate_count"] == 1

    paused = await client.get("/api/campaigns", headers=company["headers"], params={"status": "paused"})
    assert paused.json()["total"] == 0


async def test_update_campaign(client, company, campaign):
    response = await client.put(f"/api/campaigns/{campaign['id']}", headers=company["headers"], json={
        "status": "paused", "required_skills": ["go"],
    })
    assert response.status_code == 200
    assert response.json()["status"] == "paused"
    assert response.json()["required_skills"] == ["go"]


async def test_campaigns_are_scoped_to_company(client, campaign, register):
    other = await register(email="owner@globex.io", company_name="Globex")
    response = await client.get(f"/api/campaigns/{campaign['id']}", headers=other["headers"])
    assert response.status_code == 404


async def test_delete_campaign(client, company, campaign):
    deleted = await client.delete(f"/api/campaigns/{campaign['id']}", headers=company["headers"])
    assert deleted.status_code == 200
    missing = await client.get(f"/api/campaigns/{campaign['id']}", headers=company["headers"])
    assert missing.status_code == 404


async def test_scoring_parameters(client, company, campaign):
    url = f"/api/campaigns/{campaign['id']}/scoring-parameters"
    created = await client.post(url, headers=company["headers"], json={
        "parameter_type": "skill", "parameter_name": "Python", "weight": 2,
    })
    assert created.status_code == 201

    listed = (await client.get(url, headers=company["headers"])).json()
    assert [p["parameter_name"] for p in listed] == ["Python"]

    missing = await client.delete(f"{url}/nope", headers=company["headers"])
    assert missing.status_code == 404

    removed = await client.delete(f"{url}/{created.json()['id']}", headers=company["headers"])
    assert removed.status_code == 200


async def test_interview_rounds_are_unique(client, company, campaign):
    url = f"/api/campaigns/{campaign['id']}/interview-setups"
    payload = {"round_number": 1, "round_name": "Screening", "interview_type": "mcq"}

    first = await client.post(url, headers=company["headers"], json=payload)
    second = await client.post(url, headers=company["headers"], json=payload)
    bad_collection = await client.post(url, headers=company["headers"], json={
        **payload, "round_number": 2, "question_collection_id": "missing",
    })

    assert first.status_code == 201
    assert first.json()["number_of_questions"] == 5
    assert second.status_code == 400
    assert bad_collection.status_code == 404


async def test_analytics_default_and_upsert(client, company, campaign):
    url = f"/api/campaigns/{campaign['id']}/analytics"
    empty = (await client.get(url, headers=company["headers"])).json()
    assert empty["total_applications"] == 0
    assert empty["campaign_id"] == campaign["id"]

    saved = await client.put(url, headers=company["headers"], json={"total_applications": 12, "final_hires": 2})
    assert saved.status_code == 200
    assert saved.json()["total_applications"] == 12

    again = await client.put(url, headers=company["headers"], json={"total_applications": 13})
    assert again.json()["total_applications"] == 13
    assert again.json()["final_hires"] == 0
