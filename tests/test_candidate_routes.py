"""
Candidate routes: pipeline status, resume parsing and talent-fit scoring.
The OpenAI wrapper is the `fake_ai` MagicMock from conftest.
"""


async def test_duplicate_candidate_in_campaign(client, company, campaign, candidate):
    response = await client.post("/api/candidates", headers=company["headers"], json={
        "campaign_id": campaign["id"], "first_name": "Grace", "last_name": "Hopper",
        "email": "GRACE@example.com",
    })
    assert response.status_code == 400


async def test_unknown_campaign(client, company):
    response = await client.post("/api/candidates", headers=company["headers"], json={
        "campaign_id": "missing", "first_name": "Ada", "last_name": "L", "email": "ada@example.com",
    })
    assert response.status_code == 404


async def test_list_and_search(client, company, candidate):
    found = (await client.get("/api/candidates", headers=company["headers"], params={"search": "hop"})).json()
    none = (await client.get("/api/candidates", headers=company["headers"], params={"search": "zzz"})).json()
    assert found["total"] == 1
    assert none["total"] == 0


async def test_status_change_is_recorded(client, company, candidate):
    url = f"/api/candidates/{candidate['id']}"
    updated = await client.put(f"{url}/status", headers=company["headers"],
                               json={"status": "screening", "notes": "Looks promising"})
    assert updated.json()["status"] == "screening"

    history = (await client.get(f"{url}/history", headers=company["headers"])).json()
    assert [(h["from_status"], h["to_status"]) for h in history] == [(None, "applied"), ("applied", "screening")]


async def test_invalid_status(client, company, candidate):
    response = await client.put(f"/api/candidates/{candidate['id']}/status", headers=company["headers"],
                                json={"status": "promoted"})
    assert response.status_code == 422


async def test_resume_upload_parses_with_ai(client, company, candidate, fake_ai, mongo_db):
    fake_ai.parse_resume.return_value = {
        "name": "Grace Hopper",
        "skills": ["Python", " COBOL ", ""],
        "experience_years": 12,
    }

    response = await client.post(
        f"/api/candidates/{candidate['id']}/resume",
        headers=company["headers"],
        files={"file": ("resume.txt", b"Grace Hopper - compilers, COBOL, Python", "text/plain")},
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["extracted_skills"] == ["Python", "COBOL"]

    stored = (await client.get(f"/api/candidates/{candidate['id']}", headers=company["headers"])).json()
    assert stored["ai_parsed_data"]["name"] == "Grace Hopper"
    assert stored["experience_years"] == 12
    assert mongo_db["raw_resumes"].count_documents({"candidate_id": candidate["id"]}) == 1


async def test_resume_ai_failure_still_uploads(client, company, candidate, fake_ai):
    fake_ai.parse_resume.side_effect = ValueError("bad json")
    response = await client.post(
        f"/api/candidates/{candidate['id']}/resume",
        headers=company["headers"],
        files={"file": ("resume.txt", b"some resume text", "text/plain")},
    )
    assert response.status_code == 200
    assert response.json()["success"] is False


async def test_resume_rejects_unknown_extension(client, company, candidate):
    response = await client.post(
        f"/api/candidates/{candidate['id']}/resume",
        headers=company["headers"],
        files={"file": ("resume.exe", b"MZ", "application/octet-stream")},
    )
    assert response.status_code == 400


async def test_talent_fit_score(client, company, campaign, candidate, fake_ai):
    await client.post(f"/api/campaigns/{campaign['id']}/scoring-parameters", headers=company["headers"],
                      json={"parameter_type": "skill", "parameter_name": "Python", "weight": 1})
    fake_ai.score_parameter.return_value = {"score": 80, "evidence": "Python listed"}

    response = await client.post(f"/api/candidates/{candidate['id']}/talent-fit-score",
                                 headers=company["headers"])

    assert response.status_code == 200, response.text
    assert response.json()["talent_fit_score"] == 80
    stored = (await client.get(f"/api/candidates/{candidate['id']}", headers=company["headers"])).json()
    assert stored["talent_fit_score"] == 80


async def test_delete_candidate(client, company, candidate):
    assert (await client.delete(f"/api/candidates/{candidate['id']}", headers=company["headers"])).status_code == 200
    assert (await client.get(f"/api/candidates/{candidate['id']}", headers=company["headers"])).status_code == 404
