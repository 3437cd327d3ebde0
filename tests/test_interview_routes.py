"""
Interview lifecycle through the API: scheduling from the question bank or
AI fallback, candidate start/submit with access tokens, and analytics.
"""

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.api.routes import interview_routes
from app.db.postgres import get_db_session, execute_raw_sql

CANDIDATE_EMAIL = "grace@example.com"


def mcq_payload(question: str, correct: str = "B") -> dict:
    return {
        "question_type": "mcq",
        "question": question,
        "options": [{"id": o, "text": f"Option {o}", "isCorrect": o == correct} for o in "ABCD"],
        "explanation": "Because.",
    }


async def add_setup(client, company, campaign, **overrides) -> dict:
    payload = {
        "round_number": 1,
        "round_name": "Screening",
        "interview_type": "mcq",
        "number_of_questions": 2,
        "passing_score": 50,
        **overrides,
    }
    response = await client.post(f"/api/campaigns/{campaign['id']}/interview-setups",
                                 headers=company["headers"], json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def schedule(client, company, candidate, setup):
    return await client.post("/api/interviews", headers=company["headers"], json={
        "candidate_id": candidate["id"],
        "interview_setup_id": setup["id"],
        "send_email": False,
    })


@pytest_asyncio.fixture
async def mcq_setup(client, company, campaign):
    for question in ("Which keyword defines a function?", "Which keyword starts a loop?"):
        response = await client.post("/api/questions", headers=company["headers"], json=mcq_payload(question))
        assert response.status_code == 201, response.text
    return await add_setup(client, company, campaign)


@pytest_asyncio.fixture
async def scheduled(client, company, candidate, mcq_setup) -> dict:
    response = await schedule(client, company, candidate, mcq_setup)
    assert response.status_code == 201, response.text
    return response.json()


class TestScheduling:

    async def test_schedule_from_question_bank(self, client, company, candidate, scheduled):
        assert scheduled["status"] == "scheduled"
        assert scheduled["question_count"] == 2
        assert scheduled["candidate_email"] == CANDIDATE_EMAIL
        assert scheduled["interview_link"] == (
            f"http://testserver/interview/{scheduled['id']}?token={scheduled['access_token']}"
        )

        usage = (await client.get("/api/companies/usage", headers=company["headers"])).json()
        assert usage["interviews_used"] == 1

        moved = (await client.get(f"/api/candidates/{candidate['id']}", headers=company["headers"])).json()
        assert moved["status"] == "interview"

        used = execute_raw_sql("SELECT usage_count FROM questions")
        assert [q["usage_count"] for q in used] == [1, 1]

    async def test_quota_is_enforced(self, client, company, candidate, mcq_setup):
        with get_db_session() as db:
            db.execute(text("UPDATE companies SET max_interviews = 0 WHERE id = :id"), {"id": company["company_id"]})

        response = await schedule(client, company, candidate, mcq_setup)
        assert response.status_code == 403
        assert "Interview limit reached" in response.json()["detail"]

    async def test_setup_must_belong_to_candidate_campaign(self, client, company, candidate):
        other = await client.post("/api/campaigns", headers=company["headers"], json={
            "campaign_name": "Design Hiring", "job_title": "Product Designer",
        })
        setup = await add_setup(client, company, other.json())

        response = await schedule(client, company, candidate, setup)
        assert response.status_code == 400

    async def test_unknown_setup(self, client, company, candidate):
        response = await schedule(client, company, candidate, {"id": "missing"})
        assert response.status_code == 404

    async def test_empty_bank_falls_back_to_ai(self, client, company, campaign, candidate, fake_ai):
        fake_ai.generate_questions.return_value = [{"question": "Tell me about a conflict you resolved"}]
        setup = await add_setup(client, company, campaign, interview_type="behavioral", number_of_questions=1)

        response = await schedule(client, company, candidate, setup)

        assert response.status_code == 201, response.text
        assert response.json()["question_count"] == 1
        assert fake_ai.generate_questions.call_count == 1

    async def test_ai_failure_is_reported(self, client, company, campaign, candidate, fake_ai):
        fake_ai.generate_questions.side_effect = ValueError("Expecting value")
        setup = await add_setup(client, company, campaign, interview_type="behavioral", number_of_questions=1)

        response = await schedule(client, company, candidate, setup)
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to prepare interview questions"


class TestCandidateFlow:

    async def test_start_hides_answers(self, client, scheduled):
        response = await client.post(f"/api/interviews/{scheduled['id']}/start", json={
            "access_token": scheduled["access_token"], "email": CANDIDATE_EMAIL,
        })

        assert response.status_code == 200, response.text
        questions = response.json()["questions"]
        assert len(questions) == 2
        for question in questions:
            assert "correctAnswer" not in question
            assert "explanation" not in question
            assert all("isCorrect" not in option for option in question["options"])

    async def test_start_rejects_bad_credentials(self, client, scheduled):
        url = f"/api/interviews/{scheduled['id']}/start"
        bad_token = await client.post(url, json={"access_token": "nope", "email": CANDIDATE_EMAIL})
        wrong_email = await client.post(url, json={"access_token": scheduled["access_token"],
                                                   "email": "someone@example.com"})
        assert bad_token.status_code == 401
        assert wrong_email.status_code == 403

    async def test_expired_link(self, client, scheduled):
        with get_db_session() as db:
            db.execute(text("UPDATE interviews SET expires_at = '2000-01-01 00:00:00' WHERE id = :id"),
                       {"id": scheduled["id"]})

        response = await client.post(f"/api/interviews/{scheduled['id']}/start", json={
            "access_token": scheduled["access_token"], "email": CANDIDATE_EMAIL,
        })
        assert response.status_code == 410

    async def test_submit_requires_start(self, client, scheduled):
        response = await client.post(f"/api/interviews/{scheduled['id']}/submit", json={
            "access_token": scheduled["access_token"], "answers": [],
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Interview has not been started"

    async def test_full_interview(self, client, company, campaign, candidate, scheduled):
        interview_id = scheduled["id"]
        token = scheduled["access_token"]

        started = await client.post(f"/api/interviews/{interview_id}/start",
                                    json={"access_token": token, "email": CANDIDATE_EMAIL})
        questions = started.json()["questions"]

        answers = [
            {"questionId": questions[0]["id"], "question": questions[0]["question"], "answer": "B", "timeSpent": 10},
            {"questionId": questions[1]["id"], "question": questions[1]["question"], "answer": "A", "timeSpent": 10},
        ]
        response = await client.post(f"/api/interviews/{interview_id}/submit", json={
            "access_token": token, "answers": answers, "totalTimeSpent": 20, "candidateEmail": CANDIDATE_EMAIL,
        })

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["status"] == "completed"
        assert body["completion_rate"] == 100.0
        assert body["percentage"] == 50.0
        assert body["passed"] is True

        results = (await client.get(f"/api/interviews/{interview_id}/results", headers=company["headers"])).json()
        assert results["interview"]["status"] == "completed"
        assert len(results["scoring"]) == 2

        analytics = (await client.get(f"/api/campaigns/{campaign['id']}/analytics",
                                      headers=company["headers"])).json()
        assert analytics["total_applications"] == 1
        assert analytics["first_round_interviews"] == 1
        assert analytics["first_round_shortlisted"] == 1
        assert analytics["average_score"] == 50.0

        rating = execute_raw_sql("SELECT overall_rating FROM interview_analytics WHERE interview_id = :id",
                                 {"id": interview_id})
        assert rating[0]["overall_rating"] == 100

        again = await client.post(f"/api/interviews/{interview_id}/submit",
                                  json={"access_token": token, "answers": answers})
        assert again.status_code == 400
        assert again.json()["detail"] == "Interview has already been completed"

    async def test_submit_with_wrong_token(self, client, scheduled):
        await client.post(f"/api/interviews/{scheduled['id']}/start",
                          json={"access_token": scheduled["access_token"], "email": CANDIDATE_EMAIL})
        response = await client.post(f"/api/interviews/{scheduled['id']}/submit",
                                     json={"access_token": "nope", "answers": []})
        assert response.status_code == 401

    async def test_submit_rejects_other_email(self, client, scheduled):
        token = scheduled["access_token"]
        await client.post(f"/api/interviews/{scheduled['id']}/start",
                          json={"access_token": token, "email": CANDIDATE_EMAIL})

        response = await client.post(f"/api/interviews/{scheduled['id']}/submit", json={
            "access_token": token, "answers": [], "candidateEmail": "someone@example.com",
        })
        assert response.status_code == 403

    async def test_submit_checks_token_before_status(self, client, scheduled):
        response = await client.post(f"/api/interviews/{scheduled['id']}/submit",
                                     json={"access_token": "nope", "answers": []})
        assert response.status_code == 401

    async def test_non_ascii_token_is_unauthorized(self, client, scheduled):
        start = await client.post(f"/api/interviews/{scheduled['id']}/start",
                                  json={"access_token": "tökén-é", "email": CANDIDATE_EMAIL})
        submit = await client.post(f"/api/interviews/{scheduled['id']}/submit",
                                   json={"access_token": "tökén-é", "answers": []})
        assert start.status_code == 401
        assert submit.status_code == 401

    async def test_submit_after_expiry(self, client, scheduled):
        token = scheduled["access_token"]
        await client.post(f"/api/interviews/{scheduled['id']}/start",
                          json={"access_token": token, "email": CANDIDATE_EMAIL})
        with get_db_session() as db:
            db.execute(text("UPDATE interviews SET expires_at = '2000-01-01 00:00:00' WHERE id = :id"),
                       {"id": scheduled["id"]})

        response = await client.post(f"/api/interviews/{scheduled['id']}/submit",
                                     json={"access_token": token, "answers": []})
        assert response.status_code == 410

    async def test_partial_submission(self, client, scheduled):
        token = scheduled["access_token"]
        started = await client.post(f"/api/interviews/{scheduled['id']}/start",
                                    json={"access_token": token, "email": CANDIDATE_EMAIL})
        questions = started.json()["questions"]

        response = await client.post(f"/api/interviews/{scheduled['id']}/submit", json={
            "access_token": token,
            "answers": [
                {"questionId": questions[0]["id"], "question": questions[0]["question"], "answer": "B",
                 "timeSpent": 10},
                {"questionId": questions[1]["id"], "question": questions[1]["question"], "answer": "  "},
            ],
        })

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["completion_rate"] == 50.0
        assert body["max_score"] == pytest.approx(2.4)
        assert body["percentage"] == 50.0
        rating = execute_raw_sql("SELECT overall_rating FROM interview_analytics WHERE interview_id = :id",
                                 {"id": scheduled["id"]})
        assert rating[0]["overall_rating"] == 50

    async def test_skipped_questions_still_count(self, client, scheduled):
        token = scheduled["access_token"]
        started = await client.post(f"/api/interviews/{scheduled['id']}/start",
                                    json={"access_token": token, "email": CANDIDATE_EMAIL})
        first = started.json()["questions"][0]

        response = await client.post(f"/api/interviews/{scheduled['id']}/submit", json={
            "access_token": token,
            "answers": [{"questionId": first["id"], "question": first["question"], "answer": "B", "timeSpent": 10}],
        })

        body = response.json()
        assert body["score"] == pytest.approx(1.2)
        assert body["max_score"] == pytest.approx(2.4)
        assert body["percentage"] == 50.0

    @pytest.mark.parametrize("answer_ids", [["unknown"], ["first", "first"]])
    async def test_answers_must_match_questions(self, client, scheduled, answer_ids):
        token = scheduled["access_token"]
        started = await client.post(f"/api/interviews/{scheduled['id']}/start",
                                    json={"access_token": token, "email": CANDIDATE_EMAIL})
        first = started.json()["questions"][0]["id"]

        answers = [{"questionId": first if qid == "first" else qid, "question": "Q", "answer": "B"}
                   for qid in answer_ids]
        response = await client.post(f"/api/interviews/{scheduled['id']}/submit",
                                     json={"access_token": token, "answers": answers})

        assert response.status_code == 400
        status = execute_raw_sql("SELECT status FROM interviews WHERE id = :id", {"id": scheduled["id"]})
        assert status[0]["status"] == "in_progress"

    async def test_analytics_failure_does_not_fail_submission(self, client, scheduled, monkeypatch):
        def broken(interview, completion_rate):
            raise OperationalError("INSERT INTO interview_analytics", {}, Exception("disk full"))

        events = []
        monkeypatch.setattr(interview_routes, "save_interview_analytics", broken)
        monkeypatch.setattr(interview_routes, "trigger_event", lambda *args: events.append(args[1]))

        token = scheduled["access_token"]
        await client.post(f"/api/interviews/{scheduled['id']}/start",
                          json={"access_token": token, "email": CANDIDATE_EMAIL})
        response = await client.post(f"/api/interviews/{scheduled['id']}/submit",
                                     json={"access_token": token, "answers": []})

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert events == ["interview.completed"]


class TestCompanyViews:

    async def test_cancel(self, client, company, scheduled):
        response = await client.post(f"/api/interviews/{scheduled['id']}/cancel", headers=company["headers"])
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        again = await client.post(f"/api/interviews/{scheduled['id']}/cancel", headers=company["headers"])
        assert again.status_code == 400

        start = await client.post(f"/api/interviews/{scheduled['id']}/start",
                                  json={"access_token": scheduled["access_token"], "email": CANDIDATE_EMAIL})
        assert start.status_code == 400

    async def test_list_filters(self, client, company, candidate, scheduled):
        listed = await client.get("/api/interviews", headers=company["headers"],
                                  params={"candidate_id": candidate["id"]})
        assert [i["id"] for i in listed.json()] == [scheduled["id"]]

        completed = await client.get("/api/interviews", headers=company["headers"], params={"status": "completed"})
        assert completed.json() == []

    async def test_other_company_cannot_see_interview(self, client, scheduled, register):
        other = await register(email="owner@globex.io", company_name="Globex")
        response = await client.get(f"/api/interviews/{scheduled['id']}", headers=other["headers"])
        assert response.status_code == 404
