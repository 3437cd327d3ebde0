"""
Interview Routes

Company side (JWT):
POST /interviews - Schedule an interview for a candidate
GET /interviews - List interviews
GET /interviews/{id} - Interview details
POST /interviews/{id}/cancel - Cancel a pending interview
GET /interviews/{id}/results - Answers and per-question scoring

Candidate side (access token + email):
POST /interviews/{id}/start - Begin the interview, returns questions without answers
POST /interviews/{id}/submit - Submit answers for scoring
"""

import secrets
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes.campaign_routes import save_campaign_analytics
from app.api.routes.candidate_routes import get_owned_candidate, record_status_change
from app.core.auth import get_current_company
from app.core.config import get_settings
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.email_service import get_email_service
from app.services.interview_scoring import score_interview, check_answer_ids, AnswerMismatchError
from app.services.plan_config import is_within_limit
from app.services.question_service import get_question_service, QuestionGenerationError
from app.services.webhook_service import trigger_event
from app.utils.datetime_utils import parse_datetime, is_expired
from app.utils.numbers import round_half_up
from app.utils.serialization import loads_json, dumps_json
from app.schemas.schemas import (
    InterviewCreate, InterviewResponse, InterviewScheduledResponse, InterviewAccessRequest,
    InterviewStartResponse, InterviewSubmitRequest, InterviewSubmitResponse, InterviewResultsResponse
)

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(prefix="/interviews", tags=["Interviews"])

INTERVIEW_TTL_DAYS = 7

# Keys never sent to the candidate
HIDDEN_QUESTION_KEYS = {
    "isCorrect", "correctAnswer", "correct_answer", "solution", "explanation",
    "expectedAnswer", "expected_answer", "expectedKeywords", "evaluationCriteria",
}

ROUND_COLUMNS = {1: "first_round", 2: "second_round", 3: "third_round"}


def _to_response(row: dict) -> InterviewResponse:
    return InterviewResponse(**row, question_count=len(loads_json(row.get("questions"), [])))


def _interview_link(interview_id: str, access_token: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}/interview/{interview_id}?token={access_token}"


def _get_owned_interview(interview_id: str, company_id: str) -> dict:
    row = fetch_one(
        "SELECT * FROM interviews WHERE id = :id AND company_id = :cid",
        {"id": interview_id, "cid": company_id}
    )
    if not row:
        raise HTTPException(status_code=404, detail="Interview not found")
    return row


def _get_interview(interview_id: str) -> dict:
    row = fetch_one("SELECT * FROM interviews WHERE id = :id", {"id": interview_id})
    if not row:
        raise HTTPException(status_code=404, detail="Interview not found")
    return row


def _check_access_token(interview: dict, access_token: str) -> None:
    if not secrets.compare_digest(interview["access_token"].encode(), access_token.encode()):
        raise HTTPException(status_code=401, detail="Invalid access token")


def _check_email(interview: dict, email: Optional[str]) -> None:
    if email and email.lower() != interview["candidate_email"].lower():
        raise HTTPException(status_code=403, detail="Email does not match the invited candidate")


def bank_row_to_question(row: dict) -> dict:
    """A question-bank row in the shape the scorer and the candidate UI expect."""
    return {
        "id": row["id"],
        "questionType": row["question_type"],
        "question": row["question"],
        "options": loads_json(row.get("options")),
        "correctAnswer": row.get("correct_answer"),
        "explanation": row.get("explanation"),
        "expectedAnswer": row.get("expected_answer"),
        "category": row.get("category"),
        "difficultyLevel": row.get("difficulty_level"),
        "timeLimit": row.get("time_limit"),
        "tags": loads_json(row.get("tags"), []),
    }


def strip_answers(questions: List[dict]) -> List[dict]:
    """Remove correct answers and grading hints before questions reach the candidate."""
    public = []
    for question in questions:
        cleaned = {k: v for k, v in question.items() if k not in HIDDEN_QUESTION_KEYS}
        if isinstance(cleaned.get("options"), list):
            cleaned["options"] = [
                {k: v for k, v in option.items() if k not in HIDDEN_QUESTION_KEYS}
                if isinstance(option, dict) else option
                for option in cleaned["options"]
            ]
        public.append(cleaned)
    return public


def select_questions(setup: dict, company_id: str) -> List[dict]:
    """
    Pick questions for an interview round.

    The setup's collection wins; otherwise the company bank is searched by
    interview type. An empty bank falls back to AI generation.
    """
    limit = int(setup["number_of_questions"])
    if setup.get("question_collection_id"):
        rows = execute_raw_sql(
            f"""
            SELECT * FROM questions
            WHERE collection_id = :collection_id AND company_id = :cid AND is_active = TRUE
            ORDER BY created_at LIMIT {limit}
            """,
            {"collection_id": setup["question_collection_id"], "cid": company_id}
        )
    elif setup["interview_type"] == "combo":
        rows = execute_raw_sql(
            f"SELECT * FROM questions WHERE company_id = :cid AND is_active = TRUE ORDER BY created_at LIMIT {limit}",
            {"cid": company_id}
        )
    else:
        rows = execute_raw_sql(
            f"""
            SELECT * FROM questions
            WHERE company_id = :cid AND question_type = :qtype AND is_active = TRUE
            ORDER BY created_at LIMIT {limit}
            """,
            {"cid": company_id, "qtype": setup["interview_type"]}
        )

    if rows:
        with get_db_session() as db:
            for row in rows:
                db.execute(text("UPDATE questions SET usage_count = usage_count + 1 WHERE id = :id"),
                           {"id": row["id"]})
        return [bank_row_to_question(r) for r in rows]

    logger.info(f"No bank questions for setup {setup['id']}, generating with AI")
    return get_question_service().generate_fallback(
        interview_type=setup["interview_type"],
        job_title=setup["job_title"],
        number_of_questions=limit,
        job_description=setup.get("job_description") or "",
        company_name=setup["company_name"],
        difficulty_level=setup["difficulty_level"],
        company_id=company_id,
    )


def refresh_campaign_analytics(campaign_id: str) -> None:
    """Recompute the funnel numbers for a campaign from its candidates and interviews."""
    values = {}
    rounds = execute_raw_sql(
        """
        SELECT round_number, COUNT(*) AS total,
               SUM(CASE WHEN passed THEN 1 ELSE 0 END) AS shortlisted
        FROM interviews
        WHERE campaign_id = :id AND status != 'cancelled'
        GROUP BY round_number
        """,
        {"id": campaign_id}
    )
    for row in rounds:
        prefix = ROUND_COLUMNS.get(row["round_number"])
        if prefix:
            values[f"{prefix}_interviews"] = row["total"]
            values[f"{prefix}_shortlisted"] = row["shortlisted"] or 0

    funnel = fetch_one(
        """
        SELECT COUNT(*) AS applications,
               SUM(CASE WHEN status = 'hired' THEN 1 ELSE 0 END) AS hires
        FROM candidates WHERE campaign_id = :id
        """,
        {"id": campaign_id}
    )
    average = fetch_one(
        "SELECT AVG(percentage) AS average FROM interviews WHERE campaign_id = :id AND status = 'completed'",
        {"id": campaign_id}
    )["average"]

    applications = funnel["applications"] or 0
    hires = funnel["hires"] or 0
    values["total_applications"] = applications
    values["final_hires"] = hires
    values["average_score"] = round(float(average or 0), 2)
    values["conversion_rate"] = round(hires / applications * 100, 2) if applications else 0

    save_campaign_analytics(campaign_id, values)


def save_interview_analytics(interview: dict, completion_rate: float) -> None:
    values = {
        "company_id": interview["company_id"],
        "interview_type": interview["interview_type"],
        "completion_status": True,
        "candidate_name": interview["candidate_name"],
        "candidate_email": interview["candidate_email"],
        "completion_time": datetime.utcnow(),
        "overall_rating": round_half_up(completion_rate),
    }
    with get_db_session() as db:
        exists = db.execute(
            text("SELECT id FROM interview_analytics WHERE interview_id = :id"), {"id": interview["id"]}
        ).fetchone()
        if exists:
            assignments = ", ".join(f"{c} = :{c}" for c in values)
            db.execute(text(f"UPDATE interview_analytics SET {assignments} WHERE interview_id = :interview_id"),
                       {**values, "interview_id": interview["id"]})
        else:
            db.execute(
                text(f"INSERT INTO interview_analytics (id, interview_id, {', '.join(values)}) "
                     f"VALUES (:id, :interview_id, {', '.join(':' + c for c in values)})"),
                {**values, "id": new_id(), "interview_id": interview["id"]}
            )


# ============================================================
# COMPANY ENDPOINTS
# ============================================================

@router.post("", response_model=InterviewScheduledResponse, status_code=201)
async def schedule_interview(data: InterviewCreate, background_tasks: BackgroundTasks,
                             company: dict = Depends(get_current_company)):
    company_id = company["company_id"]
    candidate = get_owned_candidate(data.candidate_id, company_id)

    setup = fetch_one(
        """
        SELECT s.*, jc.job_title, jc.job_description, co.name AS company_name
        FROM interview_setups s
        JOIN job_campaigns jc ON jc.id = s.campaign_id
        JOIN companies co ON co.id = jc.company_id
        WHERE s.id = :id AND jc.company_id = :cid
        """,
        {"id": data.interview_setup_id, "cid": company_id}
    )
    if not setup:
        raise HTTPException(status_code=404, detail="Interview setup not found")
    if setup["campaign_id"] != candidate["campaign_id"]:
        raise HTTPException(status_code=400, detail="Interview setup does not belong to the candidate's campaign")

    quota = fetch_one("SELECT interviews_used, max_interviews FROM companies WHERE id = :id", {"id": company_id})
    if not is_within_limit(quota["interviews_used"], quota["max_interviews"]):
        raise HTTPException(
            status_code=403,
            detail=f"Interview limit reached ({quota['max_interviews']}). Upgrade your plan to schedule more interviews."
        )

    try:
        questions = select_questions(setup, company_id)
    except (ValueError, QuestionGenerationError) as e:
        logger.error(f"Question selection failed for setup {setup['id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to prepare interview questions")

    interview_id = new_id()
    access_token = secrets.token_urlsafe(32)
    now = datetime.utcnow()
    expires_at = now + timedelta(days=INTERVIEW_TTL_DAYS)
    candidate_name = f"{candidate['first_name']} {candidate['last_name']}"

    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO interviews (id, company_id, campaign_id, candidate_id, interview_setup_id, created_by,
                    candidate_name, candidate_email, interview_type, round_number, difficulty_level, time_limit,
                    passing_score, status, access_token, questions, scheduled_at, expires_at)
                VALUES (:id, :company_id, :campaign_id, :candidate_id, :setup_id, :created_by,
                    :candidate_name, :candidate_email, :interview_type, :round_number, :difficulty_level, :time_limit,
                    :passing_score, 'scheduled', :access_token, :questions, :scheduled_at, :expires_at)
            """),
            {
                "id": interview_id, "company_id": company_id, "campaign_id": candidate["campaign_id"],
                "candidate_id": candidate["id"], "setup_id": setup["id"], "created_by": company["user_id"],
                "candidate_name": candidate_name, "candidate_email": candidate["email"],
                "interview_type": setup["interview_type"], "round_number": setup["round_number"],
                "difficulty_level": setup["difficulty_level"], "time_limit": setup["time_limit"],
                "passing_score": setup["passing_score"], "access_token": access_token,
                "questions": dumps_json(questions), "scheduled_at": data.scheduled_at or now,
                "expires_at": expires_at,
            }
        )
        db.execute(
            text("UPDATE companies SET interviews_used = interviews_used + 1 WHERE id = :id"),
            {"id": company_id}
        )
        if candidate["status"] != "interview":
            db.execute(
                text("UPDATE candidates SET status = 'interview', updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {"id": candidate["id"]}
            )
            record_status_change(db, candidate["id"], candidate["status"], "interview", company["user_id"],
                                 f"Interview scheduled: {setup['round_name']}")

    link = _interview_link(interview_id, access_token)
    if data.send_email:
        sent = get_email_service().send_interview_invitation(
            candidate["email"],
            candidate_name=candidate_name,
            job_title=setup["job_title"],
            company_name=setup["company_name"],
            interview_type=setup["interview_type"],
            interview_link=link,
            expires_at=expires_at.strftime("%B %d, %Y"),
            time_limit=setup["time_limit"],
        )
        if not sent:
            logger.warning(f"Invitation email for interview {interview_id} was not sent")

    interview = _get_owned_interview(interview_id, company_id)
    background_tasks.add_task(trigger_event, company_id, "interview.scheduled", {
        "interviewId": interview_id,
        "candidateId": candidate["id"],
        "campaignId": candidate["campaign_id"],
        "candidateEmail": candidate["email"],
        "interviewType": setup["interview_type"],
        "roundNumber": setup["round_number"],
        "expiresAt": expires_at.isoformat(),
    })

    logger.info(f"Scheduled interview {interview_id} for candidate {candidate['id']}")
    return InterviewScheduledResponse(
        **_to_response(interview).model_dump(), access_token=access_token, interview_link=link
    )


@router.get("", response_model=List[InterviewResponse])
async def list_interviews(
    status: Optional[str] = Query(None),
    campaign_id: Optional[str] = Query(None),
    candidate_id: Optional[str] = Query(None),
    company: dict = Depends(get_current_company)
):
    sql = "SELECT * FROM interviews WHERE company_id = :cid"
    params = {"cid": company["company_id"]}
    if status:
        sql += " AND status = :status"
        params["status"] = status
    if campaign_id:
        sql += " AND campaign_id = :campaign_id"
        params["campaign_id"] = campaign_id
    if candidate_id:
        sql += " AND candidate_id = :candidate_id"
        params["candidate_id"] = candidate_id

    rows = execute_raw_sql(sql + " ORDER BY created_at DESC", params)
    return [_to_response(r) for r in rows]


@router.get("/{interview_id}", response_model=InterviewResponse)
async def get_interview(interview_id: str, company: dict = Depends(get_current_company)):
    return _to_response(_get_owned_interview(interview_id, company["company_id"]))


@router.post("/{interview_id}/cancel", response_model=InterviewResponse)
async def cancel_interview(interview_id: str, background_tasks: BackgroundTasks,
                           company: dict = Depends(get_current_company)):
    interview = _get_owned_interview(interview_id, company["company_id"])
    if interview["status"] in ("completed", "cancelled"):
        raise HTTPException(status_code=400, detail=f"Interview is already {interview['status']}")

    with get_db_session() as db:
        db.execute(
            text("UPDATE interviews SET status = 'cancelled', updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {"id": interview_id}
        )

    background_tasks.add_task(trigger_event, company["company_id"], "interview.cancelled", {
        "interviewId": interview_id,
        "candidateId": interview["candidate_id"],
        "campaignId": interview["campaign_id"],
        "candidateEmail": interview["candidate_email"],
    })
    return _to_response(_get_owned_interview(interview_id, company["company_id"]))


@router.get("/{interview_id}/results", response_model=InterviewResultsResponse)
async def get_results(interview_id: str, company: dict = Depends(get_current_company)):
    interview = _get_owned_interview(interview_id, company["company_id"])
    return InterviewResultsResponse(
        interview=_to_response(interview),
        answers=loads_json(interview.get("answers"), []),
        scoring=loads_json(interview.get("scoring_details"), []),
    )


# ============================================================
# CANDIDATE ENDPOINTS
# ============================================================

@router.post("/{interview_id}/start", response_model=InterviewStartResponse)
async def start_interview(interview_id: str, data: InterviewAccessRequest):
    """
    Candidate opens the interview.

    A scheduled interview moves to in_progress; calling start again while
    in progress returns the same questions.
    """
    interview = _get_interview(interview_id)
    _check_access_token(interview, data.access_token)
    _check_email(interview, data.email)

    if interview["status"] == "completed":
        raise HTTPException(status_code=400, detail="Interview has already been completed")
    if interview["status"] == "cancelled":
        raise HTTPException(status_code=400, detail="Interview has been cancelled")
    if is_expired(interview["expires_at"]):
        raise HTTPException(status_code=410, detail="Interview link has expired")

    started_at = parse_datetime(interview["started_at"])
    if interview["status"] == "scheduled":
        started_at = datetime.utcnow()
        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE interviews SET status = 'in_progress', started_at = :started_at,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id
                """),
                {"started_at": started_at, "id": interview_id}
            )

    return InterviewStartResponse(
        interview_id=interview_id,
        interview_type=interview["interview_type"],
        time_limit=interview["time_limit"],
        questions=strip_answers(loads_json(interview["questions"], [])),
        started_at=started_at,
    )


@router.post("/{interview_id}/submit", response_model=InterviewSubmitResponse)
async def submit_interview(interview_id: str, data: InterviewSubmitRequest, background_tasks: BackgroundTasks):
    interview = _get_interview(interview_id)
    _check_access_token(interview, data.access_token)
    _check_email(interview, data.candidateEmail)

    if interview["status"] == "completed":
        raise HTTPException(status_code=400, detail="Interview has already been completed")
    if interview["status"] == "scheduled":
        raise HTTPException(status_code=400, detail="Interview has not been started")
    if interview["status"] == "cancelled":
        raise HTTPException(status_code=400, detail="Interview has been cancelled")
    if is_expired(interview["expires_at"]):
        raise HTTPException(status_code=410, detail="Interview link has expired")

    questions = loads_json(interview["questions"], [])
    answers = [a.model_dump() for a in data.answers]
    try:
        check_answer_ids(questions, answers)
    except AnswerMismatchError as e:
        raise HTTPException(status_code=400, detail=str(e))

    total = len(answers)
    answered = sum(1 for a in answers if a["answer"].strip())
    completion_rate = min(100.0, round(answered / total * 100, 2)) if total else 0.0

    result = score_interview(questions, answers, interview["interview_type"], interview["passing_score"])

    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE interviews SET status = 'completed', answers = :answers, scoring_details = :details,
                    score = :score, max_score = :max_score, percentage = :percentage, passed = :passed,
                    completion_rate = :completion_rate, total_time_spent = :total_time_spent,
                    completed_at = :completed_at, updated_at = CURRENT_TIMESTAMP
                WHERE id = :id
            """),
            {
                "answers": dumps_json(answers), "details": dumps_json(result["details"]),
                "score": result["score"], "max_score": result["max_score"],
                "percentage": result["percentage"], "passed": result["passed"],
                "completion_rate": completion_rate, "total_time_spent": data.totalTimeSpent,
                "completed_at": datetime.utcnow(), "id": interview_id,
            }
        )
        if interview["candidate_id"]:
            db.execute(
                text("UPDATE candidates SET overall_score = :score, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {"score": result["percentage"], "id": interview["candidate_id"]}
            )

    try:
        save_interview_analytics(interview, completion_rate)
    except SQLAlchemyError as e:
        logger.warning(f"Interview analytics update failed for {interview_id}: {e}")

    if interview["campaign_id"]:
        try:
            refresh_campaign_analytics(interview["campaign_id"])
        except SQLAlchemyError as e:
            logger.warning(f"Campaign analytics update failed for {interview['campaign_id']}: {e}")

    background_tasks.add_task(trigger_event, interview["company_id"], "interview.completed", {
        "interviewId": interview_id,
        "candidateId": interview["candidate_id"],
        "campaignId": interview["campaign_id"],
        "candidateEmail": interview["candidate_email"],
        "score": result["score"],
        "maxScore": result["max_score"],
        "percentage": result["percentage"],
        "passed": result["passed"],
        "completionRate": completion_rate,
    })

    logger.info(f"Interview {interview_id} submitted: {result['percentage']}% ({answered}/{total} answered)")
    return InterviewSubmitResponse(
        interview_id=interview_id,
        status="completed",
        completion_rate=completion_rate,
        score=result["score"],
        max_score=result["max_score"],
        percentage=result["percentage"],
        passed=result["passed"],
    )
