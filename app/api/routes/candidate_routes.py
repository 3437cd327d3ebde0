"""
Candidate Routes

POST /candidates - Add a candidate to a campaign
GET /candidates - List candidates (campaign, status, search filters)
GET /candidates/{id} - Candidate details
PUT /candidates/{id} - Update candidate
DELETE /candidates/{id} - Remove candidate
PUT /candidates/{id}/status - Move through the pipeline
GET /candidates/{id}/history - Status history
POST /candidates/{id}/resume - Upload + AI-parse resume
POST /candidates/{id}/talent-fit-score - Score against campaign parameters
"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, File, Query, UploadFile
from sqlalchemy import text

from app.api.routes.campaign_routes import get_owned_campaign
from app.core.auth import get_current_company
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.ai_parsing_service import get_resume_parser
from app.services.rate_limiter import rate_limit
from app.services.talent_fit_service import get_talent_fit_service
from app.services.webhook_service import trigger_event
from app.utils.file_upload import extract_text_from_file
from app.utils.serialization import loads_json
from app.schemas.schemas import (
    CandidateCreate, CandidateUpdate, CandidateStatusUpdate, CandidateResponse, CandidateListResponse,
    StatusHistoryResponse, ResumeUploadResponse, TalentFitResponse, MessageResponse
)

logger = get_logger(__name__)

router = APIRouter(prefix="/candidates", tags=["Candidates"])


def _to_response(row: dict) -> CandidateResponse:
    row["ai_parsed_data"] = loads_json(row.get("ai_parsed_data"))
    return CandidateResponse(**row)


def get_owned_candidate(candidate_id: str, company_id: str) -> dict:
    row = fetch_one(
        "SELECT * FROM candidates WHERE id = :id AND company_id = :cid",
        {"id": candidate_id, "cid": company_id}
    )
    if not row:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return row


def record_status_change(db, candidate_id: str, from_status: Optional[str], to_status: str,
                         changed_by: Optional[str], notes: Optional[str] = None) -> None:
    db.execute(
        text("""
            INSERT INTO application_status_history (id, candidate_id, from_status, to_status, changed_by, notes)
            VALUES (:id, :candidate_id, :from_status, :to_status, :changed_by, :notes)
        """),
        {"id": new_id(), "candidate_id": candidate_id, "from_status": from_status,
         "to_status": to_status, "changed_by": changed_by, "notes": notes}
    )


@router.post("", response_model=CandidateResponse, status_code=201)
async def create_candidate(data: CandidateCreate, background_tasks: BackgroundTasks,
                           company: dict = Depends(get_current_company)):
    get_owned_campaign(data.campaign_id, company["company_id"])
    email = data.email.lower()

    if fetch_one(
        "SELECT id FROM candidates WHERE campaign_id = :cid AND email = :email",
        {"cid": data.campaign_id, "email": email}
    ):
        raise HTTPException(status_code=400, detail="Candidate with this email already exists in this campaign")

    candidate_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO candidates (id, campaign_id, company_id, first_name, last_name, email, phone,
                    linkedin_url, portfolio_url, experience_years, current_company, current_position, location,
                    source, notes, status)
                VALUES (:id, :campaign_id, :company_id, :first_name, :last_name, :email, :phone,
                    :linkedin_url, :portfolio_url, :experience_years, :current_company, :current_position, :location,
                    :source, :notes, 'applied')
            """),
            {**data.model_dump(), "email": email, "id": candidate_id, "company_id": company["company_id"]}
        )
        record_status_change(db, candidate_id, None, "applied", company["user_id"], "Candidate added")

    candidate = _to_response(get_owned_candidate(candidate_id, company["company_id"]))
    background_tasks.add_task(trigger_event, company["company_id"], "candidate.created",
                              candidate.model_dump(mode="json"))
    return candidate


@router.get("", response_model=CandidateListResponse)
async def list_candidates(
    campaign_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search in name or email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    where = " WHERE company_id = :cid"
    params = {"cid": company["company_id"]}

    if campaign_id:
        where += " AND campaign_id = :campaign_id"
        params["campaign_id"] = campaign_id
    if status:
        where += " AND status = :status"
        params["status"] = status
    if search:
        where += (" AND (LOWER(first_name) LIKE :search OR LOWER(last_name) LIKE :search"
                  " OR LOWER(email) LIKE :search)")
        params["search"] = f"%{search.lower()}%"

    total = fetch_one(f"SELECT COUNT(*) AS total FROM candidates{where}", params)["total"]
    offset = (page - 1) * page_size
    rows = execute_raw_sql(
        f"SELECT * FROM candidates{where} ORDER BY created_at DESC LIMIT {page_size} OFFSET {offset}",
        params
    )
    return CandidateListResponse(
        candidates=[_to_response(r) for r in rows], total=total, page=page, page_size=page_size
    )


@router.get("/{candidate_id}", response_model=CandidateResponse)
async def get_candidate(candidate_id: str, company: dict = Depends(get_current_company)):
    return _to_response(get_owned_candidate(candidate_id, company["company_id"]))


@router.put("/{candidate_id}", response_model=CandidateResponse)
async def update_candidate(candidate_id: str, data: CandidateUpdate, background_tasks: BackgroundTasks,
                           company: dict = Depends(get_current_company)):
    get_owned_candidate(candidate_id, company["company_id"])

    updates = []
    params = {"id": candidate_id}
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        updates.append(f"{field} = :{field}")
        params[field] = value

    if updates:
        updates.append("updated_at = CURRENT_TIMESTAMP")
        with get_db_session() as db:
            db.execute(text(f"UPDATE candidates SET {', '.join(updates)} WHERE id = :id"), params)

    candidate = _to_response(get_owned_candidate(candidate_id, company["company_id"]))
    background_tasks.add_task(trigger_event, company["company_id"], "candidate.updated",
                              candidate.model_dump(mode="json"))
    return candidate


@router.delete("/{candidate_id}", response_model=MessageResponse)
async def delete_candidate(candidate_id: str, company: dict = Depends(get_current_company)):
    get_owned_candidate(candidate_id, company["company_id"])
    with get_db_session() as db:
        db.execute(text("DELETE FROM candidates WHERE id = :id"), {"id": candidate_id})
    return MessageResponse(message="Candidate deleted")


@router.put("/{candidate_id}/status", response_model=CandidateResponse)
async def update_status(candidate_id: str, data: CandidateStatusUpdate, background_tasks: BackgroundTasks,
                        company: dict = Depends(get_current_company)):
    current = get_owned_candidate(candidate_id, company["company_id"])
    new_status = data.status.value

    with get_db_session() as db:
        db.execute(
            text("UPDATE candidates SET status = :status, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {"status": new_status, "id": candidate_id}
        )
        record_status_change(db, candidate_id, current["status"], new_status, company["user_id"], data.notes)

    background_tasks.add_task(trigger_event, company["company_id"], "candidate.status_changed", {
        "candidateId": candidate_id,
        "campaignId": current["campaign_id"],
        "email": current["email"],
        "previousStatus": current["status"],
        "newStatus": new_status,
        "notes": data.notes,
    })
    return _to_response(get_owned_candidate(candidate_id, company["company_id"]))


@router.get("/{candidate_id}/history", response_model=List[StatusHistoryResponse])
async def get_history(candidate_id: str, company: dict = Depends(get_current_company)):
    get_owned_candidate(candidate_id, company["company_id"])
    rows = execute_raw_sql(
        "SELECT * FROM application_status_history WHERE candidate_id = :id ORDER BY changed_at",
        {"id": candidate_id}
    )
    return [StatusHistoryResponse(**r) for r in rows]


@router.post("/{candidate_id}/resume", response_model=ResumeUploadResponse,
             dependencies=[Depends(rate_limit("upload"))])
async def upload_resume(candidate_id: str, file: UploadFile = File(...),
                        company: dict = Depends(get_current_company)):
    """
    Upload a resume (PDF, DOCX or TXT, max 5MB) and parse it with AI.

    An AI failure still returns 200 with success=false; the raw text is kept.
    """
    get_owned_candidate(candidate_id, company["company_id"])
    resume_text, filename = await extract_text_from_file(file)

    with get_db_session() as db:
        db.execute(
            text("UPDATE candidates SET resume_url = :filename, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {"filename": filename, "id": candidate_id}
        )

    result = get_resume_parser().parse_and_store(candidate_id, resume_text, filename)

    if not result["success"]:
        return ResumeUploadResponse(
            success=False,
            message=f"Resume uploaded but AI parsing failed: {result['error']}",
            filename=filename
        )

    parsed = result["parsed_data"]
    return ResumeUploadResponse(
        success=True,
        message="Resume uploaded and parsed successfully",
        filename=filename,
        extracted_skills=parsed.get("skills", []),
        parsed_data=parsed
    )


@router.post("/{candidate_id}/talent-fit-score", response_model=TalentFitResponse,
             dependencies=[Depends(rate_limit("ai"))])
async def calculate_talent_fit(candidate_id: str, company: dict = Depends(get_current_company)):
    candidate = get_owned_candidate(candidate_id, company["company_id"])
    resume_data = loads_json(candidate["ai_parsed_data"])

    result = get_talent_fit_service().calculate(
        candidate_id, candidate["campaign_id"], resume_data, scored_by=company["user_id"]
    )
    return TalentFitResponse(**result)
