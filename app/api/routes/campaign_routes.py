"""
Campaign Routes

POST /campaigns - Create a job campaign
GET /campaigns - List campaigns (status filter, pagination)
GET /campaigns/{id} - Campaign details
PUT /campaigns/{id} - Update campaign
DELETE /campaigns/{id} - Delete campaign
GET/POST /campaigns/{id}/scoring-parameters - Talent-fit parameters
DELETE /campaigns/{id}/scoring-parameters/{param_id}
GET/POST /campaigns/{id}/interview-setups - Interview rounds
GET/PUT /campaigns/{id}/analytics - Funnel analytics
"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Query
from sqlalchemy import text

from app.core.auth import get_current_company
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.webhook_service import trigger_event
from app.utils.serialization import loads_json, dumps_json
from app.schemas.schemas import (
    CampaignCreate, CampaignUpdate, CampaignResponse, CampaignListResponse,
    ScoringParameterCreate, ScoringParameterResponse,
    InterviewSetupCreate, InterviewSetupResponse,
    CampaignAnalytics, CampaignAnalyticsResponse, MessageResponse
)

logger = get_logger(__name__)

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])

CAMPAIGN_SELECT = """
    SELECT jc.*, (SELECT COUNT(*) FROM candidates c WHERE c.campaign_id = jc.id) AS candidate_count
    FROM job_campaigns jc
"""


def _to_response(row: dict) -> CampaignResponse:
    row["required_skills"] = loads_json(row.get("required_skills"), [])
    return CampaignResponse(**row)


def get_owned_campaign(campaign_id: str, company_id: str) -> dict:
    """Load a campaign, 404 unless it belongs to the company."""
    row = fetch_one(
        f"{CAMPAIGN_SELECT} WHERE jc.id = :id AND jc.company_id = :cid",
        {"id": campaign_id, "cid": company_id}
    )
    if not row:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return row


@router.post("", response_model=CampaignResponse, status_code=201)
async def create_campaign(data: CampaignCreate, background_tasks: BackgroundTasks,
                          company: dict = Depends(get_current_company)):
    if data.salary_min is not None and data.salary_max is not None and data.salary_min > data.salary_max:
        raise HTTPException(status_code=400, detail="salary_min cannot exceed salary_max")

    campaign_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO job_campaigns (id, company_id, created_by, campaign_name, job_title, department, location,
                    experience_level, employee_type, salary_min, salary_max, currency, job_description, requirements,
                    benefits, required_skills, is_remote, target_hire_count, status)
                VALUES (:id, :company_id, :created_by, :campaign_name, :job_title, :department, :location,
                    :experience_level, :employee_type, :salary_min, :salary_max, :currency, :job_description,
                    :requirements, :benefits, :required_skills, :is_remote, :target_hire_count, :status)
            """),
            {
                **data.model_dump(exclude={"required_skills", "status"}),
                "id": campaign_id, "company_id": company["company_id"], "created_by": company["user_id"],
                "required_skills": dumps_json(data.required_skills), "status": data.status.value,
            }
        )

    campaign = _to_response(get_owned_campaign(campaign_id, company["company_id"]))
    background_tasks.add_task(trigger_event, company["company_id"], "job.created", campaign.model_dump(mode="json"))
    logger.info(f"Campaign {campaign_id} created by company {company['company_id']}")
    return campaign


@router.get("", response_model=CampaignListResponse)
async def list_campaigns(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    where = " WHERE jc.company_id = :cid"
    params = {"cid": company["company_id"]}
    if status:
        where += " AND jc.status = :status"
        params["status"] = status

    total = fetch_one(f"SELECT COUNT(*) AS total FROM job_campaigns jc{where}", params)["total"]

    offset = (page - 1) * page_size
    rows = execute_raw_sql(
        f"{CAMPAIGN_SELECT}{where} ORDER BY jc.created_at DESC LIMIT {page_size} OFFSET {offset}",
        params
    )
    return CampaignListResponse(
        campaigns=[_to_response(r) for r in rows], total=total, page=page, page_size=page_size
    )


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(campaign_id: str, company: dict = Depends(get_current_company)):
    return _to_response(get_owned_campaign(campaign_id, company["company_id"]))


@router.put("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(campaign_id: str, data: CampaignUpdate, background_tasks: BackgroundTasks,
                          company: dict = Depends(get_current_company)):
    existing = get_owned_campaign(campaign_id, company["company_id"])

    updates = []
    params = {"id": campaign_id}
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if field == "required_skills":
            value = dumps_json(value)
        elif field == "status":
            value = value.value if hasattr(value, "value") else value
        updates.append(f"{field} = :{field}")
        params[field] = value

    if updates:
        updates.append("updated_at = CURRENT_TIMESTAMP")
        with get_db_session() as db:
            db.execute(text(f"UPDATE job_campaigns SET {', '.join(updates)} WHERE id = :id"), params)

    campaign = _to_response(get_owned_campaign(campaign_id, company["company_id"]))
    payload = campaign.model_dump(mode="json")
    background_tasks.add_task(trigger_event, company["company_id"], "job.updated", payload)
    if existing["status"] != campaign.status:
        if campaign.status == "active":
            background_tasks.add_task(trigger_event, company["company_id"], "job.published", payload)
        elif campaign.status == "closed":
            background_tasks.add_task(trigger_event, company["company_id"], "job.closed", payload)
    return campaign


@router.delete("/{campaign_id}", response_model=MessageResponse)
async def delete_campaign(campaign_id: str, company: dict = Depends(get_current_company)):
    get_owned_campaign(campaign_id, company["company_id"])
    with get_db_session() as db:
        db.execute(text("DELETE FROM job_campaigns WHERE id = :id"), {"id": campaign_id})
    return MessageResponse(message="Campaign deleted")


# ============================================================
# SCORING PARAMETERS
# ============================================================

@router.get("/{campaign_id}/scoring-parameters", response_model=List[ScoringParameterResponse])
async def list_scoring_parameters(campaign_id: str, company: dict = Depends(get_current_company)):
    get_owned_campaign(campaign_id, company["company_id"])
    rows = execute_raw_sql(
        "SELECT * FROM scoring_parameters WHERE campaign_id = :id ORDER BY created_at",
        {"id": campaign_id}
    )
    return [ScoringParameterResponse(**r) for r in rows]


@router.post("/{campaign_id}/scoring-parameters", response_model=ScoringParameterResponse, status_code=201)
async def add_scoring_parameter(campaign_id: str, data: ScoringParameterCreate,
                                company: dict = Depends(get_current_company)):
    get_owned_campaign(campaign_id, company["company_id"])
    param_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO scoring_parameters
                    (id, campaign_id, parameter_type, parameter_name, weight, proficiency_level, is_required, description)
                VALUES (:id, :campaign_id, :parameter_type, :parameter_name, :weight, :proficiency_level,
                        :is_required, :description)
            """),
            {**data.model_dump(), "parameter_type": data.parameter_type.value, "id": param_id, "campaign_id": campaign_id}
        )
    return ScoringParameterResponse(**fetch_one("SELECT * FROM scoring_parameters WHERE id = :id", {"id": param_id}))


@router.delete("/{campaign_id}/scoring-parameters/{param_id}", response_model=MessageResponse)
async def delete_scoring_parameter(campaign_id: str, param_id: str, company: dict = Depends(get_current_company)):
    get_owned_campaign(campaign_id, company["company_id"])
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM scoring_parameters WHERE id = :id AND campaign_id = :cid"),
            {"id": param_id, "cid": campaign_id}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Scoring parameter not found")
    return MessageResponse(message="Scoring parameter deleted")


# ============================================================
# INTERVIEW SETUPS
# ============================================================

@router.get("/{campaign_id}/interview-setups", response_model=List[InterviewSetupResponse])
async def list_interview_setups(campaign_id: str, company: dict = Depends(get_current_company)):
    get_owned_campaign(campaign_id, company["company_id"])
    rows = execute_raw_sql(
        "SELECT * FROM interview_setups WHERE campaign_id = :id ORDER BY round_number",
        {"id": campaign_id}
    )
    return [InterviewSetupResponse(**r) for r in rows]


@router.post("/{campaign_id}/interview-setups", response_model=InterviewSetupResponse, status_code=201)
async def add_interview_setup(campaign_id: str, data: InterviewSetupCreate,
                              company: dict = Depends(get_current_company)):
    get_owned_campaign(campaign_id, company["company_id"])

    if fetch_one(
        "SELECT id FROM interview_setups WHERE campaign_id = :cid AND round_number = :round",
        {"cid": campaign_id, "round": data.round_number}
    ):
        raise HTTPException(status_code=400, detail=f"Round {data.round_number} already exists for this campaign")

    if data.question_collection_id and not fetch_one(
        "SELECT id FROM question_collections WHERE id = :id AND company_id = :cid",
        {"id": data.question_collection_id, "cid": company["company_id"]}
    ):
        raise HTTPException(status_code=404, detail="Question collection not found")

    setup_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO interview_setups (id, campaign_id, round_number, round_name, interview_type, time_limit,
                    number_of_questions, difficulty_level, passing_score, instructions, question_collection_id)
                VALUES (:id, :campaign_id, :round_number, :round_name, :interview_type, :time_limit,
                    :number_of_questions, :difficulty_level, :passing_score, :instructions, :question_collection_id)
            """),
            {
                **data.model_dump(), "id": setup_id, "campaign_id": campaign_id,
                "interview_type": data.interview_type.value, "difficulty_level": data.difficulty_level.value,
            }
        )
    return InterviewSetupResponse(**fetch_one("SELECT * FROM interview_setups WHERE id = :id", {"id": setup_id}))


# ============================================================
# ANALYTICS
# ============================================================

@router.get("/{campaign_id}/analytics", response_model=CampaignAnalyticsResponse)
async def get_campaign_analytics(campaign_id: str, company: dict = Depends(get_current_company)):
    """Stored analytics row, or all zeros when nothing has been recorded yet."""
    get_owned_campaign(campaign_id, company["company_id"])
    row = fetch_one("SELECT * FROM campaign_analytics WHERE campaign_id = :id", {"id": campaign_id})
    if not row:
        return CampaignAnalyticsResponse(campaign_id=campaign_id)
    return CampaignAnalyticsResponse(**row)


def save_campaign_analytics(campaign_id: str, values: dict) -> None:
    """Insert or update the campaign's analytics row."""
    columns = list(values.keys())

    with get_db_session() as db:
        exists = db.execute(
            text("SELECT id FROM campaign_analytics WHERE campaign_id = :id"), {"id": campaign_id}
        ).fetchone()
        if exists:
            assignments = ", ".join(f"{c} = :{c}" for c in columns)
            db.execute(
                text(f"UPDATE campaign_analytics SET {assignments}, updated_at = CURRENT_TIMESTAMP "
                     f"WHERE campaign_id = :campaign_id"),
                {**values, "campaign_id": campaign_id}
            )
        else:
            db.execute(
                text(f"INSERT INTO campaign_analytics (id, campaign_id, {', '.join(columns)}) "
                     f"VALUES (:id, :campaign_id, {', '.join(':' + c for c in columns)})"),
                {**values, "id": new_id(), "campaign_id": campaign_id}
            )


@router.put("/{campaign_id}/analytics", response_model=CampaignAnalyticsResponse)
async def upsert_campaign_analytics(campaign_id: str, data: CampaignAnalytics,
                                    company: dict = Depends(get_current_company)):
    get_owned_campaign(campaign_id, company["company_id"])
    save_campaign_analytics(campaign_id, data.model_dump())
    return CampaignAnalyticsResponse(**fetch_one("SELECT * FROM campaign_analytics WHERE campaign_id = :id",
                                                 {"id": campaign_id}))
