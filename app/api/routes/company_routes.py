"""
Company Routes

GET /companies/profile - Get own company profile
PUT /companies/profile - Update profile
GET /companies/usage - Plan limits vs. usage
GET /companies/team - List team members
POST /companies/team - Add a team member (bounded by the plan's max_users)
"""

from typing import List

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from app.core.auth import get_current_company, hash_password
from app.core.config import get_settings
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.email_service import get_email_service
from app.services.plan_config import get_plan_config, format_limit, is_within_limit
from app.schemas.schemas import (
    CompanyUpdate, CompanyResponse, UsageResponse, TeamMemberCreate, UserResponse
)

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(prefix="/companies", tags=["Companies"])

COMPANY_COLUMNS = """
    id, name, email, phone, website, domain, industry, company_size, description,
    subscription_plan, subscription_status, max_interviews, max_users, interviews_used, is_active, created_at
"""


def get_company_row(company_id: str) -> dict:
    row = fetch_one(f"SELECT {COMPANY_COLUMNS} FROM companies WHERE id = :id", {"id": company_id})
    if not row:
        raise HTTPException(status_code=404, detail="Company not found")
    return row


@router.get("/profile", response_model=CompanyResponse)
async def get_profile(company: dict = Depends(get_current_company)):
    """Get current company's profile."""
    return CompanyResponse(**get_company_row(company["company_id"]))


@router.put("/profile", response_model=CompanyResponse)
async def update_profile(data: CompanyUpdate, company: dict = Depends(get_current_company)):
    """Update company profile. Only provided fields are changed."""
    updates = []
    params = {"id": company["company_id"]}

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        updates.append(f"{field} = :{field}")
        params[field] = value.strip().lower() if field == "domain" else value

    if "domain" in params:
        clash = fetch_one(
            "SELECT id FROM companies WHERE domain = :domain AND id != :id",
            {"domain": params["domain"], "id": company["company_id"]}
        )
        if clash:
            raise HTTPException(status_code=400, detail="Domain already in use by another company")

    if updates:
        updates.append("updated_at = CURRENT_TIMESTAMP")
        with get_db_session() as db:
            db.execute(text(f"UPDATE companies SET {', '.join(updates)} WHERE id = :id"), params)

    return CompanyResponse(**get_company_row(company["company_id"]))


@router.get("/usage", response_model=UsageResponse)
async def get_usage(company: dict = Depends(get_current_company)):
    row = get_company_row(company["company_id"])
    users = fetch_one(
        "SELECT COUNT(*) AS total FROM users WHERE company_id = :id AND is_active = TRUE",
        {"id": company["company_id"]}
    )["total"]
    plan = get_plan_config(row["subscription_plan"])

    return UsageResponse(
        plan=plan["name"],
        plan_label=plan["label"],
        interviews_used=row["interviews_used"],
        max_interviews=row["max_interviews"],
        max_interviews_label=format_limit(row["max_interviews"]),
        users=users,
        max_users=row["max_users"],
        max_users_label=format_limit(row["max_users"]),
    )


@router.get("/team", response_model=List[UserResponse])
async def list_team(company: dict = Depends(get_current_company)):
    rows = execute_raw_sql(
        """
        SELECT id, email, first_name, last_name, role, company_id, is_active, email_verified, last_login, created_at
        FROM users WHERE company_id = :id ORDER BY created_at
        """,
        {"id": company["company_id"]}
    )
    return [UserResponse(**r) for r in rows]


@router.post("/team", response_model=UserResponse, status_code=201)
async def add_team_member(data: TeamMemberCreate, company: dict = Depends(get_current_company)):
    """Add a company user. Fails with 403 once the plan's user limit is reached."""
    row = get_company_row(company["company_id"])
    current = fetch_one(
        "SELECT COUNT(*) AS total FROM users WHERE company_id = :id AND is_active = TRUE",
        {"id": company["company_id"]}
    )["total"]

    if not is_within_limit(current, row["max_users"]):
        raise HTTPException(
            status_code=403,
            detail=f"Team member limit reached ({row['max_users']}). Upgrade your plan to add more users."
        )

    email = data.email.lower()
    user_id = new_id()
    with get_db_session() as db:
        if db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": email}).fetchone():
            raise HTTPException(status_code=400, detail="Email already registered")
        db.execute(
            text("""
                INSERT INTO users (id, email, password_hash, first_name, last_name, role, company_id)
                VALUES (:id, :email, :password_hash, :first_name, :last_name, 'company', :company_id)
            """),
            {
                "id": user_id, "email": email, "password_hash": hash_password(data.password),
                "first_name": data.first_name, "last_name": data.last_name, "company_id": company["company_id"],
            }
        )

    inviter = " ".join(filter(None, [company.get("first_name"), company.get("last_name")])) or company["email"]
    get_email_service().send_team_invite(
        email,
        first_name=data.first_name,
        company_name=row["name"],
        inviter_name=inviter,
        login_url=f"{settings.app_base_url.rstrip('/')}/auth/signin",
    )

    logger.info(f"Company {company['company_id']} added team member {email}")
    member = fetch_one(
        """
        SELECT id, email, first_name, last_name, role, company_id, is_active, email_verified, last_login, created_at
        FROM users WHERE id = :id
        """,
        {"id": user_id}
    )
    return UserResponse(**member)
