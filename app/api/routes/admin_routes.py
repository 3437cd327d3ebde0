"""
Admin Routes (super-admin only)

GET /admin/companies - List / search companies
GET /admin/companies/{id} - Company details with usage counts
PUT /admin/companies/{id} - Change plan, status or activation
GET /admin/users - List users
PUT /admin/users/{id} - Activate / deactivate a user or change role
GET /admin/analytics - Platform totals
GET /admin/activity-logs - Admin audit trail
GET/POST/PUT/DELETE /admin/subscription-plans - Plan management
GET /admin/subscription-transactions - Payment history
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query, Request
from sqlalchemy import text

from app.core.auth import get_super_admin
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.plan_config import get_plan_config, normalize_plan_name
from app.utils.serialization import loads_json, dumps_json
from app.schemas.schemas import (
    AdminCompanyUpdate, AdminUserUpdate, CompanyResponse, UserResponse, SubscriptionPlanCreate,
    PlatformAnalyticsResponse, ActivityLogResponse, MessageResponse
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

USER_COLUMNS = "id, email, first_name, last_name, role, company_id, is_active, email_verified, last_login, created_at"


def log_admin_action(admin: dict, action: str, target_type: str, target_id: str,
                     details: Optional[dict] = None, request: Optional[Request] = None) -> None:
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO admin_activity_logs (id, admin_id, action, target_type, target_id, details, ip_address)
                VALUES (:id, :admin_id, :action, :target_type, :target_id, :details, :ip)
            """),
            {
                "id": new_id(), "admin_id": admin["user_id"], "action": action,
                "target_type": target_type, "target_id": target_id,
                "details": dumps_json(details or {}),
                "ip": request.client.host if request and request.client else None,
            }
        )
    logger.info(f"Admin {admin['email']} {action} {target_type} {target_id}")


def _get_company(company_id: str) -> dict:
    row = fetch_one("SELECT * FROM companies WHERE id = :id", {"id": company_id})
    if not row:
        raise HTTPException(status_code=404, detail="Company not found")
    return row


# ============================================================
# COMPANIES
# ============================================================

@router.get("/companies")
async def list_companies(
    search: Optional[str] = Query(None, description="Search name, email or domain"),
    plan: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_super_admin)
):
    where = " WHERE 1 = 1"
    params = {}
    if search:
        where += " AND (LOWER(name) LIKE :search OR LOWER(email) LIKE :search OR LOWER(domain) LIKE :search)"
        params["search"] = f"%{search.lower()}%"
    if plan:
        where += " AND subscription_plan = :plan"
        params["plan"] = plan

    total = fetch_one(f"SELECT COUNT(*) AS total FROM companies{where}", params)["total"]
    offset = (page - 1) * page_size
    rows = execute_raw_sql(
        f"SELECT * FROM companies{where} ORDER BY created_at DESC LIMIT {page_size} OFFSET {offset}",
        params
    )
    return {
        "companies": [CompanyResponse(**r) for r in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/companies/{company_id}")
async def get_company(company_id: str, admin: dict = Depends(get_super_admin)):
    company = _get_company(company_id)
    counts = fetch_one(
        """
        SELECT
            (SELECT COUNT(*) FROM users WHERE company_id = :id) AS users,
            (SELECT COUNT(*) FROM job_campaigns WHERE company_id = :id) AS campaigns,
            (SELECT COUNT(*) FROM candidates WHERE company_id = :id) AS candidates,
            (SELECT COUNT(*) FROM interviews WHERE company_id = :id) AS interviews
        """,
        {"id": company_id}
    )
    return {"company": CompanyResponse(**company), "stats": counts}


@router.put("/companies/{company_id}", response_model=CompanyResponse)
async def update_company(company_id: str, data: AdminCompanyUpdate, request: Request,
                         admin: dict = Depends(get_super_admin)):
    """A plan change also resets the company's limits to the plan's catalogue values."""
    before = _get_company(company_id)
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

    if "subscription_plan" in changes:
        plan = get_plan_config(changes["subscription_plan"])
        changes["subscription_plan"] = normalize_plan_name(changes["subscription_plan"])
        changes["max_interviews"] = plan["max_interviews"]
        changes["max_users"] = plan["max_users"]

    if changes:
        assignments = ", ".join(f"{field} = :{field}" for field in changes)
        with get_db_session() as db:
            db.execute(
                text(f"UPDATE companies SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {**changes, "id": company_id}
            )
        log_admin_action(admin, "update_company", "company", company_id, {
            "changes": changes,
            "previous_plan": before["subscription_plan"],
        }, request)

    return CompanyResponse(**_get_company(company_id))


# ============================================================
# USERS
# ============================================================

@router.get("/users")
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    company_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_super_admin)
):
    where = " WHERE 1 = 1"
    params = {}
    if search:
        where += (" AND (LOWER(email) LIKE :search OR LOWER(first_name) LIKE :search"
                  " OR LOWER(last_name) LIKE :search)")
        params["search"] = f"%{search.lower()}%"
    if role:
        where += " AND role = :role"
        params["role"] = role
    if company_id:
        where += " AND company_id = :company_id"
        params["company_id"] = company_id

    total = fetch_one(f"SELECT COUNT(*) AS total FROM users{where}", params)["total"]
    offset = (page - 1) * page_size
    rows = execute_raw_sql(
        f"SELECT {USER_COLUMNS} FROM users{where} ORDER BY created_at DESC LIMIT {page_size} OFFSET {offset}",
        params
    )
    return {"users": [UserResponse(**r) for r in rows], "total": total, "page": page, "page_size": page_size}


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: str, data: AdminUserUpdate, request: Request,
                      admin: dict = Depends(get_super_admin)):
    if not fetch_one("SELECT id FROM users WHERE id = :id", {"id": user_id}):
        raise HTTPException(status_code=404, detail="User not found")
    if user_id == admin["user_id"] and data.is_active is False:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if "role" in changes:
        changes["role"] = changes["role"].value

    if changes:
        assignments = ", ".join(f"{field} = :{field}" for field in changes)
        with get_db_session() as db:
            db.execute(
                text(f"UPDATE users SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {**changes, "id": user_id}
            )
        log_admin_action(admin, "update_user", "user", user_id, {"changes": changes}, request)

    return UserResponse(**fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = :id", {"id": user_id}))


# ============================================================
# ANALYTICS & AUDIT
# ============================================================

@router.get("/analytics", response_model=PlatformAnalyticsResponse)
async def platform_analytics(admin: dict = Depends(get_super_admin)):
    totals = fetch_one(
        """
        SELECT
            (SELECT COUNT(*) FROM companies) AS total_companies,
            (SELECT COUNT(*) FROM companies WHERE is_active = TRUE) AS active_companies,
            (SELECT COUNT(*) FROM users) AS total_users,
            (SELECT COUNT(*) FROM candidates) AS total_candidates,
            (SELECT COUNT(*) FROM job_campaigns) AS total_campaigns,
            (SELECT COUNT(*) FROM interviews) AS total_interviews,
            (SELECT COUNT(*) FROM interviews WHERE status = 'completed') AS completed_interviews,
            (SELECT COALESCE(SUM(amount), 0) FROM subscription_transactions WHERE status = 'succeeded')
                AS total_revenue
        """
    )
    plans = execute_raw_sql(
        "SELECT subscription_plan, COUNT(*) AS total FROM companies GROUP BY subscription_plan"
    )
    return PlatformAnalyticsResponse(
        **totals,
        plan_distribution={row["subscription_plan"]: row["total"] for row in plans},
    )


@router.get("/activity-logs", response_model=List[ActivityLogResponse])
async def activity_logs(
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(get_super_admin)
):
    sql = "SELECT * FROM admin_activity_logs"
    params = {}
    if action:
        sql += " WHERE action = :action"
        params["action"] = action
    rows = execute_raw_sql(f"{sql} ORDER BY created_at DESC LIMIT {limit}", params)
    for row in rows:
        row["details"] = loads_json(row.get("details"))
    return [ActivityLogResponse(**r) for r in rows]


# ============================================================
# SUBSCRIPTION PLANS
# ============================================================

def _plan_row(plan_id: str) -> dict:
    row = fetch_one("SELECT * FROM subscription_plans WHERE id = :id", {"id": plan_id})
    if not row:
        raise HTTPException(status_code=404, detail="Subscription plan not found")
    row["features"] = loads_json(row.get("features"), [])
    return row


@router.get("/subscription-plans")
async def list_subscription_plans(admin: dict = Depends(get_super_admin)):
    rows = execute_raw_sql("SELECT * FROM subscription_plans ORDER BY monthly_price")
    for row in rows:
        row["features"] = loads_json(row.get("features"), [])
    return {"plans": rows}


@router.post("/subscription-plans", status_code=201)
async def create_subscription_plan(data: SubscriptionPlanCreate, request: Request,
                                   admin: dict = Depends(get_super_admin)):
    name = data.name.strip().lower()
    if fetch_one("SELECT id FROM subscription_plans WHERE name = :name", {"name": name}):
        raise HTTPException(status_code=400, detail="A plan with this name already exists")

    plan_id = new_id()
    values = {**data.model_dump(), "name": name, "features": dumps_json(data.features)}
    columns = list(values.keys())
    with get_db_session() as db:
        db.execute(
            text(f"INSERT INTO subscription_plans (id, {', '.join(columns)}) "
                 f"VALUES (:id, {', '.join(':' + c for c in columns)})"),
            {**values, "id": plan_id}
        )
    log_admin_action(admin, "create_plan", "subscription_plan", plan_id, {"name": name}, request)
    return _plan_row(plan_id)


@router.put("/subscription-plans/{plan_id}")
async def update_subscription_plan(plan_id: str, data: SubscriptionPlanCreate, request: Request,
                                   admin: dict = Depends(get_super_admin)):
    _plan_row(plan_id)
    values = {**data.model_dump(), "name": data.name.strip().lower(), "features": dumps_json(data.features)}
    assignments = ", ".join(f"{field} = :{field}" for field in values)
    with get_db_session() as db:
        db.execute(
            text(f"UPDATE subscription_plans SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {**values, "id": plan_id}
        )
    log_admin_action(admin, "update_plan", "subscription_plan", plan_id, {"name": values["name"]}, request)
    return _plan_row(plan_id)


@router.delete("/subscription-plans/{plan_id}", response_model=MessageResponse)
async def delete_subscription_plan(plan_id: str, request: Request, admin: dict = Depends(get_super_admin)):
    plan = _plan_row(plan_id)
    with get_db_session() as db:
        db.execute(text("DELETE FROM subscription_plans WHERE id = :id"), {"id": plan_id})
    log_admin_action(admin, "delete_plan", "subscription_plan", plan_id, {"name": plan["name"]}, request)
    return MessageResponse(message="Subscription plan deleted")


@router.get("/subscription-transactions")
async def list_transactions(
    company_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    admin: dict = Depends(get_super_admin)
):
    where = " WHERE 1 = 1"
    params = {}
    if company_id:
        where += " AND t.company_id = :company_id"
        params["company_id"] = company_id
    if status:
        where += " AND t.status = :status"
        params["status"] = status

    offset = (page - 1) * page_size
    rows = execute_raw_sql(
        f"""
        SELECT t.*, c.name AS company_name
        FROM subscription_transactions t
        LEFT JOIN companies c ON c.id = t.company_id
        {where}
        ORDER BY t.created_at DESC LIMIT {page_size} OFFSET {offset}
        """,
        params
    )
    return {"transactions": rows, "page": page, "page_size": page_size}
