"""
Authentication Routes

POST /auth/register - Register a company and its owner account
POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
POST /auth/otp/send - Email a one-time code
POST /auth/otp/verify - Verify a one-time code (signin issues a token)
POST /auth/domain-detection - Find SSO options for an email domain
"""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from app.core.auth import hash_password, verify_password, create_user_token, get_current_user
from app.core.config import get_settings
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.email_service import get_email_service
from app.services.otp_service import issue_otp, verify_otp
from app.services.plan_config import get_plan_config
from app.services.rate_limiter import rate_limit
from app.utils.serialization import loads_json
from app.schemas.schemas import (
    RegisterRequest, LoginRequest, TokenResponse, UserResponse, MessageResponse,
    OtpSendRequest, OtpVerifyRequest, OtpVerifyResponse, DomainDetectionRequest
)

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=TokenResponse, status_code=201,
             dependencies=[Depends(rate_limit("auth"))])
async def register(request: RegisterRequest):
    """
    Register a new company account.

    Creates the company on the free plan and its owner user, then logs in.
    """
    email = request.email.lower()
    domain = (request.company_domain or "").strip().lower() or None
    free = get_plan_config("free")

    with get_db_session() as db:
        result = db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": email})
        if result.fetchone():
            raise HTTPException(status_code=400, detail="Email already registered")

        if domain:
            result = db.execute(text("SELECT id FROM companies WHERE domain = :domain"), {"domain": domain})
            if result.fetchone():
                raise HTTPException(status_code=400, detail="A company with this domain already exists")

        company_id = new_id()
        user_id = new_id()
        db.execute(
            text("""
                INSERT INTO companies (id, name, email, domain, subscription_plan, max_interviews, max_users)
                VALUES (:id, :name, :email, :domain, 'free', :max_interviews, :max_users)
            """),
            {
                "id": company_id, "name": request.company_name, "email": email, "domain": domain,
                "max_interviews": free["max_interviews"], "max_users": free["max_users"],
            }
        )
        db.execute(
            text("""
                INSERT INTO users (id, email, password_hash, first_name, last_name, role, company_id)
                VALUES (:id, :email, :password_hash, :first_name, :last_name, 'company', :company_id)
            """),
            {
                "id": user_id, "email": email, "password_hash": hash_password(request.password),
                "first_name": request.first_name, "last_name": request.last_name, "company_id": company_id,
            }
        )

    logger.info(f"Registered company {company_id} with owner {email}")
    token = create_user_token(user_id, email, "company", company_id)
    return TokenResponse(access_token=token, user_id=user_id, role="company", company_id=company_id)


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(rate_limit("auth"))])
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    with get_db_session() as db:
        result = db.execute(
            text("SELECT id, password_hash, role, is_active, company_id FROM users WHERE email = :email"),
            {"email": request.email.lower()}
        )
        user = result.fetchone()

    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    user_id, password_hash, role, is_active, company_id = user

    if not verify_password(request.password, password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not is_active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    with get_db_session() as db:
        db.execute(text("UPDATE users SET last_login = :now WHERE id = :id"), {"now": datetime.utcnow(), "id": user_id})

    token = create_user_token(user_id, request.email.lower(), role, company_id)
    return TokenResponse(access_token=token, user_id=user_id, role=role, company_id=company_id)


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info."""
    row = fetch_one(
        """
        SELECT id, email, first_name, last_name, role, company_id, is_active, email_verified, last_login, created_at
        FROM users WHERE id = :id
        """,
        {"id": user["user_id"]}
    )
    return UserResponse(**row)


# ============================================================
# OTP
# ============================================================

@router.post("/otp/send", response_model=MessageResponse, dependencies=[Depends(rate_limit("otp"))])
async def send_otp(request: OtpSendRequest):
    email = request.email.lower()
    purpose = request.purpose.value

    existing = fetch_one("SELECT id, is_active FROM users WHERE email = :email", {"email": email})
    if purpose == "signup" and existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    if purpose == "signin" and (not existing or not existing["is_active"]):
        raise HTTPException(status_code=404, detail="No active account for this email")

    code = issue_otp(email, purpose)
    if not get_email_service().send_otp(email, code, purpose):
        raise HTTPException(status_code=500, detail="Failed to send verification email")

    return MessageResponse(message="Verification code sent")


@router.post("/otp/verify", response_model=OtpVerifyResponse, dependencies=[Depends(rate_limit("auth"))])
async def verify_otp_code(request: OtpVerifyRequest):
    email = request.email.lower()
    purpose = request.purpose.value

    result = verify_otp(email, request.code, purpose)
    if not result["success"]:
        raise HTTPException(status_code=400, detail=result["error"])

    if purpose != "signin":
        return OtpVerifyResponse(verified=True, message="Verification successful")

    user = fetch_one(
        "SELECT id, email, role, company_id, is_active FROM users WHERE email = :email",
        {"email": email}
    )
    if not user or not user["is_active"]:
        raise HTTPException(status_code=404, detail="User not found or inactive")

    with get_db_session() as db:
        db.execute(
            text("UPDATE users SET last_login = :now, email_verified = TRUE WHERE id = :id"),
            {"now": datetime.utcnow(), "id": user["id"]}
        )

    token = create_user_token(user["id"], user["email"], user["role"], user["company_id"])
    return OtpVerifyResponse(verified=True, message="Signed in", access_token=token)


# ============================================================
# SSO DISCOVERY
# ============================================================

@router.post("/domain-detection")
async def detect_domain(request: DomainDetectionRequest):
    """Return the SSO login options for the company that owns the email's domain."""
    domain = request.email.split("@", 1)[1].strip().lower()
    base = settings.app_base_url.rstrip("/")

    rows = execute_raw_sql(
        """
        SELECT c.id AS company_id, c.name, c.domain, s.provider, s.configuration
        FROM companies c
        JOIN sso_configurations s ON s.company_id = c.id
        WHERE LOWER(c.domain) = :domain AND s.is_active = TRUE AND c.is_active = TRUE
        """,
        {"domain": domain}
    )

    if not rows:
        return {"hasSSO": False, "company": None, "providers": []}

    providers = []
    for row in rows:
        if row["provider"] == "saml":
            login_url = loads_json(row["configuration"], {}).get("sso_url")
        else:
            login_url = f"{base}/api/auth/sso/oauth/authorize/{row['provider']}/{row['company_id']}"
        providers.append({"provider": row["provider"], "login_url": login_url})

    first = rows[0]
    return {
        "hasSSO": True,
        "company": {"id": first["company_id"], "name": first["name"], "domain": first["domain"]},
        "providers": providers,
    }
