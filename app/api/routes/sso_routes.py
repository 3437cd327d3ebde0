"""
SSO Routes

POST /auth/sso/saml/config - Create a company's SAML configuration (super admin)
GET /auth/sso/saml/config/{company_id} - Get SAML configuration (super admin)
GET /auth/sso/saml/metadata/{company_id} - SP metadata XML
POST /auth/sso/saml/acs/{company_id} - Assertion consumer service
POST /auth/sso/oauth/config - Create a company's OAuth configuration (super admin)
GET /auth/sso/oauth/authorize/{provider}/{company_id} - Redirect to the IdP
GET /auth/sso/oauth/callback/{provider}/{company_id} - Finish the OAuth login

Successful SSO logins set the auth_token cookie and redirect to /dashboard.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Form, Query
from fastapi.responses import RedirectResponse, Response
from sqlalchemy import text

from app.core.auth import AUTH_COOKIE_NAME, create_user_token, get_super_admin
from app.core.config import get_settings
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, fetch_one
from app.db.schema import new_id
from app.services import oauth_service
from app.services.oauth_service import OAuthError
from app.services.rate_limiter import store_oauth_state, consume_oauth_state
from app.services.saml_service import (
    SamlResponseError, build_sp_metadata, parse_saml_response, map_user_attributes
)
from app.utils.serialization import loads_json, dumps_json
from app.schemas.schemas import SamlConfigRequest, OAuthConfigRequest, SsoConfigResponse

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(prefix="/auth/sso", tags=["SSO"])

SSO_TOKEN_TTL = timedelta(hours=24)


def _app_url(path: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}{path}"


def _signin_error(reason: str) -> RedirectResponse:
    return RedirectResponse(_app_url(f"/auth/signin?error={reason}"), status_code=302)


def _get_active_config(company_id: str, provider: str) -> Optional[dict]:
    row = fetch_one(
        """
        SELECT id, company_id, provider, configuration, is_active, created_at FROM sso_configurations
        WHERE company_id = :cid AND provider = :provider AND is_active = TRUE
        """,
        {"cid": company_id, "provider": provider}
    )
    if row:
        row["configuration"] = loads_json(row["configuration"], {})
    return row


def _save_config(company_id: str, provider: str, configuration: dict) -> SsoConfigResponse:
    if not fetch_one("SELECT id FROM companies WHERE id = :id", {"id": company_id}):
        raise HTTPException(status_code=404, detail="Company not found")
    if fetch_one(
        "SELECT id FROM sso_configurations WHERE company_id = :cid AND provider = :provider",
        {"cid": company_id, "provider": provider}
    ):
        raise HTTPException(status_code=409, detail=f"{provider.upper()} configuration already exists for this company")

    config_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO sso_configurations (id, company_id, provider, configuration)
                VALUES (:id, :cid, :provider, :configuration)
            """),
            {"id": config_id, "cid": company_id, "provider": provider, "configuration": dumps_json(configuration)}
        )

    row = fetch_one("SELECT * FROM sso_configurations WHERE id = :id", {"id": config_id})
    row["configuration"] = loads_json(row["configuration"], {})
    return SsoConfigResponse(**row)


def _complete_login(company_id: str, email: str, first_name: str, last_name: str, provider: str) -> RedirectResponse:
    """Create or refresh the user, then hand back the cookie-carrying redirect."""
    email = email.lower()
    now = datetime.utcnow()
    user = fetch_one("SELECT id, role, company_id, is_active, first_name, last_name FROM users WHERE email = :email",
                     {"email": email})

    with get_db_session() as db:
        if not user:
            user = {"id": new_id(), "role": "company", "company_id": company_id, "is_active": True}
            db.execute(
                text("""
                    INSERT INTO users (id, email, first_name, last_name, role, company_id, email_verified,
                                       sso_provider, last_login)
                    VALUES (:id, :email, :first_name, :last_name, 'company', :cid, TRUE, :provider, :now)
                """),
                {"id": user["id"], "email": email, "first_name": first_name, "last_name": last_name,
                 "cid": company_id, "provider": provider, "now": now}
            )
            logger.info(f"Provisioned SSO user {email} for company {company_id}")
        else:
            if user["role"] != "company" or user["company_id"] != company_id:
                logger.warning(f"SSO login for {email} rejected: account is not a member of company {company_id}")
                return _signin_error("account_conflict")
            if not user["is_active"]:
                return _signin_error("account_disabled")
            db.execute(
                text("""
                    UPDATE users SET first_name = :first_name, last_name = :last_name, sso_provider = :provider,
                                     last_login = :now, updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id
                """),
                {"first_name": first_name or user["first_name"], "last_name": last_name or user["last_name"],
                 "provider": provider, "now": now, "id": user["id"]}
            )

    token = create_user_token(user["id"], email, user["role"], company_id, expires_delta=SSO_TOKEN_TTL)
    response = RedirectResponse(_app_url("/dashboard"), status_code=302)
    response.set_cookie(
        AUTH_COOKIE_NAME, token,
        httponly=True, secure=not settings.debug, samesite="lax",
        max_age=int(SSO_TOKEN_TTL.total_seconds()), path="/",
    )
    return response


# ============================================================
# SAML
# ============================================================

@router.post("/saml/config", response_model=SsoConfigResponse, status_code=201)
async def create_saml_config(data: SamlConfigRequest, admin: dict = Depends(get_super_admin)):
    configuration = {
        "entity_id": data.entity_id,
        "sso_url": str(data.sso_url),
        "x509_certificate": data.x509_certificate,
        "attribute_mapping": data.attribute_mapping,
    }
    return _save_config(data.company_id, "saml", configuration)


@router.get("/saml/config/{company_id}", response_model=SsoConfigResponse)
async def get_saml_config(company_id: str, admin: dict = Depends(get_super_admin)):
    row = fetch_one(
        "SELECT * FROM sso_configurations WHERE company_id = :cid AND provider = 'saml'",
        {"cid": company_id}
    )
    if not row:
        raise HTTPException(status_code=404, detail="SAML configuration not found")
    row["configuration"] = loads_json(row["configuration"], {})
    return SsoConfigResponse(**row)


@router.get("/saml/metadata/{company_id}")
async def saml_metadata(company_id: str):
    if not _get_active_config(company_id, "saml"):
        raise HTTPException(status_code=404, detail="SAML configuration not found or inactive")
    return Response(
        content=build_sp_metadata(company_id),
        media_type="application/xml",
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.post("/saml/acs/{company_id}")
async def saml_acs(company_id: str, SAMLResponse: Optional[str] = Form(None)):
    if not SAMLResponse:
        raise HTTPException(status_code=400, detail="Missing SAML response")

    config = _get_active_config(company_id, "saml")
    if not config:
        raise HTTPException(status_code=404, detail="SAML configuration not found or inactive")

    try:
        attributes = parse_saml_response(SAMLResponse, config["configuration"].get("x509_certificate"))
    except SamlResponseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user_info = map_user_attributes(attributes, config["configuration"].get("attribute_mapping"))
    if not user_info["email"]:
        raise HTTPException(status_code=400, detail="Email not found in SAML response")

    try:
        return _complete_login(company_id, user_info["email"], user_info["first_name"],
                               user_info["last_name"], "saml")
    except Exception as e:
        logger.error(f"SAML login failed for company {company_id}: {e}", exc_info=True)
        return _signin_error("saml_error")


# ============================================================
# OAUTH
# ============================================================

@router.post("/oauth/config", response_model=SsoConfigResponse, status_code=201)
async def create_oauth_config(data: OAuthConfigRequest, admin: dict = Depends(get_super_admin)):
    configuration = data.model_dump(mode="json", exclude={"company_id", "provider"})
    return _save_config(data.company_id, data.provider, configuration)


@router.get("/oauth/authorize/{provider}/{company_id}")
async def oauth_authorize(provider: str, company_id: str):
    config = _get_active_config(company_id, provider)
    if not config:
        raise HTTPException(status_code=404, detail="OAuth configuration not found or inactive")

    nonce, state = oauth_service.generate_state(company_id)
    if not store_oauth_state(nonce, company_id, provider):
        raise HTTPException(status_code=503, detail="Unable to start SSO login right now")

    return RedirectResponse(oauth_service.build_authorize_url(provider, config["configuration"], state), status_code=302)


@router.get("/oauth/callback/{provider}/{company_id}")
async def oauth_callback(
    provider: str,
    company_id: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
):
    if error:
        logger.warning(f"OAuth provider returned error for company {company_id}: {error}")
        return _signin_error(f"oauth_{error}")
    if not code or not state:
        return _signin_error("missing_code_or_state")

    nonce, _, state_company = state.partition(":")
    if state_company != company_id:
        return _signin_error("invalid_company")
    if consume_oauth_state(nonce) != f"{company_id}:{provider}":
        return _signin_error("invalid_state")

    config = _get_active_config(company_id, provider)
    if not config:
        return _signin_error("config_not_found")

    try:
        access_token = oauth_service.exchange_code(config["configuration"], code)
        profile = oauth_service.fetch_userinfo(config["configuration"], access_token)
    except OAuthError as e:
        return _signin_error(e.reason)

    user_info = oauth_service.extract_user_info(provider, profile)
    if not user_info["email"]:
        return _signin_error("no_email")

    try:
        return _complete_login(company_id, user_info["email"], user_info["first_name"],
                               user_info["last_name"], provider)
    except Exception as e:
        logger.error(f"OAuth login failed for company {company_id}: {e}", exc_info=True)
        return _signin_error("oauth_callback_error")
