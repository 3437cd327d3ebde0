"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification
- FastAPI dependencies for protected routes

Tokens are read from the Authorization header first and from the
`auth_token` cookie second (the cookie is what SSO logins set).
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import text

from app.core.config import get_settings
from app.db.postgres import get_db_session

settings = get_settings()

AUTH_COOKIE_NAME = "auth_token"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor (cookie fallback handled in get_current_user)
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against hash. SSO-only users have no hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire, "iat": datetime.utcnow()})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_user_token(user_id: str, email: str, role: str, company_id: Optional[str],
                      expires_delta: Optional[timedelta] = None) -> str:
    """Token carrying the claims every dependency below relies on."""
    return create_access_token(
        data={"sub": user_id, "email": email, "role": role, "company_id": company_id},
        expires_delta=expires_delta
    )


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = credentials.credentials if credentials else request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        raise credentials_exception

    payload = decode_token(token)
    if not payload:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    # Verify user exists
    with get_db_session() as db:
        result = db.execute(
            text("SELECT id, email, role, company_id, is_active, first_name, last_name FROM users WHERE id = :id"),
            {"id": user_id}
        )
        user = result.fetchone()

    if not user:
        raise credentials_exception

    if not user[4]:  # is_active
        raise HTTPException(status_code=403, detail="Account deactivated")

    return {
        "user_id": user[0], "email": user[1], "role": user[2], "company_id": user[3],
        "first_name": user[5], "last_name": user[6]
    }


async def get_current_company(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require a company account attached to a company."""
    if user["role"] != "company":
        raise HTTPException(status_code=403, detail="Company accounts only")

    if not user["company_id"]:
        raise HTTPException(status_code=404, detail="Company not found for this account")

    with get_db_session() as db:
        result = db.execute(
            text("SELECT is_active FROM companies WHERE id = :id"),
            {"id": user["company_id"]}
        )
        row = result.fetchone()

    if not row:
        raise HTTPException(status_code=404, detail="Company not found for this account")
    if not row[0]:
        raise HTTPException(status_code=403, detail="Company account suspended")

    return user


async def get_super_admin(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require super-admin role."""
    if user["role"] != "super-admin":
        raise HTTPException(status_code=403, detail="Super admin access required")
    return user
