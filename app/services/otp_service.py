"""
OTP Service - one-time email codes for signup, signin and candidate access.

A code is 6 digits, valid for 5 minutes and allows 3 verification attempts.
Issuing a new code replaces any earlier code for the same email+purpose.
"""

import secrets
from datetime import datetime, timedelta

from sqlalchemy import text

from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, fetch_one
from app.db.schema import new_id
from app.utils.datetime_utils import is_expired

logger = get_logger(__name__)

OTP_LENGTH = 6
OTP_TTL_MINUTES = 5
MAX_ATTEMPTS = 3


def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def issue_otp(email: str, purpose: str) -> str:
    """Store a fresh code for email+purpose and return it."""
    email = email.lower()
    code = generate_otp()
    with get_db_session() as db:
        db.execute(
            text("DELETE FROM otp_codes WHERE email = :email AND purpose = :purpose"),
            {"email": email, "purpose": purpose}
        )
        db.execute(
            text("""
                INSERT INTO otp_codes (id, email, code, purpose, expires_at, attempts, is_used)
                VALUES (:id, :email, :code, :purpose, :expires_at, 0, :used)
            """),
            {
                "id": new_id(), "email": email, "code": code, "purpose": purpose,
                "expires_at": datetime.utcnow() + timedelta(minutes=OTP_TTL_MINUTES), "used": False,
            }
        )
    return code


def verify_otp(email: str, code: str, purpose: str) -> dict:
    """
    Check a submitted code.

    Returns {"success": bool, "error": str | None}. Every check spends one
    attempt, claimed with a conditional UPDATE so concurrent guesses cannot
    exceed MAX_ATTEMPTS. A matching code is marked used the same way, so it
    verifies exactly once.
    """
    email = email.lower()
    record = fetch_one(
        """
        SELECT id, code, expires_at, attempts, is_used FROM otp_codes
        WHERE email = :email AND purpose = :purpose
        ORDER BY created_at DESC
        """,
        {"email": email, "purpose": purpose}
    )

    if not record:
        return {"success": False, "error": "No verification code found. Please request a new one."}
    if record["is_used"]:
        return {"success": False, "error": "Verification code already used"}
    if is_expired(record["expires_at"]):
        return {"success": False, "error": "Verification code expired"}

    with get_db_session() as db:
        claimed = db.execute(
            text("UPDATE otp_codes SET attempts = attempts + 1 WHERE id = :id AND attempts < :max_attempts"),
            {"id": record["id"], "max_attempts": MAX_ATTEMPTS}
        ).rowcount
    if not claimed:
        return {"success": False, "error": "Too many attempts. Please request a new code."}

    if not secrets.compare_digest(record["code"].encode(), code.encode()):
        logger.info(f"Wrong OTP for {email} ({purpose})")
        return {"success": False, "error": "Invalid verification code"}

    with get_db_session() as db:
        marked = db.execute(
            text("UPDATE otp_codes SET is_used = :used WHERE id = :id AND is_used = :unused"),
            {"used": True, "unused": False, "id": record["id"]}
        ).rowcount
    if not marked:
        return {"success": False, "error": "Verification code already used"}
    return {"success": True, "error": None}
