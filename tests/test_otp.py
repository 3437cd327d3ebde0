from sqlalchemy import text

from app.db.postgres import get_db_session, fetch_one
from app.services import otp_service
from app.services.otp_service import MAX_ATTEMPTS, issue_otp, verify_otp


def test_code_is_six_digits_and_verifies_once():
    code = issue_otp("Ada@Example.com", "signin")
    assert len(code) == 6 and code.isdigit()

    assert verify_otp("ada@example.com", code, "signin") == {"success": True, "error": None}
    assert verify_otp("ada@example.com", code, "signin")["error"] == "Verification code already used"


def test_purpose_is_part_of_the_lookup():
    code = issue_otp("ada@example.com", "signup")
    result = verify_otp("ada@example.com", code, "signin")
    assert result["success"] is False
    assert "No verification code found" in result["error"]


def test_new_code_replaces_old_one():
    first = issue_otp("ada@example.com", "signin")
    second = issue_otp("ada@example.com", "signin")
    if first != second:
        assert verify_otp("ada@example.com", first, "signin")["error"] == "Invalid verification code"
    assert verify_otp("ada@example.com", second, "signin")["success"] is True


def test_attempts_are_limited():
    code = issue_otp("ada@example.com", "signin")
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(MAX_ATTEMPTS):
        assert verify_otp("ada@example.com", wrong, "signin")["error"] == "Invalid verification code"

    result = verify_otp("ada@example.com", code, "signin")
    assert result["success"] is False
    assert "Too many attempts" in result["error"]


def test_expired_code_is_rejected():
    code = issue_otp("ada@example.com", "signin")
    with get_db_session() as db:
        db.execute(text("UPDATE otp_codes SET expires_at = '2000-01-01 00:00:00' WHERE email = 'ada@example.com'"))

    assert verify_otp("ada@example.com", code, "signin")["error"] == "Verification code expired"


def test_non_ascii_code_is_just_wrong():
    issue_otp("ada@example.com", "signin")
    assert verify_otp("ada@example.com", "12345é", "signin")["error"] == "Invalid verification code"


def stale_read(monkeypatch, **overrides):
    """Simulate a concurrent request that read the row before another one updated it."""
    snapshot = dict(fetch_one("SELECT id, code, expires_at, attempts, is_used FROM otp_codes"), **overrides)
    monkeypatch.setattr(otp_service, "fetch_one", lambda *args, **kwargs: dict(snapshot))


def test_attempt_cap_holds_against_stale_reads(monkeypatch):
    code = issue_otp("ada@example.com", "signin")
    with get_db_session() as db:
        db.execute(text("UPDATE otp_codes SET attempts = :n"), {"n": MAX_ATTEMPTS})
    stale_read(monkeypatch, attempts=MAX_ATTEMPTS - 1)

    result = verify_otp("ada@example.com", code, "signin")
    assert result["success"] is False
    assert "Too many attempts" in result["error"]
    assert fetch_one("SELECT attempts FROM otp_codes")["attempts"] == MAX_ATTEMPTS


def test_code_cannot_be_redeemed_twice_against_stale_reads(monkeypatch):
    code = issue_otp("ada@example.com", "signin")
    stale_read(monkeypatch)
    assert verify_otp("ada@example.com", code, "signin")["success"] is True

    second = verify_otp("ada@example.com", code, "signin")
    assert second == {"success": False, "error": "Verification code already used"}
