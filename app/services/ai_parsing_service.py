"""
AI Parsing Service - candidate resume parsing.

RESUME TEXT -> OPENAI -> VALIDATED JSON -> MONGO + candidates.ai_parsed_data

The relational row keeps a copy of the validated output so talent-fit
scoring and candidate listings never need a Mongo round-trip.
"""

import json
from typing import List

from sqlalchemy import text

from app.core.logging_config import get_logger
from app.db.postgres import get_db_session
from app.services.openai_client import get_openai_client, OpenAIClient
from app.services.mongo_service import RawResumeService, ParsedResumeService

logger = get_logger(__name__)


# ============================================================
# JSON VALIDATION HELPERS
# ============================================================

def _clean_str_list(values) -> List[str]:
    if not isinstance(values, list):
        return []
    return [str(v).strip() for v in values if v and str(v).strip()]


def validate_parsed_resume(data: dict) -> dict:
    """
    Validate and sanitize parsed resume data.
    Ensures all required fields exist with correct types.
    """
    if not isinstance(data, dict):
        data = {}

    validated = {
        "name": str(data.get("name") or "").strip() or "Unknown",
        "email": data.get("email") or None,
        "phone": data.get("phone") or None,
        "summary": str(data.get("summary") or "").strip() or None,
        "skills": _clean_str_list(data.get("skills", [])),
        "experience_years": 0,
        "education": [],
        "experience": []
    }

    # Validate experience_years (must be number >= 0)
    try:
        validated["experience_years"] = max(0, float(data.get("experience_years", 0)))
    except (ValueError, TypeError):
        validated["experience_years"] = 0

    for edu in data.get("education") or []:
        if isinstance(edu, dict):
            validated["education"].append({
                "degree": str(edu.get("degree") or "").strip(),
                "field": str(edu.get("field") or "").strip(),
                "institution": str(edu.get("institution") or "").strip(),
                "year": edu.get("year"),
            })

    for exp in data.get("experience") or []:
        if isinstance(exp, dict):
            validated["experience"].append({
                "company": str(exp.get("company") or "").strip(),
                "role": str(exp.get("role") or "").strip(),
                "duration": str(exp.get("duration") or "").strip(),
                "highlights": _clean_str_list(exp.get("highlights", [])),
            })

    return validated


# ============================================================
# RESUME PARSING SERVICE
# ============================================================

class ResumeParsingService:
    """
    Complete resume parsing workflow:
    1. Store raw resume in MongoDB
    2. Parse with OpenAI
    3. Validate JSON output
    4. Store parsed data in MongoDB
    5. Copy parsed data onto the candidate row
    """

    def __init__(self, ai_client: OpenAIClient = None):
        self.ai_client: OpenAIClient = ai_client or get_openai_client()
        self.raw_resume_service = RawResumeService()
        self.parsed_resume_service = ParsedResumeService()

    def parse_and_store(self, candidate_id: str, resume_text: str, filename: str = None) -> dict:
        """
        Full parsing pipeline for a resume.

        Returns:
            {
                "success": True/False,
                "raw_mongo_id": "...",
                "parsed_mongo_id": "...",
                "parsed_data": {...},
                "error": None or message
            }
        """
        result = {
            "success": False,
            "raw_mongo_id": None,
            "parsed_mongo_id": None,
            "parsed_data": None,
            "error": None
        }

        try:
            raw_mongo_id = self.raw_resume_service.insert(
                candidate_id=candidate_id,
                resume_text=resume_text,
                filename=filename
            )
            result["raw_mongo_id"] = raw_mongo_id

            parsed_data = self.ai_client.parse_resume(resume_text)
            validated_data = validate_parsed_resume(parsed_data)
            result["parsed_data"] = validated_data

            parsed_mongo_id = self.parsed_resume_service.insert(
                candidate_id=candidate_id,
                raw_resume_id=raw_mongo_id,
                parsed_data=validated_data
            )
            result["parsed_mongo_id"] = parsed_mongo_id
            self.raw_resume_service.mark_as_parsed(raw_mongo_id)

            self._update_candidate(candidate_id, parsed_mongo_id, validated_data)
            result["success"] = True

        except Exception as e:
            logger.warning(f"Resume parsing failed for candidate {candidate_id}: {e}")
            result["error"] = str(e)

        return result

    def _update_candidate(self, candidate_id: str, mongo_id: str, parsed_data: dict) -> None:
        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE candidates
                    SET resume_mongo_id = :mongo_id, ai_parsed_data = :data,
                        experience_years = COALESCE(experience_years, :years),
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id
                """),
                {
                    "mongo_id": mongo_id,
                    "data": json.dumps(parsed_data),
                    "years": int(parsed_data.get("experience_years") or 0),
                    "id": candidate_id,
                }
            )


def get_resume_parser() -> ResumeParsingService:
    """Get resume parsing service instance."""
    return ResumeParsingService()
