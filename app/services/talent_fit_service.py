"""
Talent Fit Service - scores a candidate's parsed resume against the
campaign's scoring parameters.

Each parameter gets a 0-100 score from the AI; when the AI call or its
JSON fails, a keyword heuristic scores that parameter instead. The overall
talent fit score is the weight-averaged parameter score, rounded.
"""

import json
from typing import List, Optional

from sqlalchemy import text

from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql
from app.db.schema import new_id
from app.services.openai_client import get_openai_client, OpenAIClient
from app.utils.numbers import round_half_up

logger = get_logger(__name__)

EXPERIENCE_KEYWORDS = ["years", "experience", "expert", "advanced", "senior", "lead"]

RELATED_TERMS = {
    "nodejs": ["node.js", "node", "javascript", "express", "npm"],
    "react": ["reactjs", "jsx", "javascript", "frontend", "ui"],
    "python": ["django", "flask", "pandas", "numpy", "backend"],
    "java": ["spring", "hibernate", "maven", "gradle", "jvm"],
    "javascript": ["js", "typescript", "node", "react", "vue", "angular"],
    "sql": ["mysql", "postgresql", "database", "queries", "rdbms"],
    "aws": ["amazon", "cloud", "ec2", "s3", "lambda", "devops"],
    "docker": ["container", "kubernetes", "devops", "deployment"],
    "git": ["github", "gitlab", "version control", "repository"],
}


def get_related_terms(skill: str) -> List[str]:
    return RELATED_TERMS.get(skill.lower(), [])


def calculate_fallback_score(resume_data: Optional[dict], parameter: dict) -> dict:
    """Keyword-matching score for one parameter."""
    name = parameter["parameter_name"].lower()
    parameter_type = parameter["parameter_type"]
    resume_text = json.dumps(resume_data or {}, default=str).lower()
    score = 0
    evidence = "No specific evidence found"

    if parameter_type == "skill":
        if name in resume_text:
            score = 60
            evidence = f'Found "{parameter["parameter_name"]}" mentioned in resume'
            if any(keyword in resume_text for keyword in EXPERIENCE_KEYWORDS):
                score += 15
        else:
            related = next((t for t in get_related_terms(name) if t.lower() in resume_text), None)
            if related:
                score = 45
                evidence = f"Found related technology: {related}"
    elif parameter_type == "competency":
        if name in resume_text:
            score = 55
            evidence = f'Found "{parameter["parameter_name"]}" mentioned in resume'
    elif name in resume_text:
        score = 50
        evidence = f'Found "{parameter["parameter_name"]}" mentioned in resume'

    if score == 0 and resume_data:
        score = 25
        evidence = "Resume provided but no specific match found"

    return {"score": score, "evidence": evidence, "reasoning": "Fallback scoring based on keyword matching"}


def weighted_average(scores: List[dict]) -> int:
    """Half-up rounded sum(score * weight) / sum(weight); 0 when there is nothing to weigh."""
    total_weight = sum(s["weight"] or 1 for s in scores)
    if total_weight <= 0:
        return 0
    return round_half_up(sum(s["score"] * (s["weight"] or 1) for s in scores) / total_weight)


class TalentFitService:

    def __init__(self, ai_client: OpenAIClient = None):
        self.ai_client = ai_client or get_openai_client()

    def _score_parameter(self, resume_data: dict, parameter: dict) -> dict:
        try:
            result = self.ai_client.score_parameter(resume_data, parameter)
            score = max(0, min(100, int(float(result.get("score", 0)))))
            return {"score": score, "evidence": result.get("evidence"), "source": "ai"}
        except Exception as e:
            logger.info(f"AI scoring failed for parameter {parameter['parameter_name']}, using fallback: {e}")
            fallback = calculate_fallback_score(resume_data, parameter)
            return {"score": fallback["score"], "evidence": fallback["evidence"], "source": "fallback"}

    def calculate(self, candidate_id: str, campaign_id: str, resume_data: Optional[dict],
                  scored_by: str = None) -> dict:
        """
        Score every campaign parameter, persist candidate_scores and the
        overall talent_fit_score.
        """
        parameters = execute_raw_sql(
            """
            SELECT id, parameter_type, parameter_name, weight, proficiency_level, is_required, description
            FROM scoring_parameters WHERE campaign_id = :cid ORDER BY created_at
            """,
            {"cid": campaign_id}
        )

        scores = []
        for parameter in parameters:
            result = self._score_parameter(resume_data or {}, parameter)
            scores.append({
                "parameter_id": parameter["id"],
                "parameter_name": parameter["parameter_name"],
                "parameter_type": parameter["parameter_type"],
                "weight": float(parameter["weight"]),
                **result,
            })

        overall = weighted_average(scores) if scores else 0

        with get_db_session() as db:
            db.execute(text("DELETE FROM candidate_scores WHERE candidate_id = :id"), {"id": candidate_id})
            for s in scores:
                db.execute(
                    text("""
                        INSERT INTO candidate_scores (id, candidate_id, parameter_id, score, max_score, notes, scored_by)
                        VALUES (:id, :candidate_id, :parameter_id, :score, 100, :notes, :scored_by)
                    """),
                    {
                        "id": new_id(), "candidate_id": candidate_id, "parameter_id": s["parameter_id"],
                        "score": s["score"], "notes": s["evidence"], "scored_by": scored_by,
                    }
                )
            db.execute(
                text("UPDATE candidates SET talent_fit_score = :score, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {"score": overall, "id": candidate_id}
            )

        logger.info(f"Talent fit for candidate {candidate_id}: {overall} over {len(scores)} parameters")
        return {"candidate_id": candidate_id, "talent_fit_score": overall, "scores": scores}


def get_talent_fit_service() -> TalentFitService:
    return TalentFitService()
