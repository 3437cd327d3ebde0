"""
AI Routes

POST /ai/generate-mcq - Multiple choice questions
POST /ai/generate-coding - Coding challenges
POST /ai/generate-behavioral - Behavioral questions
POST /ai/generate-combo - Mixed set (behavioral / coding / mcq)
POST /ai/generate-fallback - Campaign interview questions in question-bank shape
POST /ai/generate-job-description - Draft a job description
POST /ai/generate-skills - Suggest skills to assess
GET /ai/generations - Recent generations for the company
"""

from fastapi import APIRouter, HTTPException, Depends

from app.core.auth import get_current_company
from app.core.logging_config import get_logger
from app.services.mongo_service import AIGenerationService
from app.services.openai_client import get_openai_client
from app.services.question_service import get_question_service, QuestionGenerationError
from app.services.rate_limiter import rate_limit
from app.schemas.schemas import (
    QuestionGenerationRequest, QuestionGenerationResponse, FallbackGenerationRequest,
    JobDescriptionRequest, SkillsRequest
)

logger = get_logger(__name__)

router = APIRouter(prefix="/ai", tags=["AI Generation"], dependencies=[Depends(rate_limit("ai"))])


def _run_generation(question_type: str, request: QuestionGenerationRequest, company_id: str) -> QuestionGenerationResponse:
    req = request.model_dump(exclude_none=True)
    req["difficulty"] = request.difficulty.value
    try:
        result = get_question_service().generate(question_type, req, company_id=company_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QuestionGenerationError as e:
        logger.error(f"{question_type} generation failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate {question_type} questions: {e}")

    return QuestionGenerationResponse(questions=result["questions"], metadata=result["metadata"])


@router.post("/generate-mcq", response_model=QuestionGenerationResponse)
async def generate_mcq(request: QuestionGenerationRequest, company: dict = Depends(get_current_company)):
    return _run_generation("mcq", request, company["company_id"])


@router.post("/generate-coding", response_model=QuestionGenerationResponse)
async def generate_coding(request: QuestionGenerationRequest, company: dict = Depends(get_current_company)):
    return _run_generation("coding", request, company["company_id"])


@router.post("/generate-behavioral", response_model=QuestionGenerationResponse)
async def generate_behavioral(request: QuestionGenerationRequest, company: dict = Depends(get_current_company)):
    return _run_generation("behavioral", request, company["company_id"])


@router.post("/generate-combo", response_model=QuestionGenerationResponse)
async def generate_combo(request: QuestionGenerationRequest, company: dict = Depends(get_current_company)):
    return _run_generation("combo", request, company["company_id"])


@router.post("/generate-fallback", response_model=QuestionGenerationResponse)
async def generate_fallback(request: FallbackGenerationRequest, company: dict = Depends(get_current_company)):
    try:
        questions = get_question_service().generate_fallback(
            interview_type=request.interview_type,
            job_title=request.job_title,
            number_of_questions=request.number_of_questions,
            job_description=request.job_description,
            company_name=request.company_name,
            difficulty_level=request.difficulty_level,
            company_id=company["company_id"],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QuestionGenerationError as e:
        raise HTTPException(status_code=500, detail=f"Failed to generate questions: {e}")

    return QuestionGenerationResponse(
        questions=questions,
        source="ai-fallback",
        metadata={"interview_type": request.interview_type.lower(), "generated": len(questions)},
    )


@router.post("/generate-job-description")
async def generate_job_description(request: JobDescriptionRequest, company: dict = Depends(get_current_company)):
    try:
        result = get_openai_client().generate_job_description(request.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=500, detail=f"The AI response was malformed: {e}")
    return {"success": True, **result}


@router.post("/generate-skills")
async def generate_skills(request: SkillsRequest, company: dict = Depends(get_current_company)):
    try:
        skills = get_openai_client().suggest_skills(
            request.job_title, request.job_description, request.experience_level
        )
    except ValueError as e:
        raise HTTPException(status_code=500, detail=f"The AI response was malformed: {e}")
    return {"success": True, "skills": skills}


@router.get("/generations")
async def list_generations(company: dict = Depends(get_current_company)):
    return {"generations": AIGenerationService().list_for_company(company["company_id"])}
