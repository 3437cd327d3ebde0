"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.auth_routes import router as auth_router
from app.api.routes.sso_routes import router as sso_router
from app.api.routes.company_routes import router as company_router
from app.api.routes.campaign_routes import router as campaign_router
from app.api.routes.candidate_routes import router as candidate_router
from app.api.routes.ai_routes import router as ai_router
from app.api.routes.question_routes import router as question_router
from app.api.routes.interview_routes import router as interview_router
from app.api.routes.recording_routes import router as recording_router
from app.api.routes.billing_routes import router as billing_router
from app.api.routes.webhook_routes import router as webhook_router
from app.api.routes.admin_routes import router as admin_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(sso_router)
api_router.include_router(company_router)
api_router.include_router(campaign_router)
api_router.include_router(candidate_router)
api_router.include_router(ai_router)
api_router.include_router(question_router)
api_router.include_router(interview_router)
api_router.include_router(recording_router)
api_router.include_router(billing_router)
api_router.include_router(webhook_router)
api_router.include_router(admin_router)
