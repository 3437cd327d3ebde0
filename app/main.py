"""
Gradii - Main Application

FastAPI backend with:
- Relational DB (SQLAlchemy) for tenants, campaigns, candidates, interviews and billing
- MongoDB for resumes and AI generation archives
- OpenAI for resume parsing, talent-fit scoring and question generation
- Redis for rate limiting and OAuth state
- Stripe, Azure Blob Storage and SMTP integrations

Run: uvicorn app.main:app --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from pymongo.errors import PyMongoError

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging_config import setup_logging, get_logger
from app.db.mongodb import init_mongo_indexes, test_mongo_connection
from app.db.postgres import init_db, test_postgres_connection
from app.services.rate_limiter import test_redis_connection

settings = get_settings()

setup_logging()
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Gradii",
    description="""
    AI-assisted recruiting and interviewing platform.

    ## Features
    - **Authentication**: JWT, email OTP, SAML and OAuth single sign-on
    - **Campaigns**: Job postings with scoring parameters and interview rounds
    - **Candidates**: Pipeline tracking, AI resume parsing and talent-fit scoring
    - **Interviews**: AI-generated questions, candidate flow and automatic scoring
    - **Billing**: Stripe subscriptions with plan limits
    - **Webhooks**: Signed event delivery to company endpoints
    - **Admin**: Platform-wide management console
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

setup_exception_handlers(app)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Create tables and MongoDB indexes."""
    try:
        init_db()
        logger.info("Relational schema ready")
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")

    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except PyMongoError as e:
        logger.warning(f"MongoDB index initialization failed: {e}")


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "Gradii", "version": "1.0.0"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
        "mongodb": "connected" if test_mongo_connection() else "disconnected",
        "redis": "connected" if test_redis_connection() else "disconnected",
    }
