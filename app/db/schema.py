"""
Relational schema - table definitions for the Gradii platform.

Tables are declared with SQLAlchemy Core so `metadata.create_all` can build
them; every query in the application is still plain SQL through `text()`.

Conventions:
- Primary keys are UUID strings generated in Python (new_id)
- JSON payloads (questions, answers, AI output, configs) live in Text columns
- created_at / updated_at default to CURRENT_TIMESTAMP
"""

import uuid

from sqlalchemy import (
    MetaData, Table, Column, String, Text, Integer, Float, Boolean, DateTime,
    ForeignKey, UniqueConstraint, Index, func
)

metadata = MetaData()


def new_id() -> str:
    """Generate a primary key value."""
    return str(uuid.uuid4())


def _id_column() -> Column:
    return Column("id", String(36), primary_key=True)


def _timestamps() -> list:
    return [
        Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
        Column("updated_at", DateTime, server_default=func.current_timestamp(), nullable=False),
    ]


# ============================================================
# TENANTS & USERS
# ============================================================

companies = Table(
    "companies", metadata,
    _id_column(),
    Column("name", String(255), nullable=False),
    Column("email", String(255)),
    Column("phone", String(50)),
    Column("website", String(255)),
    Column("domain", String(255), unique=True),
    Column("industry", String(100)),
    Column("company_size", String(50)),
    Column("description", Text),
    Column("logo_url", String(500)),
    Column("subscription_plan", String(50), nullable=False, server_default="free"),
    Column("subscription_status", String(50), nullable=False, server_default="active"),
    Column("billing_cycle", String(20), nullable=False, server_default="monthly"),
    Column("max_interviews", Integer, nullable=False, server_default="10"),
    Column("max_users", Integer, nullable=False, server_default="2"),
    Column("interviews_used", Integer, nullable=False, server_default="0"),
    Column("stripe_customer_id", String(255)),
    Column("stripe_subscription_id", String(255)),
    Column("stripe_price_id", String(255)),
    Column("stripe_status", String(50)),
    Column("stripe_current_period_start", DateTime),
    Column("stripe_current_period_end", DateTime),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    *_timestamps(),
)

users = Table(
    "users", metadata,
    _id_column(),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255)),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("role", String(20), nullable=False, server_default="company"),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE")),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("email_verified", Boolean, nullable=False, server_default="0"),
    Column("otp_login_enabled", Boolean, nullable=False, server_default="0"),
    Column("sso_provider", String(50)),
    Column("last_login", DateTime),
    *_timestamps(),
)

otp_codes = Table(
    "otp_codes", metadata,
    _id_column(),
    Column("email", String(255), nullable=False, index=True),
    Column("code", String(6), nullable=False),
    Column("purpose", String(50), nullable=False),
    Column("expires_at", DateTime, nullable=False),
    Column("attempts", Integer, nullable=False, server_default="0"),
    Column("is_used", Boolean, nullable=False, server_default="0"),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

sso_configurations = Table(
    "sso_configurations", metadata,
    _id_column(),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("provider", String(50), nullable=False),
    Column("configuration", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    *_timestamps(),
    UniqueConstraint("company_id", "provider", name="uq_sso_company_provider"),
)

# ============================================================
# CAMPAIGNS & CANDIDATES
# ============================================================

job_campaigns = Table(
    "job_campaigns", metadata,
    _id_column(),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("created_by", String(36), ForeignKey("users.id")),
    Column("campaign_name", String(255), nullable=False),
    Column("job_title", String(255), nullable=False),
    Column("department", String(100)),
    Column("location", String(255)),
    Column("experience_level", String(50)),
    Column("employee_type", String(50), server_default="full-time"),
    Column("salary_min", Integer),
    Column("salary_max", Integer),
    Column("currency", String(10), server_default="USD"),
    Column("job_description", Text),
    Column("requirements", Text),
    Column("benefits", Text),
    Column("required_skills", Text),
    Column("is_remote", Boolean, nullable=False, server_default="0"),
    Column("target_hire_count", Integer, nullable=False, server_default="1"),
    Column("status", String(20), nullable=False, server_default="active"),
    *_timestamps(),
)

scoring_parameters = Table(
    "scoring_parameters", metadata,
    _id_column(),
    Column("campaign_id", String(36), ForeignKey("job_campaigns.id", ondelete="CASCADE"), nullable=False),
    Column("parameter_type", String(50), nullable=False),
    Column("parameter_name", String(255), nullable=False),
    Column("weight", Float, nullable=False, server_default="1"),
    Column("proficiency_level", String(50)),
    Column("is_required", Boolean, nullable=False, server_default="0"),
    Column("description", Text),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

interview_setups = Table(
    "interview_setups", metadata,
    _id_column(),
    Column("campaign_id", String(36), ForeignKey("job_campaigns.id", ondelete="CASCADE"), nullable=False),
    Column("round_number", Integer, nullable=False),
    Column("round_name", String(100), nullable=False),
    Column("interview_type", String(20), nullable=False),
    Column("time_limit", Integer, nullable=False, server_default="30"),
    Column("number_of_questions", Integer, nullable=False, server_default="5"),
    Column("difficulty_level", String(20), nullable=False, server_default="medium"),
    Column("passing_score", Integer, nullable=False, server_default="70"),
    Column("instructions", Text),
    Column("question_collection_id", String(36)),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
    UniqueConstraint("campaign_id", "round_number", name="uq_setup_campaign_round"),
)

candidates = Table(
    "candidates", metadata,
    _id_column(),
    Column("campaign_id", String(36), ForeignKey("job_campaigns.id", ondelete="CASCADE"), nullable=False),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False),
    Column("phone", String(50)),
    Column("resume_url", String(500)),
    Column("resume_mongo_id", String(50)),
    Column("linkedin_url", String(500)),
    Column("portfolio_url", String(500)),
    Column("experience_years", Integer),
    Column("current_company", String(255)),
    Column("current_position", String(255)),
    Column("location", String(255)),
    Column("source", String(50), server_default="manual"),
    Column("status", String(20), nullable=False, server_default="applied"),
    Column("talent_fit_score", Integer),
    Column("overall_score", Float),
    Column("ai_parsed_data", Text),
    Column("notes", Text),
    *_timestamps(),
    UniqueConstraint("campaign_id", "email", name="uq_candidate_campaign_email"),
)

application_status_history = Table(
    "application_status_history", metadata,
    _id_column(),
    Column("candidate_id", String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False),
    Column("from_status", String(20)),
    Column("to_status", String(20), nullable=False),
    Column("changed_by", String(36)),
    Column("notes", Text),
    Column("changed_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

candidate_scores = Table(
    "candidate_scores", metadata,
    _id_column(),
    Column("candidate_id", String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False),
    Column("parameter_id", String(36), ForeignKey("scoring_parameters.id", ondelete="CASCADE"), nullable=False),
    Column("score", Integer, nullable=False),
    Column("max_score", Integer, nullable=False, server_default="100"),
    Column("notes", Text),
    Column("scored_by", String(36)),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
    UniqueConstraint("candidate_id", "parameter_id", name="uq_candidate_parameter"),
)

# ============================================================
# QUESTION BANK
# ============================================================

question_collections = Table(
    "question_collections", metadata,
    _id_column(),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("interview_type", String(20)),
    Column("created_by", String(36)),
    *_timestamps(),
)

questions = Table(
    "questions", metadata,
    _id_column(),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("collection_id", String(36), ForeignKey("question_collections.id", ondelete="SET NULL")),
    Column("question_type", String(20), nullable=False),
    Column("question", Text, nullable=False),
    Column("options", Text),
    Column("correct_answer", Text),
    Column("explanation", Text),
    Column("expected_answer", Text),
    Column("category", String(100)),
    Column("difficulty_level", String(20), server_default="medium"),
    Column("time_limit", Integer),
    Column("tags", Text),
    Column("ai_generated", Boolean, nullable=False, server_default="0"),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("usage_count", Integer, nullable=False, server_default="0"),
    *_timestamps(),
)

# ============================================================
# INTERVIEWS
# ============================================================

interviews = Table(
    "interviews", metadata,
    _id_column(),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("campaign_id", String(36), ForeignKey("job_campaigns.id", ondelete="CASCADE")),
    Column("candidate_id", String(36), ForeignKey("candidates.id", ondelete="CASCADE")),
    Column("interview_setup_id", String(36), ForeignKey("interview_setups.id", ondelete="SET NULL")),
    Column("created_by", String(36)),
    Column("candidate_name", String(255)),
    Column("candidate_email", String(255), nullable=False),
    Column("interview_type", String(20), nullable=False),
    Column("round_number", Integer, nullable=False, server_default="1"),
    Column("difficulty_level", String(20), server_default="medium"),
    Column("time_limit", Integer, server_default="30"),
    Column("passing_score", Integer, nullable=False, server_default="70"),
    Column("status", String(20), nullable=False, server_default="scheduled"),
    Column("access_token", String(64), nullable=False, unique=True),
    Column("questions", Text, nullable=False),
    Column("answers", Text),
    Column("scoring_details", Text),
    Column("score", Float),
    Column("max_score", Float),
    Column("percentage", Float),
    Column("passed", Boolean),
    Column("completion_rate", Float),
    Column("total_time_spent", Integer),
    Column("scheduled_at", DateTime),
    Column("expires_at", DateTime),
    Column("started_at", DateTime),
    Column("completed_at", DateTime),
    *_timestamps(),
)

interview_analytics = Table(
    "interview_analytics", metadata,
    _id_column(),
    Column("interview_id", String(36), ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("company_id", String(36)),
    Column("interview_type", String(20), nullable=False),
    Column("completion_status", Boolean, nullable=False, server_default="0"),
    Column("candidate_name", String(255)),
    Column("candidate_email", String(255)),
    Column("completion_time", DateTime),
    Column("overall_rating", Integer),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

campaign_analytics = Table(
    "campaign_analytics", metadata,
    _id_column(),
    Column("campaign_id", String(36), ForeignKey("job_campaigns.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("total_applications", Integer, nullable=False, server_default="0"),
    Column("first_round_interviews", Integer, nullable=False, server_default="0"),
    Column("first_round_shortlisted", Integer, nullable=False, server_default="0"),
    Column("second_round_interviews", Integer, nullable=False, server_default="0"),
    Column("second_round_shortlisted", Integer, nullable=False, server_default="0"),
    Column("third_round_interviews", Integer, nullable=False, server_default="0"),
    Column("third_round_shortlisted", Integer, nullable=False, server_default="0"),
    Column("final_hires", Integer, nullable=False, server_default="0"),
    Column("average_score", Float, nullable=False, server_default="0"),
    Column("conversion_rate", Float, nullable=False, server_default="0"),
    Column("time_to_hire", Integer, nullable=False, server_default="0"),
    *_timestamps(),
)

interview_recordings = Table(
    "interview_recordings", metadata,
    _id_column(),
    Column("interview_id", String(36), ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False),
    Column("company_id", String(36), nullable=False),
    Column("candidate_email", String(255), nullable=False),
    Column("blob_name", String(500), nullable=False),
    Column("azure_url", String(1000), nullable=False),
    Column("file_size", Integer, nullable=False),
    Column("mime_type", String(50), nullable=False, server_default="video/webm"),
    Column("is_deleted", Boolean, nullable=False, server_default="0"),
    Column("deleted_at", DateTime),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

# ============================================================
# INTEGRATIONS
# ============================================================

webhooks = Table(
    "webhooks", metadata,
    _id_column(),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("url", String(1000), nullable=False),
    Column("events", Text, nullable=False),
    Column("secret", String(128), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("last_triggered_at", DateTime),
    *_timestamps(),
)

webhook_deliveries = Table(
    "webhook_deliveries", metadata,
    _id_column(),
    Column("webhook_id", String(36), ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False),
    Column("event", String(100), nullable=False),
    Column("payload", Text, nullable=False),
    Column("response_status", Integer),
    Column("response_body", Text),
    Column("attempt", Integer, nullable=False, server_default="1"),
    Column("success", Boolean, nullable=False, server_default="0"),
    Column("error", Text),
    Column("delivered_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

# ============================================================
# BILLING & ADMIN
# ============================================================

subscription_plans = Table(
    "subscription_plans", metadata,
    _id_column(),
    Column("name", String(50), nullable=False, unique=True),
    Column("display_name", String(100), nullable=False),
    Column("description", Text),
    Column("monthly_price", Integer, nullable=False, server_default="0"),
    Column("yearly_price", Integer, nullable=False, server_default="0"),
    Column("max_interviews", Integer, nullable=False, server_default="10"),
    Column("max_users", Integer, nullable=False, server_default="2"),
    Column("features", Text),
    Column("stripe_monthly_price_id", String(255)),
    Column("stripe_yearly_price_id", String(255)),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    *_timestamps(),
)

subscription_transactions = Table(
    "subscription_transactions", metadata,
    _id_column(),
    Column("company_id", String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("plan_name", String(50)),
    Column("amount", Integer, nullable=False),
    Column("currency", String(10), nullable=False, server_default="usd"),
    Column("status", String(20), nullable=False),
    Column("stripe_invoice_id", String(255)),
    Column("stripe_payment_intent_id", String(255)),
    Column("billing_period_start", DateTime),
    Column("billing_period_end", DateTime),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

admin_activity_logs = Table(
    "admin_activity_logs", metadata,
    _id_column(),
    Column("admin_id", String(36), nullable=False),
    Column("action", String(100), nullable=False),
    Column("target_type", String(50)),
    Column("target_id", String(36)),
    Column("details", Text),
    Column("ip_address", String(50)),
    Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
)

Index("ix_candidates_company_status", candidates.c.company_id, candidates.c.status)
Index("ix_interviews_company_status", interviews.c.company_id, interviews.c.status)
Index("ix_webhook_deliveries_webhook", webhook_deliveries.c.webhook_id)
