"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    super_admin = "super-admin"
    company = "company"
    candidate = "candidate"


class CampaignStatus(str, Enum):
    draft = "draft"
    active = "active"
    paused = "paused"
    closed = "closed"


class CandidateStatus(str, Enum):
    applied = "applied"
    screening = "screening"
    interview = "interview"
    hired = "hired"
    rejected = "rejected"


class InterviewType(str, Enum):
    mcq = "mcq"
    coding = "coding"
    behavioral = "behavioral"
    combo = "combo"


class InterviewStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class ParameterType(str, Enum):
    skill = "skill"
    competency = "competency"
    experience = "experience"
    education = "education"


class OtpPurpose(str, Enum):
    signup = "signup"
    signin = "signin"
    candidate_access = "candidate_access"


class BillingPeriod(str, Enum):
    monthly = "monthly"
    yearly = "yearly"


class WebhookEvent(str, Enum):
    candidate_created = "candidate.created"
    candidate_updated = "candidate.updated"
    candidate_status_changed = "candidate.status_changed"
    interview_scheduled = "interview.scheduled"
    interview_completed = "interview.completed"
    interview_cancelled = "interview.cancelled"
    job_created = "job.created"
    job_updated = "job.updated"
    job_published = "job.published"
    job_closed = "job.closed"
    application_submitted = "application.submitted"
    application_reviewed = "application.reviewed"
    evaluation_completed = "evaluation.completed"
    subscription_created = "subscription.created"
    subscription_updated = "subscription.updated"
    subscription_cancelled = "subscription.cancelled"
    payment_succeeded = "payment.succeeded"
    payment_failed = "payment.failed"
    invoice_created = "invoice.created"
    invoice_paid = "invoice.paid"
    invoice_payment_failed = "invoice.payment_failed"
    customer_created = "customer.created"
    customer_updated = "customer.updated"
    plan_changed = "plan.changed"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company_name: str = Field(..., min_length=2, max_length=255)
    company_domain: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str
    company_id: Optional[str] = None

class UserResponse(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    company_id: Optional[str] = None
    is_active: bool
    email_verified: bool = False
    last_login: Optional[datetime] = None
    created_at: datetime

class OtpSendRequest(BaseModel):
    email: EmailStr
    purpose: OtpPurpose

class OtpVerifyRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)
    purpose: OtpPurpose

class OtpVerifyResponse(BaseModel):
    verified: bool
    message: str
    access_token: Optional[str] = None

class DomainDetectionRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def must_have_domain(cls, v: str) -> str:
        if "@" not in v or not v.split("@", 1)[1]:
            raise ValueError("Invalid email format")
        return v


# ============================================================
# SSO SCHEMAS
# ============================================================

DEFAULT_SAML_ATTRIBUTE_MAPPING = {
    "email": "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress",
    "firstName": "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/givenname",
    "lastName": "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/surname",
}

class SamlConfigRequest(BaseModel):
    company_id: str
    entity_id: str = Field(..., min_length=1)
    sso_url: HttpUrl
    x509_certificate: str = Field(..., min_length=1)
    attribute_mapping: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SAML_ATTRIBUTE_MAPPING))

class OAuthConfigRequest(BaseModel):
    company_id: str
    provider: str = Field(..., pattern="^(google|microsoft|github|okta)$")
    client_id: str
    client_secret: str
    auth_url: HttpUrl
    token_url: HttpUrl
    user_info_url: HttpUrl
    redirect_uri: HttpUrl
    scopes: List[str] = ["openid", "email", "profile"]

class SsoConfigResponse(BaseModel):
    id: str
    company_id: str
    provider: str
    configuration: Dict[str, Any]
    is_active: bool
    created_at: datetime


# ============================================================
# COMPANY SCHEMAS
# ============================================================

class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = None
    website: Optional[str] = None
    domain: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None

class CompanyResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    domain: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    description: Optional[str] = None
    subscription_plan: str
    subscription_status: str
    max_interviews: int
    max_users: int
    interviews_used: int
    is_active: bool
    created_at: datetime

class UsageResponse(BaseModel):
    plan: str
    plan_label: str
    interviews_used: int
    max_interviews: int
    max_interviews_label: str
    users: int
    max_users: int
    max_users_label: str

class TeamMemberCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8)


# ============================================================
# CAMPAIGN SCHEMAS
# ============================================================

class CampaignCreate(BaseModel):
    campaign_name: str = Field(..., min_length=2, max_length=255)
    job_title: str = Field(..., min_length=2, max_length=255)
    department: Optional[str] = None
    location: Optional[str] = None
    experience_level: Optional[str] = None
    employee_type: str = "full-time"
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    currency: str = "USD"
    job_description: Optional[str] = None
    requirements: Optional[str] = None
    benefits: Optional[str] = None
    required_skills: List[str] = []
    is_remote: bool = False
    target_hire_count: int = Field(1, ge=1)
    status: CampaignStatus = CampaignStatus.active

class CampaignUpdate(BaseModel):
    campaign_name: Optional[str] = Field(None, min_length=2, max_length=255)
    job_title: Optional[str] = None
    department: Optional[str] = None
    location: Optional[str] = None
    experience_level: Optional[str] = None
    employee_type: Optional[str] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    job_description: Optional[str] = None
    requirements: Optional[str] = None
    benefits: Optional[str] = None
    required_skills: Optional[List[str]] = None
    is_remote: Optional[bool] = None
    target_hire_count: Optional[int] = Field(None, ge=1)
    status: Optional[CampaignStatus] = None

class CampaignResponse(BaseModel):
    id: str
    company_id: str
    campaign_name: str
    job_title: str
    department: Optional[str] = None
    location: Optional[str] = None
    experience_level: Optional[str] = None
    employee_type: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    currency: Optional[str] = None
    job_description: Optional[str] = None
    requirements: Optional[str] = None
    benefits: Optional[str] = None
    required_skills: List[str] = []
    is_remote: bool
    target_hire_count: int
    status: str
    candidate_count: int = 0
    created_at: datetime

class CampaignListResponse(BaseModel):
    campaigns: List[CampaignResponse]
    total: int
    page: int
    page_size: int

class ScoringParameterCreate(BaseModel):
    parameter_type: ParameterType
    parameter_name: str = Field(..., min_length=1, max_length=255)
    weight: float = Field(1, gt=0)
    proficiency_level: Optional[str] = None
    is_required: bool = False
    description: Optional[str] = None

class ScoringParameterResponse(BaseModel):
    id: str
    campaign_id: str
    parameter_type: str
    parameter_name: str
    weight: float
    proficiency_level: Optional[str] = None
    is_required: bool
    description: Optional[str] = None

class InterviewSetupCreate(BaseModel):
    round_number: int = Field(..., ge=1)
    round_name: str = Field(..., min_length=1, max_length=100)
    interview_type: InterviewType
    time_limit: int = Field(30, ge=1, le=240)
    number_of_questions: int = Field(5, ge=1, le=50)
    difficulty_level: Difficulty = Difficulty.medium
    passing_score: int = Field(70, ge=0, le=100)
    instructions: Optional[str] = None
    question_collection_id: Optional[str] = None

class InterviewSetupResponse(BaseModel):
    id: str
    campaign_id: str
    round_number: int
    round_name: str
    interview_type: str
    time_limit: int
    number_of_questions: int
    difficulty_level: str
    passing_score: int
    instructions: Optional[str] = None
    question_collection_id: Optional[str] = None

class CampaignAnalytics(BaseModel):
    total_applications: int = 0
    first_round_interviews: int = 0
    first_round_shortlisted: int = 0
    second_round_interviews: int = 0
    second_round_shortlisted: int = 0
    third_round_interviews: int = 0
    third_round_shortlisted: int = 0
    final_hires: int = 0
    average_score: float = 0
    conversion_rate: float = 0
    time_to_hire: int = 0

class CampaignAnalyticsResponse(CampaignAnalytics):
    campaign_id: str


# ============================================================
# CANDIDATE SCHEMAS
# ============================================================

class CandidateCreate(BaseModel):
    campaign_id: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0, le=60)
    current_company: Optional[str] = None
    current_position: Optional[str] = None
    location: Optional[str] = None
    source: str = "manual"
    notes: Optional[str] = None

class CandidateUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0, le=60)
    current_company: Optional[str] = None
    current_position: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

class CandidateStatusUpdate(BaseModel):
    status: CandidateStatus
    notes: Optional[str] = None

class CandidateResponse(BaseModel):
    id: str
    campaign_id: str
    company_id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    experience_years: Optional[int] = None
    current_company: Optional[str] = None
    current_position: Optional[str] = None
    location: Optional[str] = None
    source: Optional[str] = None
    status: str
    talent_fit_score: Optional[int] = None
    overall_score: Optional[float] = None
    ai_parsed_data: Optional[dict] = None
    notes: Optional[str] = None
    created_at: datetime

class CandidateListResponse(BaseModel):
    candidates: List[CandidateResponse]
    total: int
    page: int
    page_size: int

class StatusHistoryResponse(BaseModel):
    id: str
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    changed_at: datetime

class ResumeUploadResponse(BaseModel):
    success: bool
    message: str
    filename: Optional[str] = None
    extracted_skills: List[str] = []
    parsed_data: Optional[dict] = None

class ParameterScore(BaseModel):
    parameter_id: str
    parameter_name: str
    parameter_type: str
    weight: float
    score: int
    evidence: Optional[str] = None
    source: str

class TalentFitResponse(BaseModel):
    candidate_id: str
    talent_fit_score: int
    scores: List[ParameterScore]


# ============================================================
# AI GENERATION SCHEMAS
# ============================================================

class QuestionGenerationRequest(BaseModel):
    topic: Optional[str] = None
    job_position: Optional[str] = None
    job_description: Optional[str] = None
    years_of_experience: Optional[str] = None
    resume_text: Optional[str] = None
    total_questions: Optional[int] = Field(None, ge=1, le=30)
    difficulty: Difficulty = Difficulty.medium
    languages: Optional[List[str]] = None

class FallbackGenerationRequest(BaseModel):
    interview_type: str
    job_title: str = Field(..., min_length=1)
    job_description: str = ""
    company_name: str = "the company"
    difficulty_level: str = "medium"
    number_of_questions: int = Field(..., ge=1, le=30)
    candidate_name: str = "the candidate"

class QuestionGenerationResponse(BaseModel):
    success: bool = True
    questions: List[Dict[str, Any]]
    source: str = "ai"
    metadata: Dict[str, Any] = {}

class JobDescriptionRequest(BaseModel):
    job_title: str = Field(..., min_length=2)
    department: Optional[str] = None
    experience_level: Optional[str] = None
    location: Optional[str] = None
    employee_type: Optional[str] = None
    company_name: Optional[str] = None
    key_skills: List[str] = []

class SkillsRequest(BaseModel):
    job_title: str = Field(..., min_length=2)
    job_description: Optional[str] = None
    experience_level: Optional[str] = None


# ============================================================
# QUESTION BANK SCHEMAS
# ============================================================

class QuestionCollectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    interview_type: Optional[InterviewType] = None

class QuestionCollectionResponse(BaseModel):
    id: str
    company_id: str
    name: str
    description: Optional[str] = None
    interview_type: Optional[str] = None
    question_count: int = 0
    created_at: datetime

class McqOption(BaseModel):
    id: str
    text: str
    isCorrect: bool = False

class QuestionCreate(BaseModel):
    collection_id: Optional[str] = None
    question_type: InterviewType
    question: str = Field(..., min_length=5)
    options: Optional[List[McqOption]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    expected_answer: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: Difficulty = Difficulty.medium
    time_limit: Optional[int] = Field(None, ge=10)
    tags: List[str] = []

class QuestionResponse(BaseModel):
    id: str
    collection_id: Optional[str] = None
    question_type: str
    question: str
    options: Optional[List[Dict[str, Any]]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    expected_answer: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: Optional[str] = None
    time_limit: Optional[int] = None
    tags: List[str] = []
    ai_generated: bool = False
    created_at: datetime


# ============================================================
# INTERVIEW SCHEMAS
# ============================================================

class InterviewCreate(BaseModel):
    candidate_id: str
    interview_setup_id: str
    scheduled_at: Optional[datetime] = None
    send_email: bool = True

class InterviewResponse(BaseModel):
    id: str
    company_id: str
    campaign_id: Optional[str] = None
    candidate_id: Optional[str] = None
    candidate_name: Optional[str] = None
    candidate_email: str
    interview_type: str
    round_number: int
    status: str
    question_count: int
    score: Optional[float] = None
    max_score: Optional[float] = None
    percentage: Optional[float] = None
    passed: Optional[bool] = None
    completion_rate: Optional[float] = None
    scheduled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

class InterviewScheduledResponse(InterviewResponse):
    access_token: str
    interview_link: str

class InterviewAccessRequest(BaseModel):
    access_token: str
    email: EmailStr

class InterviewStartResponse(BaseModel):
    interview_id: str
    interview_type: str
    time_limit: Optional[int] = None
    questions: List[Dict[str, Any]]
    started_at: datetime

class AnswerSubmission(BaseModel):
    questionId: str
    question: str
    answer: str
    timeSpent: Optional[int] = Field(None, ge=0)
    language: Optional[str] = None

class InterviewSubmitRequest(BaseModel):
    access_token: str
    answers: List[AnswerSubmission]
    totalTimeSpent: Optional[int] = Field(None, ge=0)
    candidateEmail: Optional[EmailStr] = None
    candidateName: Optional[str] = None

class InterviewSubmitResponse(BaseModel):
    success: bool = True
    interview_id: str
    status: str
    completion_rate: float
    score: float
    max_score: float
    percentage: float
    passed: bool

class InterviewResultsResponse(BaseModel):
    interview: InterviewResponse
    answers: List[Dict[str, Any]]
    scoring: List[Dict[str, Any]]


# ============================================================
# RECORDING SCHEMAS
# ============================================================

class RecordingResponse(BaseModel):
    id: str
    interview_id: str
    candidate_email: str
    azure_url: str
    file_size: int
    mime_type: str
    created_at: datetime


# ============================================================
# BILLING SCHEMAS
# ============================================================

class PlanResponse(BaseModel):
    id: Optional[str] = None
    name: str
    display_name: str
    monthly_price: int
    yearly_price: int
    max_interviews: int
    max_users: int
    max_interviews_label: str
    max_users_label: str
    features: List[str] = []

class CheckoutRequest(BaseModel):
    plan_id: str
    billing_period: BillingPeriod = BillingPeriod.monthly

class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str] = None

class PortalResponse(BaseModel):
    url: str


# ============================================================
# WEBHOOK SCHEMAS
# ============================================================

class WebhookCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: HttpUrl
    events: List[WebhookEvent] = Field(..., min_length=1)
    is_active: bool = True

class WebhookUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[HttpUrl] = None
    events: Optional[List[WebhookEvent]] = Field(None, min_length=1)
    is_active: Optional[bool] = None

class WebhookResponse(BaseModel):
    id: str
    company_id: str
    name: str
    url: str
    events: List[str]
    secret: str
    is_active: bool
    last_triggered_at: Optional[datetime] = None
    created_at: datetime

class WebhookDeliveryResponse(BaseModel):
    id: str
    event: str
    response_status: Optional[int] = None
    response_body: Optional[str] = None
    attempt: int
    success: bool
    error: Optional[str] = None
    delivered_at: datetime


# ============================================================
# ADMIN SCHEMAS
# ============================================================

class AdminCompanyUpdate(BaseModel):
    subscription_plan: Optional[str] = None
    subscription_status: Optional[str] = None
    is_active: Optional[bool] = None

class AdminUserUpdate(BaseModel):
    is_active: Optional[bool] = None
    role: Optional[UserRole] = None

class SubscriptionPlanCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    display_name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    monthly_price: int = Field(0, ge=0)
    yearly_price: int = Field(0, ge=0)
    max_interviews: int = Field(10, ge=-1)
    max_users: int = Field(2, ge=-1)
    features: List[str] = []
    stripe_monthly_price_id: Optional[str] = None
    stripe_yearly_price_id: Optional[str] = None
    is_active: bool = True

class PlatformAnalyticsResponse(BaseModel):
    total_companies: int
    active_companies: int
    total_users: int
    total_candidates: int
    total_campaigns: int
    total_interviews: int
    completed_interviews: int
    total_revenue: int
    plan_distribution: Dict[str, int]

class ActivityLogResponse(BaseModel):
    id: str
    admin_id: str
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[dict] = None
    created_at: datetime


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True

class ErrorResponse(BaseModel):
    detail: str
