from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from models import (
    ApplicationStatus,
    EducationLevel,
    ExperienceLevel,
    JobStatus,
    JobType,
)


# --- Token Schemas for Authentication ---
class Token(BaseModel):
    access_token: str
    token_type: str


# --- User Schemas ---
class UserBase(BaseModel):
    """Shared fields used in user-related schemas."""
    email: EmailStr
    full_name: str = Field(min_length=1)
    phone_number: Optional[str] = None


class UserCreate(UserBase):
    """Schema for user registration. Admins are created from the command line only."""
    password: str = Field(min_length=6)
    user_type: Literal["employee", "employer"]

    # Employee profile
    job_title: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience_level: Optional[Literal["entry", "mid", "senior", "lead", "other"]] = None
    years_of_experience: Optional[int] = Field(default=None, ge=0)

    # Employer profile
    company_name: Optional[str] = None
    industry: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower()

    @model_validator(mode="after")
    def employer_needs_company(self):
        if self.user_type == "employer" and not (self.company_name or "").strip():
            raise ValueError("company_name is required for employers")
        return self


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class User(UserBase):
    """Schema for returning user data (excluding password)."""
    id: int
    role: str
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    job_title: Optional[str] = None
    skills: Optional[List[str]] = None
    experience_level: Optional[str] = None
    years_of_experience: Optional[int] = None
    company_name: Optional[str] = None
    industry: Optional[str] = None

    class Config:
        from_attributes = True


class AuthResponse(Token):
    user: User


class UserUpdate(BaseModel):
    """Profile changes; fields left out keep their stored value."""
    full_name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = None
    job_title: Optional[str] = None
    skills: Optional[List[str]] = None
    experience_level: Optional[Literal["entry", "mid", "senior", "lead", "other"]] = None
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    company_name: Optional[str] = None
    industry: Optional[str] = None
    is_active: Optional[bool] = None

    class Config:
        str_strip_whitespace = True


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class UserStats(BaseModel):
    total_users: int
    by_role: Dict[str, int]
    recent_registrations: int
    distribution: Dict[str, int]


# --- Job Schemas ---
class SalaryRange(BaseModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    currency: str = "USD"

    @model_validator(mode="after")
    def min_not_above_max(self):
        if self.min > self.max:
            raise ValueError("Minimum salary cannot be greater than maximum salary")
        return self


class JobBase(BaseModel):
    """Shared fields used in job-related schemas."""
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    requirements: List[str] = Field(min_length=1)
    responsibilities: str = Field(min_length=1)
    type: JobType
    salary: SalaryRange
    experience: ExperienceLevel
    education: EducationLevel
    skills: List[str] = Field(min_length=1)
    hours_of_work: str = Field(min_length=1)
    location: Optional[str] = None
    is_remote: bool = False
    status: JobStatus = JobStatus.ACTIVE

    class Config:
        str_strip_whitespace = True


class JobCreate(JobBase):
    """Schema for creating a new job posting."""
    pass


class JobUpdate(BaseModel):
    """Partial update; fields left out keep their stored value."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    requirements: Optional[List[str]] = Field(default=None, min_length=1)
    responsibilities: Optional[str] = Field(default=None, min_length=1)
    type: Optional[JobType] = None
    salary: Optional[SalaryRange] = None
    experience: Optional[ExperienceLevel] = None
    education: Optional[EducationLevel] = None
    skills: Optional[List[str]] = Field(default=None, min_length=1)
    hours_of_work: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = None
    is_remote: Optional[bool] = None
    status: Optional[JobStatus] = None

    class Config:
        str_strip_whitespace = True


class Job(JobBase):
    """Schema for returning job data."""
    id: int
    employer_id: int
    applications_count: int
    views_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    has_next_page: bool
    has_prev_page: bool


class UserPage(BaseModel):
    items: List[User]
    pagination: Pagination


class UserSearchResult(BaseModel):
    items: List[User]
    total: int


class JobPage(BaseModel):
    items: List[Job]
    pagination: Pagination


class JobStats(BaseModel):
    total_jobs: int
    active_jobs: int
    inactive_jobs: int
    total_views: int
    total_applications: int
    avg_views: float
    avg_applications: float
    by_type: Dict[str, int]
    by_experience: Dict[str, int]


# --- Application Schemas ---
class ApplicationCreate(BaseModel):
    """Schema for applying to a job."""
    job_id: int
    cover_letter: Optional[str] = None
    expected_salary: Optional[float] = Field(default=None, ge=0)
    resume: Optional[str] = None
    employee_notes: Optional[str] = None

    class Config:
        str_strip_whitespace = True


class StatusUpdate(BaseModel):
    status: ApplicationStatus
    employer_notes: Optional[str] = None


class JobSummary(BaseModel):
    id: int
    title: str
    location: Optional[str] = None
    type: str
    status: str
    salary: SalaryRange
    employer_id: int
    company_name: Optional[str] = None

    class Config:
        from_attributes = True


class Applicant(BaseModel):
    id: int
    full_name: str
    email: str
    phone_number: Optional[str] = None

    class Config:
        from_attributes = True


class Application(BaseModel):
    id: int
    job_id: int
    employee_id: int
    status: ApplicationStatus
    cover_letter: Optional[str] = None
    resume: Optional[str] = None
    expected_salary: Optional[float] = None
    employer_notes: Optional[str] = None
    employee_notes: Optional[str] = None
    is_withdrawn: bool
    applied_at: datetime
    reviewed_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    job: Optional[JobSummary] = None
    employee: Optional[Applicant] = None

    class Config:
        from_attributes = True


class ApplicationPage(BaseModel):
    items: List[Application]
    pagination: Pagination


# --- Dashboard ---
class DashboardOverview(BaseModel):
    users_by_role: Dict[str, int]
    jobs_by_status: Dict[str, int]
    applications_by_status: Dict[str, int]
    withdrawn_applications: int


class JobAnalytics(BaseModel):
    total_jobs: int
    active_jobs: int
    inactive_jobs: int
    active_rate: int
    by_type: Dict[str, int]
    by_experience: Dict[str, int]
    recent_jobs: List[Job]
    avg_min_salary: Optional[float] = None
    avg_max_salary: Optional[float] = None
    lowest_salary: Optional[float] = None
    highest_salary: Optional[float] = None


class JobApplicationCount(BaseModel):
    job_id: int
    title: str
    applications: int


class ApplicationAnalytics(BaseModel):
    total_applications: int
    by_status: Dict[str, int]
    withdrawn_applications: int
    recent_applications: int
    acceptance_rate: int
    top_jobs: List[JobApplicationCount]


class TopJob(BaseModel):
    id: int
    title: str
    location: Optional[str] = None
    status: str
    company_name: Optional[str] = None
    applications: int
    views: int


class TopJobs(BaseModel):
    by_applications: List[TopJob]
    by_views: List[TopJob]


class ActivityEvent(BaseModel):
    type: Literal["job_created", "application_submitted", "employee_registered", "employer_registered"]
    id: int
    summary: str
    timestamp: datetime


# --- Search helpers ---
class SkillCount(BaseModel):
    skill: str
    count: int


class CategoryCount(BaseModel):
    name: str
    count: int
