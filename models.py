import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from auth import verify_password

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


class RoleType(str, enum.Enum):
    EMPLOYEE = "employee"
    EMPLOYER = "employer"
    ADMIN = "admin"


class JobStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class JobType(str, enum.Enum):
    INTERNSHIP = "Internship"
    PART_TIME = "Part Time"
    HYBRID = "Hybrid"
    FULL_TIME = "Full time"
    FREELANCE = "Freelance"


class ExperienceLevel(str, enum.Enum):
    ENTRY = "Entry"
    MID = "Mid"
    SENIOR = "Senior"


class EducationLevel(str, enum.Enum):
    HIGH_SCHOOL = "HighSchool"
    BACHELOR = "Bachelor"
    BACHELOR_STUDENT = "Bachelor Student"
    MASTER = "Master"
    OTHER = "Other"


class ApplicationStatus(str, enum.Enum):
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    SHORTLISTED = "Shortlisted"
    INTERVIEWED = "Interviewed"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


# An application in one of these states can no longer be withdrawn
TERMINAL_STATUSES = (ApplicationStatus.ACCEPTED.value, ApplicationStatus.REJECTED.value)


class User(Base):
    """Every principal kind lives in this table, told apart by ``role``."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)

    phone_number = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Employee profile
    job_title = Column(String, nullable=True)
    skills = Column(JSON, nullable=True)
    experience_level = Column(String, nullable=True)
    years_of_experience = Column(Integer, nullable=True)

    # Employer profile
    company_name = Column(String, nullable=True)
    industry = Column(String, nullable=True)

    jobs = relationship("Job", back_populates="employer", cascade="all, delete-orphan")
    applications = relationship("Application", back_populates="employee", cascade="all, delete-orphan")

    def verify_password(self, plain_password):
        return verify_password(plain_password, self.hashed_password)

    @property
    def is_admin(self):
        return self.role == RoleType.ADMIN.value

    @property
    def is_employer(self):
        return self.role == RoleType.EMPLOYER.value

    @property
    def is_employee(self):
        return self.role == RoleType.EMPLOYEE.value


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=False)
    requirements = Column(JSON, nullable=False, default=list)
    responsibilities = Column(Text, nullable=False)
    type = Column(String, nullable=False)
    experience = Column(String, nullable=False)
    education = Column(String, nullable=False)
    skills = Column(JSON, nullable=False, default=list)
    hours_of_work = Column(String, nullable=False)
    location = Column(String, nullable=True)
    is_remote = Column(Boolean, default=False, nullable=False)
    status = Column(String, default=JobStatus.ACTIVE.value, nullable=False, index=True)

    salary_min = Column(Float, nullable=False)
    salary_max = Column(Float, nullable=False)
    salary_currency = Column(String, default="USD", nullable=False)

    applications_count = Column(Integer, default=0, nullable=False)
    views_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    employer = relationship("User", back_populates="jobs")
    applications = relationship("Application", back_populates="job", cascade="all, delete-orphan")

    @property
    def salary(self):
        return {"min": self.salary_min, "max": self.salary_max, "currency": self.salary_currency}

    @property
    def company_name(self):
        return self.employer.company_name if self.employer else None

    @property
    def is_accepting_applications(self):
        return self.status == JobStatus.ACTIVE.value


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        # Only one live application per (employee, job); withdrawn ones don't count.
        Index(
            "uq_active_application",
            "employee_id",
            "job_id",
            unique=True,
            sqlite_where=text("is_withdrawn = 0"),
            postgresql_where=text("is_withdrawn = false"),
        ),
        Index("ix_applications_status_applied_at", "status", "applied_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    status = Column(String, default=ApplicationStatus.PENDING.value, nullable=False)
    cover_letter = Column(Text, nullable=True)
    resume = Column(String, nullable=True)
    expected_salary = Column(Float, nullable=True)
    employer_notes = Column(Text, nullable=True)
    employee_notes = Column(Text, nullable=True)

    is_withdrawn = Column(Boolean, default=False, nullable=False)
    applied_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)

    job = relationship("Job", back_populates="applications")
    employee = relationship("User", back_populates="applications")

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES
