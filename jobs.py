"""Job postings: create, search, read, update, delete, per-employer stats and browse helpers."""
import json
import logging
from collections import Counter
from typing import Optional

from sqlalchemy import String, case, cast, func, or_
from sqlalchemy.orm import Session

import models
import policy
from database import paginate
from errors import BadRequest, NotFound

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": models.Job.created_at,
    "salary": models.Job.salary_min,
    "views": models.Job.views_count,
    "applications": models.Job.applications_count,
}


def _apply_fields(job: models.Job, data: dict) -> None:
    salary = data.pop("salary", None)
    if salary is not None:
        job.salary_min = salary["min"]
        job.salary_max = salary["max"]
        job.salary_currency = salary.get("currency") or "USD"
    for field, value in data.items():
        setattr(job, field, value)


def get_job_or_404(db: Session, job_id: int) -> models.Job:
    job = db.query(models.Job).filter(models.Job.id == job_id).first()
    if job is None:
        raise NotFound("Job not found")
    return job


def create_job(db: Session, employer: models.User, data: dict) -> models.Job:
    job = models.Job(employer_id=employer.id)
    _apply_fields(job, dict(data))
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("Job #%s created by %s #%s", job.id, employer.role, employer.id)
    return job


def view_job(db: Session, job_id: int) -> models.Job:
    job = get_job_or_404(db, job_id)
    job.views_count = models.Job.views_count + 1
    db.commit()
    db.refresh(job)
    return job


def update_job(db: Session, job_id: int, user: models.User, data: dict) -> models.Job:
    job = get_job_or_404(db, job_id)
    policy.ensure(policy.can_modify_job(user, job), user, "You can only modify your own jobs")
    _apply_fields(job, dict(data))
    db.commit()
    db.refresh(job)
    logger.info("Job #%s updated by %s #%s", job.id, user.role, user.id)
    return job


def delete_job(db: Session, job_id: int, user: models.User) -> None:
    """Deletes the job together with every application made to it."""
    job = get_job_or_404(db, job_id)
    policy.ensure(policy.can_modify_job(user, job), user, "You can only modify your own jobs")
    db.delete(job)
    db.commit()
    logger.info("Job #%s deleted by %s #%s", job_id, user.role, user.id)


def _has_skill(skill: str):
    # skills is stored as JSON text, so non-ASCII letters appear as \uXXXX
    # escapes. Match the whole encoded element, lowercased on both sides.
    stored = func.lower(cast(models.Job.skills, String), type_=String)
    return stored.contains(json.dumps(skill.lower()), autoescape=True)


def search_jobs(
    db: Session,
    page: int = 1,
    page_size: int = 10,
    search: Optional[str] = None,
    job_type: Optional[str] = None,
    experience: Optional[str] = None,
    education: Optional[str] = None,
    is_remote: Optional[bool] = None,
    skill: Optional[str] = None,
    location: Optional[str] = None,
    min_salary: Optional[float] = None,
    max_salary: Optional[float] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    """Active jobs matching every given filter.

    Salary filters match on range overlap: a job paying 40k-60k matches
    ``min_salary=50000``.
    """
    if sort_by not in SORTABLE_FIELDS:
        raise BadRequest("sort_by must be one of: " + ", ".join(SORTABLE_FIELDS))

    query = db.query(models.Job).filter(models.Job.status == models.JobStatus.ACTIVE.value)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(models.Job.title.ilike(pattern), models.Job.description.ilike(pattern)))
    if job_type:
        query = query.filter(models.Job.type == job_type)
    if experience:
        query = query.filter(models.Job.experience == experience)
    if education:
        query = query.filter(models.Job.education == education)
    if is_remote is not None:
        query = query.filter(models.Job.is_remote.is_(is_remote))
    if skill:
        query = query.filter(_has_skill(skill))
    if location:
        query = query.filter(models.Job.location.ilike(f"%{location}%"))
    if min_salary is not None:
        query = query.filter(models.Job.salary_max >= min_salary)
    if max_salary is not None:
        query = query.filter(models.Job.salary_min <= max_salary)

    column = SORTABLE_FIELDS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, models.Job.id.desc())
    return paginate(query, page, page_size)


def list_employer_jobs(db: Session, employer_id: int, status: Optional[str] = None, page: int = 1, page_size: int = 10):
    query = db.query(models.Job).filter(models.Job.employer_id == employer_id)
    if status:
        query = query.filter(models.Job.status == status)
    query = query.order_by(models.Job.created_at.desc(), models.Job.id.desc())
    return paginate(query, page, page_size)


def employer_stats(db: Session, employer_id: int) -> dict:
    active = models.JobStatus.ACTIVE.value
    inactive = models.JobStatus.INACTIVE.value
    total, active_jobs, inactive_jobs, views, applications, avg_views, avg_applications = (
        db.query(
            func.count(models.Job.id),
            func.sum(case((models.Job.status == active, 1), else_=0)),
            func.sum(case((models.Job.status == inactive, 1), else_=0)),
            func.sum(models.Job.views_count),
            func.sum(models.Job.applications_count),
            func.avg(models.Job.views_count),
            func.avg(models.Job.applications_count),
        )
        .filter(models.Job.employer_id == employer_id)
        .one()
    )

    def breakdown(column):
        rows = (
            db.query(column, func.count(models.Job.id))
            .filter(models.Job.employer_id == employer_id)
            .group_by(column)
            .all()
        )
        return {key: count for key, count in rows}

    return {
        "total_jobs": total or 0,
        "active_jobs": int(active_jobs or 0),
        "inactive_jobs": int(inactive_jobs or 0),
        "total_views": int(views or 0),
        "total_applications": int(applications or 0),
        "avg_views": float(avg_views or 0),
        "avg_applications": float(avg_applications or 0),
        "by_type": breakdown(models.Job.type),
        "by_experience": breakdown(models.Job.experience),
    }


# Title keywords offered as browse categories
JOB_CATEGORIES = [
    "Technology",
    "Healthcare",
    "Finance",
    "Education",
    "Marketing",
    "Sales",
    "Design",
    "Engineering",
    "Customer Service",
    "Other",
]


def popular_skills(db: Session, limit: int = 20) -> list:
    """Skills most often asked for by active jobs or listed by employees."""
    counts = Counter()
    job_skills = db.query(models.Job.skills).filter(models.Job.status == models.JobStatus.ACTIVE.value)
    employee_skills = db.query(models.User.skills).filter(models.User.role == models.RoleType.EMPLOYEE.value)
    for (skills,) in job_skills.all() + employee_skills.all():
        counts.update(skill.strip() for skill in skills or [] if skill and skill.strip())
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"skill": skill, "count": count} for skill, count in ranked[:limit]]


def location_suggestions(db: Session, query: str, limit: int = 10) -> list:
    rows = (
        db.query(models.Job.location, func.count(models.Job.id).label("jobs"))
        .filter(models.Job.location.isnot(None), models.Job.location.ilike(f"%{query}%"))
        .group_by(models.Job.location)
        .order_by(func.count(models.Job.id).desc(), models.Job.location)
        .limit(limit)
        .all()
    )
    return [location for location, _ in rows]


def job_categories(db: Session) -> list:
    active = db.query(models.Job).filter(models.Job.status == models.JobStatus.ACTIVE.value)
    return [
        {"name": name, "count": active.filter(models.Job.title.ilike(f"%{name}%")).count()}
        for name in JOB_CATEGORIES
    ]
