"""Dashboard figures.

The overview and the activity feed are platform-wide and admin-only. Job
and application analytics and the top jobs cover every job for an admin
and only the caller's own jobs for an employer.
"""
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

import models

ACTIVITY_DAYS = 7


def _counts(db: Session, column, choices, scope=None):
    counts = {choice: 0 for choice in choices}
    query = db.query(column, func.count()).select_from(column.class_)
    if scope is not None:
        query = scope(query)
    for key, count in query.group_by(column).all():
        counts[key] = count
    return counts


def _percent(part, whole) -> int:
    return round(part * 100 / whole) if whole else 0


def _since(days: int):
    return models.utcnow() - timedelta(days=days)


def _job_scope(user: models.User):
    def scope(query):
        if user.is_admin:
            return query
        return query.filter(models.Job.employer_id == user.id)

    return scope


def _application_scope(user: models.User):
    def scope(query):
        query = query.join(models.Job, models.Application.job_id == models.Job.id)
        return _job_scope(user)(query)

    return scope


def overview(db: Session) -> dict:
    """Platform-wide totals for the admin dashboard."""
    withdrawn = (
        db.query(func.count(models.Application.id))
        .filter(models.Application.is_withdrawn.is_(True))
        .scalar()
    )
    return {
        "users_by_role": _counts(db, models.User.role, [r.value for r in models.RoleType]),
        "jobs_by_status": _counts(db, models.Job.status, [s.value for s in models.JobStatus]),
        "applications_by_status": _counts(
            db, models.Application.status, [s.value for s in models.ApplicationStatus]
        ),
        "withdrawn_applications": withdrawn or 0,
    }


def job_analytics(db: Session, user: models.User, period_days: int = 30) -> dict:
    scope = _job_scope(user)
    by_status = _counts(db, models.Job.status, [s.value for s in models.JobStatus], scope)
    total = sum(by_status.values())

    recent_jobs = (
        scope(db.query(models.Job))
        .filter(models.Job.created_at >= _since(period_days))
        .order_by(models.Job.created_at.desc(), models.Job.id.desc())
        .limit(10)
        .all()
    )
    avg_min, avg_max, lowest, highest = scope(
        db.query(
            func.avg(models.Job.salary_min),
            func.avg(models.Job.salary_max),
            func.min(models.Job.salary_min),
            func.max(models.Job.salary_max),
        )
    ).one()

    return {
        "total_jobs": total,
        "active_jobs": by_status[models.JobStatus.ACTIVE.value],
        "inactive_jobs": by_status[models.JobStatus.INACTIVE.value],
        "active_rate": _percent(by_status[models.JobStatus.ACTIVE.value], total),
        "by_type": _counts(db, models.Job.type, [t.value for t in models.JobType], scope),
        "by_experience": _counts(db, models.Job.experience, [e.value for e in models.ExperienceLevel], scope),
        "recent_jobs": recent_jobs,
        "avg_min_salary": avg_min,
        "avg_max_salary": avg_max,
        "lowest_salary": lowest,
        "highest_salary": highest,
    }


def _applications_per_job(db: Session, user: models.User, limit: int):
    count = func.count(models.Application.id)
    query = (
        db.query(models.Job, count.label("applications"))
        .join(models.Application, models.Application.job_id == models.Job.id)
        .filter(models.Application.is_withdrawn.is_(False))
    )
    return (
        _job_scope(user)(query)
        .group_by(models.Job.id)
        .order_by(count.desc(), models.Job.id)
        .limit(limit)
        .all()
    )


def application_analytics(db: Session, user: models.User, period_days: int = 30) -> dict:
    scope = _application_scope(user)
    by_status = _counts(
        db, models.Application.status, [s.value for s in models.ApplicationStatus], scope
    )
    total = sum(by_status.values())
    withdrawn = (
        scope(db.query(func.count(models.Application.id)).select_from(models.Application))
        .filter(models.Application.is_withdrawn.is_(True))
        .scalar()
    )
    recent = (
        scope(db.query(func.count(models.Application.id)).select_from(models.Application))
        .filter(models.Application.applied_at >= _since(period_days))
        .scalar()
    )

    return {
        "total_applications": total,
        "by_status": by_status,
        "withdrawn_applications": withdrawn or 0,
        "recent_applications": recent or 0,
        "acceptance_rate": _percent(by_status[models.ApplicationStatus.ACCEPTED.value], total),
        "top_jobs": [
            {"job_id": job.id, "title": job.title, "applications": count}
            for job, count in _applications_per_job(db, user, 10)
        ],
    }


def _top_job(job: models.Job, applications: int) -> dict:
    return {
        "id": job.id,
        "title": job.title,
        "location": job.location,
        "status": job.status,
        "company_name": job.company_name,
        "applications": applications,
        "views": job.views_count,
    }


def top_jobs(db: Session, user: models.User, limit: int = 10) -> dict:
    """Jobs ranked by live applications and by views."""
    by_views = (
        _job_scope(user)(db.query(models.Job).options(joinedload(models.Job.employer)))
        .order_by(models.Job.views_count.desc(), models.Job.id)
        .limit(limit)
        .all()
    )
    return {
        "by_applications": [_top_job(job, count) for job, count in _applications_per_job(db, user, limit)],
        "by_views": [_top_job(job, job.applications_count) for job in by_views],
    }


def recent_activity(db: Session, limit: int = 20) -> list:
    """Jobs posted, applications sent and accounts opened in the last week, newest first."""
    since = _since(ACTIVITY_DAYS)
    events = []

    jobs = (
        db.query(models.Job)
        .options(joinedload(models.Job.employer))
        .filter(models.Job.created_at >= since)
        .order_by(models.Job.created_at.desc())
        .limit(limit)
    )
    for job in jobs:
        events.append({
            "type": "job_created",
            "id": job.id,
            "summary": f"{job.company_name or job.employer.full_name} posted {job.title}",
            "timestamp": job.created_at,
        })

    applications = (
        db.query(models.Application)
        .options(joinedload(models.Application.job), joinedload(models.Application.employee))
        .filter(models.Application.applied_at >= since)
        .order_by(models.Application.applied_at.desc())
        .limit(limit)
    )
    for application in applications:
        events.append({
            "type": "application_submitted",
            "id": application.id,
            "summary": f"{application.employee.full_name} applied to {application.job.title}",
            "timestamp": application.applied_at,
        })

    users = (
        db.query(models.User)
        .filter(models.User.role != models.RoleType.ADMIN.value, models.User.created_at >= since)
        .order_by(models.User.created_at.desc())
        .limit(limit)
    )
    for user in users:
        events.append({
            "type": f"{user.role}_registered",
            "id": user.id,
            "summary": user.company_name if user.is_employer and user.company_name else user.full_name,
            "timestamp": user.created_at,
        })

    events.sort(key=lambda event: event["timestamp"], reverse=True)
    return events[:limit]
