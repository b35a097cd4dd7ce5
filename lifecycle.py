"""Application lifecycle: apply, review, withdraw and list.

Every operation checks its preconditions in order and raises the matching
error kind from ``errors`` on the first one that fails. Mutations are
committed as a single unit of work.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

import models
import policy
from database import paginate
from errors import BadRequest, Conflict, NotFound

logger = logging.getLogger(__name__)

VALID_STATUSES = [status.value for status in models.ApplicationStatus]


def _with_related(query):
    return query.options(
        joinedload(models.Application.job).joinedload(models.Job.employer),
        joinedload(models.Application.employee),
    )


def parse_status(value) -> models.ApplicationStatus:
    try:
        return models.ApplicationStatus(value)
    except ValueError:
        raise BadRequest("Invalid status. Must be one of: " + ", ".join(VALID_STATUSES))


def get_application_or_404(db: Session, application_id: int) -> models.Application:
    application = (
        _with_related(db.query(models.Application))
        .filter(models.Application.id == application_id)
        .first()
    )
    if application is None:
        raise NotFound("Application not found")
    return application


def apply_to_job(
    db: Session,
    employee: models.User,
    job_id: int,
    cover_letter: Optional[str] = None,
    expected_salary: Optional[float] = None,
    resume: Optional[str] = None,
    employee_notes: Optional[str] = None,
) -> models.Application:
    job = db.query(models.Job).filter(models.Job.id == job_id).first()
    if job is None:
        raise NotFound("Job not found")
    if not job.is_accepting_applications:
        raise Conflict("This job is no longer accepting applications")

    application = models.Application(
        job_id=job.id,
        employee_id=employee.id,
        status=models.ApplicationStatus.PENDING.value,
        is_withdrawn=False,
        applied_at=models.utcnow(),
        cover_letter=cover_letter,
        expected_salary=expected_salary,
        resume=resume,
        employee_notes=employee_notes,
    )
    db.add(application)
    job.applications_count = models.Job.applications_count + 1

    # No read-before-write: the partial unique index rejects a second live
    # application for the same pair, including one racing this request.
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Duplicate application by employee #%s for job #%s", employee.id, job_id)
        raise Conflict("You have already applied to this job")

    db.refresh(application)
    logger.info("Employee #%s applied to job #%s (application #%s)", employee.id, job_id, application.id)
    return application


def transition_status(
    db: Session,
    application_id: int,
    requested_by: models.User,
    new_status,
    notes: Optional[str] = None,
) -> models.Application:
    """Moves an application to ``new_status``.

    Any status may follow any other; there is no enforced review order.
    """
    application = get_application_or_404(db, application_id)
    new_status = parse_status(new_status)
    policy.ensure(
        policy.can_transition_application(requested_by, application),
        requested_by,
        "You can only update applications for your own jobs",
    )

    previous = application.status
    application.status = new_status.value
    application.reviewed_at = models.utcnow()
    if notes:
        application.employer_notes = notes
    db.commit()
    db.refresh(application)

    logger.info(
        "Application #%s moved %s -> %s by %s #%s",
        application.id, previous, application.status, requested_by.role, requested_by.id,
    )
    return application


def withdraw_application(db: Session, application_id: int, requested_by: models.User) -> models.Application:
    application = get_application_or_404(db, application_id)
    policy.ensure(
        policy.can_withdraw_application(requested_by, application),
        requested_by,
        "You can only withdraw your own applications",
    )
    if application.is_withdrawn:
        raise Conflict("Application has already been withdrawn")
    if application.is_terminal:
        raise Conflict("Cannot withdraw application that has been accepted or rejected")

    # Re-check both conditions in the UPDATE itself so a concurrent
    # withdrawal or final decision is not overwritten.
    updated = (
        db.query(models.Application)
        .filter(
            models.Application.id == application.id,
            models.Application.is_withdrawn.is_(False),
            models.Application.status.notin_(models.TERMINAL_STATUSES),
        )
        .update(
            {models.Application.is_withdrawn: True, models.Application.withdrawn_at: models.utcnow()},
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise Conflict("Application can no longer be withdrawn")
    db.commit()
    db.refresh(application)

    logger.info("Application #%s withdrawn by employee #%s", application.id, requested_by.id)
    return application


def get_application(db: Session, application_id: int, requested_by: models.User) -> models.Application:
    application = get_application_or_404(db, application_id)
    policy.ensure(policy.can_read_application(requested_by, application), requested_by)
    return application


def _list_query(db: Session, status: Optional[str], include_withdrawn: bool):
    query = _with_related(db.query(models.Application))
    if not include_withdrawn:
        query = query.filter(models.Application.is_withdrawn.is_(False))
    if status:
        query = query.filter(models.Application.status == parse_status(status).value)
    return query


def _newest_first(query):
    return query.order_by(models.Application.applied_at.desc(), models.Application.id.desc())


def list_for_employee(
    db: Session,
    employee_id: int,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
    include_withdrawn: bool = False,
):
    query = _list_query(db, status, include_withdrawn).filter(models.Application.employee_id == employee_id)
    return paginate(_newest_first(query), page, page_size)


def list_for_employer(
    db: Session,
    employer_id: int,
    status: Optional[str] = None,
    job_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 10,
    include_withdrawn: bool = False,
):
    """Applications to the employer's own jobs.

    ``job_id`` narrows the result further; naming another employer's job
    yields an empty page.
    """
    query = (
        _list_query(db, status, include_withdrawn)
        .join(models.Job, models.Application.job_id == models.Job.id)
        .filter(models.Job.employer_id == employer_id)
    )
    if job_id is not None:
        query = query.filter(models.Application.job_id == job_id)
    return paginate(_newest_first(query), page, page_size)
