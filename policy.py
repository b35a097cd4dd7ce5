"""Who may read or change which account, job and application.

Every check takes the acting principal (a ``models.User``) and the target
record and answers yes or no; ``ensure`` turns a no into ``Forbidden``.
Admins are allowed everything.
"""
import logging

from errors import Forbidden

logger = logging.getLogger(__name__)


def _owns_job(user, job) -> bool:
    return user.is_employer and job.employer_id == user.id


def can_modify_job(user, job) -> bool:
    return user.is_admin or _owns_job(user, job)


def can_transition_application(user, application) -> bool:
    return user.is_admin or _owns_job(user, application.job)


def can_withdraw_application(user, application) -> bool:
    if user.is_admin:
        return True
    return user.is_employee and application.employee_id == user.id


def can_read_application(user, application) -> bool:
    return can_withdraw_application(user, application) or can_transition_application(user, application)


def can_manage_user(user, target) -> bool:
    return user.is_admin or user.id == target.id


def can_change_password(user, target) -> bool:
    # Not even admins may set another account's password
    return user.id == target.id


def ensure(allowed: bool, user, message: str = "Access denied") -> None:
    if not allowed:
        logger.warning("Denied %s #%s: %s", user.role, user.id, message)
        raise Forbidden(message)
