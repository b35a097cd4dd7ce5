"""Account management: profiles, passwords and the admin user directory."""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

import models
import policy
from auth import get_password_hash
from database import paginate
from errors import BadRequest, Forbidden, NotFound

logger = logging.getLogger(__name__)

RECENT_REGISTRATION_DAYS = 30


def get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def _matching(query, search: Optional[str], role: Optional[str]):
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.User.full_name.ilike(pattern),
                models.User.email.ilike(pattern),
                models.User.company_name.ilike(pattern),
            )
        )
    if role:
        query = query.filter(models.User.role == role)
    return query


def list_users(
    db: Session,
    role: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
):
    query = _matching(db.query(models.User), search, role)
    query = query.order_by(models.User.created_at.desc(), models.User.id.desc())
    return paginate(query, page, page_size)


def search_users(db: Session, search: str, role: Optional[str] = None):
    if not search.strip():
        raise BadRequest("Search query is required")
    return _matching(db.query(models.User), search.strip(), role).order_by(models.User.full_name).all()


def get_user(db: Session, user_id: int, requested_by: models.User) -> models.User:
    user = get_user_or_404(db, user_id)
    policy.ensure(policy.can_manage_user(requested_by, user), requested_by)
    return user


def update_profile(db: Session, user_id: int, requested_by: models.User, data: dict) -> models.User:
    """Applies ``data`` to the account's profile.

    Email, role and password are never touched here. Only admins may
    enable or disable an account.
    """
    user = get_user_or_404(db, user_id)
    policy.ensure(policy.can_manage_user(requested_by, user), requested_by)
    if "is_active" in data and not requested_by.is_admin:
        raise Forbidden("Only admins can enable or disable accounts")

    for field, value in data.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("User #%s updated by %s #%s", user.id, requested_by.role, requested_by.id)
    return user


def change_password(
    db: Session, user_id: int, requested_by: models.User, current_password: str, new_password: str
) -> None:
    user = get_user_or_404(db, user_id)
    policy.ensure(policy.can_change_password(requested_by, user), requested_by, "You can only change your own password")
    if not user.verify_password(current_password):
        logger.warning("Wrong current password on password change for user #%s", user.id)
        raise BadRequest("Current password is incorrect")

    user.hashed_password = get_password_hash(new_password)
    db.commit()
    logger.info("User #%s changed their password", user.id)


def delete_user(db: Session, user_id: int, requested_by: models.User) -> None:
    """Deletes the account along with its jobs and applications."""
    user = get_user_or_404(db, user_id)
    if user.id == requested_by.id:
        raise BadRequest("You cannot delete your own account")
    db.delete(user)
    db.commit()
    logger.info("User #%s (%s) deleted by admin #%s", user_id, user.role, requested_by.id)


def user_stats(db: Session) -> dict:
    by_role = {role.value: 0 for role in models.RoleType}
    for role, count in db.query(models.User.role, func.count(models.User.id)).group_by(models.User.role).all():
        by_role[role] = count
    total = sum(by_role.values())

    since = models.utcnow() - timedelta(days=RECENT_REGISTRATION_DAYS)
    recent = db.query(func.count(models.User.id)).filter(models.User.created_at >= since).scalar()

    return {
        "total_users": total,
        "by_role": by_role,
        "recent_registrations": recent or 0,
        "distribution": {role: round(count * 100 / total) if total else 0 for role, count in by_role.items()},
    }
