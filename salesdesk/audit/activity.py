"""
SalesDesk - Activity Log

Append-only audit trail of security-relevant actions: logins, failed
logins, logouts, password changes, page views and user administration.

Writes are best-effort. Every record is written in its own database
session after the primary action has committed, and a failed write is
logged and swallowed so it never fails or rolls back the action it
describes.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select

from salesdesk.audit.models import ActivityType, UserActivity
from salesdesk.auth.database import SessionFactory
from salesdesk.time_utils import utcnow


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


class ActivityLog:
    """
    Activity log backed by the user_activities table.

    Usage:
        activity = ActivityLog(session_factory)
        activity.log_login(user, "10.0.0.1", "Mozilla/5.0")
        recent = activity.get_user_activities(user.id, limit=20)
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def log_activity(
        self,
        user_id: Optional[UUID],
        activity_type: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        subject_type: Optional[str] = None,
        subject_id: Optional[UUID] = None,
        session_duration: Optional[int] = None,
    ) -> Optional[UserActivity]:
        """
        Append one activity record.

        Returns:
            The stored record, or None if the write failed
        """
        activity = UserActivity(
            user_id=user_id,
            activity_type=getattr(activity_type, "value", activity_type),
            subject_type=subject_type,
            subject_id=subject_id,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
            session_duration=session_duration,
            details=_jsonable(metadata or {}),
            performed_at=utcnow(),
        )
        try:
            with self._session_factory() as db:
                db.add(activity)
                db.commit()
                db.refresh(activity)
            return activity
        except Exception:
            # Don't fail the caller if audit logging fails
            logger.warning(
                "Failed to record %s activity for user %s",
                activity.activity_type, user_id, exc_info=True,
            )
            return None

    def log_login(self, user, ip_address=None, user_agent=None):
        return self.log_activity(
            user.id, ActivityType.LOGIN, ip_address, user_agent,
            {"user_id": user.id, "user_name": user.name, "user_role": user.role.value},
        )

    def log_logout(self, user, ip_address=None, user_agent=None, session_duration=None):
        return self.log_activity(
            user.id, ActivityType.LOGOUT, ip_address, user_agent,
            {"user_id": user.id, "user_name": user.name},
            session_duration=session_duration,
        )

    def log_failed_login(self, user_id, email, ip_address=None, user_agent=None):
        metadata = {"attempted_email": email}
        if user_id is not None:
            metadata["user_id"] = user_id
        return self.log_activity(
            user_id, ActivityType.FAILED_LOGIN, ip_address, user_agent, metadata,
        )

    def log_password_change(self, user, ip_address=None, user_agent=None, method="self_service"):
        return self.log_activity(
            user.id, ActivityType.PASSWORD_CHANGE, ip_address, user_agent,
            {"user_id": user.id, "user_name": user.name, "method": method},
        )

    def log_page_view(self, user, page, ip_address=None, user_agent=None):
        return self.log_activity(
            user.id, ActivityType.PAGE_VIEW, ip_address, user_agent,
            {"page": page, "user_id": user.id, "user_name": user.name},
        )

    def log_user_crud(self, actor, target, action, ip_address=None, user_agent=None, **extra):
        """Record an administrative action by actor on target."""
        metadata = {
            "performing_user_id": actor.id if actor else None,
            "performing_user_name": actor.name if actor else None,
            "target_user_id": target.id,
            "target_user_name": target.name,
            "action": action,
        }
        metadata.update(extra)
        return self.log_activity(
            actor.id if actor else None,
            ActivityType.USER_CRUD,
            ip_address,
            user_agent,
            metadata,
            subject_type="user",
            subject_id=target.id,
        )

    def get_user_activities(self, user_id: UUID, limit: int = DEFAULT_LIMIT) -> List[UserActivity]:
        """Most recent activities performed by a user, newest first."""
        with self._session_factory() as db:
            statement = (
                select(UserActivity)
                .where(UserActivity.user_id == user_id)
                .order_by(UserActivity.performed_at.desc(), UserActivity.id.desc())
            )
            if limit and limit > 0:
                statement = statement.limit(limit)
            return list(db.exec(statement).all())

    def get_all_activities(self, limit: int = DEFAULT_LIMIT) -> List[UserActivity]:
        """Most recent activities across all users, newest first."""
        with self._session_factory() as db:
            statement = select(UserActivity).order_by(
                UserActivity.performed_at.desc(), UserActivity.id.desc()
            )
            if limit and limit > 0:
                statement = statement.limit(limit)
            return list(db.exec(statement).all())

    def count(
        self,
        activity_type: str,
        user_id: Optional[UUID] = None,
        since: Optional[datetime] = None,
    ) -> int:
        """Number of stored activities of a type, optionally scoped."""
        with self._session_factory() as db:
            statement = select(func.count(UserActivity.id)).where(
                UserActivity.activity_type == getattr(activity_type, "value", activity_type)
            )
            if user_id is not None:
                statement = statement.where(UserActivity.user_id == user_id)
            if since is not None:
                statement = statement.where(UserActivity.performed_at >= since)
            return db.exec(statement).one()


def _jsonable(value):
    """Make metadata JSON-serializable (UUIDs and datetimes become strings)."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
