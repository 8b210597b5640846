"""
SalesDesk - Password Reset Service

Three independent ways a password gets replaced:

1. Self-service: request a one-time token (delivered out-of-band), then
   redeem it with a new password. A token works once, within 24 hours.
2. Manual: an administrator resets a user's password to a generated
   strong password, shown to the administrator exactly once.
3. Automatic: periodic sweeps reset expired passwords and the passwords
   of users inactive for more than INACTIVITY_RESET_DAYS.

Every reset writes a PasswordResetEvent. Batch operations isolate
failures per user: one bad record never aborts the rest of the batch.
"""

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlmodel import select

from salesdesk.audit.activity import ActivityLog
from salesdesk.auth import password as credentials
from salesdesk.auth.database import SessionFactory
from salesdesk.auth.errors import InvalidOrExpiredToken, NotFound
from salesdesk.auth.models import PasswordResetEvent, ResetType, User, normalize_email
from salesdesk.auth.sessions import SessionStore
from salesdesk.auth.tokens import generate_secure_token, hash_token
from salesdesk.config import settings
from salesdesk.time_utils import utcnow


logger = logging.getLogger(__name__)

EXPIRED_REASON = "Password expired automatically"
INACTIVE_REASON = "User inactive for more than {days} days"
SELF_SERVICE_REASON = "User requested password reset"


class PasswordResetService:
    """
    Token-based, manual and automatic password resets.

    Usage:
        resets = PasswordResetService(session_factory, activity, sessions)
        token = resets.request_reset("user@example.com", ip, ua)
        resets.reset_with_token(token, "new-password")
        new_password = resets.manual_reset(user.id, admin.id, "Locked out", ip, ua)
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        activity: ActivityLog,
        sessions: Optional[SessionStore] = None,
    ):
        self._session_factory = session_factory
        self._activity = activity
        self._sessions = sessions

    # ------------------------------------------------------------------
    # Self-service flow
    # ------------------------------------------------------------------

    def create_reset_event(
        self,
        user_id: UUID,
        reason: str = SELF_SERVICE_REASON,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[PasswordResetEvent, str]:
        """
        Open a self-service reset for user_id.

        Returns:
            (event, plaintext_token). Only the token digest is stored.
        """
        token = generate_secure_token()
        now = utcnow()

        event = PasswordResetEvent(
            user_id=user_id,
            admin_id=None,
            reason=reason,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
            success=False,
            reset_type=ResetType.MANUAL,
            token_hash=hash_token(token),
            expires_at=now + timedelta(hours=settings.RESET_TOKEN_TTL_HOURS),
            created_at=now,
        )

        with self._session_factory() as db:
            db.add(event)
            db.commit()
            db.refresh(event)

        logger.info("Password reset requested for user %s", user_id)
        return event, token

    def request_reset(
        self,
        email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[str]:
        """
        Open a self-service reset by email.

        Returns:
            The token, or None when no enabled account matches. Callers
            answer both cases with the same generic message.
        """
        normalized = normalize_email(email or "")
        with self._session_factory() as db:
            user = db.exec(select(User).where(User.email == normalized)).first()

        if user is None or not user.enabled:
            return None

        _, token = self.create_reset_event(user.id, SELF_SERVICE_REASON, ip_address, user_agent)
        return token

    def reset_with_token(
        self,
        token: str,
        new_password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        """
        Redeem a reset token.

        The event is marked successful in the same transaction that
        stores the new password, so a token can never be replayed.

        Raises:
            InvalidOrExpiredToken: unknown, expired or already used token
            WeakPassword: new password violates the policy (the token
                stays usable)
        """
        if not token:
            raise InvalidOrExpiredToken()

        now = utcnow()
        with self._session_factory() as db:
            statement = (
                select(PasswordResetEvent)
                .where(
                    PasswordResetEvent.token_hash == hash_token(token),
                    PasswordResetEvent.success == False,  # noqa: E712
                    PasswordResetEvent.expires_at > now,
                )
                .with_for_update()
            )
            event = db.exec(statement).first()
            if event is None or not event.is_redeemable(now):
                raise InvalidOrExpiredToken()

            user = db.get(User, event.user_id)
            if user is None:
                raise InvalidOrExpiredToken()

            credentials.set_password(user, new_password)
            event.success = True
            event.used_at = now
            db.add(user)
            db.add(event)
            db.commit()
            db.refresh(user)

        self._revoke_sessions(user.id)
        self._activity.log_password_change(user, ip_address, user_agent, method="reset_token")
        logger.info("Password reset completed with token for user %s", user.id)
        return user

    # ------------------------------------------------------------------
    # Administrative resets
    # ------------------------------------------------------------------

    def manual_reset(
        self,
        user_id: UUID,
        admin_id: UUID,
        reason: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """
        Reset a user's password to a generated strong password.

        Authorization (can_manage) is the caller's job.

        Returns:
            The new plaintext password. It is not retrievable again.

        Raises:
            NotFound: target user or administrator does not exist
        """
        new_password = credentials.generate_strong_password()

        with self._session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            admin = db.get(User, admin_id)
            if admin is None:
                raise NotFound("Administrator not found")

            credentials.set_password(user, new_password)
            db.add(user)
            db.add(PasswordResetEvent(
                user_id=user.id,
                admin_id=admin.id,
                reason=reason or "",
                ip_address=ip_address,
                user_agent=user_agent[:512] if user_agent else None,
                success=True,
                reset_type=ResetType.MANUAL,
            ))
            db.commit()
            db.refresh(user)

        self._revoke_sessions(user.id)
        self._activity.log_user_crud(admin, user, "password_reset", ip_address, user_agent)
        logger.info("Administrator %s reset the password of user %s", admin.id, user.id)
        return new_password

    def bulk_reset(
        self,
        user_ids: Iterable[UUID],
        admin_id: UUID,
        reason: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[UUID, str]:
        """
        Manual reset for each id. Failed ids are left out of the result.
        """
        results: Dict[UUID, str] = {}
        for user_id in user_ids:
            try:
                results[user_id] = self.manual_reset(
                    user_id, admin_id, reason, ip_address, user_agent
                )
            except Exception:
                logger.warning("Bulk reset skipped user %s", user_id, exc_info=True)
        return results

    # ------------------------------------------------------------------
    # Automatic sweeps
    # ------------------------------------------------------------------

    def auto_reset_expired_passwords(self) -> int:
        """
        Reset every password whose expiry is in the past.

        Returns:
            Number of users reset
        """
        now = utcnow()
        with self._session_factory() as db:
            user_ids = db.exec(
                select(User.id).where(
                    User.password_expires_at != None,  # noqa: E711
                    User.password_expires_at < now,
                )
            ).all()

        return self._reset_each(user_ids, ResetType.AUTOMATIC_EXPIRY, EXPIRED_REASON)

    def auto_reset_inactive_users(self) -> int:
        """
        Reset the password of every user who last signed in more than
        INACTIVITY_RESET_DAYS ago.

        Returns:
            Number of users reset
        """
        cutoff = utcnow() - timedelta(days=settings.INACTIVITY_RESET_DAYS)
        with self._session_factory() as db:
            user_ids = db.exec(
                select(User.id).where(
                    User.last_sign_in_at != None,  # noqa: E711
                    User.last_sign_in_at < cutoff,
                )
            ).all()

        reason = INACTIVE_REASON.format(days=settings.INACTIVITY_RESET_DAYS)
        return self._reset_each(user_ids, ResetType.AUTOMATIC_INACTIVITY, reason)

    def _reset_each(self, user_ids, reset_type: ResetType, reason: str) -> int:
        count = 0
        for user_id in user_ids:
            try:
                self._apply_generated_password(user_id, reset_type, reason)
                count += 1
            except Exception:
                logger.warning(
                    "Automatic %s reset failed for user %s; continuing",
                    reset_type.value, user_id, exc_info=True,
                )
        if count:
            logger.info("Automatic %s reset applied to %d user(s)", reset_type.value, count)
        return count

    def _apply_generated_password(self, user_id: UUID, reset_type: ResetType, reason: str) -> None:
        new_password = credentials.generate_strong_password()
        with self._session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            credentials.set_password(user, new_password)
            db.add(user)
            db.add(PasswordResetEvent(
                user_id=user.id,
                reason=reason,
                success=True,
                reset_type=reset_type,
            ))
            db.commit()

        self._revoke_sessions(user_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_reset_events(self, user_id: UUID) -> List[PasswordResetEvent]:
        """Reset events for one user, newest first."""
        with self._session_factory() as db:
            statement = (
                select(PasswordResetEvent)
                .where(PasswordResetEvent.user_id == user_id)
                .order_by(PasswordResetEvent.created_at.desc())
            )
            return list(db.exec(statement).all())

    def get_all_reset_events(self, limit: int = 100) -> List[PasswordResetEvent]:
        """Most recent reset events across all users."""
        with self._session_factory() as db:
            statement = select(PasswordResetEvent).order_by(PasswordResetEvent.created_at.desc())
            if limit and limit > 0:
                statement = statement.limit(limit)
            return list(db.exec(statement).all())

    def _revoke_sessions(self, user_id: UUID) -> None:
        if self._sessions is not None and settings.REVOKE_SESSIONS_ON_RESET:
            self._sessions.destroy_all_for_user(user_id)
