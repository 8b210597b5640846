"""
SalesDesk - Authentication Service

Orchestrates the Anonymous <-> Authenticated state machine:
- login:            verify credentials, create a session
- logout:           destroy the session behind a token
- get_current_user: resolve a token to its user and slide its expiry
- change_password:  self-service change with proof of the current password

All credential failures leave through one path (InvalidCredentials with a
fixed message) so callers cannot tell an unknown email from a wrong
password or a disabled account.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from uuid import UUID

from sqlmodel import select

from salesdesk.audit.activity import ActivityLog
from salesdesk.auth import password as credentials
from salesdesk.auth.database import SessionFactory
from salesdesk.auth.errors import (
    InvalidCredentials,
    InvalidOrExpiredSession,
    InvalidSession,
    NotFound,
    PasswordExpired,
    PermissionDenied,
    UserDisabled,
)
from salesdesk.auth.models import Role, Session, User, normalize_email
from salesdesk.auth.sessions import SessionStore
from salesdesk.time_utils import utcnow


logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    """Outcome of a successful login."""
    user: User
    session: Session
    token: str


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Verified against for unknown emails so every miss costs one bcrypt check
    return credentials.hash_password("salesdesk-timing-equalizer")


class AuthService:
    """
    Authentication service over users, sessions and the activity log.

    Usage:
        auth = AuthService(session_factory, SessionStore(session_factory), activity)
        result = auth.login("admin@example.com", "password123", ip, ua)
        user = auth.get_current_user(result.token)
        auth.logout(result.token, ip, ua)
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        sessions: SessionStore,
        activity: ActivityLog,
    ):
        self._session_factory = session_factory
        self._sessions = sessions
        self._activity = activity

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate with email and password and open a session.

        Raises:
            InvalidCredentials: unknown email, disabled account or wrong
                password (indistinguishable by design)
            PasswordExpired: correct password, but it has expired
        """
        normalized = normalize_email(email or "")
        expired = False

        with self._session_factory() as db:
            user = db.exec(select(User).where(User.email == normalized)).first()

            if user is None:
                credentials.verify_password(password or "", _dummy_hash())
                authenticated = False
            else:
                authenticated = user.enabled and credentials.verify_password(
                    password or "", user.password_hash
                )

            if authenticated:
                expired = credentials.is_password_expired(user)

            if authenticated and not expired:
                if credentials.needs_rehash(user.password_hash):
                    user.password_hash = credentials.hash_password(password)
                user.record_sign_in()
                db.add(user)
                db.commit()
                db.refresh(user)

        if not authenticated:
            self._activity.log_failed_login(
                user.id if user else None, normalized, ip_address, user_agent
            )
            logger.info("Failed login attempt for %s from %s", normalized, ip_address)
            raise InvalidCredentials()

        if expired:
            logger.info("Login refused for user %s: password expired", user.id)
            raise PasswordExpired()

        session, token = self._sessions.create(user, ip_address, user_agent)
        self._activity.log_login(user, ip_address, user_agent)
        logger.info("User %s logged in (session %s)", user.id, session.id)

        return LoginResult(user=user, session=session, token=token)

    def logout(
        self,
        token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Destroy the session behind token.

        Works for expired-but-present sessions too; expiry affects
        authentication, not deletability.

        Raises:
            InvalidSession: no session matches token
        """
        session = self._sessions.lookup(token)
        if session is None:
            raise InvalidSession()

        user = self._load_user(session.user_id)
        self._sessions.destroy(token)

        if user is not None:
            duration = int((utcnow() - session.created_at).total_seconds())
            self._activity.log_logout(user, ip_address, user_agent, session_duration=duration)
            logger.info("User %s logged out (session %s)", user.id, session.id)

    # ------------------------------------------------------------------
    # Token resolution
    # ------------------------------------------------------------------

    def get_current_user(self, token: Optional[str]) -> User:
        """
        Resolve a session token to its user and slide the session expiry.

        Called on essentially every authenticated request.

        Raises:
            InvalidOrExpiredSession: token unknown or session expired
            UserDisabled: owner was disabled; the session is destroyed
        """
        session = self._sessions.lookup(token)
        if session is None:
            raise InvalidOrExpiredSession()

        if session.is_expired():
            self._sessions.destroy(token)
            raise InvalidOrExpiredSession()

        user = self._load_user(session.user_id)
        if user is None:
            self._sessions.destroy(token)
            raise InvalidOrExpiredSession()

        if not user.enabled:
            self._sessions.destroy(token)
            logger.info("Revoked session %s of disabled user %s", session.id, user.id)
            raise UserDisabled()

        self._sessions.extend(token)
        return user

    def is_authenticated(self, token: Optional[str]) -> bool:
        try:
            self.get_current_user(token)
        except (InvalidOrExpiredSession, UserDisabled):
            return False
        return True

    def require_role(self, token: Optional[str], role: Role) -> User:
        """Resolve token and require exactly role."""
        user = self.get_current_user(token)
        if user.role != role:
            raise PermissionDenied(f"Requires role: {role.value}")
        return user

    def require_role_or_higher(self, token: Optional[str], minimum: Role) -> User:
        """Resolve token and require minimum or a more privileged role."""
        user = self.get_current_user(token)
        if not user.role.at_least(minimum):
            raise PermissionDenied(f"Requires role: {minimum.value} or higher")
        return user

    # ------------------------------------------------------------------
    # Password change
    # ------------------------------------------------------------------

    def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Change a user's own password.

        The current password is checked before the new one is validated.
        Other active sessions of the user stay valid.

        Raises:
            NotFound: no such user
            InvalidCredentials: current password is wrong
            WeakPassword: new password violates the policy
        """
        with self._session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFound("User not found")

            if not credentials.verify_password(current_password or "", user.password_hash):
                raise InvalidCredentials()

            credentials.validate_password(new_password)
            credentials.set_password(user, new_password)
            db.add(user)
            db.commit()
            db.refresh(user)

        self._activity.log_password_change(user, ip_address, user_agent)
        logger.info("User %s changed their password", user.id)

    def _load_user(self, user_id: UUID) -> Optional[User]:
        with self._session_factory() as db:
            return db.get(User, user_id)
