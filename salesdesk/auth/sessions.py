"""
SalesDesk - Session Management

Server-side session store keyed by opaque tokens.
Sessions enable immediate revocation and idle-timeout semantics.

Security:
- Tokens are 32 random bytes; only their SHA-256 digest is stored
- Sessions expire after SESSION_TTL_MINUTES without use (sliding window)
- Logout deletes the session row immediately
- Expiry is checked at resolution time, so correctness never depends
  on when the periodic sweep last ran
"""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select

from salesdesk.auth.database import SessionFactory
from salesdesk.auth.models import Session, User
from salesdesk.auth.tokens import generate_secure_token, hash_token
from salesdesk.config import settings
from salesdesk.time_utils import utcnow


logger = logging.getLogger(__name__)


def session_ttl() -> timedelta:
    return timedelta(minutes=settings.SESSION_TTL_MINUTES)


class SessionStore:
    """
    Create, look up, extend and destroy server-side sessions.

    Usage:
        store = SessionStore(session_factory)
        session, token = store.create(user, "10.0.0.1", "Mozilla/5.0")
        store.lookup(token)   # Session or None
        store.destroy(token)
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def create(
        self,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[Session, str]:
        """
        Create a new server-side session for user.

        Returns:
            (session_record, plaintext_token). The plaintext is not
            stored anywhere; the caller hands it to the client.
        """
        token = generate_secure_token()
        now = utcnow()

        session = Session(
            user_id=user.id,
            token_hash=hash_token(token),
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
            expires_at=now + session_ttl(),
            created_at=now,
            updated_at=now,
        )

        with self._session_factory() as db:
            db.add(session)
            db.commit()
            db.refresh(session)

        return session, token

    def lookup(self, token: Optional[str]) -> Optional[Session]:
        """
        Find the session matching token.

        Absence is a normal outcome and returns None. Expiry is not
        checked here; see Session.is_expired.
        """
        if not token:
            return None
        with self._session_factory() as db:
            statement = select(Session).where(Session.token_hash == hash_token(token))
            return db.exec(statement).first()

    def extend(self, token: str) -> Optional[Session]:
        """Slide the session's expiry to now + TTL. No-op if unknown."""
        with self._session_factory() as db:
            statement = select(Session).where(Session.token_hash == hash_token(token))
            session = db.exec(statement).first()
            if session is None:
                return None
            session.expires_at = utcnow() + session_ttl()
            db.add(session)
            db.commit()
            db.refresh(session)
            return session

    def destroy(self, token: str) -> bool:
        """
        Delete the session matching token.

        Idempotent: returns False if there was nothing to delete.
        """
        with self._session_factory() as db:
            statement = select(Session).where(Session.token_hash == hash_token(token))
            session = db.exec(statement).first()
            if session is None:
                return False
            db.delete(session)
            db.commit()
            return True

    def destroy_all_for_user(self, user_id: UUID) -> int:
        """
        Delete every session owned by user (force logout everywhere).

        Returns:
            Number of sessions deleted

        Use cases:
            - Administrative password reset
            - Account disabled or deleted
        """
        with self._session_factory() as db:
            sessions = db.exec(select(Session).where(Session.user_id == user_id)).all()
            for session in sessions:
                db.delete(session)
            db.commit()

        if sessions:
            logger.info("Destroyed %d session(s) for user %s", len(sessions), user_id)
        return len(sessions)

    def sweep_expired(self) -> int:
        """
        Delete all sessions whose expiry is in the past.

        Run periodically (hourly) by the background sweeper.

        Returns:
            Number of sessions deleted
        """
        now = utcnow()
        with self._session_factory() as db:
            expired = db.exec(select(Session).where(Session.expires_at < now)).all()
            for session in expired:
                db.delete(session)
            db.commit()

        return len(expired)

    def active_for_user(self, user_id: UUID) -> List[Session]:
        """Unexpired sessions for a user, most recent first."""
        now = utcnow()
        with self._session_factory() as db:
            statement = (
                select(Session)
                .where(Session.user_id == user_id, Session.expires_at > now)
                .order_by(Session.created_at.desc())
            )
            return list(db.exec(statement).all())

    def count_active(self) -> int:
        """Number of unexpired sessions across all users."""
        now = utcnow()
        with self._session_factory() as db:
            statement = select(func.count(Session.id)).where(Session.expires_at > now)
            return db.exec(statement).one()
