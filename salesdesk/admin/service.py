"""
SalesDesk - User Administration Service

Create, read, update, delete and enable/disable user accounts on behalf
of an authenticated actor. Every mutation consults the RBAC predicates
before touching the target and records a user_crud activity.

Privilege escalation is blocked separately from can_manage: the role an
actor may create or assign comes from AccessPolicy.can_assign.
"""

import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from salesdesk.audit.activity import ActivityLog
from salesdesk.auth import password as credentials
from salesdesk.auth.database import SessionFactory
from salesdesk.auth.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from salesdesk.auth.models import Role, User, normalize_email
from salesdesk.auth.reset import PasswordResetService
from salesdesk.auth.sessions import SessionStore
from salesdesk.gateway.rbac import AccessPolicy, can_manage, require_disable, require_manage


logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100

# Distinguishes "field not supplied" from an explicit None
UNSET = object()


def validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise ValidationFailed(
            f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
        )
    return name


class UserAdminService:
    """
    User management scoped by the actor's role.

    Usage:
        admin = UserAdminService(session_factory, activity, sessions, resets, policy)
        user = admin.create_user(actor, "rep@example.com", "Sales Rep", "secret1", Role.SALESPERSON)
        admin.toggle_enabled(actor, user.id)
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        activity: ActivityLog,
        sessions: SessionStore,
        resets: PasswordResetService,
        policy: AccessPolicy,
    ):
        self._session_factory = session_factory
        self._activity = activity
        self._sessions = sessions
        self._resets = resets
        self._policy = policy

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_users(self, actor: User) -> List[User]:
        """Users the actor may see: everyone for admins, salespeople for managers."""
        if not actor.role.at_least(Role.MANAGER):
            raise PermissionDenied()

        with self._session_factory() as db:
            statement = select(User).order_by(User.created_at)
            if actor.role == Role.MANAGER:
                statement = statement.where(User.role == Role.SALESPERSON)
            return list(db.exec(statement).all())

    def get_user(self, actor: User, user_id: UUID) -> User:
        """A user the actor manages, or the actor themselves."""
        user = self._get(user_id)
        if user.id != actor.id and not can_manage(actor, user):
            raise PermissionDenied()
        return user

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(
        self,
        actor: User,
        email: str,
        name: str,
        password: str,
        role: Role = Role.SALESPERSON,
        company: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        """
        Create an enabled user.

        Raises:
            PermissionDenied: actor may not assign role
            ValidationFailed: bad name or company
            WeakPassword: password violates the policy
            Conflict: email already registered
        """
        role = Role(role)
        if not self._policy.can_assign(actor.role, role):
            raise PermissionDenied(f"Cannot create users with role: {role.value}")

        user = User(
            email=self._validate_email(email),
            name=validate_name(name),
            role=role,
            company=self._validate_company(company),
            enabled=True,
        )
        credentials.set_password(user, password)

        with self._session_factory() as db:
            self._ensure_email_free(db, user.email)
            db.add(user)
            self._commit(db)
            db.refresh(user)

        self._activity.log_user_crud(actor, user, "create", ip_address, user_agent)
        logger.info("User %s created by %s with role %s", user.id, actor.id, role.value)
        return user

    def update_user(
        self,
        actor: User,
        user_id: UUID,
        email=UNSET,
        name=UNSET,
        role=UNSET,
        company=UNSET,
        enabled=UNSET,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        """
        Apply the supplied field changes to a managed user.

        Raises:
            NotFound, PermissionDenied, ValidationFailed, Conflict
        """
        with self._session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            require_manage(actor, user)

            if role is not UNSET and role is not None and Role(role) != user.role:
                if not self._policy.can_assign(actor.role, Role(role)):
                    raise PermissionDenied(f"Cannot assign role: {Role(role).value}")
            if enabled is not UNSET and enabled is not None and enabled != user.enabled:
                require_disable(actor, user)

            if email is not UNSET and email is not None:
                new_email = self._validate_email(email)
                if new_email != user.email:
                    self._ensure_email_free(db, new_email)
                user.email = new_email
            if name is not UNSET and name is not None:
                user.name = validate_name(name)
            if role is not UNSET and role is not None:
                user.role = Role(role)
            if company is not UNSET:
                user.company = self._validate_company(company)
            disabled_now = False
            if enabled is not UNSET and enabled is not None:
                disabled_now = user.enabled and not enabled
                user.enabled = bool(enabled)

            db.add(user)
            self._commit(db)
            db.refresh(user)

        if disabled_now:
            self._sessions.destroy_all_for_user(user.id)
        self._activity.log_user_crud(actor, user, "update", ip_address, user_agent)
        return user

    def delete_user(
        self,
        actor: User,
        user_id: UUID,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Delete a managed user and all of their sessions. No self-delete."""
        user = self._get(user_id)
        require_manage(actor, user)
        if actor.id == user.id:
            raise PermissionDenied("Cannot delete your own account")

        self._sessions.destroy_all_for_user(user.id)
        with self._session_factory() as db:
            db.delete(db.get(User, user.id))
            db.commit()

        self._activity.log_user_crud(actor, user, "delete", ip_address, user_agent)
        logger.info("User %s deleted by %s", user.id, actor.id)

    def toggle_enabled(
        self,
        actor: User,
        user_id: UUID,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        """Flip a salesperson's enabled flag; disabling revokes their sessions."""
        with self._session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            require_disable(actor, user)

            user.enabled = not user.enabled
            db.add(user)
            db.commit()
            db.refresh(user)

        if not user.enabled:
            self._sessions.destroy_all_for_user(user.id)
        action = "enable" if user.enabled else "disable"
        self._activity.log_user_crud(actor, user, action, ip_address, user_agent)
        return user

    # ------------------------------------------------------------------
    # Password resets on behalf of an actor
    # ------------------------------------------------------------------

    def reset_password(
        self,
        actor: User,
        user_id: UUID,
        reason: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """Manual reset of a managed user; returns the one-time plaintext."""
        user = self._get(user_id)
        require_manage(actor, user)
        return self._resets.manual_reset(user.id, actor.id, reason, ip_address, user_agent)

    def bulk_reset(
        self,
        actor: User,
        user_ids: Iterable[UUID],
        reason: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[UUID, str]:
        """Manual reset of each managed user; unknown or unmanaged ids are omitted."""
        allowed = []
        with self._session_factory() as db:
            for user_id in user_ids:
                user = db.get(User, user_id)
                if user is not None and can_manage(actor, user):
                    allowed.append(user.id)
        return self._resets.bulk_reset(allowed, actor.id, reason, ip_address, user_agent)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, user_id: UUID) -> User:
        with self._session_factory() as db:
            user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _validate_email(self, email: Optional[str]) -> str:
        normalized = normalize_email(email or "")
        local, _, domain = normalized.partition("@")
        if not local or "." not in domain or " " in normalized:
            raise ValidationFailed("Invalid email address")
        return normalized

    def _validate_company(self, company: Optional[str]) -> Optional[str]:
        company = company.strip() if company else None
        if not self._policy.is_valid_company(company):
            raise ValidationFailed("Invalid company name")
        return company

    @staticmethod
    def _ensure_email_free(db, email: str) -> None:
        if db.exec(select(User.id).where(User.email == email)).first() is not None:
            raise Conflict("Email already registered")

    @staticmethod
    def _commit(db) -> None:
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise Conflict("Email already registered")
