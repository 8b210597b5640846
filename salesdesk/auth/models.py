"""
SalesDesk - Authentication Database Models

SQLModel-based models for users, server-side sessions and password
reset events. Uses PostgreSQL for production, SQLite for local development.

Security:
- Passwords stored as bcrypt hashes only
- Session and reset tokens stored as SHA-256 digests only
- Emails are normalized (trimmed, lower-cased) before every write
- All timestamps in naive UTC
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, event
from sqlalchemy import Enum as SQLEnum
from sqlmodel import Field, SQLModel

from salesdesk.time_utils import utcnow


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case an email address."""
    if email is None:
        return None
    return email.strip().lower()


class Role(str, Enum):
    """
    User roles, ordered from most to least privileged.

    Use at_least() for hierarchy checks; the string values carry no order.
    """
    ADMIN = "admin"
    MANAGER = "manager"
    SALESPERSON = "salesperson"

    @property
    def rank(self) -> int:
        """Position in the hierarchy; 0 is the most privileged."""
        return _ROLE_RANK[self]

    def at_least(self, threshold: "Role") -> bool:
        """True if this role is as privileged as threshold or more."""
        return self.rank <= threshold.rank


_ROLE_RANK = {
    Role.ADMIN: 0,
    Role.MANAGER: 1,
    Role.SALESPERSON: 2,
}


class ResetType(str, Enum):
    """How a password reset was initiated."""
    MANUAL = "manual"
    AUTOMATIC_EXPIRY = "automatic_expiry"
    AUTOMATIC_INACTIVITY = "automatic_inactivity"


class User(SQLModel, table=True):
    """
    User account for authentication.

    Attributes:
        id: Unique identifier (UUIDv4)
        email: Login identifier (unique, normalized)
        name: Display name, 2-100 characters
        password_hash: bcrypt hash (never store plaintext)
        role: Position in the Admin > Manager > Salesperson hierarchy
        company: Affiliation from the configured allow-list, or None
        enabled: Disabled users can neither log in nor resolve sessions
        last_sign_in_at: Previous successful sign-in
        current_sign_in_at: Most recent successful sign-in
        sign_in_count: Number of successful sign-ins
        password_reset_at: When the current password was issued
        password_expires_at: When the current password stops working
    """
    __tablename__ = "users"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        description="Unique user identifier"
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
        description="User email address (login identifier)"
    )
    name: str = Field(
        sa_column=Column(String(100), nullable=False),
        description="Display name"
    )
    password_hash: str = Field(
        default="",
        sa_column=Column(String(255), nullable=False),
        description="bcrypt password hash"
    )
    role: Role = Field(
        default=Role.SALESPERSON,
        sa_column=Column(SQLEnum(Role), nullable=False, default=Role.SALESPERSON),
        description="User role"
    )
    company: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="Company affiliation"
    )
    enabled: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True),
        description="Whether user can authenticate"
    )
    last_sign_in_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True, index=True),
    )
    current_sign_in_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    sign_in_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
    )
    password_reset_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
        description="When the current password was issued"
    )
    password_expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True, index=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    )

    def record_sign_in(self) -> None:
        """Shift sign-in bookkeeping for a successful login."""
        self.last_sign_in_at = self.current_sign_in_at
        self.current_sign_in_at = utcnow()
        self.sign_in_count = (self.sign_in_count or 0) + 1


@event.listens_for(User, "before_insert")
@event.listens_for(User, "before_update")
def _normalize_user_email(mapper, connection, target: User) -> None:
    target.email = normalize_email(target.email)


class Session(SQLModel, table=True):
    """
    Server-side session proving a completed login.

    The client holds the plaintext token; only its SHA-256 digest is
    stored. A session is valid while expires_at is in the future and
    its owner is enabled. Every successful resolution slides expires_at.

    Attributes:
        id: Unique session identifier (UUIDv4)
        user_id: Owning user
        token_hash: SHA-256 of the opaque session token (unique)
        ip_address: Client IP at creation
        user_agent: Client user-agent at creation
        expires_at: Absolute expiry, pushed forward on use
    """
    __tablename__ = "sessions"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        description="Unique session identifier"
    )
    user_id: UUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Reference to user"
    )
    token_hash: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
        description="SHA-256 hash of session token"
    )
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(512), nullable=True),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False, index=True),
        description="Session expiration timestamp"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class PasswordResetEvent(SQLModel, table=True):
    """
    Record of a password replaced through the reset subsystem.

    Self-service events carry a one-time token and start unsuccessful;
    they flip to success (and record used_at) when redeemed. Manual and
    automatic events are written already successful and carry no token.

    user_id and admin_id are plain references so the audit trail
    outlives an administratively deleted account.
    """
    __tablename__ = "password_reset_events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(nullable=False, index=True)
    admin_id: Optional[UUID] = Field(default=None, index=True)
    reason: str = Field(
        default="",
        sa_column=Column(String(500), nullable=False, default=""),
    )
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(512), nullable=True),
    )
    success: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
    )
    reset_type: ResetType = Field(
        sa_column=Column(SQLEnum(ResetType), nullable=False),
    )
    token_hash: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), unique=True, index=True, nullable=True),
        description="SHA-256 hash of the one-time reset token"
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    used_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, index=True),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def is_redeemable(self, now: Optional[datetime] = None) -> bool:
        """A token event can be redeemed once, before it expires."""
        return (
            self.token_hash is not None
            and not self.success
            and self.used_at is None
            and not self.is_expired(now)
        )
