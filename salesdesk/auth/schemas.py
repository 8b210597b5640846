"""
SalesDesk - Request/Response Schemas

Pydantic models for API request validation and response serialization.
Separates API contracts from database models. Password strength is not
checked here; the credential policy in salesdesk.auth.password owns it
so every entry point enforces the same rules.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from salesdesk.auth.models import ResetType, Role


EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")


def _check_email(v: str) -> str:
    v = v.strip()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v.lower()


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------

class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: str = Field(..., description="User email address")
    password: str = Field(..., description="User password")


class LoginResponse(BaseModel):
    """Response body for successful login."""
    token: str = Field(..., description="Opaque session token")
    token_type: str = Field(default="bearer")
    expires_at: datetime = Field(..., description="Session expiry (sliding)")
    user: "UserResponse"


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    """Public view of a user. Never includes the password hash."""
    id: UUID
    email: str
    name: str
    role: Role
    company: Optional[str] = None
    enabled: bool
    sign_in_count: int = 0
    last_sign_in_at: Optional[datetime] = None
    current_sign_in_at: Optional[datetime] = None
    password_expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SessionInfo(BaseModel):
    """Session information for user display."""
    id: UUID
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class ActiveSessionsResponse(BaseModel):
    """Response body for GET /auth/sessions."""
    sessions: List[SessionInfo]
    total: int


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


# ----------------------------------------------------------------------
# Password reset
# ----------------------------------------------------------------------

class ResetRequest(BaseModel):
    """Request body for POST /auth/password-reset/request."""
    email: str


class ResetRequestResponse(BaseModel):
    message: str = "If an account exists for that email, a reset link has been sent."
    token: Optional[str] = Field(
        default=None,
        description="Only populated when RESET_TOKEN_IN_RESPONSE is enabled",
    )


class ResetConfirm(BaseModel):
    """Request body for POST /auth/password-reset/confirm."""
    token: str
    new_password: str


class AdminResetRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class AdminResetResponse(BaseModel):
    """The generated password is shown exactly once."""
    user_id: UUID
    new_password: str


class BulkResetRequest(BaseModel):
    user_ids: List[UUID] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=500)


class BulkResetResponse(BaseModel):
    passwords: Dict[UUID, str]
    reset: int
    skipped: int


class ResetEventResponse(BaseModel):
    id: UUID
    user_id: UUID
    admin_id: Optional[UUID] = None
    reason: str
    reset_type: ResetType
    success: bool
    ip_address: Optional[str] = None
    expires_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ----------------------------------------------------------------------
# User administration
# ----------------------------------------------------------------------

class CreateUserRequest(BaseModel):
    """Request body for POST /admin/users."""
    email: str
    name: str
    password: str
    role: Role = Role.SALESPERSON
    company: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        return _check_email(v)


class UpdateUserRequest(BaseModel):
    """Request body for PATCH /admin/users/{id}. Omitted fields are unchanged."""
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[Role] = None
    company: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        return _check_email(v) if v is not None else v


class DashboardStats(BaseModel):
    total_users: int
    enabled_users: int
    active_sessions: int
    logins_today: int
    failed_logins_today: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    request_id: Optional[str] = None


LoginResponse.model_rebuild()
