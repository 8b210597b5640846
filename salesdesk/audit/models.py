"""
SalesDesk - Audit Models

Append-only activity records for security-relevant actions, plus the
Pydantic shape used when returning them over the API.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlmodel import Field, SQLModel

from salesdesk.time_utils import utcnow


class ActivityType(str, Enum):
    """Categories of auditable activity."""
    LOGIN = "login"
    LOGOUT = "logout"
    FAILED_LOGIN = "failed_login"
    PASSWORD_CHANGE = "password_change"
    PAGE_VIEW = "page_view"
    USER_CRUD = "user_crud"


class UserActivity(SQLModel, table=True):
    """
    Immutable audit event.

    user_id is None when the event precedes identity resolution
    (e.g. a failed login for an unknown email). Rows are never
    updated or deleted.
    """
    __tablename__ = "user_activities"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[UUID] = Field(default=None, index=True)
    activity_type: str = Field(
        sa_column=Column(String(50), nullable=False, index=True),
    )
    subject_type: Optional[str] = Field(
        default=None,
        sa_column=Column(String(50), nullable=True),
    )
    subject_id: Optional[UUID] = Field(default=None)
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(512), nullable=True),
    )
    session_duration: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, nullable=True),
        description="Seconds between session creation and logout"
    )
    details: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=True),
    )
    performed_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, index=True),
    )


class ActivityRecord(BaseModel):
    """API representation of a UserActivity row."""
    id: int
    user_id: Optional[UUID] = None
    activity_type: str
    subject_type: Optional[str] = None
    subject_id: Optional[UUID] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_duration: Optional[int] = None
    details: Dict[str, Any] = PydanticField(default_factory=dict)
    performed_at: datetime

    class Config:
        from_attributes = True
