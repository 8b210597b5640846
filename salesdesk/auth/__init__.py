"""
SalesDesk - Authentication Package

Session-based authentication with:
- Opaque session tokens, stored as SHA-256 digests
- bcrypt password hashing with expiry and inactivity policies
- Self-service, manual and automatic password resets
"""

from salesdesk.auth.errors import AuthError
from salesdesk.auth.models import PasswordResetEvent, ResetType, Role, Session, User

__all__ = [
    "AuthError",
    "User",
    "Session",
    "PasswordResetEvent",
    "Role",
    "ResetType",
]
