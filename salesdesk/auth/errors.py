"""
SalesDesk - Authentication & Authorization Errors

Every expected failure of the auth core is one of these exceptions.
They are recoverable outcomes for the caller, never process crashes.

Each error carries the HTTP status the API layer answers with and a
fixed public message. Messages never say which check failed: a missing
account, a wrong password and a disabled account all surface as
InvalidCredentials with the same text.
"""

from fastapi import status


class AuthError(Exception):
    """Base class for auth-core failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    public_message: str = "Request could not be completed"
    expose_detail: bool = True

    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)

    @property
    def detail(self) -> str:
        """Message safe to return to the client."""
        return str(self) if self.expose_detail else self.public_message


class InvalidCredentials(AuthError):
    """Unknown email, wrong password or disabled account."""
    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Invalid email or password"
    expose_detail = False


class PasswordExpired(AuthError):
    """Correct credentials, but the password is past its expiry."""
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Password has expired and must be reset"


class InvalidSession(AuthError):
    """Logout with a token that matches no session."""
    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Invalid session"


class InvalidOrExpiredSession(AuthError):
    """Token absent, unknown or past its expiry."""
    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Invalid or expired session"


class UserDisabled(AuthError):
    """Valid session whose owner has since been disabled."""
    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "User account is disabled"


class WeakPassword(AuthError):
    """New password violates the password policy."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    public_message = "Password does not meet the password policy"


class InvalidOrExpiredToken(AuthError):
    """Reset token absent, expired or already consumed."""
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid or expired reset token"


class NotFound(AuthError):
    """Referenced user, session or event does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "Not found"


class PermissionDenied(AuthError):
    """Authorization predicate failed."""
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Permission denied"


class ValidationFailed(AuthError):
    """Profile field rejected (name length, company, role value)."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    public_message = "Validation failed"


class Conflict(AuthError):
    """Uniqueness violation, e.g. email already registered."""
    status_code = status.HTTP_409_CONFLICT
    public_message = "Conflict"
