"""
SalesDesk - Security Dependencies

FastAPI dependencies for authentication and authorization.

The session token is read from the Authorization header (Bearer) or,
failing that, from the session cookie. Resolution goes through
AuthService.get_current_user, which also slides the session expiry.

Usage:
    @router.get("/protected")
    async def protected_route(user: User = Depends(get_current_user)):
        ...

    @router.get("/managers")
    async def managers_only(user: User = Depends(require_role_or_higher(Role.MANAGER))):
        ...

Security:
- Missing token and invalid token produce the same 401
- RBAC is deny-by-default
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from salesdesk.auth.errors import PermissionDenied
from salesdesk.auth.models import Role, User
from salesdesk.config import settings
from salesdesk.services.container import ServiceContainer


# HTTP Bearer scheme for token extraction
security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> ServiceContainer:
    """Service container built in the application lifespan."""
    return request.app.state.services


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request."""
    return request.headers.get("User-Agent", "unknown")[:512]


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Bearer token if present, else the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_current_user(
    token: Optional[str] = Depends(get_session_token),
    services: ServiceContainer = Depends(get_services),
) -> User:
    """
    Validate the session token and return its user.

    Raises:
        InvalidOrExpiredSession: 401, token missing, unknown or expired
        UserDisabled: 401, the owner has been disabled
    """
    return await run_in_threadpool(services.auth.get_current_user, token)


def require_role(role: Role):
    """
    Dependency factory requiring exactly one role.

    Usage:
        @router.get("/admin-only")
        async def admin_only(user: User = Depends(require_role(Role.ADMIN))):
            ...
    """
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise PermissionDenied(f"Requires role: {role.value}")
        return user
    return dependency


def require_role_or_higher(minimum: Role):
    """Dependency factory requiring minimum or a more privileged role."""
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not user.role.at_least(minimum):
            raise PermissionDenied(f"Requires role: {minimum.value} or higher")
        return user
    return dependency
