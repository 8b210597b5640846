"""
SalesDesk - Authentication Routes

API endpoints for authentication:
- POST /auth/login                     - Authenticate and create session
- POST /auth/logout                    - Destroy the current session
- GET  /auth/me                        - Current user info
- POST /auth/password                  - Change own password
- GET  /auth/sessions                  - List own active sessions
- POST /auth/password-reset/request    - Request a reset token
- POST /auth/password-reset/confirm    - Redeem a reset token

Service calls run in the threadpool; bcrypt and database I/O are blocking.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from starlette.concurrency import run_in_threadpool

from salesdesk.auth.dependencies import (
    get_client_ip,
    get_current_user,
    get_services,
    get_session_token,
    get_user_agent,
)
from salesdesk.auth.errors import InvalidSession
from salesdesk.auth.models import User
from salesdesk.auth.schemas import (
    ActiveSessionsResponse,
    ChangePasswordRequest,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetConfirm,
    ResetRequest,
    ResetRequestResponse,
    SessionInfo,
    UserResponse,
)
from salesdesk.config import settings
from salesdesk.services.container import ServiceContainer


router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Authenticate user and create session",
)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    services: ServiceContainer = Depends(get_services),
):
    """
    Authenticate with email and password.

    The token is returned in the body and also set as an HttpOnly cookie.

    Raises:
        401: Invalid email or password
        403: Password expired
    """
    result = await run_in_threadpool(
        services.auth.login,
        credentials.email,
        credentials.password,
        get_client_ip(request),
        get_user_agent(request),
    )

    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        result.token,
        max_age=settings.SESSION_TTL_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )
    return LoginResponse(
        token=result.token,
        expires_at=result.session.expires_at,
        user=UserResponse.model_validate(result.user),
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Destroy current session",
)
async def logout(
    request: Request,
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    services: ServiceContainer = Depends(get_services),
):
    if not token:
        raise InvalidSession()
    await run_in_threadpool(
        services.auth.logout, token, get_client_ip(request), get_user_agent(request)
    )
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse, summary="Get current user information")
async def get_me(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.post(
    "/password",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Change own password",
)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    """Requires the current password. Other sessions stay signed in."""
    await run_in_threadpool(
        services.auth.change_password,
        user.id,
        body.current_password,
        body.new_password,
        get_client_ip(request),
        get_user_agent(request),
    )
    return MessageResponse(message="Password updated")


@router.get("/sessions", response_model=ActiveSessionsResponse, summary="List active sessions")
async def list_sessions(
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    active = await run_in_threadpool(services.sessions.active_for_user, user.id)
    return ActiveSessionsResponse(
        sessions=[SessionInfo.model_validate(s) for s in active],
        total=len(active),
    )


@router.post(
    "/password-reset/request",
    response_model=ResetRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a password reset token",
)
async def request_password_reset(
    request: Request,
    body: ResetRequest,
    services: ServiceContainer = Depends(get_services),
):
    """
    Always answers with the same message, whether or not the email
    belongs to an account.
    """
    token = await run_in_threadpool(
        services.resets.request_reset,
        body.email,
        get_client_ip(request),
        get_user_agent(request),
    )
    # TODO: hand the token to a mailer once outbound email is configured
    return ResetRequestResponse(token=token if settings.RESET_TOKEN_IN_RESPONSE else None)


@router.post(
    "/password-reset/confirm",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Set a new password with a reset token",
)
async def confirm_password_reset(
    request: Request,
    body: ResetConfirm,
    services: ServiceContainer = Depends(get_services),
):
    await run_in_threadpool(
        services.resets.reset_with_token,
        body.token,
        body.new_password,
        get_client_ip(request),
        get_user_agent(request),
    )
    return MessageResponse(message="Password has been reset")
