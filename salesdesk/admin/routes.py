"""
SalesDesk - Admin API Routes

Management endpoints for managers and administrators:
- User CRUD and enable/disable
- Manual and bulk password resets
- Activity and reset-event history
- Dashboard statistics

Managers see and manage salespeople only; the admin service enforces
that per target. Audit history and statistics are admin-only.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, status
from starlette.concurrency import run_in_threadpool

from salesdesk.audit.models import ActivityRecord
from salesdesk.auth.dependencies import (
    get_client_ip,
    get_services,
    get_user_agent,
    require_role,
    require_role_or_higher,
)
from salesdesk.auth.models import Role, User
from salesdesk.auth.schemas import (
    AdminResetRequest,
    AdminResetResponse,
    BulkResetRequest,
    BulkResetResponse,
    CreateUserRequest,
    DashboardStats,
    ErrorResponse,
    ResetEventResponse,
    UpdateUserRequest,
    UserResponse,
)
from salesdesk.services.container import ServiceContainer


router = APIRouter(prefix="/admin", tags=["admin"])

require_manager = require_role_or_higher(Role.MANAGER)
require_admin = require_role(Role.ADMIN)


# =============================================================================
# Users
# =============================================================================

@router.get("/users", response_model=List[UserResponse], summary="List Users")
async def list_users(
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    users = await run_in_threadpool(services.admin.list_users, actor)
    return [UserResponse.model_validate(u) for u in users]


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create User",
)
async def create_user(
    request: Request,
    body: CreateUserRequest,
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    user = await run_in_threadpool(
        services.admin.create_user,
        actor,
        body.email,
        body.name,
        body.password,
        body.role,
        body.company,
        get_client_ip(request),
        get_user_agent(request),
    )
    return UserResponse.model_validate(user)


@router.get("/users/{user_id}", response_model=UserResponse, summary="Get User")
async def get_user(
    user_id: UUID = Path(...),
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    user = await run_in_threadpool(services.admin.get_user, actor, user_id)
    return UserResponse.model_validate(user)


@router.patch("/users/{user_id}", response_model=UserResponse, summary="Update User")
async def update_user(
    request: Request,
    body: UpdateUserRequest,
    user_id: UUID = Path(...),
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    """Only fields present in the body are changed; company may be set to null."""
    changes = body.model_dump(exclude_unset=True)
    user = await run_in_threadpool(
        lambda: services.admin.update_user(
            actor,
            user_id,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
            **changes,
        )
    )
    return UserResponse.model_validate(user)


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete User",
)
async def delete_user(
    request: Request,
    user_id: UUID = Path(...),
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    await run_in_threadpool(
        services.admin.delete_user,
        actor,
        user_id,
        get_client_ip(request),
        get_user_agent(request),
    )


@router.post("/users/{user_id}/toggle", response_model=UserResponse, summary="Enable/Disable User")
async def toggle_user(
    request: Request,
    user_id: UUID = Path(...),
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    user = await run_in_threadpool(
        services.admin.toggle_enabled,
        actor,
        user_id,
        get_client_ip(request),
        get_user_agent(request),
    )
    return UserResponse.model_validate(user)


# =============================================================================
# Password resets
# =============================================================================

@router.post(
    "/users/{user_id}/reset-password",
    response_model=AdminResetResponse,
    summary="Reset User Password",
)
async def reset_user_password(
    request: Request,
    body: AdminResetRequest,
    user_id: UUID = Path(...),
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    """The generated password is returned once and cannot be retrieved again."""
    new_password = await run_in_threadpool(
        services.admin.reset_password,
        actor,
        user_id,
        body.reason,
        get_client_ip(request),
        get_user_agent(request),
    )
    return AdminResetResponse(user_id=user_id, new_password=new_password)


@router.post("/users/bulk-reset", response_model=BulkResetResponse, summary="Bulk Password Reset")
async def bulk_reset(
    request: Request,
    body: BulkResetRequest,
    actor: User = Depends(require_manager),
    services: ServiceContainer = Depends(get_services),
):
    passwords = await run_in_threadpool(
        services.admin.bulk_reset,
        actor,
        body.user_ids,
        body.reason,
        get_client_ip(request),
        get_user_agent(request),
    )
    return BulkResetResponse(
        passwords=passwords,
        reset=len(passwords),
        skipped=len(set(body.user_ids)) - len(passwords),
    )


@router.get("/reset-events", response_model=List[ResetEventResponse], summary="Password Reset Events")
async def reset_events(
    user_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    actor: User = Depends(require_admin),
    services: ServiceContainer = Depends(get_services),
):
    if user_id is not None:
        events = await run_in_threadpool(services.resets.get_reset_events, user_id)
    else:
        events = await run_in_threadpool(services.resets.get_all_reset_events, limit)
    return [ResetEventResponse.model_validate(e) for e in events]


# =============================================================================
# Activity and statistics
# =============================================================================

@router.get("/activities", response_model=List[ActivityRecord], summary="Activity Log")
async def activities(
    user_id: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=1000),
    actor: User = Depends(require_admin),
    services: ServiceContainer = Depends(get_services),
):
    if user_id is not None:
        records = await run_in_threadpool(services.activity.get_user_activities, user_id, limit)
    else:
        records = await run_in_threadpool(services.activity.get_all_activities, limit)
    return [ActivityRecord.model_validate(r) for r in records]


@router.get("/stats", response_model=DashboardStats, summary="Dashboard Statistics")
async def stats(
    refresh: bool = Query(False),
    actor: User = Depends(require_admin),
    services: ServiceContainer = Depends(get_services),
):
    compute = services.stats.refresh if refresh else services.stats.dashboard
    return DashboardStats(**await run_in_threadpool(compute))
