"""
SalesDesk - FastAPI Application Entrypoint

This module initializes the FastAPI application with:
- CORS and security middleware
- Authentication and admin routes
- Database and service lifecycle management
- Background sweeper for sessions and password resets

Run with:
    uvicorn salesdesk.app:app --reload
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salesdesk.admin.routes import router as admin_router
from salesdesk.auth.database import get_engine, get_session_factory, init_db
from salesdesk.auth.errors import AuthError
from salesdesk.auth.routes import router as auth_router
from salesdesk.config import settings
from salesdesk.gateway.middleware import SecurityMiddleware
from salesdesk.gateway.rbac import AccessPolicy
from salesdesk.services.container import build_container


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("salesdesk.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Create tables (users, sessions, reset events, activities)
        - Load the access policy and build the service container
        - Start the background sweeper

    Shutdown:
        - Cancel the sweeper, clear caches, dispose the engine
    """
    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)
    app.state.db_engine = engine

    policy = AccessPolicy.from_yaml(settings.POLICY_FILE)
    app.state.services = build_container(get_session_factory(engine), policy)
    logger.info("Services initialized (%d allowed companies)", len(policy.companies))

    app.state.sweeper_task = None
    if settings.SWEEPER_ENABLED:
        app.state.sweeper_task = asyncio.create_task(app.state.services.sweeper.run_forever())

    yield

    if app.state.sweeper_task is not None:
        app.state.sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await app.state.sweeper_task
    app.state.services.close()
    engine.dispose()
    logger.info("SalesDesk shutdown complete")


app = FastAPI(
    title="SalesDesk",
    description="Session-based authentication and role-scoped user management",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

app.add_middleware(SecurityMiddleware)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(auth_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint for local dev tooling."""
    sweeper_task = getattr(app.state, "sweeper_task", None)
    return {
        "status": "healthy",
        "version": "0.1.0",
        "services": {
            "database": True,
            "sweeper": sweeper_task is not None and not sweeper_task.done(),
        },
    }


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "SalesDesk",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
