"""
SalesDesk - Database Configuration

SQLModel database setup with connection pooling.
Supports PostgreSQL (production) and SQLite (development).

Usage:
    from salesdesk.auth.database import get_engine, init_db

    engine = get_engine()
    init_db(engine)  # Creates tables
"""

from typing import Callable

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from salesdesk.config import settings


SessionFactory = Callable[[], Session]


def get_database_url() -> str:
    """
    Get database URL from settings.

    Returns:
        PostgreSQL or SQLite connection string
    """
    if settings.DATABASE_URL:
        return settings.DATABASE_URL

    # Default to SQLite for local development
    return "sqlite:///./salesdesk.db"


def get_engine(database_url: str = None, echo: bool = False):
    """
    Create SQLAlchemy engine with appropriate configuration.

    Args:
        database_url: Override database URL
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    url = database_url or get_database_url()

    if url.startswith("sqlite"):
        # SQLite configuration
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        # PostgreSQL configuration with connection pooling
        engine = create_engine(
            url,
            echo=echo,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )

    return engine


def init_db(engine) -> None:
    """
    Initialize database tables.

    Creates all tables defined in SQLModel models.
    Safe to call multiple times (uses CREATE IF NOT EXISTS).
    """
    # Import models to register them with SQLModel
    from salesdesk.auth.models import User, Session as AuthSession, PasswordResetEvent  # noqa: F401
    from salesdesk.audit.models import UserActivity  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session_factory(engine) -> SessionFactory:
    """
    Create a session factory bound to engine.

    Objects stay readable after commit so services can hand them
    back to callers once the database session is closed.

    Returns:
        Callable that creates new database sessions
    """
    def session_factory() -> Session:
        return Session(engine, expire_on_commit=False)

    return session_factory

