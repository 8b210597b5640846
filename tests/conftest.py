"""
SalesDesk - Test Configuration

Pytest fixtures for authentication testing.
Provides an in-memory database, the service container, a test client
and one user per role.
"""

import os

# Cheap bcrypt rounds for the suite; must be set before settings load
os.environ.setdefault("BCRYPT_WORK_FACTOR", "4")
os.environ.setdefault("SWEEPER_ENABLED", "false")

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from salesdesk.app import app
from salesdesk.auth.database import get_session_factory, init_db
from salesdesk.auth.models import Role, User
from salesdesk.auth.password import set_password
from salesdesk.gateway.rbac import AccessPolicy
from salesdesk.services.container import ServiceContainer, build_container


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "password123"

TEST_POLICY = AccessPolicy(
    companies=["Al Safwan Marine", "Louis Safety", "Data Grid Labs"],
    role_assignment={
        Role.ADMIN: {Role.ADMIN, Role.MANAGER, Role.SALESPERSON},
        Role.MANAGER: {Role.SALESPERSON},
    },
)


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh test database engine for each test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return get_session_factory(test_engine)


@pytest.fixture(scope="function")
def services(session_factory) -> ServiceContainer:
    container = build_container(session_factory, TEST_POLICY)
    yield container
    container.close()


@pytest.fixture(scope="function")
def make_user(session_factory):
    """Factory creating persisted users with the shared test password."""
    def _make_user(
        email: str,
        role: Role = Role.SALESPERSON,
        name: str = "Test User",
        company: str = None,
        enabled: bool = True,
        password: str = TEST_PASSWORD,
    ) -> User:
        user = User(email=email, name=name, role=role, company=company, enabled=enabled)
        set_password(user, password)
        with session_factory() as db:
            db.add(user)
            db.commit()
            db.refresh(user)
        return user
    return _make_user


@pytest.fixture(scope="function")
def test_admin(make_user) -> User:
    return make_user("admin@test.com", Role.ADMIN, name="Test Admin")


@pytest.fixture(scope="function")
def test_manager(make_user) -> User:
    return make_user("manager@test.com", Role.MANAGER, name="Test Manager")


@pytest.fixture(scope="function")
def test_salesperson(make_user) -> User:
    return make_user("sales@test.com", Role.SALESPERSON, name="Test Salesperson")


@pytest.fixture(scope="function")
def disabled_user(make_user) -> User:
    return make_user("disabled@test.com", Role.SALESPERSON, name="Disabled User", enabled=False)


@pytest.fixture(scope="function")
def client(services) -> Generator[TestClient, None, None]:
    """
    Test client wired to the test container.

    The client is not entered as a context manager so the application
    lifespan (which builds its own engine) does not run.
    """
    app.state.services = services
    app.state.sweeper_task = None
    yield TestClient(app)


def reload_user(session_factory, user_id) -> User:
    with session_factory() as db:
        return db.get(User, user_id)


def login_user(client: TestClient, email: str, password: str = TEST_PASSWORD):
    """Helper function to login and return the session token."""
    response = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    return response.json()["token"] if response.status_code == 200 else None


def auth_headers(token: str) -> dict:
    """Create authorization headers for authenticated requests."""
    return {"Authorization": f"Bearer {token}"}
