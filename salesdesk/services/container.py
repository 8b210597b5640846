"""
SalesDesk - Service Container

Wires every service against one session factory and one access policy.
The application builds a container in its lifespan and stores it on
app.state.services; tests build their own against an in-memory engine.
"""

from dataclasses import dataclass
from typing import Optional

from salesdesk.admin.service import UserAdminService
from salesdesk.audit.activity import ActivityLog
from salesdesk.auth.database import SessionFactory
from salesdesk.auth.reset import PasswordResetService
from salesdesk.auth.service import AuthService
from salesdesk.auth.sessions import SessionStore
from salesdesk.config import settings
from salesdesk.gateway.rbac import AccessPolicy
from salesdesk.services.stats import StatsService
from salesdesk.services.sweeper import Sweeper


@dataclass
class ServiceContainer:
    session_factory: SessionFactory
    policy: AccessPolicy
    activity: ActivityLog
    sessions: SessionStore
    auth: AuthService
    resets: PasswordResetService
    admin: UserAdminService
    stats: StatsService
    sweeper: Sweeper

    def close(self) -> None:
        self.stats.close()


def build_container(
    session_factory: SessionFactory,
    policy: Optional[AccessPolicy] = None,
) -> ServiceContainer:
    """Construct all services; policy defaults to settings.POLICY_FILE."""
    policy = policy or AccessPolicy.from_yaml(settings.POLICY_FILE)

    activity = ActivityLog(session_factory)
    sessions = SessionStore(session_factory)
    auth = AuthService(session_factory, sessions, activity)
    resets = PasswordResetService(session_factory, activity, sessions)
    admin = UserAdminService(session_factory, activity, sessions, resets, policy)

    return ServiceContainer(
        session_factory=session_factory,
        policy=policy,
        activity=activity,
        sessions=sessions,
        auth=auth,
        resets=resets,
        admin=admin,
        stats=StatsService(session_factory, sessions, activity),
        sweeper=Sweeper(sessions, resets),
    )
