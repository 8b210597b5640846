"""
SalesDesk - Role-Based Access Control (RBAC)

Authorization over the Admin > Manager > Salesperson hierarchy.

The hierarchy rules (who may manage or disable whom) are fixed here as
pure functions of two users. Policy data that changes per deployment,
the company allow-list and which roles each role may assign, is loaded
from policies.yaml into an AccessPolicy object.

Security:
- Deny-by-default: unknown roles assign nothing
- No self-disable, whatever the role
- Only salespeople can be disabled, even by an administrator
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Set

import yaml

from salesdesk.auth.errors import PermissionDenied
from salesdesk.auth.models import Role


logger = logging.getLogger(__name__)


def at_least(role: Role, threshold: Role) -> bool:
    """True if role is threshold or more privileged."""
    return Role(role).at_least(Role(threshold))


def can_manage(actor, target) -> bool:
    """
    Whether actor may view, edit or reset target.

    Admin manages everyone; Manager manages salespeople only;
    Salesperson manages no one.
    """
    if actor.role == Role.ADMIN:
        return True
    if actor.role == Role.MANAGER:
        return target.role == Role.SALESPERSON
    return False


def can_disable(actor, target) -> bool:
    """Whether actor may enable or disable target."""
    if actor.id == target.id:
        return False
    if target.role != Role.SALESPERSON:
        return False
    return can_manage(actor, target)


def require_manage(actor, target) -> None:
    """Raise PermissionDenied unless can_manage(actor, target)."""
    if not can_manage(actor, target):
        raise PermissionDenied()


def require_disable(actor, target) -> None:
    """Raise PermissionDenied unless can_disable(actor, target)."""
    if not can_disable(actor, target):
        raise PermissionDenied("Cannot disable this user")


class AccessPolicy:
    """
    Deployment policy data: allowed companies and role-assignment grants.

    Usage:
        policy = AccessPolicy.from_yaml(settings.POLICY_FILE)
        policy.is_valid_company("Louis Safety")
        policy.can_assign(Role.MANAGER, Role.ADMIN)   # False
    """

    def __init__(
        self,
        companies: Iterable[str] = (),
        role_assignment: Optional[Dict[Role, Set[Role]]] = None,
    ):
        self.companies = frozenset(companies)
        self.role_assignment = role_assignment or {}

    @classmethod
    def from_yaml(cls, path: Path) -> "AccessPolicy":
        """Load policies from a YAML file; a missing file denies everything."""
        path = Path(path)
        if not path.exists():
            logger.warning("Policy file %s not found; denying all role assignments", path)
            return cls()

        with open(path, "r") as f:
            config = yaml.safe_load(f) or {}

        role_assignment = {
            Role(role): {Role(r) for r in (granted or [])}
            for role, granted in (config.get("role_assignment") or {}).items()
        }
        return cls(
            companies=config.get("companies") or [],
            role_assignment=role_assignment,
        )

    def is_valid_company(self, company: Optional[str]) -> bool:
        """Absent is valid; otherwise the company must be allow-listed."""
        return company is None or company in self.companies

    def assignable_roles(self, actor_role: Role) -> Set[Role]:
        return set(self.role_assignment.get(Role(actor_role), set()))

    def can_assign(self, actor_role: Role, role: Role) -> bool:
        """Whether a user with actor_role may create or promote to role."""
        return Role(role) in self.assignable_roles(actor_role)
