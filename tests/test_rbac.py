"""
SalesDesk - RBAC Tests

Unit tests for the role hierarchy, manage/disable predicates and
policy loading.

Run with: pytest tests/test_rbac.py
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from salesdesk.auth.errors import PermissionDenied
from salesdesk.auth.models import Role
from salesdesk.config import settings
from salesdesk.gateway.rbac import (
    AccessPolicy,
    at_least,
    can_disable,
    can_manage,
    require_disable,
    require_manage,
)


def make(role: Role):
    return SimpleNamespace(id=uuid4(), role=role)


ALL_ROLES = [Role.ADMIN, Role.MANAGER, Role.SALESPERSON]


class TestRoleHierarchy:

    def test_rank_order(self):
        assert Role.ADMIN.rank < Role.MANAGER.rank < Role.SALESPERSON.rank

    @pytest.mark.parametrize("role,threshold,expected", [
        (Role.ADMIN, Role.ADMIN, True),
        (Role.ADMIN, Role.SALESPERSON, True),
        (Role.MANAGER, Role.SALESPERSON, True),
        (Role.MANAGER, Role.MANAGER, True),
        (Role.MANAGER, Role.ADMIN, False),
        (Role.SALESPERSON, Role.MANAGER, False),
        (Role.SALESPERSON, Role.SALESPERSON, True),
    ])
    def test_at_least(self, role, threshold, expected):
        assert at_least(role, threshold) is expected
        assert role.at_least(threshold) is expected


class TestCanManage:

    @pytest.mark.parametrize("target", ALL_ROLES)
    def test_admin_manages_everyone(self, target):
        assert can_manage(make(Role.ADMIN), make(target)) is True

    def test_manager_manages_salespeople_only(self):
        manager = make(Role.MANAGER)

        assert can_manage(manager, make(Role.SALESPERSON)) is True
        assert can_manage(manager, make(Role.MANAGER)) is False
        assert can_manage(manager, make(Role.ADMIN)) is False

    @pytest.mark.parametrize("target", ALL_ROLES)
    def test_salesperson_manages_no_one(self, target):
        assert can_manage(make(Role.SALESPERSON), make(target)) is False

    def test_require_manage_raises(self):
        with pytest.raises(PermissionDenied):
            require_manage(make(Role.MANAGER), make(Role.ADMIN))


class TestCanDisable:

    def test_admin_disables_salesperson(self):
        assert can_disable(make(Role.ADMIN), make(Role.SALESPERSON)) is True

    def test_manager_disables_salesperson(self):
        assert can_disable(make(Role.MANAGER), make(Role.SALESPERSON)) is True

    @pytest.mark.parametrize("target", [Role.ADMIN, Role.MANAGER])
    def test_only_salespeople_can_be_disabled(self, target):
        assert can_disable(make(Role.ADMIN), make(target)) is False

    @pytest.mark.parametrize("role", ALL_ROLES)
    def test_no_self_disable(self, role):
        actor = make(role)
        assert can_disable(actor, actor) is False

    def test_salesperson_cannot_disable(self):
        assert can_disable(make(Role.SALESPERSON), make(Role.SALESPERSON)) is False

    def test_require_disable_raises(self):
        with pytest.raises(PermissionDenied):
            require_disable(make(Role.ADMIN), make(Role.MANAGER))


class TestAccessPolicy:

    def test_bundled_policy_file(self):
        policy = AccessPolicy.from_yaml(settings.POLICY_FILE)

        assert policy.is_valid_company("Louis Safety")
        assert policy.can_assign(Role.ADMIN, Role.ADMIN)
        assert policy.can_assign(Role.MANAGER, Role.SALESPERSON)
        assert not policy.can_assign(Role.MANAGER, Role.MANAGER)
        assert not policy.can_assign(Role.SALESPERSON, Role.SALESPERSON)

    def test_company_allow_list(self):
        policy = AccessPolicy(companies=["Data Grid Labs"])

        assert policy.is_valid_company("Data Grid Labs")
        assert policy.is_valid_company(None)
        assert not policy.is_valid_company("Acme Corp")

    def test_missing_file_denies_everything(self, tmp_path):
        policy = AccessPolicy.from_yaml(tmp_path / "missing.yaml")

        assert policy.assignable_roles(Role.ADMIN) == set()
        assert not policy.is_valid_company("Louis Safety")

    def test_custom_file(self, tmp_path):
        path = tmp_path / "policies.yaml"
        path.write_text(
            "companies:\n  - Acme Corp\n"
            "role_assignment:\n  admin: [manager]\n"
        )

        policy = AccessPolicy.from_yaml(path)

        assert policy.is_valid_company("Acme Corp")
        assert policy.assignable_roles(Role.ADMIN) == {Role.MANAGER}
        assert policy.assignable_roles(Role.MANAGER) == set()
