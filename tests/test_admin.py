"""
SalesDesk - User Administration Tests

Run with: pytest tests/test_admin.py -v
"""

from uuid import uuid4

import pytest
from sqlmodel import select

from salesdesk.audit.models import ActivityType, UserActivity
from salesdesk.auth.errors import (
    Conflict,
    NotFound,
    PermissionDenied,
    ValidationFailed,
    WeakPassword,
)
from salesdesk.auth.models import Role
from salesdesk.auth.password import verify_password
from tests.conftest import TEST_PASSWORD, auth_headers, login_user, reload_user


def _crud_actions(session_factory):
    with session_factory() as db:
        rows = db.exec(
            select(UserActivity).where(UserActivity.activity_type == ActivityType.USER_CRUD.value)
        ).all()
    return [r.details["action"] for r in rows]


class TestListAndGet:

    def test_admin_lists_everyone(self, services, test_admin, test_manager, test_salesperson):
        users = services.admin.list_users(test_admin)
        assert {u.email for u in users} == {"admin@test.com", "manager@test.com", "sales@test.com"}

    def test_manager_lists_salespeople(self, services, test_admin, test_manager, test_salesperson):
        users = services.admin.list_users(test_manager)
        assert [u.email for u in users] == ["sales@test.com"]

    def test_salesperson_cannot_list(self, services, test_salesperson):
        with pytest.raises(PermissionDenied):
            services.admin.list_users(test_salesperson)

    def test_get_user(self, services, test_admin, test_manager, test_salesperson):
        assert services.admin.get_user(test_manager, test_salesperson.id).id == test_salesperson.id
        assert services.admin.get_user(test_manager, test_manager.id).id == test_manager.id
        with pytest.raises(PermissionDenied):
            services.admin.get_user(test_manager, test_admin.id)
        with pytest.raises(NotFound):
            services.admin.get_user(test_admin, uuid4())


class TestCreateUser:

    def test_admin_creates_manager(self, services, session_factory, test_admin):
        user = services.admin.create_user(
            test_admin, "New.Manager@Test.com", "New Manager", "secret1", Role.MANAGER, "Louis Safety"
        )

        assert user.email == "new.manager@test.com"
        assert user.role == Role.MANAGER
        assert user.enabled is True
        assert verify_password("secret1", user.password_hash)
        assert user.password_expires_at is not None
        assert _crud_actions(session_factory) == ["create"]

    def test_manager_creates_salesperson(self, services, test_manager):
        user = services.admin.create_user(test_manager, "rep@test.com", "Sales Rep", "secret1")
        assert user.role == Role.SALESPERSON

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.MANAGER])
    def test_manager_cannot_escalate(self, services, test_manager, role):
        with pytest.raises(PermissionDenied):
            services.admin.create_user(test_manager, "x@test.com", "Someone", "secret1", role)

    def test_salesperson_cannot_create(self, services, test_salesperson):
        with pytest.raises(PermissionDenied):
            services.admin.create_user(test_salesperson, "x@test.com", "Someone", "secret1")

    def test_duplicate_email(self, services, test_admin, test_salesperson):
        with pytest.raises(Conflict):
            services.admin.create_user(test_admin, "SALES@test.com", "Duplicate", "secret1")

    @pytest.mark.parametrize("name", ["", "A", "x" * 101])
    def test_name_length(self, services, test_admin, name):
        with pytest.raises(ValidationFailed):
            services.admin.create_user(test_admin, "x@test.com", name, "secret1")

    def test_unknown_company(self, services, test_admin):
        with pytest.raises(ValidationFailed):
            services.admin.create_user(test_admin, "x@test.com", "Someone", "secret1", company="Acme Corp")

    def test_weak_password(self, services, test_admin):
        with pytest.raises(WeakPassword):
            services.admin.create_user(test_admin, "x@test.com", "Someone", "abc")

    def test_invalid_email(self, services, test_admin):
        with pytest.raises(ValidationFailed):
            services.admin.create_user(test_admin, "not-an-email", "Someone", "secret1")


class TestUpdateUser:

    def test_update_fields(self, services, session_factory, test_admin, test_salesperson):
        user = services.admin.update_user(
            test_admin, test_salesperson.id, name="Renamed Rep", company="Data Grid Labs"
        )

        assert user.name == "Renamed Rep"
        assert user.company == "Data Grid Labs"
        assert _crud_actions(session_factory) == ["update"]

    def test_clear_company(self, services, test_admin, make_user):
        user = make_user("rep@test.com", company="Louis Safety")

        updated = services.admin.update_user(test_admin, user.id, company=None)

        assert updated.company is None

    def test_admin_promotes(self, services, test_admin, test_salesperson):
        user = services.admin.update_user(test_admin, test_salesperson.id, role=Role.MANAGER)
        assert user.role == Role.MANAGER

    def test_manager_cannot_change_role(self, services, test_manager, test_salesperson):
        with pytest.raises(PermissionDenied):
            services.admin.update_user(test_manager, test_salesperson.id, role=Role.MANAGER)

    def test_manager_cannot_edit_manager(self, services, test_manager, make_user):
        other = make_user("other.manager@test.com", Role.MANAGER)
        with pytest.raises(PermissionDenied):
            services.admin.update_user(test_manager, other.id, name="Hijacked")

    def test_email_conflict(self, services, test_admin, test_manager, test_salesperson):
        with pytest.raises(Conflict):
            services.admin.update_user(test_admin, test_salesperson.id, email="manager@test.com")

    def test_disable_via_update_revokes_sessions(self, services, test_admin, test_salesperson):
        result = services.auth.login("sales@test.com", TEST_PASSWORD)

        services.admin.update_user(test_admin, test_salesperson.id, enabled=False)

        assert services.sessions.lookup(result.token) is None

    def test_cannot_disable_admin_via_update(self, services, test_admin, make_user):
        other = make_user("other.admin@test.com", Role.ADMIN)
        with pytest.raises(PermissionDenied):
            services.admin.update_user(test_admin, other.id, enabled=False)


class TestDeleteAndToggle:

    def test_delete_user(self, services, session_factory, test_admin, test_salesperson):
        result = services.auth.login("sales@test.com", TEST_PASSWORD)

        services.admin.delete_user(test_admin, test_salesperson.id)

        assert reload_user(session_factory, test_salesperson.id) is None
        assert services.sessions.lookup(result.token) is None
        assert _crud_actions(session_factory) == ["delete"]

    def test_cannot_delete_self(self, services, test_admin):
        with pytest.raises(PermissionDenied):
            services.admin.delete_user(test_admin, test_admin.id)

    def test_manager_cannot_delete_admin(self, services, test_admin, test_manager):
        with pytest.raises(PermissionDenied):
            services.admin.delete_user(test_manager, test_admin.id)

    def test_toggle_enabled(self, services, session_factory, test_manager, test_salesperson):
        result = services.auth.login("sales@test.com", TEST_PASSWORD)

        disabled = services.admin.toggle_enabled(test_manager, test_salesperson.id)
        assert disabled.enabled is False
        assert services.sessions.lookup(result.token) is None

        enabled = services.admin.toggle_enabled(test_manager, test_salesperson.id)
        assert enabled.enabled is True
        assert _crud_actions(session_factory) == ["disable", "enable"]

    def test_cannot_toggle_self(self, services, test_admin):
        with pytest.raises(PermissionDenied):
            services.admin.toggle_enabled(test_admin, test_admin.id)

    def test_cannot_toggle_manager(self, services, test_admin, test_manager):
        with pytest.raises(PermissionDenied):
            services.admin.toggle_enabled(test_admin, test_manager.id)


class TestAdminResets:

    def test_manager_resets_salesperson(self, services, session_factory, test_manager, test_salesperson):
        new_password = services.admin.reset_password(test_manager, test_salesperson.id, "Forgot")

        user = reload_user(session_factory, test_salesperson.id)
        assert verify_password(new_password, user.password_hash)

    def test_manager_cannot_reset_admin(self, services, test_admin, test_manager):
        with pytest.raises(PermissionDenied):
            services.admin.reset_password(test_manager, test_admin.id, "Takeover")

    def test_bulk_reset_omits_unmanaged(self, services, test_admin, test_manager, test_salesperson):
        results = services.admin.bulk_reset(
            test_manager, [test_salesperson.id, test_admin.id, uuid4()], "Rotation"
        )
        assert list(results) == [test_salesperson.id]


# =============================================================================
# ADMIN API
# =============================================================================

class TestAdminAPI:

    def test_salesperson_forbidden(self, client, test_salesperson):
        token = login_user(client, "sales@test.com")

        response = client.get("/api/v1/admin/users", headers=auth_headers(token))

        assert response.status_code == 403

    def test_unauthenticated(self, client):
        response = client.get("/api/v1/admin/users")
        assert response.status_code == 401

    def test_create_and_list(self, client, test_admin):
        token = login_user(client, "admin@test.com")

        response = client.post(
            "/api/v1/admin/users",
            headers=auth_headers(token),
            json={
                "email": "rep@test.com",
                "name": "Sales Rep",
                "password": "secret1",
                "company": "Louis Safety",
            },
        )
        assert response.status_code == 201
        assert response.json()["role"] == "salesperson"

        response = client.get("/api/v1/admin/users", headers=auth_headers(token))
        assert {u["email"] for u in response.json()} == {"admin@test.com", "rep@test.com"}

    def test_create_duplicate_is_conflict(self, client, test_admin, test_salesperson):
        token = login_user(client, "admin@test.com")

        response = client.post(
            "/api/v1/admin/users",
            headers=auth_headers(token),
            json={"email": "sales@test.com", "name": "Dup", "password": "secret1"},
        )

        assert response.status_code == 409

    def test_patch_and_delete(self, client, test_admin, test_salesperson):
        token = login_user(client, "admin@test.com")
        url = f"/api/v1/admin/users/{test_salesperson.id}"

        response = client.patch(url, headers=auth_headers(token), json={"name": "Renamed Rep"})
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed Rep"

        response = client.delete(url, headers=auth_headers(token))
        assert response.status_code == 204

        response = client.get(url, headers=auth_headers(token))
        assert response.status_code == 404

    def test_reset_password_endpoint(self, client, test_manager, test_salesperson):
        token = login_user(client, "manager@test.com")

        response = client.post(
            f"/api/v1/admin/users/{test_salesperson.id}/reset-password",
            headers=auth_headers(token),
            json={"reason": "Forgot"},
        )

        assert response.status_code == 200
        new_password = response.json()["new_password"]
        assert login_user(client, "sales@test.com", new_password) is not None

    def test_bulk_reset_endpoint(self, client, test_admin, test_salesperson):
        token = login_user(client, "admin@test.com")

        response = client.post(
            "/api/v1/admin/users/bulk-reset",
            headers=auth_headers(token),
            json={"user_ids": [str(test_salesperson.id), str(uuid4())], "reason": "Rotation"},
        )

        assert response.status_code == 200
        assert response.json()["reset"] == 1
        assert response.json()["skipped"] == 1

    def test_stats_admin_only(self, client, test_admin, test_manager):
        manager_token = login_user(client, "manager@test.com")
        admin_token = login_user(client, "admin@test.com")

        assert client.get("/api/v1/admin/stats", headers=auth_headers(manager_token)).status_code == 403

        response = client.get("/api/v1/admin/stats", headers=auth_headers(admin_token))
        assert response.status_code == 200
        stats = response.json()
        assert stats["total_users"] == 2
        assert stats["logins_today"] == 2
        assert stats["active_sessions"] == 2

    def test_activities_and_reset_events(self, client, test_admin, test_salesperson):
        token = login_user(client, "admin@test.com")
        client.post(
            f"/api/v1/admin/users/{test_salesperson.id}/reset-password",
            headers=auth_headers(token),
            json={"reason": "Forgot"},
        )

        activities = client.get("/api/v1/admin/activities", headers=auth_headers(token)).json()
        assert activities[0]["activity_type"] == "user_crud"
        assert activities[0]["details"]["action"] == "password_reset"

        events = client.get(
            "/api/v1/admin/reset-events",
            headers=auth_headers(token),
            params={"user_id": str(test_salesperson.id)},
        ).json()
        assert len(events) == 1
        assert events[0]["reset_type"] == "manual"
        assert events[0]["admin_id"] == str(test_admin.id)
