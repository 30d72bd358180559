"""Tests for roles, tokens and the auth session."""

from datetime import timedelta

import pytest

from bizdesk.auth.jwt import (
    create_access_token,
    decode_token,
    extract_permissions,
    extract_role,
    extract_user_id,
)
from bizdesk.auth.permissions import Permission
from bizdesk.auth.roles import (
    ROLE_HIERARCHY,
    Role,
    assignable_roles,
    can_assign,
    ensure_can_assign,
)
from bizdesk.auth.session import AuthSession
from bizdesk.middleware.exceptions import RoleAssignmentError
from bizdesk.schemas.permission_group import GroupModuleGrant, PermissionGroup


@pytest.mark.unit
class TestRoles:
    """Role coercion and the assignment hierarchy."""

    @pytest.mark.parametrize("value,expected", [
        ("admin", Role.ADMIN),
        ("OWNER", Role.OWNER),
        (" staff ", Role.STAFF),
        ("manager", Role.OWNER),
        ("user", Role.STAFF),
        ("superuser", Role.GUEST),
        (None, Role.GUEST),
        ("", Role.GUEST),
        (Role.STAFF, Role.STAFF),
    ])
    def test_coerce(self, value, expected):
        assert Role.coerce(value) == expected

    def test_admin_assigns_everything(self):
        assert assignable_roles(Role.ADMIN) == frozenset(Role)

    def test_owner_cannot_assign_admin(self):
        assert not can_assign("owner", "admin")
        assert can_assign("owner", "staff")

    def test_guest_assigns_nothing(self):
        assert assignable_roles("guest") == frozenset()

    def test_delegation_never_escalates(self):
        for role, allowed in ROLE_HIERARCHY.items():
            for target in allowed:
                assert assignable_roles(target) <= allowed

    def test_ensure_can_assign_raises(self):
        with pytest.raises(RoleAssignmentError) as exc_info:
            ensure_can_assign("staff", "owner")
        assert exc_info.value.status_code == 403
        assert exc_info.value.error_code == "ROLE_NOT_ASSIGNABLE"

    def test_ensure_can_assign_allows(self):
        ensure_can_assign("admin", "owner")


@pytest.mark.unit
class TestJWTTokens:
    """Test JWT token generation and validation."""

    def test_create_access_token(self):
        token = create_access_token(
            user_id="user123",
            role="staff",
            permissions=["sales:view", "stock:edit"],
            owner_package="gold",
        )

        payload = decode_token(token)
        assert payload["sub"] == "user123"
        assert payload["role"] == "staff"
        assert payload["type"] == "access"
        assert payload["owner_package"] == "gold"
        assert "package" not in payload
        assert "stock:edit" in payload["permissions"]

    def test_decode_invalid_token(self):
        assert decode_token("invalid.token.here") == {}
        assert decode_token("") == {}
        assert decode_token(None) == {}

    def test_decode_expired_token(self):
        token = create_access_token("u1", "staff", [], expires_delta=timedelta(seconds=-5))
        assert decode_token(token) == {}

    def test_extractors(self):
        token = create_access_token("u1", "manager", ["sales:view", "bad"])
        assert extract_permissions(token) == {Permission("sales", "view")}
        assert extract_role(token) == Role.OWNER
        assert extract_user_id(token) == "u1"

    def test_extractors_on_garbage(self):
        assert extract_permissions("garbage") == frozenset()
        assert extract_role("garbage") is None
        assert extract_user_id("garbage") is None


@pytest.mark.auth
class TestAuthSession:
    """Session lifecycle: login, refresh, impersonation, logout."""

    def test_initial_state_not_loaded(self):
        session = AuthSession()
        assert not session.permissions_loaded
        assert session.role == Role.GUEST
        # Optimistic loading window
        assert session.can("settings:manage")

    def test_login_with_profile_data(self):
        token = create_access_token("u1", "staff", ["settings:view"])
        session = AuthSession()
        session.login(token, role="staff", custom_permissions={"stock": {"actions": ["edit"]}})

        assert session.permissions_loaded
        assert session.user_id == "u1"
        assert session.can("settings:view")
        assert session.can("stock:edit")
        assert session.can("sales:view")
        assert not session.can("settings:manage")

    def test_login_falls_back_to_token_claims(self):
        token = create_access_token(
            "u2", "manager", [], custom_permissions={"settings": {"actions": ["manage"]}}
        )
        session = AuthSession()
        session.login(token)

        assert session.role == Role.OWNER
        assert session.can("settings:manage")

    def test_login_with_undecodable_token(self):
        session = AuthSession()
        session.login("not-a-token", role="staff")

        assert session.permissions_loaded
        assert session.user_id is None
        assert session.context.token_permissions == frozenset()
        assert session.can("sales:view")
        assert not session.can("sales:delete")

    def test_restore_is_silent_login(self):
        token = create_access_token("u3", "owner", [])
        session = AuthSession()
        session.restore(token, stored_role="owner")
        assert session.role == Role.OWNER
        assert session.permissions_loaded

    def test_refresh_keeps_overrides(self):
        session = AuthSession()
        session.login(None, role="staff", custom_permissions={"stock": {"actions": ["edit"]}})
        session.refresh(create_access_token("u1", "staff", ["reports:export"]))

        assert session.can("reports:export")
        assert session.can("stock:edit")

    def test_refresh_replaces_token_permissions(self):
        session = AuthSession()
        session.login(create_access_token("u1", "guest", ["reports:export"]))
        session.refresh(create_access_token("u1", "guest", []))
        assert not session.can("reports:export")

    def test_apply_group_replaces_module_overrides(self):
        session = AuthSession()
        session.login(None, role="staff", custom_permissions={
            "stock": {"actions": ["edit"]},
            "customers": {"actions": ["delete"]},
        })
        group = PermissionGroup(
            id="warehouse",
            name="Warehouse",
            permissions={"stock": GroupModuleGrant(actions=["delete"])},
        )
        session.apply_group(group)

        assert session.can("stock:delete")
        assert not session.can("stock:edit")
        assert session.can("customers:delete")

    def test_impersonation_round_trip(self):
        session = AuthSession()
        session.login(create_access_token("u1", "admin", ["settings:manage"]))
        session.impersonate("staff")

        assert session.is_impersonating
        assert session.role == Role.STAFF
        # Real user's token claims do not leak into the impersonated view
        assert not session.can("settings:manage")

        session.stop_impersonating()
        assert not session.is_impersonating
        assert session.role == Role.ADMIN
        assert session.can("settings:manage")

    def test_nested_impersonation_returns_to_real_user(self):
        session = AuthSession()
        session.login(None, role="admin")
        session.impersonate("owner")
        session.impersonate("staff")
        session.stop_impersonating()
        assert session.role == Role.ADMIN

    def test_logout_denies_everything(self):
        session = AuthSession()
        session.login(create_access_token("u1", "admin", ["sales:view"]))
        session.impersonate("staff")
        session.logout()

        assert session.permissions_loaded
        assert session.role == Role.GUEST
        assert session.user_id is None
        assert not session.is_impersonating
        assert not session.can("sales:view")

    def test_custom_decoder(self):
        session = AuthSession(decoder=lambda token: {"sub": "x", "role": "staff", "permissions": ["a:b"]})
        session.login("anything")
        assert session.can("a:b")
        assert session.user_id == "x"
