"""Auth session: the only owner of the current AuthContext.

The context (role, token permissions, custom overrides, loaded flag) is
immutable; each lifecycle event swaps in a new one:

    login / restore   decode token, set role and overrides, mark loaded
    refresh           new token permissions, keep overrides
    apply_group       replace overrides for the group's modules
    impersonate       view the app as another role (token claims dropped)
    logout            signed-out GUEST, nothing granted

UI code asks `can` / `can_any`; it never compares roles itself.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, Mapping, Optional

from bizdesk.auth.jwt import decode_token
from bizdesk.auth.permissions import (
    AuthContext,
    is_granted,
    is_granted_any,
    load_overrides,
    parse_permissions,
)
from bizdesk.auth.roles import Role
from bizdesk.schemas.permission_group import PermissionGroup
from bizdesk.schemas.permissions import ModuleOverride
from bizdesk.services.permission_groups import apply_group

logger = logging.getLogger(__name__)

TokenDecoder = Callable[[str], dict]


class AuthSession:
    def __init__(self, decoder: TokenDecoder = decode_token):
        self._decode = decoder
        self._context = AuthContext()
        self._original: Optional[AuthContext] = None
        self.user_id: str | None = None

    # ── Read surface ────────────────────────────────────────

    @property
    def context(self) -> AuthContext:
        return self._context

    @property
    def role(self) -> Role:
        return self._context.role

    @property
    def permissions_loaded(self) -> bool:
        return self._context.permissions_loaded

    @property
    def is_impersonating(self) -> bool:
        return self._original is not None

    def can(self, permission: str) -> bool:
        return is_granted(permission, self._context)

    def can_any(self, permissions: Iterable[str]) -> bool:
        return is_granted_any(permissions, self._context)

    # ── Lifecycle ───────────────────────────────────────────

    def login(
        self,
        access_token: str | None,
        role: Role | str | None = None,
        custom_permissions: Mapping | None = None,
    ) -> AuthContext:
        """Establish the context after a successful login.

        `role` and `custom_permissions` come from the user profile; when
        omitted, the token's `role` and `custom_permissions` claims are used.
        A token that cannot be decoded just means no token permissions.
        """
        claims = self._claims(access_token)
        if role is None:
            role = claims.get("role")
        if custom_permissions is None:
            custom_permissions = claims.get("custom_permissions")

        self._original = None
        self.user_id = str(claims["sub"]) if claims.get("sub") is not None else None
        self._context = AuthContext(
            role=Role.coerce(role),
            token_permissions=parse_permissions(_claimed_permissions(claims)),
            custom_module_permissions=load_overrides(custom_permissions),
            permissions_loaded=True,
        )
        logger.info(
            f"Session established for {self.user_id or 'anonymous'} as {self._context.role.value} "
            f"({len(self._context.token_permissions)} token permissions)"
        )
        return self._context

    def restore(
        self,
        access_token: str | None,
        stored_role: Role | str | None = None,
        custom_permissions: Mapping | None = None,
    ) -> AuthContext:
        """Silent login from stored credentials on app start."""
        return self.login(access_token, stored_role, custom_permissions)

    def refresh(self, access_token: str | None) -> AuthContext:
        """Swap in the permissions of a refreshed token; overrides stay."""
        claims = self._claims(access_token)
        role = Role.coerce(claims["role"]) if claims.get("role") else self._context.role
        self._context = replace(
            self._context,
            role=role,
            token_permissions=parse_permissions(_claimed_permissions(claims)),
            permissions_loaded=True,
        )
        return self._context

    def apply_group(self, group: PermissionGroup) -> dict[str, ModuleOverride]:
        """Apply a permission group to the current user's overrides."""
        overrides = apply_group(self._context.custom_module_permissions, group)
        self._context = replace(self._context, custom_module_permissions=overrides)
        return overrides

    def impersonate(
        self,
        role: Role | str,
        custom_permissions: Mapping | None = None,
    ) -> AuthContext:
        """View the app as another user.  Token claims of the real user are dropped."""
        if self._original is None:
            self._original = self._context
        self._context = AuthContext(
            role=Role.coerce(role),
            custom_module_permissions=load_overrides(custom_permissions),
            permissions_loaded=True,
        )
        return self._context

    def stop_impersonating(self) -> AuthContext:
        if self._original is not None:
            self._context = self._original
            self._original = None
        return self._context

    def logout(self) -> AuthContext:
        """Clear everything.  The signed-out state is known, so it is 'loaded'."""
        self._original = None
        self.user_id = None
        self._context = AuthContext(role=Role.GUEST, permissions_loaded=True)
        return self._context

    def _claims(self, access_token: str | None) -> dict:
        if not access_token:
            return {}
        claims = self._decode(access_token)
        return claims if isinstance(claims, dict) else {}


def _claimed_permissions(claims: dict) -> list[str]:
    value = claims.get("permissions")
    return value if isinstance(value, list) else []
