"""Roles and the role-assignment hierarchy.

ADMIN > OWNER > STAFF > GUEST.  A role may only grant roles at or below
its own level, and every role it can grant has an assignable set that is a
subset of its own, so delegation never escalates.
"""

from __future__ import annotations

import enum

from bizdesk.middleware.exceptions import RoleAssignmentError


class Role(str, enum.Enum):
    ADMIN = "admin"
    OWNER = "owner"
    STAFF = "staff"
    GUEST = "guest"

    @classmethod
    def coerce(cls, value: str | Role | None) -> Role:
        """Map a stored or token-issued role string onto a Role.

        Accepts the earlier admin/manager/user/guest scheme as well.
        Anything unrecognised becomes GUEST.
        """
        if isinstance(value, Role):
            return value
        if not value:
            return cls.GUEST
        text = str(value).strip().lower()
        text = LEGACY_ROLE_ALIASES.get(text, text)
        try:
            return cls(text)
        except ValueError:
            return cls.GUEST


LEGACY_ROLE_ALIASES: dict[str, str] = {
    "manager": "owner",
    "user": "staff",
}


ROLE_HIERARCHY: dict[Role, frozenset[Role]] = {
    Role.ADMIN: frozenset({Role.ADMIN, Role.OWNER, Role.STAFF, Role.GUEST}),
    Role.OWNER: frozenset({Role.OWNER, Role.STAFF, Role.GUEST}),
    Role.STAFF: frozenset({Role.STAFF, Role.GUEST}),
    Role.GUEST: frozenset(),
}


def assignable_roles(acting_role: Role | str) -> frozenset[Role]:
    """Roles the acting role may give to a user it creates or edits."""
    return ROLE_HIERARCHY.get(Role.coerce(acting_role), frozenset())


def can_assign(acting_role: Role | str, target_role: Role | str) -> bool:
    return Role.coerce(target_role) in assignable_roles(acting_role)


def ensure_can_assign(acting_role: Role | str, target_role: Role | str) -> None:
    """Raise RoleAssignmentError unless acting_role may grant target_role."""
    if not can_assign(acting_role, target_role):
        raise RoleAssignmentError(
            Role.coerce(acting_role).value, Role.coerce(target_role).value
        )
