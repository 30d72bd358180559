"""Management CLI for the permission registry and groups.

Usage:
    python -m bizdesk.cli list-permissions [role]   # Registry, or a role's defaults
    python -m bizdesk.cli check <role> <permission> # Resolve against role defaults
    python -m bizdesk.cli validate-groups           # Report group grants missing from the registry
    python -m bizdesk.cli reset-groups              # Restore the built-in groups in the cache
"""

import asyncio
import sys

from bizdesk.auth.permissions import (
    PERMISSIONS_REGISTRY,
    AuthContext,
    is_granted,
    permissions_for_role,
)
from bizdesk.auth.roles import Role
from bizdesk.services.permission_groups import PermissionGroupCatalogue, validate_group
from bizdesk.utils.cache import get_cache


def list_permissions(role: str | None = None):
    if role:
        perms = permissions_for_role(role)
        for p in perms:
            print(f"  {p}")
        print(f"\n{len(perms)} permission(s) for {Role.coerce(role).value}")
        return

    total = 0
    for config in PERMISSIONS_REGISTRY:
        print(f"{config.module}:")
        for p in config.permissions:
            print(f"  {p}")
        total += len(config.permissions)
    print(f"\n{total} permission(s) in {len(PERMISSIONS_REGISTRY)} module(s)")


def check(role: str, permission: str) -> bool:
    ctx = AuthContext(role=Role.coerce(role), permissions_loaded=True)
    granted = is_granted(permission, ctx)
    print(f"  {ctx.role.value} {permission}: {'GRANTED' if granted else 'DENIED'}")
    return granted


async def validate_groups() -> int:
    """Number of groups with grants the registry does not declare."""
    catalogue = PermissionGroupCatalogue(cache=get_cache(), offline=True)
    invalid = 0
    for group in await catalogue.list():
        unknown = validate_group(group)
        if unknown:
            invalid += 1
            print(f"  {group.id}: unknown {', '.join(unknown)}")
        else:
            print(f"  {group.id}: OK")
    return invalid


async def reset_groups():
    catalogue = PermissionGroupCatalogue(cache=get_cache(), offline=True)
    groups = await catalogue.reset_to_defaults()
    print(f"  Restored {len(groups)} built-in group(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "list-permissions":
        list_permissions(sys.argv[2] if len(sys.argv) > 2 else None)
    elif cmd == "check" and len(sys.argv) == 4:
        sys.exit(0 if check(sys.argv[2], sys.argv[3]) else 1)
    elif cmd == "validate-groups":
        sys.exit(1 if asyncio.run(validate_groups()) else 0)
    elif cmd == "reset-groups":
        asyncio.run(reset_groups())
    else:
        print("Usage: python -m bizdesk.cli [list-permissions [role]|check <role> <permission>|validate-groups|reset-groups]")
