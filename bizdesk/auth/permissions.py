"""Granular permission system for BizDesk RBAC.

Design:
  - Every business module declares the permissions it understands in
    PERMISSIONS_REGISTRY.  The registry is the universe of valid strings.
  - Each role has a set of DEFAULT permissions (defined here).  ADMIN is
    always the whole registry, computed, never hand-maintained.
  - The access token may carry a `permissions` claim; when non-empty it is
    authoritative and checked before the role defaults.
  - STAFF users may have per-module custom overrides stored on their
    employee record.  Overrides only ever add actions.
  - `is_granted(permission, context)` is the single decision function.

Permission naming: `<module>:<action>`
  Common actions: view, create, edit, delete
  Module-specific: custom_fields, custom_form, custom_value, calendar,
                   manage_global_fields, add_product_custom_fields,
                   manage, export
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, NamedTuple

from pydantic import ValidationError

from bizdesk.auth.roles import Role
from bizdesk.schemas.permissions import ModuleOverride

logger = logging.getLogger(__name__)

SEPARATOR = ":"


class Permission(NamedTuple):
    """A parsed `module:action` permission."""
    module: str
    action: str

    @classmethod
    def parse(cls, text: str) -> Permission | None:
        """Parse a wire string.  Returns None unless it is exactly `module:action`."""
        if not isinstance(text, str) or text.count(SEPARATOR) != 1:
            return None
        module, action = text.split(SEPARATOR)
        if not module or not action:
            return None
        return cls(module, action)

    def __str__(self) -> str:
        return f"{self.module}{SEPARATOR}{self.action}"


@dataclass(frozen=True)
class ModulePermissionConfig:
    module: str
    permissions: tuple[str, ...]


def _module(name: str, *actions: str) -> ModulePermissionConfig:
    return ModulePermissionConfig(name, tuple(f"{name}{SEPARATOR}{a}" for a in actions))


CRUD = ("view", "create", "edit", "delete")
CUSTOMIZATION = ("custom_fields", "custom_form", "custom_value")


# ── All known permissions ───────────────────────────────────

PERMISSIONS_REGISTRY: tuple[ModulePermissionConfig, ...] = (
    _module("sales", *CRUD, *CUSTOMIZATION, "calendar"),
    _module("customers", *CRUD, *CUSTOMIZATION),
    _module("suppliers", *CRUD, *CUSTOMIZATION),
    _module("expenses", *CRUD, *CUSTOMIZATION, "calendar"),
    _module("revenue", *CRUD, *CUSTOMIZATION, "calendar"),
    _module("purchases", *CRUD, *CUSTOMIZATION, "calendar"),
    _module("employees", *CRUD, *CUSTOMIZATION, "calendar"),
    _module(
        "stock", *CRUD, *CUSTOMIZATION,
        "manage_global_fields", "add_product_custom_fields",
    ),
    _module("products", *CRUD, "custom_fields"),
    _module("calendar", *CRUD),
    _module("reports", "view", "export"),
    _module("settings", "view", "manage"),
)

# Employee permission editor vocabularies
ALL_FIELDS = ("category", "price", "group", "phone", "expenseType", "amount", "role", "dateRange")
ALL_NOTIFICATIONS = ("dailyReport", "lowStock")


def flatten_registry(registry: Iterable[ModulePermissionConfig]) -> list[str]:
    """All permission strings of a registry, in declaration order.

    Raises ValueError if a string is declared twice or is not `module:action`
    under its own module.
    """
    seen: set[str] = set()
    flat: list[str] = []
    for config in registry:
        for perm in config.permissions:
            parsed = Permission.parse(perm)
            if parsed is None or parsed.module != config.module:
                raise ValueError(f"Invalid permission {perm!r} in module {config.module!r}")
            if perm in seen:
                raise ValueError(f"Duplicate permission in registry: {perm}")
            seen.add(perm)
            flat.append(perm)
    return flat


# ── Role → default permissions ──────────────────────────────

# Platform-level abilities an OWNER does not get by default
ADMIN_ONLY_PERMISSIONS: frozenset[str] = frozenset({
    "stock:manage_global_fields",
    "settings:manage",
})

STAFF_DEFAULTS: tuple[str, ...] = (
    "sales:view", "sales:create",
    "customers:view", "customers:create",
    "suppliers:view", "suppliers:create",
    "expenses:view", "expenses:create",
    "revenue:view", "revenue:create",
    "reports:view",
    "stock:view",
    "purchases:view", "purchases:create",
    "products:view",
    "calendar:view",
)


def build_role_permissions(
    registry: Iterable[ModulePermissionConfig],
) -> dict[Role, tuple[str, ...]]:
    """Compute the role table for a registry.

    ADMIN gets every registry permission, OWNER every one except the
    admin-only set, STAFF its fixed defaults (restricted to the registry),
    GUEST nothing.
    """
    flat = flatten_registry(registry)
    known = set(flat)
    return {
        Role.ADMIN: tuple(flat),
        Role.OWNER: tuple(p for p in flat if p not in ADMIN_ONLY_PERMISSIONS),
        Role.STAFF: tuple(p for p in STAFF_DEFAULTS if p in known),
        Role.GUEST: (),
    }


ALL_PERMISSIONS: frozenset[str] = frozenset(flatten_registry(PERMISSIONS_REGISTRY))

ROLE_PERMISSIONS: dict[Role, tuple[str, ...]] = build_role_permissions(PERMISSIONS_REGISTRY)

# Parsed once for the hot path
_ROLE_GRANTS: dict[Role, frozenset[Permission]] = {
    role: frozenset(Permission.parse(p) for p in perms)
    for role, perms in ROLE_PERMISSIONS.items()
}


def all_permissions() -> frozenset[str]:
    return ALL_PERMISSIONS


def permissions_for_role(role: Role | str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(Role.coerce(role), ()))


def is_known_permission(text: str) -> bool:
    return text in ALL_PERMISSIONS


def get_module_permission_config(module: str) -> ModulePermissionConfig | None:
    for config in PERMISSIONS_REGISTRY:
        if config.module == module:
            return config
    return None


def module_actions(module: str) -> list[str]:
    """Actions the registry declares for a module ([] for unknown modules)."""
    config = get_module_permission_config(module)
    if config is None:
        return []
    return [Permission.parse(p).action for p in config.permissions]


def all_actions() -> list[str]:
    """Every distinct action across the registry, first-seen order."""
    actions: dict[str, None] = {}
    for config in PERMISSIONS_REGISTRY:
        for perm in config.permissions:
            actions.setdefault(Permission.parse(perm).action, None)
    return list(actions)


def parse_permissions(values: Iterable[str] | None) -> frozenset[Permission]:
    """Parse token-issued strings, dropping anything malformed."""
    parsed = set()
    for value in values or ():
        perm = Permission.parse(value)
        if perm is None:
            logger.debug(f"Ignoring malformed permission claim: {value!r}")
            continue
        parsed.add(perm)
    return frozenset(parsed)


def load_overrides(raw: Mapping | None) -> dict[str, ModuleOverride]:
    """Build override records from stored/claimed JSON, skipping bad entries."""
    overrides: dict[str, ModuleOverride] = {}
    for module, value in (raw or {}).items():
        if isinstance(value, ModuleOverride):
            overrides[module] = value
            continue
        try:
            overrides[module] = ModuleOverride.model_validate(value)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed override for module {module!r}: {e}")
    return overrides


def validate_overrides(overrides: Mapping[str, ModuleOverride]) -> list[str]:
    """Authoring-time check of override records.

    Reports `module:action` grants absent from the registry, plus
    `module.fields.<name>` / `module.notifications.<name>` entries outside
    ALL_FIELDS / ALL_NOTIFICATIONS.
    """
    unknown = []
    for module, override in overrides.items():
        for action in override.actions:
            perm = f"{module}{SEPARATOR}{action}"
            if perm not in ALL_PERMISSIONS:
                unknown.append(perm)
        unknown += [f"{module}.fields.{f}" for f in override.fields or () if f not in ALL_FIELDS]
        unknown += [
            f"{module}.notifications.{n}"
            for n in override.notifications or ()
            if n not in ALL_NOTIFICATIONS
        ]
    return unknown


# ── Resolution ──────────────────────────────────────────────

@dataclass(frozen=True)
class AuthContext:
    """Everything the resolver needs about the current user.

    permissions_loaded is False until the session has populated token
    permissions and custom overrides after login.
    """
    role: Role = Role.GUEST
    token_permissions: frozenset[Permission] = frozenset()
    custom_module_permissions: Mapping[str, ModuleOverride] = field(default_factory=dict)
    permissions_loaded: bool = False


def is_granted(permission: str, context: AuthContext) -> bool:
    """Decide whether `permission` is granted.  First match wins:

    1. permissions not loaded yet → granted (optimistic loading window;
       real enforcement is server-side)
    2. malformed string → denied
    3. token-issued permissions contain it → granted
    4. role defaults contain it → granted
    5. custom override for the module lists the action → granted
    6. denied
    """
    if not context.permissions_loaded:
        return True

    parsed = Permission.parse(permission)
    if parsed is None:
        return False

    if context.token_permissions and parsed in context.token_permissions:
        return True

    if parsed in _ROLE_GRANTS.get(context.role, frozenset()):
        return True

    override = context.custom_module_permissions.get(parsed.module)
    if override is not None and parsed.action in override.actions:
        return True

    return False


def is_granted_any(permissions: Iterable[str], context: AuthContext) -> bool:
    """True if at least one of the permissions is granted."""
    return any(is_granted(p, context) for p in permissions)


class ContextChecker:
    """`can(permission)` over a fixed context, for code that takes a checker."""

    def __init__(self, context: AuthContext):
        self.context = context

    def can(self, permission: str) -> bool:
        return is_granted(permission, self.context)


def effective_permissions(context: AuthContext) -> list[str]:
    """Registry permissions granted in this context, sorted (stable output)."""
    return sorted(p for p in ALL_PERMISSIONS if is_granted(p, context))
