"""Subscription package gate.

A package caps the customization features only: how many custom form
templates may exist, on which modules, and which permissions an owner may
hand out to staff.  It never grants or revokes ordinary module permissions
by itself; those stay with the resolver.

STAFF have no package of their own: the owning OWNER/ADMIN's package
applies.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import TypeAdapter

from bizdesk.auth.permissions import (
    ALL_PERMISSIONS,
    ADMIN_ONLY_PERMISSIONS,
    PERMISSIONS_REGISTRY,
    Permission,
    module_actions,
)
from bizdesk.auth.roles import Role
from bizdesk.config import settings
from bizdesk.schemas.package import PackageLimits, PackagePlan
from bizdesk.services.upstream import UpstreamClient
from bizdesk.utils.cache import KeyValueCache
from bizdesk.utils.resilient import resilient_read


STORAGE_KEY = "PACKAGE_PLANS"
FREE_PACKAGE = "free"

_plan_list = TypeAdapter(list[PackagePlan])


def _registry_permissions(*actions: str) -> list[str]:
    return [
        perm
        for config in PERMISSIONS_REGISTRY
        for perm in config.permissions
        if Permission.parse(perm).action in actions
    ]


BUILTIN_PACKAGES: tuple[PackagePlan, ...] = (
    PackagePlan(
        id="free",
        name="Free",
        max_custom_forms=0,
        allowed_form_modules=[],
        allowed_permissions=_registry_permissions("view", "create"),
    ),
    PackagePlan(
        id="premium",
        name="Premium",
        max_custom_forms=5,
        allowed_form_modules=["customers", "sales", "stock"],
        allowed_permissions=_registry_permissions(
            "view", "create", "edit", "delete", "custom_fields", "custom_form", "export",
        ),
    ),
    PackagePlan(
        id="gold",
        name="Gold",
        max_custom_forms=20,
        allowed_form_modules=[],
        allowed_permissions=sorted(ALL_PERMISSIONS - ADMIN_ONLY_PERMISSIONS),
    ),
)


def builtin_packages() -> list[PackagePlan]:
    return [p.model_copy(deep=True) for p in BUILTIN_PACKAGES]


def get_package(package_id: str | None, plans: Optional[Iterable[PackagePlan]] = None) -> PackagePlan:
    """Plan by id; unknown ids fall back to the free plan."""
    plans = list(plans) if plans is not None else list(BUILTIN_PACKAGES)
    for plan in plans:
        if plan.id == package_id:
            return plan
    for plan in plans:
        if plan.id == FREE_PACKAGE:
            return plan
    return BUILTIN_PACKAGES[0]


def limits_for(package_id: str | None, plans: Optional[Iterable[PackagePlan]] = None) -> PackageLimits:
    plan = get_package(package_id, plans)
    return PackageLimits(
        package_id=plan.id,
        max_custom_forms=plan.max_custom_forms,
        allowed_form_modules=list(plan.allowed_form_modules),
    )


def effective_package_id(
    role: Role | str,
    own_package: str | None = None,
    owner_package: str | None = None,
) -> str:
    """Package that applies to a user.  STAFF always use their owner's."""
    if Role.coerce(role) == Role.STAFF:
        return owner_package or FREE_PACKAGE
    return own_package or settings.default_package


def package_permissions(package_id: str | None, plans: Optional[Iterable[PackagePlan]] = None) -> list[str]:
    return list(get_package(package_id, plans).allowed_permissions)


def is_permission_allowed_by_package(
    permission: str,
    package_id: str | None,
    plans: Optional[Iterable[PackagePlan]] = None,
) -> bool:
    return permission in package_permissions(package_id, plans)


def package_module_actions(
    module: str,
    package_id: str | None,
    plans: Optional[Iterable[PackagePlan]] = None,
) -> list[str]:
    """Actions of a module an owner on this package may grant to staff."""
    allowed = set(package_permissions(package_id, plans))
    return [a for a in module_actions(module) if f"{module}:{a}" in allowed]


class PackageCatalogue:
    """Package plans read remote → cache → built-ins."""

    def __init__(
        self,
        cache: KeyValueCache,
        client: Optional[UpstreamClient] = None,
        offline: bool | None = None,
    ):
        self.cache = cache
        self.client = client
        self.offline = settings.is_mock if offline is None else offline

    @property
    def online(self) -> bool:
        return self.client is not None and not self.offline

    async def list(self) -> list[PackagePlan]:
        return await resilient_read(
            STORAGE_KEY,
            self.cache,
            self.client.list_packages if self.online else None,
            builtin_packages,
            lambda plans: [p.model_dump(mode="json") for p in plans],
            _plan_list.validate_python,
        )

    async def limits_for(self, package_id: str | None) -> PackageLimits:
        return limits_for(package_id, await self.list())

    async def limits_for_user(
        self,
        role: Role | str,
        own_package: str | None = None,
        owner_package: str | None = None,
    ) -> PackageLimits:
        return await self.limits_for(effective_package_id(role, own_package, owner_package))
