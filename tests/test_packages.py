"""Tests for the subscription package gate."""

import pytest

from bizdesk.auth.permissions import ADMIN_ONLY_PERMISSIONS, ALL_PERMISSIONS
from bizdesk.auth.roles import Role
from bizdesk.config import settings
from bizdesk.schemas.package import PackageLimits, PackagePlan
from bizdesk.services.packages import (
    BUILTIN_PACKAGES,
    FREE_PACKAGE,
    STORAGE_KEY,
    PackageCatalogue,
    effective_package_id,
    get_package,
    is_permission_allowed_by_package,
    limits_for,
    package_module_actions,
)


@pytest.mark.unit
class TestPackageLimits:
    """Custom form limits."""

    def test_empty_allow_list_is_open(self):
        limits = PackageLimits(package_id="x", max_custom_forms=3, allowed_form_modules=[])
        assert limits.allows_form_module("anything")

    def test_allow_list_restricts(self):
        limits = limits_for("premium")
        assert limits.allows_form_module("sales")
        assert not limits.allows_form_module("expenses")

    def test_can_create_form_counts(self):
        limits = limits_for("premium")
        assert limits.can_create_form("sales", 4)
        assert not limits.can_create_form("sales", 5)
        assert not limits.can_create_form("expenses", 0)

    def test_zero_max_is_uncapped(self):
        limits = PackageLimits(package_id="x", max_custom_forms=0)
        assert limits.can_create_form("sales", 0)
        assert limits.can_create_form("sales", 3)
        assert PackageLimits(package_id="x", max_custom_forms=-1).can_create_form("sales", 50)

    def test_free_forms_gated_by_permission(self):
        # No count cap, but owners on free cannot grant form building
        assert limits_for("free").can_create_form("sales", 3)
        assert not is_permission_allowed_by_package("sales:custom_form", "free")

    def test_unknown_package_is_free(self):
        assert get_package("platinum").id == FREE_PACKAGE
        assert get_package(None).id == FREE_PACKAGE

    def test_lookup_in_custom_plans(self):
        plans = [PackagePlan(id="solo", name="Solo", max_custom_forms=1)]
        assert get_package("solo", plans).max_custom_forms == 1
        # No free plan in the list: the built-in free plan applies
        assert get_package("other", plans).id == FREE_PACKAGE


@pytest.mark.unit
class TestPackagePermissions:
    """Permissions an owner may hand out under a plan."""

    def test_staff_use_owner_package(self):
        assert effective_package_id(Role.STAFF, "gold", "premium") == "premium"
        assert effective_package_id("staff", "gold", None) == FREE_PACKAGE

    def test_owner_uses_own_package(self):
        assert effective_package_id(Role.OWNER, "gold") == "gold"
        assert effective_package_id("admin") == settings.default_package

    def test_gold_excludes_admin_only(self):
        for perm in ADMIN_ONLY_PERMISSIONS:
            assert not is_permission_allowed_by_package(perm, "gold")
        assert is_permission_allowed_by_package("reports:export", "gold")

    def test_free_only_view_and_create(self):
        assert is_permission_allowed_by_package("sales:create", "free")
        assert not is_permission_allowed_by_package("sales:edit", "free")

    def test_package_permissions_are_registered(self):
        for plan in BUILTIN_PACKAGES:
            assert set(plan.allowed_permissions) <= ALL_PERMISSIONS

    def test_module_actions_intersect_registry(self):
        assert package_module_actions("reports", "premium") == ["view", "export"]
        assert package_module_actions("reports", "free") == ["view"]
        assert package_module_actions("boats", "gold") == []


@pytest.mark.asyncio
class TestPackageCatalogue:
    """Plan list read remote → cache → built-ins."""

    async def test_offline_uses_builtins(self, cache):
        catalogue = PackageCatalogue(cache=cache, offline=True)
        plans = await catalogue.list()
        assert [p.id for p in plans] == ["free", "premium", "gold"]

    async def test_remote_plans_are_cached(self, cache, upstream, upstream_client):
        upstream.packages = [
            {"id": "free", "name": "Free"},
            {"id": "team", "name": "Team", "max_custom_forms": 10},
        ]
        catalogue = PackageCatalogue(cache=cache, client=upstream_client, offline=False)

        limits = await catalogue.limits_for("team")
        assert limits.max_custom_forms == 10
        assert [p["id"] for p in await cache.get(STORAGE_KEY)] == ["free", "team"]

        upstream.down = True
        assert (await catalogue.limits_for("team")).max_custom_forms == 10

    async def test_malformed_remote_payload_falls_back(self, cache, upstream, upstream_client):
        upstream.packages = [{"name": "no id"}]
        catalogue = PackageCatalogue(cache=cache, client=upstream_client, offline=False)
        plans = await catalogue.list()
        assert len(plans) == len(BUILTIN_PACKAGES)

    async def test_limits_for_user(self, cache):
        catalogue = PackageCatalogue(cache=cache, offline=True)
        limits = await catalogue.limits_for_user("staff", own_package="gold", owner_package="premium")
        assert limits.package_id == "premium"
