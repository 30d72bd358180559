"""Staff permission groups.

Named bundles of module → actions grants that an admin applies to a staff
member in one step.  Reads go remote → cache → built-in defaults and never
raise.  Mutations go to the remote first; when it is unreachable they are
applied to the cached list instead.  Either way the cached list is
rewritten, so a later offline `list()` reflects the latest known state.

Cache keys:
    STAFF_PERMISSION_GROUPS         JSON list of groups
    STAFF_PERMISSION_GROUP_DEFAULT  id pre-selected for new staff
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from bizdesk.auth.permissions import ALL_PERMISSIONS
from bizdesk.config import settings
from bizdesk.middleware.exceptions import (
    BizDeskException,
    DuplicateGroupError,
    GroupNotFoundError,
    RemoteUnavailableError,
)
from bizdesk.schemas.permission_group import (
    GroupModuleGrant,
    PermissionGroup,
    PermissionGroupUpdate,
)
from bizdesk.schemas.permissions import ModuleOverride
from bizdesk.services.upstream import UpstreamClient
from bizdesk.utils.cache import KeyValueCache
from bizdesk.utils.resilient import resilient_read

logger = logging.getLogger(__name__)

STORAGE_KEY = "STAFF_PERMISSION_GROUPS"
DEFAULT_GROUP_KEY = "STAFF_PERMISSION_GROUP_DEFAULT"

_group_list = TypeAdapter(list[PermissionGroup])


def _grants(**modules: list[str]) -> dict[str, GroupModuleGrant]:
    return {module: GroupModuleGrant(actions=actions) for module, actions in modules.items()}


DEFAULT_GROUPS: tuple[PermissionGroup, ...] = (
    PermissionGroup(
        id="mobile-seller",
        name="Mobile Seller",
        description="Staff selling on the road from a vehicle",
        permissions=_grants(
            sales=["view", "create"],
            customers=["view", "create"],
            products=["view"],
            reports=["view"],
        ),
    ),
    PermissionGroup(
        id="store-seller",
        name="Store Seller",
        description="Staff selling in the shop",
        permissions=_grants(
            sales=["view", "create", "edit"],
            customers=["view", "create", "edit"],
            products=["view"],
            purchases=["view"],
            reports=["view"],
        ),
    ),
    PermissionGroup(
        id="cashier",
        name="Cashier",
        description="Staff running the till",
        permissions=_grants(
            sales=["view", "create", "edit"],
            purchases=["view", "create", "edit"],
            expenses=["view", "create"],
            revenue=["view", "create"],
            customers=["view"],
            suppliers=["view"],
            products=["view"],
            reports=["view"],
        ),
    ),
    PermissionGroup(
        id="warehouse",
        name="Warehouse",
        description="Staff handling goods in and stock",
        permissions=_grants(
            products=["view", "create", "edit"],
            purchases=["view", "create", "edit"],
            suppliers=["view", "create"],
            stock=["view", "create", "edit"],
            reports=["view"],
        ),
    ),
    PermissionGroup(
        id="sales-manager",
        name="Sales Manager",
        description="Staff managing sales and customers end to end",
        permissions=_grants(
            sales=["view", "create", "edit", "delete"],
            customers=["view", "create", "edit", "delete"],
            products=["view"],
            reports=["view"],
        ),
    ),
)


def default_groups() -> list[PermissionGroup]:
    """Fresh copies of the built-in groups."""
    return [g.model_copy(deep=True) for g in DEFAULT_GROUPS]


def _dump(groups: list[PermissionGroup]) -> list[dict]:
    return [g.model_dump(mode="json") for g in groups]


def _load(raw) -> list[PermissionGroup]:
    return _group_list.validate_python(raw)


def _find(groups: list[PermissionGroup], group_id: str) -> int:
    for index, group in enumerate(groups):
        if group.id == str(group_id):
            return index
    return -1


def _merge(group: PermissionGroup, updates: PermissionGroupUpdate) -> PermissionGroup:
    data = updates.model_dump(exclude_unset=True)
    # name and permissions cannot be cleared, only replaced
    for key in ("name", "permissions"):
        if data.get(key) is None:
            data.pop(key, None)
    return PermissionGroup.model_validate({**group.model_dump(), **data, "id": group.id})


# ── Applying groups ─────────────────────────────────────────

def apply_group(
    overrides: Mapping[str, ModuleOverride],
    group: PermissionGroup,
) -> dict[str, ModuleOverride]:
    """Replace the overrides of every module the group declares.

    Modules the group does not mention keep their current override.  The
    input mapping is not modified.
    """
    result = {module: o.model_copy(deep=True) for module, o in overrides.items()}
    for module, grant in group.permissions.items():
        result[module] = ModuleOverride(actions=list(grant.actions))
    return result


def validate_group(group: PermissionGroup) -> list[str]:
    """Authoring-time check: grants in the group that the registry does not know."""
    return [
        f"{module}:{action}"
        for module, grant in group.permissions.items()
        for action in grant.actions
        if f"{module}:{action}" not in ALL_PERMISSIONS
    ]


# ── Catalogue ───────────────────────────────────────────────

class PermissionGroupCatalogue:
    """Permission groups with remote-first, cache-fallback persistence.

    With no client, or offline=True (mock mode), only the cache is used.
    """

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

    async def list(self) -> list[PermissionGroup]:
        """All groups.  Never raises."""
        return await resilient_read(
            STORAGE_KEY,
            self.cache,
            self.client.list_groups if self.online else None,
            default_groups,
            _dump,
            _load,
        )

    async def get(self, group_id: str) -> Optional[PermissionGroup]:
        if self.online:
            try:
                return await self.client.get_group(group_id)
            except GroupNotFoundError:
                return None
            except RemoteUnavailableError as e:
                logger.warning(f"Failed to load permission group {group_id} from API: {e.message}")

        groups = await self._local_groups()
        index = _find(groups, group_id)
        return groups[index] if index >= 0 else None

    async def create(self, group: PermissionGroup) -> PermissionGroup:
        """Add a group.  Raises DuplicateGroupError if the id is taken."""
        if self.online:
            try:
                created = await self.client.create_group(group)
            except RemoteUnavailableError as e:
                logger.warning(f"Failed to create permission group via API, using cache: {e.message}")
            else:
                await self._mirror(lambda groups: _upsert(groups, created))
                return created

        groups = await self._local_groups()
        if _find(groups, group.id) >= 0:
            raise DuplicateGroupError(group.id)
        groups.append(group)
        await self._save(groups)
        return group

    async def update(self, group_id: str, updates: PermissionGroupUpdate) -> PermissionGroup:
        """Change name/description/permissions.  Raises GroupNotFoundError."""
        if self.online:
            try:
                remote = await self.client.update_group(group_id, updates)
            except RemoteUnavailableError as e:
                logger.warning(f"Failed to update permission group via API, using cache: {e.message}")
            else:
                if remote is None:
                    remote = await self._require_remote(group_id)
                await self._mirror(lambda groups: _upsert(groups, remote))
                return remote

        groups = await self._local_groups()
        index = _find(groups, group_id)
        if index < 0:
            raise GroupNotFoundError(group_id)
        groups[index] = _merge(groups[index], updates)
        await self._save(groups)
        return groups[index]

    async def remove(self, group_id: str) -> None:
        """Delete a group.  Raises GroupNotFoundError."""
        if self.online:
            try:
                await self.client.remove_group(group_id)
            except RemoteUnavailableError as e:
                logger.warning(f"Failed to delete permission group via API, using cache: {e.message}")
            else:
                await self._mirror(lambda groups: [g for g in groups if g.id != str(group_id)])
                return

        groups = await self._local_groups()
        remaining = [g for g in groups if g.id != str(group_id)]
        if len(remaining) == len(groups):
            raise GroupNotFoundError(group_id)
        await self._save(remaining)

    async def clone(
        self, group_id: str, new_id: str, name: str | None = None
    ) -> PermissionGroup:
        """Copy a group under a new id."""
        if self.online:
            try:
                cloned = await self.client.clone_group(group_id, new_id, name)
            except RemoteUnavailableError as e:
                logger.warning(f"Failed to clone permission group via API, using cache: {e.message}")
            else:
                if cloned is None:
                    source = await self._require_remote(group_id)
                    cloned = _copy(source, new_id, name)
                await self._mirror(lambda groups: _upsert(groups, cloned))
                return cloned

        groups = await self._local_groups()
        index = _find(groups, group_id)
        if index < 0:
            raise GroupNotFoundError(group_id)
        if _find(groups, new_id) >= 0:
            raise DuplicateGroupError(new_id)
        cloned = _copy(groups[index], new_id, name)
        groups.append(cloned)
        await self._save(groups)
        return cloned

    async def reset_to_defaults(self) -> list[PermissionGroup]:
        """Replace every group with the built-in set."""
        if self.online:
            try:
                await self.client.reset_groups()
            except BizDeskException as e:
                logger.warning(f"Failed to reset permission groups via API: {e.message}")
        groups = default_groups()
        await self._save(groups)
        await self.cache.remove(DEFAULT_GROUP_KEY)
        return groups

    async def set_default(self, group_id: str) -> PermissionGroup:
        """Mark the group pre-selected for newly created staff."""
        group = None
        if self.online:
            try:
                await self.client.set_default_group(group_id)
                group = await self.client.get_group(group_id)
            except RemoteUnavailableError as e:
                logger.warning(f"Failed to set default permission group via API: {e.message}")

        if group is None:
            groups = await self._local_groups()
            index = _find(groups, group_id)
            if index < 0:
                raise GroupNotFoundError(group_id)
            group = groups[index]
        await self.cache.set(DEFAULT_GROUP_KEY, group.id)
        return group

    async def default_group(self) -> Optional[PermissionGroup]:
        group_id = await self.cache.get(DEFAULT_GROUP_KEY)
        if not group_id:
            return None
        groups = await self._local_groups()
        index = _find(groups, group_id)
        return groups[index] if index >= 0 else None

    # ── Local backstop ──────────────────────────────────────

    async def _local_groups(self) -> list[PermissionGroup]:
        """Cached groups, or the built-ins when nothing is cached."""
        return await resilient_read(STORAGE_KEY, self.cache, None, default_groups, _dump, _load)

    async def _save(self, groups: list[PermissionGroup]) -> None:
        await self.cache.set(STORAGE_KEY, _dump(groups))

    async def _mirror(self, mutate: Callable[[list[PermissionGroup]], list[PermissionGroup]]):
        """Bring the cached list in line with the remote after a mutation it accepted.

        The remote list is re-read and stored as is.  If that read fails,
        `mutate` is applied to whatever is cached (never to the built-ins,
        which the remote may not have).
        """
        try:
            groups = await self.client.list_groups()
        except RemoteUnavailableError as e:
            logger.warning(f"Failed to re-read permission groups after a change: {e.message}")
            groups = mutate(await self._cached_groups())
        await self._save(groups)

    async def _cached_groups(self) -> list[PermissionGroup]:
        """Cached groups only; [] when nothing usable is stored."""
        stored = await self.cache.get(STORAGE_KEY)
        if not stored:
            return []
        try:
            return _load(stored)
        except ValidationError:
            logger.warning(f"Cached {STORAGE_KEY} is malformed, ignoring it")
            return []

    async def _require_remote(self, group_id: str) -> PermissionGroup:
        group = await self.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group


def _upsert(groups: list[PermissionGroup], group: PermissionGroup) -> list[PermissionGroup]:
    index = _find(groups, group.id)
    if index >= 0:
        groups[index] = group
    else:
        groups.append(group)
    return groups


def _copy(source: PermissionGroup, new_id: str, name: str | None) -> PermissionGroup:
    return source.model_copy(
        deep=True, update={"id": new_id, "name": name or f"{source.name} (copy)"}
    )
