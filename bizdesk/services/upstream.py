"""HTTP client for the upstream business API.

Covers the permission-group endpoints and the package catalogue.  Failures
are reduced to three kinds, which is all the catalogues need:

    unreachable / 5xx / garbage  → RemoteUnavailableError
    404                          → GroupNotFoundError
    409                          → DuplicateGroupError

An unreadable body on a 2xx write is not a failure: the write methods
return None and the catalogue re-reads the group.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from bizdesk.config import settings
from bizdesk.middleware.exceptions import (
    DuplicateGroupError,
    GroupNotFoundError,
    RemoteUnavailableError,
)
from bizdesk.schemas.package import PackagePlan
from bizdesk.schemas.permission_group import PermissionGroup, PermissionGroupUpdate

logger = logging.getLogger(__name__)

_group_list = TypeAdapter(list[PermissionGroup])
_package_list = TypeAdapter(list[PackagePlan])


class UpstreamClient:
    """Thin async wrapper around httpx for the upstream API.

    Pass `client` to share a connection pool or to inject a transport in
    tests; otherwise one is created lazily from settings.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.remote_timeout_seconds
        self._client = client

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        group_id: str | None = None,
        conflict_id: str | None = None,
    ) -> Any:
        try:
            response = await self._http().request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"Upstream {method} {path} unreachable: {e}")
            raise RemoteUnavailableError(f"Upstream unreachable: {method} {path}")

        if response.status_code == 404:
            raise GroupNotFoundError(group_id or path)
        if response.status_code == 409:
            raise DuplicateGroupError(conflict_id or group_id or path)
        if response.status_code >= 400:
            logger.warning(f"Upstream {method} {path} answered {response.status_code}")
            raise RemoteUnavailableError(
                f"Upstream error {response.status_code}: {method} {path}"
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            if method != "GET":
                # The write went through; only its echo is unreadable
                logger.warning(f"Upstream {method} {path} answered with invalid JSON")
                return None
            raise RemoteUnavailableError(f"Upstream returned invalid JSON: {method} {path}")

    # ── Permission groups ───────────────────────────────────

    async def list_groups(self) -> list[PermissionGroup]:
        data = await self._request("GET", "/permission-groups")
        return _parse(_group_list, data or [])

    async def get_group(self, group_id: str) -> PermissionGroup:
        data = await self._request("GET", f"/permission-groups/{group_id}", group_id=group_id)
        return _parse(PermissionGroup, data)

    async def create_group(self, group: PermissionGroup) -> PermissionGroup:
        data = await self._request(
            "POST", "/permission-groups", json=group.model_dump(mode="json"), group_id=group.id
        )
        return _accepted(data) or group

    async def update_group(
        self, group_id: str, updates: PermissionGroupUpdate
    ) -> Optional[PermissionGroup]:
        data = await self._request(
            "PUT",
            f"/permission-groups/{group_id}",
            json=updates.model_dump(mode="json", exclude_unset=True),
            group_id=group_id,
        )
        return _accepted(data)

    async def remove_group(self, group_id: str) -> None:
        await self._request("DELETE", f"/permission-groups/{group_id}", group_id=group_id)

    async def clone_group(
        self, group_id: str, new_id: str, name: str | None = None
    ) -> Optional[PermissionGroup]:
        payload = {"new_id": new_id}
        if name:
            payload["name"] = name
        data = await self._request(
            "POST",
            f"/permission-groups/{group_id}/clone",
            json=payload,
            group_id=group_id,
            conflict_id=new_id,
        )
        return _accepted(data)

    async def set_default_group(self, group_id: str) -> None:
        await self._request("POST", f"/permission-groups/{group_id}/default", group_id=group_id)

    async def reset_groups(self) -> None:
        await self._request("POST", "/permission-groups/reset")

    # ── Packages ────────────────────────────────────────────

    async def list_packages(self) -> list[PackagePlan]:
        data = await self._request("GET", "/packages")
        return _parse(_package_list, data or [])


def _parse(model, data):
    """Validate an upstream payload; malformed bodies count as unavailable."""
    try:
        if isinstance(model, TypeAdapter):
            return model.validate_python(data)
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Upstream payload failed validation: {e}")
        raise RemoteUnavailableError("Upstream returned a malformed payload")


def _accepted(data) -> Optional[PermissionGroup]:
    """Group echoed back by a write the remote accepted.

    The write already happened, so an empty or unreadable body is not a
    failure: return None and let the caller re-read the group.
    """
    if not data:
        return None
    try:
        return PermissionGroup.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Ignoring unreadable body of an accepted write: {e}")
        return None
