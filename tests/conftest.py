"""Pytest configuration and fixtures for BizDesk tests.

Provides reusable fixtures for the local cache, a fake upstream API,
tokens and the HTTP test client.
"""

import os

# Tests never talk to a real upstream or Redis unless a fixture says so
os.environ.setdefault("MODE", "mock")

import json
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from bizdesk.auth.deps import get_group_catalogue, get_package_catalogue
from bizdesk.auth.jwt import create_access_token
from bizdesk.auth.permissions import permissions_for_role
from bizdesk.main import app
from bizdesk.services.packages import PackageCatalogue
from bizdesk.services.permission_groups import PermissionGroupCatalogue
from bizdesk.services.upstream import UpstreamClient
from bizdesk.utils.cache import MemoryCache

UPSTREAM_URL = "http://upstream.test"


# ── Cache / upstream fixtures ───────────────────────────────────

@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


class FakeUpstream:
    """In-memory stand-in for the upstream API, served through httpx.MockTransport.

    Set `down = True` to make every request fail at the transport level,
    `status` to force an error status on every request, or
    `garbage_writes = True` to answer successful writes with a non-JSON body.
    `fail_list = True` breaks only the group listing.
    """

    def __init__(self):
        self.groups: dict[str, dict] = {}
        self.packages: list[dict] = []
        self.default_id: str | None = None
        self.down = False
        self.status: int | None = None
        self.garbage_writes = False
        self.fail_list = False
        self.requests: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        if self.status is not None:
            return httpx.Response(self.status)

        response = self._route(request)
        if self.garbage_writes and request.method != "GET" and response.status_code < 300:
            return httpx.Response(response.status_code, content=b"<html>saved</html>")
        return response

    def _route(self, request: httpx.Request) -> httpx.Response:
        parts = [p for p in request.url.path.split("/") if p]
        body = json.loads(request.content) if request.content else None

        if parts == ["packages"]:
            return httpx.Response(200, json=self.packages)
        if parts[0] != "permission-groups":
            return httpx.Response(404)

        if parts == ["permission-groups"]:
            if request.method == "GET":
                if self.fail_list:
                    return httpx.Response(503)
                return httpx.Response(200, json=list(self.groups.values()))
            if body["id"] in self.groups:
                return httpx.Response(409)
            self.groups[body["id"]] = body
            return httpx.Response(201, json=body)

        if parts == ["permission-groups", "reset"]:
            self.groups.clear()
            self.default_id = None
            return httpx.Response(204)

        group_id = parts[1]
        if group_id not in self.groups:
            return httpx.Response(404)

        if len(parts) == 3 and parts[2] == "clone":
            if body["new_id"] in self.groups:
                return httpx.Response(409)
            source = self.groups[group_id]
            cloned = {
                **source,
                "id": body["new_id"],
                "name": body.get("name") or f"{source['name']} (copy)",
            }
            self.groups[cloned["id"]] = cloned
            return httpx.Response(201, json=cloned)
        if len(parts) == 3 and parts[2] == "default":
            self.default_id = group_id
            return httpx.Response(204)

        if request.method == "GET":
            return httpx.Response(200, json=self.groups[group_id])
        if request.method == "PUT":
            self.groups[group_id] = {**self.groups[group_id], **body}
            return httpx.Response(200, json=self.groups[group_id])
        if request.method == "DELETE":
            del self.groups[group_id]
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest_asyncio.fixture
async def upstream_client(upstream: FakeUpstream) -> AsyncGenerator[UpstreamClient, None]:
    http = httpx.AsyncClient(
        base_url=UPSTREAM_URL,
        transport=httpx.MockTransport(upstream.handler),
    )
    client = UpstreamClient(base_url=UPSTREAM_URL, client=http)
    yield client
    await client.aclose()


@pytest.fixture
def online_catalogue(cache, upstream_client) -> PermissionGroupCatalogue:
    return PermissionGroupCatalogue(cache=cache, client=upstream_client, offline=False)


@pytest.fixture
def offline_catalogue(cache) -> PermissionGroupCatalogue:
    return PermissionGroupCatalogue(cache=cache, offline=True)


# ── Token fixtures ──────────────────────────────────────────────

def make_token(role: str, permissions: list[str] | None = None, **claims) -> str:
    return create_access_token(
        user_id=f"{role}-1",
        role=role,
        permissions=permissions if permissions is not None else [],
        **claims,
    )


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def admin_headers() -> dict:
    token = make_token("admin", permissions_for_role("admin"))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers() -> dict:
    return {"Authorization": f"Bearer {make_token('owner', package='gold')}"}


@pytest.fixture
def staff_headers() -> dict:
    token = make_token(
        "staff",
        custom_permissions={"stock": {"actions": ["edit"]}},
        owner_package="premium",
    )
    return {"Authorization": f"Bearer {token}"}


# ── HTTP client ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(cache) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Test client wired to offline catalogues over a fresh in-memory cache."""
    app.dependency_overrides[get_group_catalogue] = lambda: PermissionGroupCatalogue(
        cache=cache, offline=True
    )
    app.dependency_overrides[get_package_catalogue] = lambda: PackageCatalogue(
        cache=cache, offline=True
    )

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Redis fixtures ──────────────────────────────────────────────

@pytest_asyncio.fixture
async def redis_client():
    """Redis client for integration tests; skips when no server is running."""
    import redis.asyncio as redis

    from bizdesk.config import settings

    client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except redis.RedisError:
        await client.aclose()
        pytest.skip("Redis is not available")

    yield client

    async for key in client.scan_iter(match="bizdesk-test:*"):
        await client.delete(key)
    await client.aclose()


# ── Test Markers ────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "auth: Session and token tests")
    config.addinivalue_line("markers", "groups: Permission group tests")
    config.addinivalue_line("markers", "cache: Cache tests")
    config.addinivalue_line("markers", "integration: Integration tests")
