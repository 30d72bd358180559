"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_auth_context          → decode bearer JWT into an AuthContext
  require_permission(...)   → caller must hold ALL listed permissions
  require_any_permission(…) → caller must hold at least one
  get_group_catalogue       → PermissionGroupCatalogue for this app
  get_package_catalogue     → PackageCatalogue for this app
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from bizdesk.auth.jwt import decode_token
from bizdesk.auth.permissions import (
    AuthContext,
    is_granted,
    is_granted_any,
    load_overrides,
    parse_permissions,
)
from bizdesk.auth.roles import Role
from bizdesk.middleware.exceptions import PermissionDeniedError
from bizdesk.services.packages import PackageCatalogue
from bizdesk.services.permission_groups import PermissionGroupCatalogue
from bizdesk.services.upstream import UpstreamClient
from bizdesk.utils.cache import get_cache

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

_upstream: Optional[UpstreamClient] = None


def get_upstream_client() -> UpstreamClient:
    global _upstream
    if _upstream is None:
        _upstream = UpstreamClient()
    return _upstream


async def close_upstream_client():
    global _upstream
    if _upstream is not None:
        await _upstream.aclose()
        _upstream = None


# ── Caller context ──────────────────────────────────────────

async def get_token_claims(token: str = Depends(oauth2_scheme)) -> dict:
    payload = decode_token(token)
    if not payload.get("sub") or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


async def get_auth_context(claims: dict = Depends(get_token_claims)) -> AuthContext:
    """Build the resolver context from the token claims.

    The token is the whole session here, so permissions count as loaded.
    """
    permissions = claims.get("permissions")
    return AuthContext(
        role=Role.coerce(claims.get("role")),
        token_permissions=parse_permissions(permissions if isinstance(permissions, list) else []),
        custom_module_permissions=load_overrides(claims.get("custom_permissions")),
        permissions_loaded=True,
    )


# ── Permission-based access control ─────────────────────────

def require_permission(*perms: str):
    """Dependency factory: restrict to callers who hold ALL listed permissions.

    Usage:
        @router.post("/")
        async def create_group(ctx: AuthContext = Depends(require_permission("employees:edit"))):
            ...
    """
    async def _check(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        missing = [p for p in perms if not is_granted(p, ctx)]
        if missing:
            raise PermissionDeniedError(f"Missing permissions: {', '.join(missing)}")
        return ctx

    return _check


def require_any_permission(*perms: str):
    """Dependency factory: restrict to callers who hold at least one permission."""
    async def _check(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not is_granted_any(perms, ctx):
            raise PermissionDeniedError(f"Requires one of: {', '.join(perms)}")
        return ctx

    return _check


# ── Catalogues ──────────────────────────────────────────────

def get_group_catalogue() -> PermissionGroupCatalogue:
    return PermissionGroupCatalogue(cache=get_cache(), client=get_upstream_client())


def get_package_catalogue() -> PackageCatalogue:
    return PackageCatalogue(cache=get_cache(), client=get_upstream_client())
