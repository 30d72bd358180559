"""Permission registry and access-check router.

Endpoints:
    GET  /api/permissions/registry   Modules and the permissions they declare
    GET  /api/permissions/me         Caller's role and effective permissions
    POST /api/permissions/check      Check a list of permissions (all / any)
"""

from fastapi import APIRouter, Depends

from bizdesk.auth.deps import get_auth_context
from bizdesk.auth.permissions import (
    PERMISSIONS_REGISTRY,
    AuthContext,
    effective_permissions,
    is_granted,
)
from bizdesk.schemas.permissions import (
    EffectivePermissionsOut,
    PermissionCheckRequest,
    PermissionCheckResponse,
    RegistryModuleOut,
)

router = APIRouter()


@router.get("/registry", response_model=list[RegistryModuleOut])
async def get_registry(_ctx: AuthContext = Depends(get_auth_context)):
    """Every module with its permission strings."""
    return [
        RegistryModuleOut(module=config.module, permissions=list(config.permissions))
        for config in PERMISSIONS_REGISTRY
    ]


@router.get("/me", response_model=EffectivePermissionsOut)
async def get_my_permissions(ctx: AuthContext = Depends(get_auth_context)):
    return EffectivePermissionsOut(
        role=ctx.role.value,
        permissions_loaded=ctx.permissions_loaded,
        permissions=effective_permissions(ctx),
        custom_permissions=dict(ctx.custom_module_permissions),
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permissions(
    body: PermissionCheckRequest,
    ctx: AuthContext = Depends(get_auth_context),
):
    """Grant decision per permission, plus the combined answer for `mode`."""
    results = {p: is_granted(p, ctx) for p in body.permissions}
    combine = any if body.mode == "any" else all
    return PermissionCheckResponse(granted=combine(results.values()), results=results)
