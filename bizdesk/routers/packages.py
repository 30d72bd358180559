"""Package / plan router.

Endpoints:
    GET /api/packages/                          All plans
    GET /api/packages/me/limits                 Limits that apply to the caller
    GET /api/packages/me/module-actions/{module} Actions the caller's plan lets them grant
    GET /api/packages/{id}/limits               Limits of a plan
"""

from fastapi import APIRouter, Depends

from bizdesk.auth.deps import get_auth_context, get_package_catalogue, get_token_claims
from bizdesk.auth.permissions import AuthContext
from bizdesk.schemas.package import ModuleActionsOut, PackageLimits, PackagePlan
from bizdesk.services.packages import (
    PackageCatalogue,
    effective_package_id,
    package_module_actions,
)

router = APIRouter()


def _caller_package(claims: dict, ctx: AuthContext) -> str:
    return effective_package_id(ctx.role, claims.get("package"), claims.get("owner_package"))


@router.get("/", response_model=list[PackagePlan])
async def list_packages(
    catalogue: PackageCatalogue = Depends(get_package_catalogue),
    _ctx: AuthContext = Depends(get_auth_context),
):
    return await catalogue.list()


@router.get("/me/limits", response_model=PackageLimits)
async def get_my_limits(
    catalogue: PackageCatalogue = Depends(get_package_catalogue),
    claims: dict = Depends(get_token_claims),
    ctx: AuthContext = Depends(get_auth_context),
):
    """STAFF get their owner's package limits."""
    return await catalogue.limits_for(_caller_package(claims, ctx))


@router.get("/me/module-actions/{module}", response_model=ModuleActionsOut)
async def get_my_grantable_actions(
    module: str,
    catalogue: PackageCatalogue = Depends(get_package_catalogue),
    claims: dict = Depends(get_token_claims),
    ctx: AuthContext = Depends(get_auth_context),
):
    package_id = _caller_package(claims, ctx)
    plans = await catalogue.list()
    return ModuleActionsOut(
        module=module,
        package_id=package_id,
        actions=package_module_actions(module, package_id, plans),
    )


@router.get("/{package_id}/limits", response_model=PackageLimits)
async def get_package_limits(
    package_id: str,
    catalogue: PackageCatalogue = Depends(get_package_catalogue),
    _ctx: AuthContext = Depends(get_auth_context),
):
    return await catalogue.limits_for(package_id)
