"""Module navigation router.

Endpoints:
    GET /api/modules/                                Modules visible to the caller
    GET /api/modules/{key}/missing-dependencies      Advisory dependency warnings
"""

from fastapi import APIRouter, Depends, Query

from bizdesk.auth.deps import get_auth_context
from bizdesk.auth.permissions import AuthContext, ContextChecker
from bizdesk.modules import missing_dependencies, visible_modules
from bizdesk.schemas.module import MissingDependenciesOut, ModuleOut

router = APIRouter()


@router.get("/", response_model=list[ModuleOut])
async def list_modules(ctx: AuthContext = Depends(get_auth_context)):
    return [
        ModuleOut.model_validate(m, from_attributes=True)
        for m in visible_modules(ContextChecker(ctx))
    ]


@router.get("/{module_key}/missing-dependencies", response_model=MissingDependenciesOut)
async def get_missing_dependencies(
    module_key: str,
    routes: list[str] = Query(default=[]),
    ctx: AuthContext = Depends(get_auth_context),
):
    """`routes` is the set of route names the client has registered."""
    return MissingDependenciesOut(
        module=module_key,
        missing=missing_dependencies(module_key, routes, ContextChecker(ctx)),
    )
