"""Staff permission group router.

Endpoints:
    GET    /api/permission-groups/              List groups (never fails)
    GET    /api/permission-groups/default       Group pre-selected for new staff
    GET    /api/permission-groups/{id}          Get one group
    POST   /api/permission-groups/              Create group
    PUT    /api/permission-groups/{id}          Update group
    DELETE /api/permission-groups/{id}          Delete group
    POST   /api/permission-groups/reset         Restore the built-in groups
    POST   /api/permission-groups/{id}/clone    Copy under a new id
    POST   /api/permission-groups/{id}/default  Mark as default for new staff
    POST   /api/permission-groups/{id}/apply    Apply to a user's overrides
"""

from fastapi import APIRouter, Depends, Response, status

from bizdesk.auth.deps import get_auth_context, get_group_catalogue, require_permission
from bizdesk.auth.permissions import AuthContext
from bizdesk.middleware.exceptions import GroupNotFoundError
from bizdesk.schemas.permission_group import (
    ApplyGroupRequest,
    ApplyGroupResponse,
    PermissionGroup,
    PermissionGroupClone,
    PermissionGroupUpdate,
)
from bizdesk.services.permission_groups import (
    PermissionGroupCatalogue,
    apply_group,
    validate_group,
)

router = APIRouter()

MANAGE_GROUPS = "employees:edit"


@router.get("/", response_model=list[PermissionGroup])
async def list_groups(
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(get_auth_context),
):
    return await catalogue.list()


@router.get("/default", response_model=PermissionGroup | None)
async def get_default_group(
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(get_auth_context),
):
    return await catalogue.default_group()


@router.get("/{group_id}", response_model=PermissionGroup)
async def get_group(
    group_id: str,
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(get_auth_context),
):
    group = await catalogue.get(group_id)
    if group is None:
        raise GroupNotFoundError(group_id)
    return group


@router.post("/", response_model=PermissionGroup, status_code=201)
async def create_group(
    body: PermissionGroup,
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(require_permission(MANAGE_GROUPS)),
):
    return await catalogue.create(body)


@router.put("/{group_id}", response_model=PermissionGroup)
async def update_group(
    group_id: str,
    body: PermissionGroupUpdate,
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(require_permission(MANAGE_GROUPS)),
):
    return await catalogue.update(group_id, body)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: str,
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(require_permission(MANAGE_GROUPS)),
):
    await catalogue.remove(group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reset", response_model=list[PermissionGroup])
async def reset_groups(
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(require_permission(MANAGE_GROUPS)),
):
    return await catalogue.reset_to_defaults()


@router.post("/{group_id}/clone", response_model=PermissionGroup, status_code=201)
async def clone_group(
    group_id: str,
    body: PermissionGroupClone,
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(require_permission(MANAGE_GROUPS)),
):
    return await catalogue.clone(group_id, body.new_id, body.name)


@router.post("/{group_id}/default", response_model=PermissionGroup)
async def set_default_group(
    group_id: str,
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(require_permission(MANAGE_GROUPS)),
):
    return await catalogue.set_default(group_id)


@router.post("/{group_id}/apply", response_model=ApplyGroupResponse)
async def apply_group_to_user(
    group_id: str,
    body: ApplyGroupRequest,
    catalogue: PermissionGroupCatalogue = Depends(get_group_catalogue),
    _ctx: AuthContext = Depends(require_permission(MANAGE_GROUPS)),
):
    """Return the user's overrides with the group applied.

    Storing them on the employee record is the caller's job.
    """
    group = await catalogue.get(group_id)
    if group is None:
        raise GroupNotFoundError(group_id)
    return ApplyGroupResponse(
        group_id=group.id,
        custom_permissions=apply_group(body.custom_permissions, group),
        unknown_permissions=validate_group(group),
    )
