"""Role assignment router.

Endpoints:
    GET  /api/roles/assignable          Roles the caller may give to others
    POST /api/roles/validate-assignment 403 unless the caller may grant target_role
"""

from fastapi import APIRouter, Depends

from bizdesk.auth.deps import get_auth_context
from bizdesk.auth.permissions import AuthContext
from bizdesk.auth.roles import Role, assignable_roles, ensure_can_assign
from bizdesk.schemas.permissions import (
    AssignableRolesOut,
    RoleAssignmentRequest,
    RoleAssignmentResponse,
)

router = APIRouter()


@router.get("/assignable", response_model=AssignableRolesOut)
async def get_assignable_roles(ctx: AuthContext = Depends(get_auth_context)):
    allowed = assignable_roles(ctx.role)
    # Hierarchy order, highest first
    return AssignableRolesOut(
        role=ctx.role.value,
        assignable=[r.value for r in Role if r in allowed],
    )


@router.post("/validate-assignment", response_model=RoleAssignmentResponse)
async def validate_assignment(
    body: RoleAssignmentRequest,
    ctx: AuthContext = Depends(get_auth_context),
):
    ensure_can_assign(ctx.role, body.target_role)
    return RoleAssignmentResponse(
        role=ctx.role.value,
        target_role=Role.coerce(body.target_role).value,
        allowed=True,
    )
