"""Pydantic schemas for staff permission groups."""

from pydantic import BaseModel, Field

from bizdesk.schemas.permissions import ModuleOverride


class GroupModuleGrant(BaseModel):
    actions: list[str] = Field(default_factory=list)


class PermissionGroup(BaseModel):
    """Named, reusable bundle of module → actions grants."""
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    permissions: dict[str, GroupModuleGrant] = Field(default_factory=dict)


class PermissionGroupUpdate(BaseModel):
    """Partial update; the id of a group never changes."""
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    permissions: dict[str, GroupModuleGrant] | None = None


class PermissionGroupClone(BaseModel):
    new_id: str = Field(min_length=1)
    name: str | None = None


class ApplyGroupRequest(BaseModel):
    """A user's current overrides; the response is the replaced set."""
    custom_permissions: dict[str, ModuleOverride] = Field(default_factory=dict)


class ApplyGroupResponse(BaseModel):
    group_id: str
    custom_permissions: dict[str, ModuleOverride]
    unknown_permissions: list[str] = Field(default_factory=list)
