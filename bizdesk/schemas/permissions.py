"""Pydantic schemas for permissions, per-user overrides and access checks."""

from typing import Literal

from pydantic import BaseModel, Field


class ModuleOverride(BaseModel):
    """Per-user, per-module grant stored on the employee record.

    Additive on top of the role defaults.
    """
    actions: list[str] = Field(default_factory=list)
    fields: list[str] | None = None
    notifications: list[str] | None = None


# ── HTTP payloads ─────────────────────────────────────────────

class RegistryModuleOut(BaseModel):
    module: str
    permissions: list[str]


class EffectivePermissionsOut(BaseModel):
    role: str
    permissions_loaded: bool
    permissions: list[str]
    custom_permissions: dict[str, ModuleOverride] = Field(default_factory=dict)


class PermissionCheckRequest(BaseModel):
    permissions: list[str] = Field(min_length=1)
    mode: Literal["all", "any"] = "all"


class PermissionCheckResponse(BaseModel):
    granted: bool
    results: dict[str, bool]


class AssignableRolesOut(BaseModel):
    role: str
    assignable: list[str]


class RoleAssignmentRequest(BaseModel):
    target_role: str


class RoleAssignmentResponse(BaseModel):
    role: str
    target_role: str
    allowed: bool
