"""Schemas for module navigation and dependency warnings."""

from pydantic import BaseModel


class QuickActionOut(BaseModel):
    key: str
    route_name: str
    required_permission: str
    fallback_route: str | None = None

    model_config = {"from_attributes": True}


class ModuleOut(BaseModel):
    key: str
    route_name: str
    dashboard_route: str | None = None
    required_permission: str
    dependencies: list[str]
    quick_actions: list[QuickActionOut]

    model_config = {"from_attributes": True}


class MissingDependenciesOut(BaseModel):
    module: str
    missing: list[str]
