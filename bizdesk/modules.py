"""Business module configuration: routes, required permissions, dependencies.

Dependencies are advisory.  `missing_dependencies` feeds a warning banner
("you also need access to Suppliers to fully use Purchases"); it never
blocks navigation and never feeds back into permission decisions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol


class PermissionChecker(Protocol):
    def can(self, permission: str) -> bool: ...


@dataclass(frozen=True)
class QuickActionConfig:
    key: str
    route_name: str
    required_permission: str
    fallback_route: str | None = None


@dataclass(frozen=True)
class ModuleConfig:
    key: str
    route_name: str
    required_permission: str
    dashboard_route: str | None = None
    dependencies: tuple[str, ...] = ()
    quick_actions: tuple[QuickActionConfig, ...] = ()

    def route_names(self) -> tuple[str, ...]:
        if self.dashboard_route:
            return (self.route_name, self.dashboard_route)
        return (self.route_name,)


def _module(
    key: str,
    route: str,
    create_route: str | None = None,
    dependencies: tuple[str, ...] = (),
) -> ModuleConfig:
    quick_actions = ()
    if create_route:
        quick_actions = (
            QuickActionConfig(
                key=f"qa-{key}",
                route_name=create_route,
                required_permission=f"{key}:create",
                fallback_route=route,
            ),
        )
    return ModuleConfig(
        key=key,
        route_name=route,
        dashboard_route=f"{route}Dashboard",
        required_permission=f"{key}:view",
        dependencies=dependencies,
        quick_actions=quick_actions,
    )


MODULE_CONFIGS: tuple[ModuleConfig, ...] = (
    _module("stock", "Stock", "StockCreate", dependencies=("purchases", "sales")),
    _module("purchases", "Purchases", "PurchaseCreate", dependencies=("suppliers", "stock")),
    _module("sales", "Sales", "SalesCreate", dependencies=("customers", "stock")),
    _module("customers", "Customers", "CustomerCreate"),
    _module("suppliers", "Suppliers", "SupplierCreate"),
    _module("expenses", "Expenses", "ExpenseCreate"),
    _module("revenue", "Revenue", "RevenueCreate"),
    _module("employees", "Employees", "EmployeeCreate"),
    _module("products", "Products", "ProductCreate"),
    _module("reports", "Reports"),
    ModuleConfig(
        key="calendar",
        route_name="Calendar",
        dashboard_route="Calendar",
        required_permission="calendar:view",
    ),
)

ALL_QUICK_ACTIONS: tuple[QuickActionConfig, ...] = tuple(
    qa for module in MODULE_CONFIGS for qa in module.quick_actions
)


def get_module_config(key: str) -> ModuleConfig | None:
    for module in MODULE_CONFIGS:
        if module.key == key:
            return module
    return None


def get_module_config_by_route(route_name: str) -> ModuleConfig | None:
    for module in MODULE_CONFIGS:
        if route_name in module.route_names():
            return module
    return None


def get_quick_action_config(route_name: str) -> QuickActionConfig | None:
    for qa in ALL_QUICK_ACTIONS:
        if qa.route_name == route_name:
            return qa
    return None


def get_quick_action_fallback(route_name: str) -> str | None:
    """Where to go when a quick action's create screen is not registered."""
    qa = get_quick_action_config(route_name)
    if qa and qa.fallback_route:
        return qa.fallback_route
    module = get_module_config_by_route(route_name)
    return module.route_name if module else None


def missing_dependencies(
    module_key: str,
    available_route_names: Iterable[str],
    checker: PermissionChecker,
) -> list[str]:
    """Dependency module keys the user cannot currently reach.

    A dependency is missing when none of its routes is registered, or the
    user lacks its required permission.  Dependencies that are not in
    MODULE_CONFIGS are skipped.
    """
    module = get_module_config(module_key)
    if module is None or not module.dependencies:
        return []

    available = set(available_route_names)
    missing = []
    for dep_key in module.dependencies:
        dep = get_module_config(dep_key)
        if dep is None:
            continue
        is_available = any(route in available for route in dep.route_names())
        if not is_available or not checker.can(dep.required_permission):
            missing.append(dep_key)
    return missing


def visible_modules(checker: PermissionChecker) -> list[ModuleConfig]:
    """Modules to show in navigation."""
    return [m for m in MODULE_CONFIGS if checker.can(m.required_permission)]


def visible_quick_actions(checker: PermissionChecker) -> list[QuickActionConfig]:
    return [qa for qa in ALL_QUICK_ACTIONS if checker.can(qa.required_permission)]
