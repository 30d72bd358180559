"""Pydantic schemas for subscription packages and their customization limits."""

from pydantic import BaseModel, Field


class PackagePlan(BaseModel):
    id: str = Field(min_length=1)
    name: str
    max_custom_forms: int = 0
    # Empty means every module may have custom forms
    allowed_form_modules: list[str] = Field(default_factory=list)
    # Ceiling on what an owner on this plan may grant to staff
    allowed_permissions: list[str] = Field(default_factory=list)


class PackageLimits(BaseModel):
    package_id: str
    max_custom_forms: int = 0
    allowed_form_modules: list[str] = Field(default_factory=list)

    def allows_form_module(self, module: str) -> bool:
        """An empty allow-list is an open policy, not a closed one."""
        return not self.allowed_form_modules or module in self.allowed_form_modules

    def can_create_form(self, module: str, existing_count: int) -> bool:
        """Whether one more custom form template fits under this plan.

        A max of 0 or less means the count is not capped.  Whether the user
        may build forms at all is the `custom_form` permission's business.
        """
        if not self.allows_form_module(module):
            return False
        if self.max_custom_forms > 0:
            return existing_count < self.max_custom_forms
        return True


class ModuleActionsOut(BaseModel):
    module: str
    package_id: str
    actions: list[str]
