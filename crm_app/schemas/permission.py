"""Permission decision schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from crm_app.core.enums import DenialReason, ModuleAction, ModuleType, PermissionSource
from crm_app.schemas.override import TenantOverrideResponse, UserPermissionResponse
from crm_app.schemas.plan import PlanModuleResponse


_ACTION_FLAGS = {
    ModuleAction.VIEW: "can_view",
    ModuleAction.CREATE: "can_create",
    ModuleAction.EDIT: "can_edit",
    ModuleAction.DELETE: "can_delete",
}


class ModulePermissions(BaseModel):
    """Capabilities and usage for one module."""
    can_create: bool
    can_edit: bool
    can_delete: bool
    can_view: bool
    item_limit: Optional[int] = None  # None = unlimited
    current_count: int = 0
    is_at_limit: bool = False
    is_near_limit: bool = False

    def allows(self, action: ModuleAction) -> bool:
        return getattr(self, _ACTION_FLAGS[action])


class PermissionResult(BaseModel):
    """The resolved decision for a (tenant, module, user) triple."""
    module_type: ModuleType
    has_access: bool
    permissions: ModulePermissions
    source: PermissionSource
    denial_reason: Optional[DenialReason] = None

    def allows(self, action: ModuleAction) -> bool:
        return self.has_access and self.permissions.allows(action)

    def denial_for(self, action: ModuleAction) -> Optional[DenialReason]:
        """
        Why ``action`` is refused, or None when it is allowed.

        A create refused while the module is at its limit reports
        LIMIT_REACHED so clients can offer an upgrade path.
        """
        if self.allows(action):
            return None
        if self.denial_reason is not None:
            return self.denial_reason
        if action == ModuleAction.CREATE and self.permissions.is_at_limit:
            return DenialReason.LIMIT_REACHED
        if self.source == PermissionSource.USER_OVERRIDE:
            return DenialReason.USER_PERMISSION
        return DenialReason.NO_ENTITLEMENT


class PermissionExplanation(BaseModel):
    """Raw layer rows next to the final decision, for troubleshooting."""
    tenant_id: str
    tenant_active: bool
    plan_id: Optional[str] = None
    plan_module: Optional[PlanModuleResponse] = None
    tenant_override: Optional[TenantOverrideResponse] = None
    user_permission: Optional[UserPermissionResponse] = None
    result: PermissionResult


class UsageRecordResponse(BaseModel):
    """Cached usage counter."""
    tenant_id: str
    module_type: ModuleType
    current_count: int
    last_calculated: datetime

    class Config:
        from_attributes = True
