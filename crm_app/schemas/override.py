"""Tenant override and user permission schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from crm_app.core.enums import ModuleType


class TenantOverrideUpdate(BaseModel):
    """Only the fields that are set are written."""
    is_disabled: Optional[bool] = None
    item_limit: Optional[int] = Field(None, ge=0)


class TenantOverrideResponse(BaseModel):
    """Tenant override response schema."""
    tenant_id: str
    module_type: ModuleType
    is_disabled: bool
    item_limit: Optional[int] = None
    updated_by: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class UserPermissionUpdate(BaseModel):
    """Capabilities left unset keep their stored value, or default to true on a new row."""
    can_view: Optional[bool] = None
    can_create: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None
    notes: Optional[str] = None


class UserPermissionGrant(UserPermissionUpdate):
    """One module entry of a bulk permission replacement."""
    module_type: ModuleType


class UserPermissionsReplace(BaseModel):
    """Bulk replacement of a user's module permissions."""
    permissions: List[UserPermissionGrant]


class UserPermissionResponse(BaseModel):
    """User module permission response schema."""
    user_id: str
    tenant_id: str
    module_type: ModuleType
    can_view: bool
    can_create: bool
    can_edit: bool
    can_delete: bool
    granted_by: Optional[str] = None
    granted_at: datetime
    notes: Optional[str] = None

    class Config:
        from_attributes = True
