"""Plan catalog schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from crm_app.core.enums import ModuleType


class PlanCreate(BaseModel):
    """Plan creation schema."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class PlanModuleUpdate(BaseModel):
    """Partial update of a plan's module entitlement."""
    is_included: Optional[bool] = None
    item_limit: Optional[int] = Field(None, ge=0)
    can_create: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None
    can_view: Optional[bool] = None


class PlanModuleResponse(BaseModel):
    """Plan module response schema."""
    module_type: ModuleType
    is_included: bool
    item_limit: Optional[int] = None
    can_create: bool
    can_edit: bool
    can_delete: bool
    can_view: bool

    class Config:
        from_attributes = True


class PlanResponse(BaseModel):
    """Plan response schema."""
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    modules: List[PlanModuleResponse] = []

    class Config:
        from_attributes = True
