"""Tenant schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class TenantCreate(BaseModel):
    """Tenant signup schema, including its first administrator."""
    name: str = Field(..., min_length=1, max_length=255)
    plan_name: Optional[str] = None
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=8)
    admin_full_name: Optional[str] = None


class TenantPlanUpdate(BaseModel):
    """Plan change request."""
    plan_name: str = Field(..., min_length=1)


class TenantResponse(BaseModel):
    """Tenant response schema."""
    id: str
    name: str
    plan_id: Optional[str] = None
    is_active: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
