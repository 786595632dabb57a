"""User management schemas."""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from crm_app.core.enums import UserRole


class UserCreate(BaseModel):
    """User creation schema."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.USER


class UserResponse(BaseModel):
    """A tenant user, or a platform administrator with no tenant."""
    id: str
    tenant_id: Optional[str] = None
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True
