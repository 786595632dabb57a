"""Contact schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from crm_app.core.enums import ContactStatus


class ContactCreate(BaseModel):
    """Contact creation schema."""
    name: str = Field(..., min_length=1, max_length=255)
    status: ContactStatus = ContactStatus.LEAD
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None


class ContactResponse(BaseModel):
    """Contact response schema."""
    id: str
    tenant_id: str
    owner_id: Optional[str] = None
    name: str
    status: ContactStatus
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
