"""Opportunity schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from crm_app.core.enums import OpportunityStatus


class OpportunityCreate(BaseModel):
    """Opportunity creation schema."""
    title: str = Field(..., min_length=1, max_length=255)
    contact_id: str
    seller_id: Optional[str] = None
    status: OpportunityStatus = OpportunityStatus.NEW
    estimated_close_date: Optional[datetime] = None
    notes: Optional[str] = None


class OpportunityResponse(BaseModel):
    """Opportunity response schema."""
    id: str
    tenant_id: str
    contact_id: str
    seller_id: Optional[str] = None
    title: str
    status: OpportunityStatus
    estimated_close_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
