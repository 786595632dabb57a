"""SQLAlchemy models."""
from crm_app.models.plan import Plan, PlanModule
from crm_app.models.tenant import Tenant
from crm_app.models.user import User
from crm_app.models.contact import Contact
from crm_app.models.opportunity import Opportunity
from crm_app.models.override import TenantModuleOverride, UserModulePermission
from crm_app.models.usage import UsageRecord

__all__ = [
    "Plan", "PlanModule", "Tenant", "User", "Contact", "Opportunity",
    "TenantModuleOverride", "UserModulePermission", "UsageRecord",
]
