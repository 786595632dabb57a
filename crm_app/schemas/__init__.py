"""Pydantic schemas."""
from crm_app.schemas.auth import LoginRequest, LoginResponse, TokenResponse
from crm_app.schemas.tenant import TenantCreate, TenantPlanUpdate, TenantResponse
from crm_app.schemas.plan import PlanCreate, PlanModuleUpdate, PlanModuleResponse, PlanResponse
from crm_app.schemas.override import (
    TenantOverrideUpdate, TenantOverrideResponse,
    UserPermissionUpdate, UserPermissionGrant, UserPermissionsReplace, UserPermissionResponse
)
from crm_app.schemas.permission import (
    ModulePermissions, PermissionResult, PermissionExplanation, UsageRecordResponse
)
from crm_app.schemas.user import UserCreate, UserResponse
from crm_app.schemas.contact import ContactCreate, ContactResponse
from crm_app.schemas.opportunity import OpportunityCreate, OpportunityResponse

__all__ = [
    "LoginRequest", "LoginResponse", "TokenResponse", "UserResponse",
    "TenantCreate", "TenantPlanUpdate", "TenantResponse",
    "PlanCreate", "PlanModuleUpdate", "PlanModuleResponse", "PlanResponse",
    "TenantOverrideUpdate", "TenantOverrideResponse",
    "UserPermissionUpdate", "UserPermissionGrant", "UserPermissionsReplace", "UserPermissionResponse",
    "ModulePermissions", "PermissionResult", "PermissionExplanation", "UsageRecordResponse",
    "UserCreate",
    "ContactCreate", "ContactResponse",
    "OpportunityCreate", "OpportunityResponse",
]
