"""Platform administration: plan catalog, tenant lifecycle and tenant overrides."""
from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, status

from crm_app.core.dependencies import SuperAdmin, DbSession, Resolver
from crm_app.core.enums import ModuleType
from crm_app.schemas.override import TenantOverrideUpdate, TenantOverrideResponse
from crm_app.schemas.permission import PermissionExplanation
from crm_app.schemas.plan import PlanCreate, PlanModuleUpdate, PlanModuleResponse, PlanResponse
from crm_app.schemas.tenant import TenantCreate, TenantPlanUpdate, TenantResponse
from crm_app.services import overrides, plans, tenants


router = APIRouter()


@router.get("/plans", response_model=List[PlanResponse])
async def list_plans(
    admin: SuperAdmin,
    db: DbSession,
):
    """All plans with their module entitlements."""
    return [PlanResponse.model_validate(p) for p in await plans.list_plans(db)]


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    request: PlanCreate,
    admin: SuperAdmin,
    db: DbSession,
):
    """Create a plan, or update the description of an existing one."""
    plan = await plans.upsert_plan(db, request.name, request.description)
    await db.commit()
    plan = await plans.get_plan(db, plan.id)
    return PlanResponse.model_validate(plan)


@router.put("/plans/{plan_id}/modules/{module_type}", response_model=PlanModuleResponse)
async def set_plan_module(
    plan_id: str,
    module_type: ModuleType,
    request: PlanModuleUpdate,
    admin: SuperAdmin,
    db: DbSession,
):
    """Set a module's entitlement within a plan."""
    row = await plans.set_plan_module(
        db, plan_id, module_type, request.model_dump(exclude_unset=True)
    )
    await db.commit()
    return PlanModuleResponse.model_validate(row)


@router.get("/tenants", response_model=List[TenantResponse])
async def list_tenants(
    admin: SuperAdmin,
    db: DbSession,
    include_deleted: bool = Query(False),
):
    """List tenants."""
    rows = await tenants.list_tenants(db, include_deleted=include_deleted)
    return [TenantResponse.model_validate(t) for t in rows]


@router.post("/tenants", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    request: TenantCreate,
    admin: SuperAdmin,
    db: DbSession,
):
    """Create a tenant and its first business administrator."""
    tenant, _ = await tenants.create_tenant(
        db,
        name=request.name,
        admin_email=request.admin_email,
        admin_password=request.admin_password,
        plan_name=request.plan_name,
        admin_full_name=request.admin_full_name,
    )
    await db.commit()
    return TenantResponse.model_validate(tenant)


@router.put("/tenants/{tenant_id}/plan", response_model=TenantResponse)
async def change_tenant_plan(
    tenant_id: str,
    request: TenantPlanUpdate,
    admin: SuperAdmin,
    db: DbSession,
):
    """Move a tenant to another plan."""
    tenant = await plans.assign_plan(db, tenant_id, request.plan_name)
    await db.commit()
    return TenantResponse.model_validate(tenant)


@router.delete("/tenants/{tenant_id}", response_model=TenantResponse)
async def delete_tenant(
    tenant_id: str,
    admin: SuperAdmin,
    db: DbSession,
):
    """Soft-delete a tenant."""
    tenant = await tenants.soft_delete_tenant(db, tenant_id)
    await db.commit()
    return TenantResponse.model_validate(tenant)


@router.post("/tenants/{tenant_id}/reactivate", response_model=TenantResponse)
async def reactivate_tenant(
    tenant_id: str,
    admin: SuperAdmin,
    db: DbSession,
):
    """Undo a soft delete."""
    tenant = await tenants.reactivate_tenant(db, tenant_id)
    await db.commit()
    return TenantResponse.model_validate(tenant)


@router.get(
    "/tenants/{tenant_id}/modules/{module_type}/explain",
    response_model=PermissionExplanation,
)
async def explain_permissions(
    tenant_id: str,
    module_type: ModuleType,
    admin: SuperAdmin,
    db: DbSession,
    resolver: Resolver,
    user_id: Optional[str] = Query(None),
):
    """Show every layer behind a permission decision."""
    return await resolver.explain(db, tenant_id, module_type, user_id=user_id)


@router.get("/tenants/{tenant_id}/overrides", response_model=List[TenantOverrideResponse])
async def list_tenant_overrides(
    tenant_id: str,
    admin: SuperAdmin,
    db: DbSession,
):
    """Module overrides of any tenant."""
    await tenants.get_tenant(db, tenant_id)
    rows = await overrides.list_tenant_overrides(db, tenant_id)
    return [TenantOverrideResponse.model_validate(r) for r in rows]


@router.get("/tenants/{tenant_id}/overrides/{module_type}", response_model=TenantOverrideResponse)
async def get_tenant_override(
    tenant_id: str,
    module_type: ModuleType,
    admin: SuperAdmin,
    db: DbSession,
    resolver: Resolver,
):
    row = await resolver.store.get_tenant_override(db, tenant_id, module_type)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Override not found",
        )
    return TenantOverrideResponse.model_validate(row)


@router.put("/tenants/{tenant_id}/overrides/{module_type}", response_model=TenantOverrideResponse)
async def set_tenant_override(
    tenant_id: str,
    module_type: ModuleType,
    request: TenantOverrideUpdate,
    admin: SuperAdmin,
    db: DbSession,
):
    """Disable a module or tighten its limit for a tenant."""
    row = await overrides.set_tenant_override(
        db,
        tenant_id,
        module_type,
        request.model_dump(exclude_unset=True),
        updated_by=admin.id,
    )
    await db.commit()
    return TenantOverrideResponse.model_validate(row)


@router.delete("/tenants/{tenant_id}/overrides/{module_type}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_tenant_override(
    tenant_id: str,
    module_type: ModuleType,
    admin: SuperAdmin,
    db: DbSession,
):
    """Remove a tenant's override; its plan applies again."""
    removed = await overrides.remove_tenant_override(db, tenant_id, module_type)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Override not found",
        )
    await db.commit()
