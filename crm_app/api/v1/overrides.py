"""Tenant module override endpoints."""
from typing import List
from fastapi import APIRouter, HTTPException, status

from crm_app.core.dependencies import TenantAdmin, DbSession
from crm_app.core.enums import ModuleType
from crm_app.schemas.override import TenantOverrideUpdate, TenantOverrideResponse
from crm_app.services import overrides


router = APIRouter()


@router.get("", response_model=List[TenantOverrideResponse])
async def list_overrides(
    ctx: TenantAdmin,
    db: DbSession,
):
    """Module overrides of the current tenant."""
    rows = await overrides.list_tenant_overrides(db, ctx.tenant_id)
    return [TenantOverrideResponse.model_validate(r) for r in rows]


@router.put("/{module_type}", response_model=TenantOverrideResponse)
async def set_override(
    module_type: ModuleType,
    request: TenantOverrideUpdate,
    ctx: TenantAdmin,
    db: DbSession,
):
    """Disable a module or tighten its limit for the current tenant."""
    row = await overrides.set_tenant_override(
        db,
        ctx.tenant_id,
        module_type,
        request.model_dump(exclude_unset=True),
        updated_by=ctx.user_id,
    )
    await db.commit()
    return TenantOverrideResponse.model_validate(row)


@router.delete("/{module_type}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_override(
    module_type: ModuleType,
    ctx: TenantAdmin,
    db: DbSession,
):
    """Remove the override; the plan applies again."""
    removed = await overrides.remove_tenant_override(db, ctx.tenant_id, module_type)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Override not found",
        )
    await db.commit()
