"""Module permission API endpoints."""
from typing import List
from fastapi import APIRouter

from crm_app.core.database import run_in_transaction
from crm_app.core.dependencies import TenantCtx, TenantAdmin, DbSession, Resolver, SessionFactory
from crm_app.core.enums import ModuleType
from crm_app.schemas.permission import PermissionResult, UsageRecordResponse


router = APIRouter()


@router.get("", response_model=List[PermissionResult])
async def list_available_modules(
    ctx: TenantCtx,
    db: DbSession,
    resolver: Resolver,
):
    """Modules the caller can see, with their resolved permissions."""
    return await resolver.available_modules(
        db, ctx.tenant_id, user_id=ctx.user_id, acting_as=ctx.role
    )


@router.get("/{module_type}", response_model=PermissionResult)
async def get_module_permissions(
    module_type: ModuleType,
    ctx: TenantCtx,
    db: DbSession,
    resolver: Resolver,
):
    """Resolved permissions of the caller for one module, denied or not."""
    return await resolver.resolve(
        db, ctx.tenant_id, module_type, user_id=ctx.user_id, acting_as=ctx.role
    )


@router.post("/{module_type}/usage/refresh", response_model=UsageRecordResponse)
async def refresh_module_usage(
    module_type: ModuleType,
    ctx: TenantAdmin,
    resolver: Resolver,
    session_factory: SessionFactory,
):
    """Recompute the cached usage counter for a module."""
    async def refresh(session):
        return await resolver.store.counter.refresh(session, ctx.tenant_id, module_type)

    record = await run_in_transaction(refresh, session_factory)
    return UsageRecordResponse.model_validate(record)
