"""Tenant lifecycle: signup, soft delete and reactivation."""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_app.core.config import settings
from crm_app.core.enums import UserRole
from crm_app.core.exceptions import PlanNotFoundError, TenantNotFoundError
from crm_app.core.logging import get_logger
from crm_app.core.security import get_password_hash
from crm_app.models.tenant import Tenant
from crm_app.models.user import User
from crm_app.services.plans import get_plan_by_name


logger = get_logger(__name__)


async def create_tenant(
    session: AsyncSession,
    name: str,
    admin_email: str,
    admin_password: str,
    plan_name: Optional[str] = None,
    admin_full_name: Optional[str] = None,
) -> Tuple[Tenant, User]:
    """Create a tenant on a plan together with its first business administrator."""
    plan_name = plan_name or settings.DEFAULT_PLAN_NAME
    plan = await get_plan_by_name(session, plan_name)
    if plan is None:
        raise PlanNotFoundError(plan_name)

    tenant = Tenant(name=name, plan_id=plan.id, is_active=True)
    session.add(tenant)
    await session.flush()

    admin = User(
        tenant_id=tenant.id,
        email=admin_email.lower(),
        hashed_password=get_password_hash(admin_password),
        full_name=admin_full_name,
        role=UserRole.BUSINESS_ADMIN,
        is_active=True,
    )
    session.add(admin)
    await session.flush()

    logger.info(f"Tenant created on plan {plan.name}", extra={"tenant_id": tenant.id})
    return tenant, admin


async def get_tenant(session: AsyncSession, tenant_id: str) -> Tenant:
    tenant = await session.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)
    return tenant


async def list_tenants(session: AsyncSession, include_deleted: bool = False) -> List[Tenant]:
    query = select(Tenant).order_by(Tenant.created_at)
    if not include_deleted:
        query = query.where(Tenant.deleted_at.is_(None))
    result = await session.execute(query)
    return list(result.scalars().all())


async def soft_delete_tenant(session: AsyncSession, tenant_id: str) -> Tenant:
    """Mark the tenant deleted and inactive. Rows are kept."""
    tenant = await get_tenant(session, tenant_id)
    if tenant.deleted_at is None:
        tenant.deleted_at = datetime.now(timezone.utc)
    tenant.is_active = False
    await session.flush()
    logger.info("Tenant soft-deleted", extra={"tenant_id": tenant_id})
    return tenant


async def reactivate_tenant(session: AsyncSession, tenant_id: str) -> Tenant:
    tenant = await get_tenant(session, tenant_id)
    tenant.deleted_at = None
    tenant.is_active = True
    await session.flush()
    logger.info("Tenant reactivated", extra={"tenant_id": tenant_id})
    return tenant
