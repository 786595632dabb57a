"""Read-side access to the entitlement tables."""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_app.core.enums import ModuleType
from crm_app.models.override import TenantModuleOverride, UserModulePermission
from crm_app.models.plan import PlanModule
from crm_app.models.tenant import Tenant
from crm_app.services import plans
from crm_app.services.usage import UsageCounter


class EntitlementStore:
    """
    Lookups the permission resolver needs, one method per layer.

    Holds no per-request state. Every method runs on the session it is
    given, so the same store serves plain reads and the guard's locking
    transaction.
    """

    def __init__(self, counter: Optional[UsageCounter] = None):
        self.counter = counter or UsageCounter()

    async def get_tenant(self, session: AsyncSession, tenant_id: str) -> Optional[Tenant]:
        result = await session.execute(
            select(Tenant)
            .where(Tenant.id == tenant_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock_tenant(self, session: AsyncSession, tenant_id: str) -> None:
        """Take a row lock on the tenant for the rest of the transaction."""
        await session.execute(
            select(Tenant.id).where(Tenant.id == tenant_id).with_for_update()
        )

    async def get_plan_module(
        self,
        session: AsyncSession,
        plan_id: str,
        module_type: ModuleType,
    ) -> Optional[PlanModule]:
        return await plans.get_plan_module(session, plan_id, module_type)

    async def get_tenant_override(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
    ) -> Optional[TenantModuleOverride]:
        result = await session.execute(
            select(TenantModuleOverride).where(
                TenantModuleOverride.tenant_id == tenant_id,
                TenantModuleOverride.module_type == module_type,
            )
        )
        return result.scalar_one_or_none()

    async def get_user_permission(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        module_type: ModuleType,
    ) -> Optional[UserModulePermission]:
        result = await session.execute(
            select(UserModulePermission).where(
                UserModulePermission.tenant_id == tenant_id,
                UserModulePermission.user_id == user_id,
                UserModulePermission.module_type == module_type,
            )
        )
        return result.scalar_one_or_none()

    async def count_usage(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
        for_update: bool = False,
    ) -> int:
        return await self.counter.count(session, tenant_id, module_type, for_update=for_update)
