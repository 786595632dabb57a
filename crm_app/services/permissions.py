"""
Permission resolution.

Merges the plan catalog, the tenant override layer, the user override layer
and live usage into a single decision per (tenant, module, user). Precedence,
first terminal rule wins:

1. Tenant missing, inactive or soft-deleted: denied.
2. Module not included in the tenant's plan: denied.
3. Tenant override disables the module: denied, whatever the user rows say.
4. Usage: live count against the effective limit.
5. User override row (ordinary members only): the row's capabilities, with
   create forced off at the limit.
6. Plan defaults: full capabilities, create off at the limit.

Plan capability flags cap steps 5 and 6.
"""
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_app.core.config import settings
from crm_app.core.enums import DenialReason, ModuleType, PermissionSource, UserRole
from crm_app.core.logging import get_logger
from crm_app.core.roles import is_privileged
from crm_app.schemas.override import TenantOverrideResponse, UserPermissionResponse
from crm_app.schemas.permission import ModulePermissions, PermissionExplanation, PermissionResult
from crm_app.schemas.plan import PlanModuleResponse
from crm_app.services.store import EntitlementStore


logger = get_logger(__name__)


def all_denied() -> ModulePermissions:
    return ModulePermissions(
        can_create=False,
        can_edit=False,
        can_delete=False,
        can_view=False,
        item_limit=0,
        current_count=0,
        is_at_limit=True,
        is_near_limit=False,
    )


def denied_result(
    module_type: ModuleType,
    source: PermissionSource,
    reason: DenialReason,
) -> PermissionResult:
    return PermissionResult(
        module_type=module_type,
        has_access=False,
        permissions=all_denied(),
        source=source,
        denial_reason=reason,
    )


def effective_limit(plan_limit: Optional[int], override_limit: Optional[int]) -> Optional[int]:
    """An override can only tighten a numeric plan limit."""
    if override_limit is None:
        return plan_limit
    if plan_limit is None:
        return override_limit
    return min(plan_limit, override_limit)


class PermissionResolver:
    """Stateless resolver over an explicit entitlement store."""

    def __init__(
        self,
        store: Optional[EntitlementStore] = None,
        near_limit_threshold: Optional[float] = None,
    ):
        self.store = store or EntitlementStore()
        self.near_limit_threshold = (
            near_limit_threshold
            if near_limit_threshold is not None
            else settings.NEAR_LIMIT_THRESHOLD
        )

    async def resolve(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
        user_id: Optional[str] = None,
        acting_as: Optional[UserRole] = None,
    ) -> PermissionResult:
        """
        Resolve the decision for a tenant, module and optional user.

        Never raises for denials. A store failure is logged and resolves to
        a full denial with reason STORE_ERROR.
        """
        try:
            return await self.evaluate(
                session, tenant_id, module_type, user_id=user_id, acting_as=acting_as
            )
        except SQLAlchemyError:
            logger.exception(
                "Permission lookup failed, denying access",
                extra={"tenant_id": tenant_id, "user_id": user_id, "module_type": module_type},
            )
            return denied_result(module_type, PermissionSource.DENIED, DenialReason.STORE_ERROR)

    async def evaluate(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
        user_id: Optional[str] = None,
        acting_as: Optional[UserRole] = None,
        for_update: bool = False,
    ) -> PermissionResult:
        """
        Same decision as :meth:`resolve` but store errors propagate.

        With ``for_update=True`` and a numeric limit, the tenant row and every
        counted row are locked and the locked row count is used.
        """
        log_ctx = {"tenant_id": tenant_id, "user_id": user_id, "module_type": module_type}

        tenant = await self.store.get_tenant(session, tenant_id)
        if tenant is None or not tenant.is_alive:
            logger.info("Access denied: tenant inactive", extra=log_ctx)
            return denied_result(module_type, PermissionSource.DENIED, DenialReason.TENANT_INACTIVE)

        plan_module = None
        if tenant.plan_id is not None:
            plan_module = await self.store.get_plan_module(session, tenant.plan_id, module_type)
        if plan_module is None or not plan_module.is_included:
            logger.info("Access denied: module not in plan", extra=log_ctx)
            return denied_result(module_type, PermissionSource.DENIED, DenialReason.NO_ENTITLEMENT)

        override = await self.store.get_tenant_override(session, tenant_id, module_type)
        if override is not None and override.is_disabled:
            logger.info("Access denied: module disabled for tenant", extra=log_ctx)
            return denied_result(
                module_type, PermissionSource.TENANT_OVERRIDE, DenialReason.TENANT_DISABLED
            )

        limit = effective_limit(
            plan_module.item_limit,
            override.item_limit if override is not None else None,
        )
        lock_rows = for_update and limit is not None
        if lock_rows:
            await self.store.lock_tenant(session, tenant_id)
        current_count = await self.store.count_usage(
            session, tenant_id, module_type, for_update=lock_rows
        )
        is_at_limit = limit is not None and current_count >= limit
        is_near_limit = limit is not None and current_count >= self.near_limit_threshold * limit

        user_row = None
        if user_id is not None and not is_privileged(acting_as):
            user_row = await self.store.get_user_permission(
                session, tenant_id, user_id, module_type
            )

        if user_row is not None:
            has_access = user_row.can_view
            permissions = ModulePermissions(
                can_create=user_row.can_create and plan_module.can_create and not is_at_limit,
                can_edit=user_row.can_edit and plan_module.can_edit,
                can_delete=user_row.can_delete and plan_module.can_delete,
                can_view=user_row.can_view and plan_module.can_view,
                item_limit=limit,
                current_count=current_count,
                is_at_limit=is_at_limit,
                is_near_limit=is_near_limit,
            )
            source = PermissionSource.USER_OVERRIDE
            reason = None if has_access else DenialReason.USER_PERMISSION
        else:
            has_access = True
            permissions = ModulePermissions(
                can_create=plan_module.can_create and not is_at_limit,
                can_edit=plan_module.can_edit,
                can_delete=plan_module.can_delete,
                can_view=plan_module.can_view,
                item_limit=limit,
                current_count=current_count,
                is_at_limit=is_at_limit,
                is_near_limit=is_near_limit,
            )
            source = PermissionSource.PLAN
            reason = None

        return PermissionResult(
            module_type=module_type,
            has_access=has_access,
            permissions=permissions,
            source=source,
            denial_reason=reason,
        )

    async def limit_for(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
    ) -> Optional[int]:
        """Effective numeric limit, or None when the module is unlimited or unavailable."""
        tenant = await self.store.get_tenant(session, tenant_id)
        if tenant is None or not tenant.is_alive or tenant.plan_id is None:
            return None
        plan_module = await self.store.get_plan_module(session, tenant.plan_id, module_type)
        if plan_module is None or not plan_module.is_included:
            return None
        override = await self.store.get_tenant_override(session, tenant_id, module_type)
        if override is not None and override.is_disabled:
            return None
        return effective_limit(
            plan_module.item_limit,
            override.item_limit if override is not None else None,
        )

    async def available_modules(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: Optional[str] = None,
        acting_as: Optional[UserRole] = None,
    ) -> List[PermissionResult]:
        """Every module the caller can see, with its decision."""
        results = []
        for module_type in ModuleType:
            result = await self.resolve(
                session, tenant_id, module_type, user_id=user_id, acting_as=acting_as
            )
            if result.has_access and result.permissions.can_view:
                results.append(result)
        return results

    async def has_module_access(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
    ) -> bool:
        """Tenant-level check used before granting a module to a member."""
        result = await self.resolve(session, tenant_id, module_type)
        return result.has_access and result.permissions.can_view

    async def explain(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
        user_id: Optional[str] = None,
    ) -> PermissionExplanation:
        tenant = await self.store.get_tenant(session, tenant_id)
        plan_module = None
        if tenant is not None and tenant.plan_id is not None:
            plan_module = await self.store.get_plan_module(session, tenant.plan_id, module_type)
        override = await self.store.get_tenant_override(session, tenant_id, module_type)
        user_row = None
        if user_id is not None:
            user_row = await self.store.get_user_permission(session, tenant_id, user_id, module_type)

        result = await self.resolve(session, tenant_id, module_type, user_id=user_id)

        return PermissionExplanation(
            tenant_id=tenant_id,
            tenant_active=tenant is not None and tenant.is_alive,
            plan_id=tenant.plan_id if tenant is not None else None,
            plan_module=PlanModuleResponse.model_validate(plan_module) if plan_module else None,
            tenant_override=TenantOverrideResponse.model_validate(override) if override else None,
            user_permission=UserPermissionResponse.model_validate(user_row) if user_row else None,
            result=result,
        )
