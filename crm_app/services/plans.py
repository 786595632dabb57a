"""Plan catalog: plans, module entitlements and tenant plan assignment."""
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crm_app.core.enums import ModuleType
from crm_app.core.exceptions import OverrideValidationError, PlanNotFoundError, TenantNotFoundError
from crm_app.core.logging import get_logger
from crm_app.models.plan import Plan, PlanModule
from crm_app.models.tenant import Tenant


logger = get_logger(__name__)

PLAN_MODULE_FIELDS = ("is_included", "item_limit", "can_create", "can_edit", "can_delete", "can_view")

# Module entitlements per default plan. A missing module is not included;
# item_limit None is unlimited.
DEFAULT_PLANS: Dict[str, Dict[str, Any]] = {
    "Starter": {
        "description": "Small teams getting started",
        "modules": {
            ModuleType.USERS: {"item_limit": 2},
            ModuleType.CONTACTS: {"item_limit": 50},
        },
    },
    "Standard": {
        "description": "Growing businesses with a sales pipeline",
        "modules": {
            ModuleType.USERS: {"item_limit": 5},
            ModuleType.CONTACTS: {"item_limit": 100},
            ModuleType.CRM: {"item_limit": None},
        },
    },
    "Enterprise": {
        "description": "Unlimited users and contacts",
        "modules": {
            ModuleType.USERS: {"item_limit": None},
            ModuleType.CONTACTS: {"item_limit": None},
            ModuleType.CRM: {"item_limit": None},
        },
    },
}


async def get_plan(session: AsyncSession, plan_id: str) -> Optional[Plan]:
    result = await session.execute(
        select(Plan)
        .options(selectinload(Plan.modules))
        .where(Plan.id == plan_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_plan_by_name(session: AsyncSession, name: str) -> Optional[Plan]:
    result = await session.execute(
        select(Plan)
        .options(selectinload(Plan.modules))
        .where(Plan.name == name)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_plans(session: AsyncSession) -> List[Plan]:
    result = await session.execute(
        select(Plan)
        .options(selectinload(Plan.modules))
        .order_by(Plan.name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_plan_module(
    session: AsyncSession,
    plan_id: str,
    module_type: ModuleType,
) -> Optional[PlanModule]:
    result = await session.execute(
        select(PlanModule).where(
            PlanModule.plan_id == plan_id,
            PlanModule.module_type == module_type,
        )
    )
    return result.scalar_one_or_none()


async def upsert_plan(
    session: AsyncSession,
    name: str,
    description: Optional[str] = None,
) -> Plan:
    plan = await get_plan_by_name(session, name)
    if plan is None:
        plan = Plan(name=name, description=description)
        session.add(plan)
        logger.info(f"Plan created: {name}")
    elif description is not None:
        plan.description = description
    await session.flush()
    return plan


async def set_plan_module(
    session: AsyncSession,
    plan_id: str,
    module_type: ModuleType,
    changes: Mapping[str, Any],
) -> PlanModule:
    """Create or update the single entitlement row for (plan, module)."""
    unknown = set(changes) - set(PLAN_MODULE_FIELDS)
    if unknown:
        raise OverrideValidationError(
            f"Unknown plan module fields: {', '.join(sorted(unknown))}",
            code="INVALID_PLAN_MODULE",
        )
    limit = changes.get("item_limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
        raise OverrideValidationError(
            "item_limit must be a non-negative integer or null",
            code="INVALID_PLAN_MODULE",
        )

    plan = await session.get(Plan, plan_id)
    if plan is None:
        raise PlanNotFoundError(plan_id)

    row = await get_plan_module(session, plan_id, module_type)
    if row is None:
        row = PlanModule(
            plan_id=plan_id,
            module_type=module_type,
            is_included=changes.get("is_included", True),
            item_limit=limit,
            can_create=changes.get("can_create", True),
            can_edit=changes.get("can_edit", True),
            can_delete=changes.get("can_delete", True),
            can_view=changes.get("can_view", True),
        )
        session.add(row)
    else:
        for field, value in changes.items():
            setattr(row, field, value)

    await session.flush()
    logger.info(
        f"Plan module set on {plan.name}: included={row.is_included} limit={row.item_limit}",
        extra={"module_type": module_type},
    )
    return row


async def assign_plan(session: AsyncSession, tenant_id: str, plan_name: str) -> Tenant:
    """Move a tenant to another plan. The next resolve sees the new plan."""
    tenant = await session.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)
    plan = await get_plan_by_name(session, plan_name)
    if plan is None:
        raise PlanNotFoundError(plan_name)

    tenant.plan_id = plan.id
    await session.flush()
    logger.info(f"Tenant moved to plan {plan.name}", extra={"tenant_id": tenant_id})
    return tenant


async def ensure_default_plans(session: AsyncSession) -> List[Plan]:
    """Create the default plans and their modules where missing."""
    plans = []
    for name, defaults in DEFAULT_PLANS.items():
        plan = await get_plan_by_name(session, name)
        if plan is None:
            plan = Plan(name=name, description=defaults["description"])
            session.add(plan)
            await session.flush()
            logger.info(f"Default plan created: {name}")

        for module_type, values in defaults["modules"].items():
            if await get_plan_module(session, plan.id, module_type) is None:
                session.add(PlanModule(plan_id=plan.id, module_type=module_type, **values))
        plans.append(plan)

    await session.flush()
    return plans
