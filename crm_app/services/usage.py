"""Live item counts per tenant and module."""
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from crm_app.core.enums import ModuleType
from crm_app.core.logging import get_logger
from crm_app.models.contact import Contact
from crm_app.models.usage import UsageRecord
from crm_app.models.user import User


logger = get_logger(__name__)


class UsageCounter:
    """
    Counts the rows a module's quota applies to.

    Reads only. Safe outside a transaction (display, caching) and inside the
    guard's locking transaction, where ``for_update=True`` locks every
    counted row and returns how many were locked.
    """

    def _counted_ids(self, tenant_id: str, module_type: ModuleType):
        if module_type == ModuleType.USERS:
            return select(User.id).where(User.tenant_id == tenant_id)
        elif module_type == ModuleType.CONTACTS:
            return select(Contact.id).where(
                Contact.tenant_id == tenant_id,
                Contact.deleted_at.is_(None),
            )
        elif module_type == ModuleType.CRM:
            # Opportunities are not metered
            return None
        raise ValueError(f"Unknown module type: {module_type!r}")

    async def count(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
        for_update: bool = False,
    ) -> int:
        query = self._counted_ids(tenant_id, module_type)
        if query is None:
            return 0

        if for_update:
            # Aggregates cannot take row locks; lock the ids and count them
            result = await session.execute(query.with_for_update())
            return len(result.scalars().all())

        result = await session.execute(
            select(func.count()).select_from(query.subquery())
        )
        return result.scalar_one()

    async def refresh(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
    ) -> UsageRecord:
        """Recompute the live count and upsert the cached usage record."""
        current = await self.count(session, tenant_id, module_type)

        result = await session.execute(
            select(UsageRecord).where(
                UsageRecord.tenant_id == tenant_id,
                UsageRecord.module_type == module_type,
            )
        )
        record = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)

        if record is None:
            record = UsageRecord(
                tenant_id=tenant_id,
                module_type=module_type,
                current_count=current,
                last_calculated=now,
            )
            session.add(record)
        else:
            record.current_count = current
            record.last_calculated = now

        await session.flush()
        logger.debug(
            f"Usage refreshed: {module_type.value}={current}",
            extra={"tenant_id": tenant_id, "module_type": module_type.value},
        )
        return record
