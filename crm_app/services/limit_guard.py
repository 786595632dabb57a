"""
Atomic limit enforcement for creates.

A guarded create into a module with a numeric limit holds a per-(tenant,
module) asyncio lock for the rest of its transaction, re-resolves
permissions with the tenant row and the counted rows locked
(``SELECT ... FOR UPDATE``), and only then runs the insert. The asyncio lock
orders creators within one process, and the row locks order them across
processes. Creates into unlimited modules take neither.
"""
import asyncio
import weakref
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_app.core.database import async_session_maker, transaction
from crm_app.core.enums import DenialReason, ModuleAction, ModuleType, UserRole
from crm_app.core.exceptions import AccessDeniedError, LimitDeniedError, StoreError
from crm_app.core.logging import get_logger
from crm_app.schemas.permission import PermissionResult
from crm_app.services.permissions import PermissionResolver


logger = get_logger(__name__)

T = TypeVar("T")


def denial_message(reason: DenialReason, module_type: ModuleType, action: ModuleAction,
                   result: Optional[PermissionResult] = None) -> str:
    name = module_type.display_name
    if reason == DenialReason.LIMIT_REACHED and result is not None:
        perms = result.permissions
        return (
            f"{name} limit reached ({perms.current_count}/{perms.item_limit}). "
            f"Upgrade your plan to add more."
        )
    if reason == DenialReason.NO_ENTITLEMENT:
        return f"Your plan does not include the {name} module"
    if reason == DenialReason.TENANT_INACTIVE:
        return "Business account is inactive"
    if reason == DenialReason.TENANT_DISABLED:
        return f"The {name} module has been disabled for this account"
    if reason == DenialReason.STORE_ERROR:
        return "Permission check failed"
    return f"You do not have permission to {action.value.lower()} in {name}"


class KeyedLocks:
    """One asyncio.Lock per (tenant, module), dropped once nobody holds a reference."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[tuple, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, tenant_id: str, module_type: ModuleType) -> asyncio.Lock:
        key = (tenant_id, module_type)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


class AtomicLimitGuard:
    """Authorizes module actions; the only path that authorizes creates."""

    def __init__(
        self,
        resolver: Optional[PermissionResolver] = None,
        session_factory: Optional[async_sessionmaker] = None,
        locks: Optional[KeyedLocks] = None,
    ):
        self.resolver = resolver or PermissionResolver()
        self.session_factory = session_factory or async_session_maker
        self.locks = locks or KeyedLocks()

    async def guarded_create(
        self,
        tenant_id: str,
        module_type: ModuleType,
        create_fn: Callable[[AsyncSession], Awaitable[T]],
        *,
        user_id: Optional[str] = None,
        acting_as: Optional[UserRole] = None,
    ) -> T:
        """
        Check the quota and run ``create_fn(session)`` in one transaction.

        Raises LimitDeniedError, with the locked count and the limit, when
        the caller may not create. The usage record is refreshed in the same
        transaction as the insert. Exceptions from ``create_fn`` roll back
        and propagate unchanged.
        """
        log_ctx = {"tenant_id": tenant_id, "user_id": user_id, "module_type": module_type}

        async with transaction(self.session_factory) as session:
            try:
                limit = await self.resolver.limit_for(session, tenant_id, module_type)
            except SQLAlchemyError as e:
                logger.exception("Limit lookup failed in guarded create", extra=log_ctx)
                raise StoreError("Could not verify module limits") from e

            if limit is None:
                # Unlimited or unavailable modules have no count to order
                return await self._check_and_create(
                    session, tenant_id, module_type, create_fn, user_id, acting_as, log_ctx
                )

            async with self.locks.get(tenant_id, module_type):
                return await self._check_and_create(
                    session, tenant_id, module_type, create_fn, user_id, acting_as, log_ctx
                )

    async def _check_and_create(
        self,
        session: AsyncSession,
        tenant_id: str,
        module_type: ModuleType,
        create_fn: Callable[[AsyncSession], Awaitable[T]],
        user_id: Optional[str],
        acting_as: Optional[UserRole],
        log_ctx: dict,
    ) -> T:
        try:
            decision = await self.resolver.evaluate(
                session,
                tenant_id,
                module_type,
                user_id=user_id,
                acting_as=acting_as,
                for_update=True,
            )
        except SQLAlchemyError as e:
            logger.exception("Permission evaluation failed in guarded create", extra=log_ctx)
            raise StoreError("Could not verify module limits") from e

        reason = decision.denial_for(ModuleAction.CREATE)
        if reason is not None:
            perms = decision.permissions
            logger.info(
                f"Create denied: {reason.value} ({perms.current_count}/{perms.item_limit})",
                extra=log_ctx,
            )
            raise LimitDeniedError(
                reason,
                module_type,
                current_count=perms.current_count,
                limit=perms.item_limit,
                message=denial_message(reason, module_type, ModuleAction.CREATE, decision),
            )

        entity = await create_fn(session)
        await session.flush()

        # Cached usage only; a collision on its first insert keeps the create
        try:
            async with session.begin_nested():
                await self.resolver.store.counter.refresh(session, tenant_id, module_type)
        except IntegrityError:
            logger.warning("Usage record refresh collided, left to the next refresh", extra=log_ctx)

        return entity

    async def authorize(
        self,
        tenant_id: str,
        module_type: ModuleType,
        action: ModuleAction,
        *,
        user_id: Optional[str] = None,
        acting_as: Optional[UserRole] = None,
    ) -> PermissionResult:
        """Unlocked check for view, edit and delete. Raises AccessDeniedError."""
        async with self.session_factory() as session:
            decision = await self.resolver.resolve(
                session, tenant_id, module_type, user_id=user_id, acting_as=acting_as
            )

        reason = decision.denial_for(action)
        if reason is not None:
            logger.info(
                f"{action.value} denied: {reason.value}",
                extra={"tenant_id": tenant_id, "user_id": user_id, "module_type": module_type},
            )
            raise AccessDeniedError(
                reason,
                module_type,
                denial_message(reason, module_type, action, decision),
            )
        return decision
