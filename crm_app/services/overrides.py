"""
Tenant and user override layers.

Keyed upserts over ``tenant_module_overrides`` and ``user_module_permissions``.
Validation runs before any write, so a rejected call leaves no row behind.
Functions flush but never commit; the caller owns the transaction.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from crm_app.core.enums import ModuleType
from crm_app.core.exceptions import (
    OverrideValidationError,
    ModuleNotEntitledError,
    UserNotInTenantError,
    PrivilegedUserGrantError,
    TenantNotFoundError,
)
from crm_app.core.logging import get_logger
from crm_app.core.roles import is_privileged
from crm_app.models.override import TenantModuleOverride, UserModulePermission
from crm_app.models.tenant import Tenant
from crm_app.models.user import User
from crm_app.services.permissions import PermissionResolver


logger = get_logger(__name__)

TENANT_OVERRIDE_FIELDS = ("is_disabled", "item_limit")
USER_CAPABILITIES = ("can_view", "can_create", "can_edit", "can_delete")


def _check_keys(changes: Mapping[str, Any], allowed: tuple) -> None:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise OverrideValidationError(
            f"Unknown override fields: {', '.join(sorted(unknown))}"
        )


async def set_tenant_override(
    session: AsyncSession,
    tenant_id: str,
    module_type: ModuleType,
    changes: Mapping[str, Any],
    updated_by: Optional[str] = None,
) -> TenantModuleOverride:
    """
    Create or update the override for (tenant, module).

    Only keys present in ``changes`` are written. ``item_limit=None`` clears
    the limit; ``item_limit=0`` is a zero quota and does not disable the
    module.
    """
    _check_keys(changes, TENANT_OVERRIDE_FIELDS)
    limit = changes.get("item_limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
        raise OverrideValidationError("item_limit must be a non-negative integer or null")

    tenant = await session.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)

    result = await session.execute(
        select(TenantModuleOverride).where(
            TenantModuleOverride.tenant_id == tenant_id,
            TenantModuleOverride.module_type == module_type,
        )
    )
    override = result.scalar_one_or_none()

    if override is None:
        override = TenantModuleOverride(
            tenant_id=tenant_id,
            module_type=module_type,
            is_disabled=bool(changes.get("is_disabled", False)),
            item_limit=limit,
            updated_by=updated_by,
        )
        session.add(override)
    else:
        if "is_disabled" in changes:
            override.is_disabled = bool(changes["is_disabled"])
        if "item_limit" in changes:
            override.item_limit = limit
        override.updated_by = updated_by
        override.updated_at = datetime.now(timezone.utc)

    await session.flush()
    logger.info(
        f"Tenant override set: disabled={override.is_disabled} limit={override.item_limit}",
        extra={"tenant_id": tenant_id, "user_id": updated_by, "module_type": module_type},
    )
    return override


async def remove_tenant_override(
    session: AsyncSession,
    tenant_id: str,
    module_type: ModuleType,
) -> bool:
    """Delete the override. Returns False when there was none."""
    result = await session.execute(
        delete(TenantModuleOverride).where(
            TenantModuleOverride.tenant_id == tenant_id,
            TenantModuleOverride.module_type == module_type,
        )
    )
    removed = result.rowcount > 0
    if removed:
        logger.info(
            "Tenant override removed",
            extra={"tenant_id": tenant_id, "module_type": module_type},
        )
    return removed


async def list_tenant_overrides(
    session: AsyncSession,
    tenant_id: str,
) -> List[TenantModuleOverride]:
    result = await session.execute(
        select(TenantModuleOverride)
        .where(TenantModuleOverride.tenant_id == tenant_id)
        .order_by(TenantModuleOverride.module_type)
    )
    return list(result.scalars().all())


async def _validate_grantee(
    session: AsyncSession,
    tenant_id: str,
    user_id: str,
) -> User:
    user = await session.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        raise UserNotInTenantError(tenant_id, user_id)
    if is_privileged(user.role):
        raise PrivilegedUserGrantError(user_id)
    return user


async def _validate_entitlement(
    session: AsyncSession,
    resolver: PermissionResolver,
    tenant_id: str,
    module_type: ModuleType,
) -> None:
    tenant_result = await resolver.evaluate(session, tenant_id, module_type)
    if not (tenant_result.has_access and tenant_result.permissions.can_view):
        raise ModuleNotEntitledError(tenant_id, module_type)


async def set_user_permission(
    session: AsyncSession,
    tenant_id: str,
    user_id: str,
    module_type: ModuleType,
    changes: Mapping[str, bool],
    granted_by: Optional[str],
    notes: Optional[str] = None,
    resolver: Optional[PermissionResolver] = None,
) -> UserModulePermission:
    """
    Create or update a member's capability row for one module.

    Rejects grants for modules the tenant does not have, for users outside
    the tenant and for administrative users. Capabilities missing from
    ``changes`` default to true on a new row and are left alone on an
    existing one.
    """
    _check_keys(changes, USER_CAPABILITIES)
    resolver = resolver or PermissionResolver()

    await _validate_entitlement(session, resolver, tenant_id, module_type)
    await _validate_grantee(session, tenant_id, user_id)

    result = await session.execute(
        select(UserModulePermission).where(
            UserModulePermission.user_id == user_id,
            UserModulePermission.module_type == module_type,
        )
    )
    row = result.scalar_one_or_none()

    if row is None:
        row = UserModulePermission(
            tenant_id=tenant_id,
            user_id=user_id,
            module_type=module_type,
            granted_by=granted_by,
            notes=notes,
            **{cap: bool(changes.get(cap, True)) for cap in USER_CAPABILITIES},
        )
        session.add(row)
    else:
        for cap in USER_CAPABILITIES:
            if cap in changes:
                setattr(row, cap, bool(changes[cap]))
        row.granted_by = granted_by
        row.granted_at = datetime.now(timezone.utc)
        if notes is not None:
            row.notes = notes

    await session.flush()
    logger.info(
        f"User permission set by {granted_by}",
        extra={"tenant_id": tenant_id, "user_id": user_id, "module_type": module_type},
    )
    return row


async def replace_user_permissions(
    session: AsyncSession,
    tenant_id: str,
    user_id: str,
    grants: Mapping[ModuleType, Mapping[str, Any]],
    granted_by: Optional[str],
    resolver: Optional[PermissionResolver] = None,
) -> List[UserModulePermission]:
    """
    Replace every module row of a member in one step.

    Each grant may carry ``notes`` next to its capabilities. All grants are
    validated before the existing rows are deleted.
    """
    resolver = resolver or PermissionResolver()
    await _validate_grantee(session, tenant_id, user_id)
    for module_type, changes in grants.items():
        _check_keys({k: v for k, v in changes.items() if k != "notes"}, USER_CAPABILITIES)
        await _validate_entitlement(session, resolver, tenant_id, module_type)

    await reset_user_permissions(session, tenant_id, user_id)

    rows = []
    for module_type, changes in grants.items():
        row = UserModulePermission(
            tenant_id=tenant_id,
            user_id=user_id,
            module_type=module_type,
            granted_by=granted_by,
            notes=changes.get("notes"),
            **{cap: bool(changes.get(cap, True)) for cap in USER_CAPABILITIES},
        )
        session.add(row)
        rows.append(row)

    await session.flush()
    logger.info(
        f"User permissions replaced: {len(rows)} modules",
        extra={"tenant_id": tenant_id, "user_id": user_id},
    )
    return rows


async def reset_user_permissions(
    session: AsyncSession,
    tenant_id: str,
    user_id: str,
) -> int:
    """Delete all of a member's module rows. Returns how many were removed."""
    result = await session.execute(
        delete(UserModulePermission).where(
            UserModulePermission.tenant_id == tenant_id,
            UserModulePermission.user_id == user_id,
        )
    )
    return result.rowcount


async def list_user_permissions(
    session: AsyncSession,
    tenant_id: str,
    user_id: str,
) -> List[UserModulePermission]:
    result = await session.execute(
        select(UserModulePermission)
        .where(
            UserModulePermission.tenant_id == tenant_id,
            UserModulePermission.user_id == user_id,
        )
        .order_by(UserModulePermission.module_type)
    )
    return list(result.scalars().all())


def grants_from_payload(entries) -> Dict[ModuleType, Dict[str, Any]]:
    """Turn a list of ``UserPermissionGrant`` payloads into the mapping used above."""
    return {
        entry.module_type: entry.model_dump(exclude={"module_type"}, exclude_none=True)
        for entry in entries
    }
