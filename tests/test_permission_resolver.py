"""Permission resolver tests."""
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_app.core.enums import (
    DenialReason, ModuleAction, ModuleType, PermissionSource, UserRole
)
from crm_app.models.tenant import Tenant
from crm_app.models.user import User
from crm_app.schemas.permission import ModulePermissions, PermissionResult
from crm_app.services.permissions import PermissionResolver, effective_limit
from crm_app.services.plans import assign_plan, set_plan_module, upsert_plan
from crm_app.services.store import EntitlementStore
from crm_app.services.tenants import soft_delete_tenant

from factories import (
    add_contacts, add_override, add_user_permission, add_users, make_tenant
)


class BrokenStore(EntitlementStore):
    """Store whose database is unreachable."""

    async def get_tenant(self, session, tenant_id):
        raise OperationalError("SELECT tenants", {}, Exception("connection refused"))


def assert_fully_denied(result: PermissionResult):
    perms = result.permissions
    assert result.has_access is False
    assert not (perms.can_view or perms.can_create or perms.can_edit or perms.can_delete)
    assert perms.item_limit == 0
    assert perms.is_at_limit is True


def test_effective_limit():
    """An override only ever tightens a numeric limit."""
    assert effective_limit(None, None) is None
    assert effective_limit(5, None) == 5
    assert effective_limit(None, 3) == 3
    assert effective_limit(5, 10) == 5
    assert effective_limit(5, 2) == 2
    assert effective_limit(5, 0) == 0


@pytest.mark.asyncio
async def test_plan_defaults(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    member_user: User,
):
    """Without overrides a member gets full plan rights and live usage."""
    result = await resolver.resolve(
        db_session, test_tenant.id, ModuleType.USERS, user_id=member_user.id
    )

    assert result.has_access is True
    assert result.source == PermissionSource.PLAN
    assert result.denial_reason is None
    perms = result.permissions
    assert perms.can_view and perms.can_create and perms.can_edit and perms.can_delete
    assert perms.item_limit == 5
    assert perms.current_count == 1
    assert perms.is_at_limit is False
    assert perms.is_near_limit is False


@pytest.mark.asyncio
async def test_module_not_in_plan_is_fully_denied(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    starter_tenant: Tenant,
):
    """Starter has no CRM row: full denial with a zero limit."""
    result = await resolver.resolve(db_session, starter_tenant.id, ModuleType.CRM)

    assert_fully_denied(result)
    assert result.source == PermissionSource.DENIED
    assert result.denial_reason == DenialReason.NO_ENTITLEMENT


@pytest.mark.asyncio
async def test_plan_without_module_rows(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    plans,
):
    """A plan with no USERS row reports a zero limit and is at its limit."""
    empty = await upsert_plan(db_session, "Empty")
    await db_session.commit()
    tenant = await make_tenant(db_session, empty, name="Empty Tenant")

    result = await resolver.resolve(db_session, tenant.id, ModuleType.USERS)

    assert_fully_denied(result)
    assert result.permissions.item_limit == 0


@pytest.mark.asyncio
async def test_module_excluded_from_plan(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    plans,
    test_tenant: Tenant,
):
    """A plan row with is_included false denies like a missing row."""
    await set_plan_module(db_session, plans["Standard"].id, ModuleType.CRM, {"is_included": False})
    await db_session.commit()

    result = await resolver.resolve(db_session, test_tenant.id, ModuleType.CRM)

    assert_fully_denied(result)
    assert result.denial_reason == DenialReason.NO_ENTITLEMENT


@pytest.mark.asyncio
async def test_tenant_without_plan(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    plans,
):
    """A tenant with no plan has no modules."""
    tenant = await make_tenant(db_session, None, name="Planless")

    for module_type in ModuleType:
        result = await resolver.resolve(db_session, tenant.id, module_type)
        assert_fully_denied(result)


@pytest.mark.asyncio
async def test_disabled_override_beats_user_grant(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    member_user: User,
):
    """A disabled module stays denied whatever the user row grants."""
    await add_user_permission(db_session, member_user, ModuleType.CRM)
    await add_override(db_session, test_tenant, ModuleType.CRM, is_disabled=True)

    for user_id in (None, member_user.id):
        result = await resolver.resolve(db_session, test_tenant.id, ModuleType.CRM, user_id=user_id)
        assert result.has_access is False
        assert result.source == PermissionSource.TENANT_OVERRIDE
        assert result.denial_reason == DenialReason.TENANT_DISABLED
        assert result.permissions.can_view is False


@pytest.mark.asyncio
async def test_limit_beats_user_grant(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    member_user: User,
):
    """At the limit a user row granting create still cannot create."""
    await add_user_permission(db_session, member_user, ModuleType.USERS, can_create=True)
    await add_users(db_session, test_tenant, 4)

    result = await resolver.resolve(
        db_session, test_tenant.id, ModuleType.USERS, user_id=member_user.id
    )

    assert result.has_access is True
    assert result.source == PermissionSource.USER_OVERRIDE
    assert result.permissions.current_count == 5
    assert result.permissions.is_at_limit is True
    assert result.permissions.can_create is False
    assert result.permissions.can_view is True
    assert result.denial_for(ModuleAction.CREATE) == DenialReason.LIMIT_REACHED


@pytest.mark.asyncio
async def test_user_row_narrows_capabilities(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    member_user: User,
):
    """A row without delete keeps view, create and edit."""
    await add_user_permission(db_session, member_user, ModuleType.CONTACTS, can_delete=False)

    result = await resolver.resolve(
        db_session, test_tenant.id, ModuleType.CONTACTS, user_id=member_user.id
    )

    assert result.source == PermissionSource.USER_OVERRIDE
    assert result.permissions.can_delete is False
    assert result.permissions.can_create is True
    assert result.permissions.can_edit is True
    assert result.permissions.can_view is True
    assert result.denial_for(ModuleAction.DELETE) == DenialReason.USER_PERMISSION


@pytest.mark.asyncio
async def test_user_row_without_view_denies_access(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    member_user: User,
):
    """can_view false on the user row removes the module for that user only."""
    await add_user_permission(db_session, member_user, ModuleType.CONTACTS, can_view=False)

    result = await resolver.resolve(
        db_session, test_tenant.id, ModuleType.CONTACTS, user_id=member_user.id
    )
    tenant_level = await resolver.resolve(db_session, test_tenant.id, ModuleType.CONTACTS)

    assert result.has_access is False
    assert result.denial_reason == DenialReason.USER_PERMISSION
    assert tenant_level.has_access is True


@pytest.mark.asyncio
async def test_privileged_caller_skips_user_rows(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    test_user: User,
):
    """Administrators resolve to plan rights even when a stray row exists."""
    await add_user_permission(db_session, test_user, ModuleType.CONTACTS, can_view=False)

    as_admin = await resolver.resolve(
        db_session,
        test_tenant.id,
        ModuleType.CONTACTS,
        user_id=test_user.id,
        acting_as=UserRole.BUSINESS_ADMIN,
    )
    as_member = await resolver.resolve(
        db_session,
        test_tenant.id,
        ModuleType.CONTACTS,
        user_id=test_user.id,
        acting_as=UserRole.USER,
    )

    assert as_admin.has_access is True
    assert as_admin.source == PermissionSource.PLAN
    assert as_member.has_access is False


@pytest.mark.asyncio
async def test_privileged_caller_still_bound_by_tenant_layers(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    test_user: User,
):
    """The administrative bypass never reaches past the tenant override."""
    await add_override(db_session, test_tenant, ModuleType.CONTACTS, is_disabled=True)

    result = await resolver.resolve(
        db_session,
        test_tenant.id,
        ModuleType.CONTACTS,
        user_id=test_user.id,
        acting_as=UserRole.SUPER_ADMIN,
    )

    assert result.has_access is False
    assert result.denial_reason == DenialReason.TENANT_DISABLED


@pytest.mark.asyncio
async def test_zero_limit_override_is_a_quota(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
):
    """item_limit 0 blocks creates but keeps the module visible."""
    await add_override(db_session, test_tenant, ModuleType.CONTACTS, item_limit=0)

    result = await resolver.resolve(db_session, test_tenant.id, ModuleType.CONTACTS)

    assert result.has_access is True
    assert result.source == PermissionSource.PLAN
    assert result.permissions.can_view is True
    assert result.permissions.can_create is False
    assert result.permissions.item_limit == 0
    assert result.permissions.is_at_limit is True


@pytest.mark.asyncio
async def test_disabled_wins_over_zero_limit(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
):
    """With both set, the module is disabled rather than at quota."""
    await add_override(db_session, test_tenant, ModuleType.CONTACTS, is_disabled=True, item_limit=0)

    result = await resolver.resolve(db_session, test_tenant.id, ModuleType.CONTACTS)

    assert result.has_access is False
    assert result.denial_reason == DenialReason.TENANT_DISABLED


@pytest.mark.asyncio
async def test_override_limit_cannot_exceed_plan(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
):
    """Standard allows 100 contacts; an override of 200 leaves it at 100."""
    await add_override(db_session, test_tenant, ModuleType.CONTACTS, item_limit=200)

    result = await resolver.resolve(db_session, test_tenant.id, ModuleType.CONTACTS)

    assert result.permissions.item_limit == 100


@pytest.mark.asyncio
async def test_override_limit_on_unlimited_plan(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    plans,
):
    """An unlimited plan module takes the override's limit."""
    tenant = await make_tenant(db_session, plans["Enterprise"], name="Big Co")
    await add_contacts(db_session, tenant, 3)
    await add_override(db_session, tenant, ModuleType.CONTACTS, item_limit=3)

    result = await resolver.resolve(db_session, tenant.id, ModuleType.CONTACTS)

    assert result.permissions.item_limit == 3
    assert result.permissions.current_count == 3
    assert result.permissions.is_at_limit is True


@pytest.mark.asyncio
async def test_unlimited_module(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    plans,
):
    """A null limit is never near or at its limit."""
    tenant = await make_tenant(db_session, plans["Enterprise"], name="Big Co")
    await add_contacts(db_session, tenant, 10)

    result = await resolver.resolve(db_session, tenant.id, ModuleType.CONTACTS)

    assert result.permissions.item_limit is None
    assert result.permissions.current_count == 10
    assert result.permissions.is_at_limit is False
    assert result.permissions.is_near_limit is False
    assert result.permissions.can_create is True


@pytest.mark.asyncio
async def test_near_limit_threshold(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
):
    """4 of 5 users is near the limit; 5 of 5 is both near and at it."""
    await add_users(db_session, test_tenant, 4)
    near = await resolver.resolve(db_session, test_tenant.id, ModuleType.USERS)

    assert near.permissions.current_count == 4
    assert near.permissions.is_near_limit is True
    assert near.permissions.is_at_limit is False
    assert near.permissions.can_create is True

    await add_users(db_session, test_tenant, 1)
    full = await resolver.resolve(db_session, test_tenant.id, ModuleType.USERS)

    assert full.permissions.is_at_limit is True
    assert full.permissions.is_near_limit is True
    assert full.permissions.can_create is False


@pytest.mark.asyncio
async def test_deleted_contacts_are_not_counted(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
):
    """Soft-deleted contacts free their slot."""
    contacts = await add_contacts(db_session, test_tenant, 3)
    contacts[0].deleted_at = datetime.now(timezone.utc)
    await db_session.commit()

    result = await resolver.resolve(db_session, test_tenant.id, ModuleType.CONTACTS)

    assert result.permissions.current_count == 2


@pytest.mark.asyncio
async def test_plan_capability_flags_cap_user_rows(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    plans,
    test_tenant: Tenant,
    member_user: User,
):
    """A user row cannot grant what the plan withholds."""
    await set_plan_module(
        db_session, plans["Standard"].id, ModuleType.CONTACTS, {"can_delete": False}
    )
    await db_session.commit()
    await add_user_permission(db_session, member_user, ModuleType.CONTACTS, can_delete=True)

    with_row = await resolver.resolve(
        db_session, test_tenant.id, ModuleType.CONTACTS, user_id=member_user.id
    )
    plan_only = await resolver.resolve(db_session, test_tenant.id, ModuleType.CONTACTS)

    assert with_row.permissions.can_delete is False
    assert plan_only.permissions.can_delete is False
    assert plan_only.permissions.can_edit is True


@pytest.mark.asyncio
async def test_soft_deleted_tenant_is_denied(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
):
    """Every module of a soft-deleted tenant is denied."""
    await soft_delete_tenant(db_session, test_tenant.id)
    await db_session.commit()

    result = await resolver.resolve(db_session, test_tenant.id, ModuleType.USERS)

    assert_fully_denied(result)
    assert result.denial_reason == DenialReason.TENANT_INACTIVE


@pytest.mark.asyncio
async def test_unknown_tenant_is_denied(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    plans,
):
    """A tenant id with no row resolves to an inactive denial."""
    result = await resolver.resolve(db_session, "missing-tenant", ModuleType.USERS)

    assert result.denial_reason == DenialReason.TENANT_INACTIVE


@pytest.mark.asyncio
async def test_store_failure_fails_closed(
    db_session: AsyncSession,
    test_tenant: Tenant,
):
    """resolve denies on a store failure; evaluate lets it propagate."""
    broken = PermissionResolver(BrokenStore())

    result = await broken.resolve(db_session, test_tenant.id, ModuleType.CONTACTS)

    assert_fully_denied(result)
    assert result.denial_reason == DenialReason.STORE_ERROR

    with pytest.raises(OperationalError):
        await broken.evaluate(db_session, test_tenant.id, ModuleType.CONTACTS)


@pytest.mark.asyncio
async def test_available_modules(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    starter_tenant: Tenant,
):
    """Starter lists USERS and CONTACTS only."""
    results = await resolver.available_modules(db_session, starter_tenant.id)

    assert [r.module_type for r in results] == [ModuleType.USERS, ModuleType.CONTACTS]


@pytest.mark.asyncio
async def test_available_modules_hides_user_denied(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    member_user: User,
):
    """A module the member cannot view is left out of their list."""
    await add_user_permission(db_session, member_user, ModuleType.CRM, can_view=False)

    results = await resolver.available_modules(db_session, test_tenant.id, user_id=member_user.id)

    assert ModuleType.CRM not in [r.module_type for r in results]
    assert await resolver.has_module_access(db_session, test_tenant.id, ModuleType.CRM) is True


@pytest.mark.asyncio
async def test_plan_change_applies_on_next_resolve(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    starter_tenant: Tenant,
):
    """Moving a tenant to Standard entitles CRM immediately."""
    before = await resolver.resolve(db_session, starter_tenant.id, ModuleType.CRM)
    await assign_plan(db_session, starter_tenant.id, "Standard")
    await db_session.commit()
    after = await resolver.resolve(db_session, starter_tenant.id, ModuleType.CRM)

    assert before.has_access is False
    assert after.has_access is True
    assert after.permissions.item_limit is None


@pytest.mark.asyncio
async def test_explain_lists_every_layer(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    member_user: User,
):
    """explain returns the raw rows next to the decision."""
    await add_override(db_session, test_tenant, ModuleType.CONTACTS, item_limit=10)
    await add_user_permission(db_session, member_user, ModuleType.CONTACTS, can_edit=False)

    explanation = await resolver.explain(
        db_session, test_tenant.id, ModuleType.CONTACTS, user_id=member_user.id
    )

    assert explanation.tenant_active is True
    assert explanation.plan_id == test_tenant.plan_id
    assert explanation.plan_module.item_limit == 100
    assert explanation.tenant_override.item_limit == 10
    assert explanation.user_permission.can_edit is False
    assert explanation.result.permissions.item_limit == 10
    assert explanation.result.permissions.can_edit is False


def make_result(**kwargs) -> PermissionResult:
    perms = dict(
        can_create=True, can_edit=True, can_delete=True, can_view=True,
        item_limit=None, current_count=0, is_at_limit=False, is_near_limit=False,
    )
    perms.update(kwargs.pop("permissions", {}))
    values = dict(
        module_type=ModuleType.CONTACTS,
        has_access=True,
        source=PermissionSource.PLAN,
        permissions=ModulePermissions(**perms),
    )
    values.update(kwargs)
    return PermissionResult(**values)


def test_denial_for():
    """denial_for names the layer that refused the action."""
    assert make_result().denial_for(ModuleAction.CREATE) is None

    at_limit = make_result(permissions={"can_create": False, "is_at_limit": True})
    assert at_limit.denial_for(ModuleAction.CREATE) == DenialReason.LIMIT_REACHED
    assert at_limit.denial_for(ModuleAction.EDIT) is None

    narrowed = make_result(
        source=PermissionSource.USER_OVERRIDE,
        permissions={"can_delete": False},
    )
    assert narrowed.denial_for(ModuleAction.DELETE) == DenialReason.USER_PERMISSION

    plan_flag = make_result(permissions={"can_edit": False})
    assert plan_flag.denial_for(ModuleAction.EDIT) == DenialReason.NO_ENTITLEMENT

    disabled = make_result(
        has_access=False,
        source=PermissionSource.TENANT_OVERRIDE,
        denial_reason=DenialReason.TENANT_DISABLED,
        permissions={"can_view": False},
    )
    assert disabled.denial_for(ModuleAction.VIEW) == DenialReason.TENANT_DISABLED


@pytest.mark.asyncio
async def test_limit_for(
    db_session: AsyncSession,
    resolver: PermissionResolver,
    test_tenant: Tenant,
    starter_tenant: Tenant,
):
    """Numeric limits only; unlimited, disabled and missing modules give None."""
    assert await resolver.limit_for(db_session, test_tenant.id, ModuleType.USERS) == 5
    assert await resolver.limit_for(db_session, test_tenant.id, ModuleType.CRM) is None
    assert await resolver.limit_for(db_session, starter_tenant.id, ModuleType.CRM) is None
    assert await resolver.limit_for(db_session, "missing", ModuleType.USERS) is None

    await add_override(db_session, test_tenant, ModuleType.CONTACTS, item_limit=20)
    assert await resolver.limit_for(db_session, test_tenant.id, ModuleType.CONTACTS) == 20

    await add_override(db_session, test_tenant, ModuleType.USERS, is_disabled=True)
    assert await resolver.limit_for(db_session, test_tenant.id, ModuleType.USERS) is None
