"""User management API tests."""
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from crm_app.core.enums import ModuleType, UserRole
from crm_app.models.tenant import Tenant
from crm_app.models.user import User
from crm_app.services.usage import UsageCounter

from factories import add_override, add_user_permission, add_users, headers_for, make_user


NEW_USER = {
    "email": "seller@example.com",
    "password": "sellerpass123",
    "full_name": "New Seller",
}


@pytest.mark.asyncio
async def test_create_user(
    client: AsyncClient,
    db_session: AsyncSession,
    test_tenant: Tenant,
    auth_headers: dict,
):
    """Test creating a user within the limit."""
    response = await client.post("/api/v1/users", headers=auth_headers, json=NEW_USER)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "seller@example.com"
    assert data["role"] == "USER"
    assert data["tenant_id"] == test_tenant.id
    assert await UsageCounter().count(db_session, test_tenant.id, ModuleType.USERS) == 2


@pytest.mark.asyncio
async def test_create_user_at_limit(
    client: AsyncClient,
    db_session: AsyncSession,
    test_tenant: Tenant,
    auth_headers: dict,
):
    """The sixth user on Standard gets a structured limit error."""
    await add_users(db_session, test_tenant, 4)

    response = await client.post("/api/v1/users", headers=auth_headers, json=NEW_USER)

    assert response.status_code == 403
    data = response.json()
    assert data["error"] == "USER_LIMIT_REACHED"
    assert data["current_count"] == 5
    assert data["limit"] == 5
    assert data["module_type"] == "USERS"
    assert "5/5" in data["message"]
    assert await UsageCounter().count(db_session, test_tenant.id, ModuleType.USERS) == 5


@pytest.mark.asyncio
async def test_create_user_duplicate_email(
    client: AsyncClient,
    member_user: User,
    auth_headers: dict,
):
    response = await client.post(
        "/api/v1/users",
        headers=auth_headers,
        json={**NEW_USER, "email": "member@example.com"},
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_member_cannot_create_users(client: AsyncClient, member_headers: dict):
    response = await client.post("/api/v1/users", headers=member_headers, json=NEW_USER)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_create_admins(client: AsyncClient, auth_headers: dict):
    """Business administrators may only create ordinary users."""
    response = await client.post(
        "/api/v1/users",
        headers=auth_headers,
        json={**NEW_USER, "role": "BUSINESS_ADMIN"},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_users(
    client: AsyncClient,
    test_user: User,
    member_user: User,
    member_headers: dict,
):
    response = await client.get("/api/v1/users", headers=member_headers)

    assert response.status_code == 200
    emails = sorted(u["email"] for u in response.json())
    assert emails == ["member@example.com", "test@example.com"]


@pytest.mark.asyncio
async def test_list_users_denied_by_user_row(
    client: AsyncClient,
    db_session: AsyncSession,
    member_user: User,
    member_headers: dict,
):
    """A member without view on USERS gets a coded 403."""
    await add_user_permission(db_session, member_user, ModuleType.USERS, can_view=False)

    response = await client.get("/api/v1/users", headers=member_headers)

    assert response.status_code == 403
    assert response.json()["error"] == "PERMISSION_DENIED"


@pytest.mark.asyncio
async def test_list_users_module_disabled(
    client: AsyncClient,
    db_session: AsyncSession,
    test_tenant: Tenant,
    auth_headers: dict,
):
    await add_override(db_session, test_tenant, ModuleType.USERS, is_disabled=True)

    response = await client.get("/api/v1/users", headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["error"] == "MODULE_DISABLED"


@pytest.mark.asyncio
async def test_delete_user_frees_slot(
    client: AsyncClient,
    db_session: AsyncSession,
    test_tenant: Tenant,
    member_user: User,
    auth_headers: dict,
):
    """Deleting a user lowers the count and allows a new create."""
    await add_users(db_session, test_tenant, 3)

    full = await client.post("/api/v1/users", headers=auth_headers, json=NEW_USER)
    assert full.status_code == 403

    response = await client.delete(f"/api/v1/users/{member_user.id}", headers=auth_headers)
    assert response.status_code == 204
    assert await UsageCounter().count(db_session, test_tenant.id, ModuleType.USERS) == 4

    retry = await client.post("/api/v1/users", headers=auth_headers, json=NEW_USER)
    assert retry.status_code == 201


@pytest.mark.asyncio
async def test_delete_self_is_refused(
    client: AsyncClient,
    test_user: User,
    auth_headers: dict,
):
    response = await client.delete(f"/api/v1/users/{test_user.id}", headers=auth_headers)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_unknown_user(client: AsyncClient, auth_headers: dict):
    response = await client.delete("/api/v1/users/does-not-exist", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_set_and_list_user_permissions(
    client: AsyncClient,
    member_user: User,
    auth_headers: dict,
    member_headers: dict,
):
    """A grant narrows the member's resolved permissions."""
    response = await client.put(
        f"/api/v1/users/{member_user.id}/permissions/CONTACTS",
        headers=auth_headers,
        json={"can_delete": False, "notes": "Read and write only"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["module_type"] == "CONTACTS"
    assert data["can_delete"] is False
    assert data["can_view"] is True
    assert data["notes"] == "Read and write only"

    listed = await client.get(f"/api/v1/users/{member_user.id}/permissions", headers=auth_headers)
    assert listed.status_code == 200
    assert len(listed.json()) == 1

    resolved = await client.get("/api/v1/modules/CONTACTS", headers=member_headers)
    assert resolved.json()["source"] == "USER_OVERRIDE"
    assert resolved.json()["permissions"]["can_delete"] is False


@pytest.mark.asyncio
async def test_grant_module_outside_plan(
    client: AsyncClient,
    db_session: AsyncSession,
    starter_tenant: Tenant,
):
    """Granting CRM on Starter is refused with a stable code."""
    owner = await make_user(
        db_session, starter_tenant, UserRole.BUSINESS_ADMIN, email="owner@starter.com"
    )
    seller = await make_user(db_session, starter_tenant, email="seller@starter.com")

    response = await client.put(
        f"/api/v1/users/{seller.id}/permissions/CRM",
        headers=headers_for(owner),
        json={"can_view": True},
    )

    assert response.status_code == 403
    assert response.json()["error"] == "MODULE_NOT_ENTITLED"


@pytest.mark.asyncio
async def test_grant_to_administrator(
    client: AsyncClient,
    test_user: User,
    auth_headers: dict,
):
    response = await client.put(
        f"/api/v1/users/{test_user.id}/permissions/CONTACTS",
        headers=auth_headers,
        json={"can_delete": False},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "PRIVILEGED_USER"


@pytest.mark.asyncio
async def test_replace_and_reset_user_permissions(
    client: AsyncClient,
    member_user: User,
    auth_headers: dict,
):
    """Bulk replace writes exactly the given modules; reset removes them."""
    response = await client.put(
        f"/api/v1/users/{member_user.id}/permissions",
        headers=auth_headers,
        json={
            "permissions": [
                {"module_type": "CONTACTS", "can_delete": False},
                {"module_type": "CRM", "can_create": False, "notes": "Viewer"},
            ]
        },
    )

    assert response.status_code == 200
    assert sorted(r["module_type"] for r in response.json()) == ["CONTACTS", "CRM"]

    reset = await client.delete(f"/api/v1/users/{member_user.id}/permissions", headers=auth_headers)
    assert reset.status_code == 200
    assert reset.json() == {"removed": 2}

    listed = await client.get(f"/api/v1/users/{member_user.id}/permissions", headers=auth_headers)
    assert listed.json() == []
