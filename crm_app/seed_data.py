"""Seed data script: default plans, a platform admin and a demo tenant."""
import asyncio

from sqlalchemy import select

from crm_app.core.database import engine, Base, transaction
from crm_app.core.security import get_password_hash
from crm_app.core.enums import ContactStatus, ModuleType, UserRole
from crm_app.models.contact import Contact
from crm_app.models.tenant import Tenant
from crm_app.models.user import User
from crm_app.services.plans import ensure_default_plans
from crm_app.services.tenants import create_tenant
from crm_app.services.usage import UsageCounter


async def seed_data():
    """Seed initial data for local development."""
    async with transaction() as session:
        plans = await ensure_default_plans(session)
        print(f"Plans available: {', '.join(p.name for p in plans)}")

        # Check if data already exists
        result = await session.execute(select(Tenant).limit(1))
        if result.scalar_one_or_none():
            print("Tenants already seeded. Skipping...")
            return

        session.add(User(
            tenant_id=None,
            email="root@platform.local",
            hashed_password=get_password_hash("root12345"),
            full_name="Platform Admin",
            role=UserRole.SUPER_ADMIN,
        ))

        tenant, admin = await create_tenant(
            session,
            name="Demo Sales Co",
            admin_email="admin@demo.com",
            admin_password="admin12345",
            plan_name="Standard",
            admin_full_name="Demo Admin",
        )
        print(f"Created tenant: {tenant.name} (ID: {tenant.id})")

        session.add(User(
            tenant_id=tenant.id,
            email="seller@demo.com",
            hashed_password=get_password_hash("seller12345"),
            full_name="Demo Seller",
            role=UserRole.USER,
        ))

        for name in ("Acme Corp", "Globex", "Initech"):
            session.add(Contact(
                tenant_id=tenant.id,
                owner_id=admin.id,
                name=name,
                status=ContactStatus.ACTIVE,
            ))
        await session.flush()

        counter = UsageCounter()
        for module_type in ModuleType:
            await counter.refresh(session, tenant.id, module_type)

    print("\nSeed data created successfully!")
    print("\nTest Credentials:")
    print("   Platform: root@platform.local / root12345")
    print("   Admin:    admin@demo.com / admin12345")
    print("   Seller:   seller@demo.com / seller12345")


async def main():
    """Main entry point."""
    # Create tables if they don't exist (for local development)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await seed_data()


if __name__ == "__main__":
    asyncio.run(main())
