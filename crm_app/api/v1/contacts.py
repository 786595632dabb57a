"""Contact (company) API endpoints."""
from datetime import datetime, timezone
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select

from crm_app.core.dependencies import (
    TenantCtx, TenantContext, DbSession, LimitGuard, Resolver, require_module
)
from crm_app.core.enums import ModuleAction, ModuleType
from crm_app.core.exceptions import EntitlementError
from crm_app.core.logging import get_logger
from crm_app.models.contact import Contact
from crm_app.schemas.contact import ContactCreate, ContactResponse


router = APIRouter()
logger = get_logger(__name__)

ContactsViewer = Annotated[TenantContext, Depends(require_module(ModuleType.CONTACTS))]
ContactsRemover = Annotated[
    TenantContext, Depends(require_module(ModuleType.CONTACTS, ModuleAction.DELETE))
]


@router.get("", response_model=List[ContactResponse])
async def list_contacts(
    ctx: ContactsViewer,
    db: DbSession,
):
    """List live contacts of the current tenant."""
    result = await db.execute(
        select(Contact)
        .where(
            Contact.tenant_id == ctx.tenant_id,
            Contact.deleted_at.is_(None),
        )
        .order_by(Contact.name)
    )
    return [ContactResponse.model_validate(c) for c in result.scalars().all()]


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    request: ContactCreate,
    ctx: TenantCtx,
    guard: LimitGuard,
):
    """Create a contact, subject to the tenant's CONTACTS limit."""
    async def insert_contact(session):
        contact = Contact(
            tenant_id=ctx.tenant_id,
            owner_id=ctx.user_id,
            **request.model_dump(),
        )
        session.add(contact)
        return contact

    try:
        contact = await guard.guarded_create(
            ctx.tenant_id,
            ModuleType.CONTACTS,
            insert_contact,
            user_id=ctx.user_id,
            acting_as=ctx.role,
        )
        return ContactResponse.model_validate(contact)
    except (HTTPException, EntitlementError):
        raise
    except Exception as e:
        logger.exception(f"Error creating contact: {e}", extra={"tenant_id": ctx.tenant_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create contact",
        )


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: str,
    ctx: ContactsRemover,
    db: DbSession,
    resolver: Resolver,
):
    """Soft-delete a contact. Deleted contacts no longer count toward the limit."""
    result = await db.execute(
        select(Contact).where(
            Contact.id == contact_id,
            Contact.tenant_id == ctx.tenant_id,
            Contact.deleted_at.is_(None),
        )
    )
    contact = result.scalar_one_or_none()
    if contact is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contact not found",
        )

    contact.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    await resolver.store.counter.refresh(db, ctx.tenant_id, ModuleType.CONTACTS)
    await db.commit()
