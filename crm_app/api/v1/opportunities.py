"""Opportunity (CRM) API endpoints."""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select

from crm_app.core.dependencies import TenantCtx, TenantContext, DbSession, LimitGuard, require_module
from crm_app.core.enums import ModuleType, OpportunityStatus
from crm_app.core.exceptions import EntitlementError
from crm_app.core.logging import get_logger
from crm_app.models.contact import Contact
from crm_app.models.opportunity import Opportunity
from crm_app.models.user import User
from crm_app.schemas.opportunity import OpportunityCreate, OpportunityResponse


router = APIRouter()
logger = get_logger(__name__)

CrmViewer = Annotated[TenantContext, Depends(require_module(ModuleType.CRM))]


@router.get("", response_model=List[OpportunityResponse])
async def list_opportunities(
    ctx: CrmViewer,
    db: DbSession,
    status_filter: Optional[OpportunityStatus] = Query(None, alias="status"),
):
    """List opportunities of the current tenant."""
    query = select(Opportunity).where(
        Opportunity.tenant_id == ctx.tenant_id,
        Opportunity.deleted_at.is_(None),
    )
    if status_filter is not None:
        query = query.where(Opportunity.status == status_filter)

    result = await db.execute(query.order_by(Opportunity.created_at.desc()))
    return [OpportunityResponse.model_validate(o) for o in result.scalars().all()]


@router.post("", response_model=OpportunityResponse, status_code=status.HTTP_201_CREATED)
async def create_opportunity(
    request: OpportunityCreate,
    ctx: TenantCtx,
    guard: LimitGuard,
):
    """Create an opportunity for one of the tenant's contacts."""
    async def insert_opportunity(session):
        contact = await session.execute(
            select(Contact.id).where(
                Contact.id == request.contact_id,
                Contact.tenant_id == ctx.tenant_id,
                Contact.deleted_at.is_(None),
            )
        )
        if contact.scalar_one_or_none() is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Contact '{request.contact_id}' not found for your tenant.",
            )

        seller_id = request.seller_id or ctx.user_id
        seller = await session.execute(
            select(User.id).where(User.id == seller_id, User.tenant_id == ctx.tenant_id)
        )
        if seller.scalar_one_or_none() is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Seller '{seller_id}' not found for your tenant.",
            )

        opportunity = Opportunity(
            tenant_id=ctx.tenant_id,
            contact_id=request.contact_id,
            seller_id=seller_id,
            title=request.title,
            status=request.status,
            estimated_close_date=request.estimated_close_date,
            notes=request.notes,
        )
        session.add(opportunity)
        return opportunity

    try:
        opportunity = await guard.guarded_create(
            ctx.tenant_id,
            ModuleType.CRM,
            insert_opportunity,
            user_id=ctx.user_id,
            acting_as=ctx.role,
        )
        return OpportunityResponse.model_validate(opportunity)
    except (HTTPException, EntitlementError):
        raise
    except Exception as e:
        logger.exception(f"Error creating opportunity: {e}", extra={"tenant_id": ctx.tenant_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create opportunity",
        )
