"""User management and per-user module permission endpoints."""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, delete

from crm_app.core.dependencies import (
    TenantAdmin, TenantContext, DbSession, LimitGuard, Resolver, require_module
)
from crm_app.core.enums import ModuleAction, ModuleType
from crm_app.core.logging import get_logger
from crm_app.core.roles import can_assign_role
from crm_app.core.security import get_password_hash
from crm_app.models.user import User
from crm_app.schemas.user import UserResponse
from crm_app.schemas.override import UserPermissionUpdate, UserPermissionsReplace, UserPermissionResponse
from crm_app.schemas.user import UserCreate
from crm_app.services import overrides


router = APIRouter()
logger = get_logger(__name__)

UsersViewer = Annotated[TenantContext, Depends(require_module(ModuleType.USERS))]
UsersRemover = Annotated[
    TenantContext, Depends(require_module(ModuleType.USERS, ModuleAction.DELETE))
]


@router.get("", response_model=List[UserResponse])
async def list_users(
    ctx: UsersViewer,
    db: DbSession,
):
    """List users of the current tenant."""
    result = await db.execute(
        select(User)
        .where(User.tenant_id == ctx.tenant_id)
        .order_by(User.created_at)
    )
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: UserCreate,
    ctx: TenantAdmin,
    guard: LimitGuard,
):
    """Create a user, subject to the tenant's USERS limit."""
    if not can_assign_role(ctx.role, request.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{ctx.role.value}' cannot create '{request.role.value}' users",
        )

    email = request.email.lower()

    async def insert_user(session):
        existing = await session.execute(
            select(User.id).where(User.tenant_id == ctx.tenant_id, User.email == email)
        )
        if existing.scalar_one_or_none() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A user with this email already exists",
            )
        user = User(
            tenant_id=ctx.tenant_id,
            email=email,
            hashed_password=get_password_hash(request.password),
            full_name=request.full_name,
            phone=request.phone,
            role=request.role,
            is_active=True,
        )
        session.add(user)
        return user

    user = await guard.guarded_create(
        ctx.tenant_id,
        ModuleType.USERS,
        insert_user,
        user_id=ctx.user_id,
        acting_as=ctx.role,
    )
    logger.info(f"User created: {user.id}", extra={"tenant_id": ctx.tenant_id, "user_id": ctx.user_id})
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    ctx: UsersRemover,
    admin: TenantAdmin,
    db: DbSession,
    resolver: Resolver,
):
    """Delete a user of the current tenant. Frees a USERS slot."""
    if user_id == ctx.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )

    result = await db.execute(
        select(User).where(User.id == user_id, User.tenant_id == ctx.tenant_id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    if not can_assign_role(ctx.role, user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot delete a user with this role",
        )

    await overrides.reset_user_permissions(db, ctx.tenant_id, user_id)
    await db.execute(delete(User).where(User.id == user_id))
    await resolver.store.counter.refresh(db, ctx.tenant_id, ModuleType.USERS)
    await db.commit()
    logger.info(f"User deleted: {user_id}", extra={"tenant_id": ctx.tenant_id, "user_id": ctx.user_id})


@router.get("/{user_id}/permissions", response_model=List[UserPermissionResponse])
async def list_user_permissions(
    user_id: str,
    ctx: TenantAdmin,
    db: DbSession,
):
    """Module permission rows of a member."""
    rows = await overrides.list_user_permissions(db, ctx.tenant_id, user_id)
    return [UserPermissionResponse.model_validate(r) for r in rows]


@router.put("/{user_id}/permissions", response_model=List[UserPermissionResponse])
async def replace_user_permissions(
    user_id: str,
    request: UserPermissionsReplace,
    ctx: TenantAdmin,
    db: DbSession,
    resolver: Resolver,
):
    """Replace all module permission rows of a member."""
    rows = await overrides.replace_user_permissions(
        db,
        ctx.tenant_id,
        user_id,
        overrides.grants_from_payload(request.permissions),
        granted_by=ctx.user_id,
        resolver=resolver,
    )
    await db.commit()
    return [UserPermissionResponse.model_validate(r) for r in rows]


@router.delete("/{user_id}/permissions")
async def reset_user_permissions(
    user_id: str,
    ctx: TenantAdmin,
    db: DbSession,
):
    """Drop every module permission row of a member, back to plan defaults."""
    removed = await overrides.reset_user_permissions(db, ctx.tenant_id, user_id)
    await db.commit()
    return {"removed": removed}


@router.put("/{user_id}/permissions/{module_type}", response_model=UserPermissionResponse)
async def set_user_permission(
    user_id: str,
    module_type: ModuleType,
    request: UserPermissionUpdate,
    ctx: TenantAdmin,
    db: DbSession,
    resolver: Resolver,
):
    """Grant or narrow one module for a member."""
    row = await overrides.set_user_permission(
        db,
        ctx.tenant_id,
        user_id,
        module_type,
        request.model_dump(exclude={"notes"}, exclude_none=True),
        granted_by=ctx.user_id,
        notes=request.notes,
        resolver=resolver,
    )
    await db.commit()
    return UserPermissionResponse.model_validate(row)
