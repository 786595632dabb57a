"""Application dependencies for dependency injection."""
from typing import Annotated
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select

from crm_app.core.database import get_db, async_session_maker
from crm_app.core.enums import ModuleAction, ModuleType, UserRole
from crm_app.core.security import decode_token, TokenPayload
from crm_app.core.logging import get_logger
from crm_app.models.user import User
from crm_app.models.tenant import Tenant
from crm_app.services.limit_guard import AtomicLimitGuard, KeyedLocks
from crm_app.services.permissions import PermissionResolver


security = HTTPBearer()
logger = get_logger(__name__)

# Stateless; shared by every request in the process
_resolver = PermissionResolver()


async def get_current_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Validate and decode the JWT token from the Authorization header."""
    token = credentials.credentials
    payload = decode_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type. Access token required.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_current_user(
    token: TokenPayload = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get the current authenticated user."""
    result = await db.execute(
        select(User).where(User.id == token.sub)
    )
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive",
        )

    return user


async def validate_tenant(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Tenant:
    """Validate that the user's tenant exists and is alive."""
    if user.tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not assigned to a business account",
        )

    result = await db.execute(
        select(Tenant).where(Tenant.id == user.tenant_id)
    )
    tenant = result.scalar_one_or_none()

    if tenant is None or not tenant.is_alive:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tenant not found or inactive",
        )

    return tenant


class TenantContext:
    """Context object containing tenant-scoped information."""

    def __init__(
        self,
        token: TokenPayload,
        user: User,
        tenant: Tenant,
    ):
        self.token = token
        self.user = user
        self.tenant = tenant
        self.tenant_id = tenant.id
        self.user_id = user.id
        self.role = UserRole(user.role)


async def get_tenant_context(
    token: TokenPayload = Depends(get_current_token),
    user: User = Depends(get_current_user),
    tenant: Tenant = Depends(validate_tenant),
) -> TenantContext:
    """Get the full tenant context for the current request."""
    return TenantContext(token=token, user=user, tenant=tenant)


def get_session_factory() -> async_sessionmaker:
    """Session factory used for scoped transactions outside the request session."""
    return async_session_maker


def get_resolver() -> PermissionResolver:
    return _resolver


def get_limit_guard(
    request: Request,
    resolver: PermissionResolver = Depends(get_resolver),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AtomicLimitGuard:
    locks = getattr(request.app.state, "limit_locks", None)
    if locks is None:
        locks = request.app.state.limit_locks = KeyedLocks()
    return AtomicLimitGuard(resolver=resolver, session_factory=session_factory, locks=locks)


# Type aliases for cleaner dependency injection
CurrentToken = Annotated[TokenPayload, Depends(get_current_token)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentTenant = Annotated[Tenant, Depends(validate_tenant)]
TenantCtx = Annotated[TenantContext, Depends(get_tenant_context)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker, Depends(get_session_factory)]
Resolver = Annotated[PermissionResolver, Depends(get_resolver)]
LimitGuard = Annotated[AtomicLimitGuard, Depends(get_limit_guard)]


def require_role(*roles: UserRole):
    """Dependency factory to require specific roles."""
    async def role_checker(ctx: TenantCtx) -> TenantContext:
        if ctx.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{ctx.role.value}' not authorized. Required: {[r.value for r in roles]}",
            )
        return ctx
    return role_checker


def require_module(module_type: ModuleType, action: ModuleAction = ModuleAction.VIEW):
    """
    Dependency factory gating a route on a module capability.

    Raises AccessDeniedError (mapped to 403) with a stable code when the
    caller's resolved permissions do not allow ``action``.
    """
    async def module_checker(ctx: TenantCtx, guard: LimitGuard) -> TenantContext:
        await guard.authorize(
            ctx.tenant_id,
            module_type,
            action,
            user_id=ctx.user_id,
            acting_as=ctx.role,
        )
        return ctx
    return module_checker


async def require_super_admin(user: CurrentUser) -> User:
    if user.role != UserRole.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform administrator access required",
        )
    return user


SuperAdmin = Annotated[User, Depends(require_super_admin)]
TenantAdmin = Annotated[
    TenantContext,
    Depends(require_role(UserRole.BUSINESS_ADMIN)),
]
