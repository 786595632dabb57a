"""Role hierarchy helpers."""
from typing import FrozenSet, Optional

from crm_app.core.enums import UserRole


# Each role may assign or manage the roles listed for it
ROLE_HIERARCHY = {
    UserRole.SUPER_ADMIN: frozenset({UserRole.BUSINESS_ADMIN, UserRole.USER}),
    UserRole.BUSINESS_ADMIN: frozenset({UserRole.USER}),
    UserRole.USER: frozenset(),
}

PRIVILEGED_ROLES: FrozenSet[UserRole] = frozenset({UserRole.SUPER_ADMIN, UserRole.BUSINESS_ADMIN})


def is_privileged(role: Optional[UserRole]) -> bool:
    """Administrative roles resolve to plan-level rights and skip user overrides."""
    return role in PRIVILEGED_ROLES


def assignable_roles(role: UserRole) -> FrozenSet[UserRole]:
    return ROLE_HIERARCHY.get(role, frozenset())


def can_assign_role(actor: UserRole, target: UserRole) -> bool:
    return target in assignable_roles(actor)
