"""
Entitlement exceptions.

Ordinary denials are returned by the resolver as values. These exceptions
cover the paths that must abort: guarded creates, non-create authorization,
override-layer validation and persistence faults.
"""
from typing import Optional

from crm_app.core.enums import DenialReason, ModuleType


class EntitlementError(Exception):
    """Base exception for entitlement operations"""

    status_code = 400

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "ENTITLEMENT_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        body.update(self.details)
        return body


_DENIAL_CODES = {
    DenialReason.NO_ENTITLEMENT: "MODULE_NOT_IN_PLAN",
    DenialReason.TENANT_INACTIVE: "ACCOUNT_INACTIVE",
    DenialReason.TENANT_DISABLED: "MODULE_DISABLED",
    DenialReason.USER_PERMISSION: "PERMISSION_DENIED",
    DenialReason.STORE_ERROR: "PERMISSION_CHECK_FAILED",
}


def denial_code(reason: DenialReason, module_type: ModuleType) -> str:
    """Stable client-facing code for a denial reason."""
    if reason == DenialReason.LIMIT_REACHED:
        return module_type.limit_error_code
    return _DENIAL_CODES[reason]


class AccessDeniedError(EntitlementError):
    """Raised when an action on a module is refused"""

    status_code = 403

    def __init__(self, reason: DenialReason, module_type: ModuleType, message: str, **kwargs):
        super().__init__(message, code=denial_code(reason, module_type), **kwargs)
        self.reason = reason
        self.module_type = module_type
        self.details.setdefault("module_type", module_type.value)


class LimitDeniedError(AccessDeniedError):
    """Raised by a guarded create that may not proceed"""

    def __init__(
        self,
        reason: DenialReason,
        module_type: ModuleType,
        current_count: int,
        limit: Optional[int],
        message: str,
    ):
        super().__init__(
            reason,
            module_type,
            message,
            details={"current_count": current_count, "limit": limit},
        )
        self.current_count = current_count
        self.limit = limit


class OverrideValidationError(EntitlementError):
    """Raised when an override write is rejected"""

    def __init__(self, message: str, code: str = None, **kwargs):
        super().__init__(message, code=code or "INVALID_OVERRIDE", **kwargs)


class ModuleNotEntitledError(OverrideValidationError):
    """Raised when granting a module the tenant itself does not have"""

    status_code = 403

    def __init__(self, tenant_id: str, module_type: ModuleType):
        super().__init__(
            f"Tenant does not have access to module: {module_type.value}",
            code="MODULE_NOT_ENTITLED",
            details={"module_type": module_type.value},
        )
        self.tenant_id = tenant_id
        self.module_type = module_type


class UserNotInTenantError(OverrideValidationError):
    """Raised when the grantee does not belong to the tenant"""

    def __init__(self, tenant_id: str, user_id: str):
        super().__init__(
            "User not found or does not belong to business account",
            code="USER_NOT_IN_TENANT",
        )
        self.tenant_id = tenant_id
        self.user_id = user_id


class PrivilegedUserGrantError(OverrideValidationError):
    """Raised when per-module rows are written for an administrative user"""

    def __init__(self, user_id: str):
        super().__init__(
            "Administrative users always hold full plan rights and cannot carry module permissions",
            code="PRIVILEGED_USER",
        )
        self.user_id = user_id


class TenantNotFoundError(OverrideValidationError):
    """Raised when the target tenant does not exist"""

    status_code = 404

    def __init__(self, tenant_id: str):
        super().__init__(f"Tenant not found: {tenant_id}", code="TENANT_NOT_FOUND")
        self.tenant_id = tenant_id


class PlanNotFoundError(EntitlementError):
    """Raised when a plan lookup by id or name fails"""

    status_code = 404

    def __init__(self, plan_ref: str):
        super().__init__(f"Plan not found: {plan_ref}", code="PLAN_NOT_FOUND")
        self.plan_ref = plan_ref


class StoreError(EntitlementError):
    """Raised when the persistence layer fails during a guarded operation"""

    status_code = 503

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="STORE_ERROR", **kwargs)
