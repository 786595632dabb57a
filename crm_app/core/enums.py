"""Enum definitions for the application."""
from enum import Enum


class UserRole(str, Enum):
    """User role options."""
    SUPER_ADMIN = "SUPER_ADMIN"
    BUSINESS_ADMIN = "BUSINESS_ADMIN"
    USER = "USER"


class ModuleType(str, Enum):
    """Feature areas that can be entitled, disabled and limited per tenant."""
    USERS = "USERS"
    CONTACTS = "CONTACTS"
    CRM = "CRM"

    @property
    def display_name(self) -> str:
        return _MODULE_NAMES[self]

    @property
    def limit_error_code(self) -> str:
        """Stable error code returned when the module's quota is exhausted."""
        return _LIMIT_ERROR_CODES[self]


_MODULE_NAMES = {
    ModuleType.USERS: "Users",
    ModuleType.CONTACTS: "Contacts",
    ModuleType.CRM: "CRM",
}

_LIMIT_ERROR_CODES = {
    ModuleType.USERS: "USER_LIMIT_REACHED",
    ModuleType.CONTACTS: "CONTACT_LIMIT_REACHED",
    ModuleType.CRM: "OPPORTUNITY_LIMIT_REACHED",
}


class ModuleAction(str, Enum):
    """Capabilities checked against a module."""
    VIEW = "VIEW"
    CREATE = "CREATE"
    EDIT = "EDIT"
    DELETE = "DELETE"


class PermissionSource(str, Enum):
    """Layer that produced a permission decision."""
    PLAN = "PLAN"
    TENANT_OVERRIDE = "TENANT_OVERRIDE"
    USER_OVERRIDE = "USER_OVERRIDE"
    DENIED = "DENIED"


class DenialReason(str, Enum):
    """Why an action on a module was refused."""
    NO_ENTITLEMENT = "NO_ENTITLEMENT"
    TENANT_INACTIVE = "TENANT_INACTIVE"
    TENANT_DISABLED = "TENANT_DISABLED"
    LIMIT_REACHED = "LIMIT_REACHED"
    USER_PERMISSION = "USER_PERMISSION"
    STORE_ERROR = "STORE_ERROR"


class ContactStatus(str, Enum):
    """Contact (company) status options."""
    LEAD = "LEAD"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BLOCKED = "BLOCKED"


class OpportunityStatus(str, Enum):
    """Sales pipeline stages."""
    NEW = "NEW"
    QUALIFYING = "QUALIFYING"
    PROPOSAL = "PROPOSAL"
    NEGOTIATION = "NEGOTIATION"
    WON = "WON"
    LOST = "LOST"
    ON_HOLD = "ON_HOLD"
