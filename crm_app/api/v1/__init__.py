"""API v1 router."""
from fastapi import APIRouter

from crm_app.api.v1.auth import router as auth_router
from crm_app.api.v1.modules import router as modules_router
from crm_app.api.v1.users import router as users_router
from crm_app.api.v1.contacts import router as contacts_router
from crm_app.api.v1.opportunities import router as opportunities_router
from crm_app.api.v1.overrides import router as overrides_router
from crm_app.api.v1.admin import router as admin_router


router = APIRouter(prefix="/v1")

router.include_router(auth_router, prefix="/auth", tags=["Authentication"])
router.include_router(modules_router, prefix="/modules", tags=["Modules"])
router.include_router(users_router, prefix="/users", tags=["Users"])
router.include_router(contacts_router, prefix="/contacts", tags=["Contacts"])
router.include_router(opportunities_router, prefix="/opportunities", tags=["Opportunities"])
router.include_router(overrides_router, prefix="/overrides", tags=["Tenant Overrides"])
router.include_router(admin_router, prefix="/admin", tags=["Administration"])
