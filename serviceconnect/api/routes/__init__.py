"""
API Routes
"""
from fastapi import APIRouter

from serviceconnect.api.routes.jobs import router as jobs_router
from serviceconnect.api.routes.users import router as users_router
from serviceconnect.api.routes.wallets import router as wallets_router
from serviceconnect.api.routes.admin import router as admin_router

router = APIRouter()

router.include_router(jobs_router, prefix="/jobs", tags=["jobs"])
router.include_router(users_router, prefix="/users", tags=["users"])
router.include_router(wallets_router, prefix="/wallets", tags=["wallets"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
