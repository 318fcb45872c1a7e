"""
Admin module sub-routers organized by domain.
"""
from fastapi import APIRouter

from app.modules.admin.routers.transactions import router as transactions_router
from app.modules.admin.routers.audit import router as audit_router

# Main admin router
router = APIRouter(prefix="/api/admin", tags=["admin"])

# Include all sub-routers
router.include_router(transactions_router)
router.include_router(audit_router)
