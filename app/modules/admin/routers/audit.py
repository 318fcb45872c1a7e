"""
Admin audit log endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.dependencies import require_admin
from app.modules.admin.schemas import AuditLogFilter, AuditLogListResponse
from app.modules.admin.services import AdminService
from app.modules.users.models import User

router = APIRouter(prefix="/audit-logs", tags=["admin-audit"])


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    action: Optional[str] = None,
    resource_id: Optional[str] = None,
    admin_id: Optional[int] = None,
    success: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """List admin audit logs, newest first"""
    service = AdminService(db)
    filters = AuditLogFilter(
        action=action, resource_id=resource_id, admin_id=admin_id, success=success
    )
    logs, total = await service.get_audit_logs(filters, page=page, page_size=page_size)
    return {
        "logs": logs,
        "total": total,
        "page": page,
        "page_size": page_size
    }
