# Admin module
from app.modules.admin.models import AuditLog, AdminAction
from app.modules.admin.services import AdminService
from app.modules.admin.router import router

__all__ = ["AuditLog", "AdminAction", "AdminService", "router"]
