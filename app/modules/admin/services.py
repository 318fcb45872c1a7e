from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional, List, Tuple
import json
import logging

from app.core.exceptions import EscrowError
from app.modules.admin.models import AuditLog, AdminAction
from app.modules.admin.schemas import AuditLogFilter
from app.modules.transactions.models import Transaction, Payment, Commission, TransactionStatus
from app.modules.transactions.services import TransactionService
from app.modules.users.models import User

logger = logging.getLogger(__name__)

# Status a successful action leaves the transaction in
ACTION_TARGET_STATUS = {
    AdminAction.VERIFY_PAYMENT: TransactionStatus.FUNDED,
    AdminAction.RELEASE_FUNDS: TransactionStatus.COMPLETED,
    AdminAction.REFUND: TransactionStatus.CANCELLED,
}


class AdminService:
    """Service for admin operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # Ledger Overview
    # ============================================================

    async def list_all_data(self, limit: Optional[int] = None) -> dict:
        """
        Transactions (newest first), payments and commissions.

        Unfiltered; ``limit`` caps each collection when given.
        """
        txn_query = select(Transaction).order_by(Transaction.created_at.desc(), Transaction.id.desc())
        payment_query = select(Payment).order_by(Payment.created_at.desc(), Payment.id.desc())
        commission_query = select(Commission).order_by(Commission.id.desc())

        if limit:
            txn_query = txn_query.limit(limit)
            payment_query = payment_query.limit(limit)
            commission_query = commission_query.limit(limit)

        transactions = await self.db.execute(txn_query)
        payments = await self.db.execute(payment_query)
        commissions = await self.db.execute(commission_query)

        return {
            "transactions": list(transactions.scalars().all()),
            "payments": list(payments.scalars().all()),
            "commissions": list(commissions.scalars().all()),
        }

    # ============================================================
    # Transaction Actions
    # ============================================================

    async def perform_transaction_action(
        self,
        action: AdminAction,
        transaction_id: str,
        admin: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ):
        """
        Run a privileged lifecycle operation and record it in the audit log.

        The success entry is staged before the operation runs and is written
        by the operation's own commit. A failed operation rolls it back and a
        failure entry is committed instead.
        """
        service = TransactionService(self.db)
        handlers = {
            AdminAction.VERIFY_PAYMENT: service.verify_payment,
            AdminAction.RELEASE_FUNDS: service.release_funds,
            AdminAction.REFUND: service.refund,
            AdminAction.DELETE_TRANSACTION: service.delete_transaction,
        }

        existing = await service.get_transaction(transaction_id)
        old_values = {"status": existing.status.value} if existing else None
        admin_id, admin_phone = admin.id, admin.phone_number

        target = ACTION_TARGET_STATUS.get(action)
        entry = self._audit_entry(
            admin_id=admin_id,
            admin_phone=admin_phone,
            action=action.value,
            resource_id=transaction_id,
            description=f"{action.value} on {transaction_id}",
            old_values=old_values,
            new_values={"status": target.value} if target else None,
            ip_address=ip_address,
            user_agent=user_agent
        )
        self.db.add(entry)

        try:
            result = await handlers[action](transaction_id)
        except EscrowError as e:
            await self.db.rollback()
            logger.warning(f"Admin {admin_id} {action.value} on {transaction_id} failed: {e.message}")
            await self.log_action(
                admin_id=admin_id,
                admin_phone=admin_phone,
                action=action.value,
                resource_id=transaction_id,
                old_values=old_values,
                success=False,
                error_message=e.message,
                ip_address=ip_address,
                user_agent=user_agent
            )
            raise

        return result

    # ============================================================
    # Audit Logging
    # ============================================================

    def _audit_entry(
        self,
        admin_id: Optional[int],
        admin_phone: Optional[str],
        action: str,
        resource_type: str = "transaction",
        resource_id: Optional[str] = None,
        description: Optional[str] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> AuditLog:
        return AuditLog(
            admin_id=admin_id,
            admin_phone=admin_phone,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            old_values=json.dumps(old_values) if old_values else None,
            new_values=json.dumps(new_values) if new_values else None,
            success=success,
            error_message=error_message,
            ip_address=ip_address,
            user_agent=user_agent
        )

    async def log_action(self, **kwargs) -> AuditLog:
        """Log an admin action"""
        log = self._audit_entry(**kwargs)

        self.db.add(log)
        await self.db.commit()

        return log

    async def get_audit_logs(
        self,
        filters: Optional[AuditLogFilter] = None,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[AuditLog], int]:
        """Get audit logs with filtering"""
        query = select(AuditLog)

        if filters:
            if filters.admin_id:
                query = query.where(AuditLog.admin_id == filters.admin_id)
            if filters.action:
                query = query.where(AuditLog.action == filters.action)
            if filters.resource_id:
                query = query.where(AuditLog.resource_id == filters.resource_id)
            if filters.success is not None:
                query = query.where(AuditLog.success == filters.success)

        # Count
        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.db.execute(count_query)
        total = total_result.scalar()

        # Paginate
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        logs = list(result.scalars().all())

        return logs, total
