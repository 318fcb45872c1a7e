"""
Admin transaction management endpoints.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.dependencies import require_admin
from app.modules.admin.models import AdminAction
from app.modules.admin.schemas import (
    AdminTransactionAction, AdminActionResponse, AdminDeleteResponse, AdminDataResponse
)
from app.modules.admin.services import AdminService
from app.modules.users.models import User

router = APIRouter(tags=["admin-transactions"])


def _client_info(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


@router.get("/data", response_model=AdminDataResponse)
async def get_all_data(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """All transactions, payments and commissions"""
    service = AdminService(db)
    return await service.list_all_data(limit=limit)


@router.put("/verify", response_model=AdminActionResponse)
async def verify_payment(
    data: AdminTransactionAction,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """Mark the submitted payment verified and fund the transaction"""
    service = AdminService(db)
    txn = await service.perform_transaction_action(
        AdminAction.VERIFY_PAYMENT, data.transaction_id, admin, **_client_info(request)
    )
    return {"success": True, "status": txn.status.value}


@router.put("/release", response_model=AdminActionResponse)
async def release_funds(
    data: AdminTransactionAction,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """Complete the transaction and pay out the commission"""
    service = AdminService(db)
    txn = await service.perform_transaction_action(
        AdminAction.RELEASE_FUNDS, data.transaction_id, admin, **_client_info(request)
    )
    return {"success": True, "status": txn.status.value}


@router.put("/refund", response_model=AdminActionResponse)
async def refund(
    data: AdminTransactionAction,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """Cancel the transaction; the commission stays as it is"""
    service = AdminService(db)
    txn = await service.perform_transaction_action(
        AdminAction.REFUND, data.transaction_id, admin, **_client_info(request)
    )
    return {"success": True, "status": txn.status.value}


@router.delete("/delete-payment/{transaction_id}", response_model=AdminDeleteResponse)
async def delete_transaction(
    transaction_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """Delete the transaction with its payments and commission. Irreversible."""
    service = AdminService(db)
    result = await service.perform_transaction_action(
        AdminAction.DELETE_TRANSACTION, transaction_id, admin, **_client_info(request)
    )
    return {"success": True, **result}
