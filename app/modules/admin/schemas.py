from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List

from app.modules.transactions.schemas import (
    TransactionResponse, PaymentResponse, CommissionResponse
)


# ============================================================
# Transaction Actions
# ============================================================

class AdminTransactionAction(BaseModel):
    transaction_id: str


class AdminActionResponse(BaseModel):
    success: bool = True
    status: Optional[str] = None


class AdminDeleteResponse(BaseModel):
    success: bool = True
    transaction_id: str
    payments_deleted: int
    commissions_deleted: int


class AdminDataResponse(BaseModel):
    """Everything in the ledger, for the admin dashboard"""
    transactions: List[TransactionResponse]
    payments: List[PaymentResponse]
    commissions: List[CommissionResponse]


# ============================================================
# Audit Log Schemas
# ============================================================

class AuditLogFilter(BaseModel):
    action: Optional[str] = None
    resource_id: Optional[str] = None
    admin_id: Optional[int] = None
    success: Optional[bool] = None


class AuditLogResponse(BaseModel):
    id: int
    admin_id: Optional[int]
    admin_phone: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    description: Optional[str]
    old_values: Optional[str]
    new_values: Optional[str]
    success: bool
    error_message: Optional[str]
    ip_address: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
