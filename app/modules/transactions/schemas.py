from pydantic import BaseModel, Field, PlainSerializer, validator
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional, List

from app.modules.transactions.models import TransactionStatus, CommissionStatus

# Amounts go out as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class TransactionCreate(BaseModel):
    buyer_id: str
    seller_phone: str = Field(..., max_length=20)
    amount: Decimal = Field(..., max_digits=15, decimal_places=2)
    description: Optional[str] = None

    @validator('buyer_id', pre=True)
    def buyer_id_as_string(cls, v):
        """Login returns the numeric user id; store it in its string form"""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class TransactionResponse(BaseModel):
    id: int
    transaction_id: str
    buyer_id: Optional[str]
    buyer_phone: str
    seller_phone: str
    amount: Money
    fee: Money
    status: TransactionStatus
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class TransactionCreateResponse(BaseModel):
    success: bool = True
    transaction: TransactionResponse


class PaymentSubmitRequest(BaseModel):
    transaction_id: str
    momo_reference: str = Field(..., max_length=100)


class PaymentResponse(BaseModel):
    id: int
    transaction_id: str
    momo_reference: str
    verified: bool
    verified_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class CommissionResponse(BaseModel):
    id: int
    transaction_id: str
    amount: Money
    status: CommissionStatus
    destination_number: str
    paid_at: Optional[datetime]

    class Config:
        from_attributes = True


class TransactionDetailResponse(BaseModel):
    transaction: TransactionResponse
    payments: List[PaymentResponse]
    commission: Optional[CommissionResponse]


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
