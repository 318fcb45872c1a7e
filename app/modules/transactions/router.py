from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from app.core.database import get_db
from app.modules.transactions.schemas import (
    TransactionCreate, TransactionCreateResponse, TransactionResponse,
    TransactionDetailResponse, PaymentSubmitRequest, SuccessResponse
)
from app.modules.transactions.services import TransactionService

router = APIRouter(prefix="/api", tags=["transactions"])


@router.post("/transactions", response_model=TransactionCreateResponse)
async def create_transaction(
    txn: TransactionCreate,
    db: AsyncSession = Depends(get_db)
):
    """Open an escrow transaction; a 1% commission is recorded alongside it"""
    service = TransactionService(db)
    transaction = await service.create_transaction(txn)
    return {"success": True, "transaction": transaction}


@router.get("/transactions/{user_id}", response_model=List[TransactionResponse])
async def read_user_transactions(
    user_id: str,
    db: AsyncSession = Depends(get_db)
):
    """List a buyer's transactions, newest first"""
    service = TransactionService(db)
    return await service.get_user_transactions(user_id)


@router.get("/transactions/{transaction_id}/detail", response_model=TransactionDetailResponse)
async def read_transaction_detail(
    transaction_id: str,
    db: AsyncSession = Depends(get_db)
):
    service = TransactionService(db)
    return await service.get_transaction_detail(transaction_id)


@router.post("/payments/confirm", response_model=SuccessResponse)
async def submit_payment(
    payment: PaymentSubmitRequest,
    db: AsyncSession = Depends(get_db)
):
    """Submit a mobile-money reference for admin verification"""
    service = TransactionService(db)
    await service.submit_payment(payment)
    return {"success": True, "message": "Payment submitted for verification."}


@router.put("/transactions/{transaction_id}/confirm-delivery", response_model=SuccessResponse)
async def confirm_delivery(
    transaction_id: str,
    db: AsyncSession = Depends(get_db)
):
    service = TransactionService(db)
    await service.confirm_delivery(transaction_id)
    return {"success": True}


@router.put("/transactions/{transaction_id}/dispute", response_model=SuccessResponse)
async def open_dispute(
    transaction_id: str,
    db: AsyncSession = Depends(get_db)
):
    service = TransactionService(db)
    await service.open_dispute(transaction_id)
    return {"success": True}
