from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from app.core.config import settings
from app.core.database import Base
import enum


class TransactionStatus(str, enum.Enum):
    """Escrow transaction status"""
    PENDING_PAYMENT = "pending_payment"
    FUNDED = "funded"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class Transaction(Base):
    """Escrow transaction, the aggregate root for payments and commission"""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(20), unique=True, index=True, nullable=False)

    # Parties
    buyer_id = Column(String(64), index=True, nullable=True)
    buyer_phone = Column(String(20), nullable=False, default="Unknown")  # Snapshot at creation
    seller_phone = Column(String(20), nullable=False)

    # Amounts
    amount = Column(Numeric(15, 2), nullable=False)
    fee = Column(Numeric(15, 2), nullable=False)

    status = Column(SQLEnum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING_PAYMENT, index=True)
    description = Column(Text, nullable=True)

    # Bumped on every status change, used for compare-and-swap updates
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Transaction(transaction_id={self.transaction_id}, status={self.status})>"


class Payment(Base):
    """Mobile-money payment submitted by the buyer, awaiting admin verification"""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(20), index=True, nullable=False)  # Not unique
    momo_reference = Column(String(100), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Commission(Base):
    """Operator fee for a transaction"""
    __tablename__ = "commissions"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(20), unique=True, index=True, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    status = Column(SQLEnum(CommissionStatus), nullable=False, default=CommissionStatus.PENDING)
    destination_number = Column(String(20), nullable=False, default=lambda: settings.COMMISSION_DESTINATION)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
