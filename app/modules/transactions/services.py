from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List
import logging

from app.core.config import settings
from app.core.exceptions import (
    ValidationError, NotFoundError, InvalidTransitionError,
    ConcurrentUpdateError, StorageError
)
from app.core.security import generate_transaction_id, mask_phone
from app.modules.transactions.models import (
    Transaction, Payment, Commission, TransactionStatus, CommissionStatus
)
from app.modules.transactions.schemas import TransactionCreate, PaymentSubmitRequest
from app.modules.users.models import User

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
UNKNOWN_PHONE = "Unknown"

# Target status -> statuses it may be entered from.
# Completed and cancelled are terminal; release and refund out of
# disputed are the admin overrides that settle a dispute.
ALLOWED_TRANSITIONS = {
    TransactionStatus.FUNDED: {TransactionStatus.PENDING_PAYMENT},
    TransactionStatus.DELIVERED: {TransactionStatus.FUNDED},
    TransactionStatus.DISPUTED: {
        TransactionStatus.PENDING_PAYMENT,
        TransactionStatus.FUNDED,
        TransactionStatus.DELIVERED,
    },
    TransactionStatus.COMPLETED: {
        TransactionStatus.FUNDED,
        TransactionStatus.DELIVERED,
        TransactionStatus.DISPUTED,
    },
    TransactionStatus.CANCELLED: {
        TransactionStatus.PENDING_PAYMENT,
        TransactionStatus.FUNDED,
        TransactionStatus.DELIVERED,
        TransactionStatus.DISPUTED,
    },
}


def calculate_fee(amount: Decimal, rate: Optional[Decimal] = None) -> Decimal:
    """Escrow fee: amount x rate, rounded half-up to cents"""
    if rate is None:
        rate = settings.ESCROW_FEE_RATE
    return (Decimal(amount) * Decimal(rate)).quantize(CENT, rounding=ROUND_HALF_UP)


class TransactionService:
    """
    Transaction lifecycle manager.

    Owns status transitions and keeps a transaction, its payments and its
    commission consistent. Payments and commissions reference the
    transaction by ``transaction_id`` only, so every operation that touches
    more than one of them does so inside a single commit.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _generate_reference(self) -> str:
        return generate_transaction_id()

    async def _commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Commit failed")
            raise StorageError(str(e)) from e

    async def _commit_and_refresh(self, txn: Transaction) -> Transaction:
        """Commit whatever the caller staged, even when the status did not change"""
        await self._commit()
        await self.db.refresh(txn)
        return txn

    async def _lookup_buyer_phone(self, buyer_id: str) -> str:
        try:
            user_id = int(buyer_id)
        except (TypeError, ValueError):
            return UNKNOWN_PHONE

        result = await self.db.execute(select(User.phone_number).where(User.id == user_id))
        return result.scalar_one_or_none() or UNKNOWN_PHONE

    async def _reference_exists(self, reference: str) -> bool:
        result = await self.db.execute(
            select(Transaction.id).where(Transaction.transaction_id == reference)
        )
        return result.scalar_one_or_none() is not None

    async def _transition(self, txn: Transaction, target: TransactionStatus) -> bool:
        """
        Compare-and-swap the transaction status.

        Returns False when the transaction is already in ``target``. The
        update only matches if status and version are still what was read,
        so a concurrent writer makes it affect zero rows.
        """
        # The rollback below expires txn
        reference, row_id, version, current = txn.transaction_id, txn.id, txn.version, txn.status
        if current == target:
            return False

        if current not in ALLOWED_TRANSITIONS[target]:
            logger.warning(
                f"Rejected transition {current.value} -> {target.value} for {reference}"
            )
            raise InvalidTransitionError(
                f"Transaction {reference} cannot move from {current.value} to {target.value}"
            )

        result = await self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == row_id,
                Transaction.status == current,
                Transaction.version == version
            )
            .values(
                status=target,
                version=version + 1,
                updated_at=datetime.now(timezone.utc)
            )
            .execution_options(synchronize_session="evaluate")
        )

        if result.rowcount == 0:
            await self.db.rollback()
            logger.warning(f"Concurrent update detected on {reference}")
            raise ConcurrentUpdateError(f"Transaction {reference} was modified concurrently")

        logger.info(f"Transaction {reference}: {current.value} -> {target.value}")
        return True

    # ============================================================
    # Queries
    # ============================================================

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        result = await self.db.execute(
            select(Transaction).where(Transaction.transaction_id == transaction_id)
        )
        return result.scalar_one_or_none()

    async def get_transaction_or_404(self, transaction_id: str) -> Transaction:
        txn = await self.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    async def get_user_transactions(self, buyer_id: str) -> List[Transaction]:
        """All transactions of a buyer, newest first"""
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.buyer_id == buyer_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        return list(result.scalars().all())

    async def get_payments(self, transaction_id: str) -> List[Payment]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.transaction_id == transaction_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        )
        return list(result.scalars().all())

    async def get_commission(self, transaction_id: str) -> Optional[Commission]:
        result = await self.db.execute(
            select(Commission).where(Commission.transaction_id == transaction_id)
        )
        return result.scalar_one_or_none()

    async def get_transaction_detail(self, transaction_id: str) -> dict:
        txn = await self.get_transaction_or_404(transaction_id)
        return {
            "transaction": txn,
            "payments": await self.get_payments(transaction_id),
            "commission": await self.get_commission(transaction_id),
        }

    # ============================================================
    # Buyer operations
    # ============================================================

    async def create_transaction(self, data: TransactionCreate) -> Transaction:
        """Create a transaction together with its pending commission"""
        buyer_id = (data.buyer_id or "").strip()
        seller_phone = (data.seller_phone or "").strip()
        if not buyer_id or not seller_phone or data.amount is None:
            raise ValidationError("buyer_id, seller_phone and amount are required")
        if data.amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        amount = Decimal(data.amount).quantize(CENT)
        fee = calculate_fee(amount)
        buyer_phone = await self._lookup_buyer_phone(buyer_id)

        for attempt in range(1, settings.TRANSACTION_ID_MAX_ATTEMPTS + 1):
            reference = self._generate_reference()
            if await self._reference_exists(reference):
                logger.warning(f"Transaction id {reference} already taken (attempt {attempt})")
                continue

            txn = Transaction(
                transaction_id=reference,
                buyer_id=buyer_id,
                buyer_phone=buyer_phone,
                seller_phone=seller_phone,
                amount=amount,
                fee=fee,
                status=TransactionStatus.PENDING_PAYMENT,
                description=data.description,
                version=1
            )
            commission = Commission(
                transaction_id=reference,
                amount=fee,
                status=CommissionStatus.PENDING,
                destination_number=settings.COMMISSION_DESTINATION
            )
            self.db.add_all([txn, commission])

            try:
                await self.db.commit()
            except IntegrityError:
                # Unique index on transaction_id is the authoritative guard
                await self.db.rollback()
                logger.warning(f"Transaction id {reference} collided on insert (attempt {attempt})")
                continue
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.exception("Failed to create transaction")
                raise StorageError(str(e)) from e

            await self.db.refresh(txn)
            logger.info(
                f"Created transaction {reference} amount={amount} fee={fee} "
                f"seller={mask_phone(seller_phone)}"
            )
            return txn

        raise StorageError("Could not allocate a unique transaction id")

    async def submit_payment(self, data: PaymentSubmitRequest) -> Payment:
        """
        Record a payment reference for admin verification.

        Multiple submissions per transaction are accepted; the status is not
        changed until an admin verifies one of them.
        """
        transaction_id = (data.transaction_id or "").strip()
        reference = (data.momo_reference or "").strip()
        if not transaction_id or not reference:
            raise ValidationError("transaction_id and momo_reference are required")

        await self.get_transaction_or_404(transaction_id)

        payment = Payment(
            transaction_id=transaction_id,
            momo_reference=reference,
            verified=False
        )
        self.db.add(payment)
        await self._commit()
        await self.db.refresh(payment)

        logger.info(f"Payment {payment.id} submitted for {transaction_id}")
        return payment

    async def confirm_delivery(self, transaction_id: str) -> Transaction:
        txn = await self.get_transaction_or_404(transaction_id)
        await self._transition(txn, TransactionStatus.DELIVERED)
        return await self._commit_and_refresh(txn)

    async def open_dispute(self, transaction_id: str) -> Transaction:
        txn = await self.get_transaction_or_404(transaction_id)
        await self._transition(txn, TransactionStatus.DISPUTED)
        return await self._commit_and_refresh(txn)

    # ============================================================
    # Admin operations
    # ============================================================

    async def verify_payment(self, transaction_id: str) -> Transaction:
        """Mark the latest unverified payment verified and fund the transaction"""
        txn = await self.get_transaction_or_404(transaction_id)

        payments = await self.get_payments(transaction_id)
        if not payments:
            raise ValidationError(f"No payment has been submitted for {transaction_id}")
        pending = next((p for p in payments if not p.verified), None)

        await self._transition(txn, TransactionStatus.FUNDED)
        if pending is not None:
            pending.verified = True
            pending.verified_at = datetime.now(timezone.utc)

        return await self._commit_and_refresh(txn)

    async def release_funds(self, transaction_id: str) -> Transaction:
        """Complete the transaction and mark its commission paid"""
        txn = await self.get_transaction_or_404(transaction_id)

        if await self._transition(txn, TransactionStatus.COMPLETED):
            result = await self.db.execute(
                update(Commission)
                .where(Commission.transaction_id == transaction_id)
                .values(status=CommissionStatus.PAID, paid_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session="evaluate")
            )
            if result.rowcount == 0:
                await self.db.rollback()
                logger.error(f"Commission record missing for {transaction_id}")
                raise StorageError(f"Commission record missing for {transaction_id}")

        return await self._commit_and_refresh(txn)

    async def refund(self, transaction_id: str) -> Transaction:
        """Cancel the transaction. The commission is not reversed."""
        txn = await self.get_transaction_or_404(transaction_id)
        await self._transition(txn, TransactionStatus.CANCELLED)
        return await self._commit_and_refresh(txn)

    async def delete_transaction(self, transaction_id: str) -> dict:
        """Delete a transaction with its payments and commission, regardless of status"""
        txn = await self.get_transaction_or_404(transaction_id)

        payments = await self.db.execute(
            delete(Payment).where(Payment.transaction_id == transaction_id)
        )
        commissions = await self.db.execute(
            delete(Commission).where(Commission.transaction_id == transaction_id)
        )
        await self.db.delete(txn)
        await self._commit()

        logger.info(
            f"Deleted transaction {transaction_id} "
            f"({payments.rowcount} payments, {commissions.rowcount} commissions)"
        )
        return {
            "transaction_id": transaction_id,
            "payments_deleted": payments.rowcount,
            "commissions_deleted": commissions.rowcount,
        }
