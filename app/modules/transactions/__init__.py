# Transaction module
from app.modules.transactions.models import (
    Transaction, Payment, Commission,
    TransactionStatus, CommissionStatus
)
from app.modules.transactions.services import TransactionService, calculate_fee
from app.modules.transactions.router import router

__all__ = [
    "Transaction", "Payment", "Commission",
    "TransactionStatus", "CommissionStatus",
    "TransactionService", "calculate_fee", "router"
]
