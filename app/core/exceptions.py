"""
Error taxonomy shared by the services.

Every exception carries the HTTP status it maps to; the handlers registered in
main.py render them as ``{"success": false, "error": ...}``.
"""
from fastapi import status


class EscrowError(Exception):
    """Base exception for escrow errors."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Request could not be completed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(EscrowError):
    """Missing or invalid input."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(EscrowError):
    """Duplicate unique key, e.g. a phone number already registered."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Record already exists"


class AuthError(EscrowError):
    """Bad credentials."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials."


class NotFoundError(EscrowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidTransitionError(EscrowError):
    """Raised when a status change is not allowed from the current status."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Status change not allowed"


class ConcurrentUpdateError(InvalidTransitionError):
    """Raised when another writer changed the transaction first."""
    default_message = "Transaction was modified concurrently, please retry"


class StorageError(EscrowError):
    """Underlying persistence failure."""
    default_message = "Database error"
