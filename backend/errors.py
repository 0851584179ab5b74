"""Application errors. Each carries the HTTP status the API layer responds with."""
from typing import Optional


class AppError(Exception):
    """Base exception for all Business Advisor errors."""

    status_code = 500
    code: Optional[str] = None

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(AppError):
    """Raised when inbound data fails a schema or range check."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    """Raised when a business, record or advice row does not exist."""
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    """Raised on duplicate unique keys and illegal status transitions."""
    status_code = 409
    code = "CONFLICT"


class StorageError(AppError):
    """Raised when the document store cannot write or remove a blob."""
    status_code = 500
    code = "STORAGE_ERROR"
