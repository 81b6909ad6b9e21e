"""
Custom Exception Hierarchy

Provides structured exceptions for consistent error handling across the application.
"""
from decimal import Decimal
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"

    # User / provider errors
    USER_NOT_FOUND = "USER_NOT_FOUND"
    PROVIDER_NOT_APPROVED = "PROVIDER_NOT_APPROVED"

    # Job errors
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_CLOSED = "JOB_CLOSED"
    ALREADY_UNLOCKED = "ALREADY_UNLOCKED"

    # Wallet errors
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INVALID_AMOUNT = "INVALID_AMOUNT"

    # Storage errors
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class ForbiddenException(AppException):
    """Raised when the caller may not act on a resource"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.FORBIDDEN,
            status_code=403,
            details=details
        )


class UserNotFoundError(NotFoundException):
    """Raised when user is not found"""

    def __init__(self, user_id: int):
        super().__init__("User", user_id, error_code=ErrorCode.USER_NOT_FOUND)


class ProviderNotApprovedError(AppException):
    """Raised when a provider without approved status tries to unlock"""

    def __init__(self, provider_id: int, status: str | None = None):
        super().__init__(
            message=f"Provider {provider_id} is not approved",
            error_code=ErrorCode.PROVIDER_NOT_APPROVED,
            status_code=403,
            details={"provider_id": provider_id, "status": status}
        )


class JobException(AppException):
    """Base exception for job-related errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        job_id: int | None = None,
        status_code: int = 400,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        if job_id:
            self.details["job_id"] = job_id


class JobNotFoundError(JobException):
    """Raised when job is not found"""

    def __init__(self, job_id: int):
        super().__init__(
            message=f"Job not found: {job_id}",
            error_code=ErrorCode.JOB_NOT_FOUND,
            job_id=job_id,
            status_code=404
        )


class JobClosedError(JobException):
    """Raised when a job no longer accepts unlocks"""

    def __init__(self, job_id: int, unlock_count: int | None = None, max_unlocks: int | None = None):
        details = {}
        if unlock_count is not None:
            details = {"unlock_count": unlock_count, "max_unlocks": max_unlocks}
        super().__init__(
            message=f"Job {job_id} is closed",
            error_code=ErrorCode.JOB_CLOSED,
            job_id=job_id,
            status_code=409,
            details=details
        )


class AlreadyUnlockedError(JobException):
    """Raised when the provider already unlocked this job"""

    def __init__(self, job_id: int, provider_id: int):
        super().__init__(
            message=f"Provider {provider_id} already unlocked job {job_id}",
            error_code=ErrorCode.ALREADY_UNLOCKED,
            job_id=job_id,
            status_code=409,
            details={"provider_id": provider_id}
        )


class DuplicateUnlockError(Exception):
    """
    UNIQUE(job_id, provider_id) fired inside the ledger store.

    Not an API error by itself: the unlock service reports it as AlreadyUnlockedError.
    """

    def __init__(self, job_id: int, provider_id: int):
        super().__init__(f"Duplicate unlock for job {job_id} by provider {provider_id}")
        self.job_id = job_id
        self.provider_id = provider_id


class WalletException(AppException):
    """Base exception for wallet-related errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        provider_id: int | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if provider_id:
            self.details["provider_id"] = provider_id


class InsufficientBalanceError(WalletException):
    """Raised when wallet balance does not cover the unlock price"""

    def __init__(
        self,
        provider_id: int,
        current_balance: Decimal,
        required_amount: Decimal
    ):
        super().__init__(
            message=f"Insufficient wallet balance for provider {provider_id}",
            error_code=ErrorCode.INSUFFICIENT_BALANCE,
            provider_id=provider_id,
            details={
                "current_balance": float(current_balance),
                "required_amount": float(required_amount),
                "shortfall": float(required_amount - current_balance)
            }
        )


class InvalidAmountError(WalletException):
    """Raised when a monetary amount is out of range"""

    def __init__(self, amount: Decimal, reason: str, provider_id: int | None = None):
        super().__init__(
            message=f"Invalid amount {amount}: {reason}",
            error_code=ErrorCode.INVALID_AMOUNT,
            provider_id=provider_id,
            details={"amount": str(amount), "reason": reason}
        )


class StorageUnavailableError(AppException):
    """
    Raised when the database fails or times out.

    committed:
        False: the write certainly did not commit (safe to retry)
        None: failure during COMMIT, outcome unknown (never retried)
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        committed: bool | None = False
    ):
        super().__init__(
            message=f"Storage unavailable during {operation}",
            error_code=ErrorCode.STORAGE_UNAVAILABLE,
            status_code=503,
            details={"operation": operation, "reason": reason}
        )
        self.operation = operation
        self.committed = committed

    @property
    def retryable(self) -> bool:
        return self.committed is False
