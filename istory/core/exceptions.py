"""Custom exception hierarchy."""

from enum import Enum
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code: int = 500

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def to_payload(self) -> Dict[str, Any]:
        """Body rendered for this error by the API layer."""
        return {"error": self.message}


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    status_code = 400


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""
    status_code = 404


class ForbiddenError(AppError):
    """Raised when the caller does not own the target resource."""
    status_code = 403


class ConflictError(AppError):
    """Raised when a state transition is not allowed."""
    status_code = 409


class StoreErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    SCHEMA_MISSING = "schema_missing"


class StoreError(DatabaseError):
    """Metadata store failure.

    ``SCHEMA_MISSING`` means the backing table has not been migrated yet;
    read paths degrade on it instead of failing.
    """

    def __init__(
        self,
        message: str,
        kind: StoreErrorKind = StoreErrorKind.UNAVAILABLE,
        table: Optional[str] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error)
        self.kind = kind
        self.table = table

    @property
    def schema_missing(self) -> bool:
        return self.kind == StoreErrorKind.SCHEMA_MISSING

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.schema_missing:
            payload["migration_required"] = True
        return payload


class AnalysisErrorKind(str, Enum):
    UPSTREAM_FAILURE = "upstream_failure"
    INVALID_RESPONSE = "invalid_response"


class AnalysisError(AppError):
    """Raised when the LLM call fails or returns unusable output.

    ``reason`` is set for ``INVALID_RESPONSE`` and is one of ``empty``,
    ``truncated`` or ``not_json``.
    """

    def __init__(
        self,
        message: str,
        kind: AnalysisErrorKind,
        reason: Optional[str] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error)
        self.kind = kind
        self.reason = reason


class DispatchRejection(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    EMPTY_CONTENT = "empty_content"
    MISSING_IDENTITY = "missing_identity"
    ALREADY_VERIFIED = "already_verified"
    DISPATCH_IN_PROGRESS = "dispatch_in_progress"


_REJECTION_STATUS = {
    DispatchRejection.NOT_FOUND: 404,
    DispatchRejection.FORBIDDEN: 403,
    DispatchRejection.EMPTY_CONTENT: 400,
    DispatchRejection.MISSING_IDENTITY: 400,
    DispatchRejection.ALREADY_VERIFIED: 409,
    DispatchRejection.DISPATCH_IN_PROGRESS: 409,
}


class DispatchRejectedError(AppError):
    """Raised when a verification dispatch fails a precondition."""

    def __init__(self, message: str, kind: DispatchRejection):
        super().__init__(message)
        self.kind = kind
        self.status_code = _REJECTION_STATUS[kind]


class DispatchQueueError(AppError):
    """Raised when a dispatch job cannot be handed to its queue."""
    pass


class LedgerReadError(APIClientError):
    """Raised when the on-chain metrics record cannot be read."""
    status_code = 502
