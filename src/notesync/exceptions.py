"""Custom exceptions for notesync.

Provides a structured exception hierarchy with error codes so callers can
tell cache faults, network faults and fatal configuration errors apart
without parsing messages.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_VALIDATION_FAILED = 1002

    # Cache errors (4xxx)
    CACHE_FAULT = 4001
    CACHE_NEGATIVE_RESULT = 4002
    CACHE_TIMEOUT = 4003
    CACHE_DATA_NULL = 4004

    # Network errors (5xxx)
    NETWORK_FAULT = 5001
    NETWORK_TIMEOUT = 5002
    NETWORK_DATA_NULL = 5003
    BATCH_SIZE_EXCEEDED = 5004

    # Sync errors (6xxx)
    SYNC_ABORTED = 6001

    # Configuration and dispatch errors (7xxx)
    CONFIG_INVALID = 7001
    INVALID_STATE_EVENT = 7002


class NoteSyncError(Exception):
    """Base exception for all notesync errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CACHE_FAULT,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteValidationError(NoteSyncError):
    """Raised when note data fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=ErrorCode.NOTE_VALIDATION_FAILED, details=details)
        self.field = field
        self.value = value


class CacheError(NoteSyncError):
    """Raised by the local cache when a storage call fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        note_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.CACHE_FAULT,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if note_id:
            details["note_id"] = note_id
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.note_id = note_id
        self.original_error = original_error


class NetworkError(NoteSyncError):
    """Raised by the remote document store or the network adapter."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        code: ErrorCode = ErrorCode.NETWORK_FAULT,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if collection:
            details["collection"] = collection
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.collection = collection
        self.original_error = original_error


class BatchSizeExceededError(NoteSyncError):
    """Raised when a batched network write exceeds the store's ceiling.

    This is a programming/configuration error rather than a transient
    fault: callers must chunk their input, so it is never retried.
    """

    def __init__(self, batch_size: int, limit: int, operation: Optional[str] = None):
        details: Dict[str, Any] = {"batch_size": batch_size, "limit": limit}
        if operation:
            details["operation"] = operation
        super().__init__(
            f"Cannot write more than {limit} notes at a time (got {batch_size})",
            code=ErrorCode.BATCH_SIZE_EXCEEDED,
            details=details,
        )
        self.batch_size = batch_size
        self.limit = limit


class ConfigurationError(NoteSyncError):
    """Raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=ErrorCode.CONFIG_INVALID, details=details)
        self.config_key = config_key
