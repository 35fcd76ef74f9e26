"""Custom exceptions for the notekeeper storage core.

Provides a structured exception hierarchy with error codes and
machine-readable error information, so a host can map failures onto
whatever result type its transport uses.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001

    # Folder errors (2xxx)
    FOLDER_NOT_FOUND = 2001

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003
    STORAGE_CONNECTION_FAILED = 4004
    SCHEMA_INIT_FAILED = 4005
    MIGRATION_FAILED = 4006
    INDEX_SYNC_FAILED = 4007
    STORE_NOT_INITIALIZED = 4008
    STORE_CLOSED = 4009

    # Search errors (5xxx)
    SEARCH_FAILED = 5001

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    ID_EMPTY = 7002
    ID_TOO_LONG = 7003


class NotekeeperError(Exception):
    """Base exception for all notekeeper errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
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


class ValidationError(NotekeeperError):
    """Raised when caller input is rejected before storage is touched."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class NotFoundError(NotekeeperError):
    """Raised when an operation targets a row that does not exist.

    Only used where absence is not a valid no-op (pin toggling, moving,
    renaming). Deleting a missing row is not an error.
    """

    def __init__(
        self,
        resource: str,
        resource_id: str,
        message: Optional[str] = None,
        code: Optional[ErrorCode] = None
    ):
        if code is None:
            code = (
                ErrorCode.FOLDER_NOT_FOUND
                if resource == "folder"
                else ErrorCode.NOTE_NOT_FOUND
            )
        super().__init__(
            message or f"{resource.capitalize()} with ID '{resource_id}' not found",
            code=code,
            details={"resource": resource, "id": resource_id}
        )
        self.resource = resource
        self.resource_id = resource_id


class StorageError(NotekeeperError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class IndexSyncError(StorageError):
    """Raised when the search index write fails after the primary write.

    The primary row is already committed when this is raised; the search
    index may be stale for the note until the next save or a reindex.
    """

    def __init__(
        self,
        note_id: str,
        original_error: Optional[Exception] = None,
        message: Optional[str] = None
    ):
        super().__init__(
            message or f"Search index update failed for note '{note_id}'",
            operation="index_sync",
            code=ErrorCode.INDEX_SYNC_FAILED,
            original_error=original_error
        )
        self.note_id = note_id
        self.details["note_id"] = note_id


class ConfigurationError(NotekeeperError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
