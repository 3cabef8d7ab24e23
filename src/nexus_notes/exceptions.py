"""Error types raised by the NexusNotes data layer.

Every error carries an ``ErrorCode`` so the MCP layer can log a stable name
next to the human-readable message that is returned to the caller.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Stable identifiers for failures, grouped by what they concern."""

    # Notebooks
    NOTEBOOK_TITLE_REQUIRED = 1001
    NOTEBOOK_CYCLE = 1002

    # Notes
    NOTE_TITLE_REQUIRED = 2001
    NOTE_DATE_INVALID = 2002

    # Tags
    TAG_INVALID = 3001

    # Storage
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_CONNECTION_FAILED = 4004
    STORAGE_INIT_FAILED = 4005
    CONSTRAINT_VIOLATION = 4006


class NexusNotesError(Exception):
    """Base class for NexusNotes errors.

    ``details`` holds whatever identifies the failure (field, id, path,
    underlying cause). Keyword arguments passed as None are left out.
    """

    def __init__(self, message: str, code: ErrorCode, **details: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = {k: v for k, v in details.items() if v is not None}

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.code.name}] {self.message}"
        extra = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"[{self.code.name}] {self.message} ({extra})"

    def to_dict(self) -> Dict[str, Any]:
        """Flat form attached to log records."""
        return {"code": self.code.name, "message": self.message, **self.details}


class ValidationError(NexusNotesError):
    """Input rejected before anything was written."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        field: Optional[str] = None,
        value: Optional[Any] = None,
    ):
        super().__init__(
            message,
            code,
            field=field,
            value=None if value is None else str(value)[:100],
        )
        self.field = field
        self.value = value


class StorageError(NexusNotesError):
    """A database operation failed.

    ``original_error`` keeps the SQLAlchemy or OS exception so callers can
    report the driver's own message.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[BaseException] = None,
        **details: Any,
    ):
        super().__init__(
            message,
            code,
            operation=operation,
            cause=str(original_error)[:200] if original_error else None,
            **details,
        )
        self.operation = operation
        self.original_error = original_error


class StorageInitializationError(StorageError):
    """The data directory or database could not be prepared at start-up."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            operation="open",
            code=ErrorCode.STORAGE_INIT_FAILED,
            original_error=original_error,
            path=path,
        )
        self.path = path
