"""
Custom exceptions for the grade export pipeline with structured error context.

Each exception carries context information for debugging and for the
per-record error reporting of an export run.

Exception Hierarchy:
    GradeExportException (base)
    ├── PersistenceError
    ├── SinkError
    │   ├── SinkImportError
    │   ├── SinkTimeout
    │   └── SinkConnectionError
    ├── DataConsistencyError
    └── QueryNotFoundError

Expected "nothing to do" states (a query whose grade item was deleted, a
course with no gradable users) are represented as None results and are
never raised.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class GradeExportException(Exception):
    """
    Base exception for all grade export errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (query id, user id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Persistence Errors
# ============================================================================

class PersistenceError(GradeExportException):
    """
    Exception raised when a query or history write fails.

    Context should include:
        - operation: INSERT, UPDATE, DELETE
        - table_name: Name of the table
        - query_id: Query the write belongs to (if known)
    """
    pass


# ============================================================================
# Sink Errors
# ============================================================================

class SinkError(GradeExportException):
    """Base exception for failures talking to the external datastore."""
    pass


class SinkImportError(SinkError):
    """
    A single import call failed.

    Recorded against the user in the run's error list; never aborts the run.

    Context should include:
        - user_id: User whose grade was being imported
        - final_grade: The grade that was sent
    """
    pass


class SinkTimeout(SinkImportError):
    """A single import call exceeded the configured sink timeout."""
    pass


class SinkConnectionError(SinkError):
    """
    The scoped sink session could not be opened.

    Nothing was sent, so the run is aborted and no history is written.
    """
    pass


# ============================================================================
# Consistency Errors
# ============================================================================

class DataConsistencyError(GradeExportException):
    """
    A grade references a user missing from the run's user snapshot.

    Context should include:
        - query_id: The query being exported
        - user_id: User id found on the grade record
    """
    pass


class QueryNotFoundError(GradeExportException):
    """No query matches the requested id."""
    pass
