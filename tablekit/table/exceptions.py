"""
Table Storage Exception Hierarchy

Exception types for entity conversion, key validation, storage conflicts and
commit failures, each carrying an error code and context.
"""

from typing import Any, Dict, List, Optional


class TableKitError(Exception):
    """
    Base exception for all tablekit errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., 'EntityAlreadyExists')
        details: Additional context (table_name, partition_key, etc.)
    """

    error_code: str = "TableKitError"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# ========== Validation Errors ==========

class KeyFormatError(TableKitError):
    """Raised when a partition or row key violates the key constraints."""
    error_code = "KeyFormatError"

    def __init__(self, key_name: str, value: Any, reason: str):
        message = f"Invalid {key_name} {value!r}: {reason}"
        details = {"key_name": key_name, "reason": reason}
        super().__init__(message, details=details)


class InvalidEntityError(TableKitError):
    """Raised when a record uses a reserved name or has an ambiguous key mapping."""
    error_code = "InvalidEntity"


class UnsupportedTypeError(TableKitError):
    """Raised when a property's type has no registered converter."""
    error_code = "UnsupportedType"

    def __init__(self, python_type: Any, property_name: Optional[str] = None):
        type_name = getattr(python_type, "__name__", repr(python_type))
        if property_name:
            message = f"Property '{property_name}' has unsupported type {type_name}"
        else:
            message = f"Unsupported property type {type_name}"
        details = {"type": type_name}
        if property_name:
            details["property_name"] = property_name
        super().__init__(message, details=details)


class ArgumentError(TableKitError):
    """Raised when keys are missing or conflict during item construction."""
    error_code = "ArgumentError"


class ConverterAlreadyRegisteredError(TableKitError):
    """Raised when a converter is registered twice for the same type."""
    error_code = "ConverterAlreadyRegistered"

    def __init__(self, python_type: type):
        type_name = getattr(python_type, "__name__", repr(python_type))
        super().__init__(
            f"A converter for {type_name} is already registered",
            details={"type": type_name}
        )


# ========== Storage Errors ==========

class EntityError(TableKitError):
    """Base class for errors scoped to a single row."""
    error_code = "EntityError"

    def __init__(
        self,
        table_name: Optional[str],
        partition_key: str,
        row_key: str,
        message: Optional[str] = None
    ):
        message = message or self.default_message(partition_key, row_key)
        details = {
            "table_name": table_name,
            "partition_key": partition_key,
            "row_key": row_key,
        }
        super().__init__(message, details=details)
        self.table_name = table_name
        self.partition_key = partition_key
        self.row_key = row_key

    @staticmethod
    def default_message(partition_key: str, row_key: str) -> str:
        return f"Entity error for PartitionKey '{partition_key}' and RowKey '{row_key}'"


class EntityAlreadyExistsError(EntityError):
    """Raised when an insert targets an occupied key."""
    error_code = "EntityAlreadyExists"

    @staticmethod
    def default_message(partition_key: str, row_key: str) -> str:
        return (
            f"Entity with PartitionKey '{partition_key}' "
            f"and RowKey '{row_key}' already exists"
        )


class EntityDoesNotExistError(EntityError):
    """Raised when an update, merge or conditional delete targets an absent key."""
    error_code = "EntityDoesNotExist"

    @staticmethod
    def default_message(partition_key: str, row_key: str) -> str:
        return (
            f"Entity with PartitionKey '{partition_key}' "
            f"and RowKey '{row_key}' does not exist"
        )


class EntityChangedError(EntityError):
    """Raised when an ETag does not match the stored row."""
    error_code = "EntityHasBeenChanged"

    @staticmethod
    def default_message(partition_key: str, row_key: str) -> str:
        return (
            f"Entity with PartitionKey '{partition_key}' "
            f"and RowKey '{row_key}' has been changed"
        )


# ========== Operation Errors ==========

class InvalidOperationError(TableKitError):
    """Raised on transaction legality violations or protocol misuse."""
    error_code = "InvalidOperation"


class CommitFailedError(TableKitError):
    """Raised when several operations of one commit failed."""
    error_code = "CommitFailed"

    def __init__(self, failures: List[TableKitError]):
        self.failures = list(failures)
        summary = ", ".join(f.error_code for f in self.failures)
        super().__init__(
            f"{len(self.failures)} operations failed during commit: {summary}",
            details={"failures": [f.to_dict()["error"] for f in self.failures]}
        )


class TransientServiceError(TableKitError):
    """Raised by a service client for failures that may succeed on retry."""
    error_code = "TransientServiceError"

    def __init__(self, message: str, status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, details=details)
        self.status_code = status_code


def is_transient_error(error: Exception) -> bool:
    """
    Determine if an error is transient and can be retried.

    Args:
        error: Exception to check

    Returns:
        True if error is transient
    """
    return isinstance(error, TransientServiceError)
