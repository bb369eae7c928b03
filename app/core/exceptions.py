"""
Custom exception classes for Cronos Backend.
"""
from typing import Any, Dict, Optional


class CronosException(Exception):
    """Base exception class for Cronos application."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(CronosException):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTHENTICATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=401, details=details)


class AuthorizationError(CronosException):
    """Raised when a user doesn't have permission."""

    def __init__(
        self,
        message: str = "Not authorized",
        code: str = "AUTHORIZATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=403, details=details)


class ValidationError(CronosException):
    """Raised for validation errors."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=422, details=details)


class NotFoundError(CronosException):
    """Raised when a resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = "NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=404, details=details)


class ConflictError(CronosException):
    """Raised when a resource is not in a state that allows the operation."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=409, details=details)


class AuthProviderError(CronosException):
    """Raised when the identity provider rejects or fails a request."""

    def __init__(
        self,
        message: str = "Auth provider error",
        code: str = "AUTH_PROVIDER_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 502,
    ):
        super().__init__(message=message, code=code, status_code=status_code, details=details)


class ImportPreconditionError(ValidationError):
    """Raised when an import job cannot start processing rows at all."""

    def __init__(
        self,
        message: str = "Import precondition failed",
        code: str = "IMPORT_PRECONDITION_FAILED",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, details=details)


class EmptyFileError(ImportPreconditionError):
    """Raised when the uploaded file has no non-blank lines."""

    def __init__(self, message: str = "The file is empty", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="EMPTY_FILE", details=details)


class UnreadableFileError(ImportPreconditionError):
    """Raised when the uploaded content is not CSV text."""

    def __init__(self, message: str = "The file could not be read as CSV text", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="UNREADABLE_FILE", details=details)


class RowImportError(CronosException):
    """
    Base class for failures isolated to a single data row.

    The import orchestrator turns these into row error records; they never
    abort the run.
    """

    def __init__(
        self,
        message: str,
        code: str = "ROW_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=422, details=details)


class RowValidationError(RowImportError):
    """Missing required field, malformed value or unknown enum member."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="ROW_VALIDATION_ERROR", details=details)


class RowReferenceError(RowImportError):
    """A foreign natural key (username, code) does not resolve."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="ROW_REFERENCE_ERROR", details=details)


class RowDuplicateError(RowImportError):
    """The row's natural key already exists in the target store."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="ROW_DUPLICATE_ERROR", details=details)


class CompensationError(RowImportError):
    """A row failed and undoing its first side effect failed as well."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="ROW_COMPENSATION_ERROR", details=details)
