from typing import Dict, Any, Optional
from datetime import datetime, timezone
from fastapi import status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError, DBAPIError, OperationalError
import logging

from mediconnect.core.context import get_request_id

logger = logging.getLogger(__name__)


class BaseCustomException(Exception):
    """Base class for custom exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(BaseCustomException):
    """Exception for validation errors"""

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            error_code=error_code or "VALIDATION_ERROR"
        )


class NotFoundError(BaseCustomException):
    """Exception for resource not found errors"""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            error_code=error_code or "NOT_FOUND_ERROR"
        )


class ConflictError(BaseCustomException):
    """Exception for conflict errors"""

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
            error_code=error_code or "CONFLICT_ERROR"
        )


class ExternalServiceError(BaseCustomException):
    """Exception for external service errors"""

    def __init__(
        self,
        message: str = "External service error",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
            error_code=error_code or "EXTERNAL_SERVICE_ERROR"
        )


class ConfigurationError(BaseCustomException):
    """Exception for configuration errors"""

    def __init__(
        self,
        message: str = "Configuration error",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code=error_code or "CONFIGURATION_ERROR"
        )


class TransientFailureError(BaseCustomException):
    """The store could not complete the operation; the caller may retry"""

    def __init__(
        self,
        message: str = "Operation could not be completed, try again",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
            error_code=error_code or "TRANSIENT_FAILURE"
        )


# Prescription workflow errors

class PrescriptionNotFoundError(NotFoundError):
    def __init__(self, prescription_id: str):
        super().__init__(
            message="Prescription not found",
            details={"prescription_id": prescription_id},
            error_code="PRESCRIPTION_NOT_FOUND"
        )


class InvalidatedPrescriptionError(ConflictError):
    """Dispense attempted on an invalidated prescription"""

    def __init__(self, prescription_id: str, reason: Optional[str]):
        self.reason = reason
        super().__init__(
            message="This prescription has been invalidated and cannot be dispensed",
            details={"prescription_id": prescription_id, "reason": reason},
            error_code="PRESCRIPTION_INVALIDATED"
        )


class DoseLimitExceededError(ConflictError):
    def __init__(self, prescription_id: str, total_doses: int):
        super().__init__(
            message="All doses have already been dispensed",
            details={"prescription_id": prescription_id, "total_doses": total_doses},
            error_code="DOSE_LIMIT_EXCEEDED"
        )


class ConcurrencyConflictError(ConflictError):
    """Optimistic write lost a race. Retried inside the workflow."""

    def __init__(self, prescription_id: str, expected_doses: Optional[int] = None):
        super().__init__(
            message="Prescription was modified concurrently",
            details={"prescription_id": prescription_id, "expected_doses": expected_doses},
            error_code="CONCURRENCY_CONFLICT"
        )


class AIResponseFormatError(ExternalServiceError):
    """Text-generation reply did not match the expected schema"""

    def __init__(self, message: str = "Unexpected AI response format", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            details=details,
            error_code="AI_RESPONSE_FORMAT_ERROR"
        )


# Response models for errors
class ErrorResponse(BaseModel):
    """Standard error response model"""
    error: str
    message: str
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: Optional[str] = None
    request_id: Optional[str] = None


def create_error_response(
    exception: BaseCustomException,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create standardized error response"""
    response = {
        "error": exception.__class__.__name__.replace("Error", " Error"),
        "message": exception.message,
        "error_code": exception.error_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id or get_request_id()
    }

    if exception.details:
        response["details"] = exception.details

    return response


def is_lock_contention(error: Exception) -> bool:
    """True for driver errors that mean another writer holds the row or database."""
    if not isinstance(error, OperationalError):
        return False
    text = str(error.orig if error.orig is not None else error).lower()
    return (
        "database is locked" in text
        or "could not serialize" in text
        or "deadlock detected" in text
    )


def handle_database_error(error: Exception, operation: str = "database operation") -> TransientFailureError:
    """Handle database errors and convert to TransientFailureError"""
    logger.error(f"Database error during {operation}: {error}")

    error_message = "Database operation failed"
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        error_message = "Database connection lost"
    elif "connection" in str(error).lower():
        error_message = "Database connection failed"
    elif "timeout" in str(error).lower() or "timed out" in str(error).lower():
        error_message = "Database operation timed out"

    return TransientFailureError(
        message=error_message,
        details={"operation": operation, "original_error": str(error)},
        error_code="STORE_UNAVAILABLE"
    )


STORE_ERRORS = (SQLAlchemyError, ConnectionError, TimeoutError)
