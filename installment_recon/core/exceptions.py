from typing import Optional, Dict, Any


class AppException(Exception):
    """Base application exception"""
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "APP_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ResolutionError(AppException):
    """A customer or reference could not be bound to a stored record"""
    def __init__(self, message: str = "Could not resolve reference", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="RESOLUTION_ERROR",
            details=details
        )


class ValidationError(AppException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=details
        )


class DuplicateError(AppException):
    """Sequence number already used by a stored record"""
    def __init__(self, message: str = "Duplicate sequence number", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="DUPLICATE_ERROR",
            details=details
        )


class PersistenceError(AppException):
    """The data store rejected a write"""
    def __init__(self, message: str = "Could not save record", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="PERSISTENCE_ERROR",
            details=details
        )


class VerificationError(AppException):
    """The payment gateway could not confirm an event"""
    def __init__(
        self,
        message: str = "Payment verification failed",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code="VERIFICATION_ERROR",
            details=details
        )
