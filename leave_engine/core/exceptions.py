from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details
        )

class ConflictError(AppException):
    """Raised when a storage write keeps colliding with a concurrent writer."""
    def __init__(self, message: str = "The leave data changed while processing your request. Please retry."):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT"
        )

class PolicyValidationError(AppException):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="INVALID_POLICY",
            details={"field": field} if field else None
        )

class LeaveRuleViolation(AppException):
    """HTTP-facing wrapper around a rejected validation or workflow result."""
    def __init__(self, message: str, error_code: str, status_code: int = 400,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )
