"""Domain Errors - Gate pass exception hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""
    
    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """User lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class PermissionDeniedError(AuthorizationError):
    """Role may not act at this stage"""
    error_code = "PERMISSION_DENIED"


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class MissingCommentError(ValidationError):
    """Rejection without a justification"""
    error_code = "COMMENT_REQUIRED"
    
    def __init__(self, message: str = "Rejection comment is required.", **kwargs: Any):
        super().__init__(message, **kwargs)


class MissingServiceNoError(ValidationError):
    """Non-superadmin queue query without a service number"""
    error_code = "SERVICE_NO_REQUIRED"
    
    def __init__(self, message: str = "serviceNo is required for this role", **kwargs: Any):
        super().__init__(message, **kwargs)


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class RequestNotFoundError(NotFoundError):
    """Gate pass request not found"""
    error_code = "REQUEST_NOT_FOUND"


class StatusNotFoundError(NotFoundError):
    """No ledger row (or no linked request) for a reference number"""
    error_code = "STATUS_NOT_FOUND"
    
    def __init__(self, message: str = "Status/Request not found", **kwargs: Any):
        super().__init__(message, **kwargs)


class UserNotFoundError(NotFoundError):
    """Directory user not found"""
    error_code = "USER_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class InvalidStateError(ConflictError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


# Server Errors
class InternalServerError(DomainError):
    """Opaque failure surfaced from a stage operation"""
    error_code = "INTERNAL_ERROR"
    http_status = 500
    
    def __init__(self, message: str = "Internal server error", **kwargs: Any):
        super().__init__(message, **kwargs)


# External Service Errors
class ExternalServiceError(DomainError):
    """External service failure"""
    error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502


class EmailSendError(ExternalServiceError):
    """Email sending failed"""
    error_code = "EMAIL_SEND_ERROR"
