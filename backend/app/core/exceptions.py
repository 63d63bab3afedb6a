"""
Custom Exceptions for DigiDiploma
=================================

Raise these from services and endpoints instead of building error
responses by hand. The handler registered in app.main renders every
DigiDiplomaError as JSON:

    {"error": <message>, "code": <CODE>, ...details}

with the exception's status_code.

Usage:
    from app.core.exceptions import ResourceNotFoundError, ConflictError

    if not material:
        raise ResourceNotFoundError("Material", material_id)

    if existing:
        raise ConflictError("Subject with code CS101 already exists for branch Computer Engineering")
"""

from typing import Optional, Any, Dict


class DigiDiplomaError(Exception):
    """Base exception for all DigiDiploma errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            **self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(DigiDiplomaError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", code: str = "AUTH_FAILED"):
        super().__init__(message, code=code)


class AuthorizationError(DigiDiplomaError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NOT_AUTHORIZED", details=details)


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""

    def __init__(self):
        super().__init__("Token expired", code="TOKEN_EXPIRED")


class InvalidTokenError(DigiDiplomaError):
    """JWT token could not be decoded"""

    status_code = 403

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, code="INVALID_TOKEN")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(DigiDiplomaError):
    """Row or stored object not found"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        details = {"resourceId": resource_id} if resource_id else {}
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details=details
        )


# ============================================
# Validation Errors (400/409-type)
# ============================================

class ValidationError(DigiDiplomaError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, **details):
        if field:
            details["field"] = field
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(DigiDiplomaError):
    """Unique constraint would be violated"""

    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")


class InvalidFileTypeError(ValidationError):
    """File type not allowed"""

    def __init__(self, content_type: str, allowed: str):
        super().__init__(
            f"Invalid file type. Allowed types: {allowed}",
            field="contentType",
            received=content_type
        )
        self.code = "INVALID_FILE_TYPE"


# ============================================
# Integration Errors
# ============================================

class StorageError(DigiDiplomaError):
    """Object storage operation failed"""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, code="STORAGE_ERROR", details={"key": key} if key else None)


class PaymentError(DigiDiplomaError):
    """Payment gateway rejected the operation"""

    status_code = 400

    def __init__(self, message: str, code: str = "PAYMENT_ERROR", **details):
        super().__init__(message, code=code, details=details)


class ServiceUnavailableError(DigiDiplomaError):
    """Optional integration is not configured"""

    status_code = 503

    def __init__(self, message: str, code: str = "SERVICE_UNAVAILABLE", **details):
        super().__init__(message, code=code, details=details)


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: DigiDiplomaError) -> Dict[str, Any]:
    """Convert exception to API error response body"""
    return error.to_dict()
